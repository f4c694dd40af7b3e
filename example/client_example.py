import asyncio
import logging

from web3 import Web3

from chainpay.adapters.evm.wallet import Web3WalletSession
from chainpay.adapters.indexers import HttpTransactionIndexer
from chainpay.adapters.evm.indexer import Web3ReceiptIndexer
from chainpay.clients.backend import OrderBackendClient
from chainpay.config import load_settings
from chainpay.engine.events import LogAppendedEvent, StatusChangedEvent
from chainpay.engine.orchestrator import PaymentOrchestrator
from chainpay.sources import QRPayloadSource
from chainpay.storage import LocalPaymentCache

logging.basicConfig(level=logging.INFO)

# Text decoded from the merchant's QR code (JSON or querystring)
qr_text = "merchant_id=0x...&order_id=0x...&invoice_id=0x...&amount=15.00&deadline=0&signature=0x..."


async def print_log(event: LogAppendedEvent):
    print(event.entry.format())


async def print_status(event: StatusChangedEvent):
    print(f"--> {event.current.value}")


async def pay(settings, wallet, indexer):
    async with OrderBackendClient(settings.backend_url or "http://localhost:3000") as backend:
        orchestrator = PaymentOrchestrator(
            wallet,
            indexer,
            settings,
            notifier=backend.notify,
            cache=LocalPaymentCache(settings.cache_dir) if settings.cache_dir else None,
            address_validator=Web3.is_address,
        )
        orchestrator.event_bus.subscribe(LogAppendedEvent, print_log)
        orchestrator.event_bus.subscribe(StatusChangedEvent, print_status)

        source = QRPayloadSource(qr_text, default_token=settings.default_token_address)
        return await orchestrator.run(source)


async def main():
    settings = load_settings()  # CHAINPAY_* variables, optionally from .env

    wallet = Web3WalletSession(
        rpc_url=settings.rpc_url,
        private_key=settings.private_key,
        default_gas_limit=settings.gas_limit,
    )
    if settings.indexer_url:
        async with HttpTransactionIndexer(settings.indexer_url) as indexer:
            return await pay(settings, wallet, indexer)
    return await pay(settings, wallet, Web3ReceiptIndexer(wallet.web3))


if __name__ == "__main__":
    session = asyncio.run(main())
    print("Status:", session.status.value, "txid:", session.transaction_id)
