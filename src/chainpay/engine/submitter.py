"""
Settlement Contract Submission

Calls ``payTx`` on the settlement contract. The deployed contract comes in two
shapes, and which one is targeted is an explicit setting: sending the wrong
argument count fails loudly on-chain but is hard to diagnose from here.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from ..adapters.bases import WalletSession
from ..adapters.evm.abis import get_pay_tx_abi
from ..schemas.payments import PaymentRequest

logger = logging.getLogger(__name__)


class PaymentAbiVariant(str, Enum):
    """
    Shape of the settlement contract's ``payTx``.

    Attributes:
        SIGNED: ``payTx(merchantId, orderId, invoiceId, token, amount, deadline, signature)``
        BASIC: ``payTx(merchantId, orderId, invoiceId, token, amount)``
    """
    SIGNED = "signed"
    BASIC = "basic"

    @property
    def requires_authorization(self) -> bool:
        return self == PaymentAbiVariant.SIGNED


class PaymentSubmitter:
    """
    Submit the settlement call for a validated request.

    Args:
        wallet: Connected wallet session.
        abi_variant: Which ``payTx`` shape the deployed contract expects.
        tx_options: Transaction options forwarded with the call.
    """

    def __init__(
        self,
        wallet: WalletSession,
        abi_variant: PaymentAbiVariant = PaymentAbiVariant.SIGNED,
        tx_options: Optional[Dict[str, Any]] = None,
    ):
        self.wallet = wallet
        self.abi_variant = PaymentAbiVariant(abi_variant)
        self.tx_options = dict(tx_options or {})

    def build_arguments(self, request: PaymentRequest, amount_base_units: str) -> List[str]:
        """Ordered ``payTx`` arguments for the configured variant."""
        args = [
            request.merchant_id,
            request.order_id,
            request.invoice_id,
            request.token_address,
            str(amount_base_units),
        ]
        if self.abi_variant.requires_authorization:
            args += [request.deadline, request.signature]
        return args

    async def submit(self, payment_contract_address: str, request: PaymentRequest, amount_base_units: str) -> str:
        """
        Invoke ``payTx`` and return the transaction id.

        Raises:
            ChainCallFailed: On rejection (insufficient balance, revert, user rejection).
        """
        abi_entry = get_pay_tx_abi(with_authorization=self.abi_variant.requires_authorization)
        args = self.build_arguments(request, amount_base_units)

        tx_id = await self.wallet.send_contract_transaction(
            payment_contract_address,
            abi_entry,
            args,
            self.tx_options,
        )
        logger.debug("payTx sent for order %s: %s", request.order_id, tx_id)
        return tx_id
