"""
Token Allowance Reconciliation

Reads the payer's current allowance for the settlement contract and submits
an approval for exactly the payment amount when it falls short.

The approval is not awaited: the payment transaction is submitted right
after it, relying on the chain to execute transactions from one account in
submission order. On chains that do not serialise same-account transactions
the payment may run against the old allowance; this latency-over-ordering
trade-off is deliberate and left to the caller to revisit.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..adapters.bases import WalletSession
from ..adapters.evm.abis import get_allowance_abi, get_approve_abi, get_decimals_abi
from ..schemas.payments import AllowanceResult
from ..units import MAX_DECIMALS
from .exceptions import ChainCallFailed

logger = logging.getLogger(__name__)

BeforeApproveHook = Callable[[int], Awaitable[None]]


def _as_int(value: Union[str, int], label: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{label} must be an integer, got {value!r}") from e
    if number < 0:
        raise ValueError(f"{label} must be non-negative")
    return number


class TokenAllowanceManager:
    """
    Query and top up ERC-20 allowances through a WalletSession.

    Args:
        wallet: Connected wallet session used for reads and the approval.
        tx_options: Transaction options forwarded with the approval (gas limit, fees).
    """

    def __init__(self, wallet: WalletSession, tx_options: Optional[Dict[str, Any]] = None):
        self.wallet = wallet
        self.tx_options = dict(tx_options or {})

    async def read_decimals(self, token: str) -> int:
        """
        Read the token precision via ``decimals()``.

        Raises:
            ChainCallFailed: If the call fails or returns something that is not 0-255.
        """
        raw = await self.wallet.read_contract_view(token, get_decimals_abi(), [])
        try:
            decimals = int(raw)
        except (TypeError, ValueError) as e:
            raise ChainCallFailed(f"decimals() returned a non-integer value: {raw!r}", method="decimals") from e
        if decimals < 0 or decimals > MAX_DECIMALS:
            raise ChainCallFailed(f"decimals() returned an out-of-range value: {decimals}", method="decimals")
        return decimals

    async def read_allowance(self, token: str, owner: str, spender: str) -> int:
        """Current allowance of ``spender`` over ``owner``'s tokens, in base units."""
        raw = await self.wallet.read_contract_view(token, get_allowance_abi(), [owner, spender])
        try:
            return int(raw)
        except (TypeError, ValueError) as e:
            raise ChainCallFailed(f"allowance() returned a non-integer value: {raw!r}", method="allowance") from e

    async def ensure_allowance(
        self,
        token: str,
        owner: str,
        spender: str,
        required_amount: Union[str, int],
        *,
        before_approve: Optional[BeforeApproveHook] = None,
    ) -> AllowanceResult:
        """
        Make sure ``spender`` may move ``required_amount`` of ``owner``'s tokens.

        Steps:
            1. Read the current allowance
            2. If it is at least ``required_amount`` (exact integer comparison),
               return ``approved=True`` without sending anything
            3. Otherwise await ``before_approve(current_allowance)`` if given and
               submit ``approve(spender, required_amount)`` for the exact amount

        Args:
            token: Token contract address.
            owner: Paying account.
            spender: Settlement contract address.
            required_amount: Amount in base units (str or int).
            before_approve: Optional coroutine called once an approval is known to be needed.

        Returns:
            AllowanceResult: ``approved=True`` on the cheap path, otherwise
            ``approved=False`` with the unconfirmed approval transaction id.

        Raises:
            ValueError: If ``required_amount`` is not a non-negative integer.
            ChainCallFailed: If the read or the approval is rejected.
        """
        required = _as_int(required_amount, "required_amount")
        allowance = await self.read_allowance(token, owner, spender)

        if allowance >= required:
            logger.debug("allowance %s covers %s, skipping approve", allowance, required)
            return AllowanceResult(approved=True, current_allowance=str(allowance))

        if before_approve is not None:
            await before_approve(allowance)

        approve_tx = await self.wallet.send_contract_transaction(
            token,
            get_approve_abi(),
            [spender, str(required)],
            self.tx_options,
        )
        logger.debug("approve(%s, %s) sent: %s", spender, required, approve_tx)
        return AllowanceResult(
            approved=False,
            approve_transaction_id=approve_tx,
            current_allowance=str(allowance),
        )
