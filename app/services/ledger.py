"""Atomic balance mutations over the account store.

Every credit and debit is delegated to one store statement; the ledger never
reads a balance and writes it back. Mutations are shielded so a client that
disconnects mid-request does not cancel a statement already sent.
"""

import asyncio
from decimal import Decimal, DecimalException
from typing import Awaitable, TypeVar

from bson.decimal128 import Decimal128

from app.core.exceptions import BadRequestError, InsufficientBalanceError, NotFoundError
from app.core.logging import get_logger
from app.services.accounts import AccountStore

log = get_logger(__name__)

T = TypeVar("T")


def validate_amount(amount: Decimal) -> Decimal:
    """Return ``amount`` if it is a finite, positive Decimal."""
    if isinstance(amount, float) or not isinstance(amount, (Decimal, int)) or isinstance(amount, bool):
        raise TypeError(f"amount must be Decimal, got {type(amount).__name__}")
    amount = Decimal(amount)
    if not amount.is_finite() or amount <= 0:
        raise BadRequestError("Amount must be a positive number")
    try:
        Decimal128(amount)
    except DecimalException:
        raise BadRequestError("Amount has too many digits") from None
    return amount


def _log_detached_result(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("detached_mutation_failed", error=type(exc).__name__)
    else:
        log.info("detached_mutation_completed")


async def _shielded(aw: Awaitable[T]) -> T:
    """Await ``aw`` so that cancelling the caller leaves the statement running."""
    task = asyncio.ensure_future(aw)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        task.add_done_callback(_log_detached_result)
        raise


class Ledger:
    def __init__(self, store: AccountStore):
        self.store = store

    async def credit(self, account_id: str, amount: Decimal) -> Decimal:
        """Add ``amount`` and return the balance after the credit."""
        amount = validate_amount(amount)
        account = await _shielded(self.store.increment_balance(account_id, amount))
        if account is None:
            raise NotFoundError("Account not found")
        log.info("balance_credited", account_id=account_id, amount=str(amount), balance=str(account.balance))
        return account.balance

    async def debit_if_sufficient(self, account_id: str, amount: Decimal) -> Decimal:
        """Subtract ``amount`` only when the balance covers it; return the new balance."""
        amount = validate_amount(amount)
        account = await _shielded(self.store.decrement_balance_if_at_least(account_id, amount))
        if account is not None:
            log.info("balance_debited", account_id=account_id, amount=str(amount), balance=str(account.balance))
            return account.balance
        # Guard did not match: tell a missing account apart from a short balance.
        if await self.store.find_by_id(account_id) is None:
            raise NotFoundError("Account not found")
        raise InsufficientBalanceError()

    async def credit_by_email(self, email: str, amount: Decimal) -> bool:
        """Credit the account addressed by ``email``; False when nothing matched."""
        amount = validate_amount(amount)
        affected = await _shielded(self.store.increment_balance_by_email(email, amount))
        if affected:
            log.info("balance_credited", email=email, amount=str(amount))
        return affected
