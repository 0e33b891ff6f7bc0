from decimal import Decimal

from app.core.exceptions import InsufficientBalanceError
from app.core.logging import get_logger
from app.services.ledger import Ledger

log = get_logger(__name__)


class WithdrawalGate:
    """Minimum-balance policy in front of the guarded debit."""

    def __init__(self, ledger: Ledger, min_withdraw: Decimal):
        self.ledger = ledger
        self.min_withdraw = min_withdraw

    def can_withdraw(self, balance: Decimal) -> bool:
        return balance >= self.min_withdraw

    async def withdraw(self, account_id: str) -> Decimal:
        """Debit MIN_WITHDRAW; raises InsufficientBalanceError below the threshold."""
        try:
            balance = await self.ledger.debit_if_sufficient(account_id, self.min_withdraw)
        except InsufficientBalanceError as e:
            log.info("withdrawal_rejected", account_id=account_id, minimum=str(self.min_withdraw))
            e.details = {"minimum": str(self.min_withdraw)}
            raise
        log.info("withdrawal_completed", account_id=account_id, amount=str(self.min_withdraw))
        return balance
