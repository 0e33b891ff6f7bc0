from dataclasses import dataclass

from app.core.config import Settings
from app.services.accounts import AccountStore
from app.services.auth import Authenticator
from app.services.ledger import Ledger
from app.services.rewards import RewardIntake
from app.services.withdrawals import WithdrawalGate


@dataclass
class Services:
    """Components sharing one store handle; built once per process."""

    settings: Settings
    store: AccountStore
    authenticator: Authenticator
    ledger: Ledger
    withdrawals: WithdrawalGate
    rewards: RewardIntake


def build_services(store: AccountStore, settings: Settings) -> Services:
    ledger = Ledger(store)
    return Services(
        settings=settings,
        store=store,
        authenticator=Authenticator(store, settings),
        ledger=ledger,
        withdrawals=WithdrawalGate(ledger, settings.min_withdraw),
        rewards=RewardIntake(ledger, settings.watch_ad_increment, settings.kiwiwall_secret),
    )
