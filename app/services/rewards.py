"""Credit sources: the in-app ad watch and the Kiwiwall payout postback."""

from dataclasses import dataclass
from decimal import Decimal, DecimalException, InvalidOperation
from typing import Any, Mapping, Sequence

from bson.decimal128 import Decimal128

from app.core.exceptions import BadRequestError, ForbiddenError, MisconfiguredError, NotFoundError
from app.core.logging import get_logger
from app.core.security import secrets_match
from app.services.accounts import normalize_email
from app.services.ledger import Ledger

log = get_logger(__name__)

# Kiwiwall (and proxies in front of it) send the same values under different names.
SUBJECT_FIELDS = ("subid", "sub_id", "user_id")
AMOUNT_FIELDS = ("amount", "payout", "reward")
SECRET_FIELDS = ("secret",)


@dataclass(frozen=True)
class PayoutCallback:
    secret: str | None
    subject: str | None
    amount: Any


def _first(sources: Sequence[Mapping[str, Any]], names: Sequence[str]) -> Any:
    for source in sources:
        for name in names:
            value = source.get(name)
            if value is not None and value != "":
                return value
    return None


def parse_payout(query: Mapping[str, Any], body: Mapping[str, Any] | None = None) -> PayoutCallback:
    """Pick each field by priority; query parameters win over body fields."""
    sources = [query] + ([body] if body else [])
    secret = _first(sources, SECRET_FIELDS)
    subject = _first(sources, SUBJECT_FIELDS)
    return PayoutCallback(
        secret=str(secret) if secret is not None else None,
        subject=str(subject) if subject is not None else None,
        amount=_first(sources, AMOUNT_FIELDS),
    )


def parse_amount(raw: Any) -> Decimal | None:
    """Positive finite Decimal that fits in Decimal128 without rounding, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    try:
        Decimal128(amount)
    except DecimalException:
        return None
    return amount


def resolve_subject(subject: str) -> str:
    """Lookup key for a postback subject.

    Identifiers containing ``@`` are emails and get normalized; anything else is an
    opaque external id and is used as-is against the same email key.
    """
    subject = subject.strip()
    if "@" in subject:
        return normalize_email(subject)
    return subject


class RewardIntake:
    def __init__(self, ledger: Ledger, watch_ad_increment: Decimal, kiwiwall_secret: str):
        self.ledger = ledger
        self.watch_ad_increment = watch_ad_increment
        self.kiwiwall_secret = kiwiwall_secret

    async def watch_ad(self, account_id: str) -> Decimal:
        return await self.ledger.credit(account_id, self.watch_ad_increment)

    async def handle_payout_callback(self, provided_secret: str | None, subject: str | None, amount: Any) -> None:
        if not self.kiwiwall_secret:
            log.error("payout_misconfigured", reason="KIWIWALL_SECRET not set")
            raise MisconfiguredError("Server misconfigured")
        if not secrets_match(provided_secret, self.kiwiwall_secret):
            log.warning("payout_rejected", reason="bad_secret")
            raise ForbiddenError("Forbidden")
        parsed = parse_amount(amount)
        if not subject or not subject.strip() or parsed is None:
            log.info("payout_rejected", reason="invalid_params", subject=subject)
            raise BadRequestError("Invalid parameters")
        key = resolve_subject(subject)
        if not await self.ledger.credit_by_email(key, parsed):
            log.info("payout_rejected", reason="unknown_subject", subject=key)
            raise NotFoundError("Unknown user")
        log.info("payout_credited", subject=key, amount=str(parsed))
