from decimal import Decimal

import pytest

from app.core.exceptions import BadRequestError, ForbiddenError, MisconfiguredError, NotFoundError
from app.services.ledger import Ledger
from app.services.rewards import RewardIntake, parse_amount, parse_payout, resolve_subject

SECRET = "kiwi"


def test_parse_payout_field_priority():
    cb = parse_payout({}, {"user_id": "u", "sub_id": "s", "reward": "3", "payout": "2", "secret": "b"})
    assert cb.subject == "s"
    assert cb.amount == "2"
    assert cb.secret == "b"


def test_parse_payout_query_wins_over_body():
    cb = parse_payout({"secret": "q", "subid": "a@x.com"}, {"secret": "b", "subid": "b@x.com", "amount": 2})
    assert cb.secret == "q"
    assert cb.subject == "a@x.com"
    assert cb.amount == 2


def test_parse_payout_skips_empty_values():
    cb = parse_payout({"amount": ""}, {"payout": "1.25"})
    assert cb.amount == "1.25"
    assert cb.subject is None


@pytest.mark.parametrize("raw", [None, "", "abc", "0", "-2", "NaN", "Infinity", True])
def test_parse_amount_rejects(raw):
    assert parse_amount(raw) is None


def test_parse_amount_keeps_decimal_precision():
    assert parse_amount("2.00") == Decimal("2.00")
    assert parse_amount(0.1) == Decimal("0.1")
    assert parse_amount(3) == Decimal("3")


def test_resolve_subject():
    assert resolve_subject("  A@X.com ") == "a@x.com"
    assert resolve_subject(" Ext-42 ") == "Ext-42"


@pytest.mark.asyncio
async def test_watch_ad_credits_increment(store):
    intake = RewardIntake(Ledger(store), Decimal("0.01"), SECRET)
    account = await store.create_account("a@x.com", "hash")
    for _ in range(3):
        balance = await intake.watch_ad(account.id)
    assert balance == Decimal("0.03")


@pytest.mark.asyncio
async def test_payout_credits_exact_amount(store):
    intake = RewardIntake(Ledger(store), Decimal("0.01"), SECRET)
    account = await store.create_account("a@x.com", "hash")
    await intake.handle_payout_callback(SECRET, "A@x.com", "2.00")
    assert (await store.find_by_id(account.id)).balance == Decimal("2.00")


@pytest.mark.asyncio
async def test_payout_bad_secret_leaves_balance(store):
    intake = RewardIntake(Ledger(store), Decimal("0.01"), SECRET)
    account = await store.create_account("a@x.com", "hash")
    with pytest.raises(ForbiddenError):
        await intake.handle_payout_callback("wrong", "a@x.com", "2.00")
    with pytest.raises(ForbiddenError):
        await intake.handle_payout_callback(None, "a@x.com", "2.00")
    assert (await store.find_by_id(account.id)).balance == Decimal("0")


@pytest.mark.asyncio
async def test_payout_without_configured_secret_is_misconfigured(store):
    intake = RewardIntake(Ledger(store), Decimal("0.01"), "")
    with pytest.raises(MisconfiguredError):
        await intake.handle_payout_callback("", "a@x.com", "2.00")


@pytest.mark.asyncio
@pytest.mark.parametrize("subject,amount", [(None, "2"), ("  ", "2"), ("a@x.com", None), ("a@x.com", "-1")])
async def test_payout_invalid_params(store, subject, amount):
    intake = RewardIntake(Ledger(store), Decimal("0.01"), SECRET)
    with pytest.raises(BadRequestError):
        await intake.handle_payout_callback(SECRET, subject, amount)


@pytest.mark.asyncio
async def test_payout_unknown_subject(store):
    intake = RewardIntake(Ledger(store), Decimal("0.01"), SECRET)
    with pytest.raises(NotFoundError):
        await intake.handle_payout_callback(SECRET, "nobody@x.com", "2")
    with pytest.raises(NotFoundError):
        await intake.handle_payout_callback(SECRET, "ext-42", "2")
