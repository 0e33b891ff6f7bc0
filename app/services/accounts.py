"""Credential store: account rows, unique email, and the atomic balance statements."""

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.exceptions import ConflictError, StorageError
from app.core.logging import get_logger
from app.models.user import User

log = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class Account:
    id: str
    email: str
    password_hash: str
    balance: Decimal

    @classmethod
    def from_document(cls, doc: User) -> "Account":
        return cls(id=str(doc.id), email=doc.email, password_hash=doc.password_hash, balance=doc.balance)


def _object_id(account_id: str) -> PydanticObjectId | None:
    try:
        return PydanticObjectId(account_id)
    except (InvalidId, TypeError, ValueError):
        return None


@contextmanager
def _storage_errors(operation: str, **context) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        log.error("storage_error", operation=operation, error=type(e).__name__, **context)
        raise StorageError() from e


class AccountStore:
    """MongoDB-backed store. Every balance change is a single findOneAndUpdate.

    Requires ``init_db`` to have registered the ``User`` document.
    """

    async def create_account(self, email: str, password_hash: str) -> Account:
        email = normalize_email(email)
        doc = User(email=email, password_hash=password_hash, balance=Decimal("0"))
        with _storage_errors("create_account", email=email):
            try:
                await doc.insert()
            except DuplicateKeyError as e:
                raise ConflictError("Email already registered") from e
        return Account.from_document(doc)

    async def find_by_email(self, email: str) -> Account | None:
        email = normalize_email(email)
        with _storage_errors("find_by_email", email=email):
            doc = await User.find_one(User.email == email)
        return Account.from_document(doc) if doc else None

    async def find_by_id(self, account_id: str) -> Account | None:
        oid = _object_id(account_id)
        if oid is None:
            return None
        with _storage_errors("find_by_id", account_id=account_id):
            doc = await User.get(oid)
        return Account.from_document(doc) if doc else None

    async def increment_balance(self, account_id: str, amount: Decimal) -> Account | None:
        """Add ``amount``; return the updated account, or None if no row matched."""
        oid = _object_id(account_id)
        if oid is None:
            return None
        with _storage_errors("increment_balance", account_id=account_id):
            doc = await User.find_one(User.id == oid).update(
                Inc({User.balance: amount}),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        return Account.from_document(doc) if doc else None

    async def increment_balance_by_email(self, email: str, amount: Decimal) -> bool:
        email = normalize_email(email)
        with _storage_errors("increment_balance_by_email", email=email):
            result = await User.find_one(User.email == email).update(Inc({User.balance: amount}))
        return bool(result and result.matched_count)

    async def decrement_balance_if_at_least(self, account_id: str, amount: Decimal) -> Account | None:
        """Subtract ``amount`` only where ``balance >= amount``, as one conditional statement."""
        oid = _object_id(account_id)
        if oid is None:
            return None
        with _storage_errors("decrement_balance_if_at_least", account_id=account_id):
            doc = await User.find_one(User.id == oid, User.balance >= amount).update(
                Inc({User.balance: -amount}),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        return Account.from_document(doc) if doc else None
