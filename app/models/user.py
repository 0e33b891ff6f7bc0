from datetime import datetime, timezone
from decimal import Decimal

from beanie import DecimalAnnotation, Document, Indexed
from pydantic import Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Document):
    """Account row. ``balance`` is stored as Decimal128 and only changed with $inc."""

    email: Indexed(str, unique=True)  # trimmed + lowercased before insert
    password_hash: str
    balance: DecimalAnnotation = Decimal("0")
    created_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "users"
