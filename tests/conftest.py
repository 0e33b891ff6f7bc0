import os
import uuid
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Use test DB
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "cagnotte_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")

from app.core.config import Settings  # noqa: E402
from app.core.exceptions import ConflictError  # noqa: E402
from app.services.accounts import Account, normalize_email  # noqa: E402
from app.services.container import Services, build_services  # noqa: E402

KIWIWALL_SECRET = "kiwi-test-secret"


class InMemoryAccountStore:
    """Same interface as AccountStore. No awaits inside a method, so each call is atomic on the loop."""

    def __init__(self):
        self.rows: dict[str, dict] = {}

    def _by_email(self, email: str) -> dict | None:
        return next((r for r in self.rows.values() if r["email"] == email), None)

    @staticmethod
    def _account(row: dict) -> Account:
        return Account(id=row["id"], email=row["email"], password_hash=row["password_hash"], balance=row["balance"])

    async def create_account(self, email: str, password_hash: str) -> Account:
        email = normalize_email(email)
        if self._by_email(email):
            raise ConflictError("Email already registered")
        row = {"id": uuid.uuid4().hex, "email": email, "password_hash": password_hash, "balance": Decimal("0")}
        self.rows[row["id"]] = row
        return self._account(row)

    async def find_by_email(self, email: str) -> Account | None:
        row = self._by_email(normalize_email(email))
        return self._account(row) if row else None

    async def find_by_id(self, account_id: str) -> Account | None:
        row = self.rows.get(account_id)
        return self._account(row) if row else None

    async def increment_balance(self, account_id: str, amount: Decimal) -> Account | None:
        row = self.rows.get(account_id)
        if row is None:
            return None
        row["balance"] += amount
        return self._account(row)

    async def increment_balance_by_email(self, email: str, amount: Decimal) -> bool:
        row = self._by_email(normalize_email(email))
        if row is None:
            return False
        row["balance"] += amount
        return True

    async def decrement_balance_if_at_least(self, account_id: str, amount: Decimal) -> Account | None:
        row = self.rows.get(account_id)
        if row is None or row["balance"] < amount:
            return None
        row["balance"] -= amount
        return self._account(row)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        secret_key="test-secret-key-min-32-characters-long",
        bcrypt_rounds=4,
        watch_ad_increment=Decimal("0.01"),
        min_withdraw=Decimal("1.5"),
        kiwiwall_secret=KIWIWALL_SECRET,
    )


@pytest.fixture
def store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def services(store: InMemoryAccountStore, settings: Settings) -> Services:
    return build_services(store, settings)


@pytest_asyncio.fixture
async def client(services: Services) -> AsyncGenerator[AsyncClient, None]:
    from app.main import create_app
    app = create_app(services=services)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def register(client: AsyncClient):
    """Sign up through the API and return auth headers for the new account."""

    async def _register(email: str = "a@x.com", password: str = "secret1") -> dict[str, str]:
        r = await client.post("/api/signup", json={"email": email, "password": password})
        assert r.status_code == 201, r.text
        return {"Authorization": f"Bearer {r.json()['token']}"}

    return _register
