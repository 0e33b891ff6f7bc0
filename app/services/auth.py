"""Signup, login and bearer tokens. No server-side session state."""

from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.exceptions import BadRequestError, UnauthorizedError
from app.core.logging import get_logger
from app.core.security import (
    BCRYPT_MAX_PASSWORD_BYTES,
    create_token,
    hash_password,
    load_token,
    verify_password,
)
from app.services.accounts import Account, AccountStore, normalize_email

log = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


class Authenticator:
    def __init__(self, store: AccountStore, settings: Settings):
        self.store = store
        self.secret_key = settings.secret_key
        self.token_max_age = settings.token_max_age_seconds
        self.bcrypt_rounds = settings.bcrypt_rounds
        self._dummy_hash: str | None = None

    async def signup(self, email: str | None, password: str | None) -> tuple[Account, str]:
        if not email or not email.strip() or not password:
            raise BadRequestError("Email and password are required")
        email = normalize_email(email)
        if "@" not in email:
            raise BadRequestError("Invalid email address")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise BadRequestError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
        password_hash = await run_in_threadpool(hash_password, password, self.bcrypt_rounds)
        account = await self.store.create_account(email, password_hash)
        log.info("account_created", account_id=account.id, email=account.email)
        return account, self.issue_token(account.id)

    async def login(self, email: str | None, password: str | None) -> tuple[Account, str]:
        if not email or not password:
            raise UnauthorizedError("Invalid credentials")
        account = await self.store.find_by_email(email)
        if account is None:
            # Burn the same bcrypt cost as a real check so timing does not reveal unknown emails.
            await run_in_threadpool(verify_password, password, await self._get_dummy_hash())
            log.info("login_failed", email=normalize_email(email))
            raise UnauthorizedError("Invalid credentials")
        if not await run_in_threadpool(verify_password, password, account.password_hash):
            log.info("login_failed", email=account.email)
            raise UnauthorizedError("Invalid credentials")
        log.info("user_login", account_id=account.id)
        return account, self.issue_token(account.id)

    def issue_token(self, account_id: str) -> str:
        return create_token(self.secret_key, {"account_id": account_id})

    def verify_token(self, token: str | None) -> str:
        """Return the account id bound to ``token``."""
        if not token:
            raise UnauthorizedError("Not authenticated")
        payload = load_token(self.secret_key, token, self.token_max_age)
        if not payload:
            raise UnauthorizedError("Invalid or expired token")
        account_id = payload.get("account_id")
        if not account_id or not isinstance(account_id, str):
            raise UnauthorizedError("Invalid token")
        return account_id

    async def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await run_in_threadpool(hash_password, "cagnotte-dummy", self.bcrypt_rounds)
        return self._dummy_hash
