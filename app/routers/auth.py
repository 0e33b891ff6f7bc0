from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.deps import get_services
from app.services.accounts import Account
from app.services.container import Services

router = APIRouter()


class CredentialsRequest(BaseModel):
    email: str | None = None
    password: str | None = None


def _session_body(account: Account, token: str) -> dict:
    return {"token": token, "user": {"email": account.email, "balance": account.balance}}


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(body: CredentialsRequest, services: Services = Depends(get_services)):
    """Create an account with a zero balance and return a bearer token."""
    account, token = await services.authenticator.signup(body.email, body.password)
    return _session_body(account, token)


@router.post("/login")
async def login(body: CredentialsRequest, services: Services = Depends(get_services)):
    account, token = await services.authenticator.login(body.email, body.password)
    return _session_body(account, token)
