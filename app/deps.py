"""Shared FastAPI dependencies."""

from fastapi import Depends, Request

from app.core.exceptions import UnauthorizedError
from app.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Invalid authorization header")
    return token.strip()


async def get_current_account_id(
    request: Request,
    services: Services = Depends(get_services),
) -> str:
    """Dependency: verify the bearer token and return the account id it binds."""
    return services.authenticator.verify_token(bearer_token(request))
