from fastapi import APIRouter, Depends

from app.core.exceptions import NotFoundError
from app.deps import get_current_account_id, get_services
from app.services.container import Services

router = APIRouter()


@router.get("/balance")
async def balance(
    account_id: str = Depends(get_current_account_id),
    services: Services = Depends(get_services),
):
    """Return current cagnotte and whether a withdrawal is possible."""
    account = await services.store.find_by_id(account_id)
    if account is None:
        raise NotFoundError("Account not found")
    return {
        "email": account.email,
        "balance": account.balance,
        "canWithdraw": services.withdrawals.can_withdraw(account.balance),
    }


@router.post("/watch-ad")
async def watch_ad(
    account_id: str = Depends(get_current_account_id),
    services: Services = Depends(get_services),
):
    """Credit one ad view."""
    new_balance = await services.rewards.watch_ad(account_id)
    return {
        "balance": new_balance,
        "increment": services.rewards.watch_ad_increment,
        "canWithdraw": services.withdrawals.can_withdraw(new_balance),
    }


@router.post("/withdraw")
async def withdraw(
    account_id: str = Depends(get_current_account_id),
    services: Services = Depends(get_services),
):
    new_balance = await services.withdrawals.withdraw(account_id)
    return {
        "balance": new_balance,
        "withdrawn": services.withdrawals.min_withdraw,
        "canWithdraw": services.withdrawals.can_withdraw(new_balance),
    }
