from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from app.core.exceptions import AppError
from app.deps import get_services
from app.services.container import Services
from app.services.rewards import parse_payout

router = APIRouter()


async def _read_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    return {}


@router.post("/kiwiwall-callback", response_class=PlainTextResponse)
async def kiwiwall_callback(request: Request, services: Services = Depends(get_services)):
    """Kiwiwall postback: shared-secret auth, credits by subject. Plain-text contract."""
    callback = parse_payout(request.query_params, await _read_body(request))
    try:
        await services.rewards.handle_payout_callback(callback.secret, callback.subject, callback.amount)
    except AppError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    return PlainTextResponse("OK")
