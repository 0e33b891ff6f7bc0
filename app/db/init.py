import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import Settings, get_settings
from app.core.logging import get_logger
from app.models.user import User

log = get_logger(__name__)

DOCUMENT_MODELS = [
    User,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db(settings: Settings | None = None) -> AsyncIOMotorClient:
    """Connect, register documents and build indexes. Caller owns the returned client."""
    settings = settings or get_settings()
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    log.info("db_connected", db=settings.mongodb_db_name)
    return client


def close_db(client: AsyncIOMotorClient) -> None:
    client.close()
    log.info("db_closed")
