# sehat_rakshak/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sehat_rakshak.api.v1.router import api_router
from sehat_rakshak.core.config import get_settings
from sehat_rakshak.notifications.email.base import EmailProviderConfig
from sehat_rakshak.services.assistant_service import AssistantConfig

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing providers are allowed; say so once instead of on every request.
    if not EmailProviderConfig.from_settings(settings).is_configured:
        logger.warning("Email provider not configured. Prescription emails will be skipped.")
    if not AssistantConfig.from_settings(settings).is_configured:
        logger.warning("OPENAI_API_KEY not set. AI assistant will answer with a not-configured message.")
    logger.info("%s backend started (env=%s)", settings.app_name, settings.app_env)
    yield


app = FastAPI(
    title=f"{settings.app_name} Backend",
    lifespan=lifespan,
)


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


app.include_router(api_router, prefix=settings.api_v1_prefix)
