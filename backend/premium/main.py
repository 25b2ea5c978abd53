import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from premium.core.config import settings
from premium.core.database import init_db
from premium.routers import memberships, payments
from premium.services.paystack import PaystackClient

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Payments", "description": "Start and confirm premium payments, provider webhooks."},
    {"name": "Memberships", "description": "Read the signed-in member's subscription tier."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_db()
    if not settings.paystack_secret_key:
        logger.warning("PAYSTACK_SECRET_KEY is not set; payment calls will be rejected")
    client = PaystackClient.from_settings(settings)
    app.state.paystack = client
    try:
        yield
    finally:
        client.close()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description="Premium membership payments: checkout, verification and provider webhooks.",
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payments.router, prefix="/v1/payments", tags=["Payments"])
app.include_router(memberships.router, prefix="/v1/memberships", tags=["Memberships"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
