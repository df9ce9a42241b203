import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.database import async_session, engine
from app.core.exceptions import SubscriptionError, UnavailableError
from app.core.seed import seed_plan_prices
from app.jobs.trial_expiration import TrialExpirationJob
from app.models import clinic, plan_price, subscription_analytics, trial_history, user  # noqa: F401 - register all mappers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting clinic subscriptions API (env=%s)", settings.APP_ENV)
    if settings.SEED_PLAN_PRICES:
        await seed_plan_prices(async_session)

    job = None
    if settings.TRIAL_SWEEP_ENABLED:
        job = TrialExpirationJob(
            async_session,
            hour=settings.TRIAL_SWEEP_HOUR,
            minute=settings.TRIAL_SWEEP_MINUTE,
            tz_name=settings.TRIAL_SWEEP_TIMEZONE,
            warning_days=settings.TRIAL_EXPIRY_WARNING_DAYS,
        )
        job.start()
    app.state.trial_expiration_job = job

    yield

    if job:
        await job.stop()
    await engine.dispose()


app = FastAPI(
    title="Clinic Subscriptions API",
    description="Subscription plans and Pro trial lifecycle for clinics",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(UnavailableError)
async def unavailable_handler(request: Request, exc: UnavailableError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers={"Retry-After": "5"})


@app.exception_handler(SubscriptionError)
async def subscription_error_handler(request: Request, exc: SubscriptionError):
    # Each error class carries its HTTP status (see app.core.exceptions)
    if exc.status_code >= 500:
        logger.error("Unhandled subscription error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "service": "clinic-subscriptions", "version": "0.1.0"}
