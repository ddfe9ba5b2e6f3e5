import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import config, models  # noqa: F401
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.billing.router import router as stripe_router
from .domain.billing.router import subscriptions_router
from .domain.catalog.router import router as catalog_router
from .domain.team.router import profile_router as team_profile_router
from .domain.team.router import router as team_router
from .domain.usage.router import router as usage_router
from .domain.workspaces.router import auth_router as workspace_auth_router
from .domain.workspaces.router import public_router as workspace_public_router
from .domain.workspaces.router import router as workspace_router
from .rate_limiter import get_redis_client
from .security_headers import SecurityHeadersMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Request-level logs from the HTTP clients are noise
for noisy in ("httpx", "httpcore"):
    logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Rzev API starting")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Database schema ready")
    except SQLAlchemyError as e:
        # Parallel workers race on CREATE TABLE
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("ℹ️ Schema created by another worker")
        else:
            logger.error(f"❌ Could not create tables: {e}")

    if config.RATE_LIMIT_ENABLED and get_redis_client() is None:
        logger.warning("⚠️ Rate limiting without Redis, counts are per process")

    yield
    logger.info("👋 Rzev API stopped")


app = FastAPI(title="Rzev API", version="1.0.0", lifespan=lifespan)


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raised ValueError
    return [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_errors(exc)
    logger.warning(f"⚠️ {request.method} {request.url.path} rejected: {errors}")
    return JSONResponse(status_code=422, content={"detail": errors})


@app.middleware("http")
async def log_unhandled_errors(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"❌ {request.method} {request.url.path} failed: {e}")
        raise


if config.SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
else:
    logger.warning("⚠️ Security headers are off")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

for api_router in (
    workspace_auth_router,
    workspace_public_router,
    workspace_router,
    team_router,
    team_profile_router,
    catalog_router,
    appointments_router,
    usage_router,
    subscriptions_router,
    stripe_router,
):
    app.include_router(api_router)


@app.get("/")
def root():
    return {"message": "Rzev API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
