# cinema_api/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from cinema_api.core.config import get_settings
from cinema_api.core.oauth import OAuthProviderRegistry
from cinema_api.core.rate_limiter import RateLimiter
from cinema_api.database import create_db_and_tables

# Routers
from cinema_api.routers.auth import router as auth_router
from cinema_api.routers.password_reset import router as password_reset_router
from cinema_api.routers.email_verification import router as email_verification_router
from cinema_api.routers.oauth import router as oauth_router
from cinema_api.routers.users import router as users_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.
    """
    logger.info("Startup: connecting to the database...")
    try:
        await create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error("Startup: DB connection FAILED: %s", e)
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Process-wide state. Each worker process has its own rate-limit counters.
# OAuth adapters register themselves on app.state.oauth_providers.
app.state.rate_limiter = RateLimiter()
app.state.oauth_providers = OAuthProviderRegistry()


# --- CORS configuration ---
# Credentials are needed for the session cookie.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(auth_router, prefix=settings.API_V1_STR)
app.include_router(password_reset_router, prefix=settings.API_V1_STR)
app.include_router(email_verification_router, prefix=settings.API_V1_STR)
app.include_router(oauth_router, prefix=settings.API_V1_STR)
app.include_router(users_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "cinema-api"}
