"""
Mid-Year Reporting API - FastAPI backend for the grant reporting portal
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from portal import __version__
from portal.database import dispose_engine
from portal.security import setup_security
from portal.services.language_service import get_language_service

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

from portal.routers import (  # noqa: E402
    allocations,
    applications,
    auth,
    health,
    languages,
    reports,
)
from portal.routers.admin import router as admin_router  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Load the language dataset up front so the first search is not slow
    get_language_service()
    logger.info("Mid-year reporting API started (version %s)", __version__)
    yield
    await dispose_engine()
    logger.info("Mid-year reporting API stopped")


# Initialize FastAPI app
app = FastAPI(
    title="Mid-Year Reporting API",
    description="Grant mid-year narrative and financial allocation reporting",
    version=__version__,
    lifespan=lifespan,
)

# =============================================================================
# CORS Configuration
# =============================================================================

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

if ENVIRONMENT == "production":
    default_origins = ""
else:
    default_origins = "http://localhost:3000,http://localhost:5173"

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", default_origins).split(",")
    if origin.strip()
]

if ENVIRONMENT == "production":
    # Production: HTTPS origins only
    rejected = [o for o in ALLOWED_ORIGINS if not o.startswith("https://")]
    for origin in rejected:
        logger.warning("[CORS] Ignoring non-HTTPS origin in production: %s", origin)
    ALLOWED_ORIGINS = [o for o in ALLOWED_ORIGINS if o.startswith("https://")]

if not ALLOWED_ORIGINS:
    raise ValueError("CORS configuration error: No valid allowed origins configured")

logger.info("[CORS] Allowed origins: %s", ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

# =============================================================================
# Security Middleware Setup
# =============================================================================
# Must be called after the CORS middleware is added
setup_security(app, ALLOWED_ORIGINS)

# =============================================================================
# Routers
# =============================================================================

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(applications.router)
app.include_router(reports.router)
app.include_router(allocations.router)
app.include_router(languages.router)
app.include_router(admin_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
