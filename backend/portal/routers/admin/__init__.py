"""Admin router package -- aggregates all admin sub-routers."""

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1", tags=["admin"])

from .stats import router as stats_router
from .reports import router as reports_router
from .users import router as users_router
from .exports import router as exports_router

router.include_router(stats_router)
router.include_router(reports_router)
router.include_router(users_router)
router.include_router(exports_router)
