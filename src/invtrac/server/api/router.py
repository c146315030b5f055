"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from invtrac.server.api import auth, health, user_data

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(auth.router)
router.include_router(user_data.router)
