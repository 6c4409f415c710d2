"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from qaflow.api.admin import router as admin_router
from qaflow.api.health import router as health_router
from qaflow.api.manager import router as manager_router
from qaflow.api.records import router as records_router
from qaflow.api.reviews import router as reviews_router
from qaflow.api.uploads import router as uploads_router
from qaflow.api.users import router as users_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(uploads_router)
api_router.include_router(records_router)
api_router.include_router(manager_router)
api_router.include_router(reviews_router)
api_router.include_router(users_router)
api_router.include_router(admin_router)
