"""
API Version 1 Router
Aggregates all domain routers under the /api/v1 prefix.
"""
from fastapi import APIRouter

from coursehub.api.routes import admin, feature_flags

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(feature_flags.router, tags=["Feature Flags"])
v1_router.include_router(admin.router, tags=["Admin"])
