from fastapi import APIRouter

from sublet_ingest.api.routes import admin, health, webhook

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(webhook.router, prefix="/webhook", tags=["ingest"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
