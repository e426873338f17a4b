from fastapi import APIRouter

from queue_monitor.api.monitors import router as monitors_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(monitors_router, prefix="/api", tags=["monitors"])
