"""API v1 router."""

from fastapi import APIRouter

from invopt.api.v1.endpoints import health, optimizations, worker

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(optimizations.router, prefix="/optimizations", tags=["optimizations"])
api_router.include_router(worker.router, prefix="/worker", tags=["worker"])
