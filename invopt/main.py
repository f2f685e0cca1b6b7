"""Main FastAPI application."""

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from invopt import __version__
from invopt.api.deps import get_db
from invopt.api.v1 import api_router
from invopt.api.v1.endpoints.health import check_database, check_redis
from invopt.config import settings
from invopt.db.handle import Database

app = FastAPI(
    title="Inventory Optimization Service",
    description="Queued EOQ / reorder point / safety stock optimization over the item catalog",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/v1")


@app.get("/health")
def health_check(db: Database = Depends(get_db)):
    """Readiness check: database and Redis."""
    db_status = check_database(db)
    redis_status = check_redis(settings.redis_url)
    overall_status = "ok" if db_status == "connected" and redis_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "db": db_status,
        "redis": redis_status,
        "environment": settings.environment,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "invopt.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
