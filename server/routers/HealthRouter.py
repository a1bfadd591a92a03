import os

from fastapi import APIRouter

from server.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> HealthResponse:
    """Liveness probe. Does not touch any backend."""
    return HealthResponse(status="ok", version=os.getenv("APP_VERSION", "unknown"))
