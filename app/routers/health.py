"""Health check endpoint reporting whether the upstream key is configured."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.dependencies import get_api_key
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz(api_key: Annotated[str, Depends(get_api_key)]) -> HealthResponse:
    """Report liveness.

    Always 200: a missing key is a readiness problem for ``/api/chat``, not a
    reason to restart the process.
    """
    return HealthResponse(status="ok", api_key_configured=bool(api_key))
