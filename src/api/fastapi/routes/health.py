from fastapi import APIRouter

from src.core.config import settings
from src.models.schemas.responses import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", app_name=settings.app_name)
