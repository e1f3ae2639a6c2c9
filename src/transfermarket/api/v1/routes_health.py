"""Health check endpoint for the Transfer Market NLQ service."""

from fastapi import APIRouter

from transfermarket.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns service status, name, version and the configured store backend.
    Does not touch the store or the model backend.
    """
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "store_backend": settings.STORE_BACKEND,
    }
