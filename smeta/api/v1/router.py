from fastapi import APIRouter

from smeta.api.v1.endpoints import estimates

api_router = APIRouter()

api_router.include_router(estimates.router, prefix="/estimates", tags=["Estimates"])

__all__ = ["api_router"]
