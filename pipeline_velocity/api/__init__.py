"""
API package initialization.

Router modules:
- velocity: metrics, fact pack, load analysis, insights, citation
  validation and draft messages under /velocity
"""

from fastapi import APIRouter

from pipeline_velocity.api.velocity import router as velocity_router

api_router = APIRouter()

api_router.include_router(velocity_router, tags=["velocity"])  # router has its own /velocity prefix

__all__ = [
    "api_router",
    "velocity_router",
]
