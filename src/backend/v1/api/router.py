"""v1 API: mounts the ops panel endpoints under /api/v1."""

from fastapi import APIRouter

from src.backend.v1.api.ops_router import ops_router

app_v1 = APIRouter(
    prefix="/api/v1",
    responses={404: {"description": "Not found"}},
)

app_v1.include_router(ops_router)
