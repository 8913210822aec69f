"""API v1 package."""

from fastapi import APIRouter

from jetpass.api.v1.auth import router as auth_router

api_router = APIRouter()
api_router.include_router(auth_router)
