"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import ai

router = APIRouter()

# AI project manager: chat turns, conversations, settings and usage
router.include_router(ai.router, prefix="/ai", tags=["ai"])
