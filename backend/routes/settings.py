"""Health check, settings, and LLM connection check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter

from backend import config
from emberfall.llm import HttpLLM

from .models import CheckConnectionBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Quick health check against an LLM provider URL."""
    llm = HttpLLM(body.provider_url, api_key=body.api_key, provider_format=body.provider_format)
    return {"ok": await llm.check_connection()}


@router.get("/settings")
async def get_settings():
    """Service settings (oracle mode, LLM connection, autosave)."""
    return config.get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update service settings (partial merge)."""
    return config.update_config(body)
