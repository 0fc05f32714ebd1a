"""Health check endpoint for the MailMate API."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from mailmate.config import APP_VERSION, GEMINI_MODEL

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint.

    Returns service status, version, and credential readiness for
    Vertex AI / Gemini (does not make an API call, only checks presence).
    """
    has_project = bool(os.getenv("GOOGLE_CLOUD_PROJECT"))

    return {
        "status": "healthy",
        "service": "MailMate API",
        "version": APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "llm": {
            "ready": has_project,
            "model": GEMINI_MODEL,
            "google_cloud_project": has_project,
        },
    }
