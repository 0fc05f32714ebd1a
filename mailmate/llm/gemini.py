"""
Gemini Model Manager - shared model instance for the semantic classifier.

Uses the Vertex AI SDK (GOOGLE_CLOUD_PROJECT + service account credentials).
The instance is created lazily on first use and reused across requests.
"""

from __future__ import annotations

from functools import lru_cache

from mailmate.config import GEMINI_LOCATION, GEMINI_MODEL, GOOGLE_CLOUD_PROJECT
from mailmate.observability.logging import get_logger

logger = get_logger(__name__)


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


@lru_cache(maxsize=1)
def get_gemini_model():
    """
    Get or create shared Gemini model instance.

    Returns:
        GenerativeModel: Shared Gemini model

    Raises:
        GeminiInitializationError: If model cannot be initialized
    """
    if not GOOGLE_CLOUD_PROJECT:
        raise GeminiInitializationError("GOOGLE_CLOUD_PROJECT not set")

    try:
        import vertexai
        from vertexai.generative_models import GenerationConfig, GenerativeModel

        vertexai.init(project=GOOGLE_CLOUD_PROJECT, location=GEMINI_LOCATION)
        model = GenerativeModel(
            GEMINI_MODEL,
            generation_config=GenerationConfig(
                temperature=0.0,
                response_mime_type="application/json",
            ),
        )
    except Exception as e:
        logger.error("Failed to initialize Gemini model: %s", e)
        raise GeminiInitializationError(f"Failed to initialize Gemini: {e}") from e

    logger.info(
        "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
        GOOGLE_CLOUD_PROJECT,
        GEMINI_LOCATION,
        GEMINI_MODEL,
    )
    return model


def clear_model_cache() -> None:
    """
    Clear the cached model instance.

    Useful for testing or when reconfiguration is needed.
    """
    get_gemini_model.cache_clear()
    logger.info("Cleared Gemini model cache")
