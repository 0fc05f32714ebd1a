"""Centralized configuration for the MailMate pipeline.

Typed constants for the pipeline, LLM, budget and API settings. Environment
variable overrides use safe defaults so the app starts without extra env
configuration. A `.env` file in the working directory is loaded on import.
"""

from __future__ import annotations

import os

from dotenv import find_dotenv, load_dotenv

# Populate os.environ from the working directory .env before any constant is read
load_dotenv(find_dotenv(usecwd=True))

# --- App ---
APP_VERSION: str = "1.0.0"
ENV: str = os.getenv("MAILMATE_ENV", "development")
LOG_LEVEL: str = os.getenv("MAILMATE_LOG_LEVEL", "INFO")

# --- Candidate pool ---
# Classification yield is well below 100%, so pools are widened to this floor.
POOL_FLOOR: int = int(os.getenv("MAILMATE_POOL_FLOOR", "100"))
FINANCIAL_CATEGORIZED_POOL: int = int(os.getenv("MAILMATE_FINANCIAL_POOL", "200"))
DEFAULT_SCOPE: str = "in:inbox"
LIST_PAGE_MAX: int = 100  # Gmail caps messages.list pages at 500; keep pages small

# --- Request defaults ---
DEFAULT_FILTER_COUNT: int = 20
DEFAULT_SMART_FILTER_COUNT: int = 10
DEFAULT_CATEGORIZED_COUNT: int = 50
MAX_DESIRED_COUNT: int = 500
MAX_BATCH_SIZE: int = 100

# --- Latency budgets (seconds) ---
FILTER_TIMEOUT_SECONDS: float = float(os.getenv("MAILMATE_FILTER_TIMEOUT", "120"))
DEFAULT_TIMEOUT_SECONDS: float = float(os.getenv("MAILMATE_DEFAULT_TIMEOUT", "30"))

# --- Insights ---
INSIGHTS_DEFAULT_DAYS: int = 7
INSIGHTS_POOL_SIZE: int = 50
INSIGHTS_SAMPLE_SIZE: int = 10

# --- Scoring thresholds ---
URGENT_PRIORITY_THRESHOLD: int = 8
MEDIUM_PRIORITY_THRESHOLD: int = 5

# --- LLM ---
GOOGLE_CLOUD_PROJECT: str | None = os.getenv("GOOGLE_CLOUD_PROJECT")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-001")
GEMINI_LOCATION: str = os.getenv("GEMINI_LOCATION", "us-central1")
LLM_TIMEOUT_SECONDS: int = int(os.getenv("MAILMATE_LLM_TIMEOUT", "30"))
LLM_MAX_WORKERS: int = int(os.getenv("MAILMATE_LLM_MAX_WORKERS", "4"))

# --- LLM Budget ---
LLM_USER_DAILY_LIMIT: int = int(os.getenv("MAILMATE_LLM_USER_DAILY_LIMIT", "500"))
LLM_GLOBAL_DAILY_LIMIT: int = int(os.getenv("MAILMATE_LLM_GLOBAL_DAILY_LIMIT", "10000"))

# --- Gmail ---
GMAIL_TOKEN_URI: str = "https://oauth2.googleapis.com/token"


def is_production() -> bool:
    """Check if running in production"""
    return os.getenv("MAILMATE_ENV", ENV) == "production"


def is_development() -> bool:
    """Check if running in development (internal error detail is exposed)"""
    return os.getenv("MAILMATE_ENV", ENV) == "development"
