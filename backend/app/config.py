"""
Service configuration — single source of truth for environment-driven settings.

Import from here in services and workers rather than calling os.getenv directly.
"""
from __future__ import annotations

import os

# ── Storage ────────────────────────────────────────────────────────────────────
UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))  # 10 MB

# ── Optical recognizer (Tesseract) ────────────────────────────────────────────
OCR_LANGUAGE: str = os.getenv("OCR_LANGUAGE", "por")
OCR_CONFIDENCE_THRESHOLD: float = float(os.getenv("OCR_CONFIDENCE_THRESHOLD", "0.7"))
OCR_MAX_RETRIES: int = int(os.getenv("OCR_MAX_RETRIES", "3"))
OCR_RETRY_BACKOFF_SECONDS: float = float(os.getenv("OCR_RETRY_BACKOFF_SECONDS", "1.0"))
OCR_TIMEOUT_SECONDS: float = float(os.getenv("OCR_TIMEOUT_SECONDS", "30"))
OCR_TESSERACT_CONFIG: str = os.getenv("OCR_TESSERACT_CONFIG", "--psm 6")

# ── Background workers ─────────────────────────────────────────────────────────
CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
# "celery" sends jobs to the broker (in-process fallback when it is down);
# "inline" always runs them as FastAPI background tasks.
TASK_DISPATCH: str = os.getenv("TASK_DISPATCH", "celery").lower()

# ── Element defaults applied at persistence ───────────────────────────────────
DEFAULT_CONCRETE_FCK_MPA: float = 25.0
DEFAULT_STEEL_WEIGHT_KG: float = 0.0

# ── API ────────────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]
