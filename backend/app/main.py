"""
Estrutura API
FastAPI backend for structural drawing extraction and NBR 6118 compliance
analysis: async PostgreSQL via SQLAlchemy, Celery workers for OCR/PDF
extraction and analyses, Tesseract for scanned drawings.
"""
import os
import time
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load .env before app.config reads the environment
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import config
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_FORMAT != "text")
logger = logging.getLogger("estrutura-api")

_PROCESS_START = time.monotonic()

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL, running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db import init_db
    from app.services.ocr_service import TesseractRecognizer

    await init_db()
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)

    # Initialised lazily on the first recognition, so a missing tesseract
    # binary only fails image jobs and not the whole API.
    app.state.recognizer = TesseractRecognizer()

    yield

    await app.state.recognizer.terminate()


app = FastAPI(
    title="Estrutura API",
    version="1.0.0",
    description="Structural drawing extraction and NBR 6118 compliance analysis",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

from app.api.project_routes import router as project_router
from app.api.file_routes import router as file_router
from app.api.analysis_routes import router as analysis_router

app.include_router(project_router)
app.include_router(file_router)
app.include_router(analysis_router)


@app.get("/health")
async def health_check():
    recognizer = getattr(app.state, "recognizer", None)
    return {
        "status": "active",
        "version": app.version,
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        "db_configured": bool(os.getenv("DATABASE_URL")),
        "task_dispatch": config.TASK_DISPATCH,
        "ocr": recognizer.progress() if recognizer is not None else None,
    }
