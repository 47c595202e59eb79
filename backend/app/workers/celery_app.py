"""
Celery Application — background processing for the structural extraction service.
Handles the slow work: PDF/OCR extraction of uploaded drawings and NBR 6118
compliance analyses, so request handlers return immediately.
"""
from celery import Celery

from app import config

celery_app = Celery(
    "estrutura",
    broker=config.CELERY_BROKER_URL,
    backend=config.CELERY_RESULT_BACKEND,
    include=["app.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Sao_Paulo",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_soft_time_limit=300,   # 5 minutes soft limit
    task_time_limit=600,        # 10 minutes hard limit
    result_expires=3600,
)
