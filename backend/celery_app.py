"""Celery application configuration for asynchronous alert processing."""

import os

from celery import Celery
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Tasks are registered via @celery_app.task decorators in the included modules
celery_app = Celery(
    "email_alert_tasks",
    broker=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
    backend=os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
    include=["tasks.email_alert_tasks"],
)

# SQLAlchemy manages its own connection pool; workers need no pool setup.

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes hard limit per batch
    task_soft_time_limit=540,
    result_expires=3600,  # Keep results for 1 hour
    # Messages of one source must be handled sequentially; one task at a time per worker process
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)
