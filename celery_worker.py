import os
from celery import Celery
from dotenv import load_dotenv
from logging_config import setup_logging

# --- CELERY WORKER INITIALIZATION ---

# 1. Load environment variables. This MUST happen before anything else.
load_dotenv()
setup_logging()

# 2. Create the Celery app instance. Firestore is initialized lazily by
# dependencies.get_db() inside each forked worker.
celery_app = Celery('tasks',
                    broker=os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0'),
                    include=['tasks']) # This tells Celery to look for tasks in tasks.py

celery_app.conf.update(
    task_track_started=True,
    task_serializer='json',
    accept_content=['json'],
    # Balance writes are idempotent, so redelivery after a crash is safe.
    task_acks_late=True
)
