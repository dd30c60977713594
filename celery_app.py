import os
from celery import Celery

celery = Celery(
    "pirate_radio_worker",
    broker=os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
    backend=os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1"),
    include=["tasks"],
)

celery.conf.task_routes = {
    "tasks.process_song": {"queue": "songs"},
    "tasks.delete_song": {"queue": "songs"},
}
