from celery import Celery

from propertyhub.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "propertyhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["propertyhub.workers.tasks"],
)
celery_app.conf.update(
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
    task_ignore_result=True,
)
