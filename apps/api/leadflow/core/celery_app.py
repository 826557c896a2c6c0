from celery import Celery

from leadflow.core.config import get_settings

settings = get_settings()

celery_app = Celery("leadflow_api", broker=settings.redis_url, backend=settings.redis_url)


@celery_app.task(name="leadflow.reminders.dispatch_for_user")
def dispatch_reminders_task(user_id: str) -> int:
    from leadflow.notifications.session import build_dispatcher

    return build_dispatcher().run_reminder_tick(user_id)
