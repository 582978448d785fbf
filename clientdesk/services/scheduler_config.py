import logging
import os

from celery.schedules import crontab

from clientdesk.config import settings

logger = logging.getLogger(__name__)


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_value(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = _env_value(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid integer for {name}: {raw!r}")
        return default


def get_celery_config() -> dict:
    return {
        "broker_url": settings.celery_broker_url,
        "result_backend": settings.celery_result_backend,
        "timezone": settings.celery_timezone,
        "task_acks_late": True,
        "worker_prefetch_multiplier": 1,
    }


def build_beat_schedule() -> dict:
    """Beat entries for the billing routines.

    Hours are local to the Celery timezone and can be moved through
    environment variables; a routine is dropped when its *_ENABLED flag is off.
    """
    schedule: dict[str, dict] = {}
    if _env_bool("DAILY_BILLING_ENABLED", True):
        schedule["run_daily_billing"] = {
            "task": "clientdesk.tasks.billing.run_daily_billing",
            "schedule": crontab(hour=_env_int("DAILY_BILLING_HOUR", 6), minute=0),
        }
    if _env_bool("MONTHLY_PAYMENTS_ENABLED", True):
        schedule["process_monthly_payments"] = {
            "task": "clientdesk.tasks.billing.process_monthly_payments",
            "schedule": crontab(hour=_env_int("MONTHLY_PAYMENTS_HOUR", 7), minute=0),
        }
    if _env_bool("CHECK_OVERDUE_ENABLED", True):
        schedule["check_overdue"] = {
            "task": "clientdesk.tasks.billing.check_overdue",
            "schedule": crontab(hour=_env_int("CHECK_OVERDUE_HOUR", 9), minute=0),
        }
    if _env_bool("MATERIALIZE_COSTS_ENABLED", True):
        schedule["materialize_costs"] = {
            "task": "clientdesk.tasks.costs.materialize_costs",
            "schedule": crontab(
                day_of_month=_env_int("MATERIALIZE_COSTS_DAY", 1), hour=3, minute=0
            ),
        }
    if _env_bool("NOTIFICATION_CLEANUP_ENABLED", True):
        schedule["clean_old_notifications"] = {
            "task": "clientdesk.tasks.notifications.clean_old_notifications",
            "schedule": crontab(hour=2, minute=30),
        }
    return schedule
