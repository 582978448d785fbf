from clientdesk.services import scheduler_config


def test_default_beat_schedule(monkeypatch):
    for name in (
        "DAILY_BILLING_ENABLED",
        "DAILY_BILLING_HOUR",
        "MONTHLY_PAYMENTS_ENABLED",
        "CHECK_OVERDUE_ENABLED",
        "MATERIALIZE_COSTS_ENABLED",
        "NOTIFICATION_CLEANUP_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)

    schedule = scheduler_config.build_beat_schedule()

    assert set(schedule) == {
        "run_daily_billing",
        "process_monthly_payments",
        "check_overdue",
        "materialize_costs",
        "clean_old_notifications",
    }
    assert schedule["check_overdue"]["task"] == "clientdesk.tasks.billing.check_overdue"
    assert schedule["materialize_costs"]["task"] == "clientdesk.tasks.costs.materialize_costs"
    assert schedule["run_daily_billing"]["schedule"].hour == {6}


def test_disabled_entry_is_dropped(monkeypatch):
    monkeypatch.setenv("CHECK_OVERDUE_ENABLED", "false")
    schedule = scheduler_config.build_beat_schedule()
    assert "check_overdue" not in schedule
    assert "run_daily_billing" in schedule


def test_hour_override_and_invalid_value(monkeypatch):
    monkeypatch.setenv("DAILY_BILLING_HOUR", "4")
    monkeypatch.setenv("MONTHLY_PAYMENTS_HOUR", "cedo")
    schedule = scheduler_config.build_beat_schedule()
    assert schedule["run_daily_billing"]["schedule"].hour == {4}
    assert schedule["process_monthly_payments"]["schedule"].hour == {7}


def test_empty_env_values_use_defaults(monkeypatch):
    monkeypatch.setenv("DAILY_BILLING_ENABLED", "")
    assert scheduler_config._env_bool("DAILY_BILLING_ENABLED", True) is True
    assert scheduler_config._env_int("DAILY_BILLING_HOUR_UNSET", 6) == 6


def test_celery_config():
    config = scheduler_config.get_celery_config()
    assert config["broker_url"] == scheduler_config.settings.celery_broker_url
    assert config["task_acks_late"] is True
    assert config["worker_prefetch_multiplier"] == 1
