"""Tests for Celery tasks."""

from unittest.mock import MagicMock, patch

import pytest


class TestBillingTasks:
    """Tests for the billing tasks."""

    @pytest.mark.parametrize(
        "task_name", ["run_daily_billing", "process_monthly_payments", "check_overdue"]
    )
    def test_task_runs_job_and_closes_session(self, task_name):
        mock_session = MagicMock()
        outcome = {"organizations": 1, "results": [{}], "errors": []}

        with patch("clientdesk.tasks.billing.SessionLocal", return_value=mock_session):
            with patch(
                f"clientdesk.tasks.billing.jobs_service.{task_name}", return_value=outcome
            ) as mock_run:
                from clientdesk.tasks import billing as billing_tasks

                result = getattr(billing_tasks, task_name)()

                assert result == outcome
                mock_run.assert_called_once_with(mock_session)
                mock_session.close.assert_called_once()
                mock_session.rollback.assert_not_called()

    def test_task_exception_rolls_back(self):
        mock_session = MagicMock()

        with patch("clientdesk.tasks.billing.SessionLocal", return_value=mock_session):
            with patch(
                "clientdesk.tasks.billing.jobs_service.run_daily_billing",
                side_effect=Exception("Billing error"),
            ):
                from clientdesk.tasks.billing import run_daily_billing

                with pytest.raises(Exception, match="Billing error"):
                    run_daily_billing()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


class TestCostTasks:
    """Tests for costs.materialize_costs task."""

    def test_materialize_costs_success(self):
        mock_session = MagicMock()

        with patch("clientdesk.tasks.costs.SessionLocal", return_value=mock_session):
            with patch(
                "clientdesk.tasks.costs.jobs_service.materialize_costs",
                return_value={"organizations": 0, "results": [], "errors": []},
            ) as mock_run:
                from clientdesk.tasks.costs import materialize_costs

                materialize_costs()

                mock_run.assert_called_once_with(mock_session)
                mock_session.close.assert_called_once()

    def test_materialize_costs_exception_rollback(self):
        mock_session = MagicMock()

        with patch("clientdesk.tasks.costs.SessionLocal", return_value=mock_session):
            with patch(
                "clientdesk.tasks.costs.jobs_service.materialize_costs",
                side_effect=RuntimeError("db down"),
            ):
                from clientdesk.tasks.costs import materialize_costs

                with pytest.raises(RuntimeError):
                    materialize_costs()

                mock_session.rollback.assert_called_once()
                mock_session.close.assert_called_once()


class TestNotificationTasks:
    """Tests for notifications.clean_old_notifications task."""

    def test_clean_old_notifications(self):
        mock_session = MagicMock()

        with patch("clientdesk.tasks.notifications.SessionLocal", return_value=mock_session):
            with patch(
                "clientdesk.tasks.notifications.notifications.clean_old_notifications",
                return_value=4,
            ) as mock_clean:
                from clientdesk.tasks.notifications import clean_old_notifications

                assert clean_old_notifications() == 4
                mock_clean.assert_called_once_with(mock_session)
                mock_session.close.assert_called_once()
