"""
Unit tests for scheduler (snapkeeper/scheduler.py).

Tests APScheduler configuration and retention scheduling.
"""

from unittest.mock import MagicMock, patch

import pytest

from snapkeeper import scheduler as scheduler_module


class TestSchedulerInitialization:
    """Test scheduler initialization."""

    def teardown_method(self):
        """Reset global scheduler state."""
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None

    @patch('snapkeeper.scheduler.BackgroundScheduler')
    def test_init_scheduler(self, mock_scheduler_class, app):
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler

        result = scheduler_module.init_scheduler(app)

        assert result == mock_scheduler
        assert scheduler_module.scheduler == mock_scheduler
        assert scheduler_module.flask_app == app

        call_kwargs = mock_scheduler_class.call_args[1]
        assert 'jobstores' in call_kwargs
        assert 'executors' in call_kwargs
        assert call_kwargs['job_defaults']['max_instances'] == 1
        assert call_kwargs['timezone'] == 'UTC'

        add_kwargs = mock_scheduler.add_job.call_args[1]
        assert add_kwargs['id'] == scheduler_module.RETENTION_JOB_ID

    @patch('snapkeeper.scheduler.BackgroundScheduler')
    def test_init_scheduler_only_once(self, mock_scheduler_class, app):
        mock_scheduler_class.return_value = MagicMock()

        result1 = scheduler_module.init_scheduler(app)
        result2 = scheduler_module.init_scheduler(app)

        assert result1 is result2
        mock_scheduler_class.assert_called_once()

    def test_init_scheduler_uses_retention_cron(self, app):
        """Test the cron expression from config drives the retention job."""
        app.config['RETENTION_CRON'] = '30 4 * * *'

        sched = scheduler_module.init_scheduler(app)
        job = sched.get_job(scheduler_module.RETENTION_JOB_ID)

        assert job is not None
        assert "hour='4'" in str(job.trigger)
        assert "minute='30'" in str(job.trigger)

    def test_init_scheduler_rejects_bad_cron(self, app):
        app.config['RETENTION_CRON'] = 'not a cron'

        with pytest.raises(ValueError):
            scheduler_module.init_scheduler(app)


class TestSchedulerLifecycle:
    """Test start/stop and status helpers."""

    def teardown_method(self):
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None

    def test_start_without_init_raises(self):
        with pytest.raises(RuntimeError):
            scheduler_module.start_scheduler()

    def test_start_and_stop(self, mock_scheduler_instance):
        scheduler_module.start_scheduler()
        mock_scheduler_instance.start.assert_called_once()

        mock_scheduler_instance.running = True
        scheduler_module.stop_scheduler()
        mock_scheduler_instance.shutdown.assert_called_once()

    def test_start_when_running_does_not_restart(self, mock_scheduler_instance):
        mock_scheduler_instance.running = True

        scheduler_module.start_scheduler()

        mock_scheduler_instance.start.assert_not_called()

    def test_is_scheduler_running(self, mock_scheduler_instance):
        assert scheduler_module.is_scheduler_running() is False

        mock_scheduler_instance.running = True
        assert scheduler_module.is_scheduler_running() is True

    def test_is_scheduler_running_not_initialized(self):
        assert scheduler_module.is_scheduler_running() is False

    def test_get_scheduled_jobs_not_initialized(self):
        assert scheduler_module.get_scheduled_jobs() == []

    def test_get_scheduled_jobs(self, mock_scheduler_instance):
        job = MagicMock()
        job.id = 'retention_cleanup'
        job.name = 'Retention Cleanup'
        job.next_run_time = None
        job.trigger = 'cron[hour=2]'
        mock_scheduler_instance.get_jobs.return_value = [job]

        jobs = scheduler_module.get_scheduled_jobs()

        assert jobs == [{
            'id': 'retention_cleanup',
            'name': 'Retention Cleanup',
            'next_run': None,
            'trigger': 'cron[hour=2]'
        }]


class TestRetentionTriggers:
    """Test running retention from the scheduler."""

    def teardown_method(self):
        scheduler_module.scheduler = None
        scheduler_module.flask_app = None

    def test_trigger_retention_now_without_init_raises(self):
        with pytest.raises(RuntimeError):
            scheduler_module.trigger_retention_now()

    def test_trigger_retention_now_adds_one_shot_job(self, mock_scheduler_instance):
        scheduler_module.trigger_retention_now()

        add_kwargs = mock_scheduler_instance.add_job.call_args[1]
        assert add_kwargs['id'].startswith('manual_retention_')
        assert add_kwargs['replace_existing'] is False

    @patch('snapkeeper.scheduler.enforce_retention_policies')
    def test_wrapper_runs_retention_in_app_context(self, mock_enforce, app):
        mock_enforce.return_value = {'deleted': 0, 'errors': []}
        scheduler_module.flask_app = app

        scheduler_module._enforce_retention_wrapper()

        mock_enforce.assert_called_once_with(app)

    @patch('snapkeeper.scheduler.enforce_retention_policies')
    def test_wrapper_logs_errors_without_raising(self, mock_enforce, app, caplog):
        mock_enforce.side_effect = RuntimeError("boom")
        scheduler_module.flask_app = app

        scheduler_module._enforce_retention_wrapper()

        assert 'Retention run failed: boom' in caplog.text


@pytest.fixture
def mock_scheduler_instance():
    """Install a MagicMock as the global scheduler."""
    instance = MagicMock()
    instance.running = False
    instance.state = 0
    instance.get_jobs.return_value = []
    scheduler_module.scheduler = instance
    yield instance
    scheduler_module.scheduler = None
