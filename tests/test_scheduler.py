"""
Tests for the interval scheduler wrapper.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from conflictradar.orchestrator import SCHEDULED_LABEL, Orchestrator
from conflictradar.scheduler import JOB_ID, IngestionScheduler
from conflictradar.utils.settings import ProcessingConfig


@pytest.fixture
def backend():
    scheduler = Mock()
    scheduler.running = False
    return scheduler


@pytest.fixture
def orchestrator():
    return Mock(spec=Orchestrator)


class TestStart:
    """Tests for registering the ingestion job."""

    def test_registers_interval_job(self, orchestrator, backend):
        """The job runs on the configured interval, once at a time, after the initial delay."""
        processing = ProcessingConfig(schedule_interval=timedelta(minutes=5), initial_delay=timedelta(seconds=30))
        scheduler = IngestionScheduler(orchestrator, processing, scheduler=backend)

        before = datetime.now(timezone.utc)
        assert scheduler.start() is True
        after = datetime.now(timezone.utc)

        backend.start.assert_called_once()
        kwargs = backend.add_job.call_args.kwargs
        assert isinstance(kwargs["trigger"], IntervalTrigger)
        assert kwargs["trigger"].interval == timedelta(minutes=5)
        assert kwargs["id"] == JOB_ID
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert kwargs["replace_existing"] is True
        assert before + timedelta(seconds=30) <= kwargs["next_run_time"] <= after + timedelta(seconds=30)

    def test_disabled_scheduling_does_not_start(self, orchestrator, backend):
        """With scheduling disabled nothing is registered or started."""
        scheduler = IngestionScheduler(orchestrator, ProcessingConfig(enable_scheduling=False), scheduler=backend)

        assert scheduler.start() is False
        backend.add_job.assert_not_called()
        backend.start.assert_not_called()

    def test_already_running(self, orchestrator, backend):
        """Starting a running scheduler does not add a second job."""
        backend.running = True
        scheduler = IngestionScheduler(orchestrator, ProcessingConfig(), scheduler=backend)

        assert scheduler.start() is True
        backend.add_job.assert_not_called()


class TestJob:
    """Tests for the scheduled job body."""

    def test_job_runs_a_scheduled_batch(self, orchestrator, backend):
        """Each firing runs one pass labelled as scheduled."""
        scheduler = IngestionScheduler(orchestrator, ProcessingConfig(), scheduler=backend)
        scheduler.start()

        job = backend.add_job.call_args.args[0]
        job()

        orchestrator.run_once.assert_called_once_with(SCHEDULED_LABEL)

    def test_job_survives_run_failure(self, orchestrator, backend):
        """An exception from a run is logged, not propagated to the scheduler."""
        orchestrator.run_once.side_effect = RuntimeError("boom")
        scheduler = IngestionScheduler(orchestrator, ProcessingConfig(), scheduler=backend)
        scheduler.start()

        backend.add_job.call_args.args[0]()


class TestStop:
    """Tests for shutting down."""

    def test_stop_shuts_down_running_scheduler(self, orchestrator, backend):
        """stop() waits for the running job by default."""
        backend.running = True
        IngestionScheduler(orchestrator, ProcessingConfig(), scheduler=backend).stop()

        backend.shutdown.assert_called_once_with(wait=True)

    def test_stop_when_not_running(self, orchestrator, backend):
        """stop() on an idle scheduler is a no-op."""
        IngestionScheduler(orchestrator, ProcessingConfig(), scheduler=backend).stop()

        backend.shutdown.assert_not_called()

    def test_next_run_time(self, orchestrator, backend):
        """next_run_time reads the registered job."""
        when = datetime(2024, 3, 1, 12, 5, tzinfo=timezone.utc)
        backend.get_job.return_value = Mock(next_run_time=when)

        assert IngestionScheduler(orchestrator, ProcessingConfig(), scheduler=backend).next_run_time() == when
        backend.get_job.assert_called_once_with(JOB_ID)

    def test_default_backend_uses_orchestrator_settings(self):
        """Without explicit settings the orchestrator's processing config is used."""
        orchestrator = Mock(spec=Orchestrator)
        orchestrator.config = Mock(processing=ProcessingConfig(enable_scheduling=False))

        scheduler = IngestionScheduler(orchestrator)

        assert scheduler.start() is False
        assert scheduler.running is False
