"""Unit tests for the periodic outbox runner."""
from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from commerce_relay.core.settings import OutboxSettings
from commerce_relay.infra.outbox import OutboxProcessingService
from commerce_relay.infra.outbox.runner import CLEANUP_JOB_ID, PROCESS_JOB_ID
from commerce_relay.infra.outbox.service import BatchResult


@pytest.fixture
def mock_outbox_service():
    service = MagicMock()
    service.process_messages = AsyncMock(return_value=BatchResult(fetched=1, processed=1))
    service.cleanup_old_messages = AsyncMock(return_value=3)
    return service


@pytest.fixture
def runner(mock_outbox_service):
    settings = OutboxSettings(
        processing_interval_ms=1000,
        cleanup_interval_hours=12,
        days_to_keep_processed_messages=14,
    )
    return OutboxProcessingService(mock_outbox_service, settings=settings)


@pytest.mark.unit
class TestOutboxProcessingService:
    """Test suite for scheduler lifecycle and job bodies."""

    async def test_start_registers_both_jobs(self, runner):
        await runner.start()
        try:
            jobs = {job["id"]: job for job in runner.get_job_status()}
            assert set(jobs) == {PROCESS_JOB_ID, CLEANUP_JOB_ID}
            assert jobs[PROCESS_JOB_ID]["next_run_time"] is not None
            assert runner.running
        finally:
            await runner.stop()

        assert not runner.running

    async def test_start_and_stop_are_idempotent(self, runner):
        await runner.start()
        await runner.start()
        await runner.stop()
        await runner.stop()

        assert not runner.running

    async def test_stop_signals_batch_in_flight(self, runner, mock_outbox_service):
        await runner.start()
        await runner.stop()

        await runner.run_process_messages()

        stop_event = mock_outbox_service.process_messages.await_args.kwargs["stop_event"]
        assert isinstance(stop_event, asyncio.Event)
        assert stop_event.is_set()

    async def test_run_process_messages_returns_result(self, runner):
        result = await runner.run_process_messages()

        assert result.processed == 1

    async def test_run_cleanup_uses_configured_retention(self, runner, mock_outbox_service):
        deleted = await runner.run_cleanup()

        assert deleted == 3
        assert mock_outbox_service.cleanup_old_messages.await_args.args == (14,)

    async def test_process_failure_is_logged_not_raised(self, runner, mock_outbox_service, caplog):
        """A failing tick never stops the schedule."""
        mock_outbox_service.process_messages.side_effect = RuntimeError("database down")

        with caplog.at_level(logging.ERROR, logger="commerce_relay.infra.outbox.runner"):
            result = await runner.run_process_messages()

        assert result is None
        assert "Error occurred while processing outbox messages" in caplog.text

    async def test_cleanup_failure_is_logged_not_raised(self, runner, mock_outbox_service, caplog):
        mock_outbox_service.cleanup_old_messages.side_effect = RuntimeError("database down")

        with caplog.at_level(logging.ERROR, logger="commerce_relay.infra.outbox.runner"):
            assert await runner.run_cleanup() is None

        assert "Error occurred while cleaning up outbox messages" in caplog.text

    def test_settings_default_to_service_settings(self, mock_outbox_service):
        mock_outbox_service.settings = OutboxSettings(batch_size=5)

        runner = OutboxProcessingService(mock_outbox_service)

        assert runner.settings.batch_size == 5
