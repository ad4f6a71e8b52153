"""Unit tests for detached security event recording."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from remitdesk.application.services import SecurityEventService


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.record = AsyncMock(return_value=1)
    return repo


@pytest.mark.asyncio
async def test_log_event_records_identifier_and_endpoint(repository):
    service = SecurityEventService(repository)

    task = service.log_event("rate_limit_exceeded", "1.2.3.4", "/api/v1/auth/login")
    assert task is not None
    await service.drain()

    repository.record.assert_awaited_once()
    identifier, endpoint, occurred_at = repository.record.await_args.args
    assert identifier == "security_rate_limit_exceeded_1.2.3.4"
    assert endpoint == "/api/v1/auth/login"
    assert occurred_at.tzinfo is not None


@pytest.mark.asyncio
async def test_store_failure_is_absorbed(repository, caplog):
    repository.record.side_effect = RuntimeError("database is locked")
    service = SecurityEventService(repository)

    service.log_event("rate_limit_exceeded", "1.2.3.4", "/login")
    await service.drain()

    assert "Failed to record security event" in caplog.text


@pytest.mark.asyncio
async def test_completed_tasks_are_released(repository):
    service = SecurityEventService(repository)

    service.log_event("rate_limit_exceeded", "1.2.3.4", "/login")
    await service.drain()

    assert not service._pending


def test_log_event_without_running_loop_is_dropped(repository):
    service = SecurityEventService(repository)

    assert service.log_event("rate_limit_exceeded", "1.2.3.4", "/login") is None
    repository.record.assert_not_called()
