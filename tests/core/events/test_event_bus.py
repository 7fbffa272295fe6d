"""
Tests for the JobEventBus.
"""

import asyncio
from unittest.mock import Mock, patch

import pytest

from backup_agent.core.events.event_bus import JobEventBus
from backup_agent.core.events.job_event import JobEvent
from backup_agent.core.events.job_events import (
    FileProcessedEvent,
    JobCompletedEvent,
    JobFailedEvent,
    JobStartedEvent,
)
from backup_agent.models import BackupType, JobState


def make_event(event_class=JobStartedEvent, **fields):
    values = dict(job_name="docs", backup_type=BackupType.COMPLETE, state=JobState.ACTIVE)
    values.update(fields)
    return event_class(**values)


@pytest.mark.asyncio
async def test_subscribe_and_publish():
    """Test that an observer is called when an event is published."""
    bus = JobEventBus()
    handler_mock = Mock()

    async def observer(event: JobEvent):
        handler_mock(event)

    await bus.subscribe(observer)

    event_to_publish = make_event()
    await bus.publish(event_to_publish)

    handler_mock.assert_called_once_with(event_to_publish)


@pytest.mark.asyncio
async def test_publish_to_matching_event_types_only():
    """Test that typed subscriptions only receive their event type."""
    bus = JobEventBus()
    completed_mock = Mock()
    all_mock = Mock()

    async def on_completed(event):
        completed_mock(event)

    async def on_anything(event):
        all_mock(event)

    await bus.subscribe(on_completed, JobCompletedEvent)
    await bus.subscribe(on_anything)

    started = make_event(JobStartedEvent)
    completed = make_event(JobCompletedEvent, state=JobState.COMPLETED, progress=100)
    await bus.publish(started)
    await bus.publish(completed)

    completed_mock.assert_called_once_with(completed)
    assert all_mock.call_count == 2


@pytest.mark.asyncio
async def test_subscribing_twice_delivers_once():
    bus = JobEventBus()
    handler_mock = Mock()

    async def observer(event):
        handler_mock(event)

    await bus.subscribe(observer)
    await bus.subscribe(observer)
    await bus.publish(make_event())

    assert bus.observer_count == 1
    handler_mock.assert_called_once()


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bus = JobEventBus()
    handler_mock = Mock()

    async def observer(event):
        handler_mock(event)

    await bus.subscribe(observer)
    await bus.unsubscribe(observer)
    await bus.publish(make_event())

    assert not bus.has_observer(observer)
    handler_mock.assert_not_called()


@pytest.mark.asyncio
async def test_unsubscribe_unknown_observer_is_a_no_op():
    bus = JobEventBus()

    async def subscribed(event):
        pass

    async def stranger(event):
        pass

    await bus.subscribe(subscribed)
    await bus.subscribe(subscribed, JobCompletedEvent)
    await bus.unsubscribe(stranger)

    assert bus.observer_count == 2
    assert bus.has_observer(subscribed)

    await bus.unsubscribe(subscribed)
    assert bus.observer_count == 0


@pytest.mark.asyncio
async def test_publish_waits_for_observers():
    """The publisher must not run ahead of its observers."""
    bus = JobEventBus()
    finished = []

    async def slow_observer(event):
        await asyncio.sleep(0.02)
        finished.append(event)

    await bus.subscribe(slow_observer)
    event = make_event()
    await bus.publish(event)

    assert finished == [event]


@pytest.mark.asyncio
async def test_publish_with_no_subscribers():
    """Test that publishing an event with no subscribers does not raise an error."""
    bus = JobEventBus()

    try:
        await bus.publish(make_event())
    except Exception as e:
        pytest.fail(f"Publishing with no subscribers raised an exception: {e}")


@pytest.mark.asyncio
async def test_failing_observer_does_not_stop_others():
    """Test that if one observer fails, other observers are still executed."""
    bus = JobEventBus()

    success_mock = Mock()
    fail_mock = Mock()

    async def success_observer(event):
        success_mock(event)
        await asyncio.sleep(0.01)

    async def failing_observer(event):
        fail_mock(event)
        raise ValueError("Observer failed intentionally")

    await bus.subscribe(failing_observer)
    await bus.subscribe(success_observer)

    event_to_publish = make_event()

    with patch("logging.error") as mock_log_error:
        await bus.publish(event_to_publish)

        fail_mock.assert_called_once_with(event_to_publish)
        success_mock.assert_called_once_with(event_to_publish)

        mock_log_error.assert_called_once()
        log_args, _ = mock_log_error.call_args
        assert "failing_observer" in log_args[0]
        assert "Observer failed intentionally" in log_args[0]


def test_event_actions_match_notification_vocabulary():
    assert JobStartedEvent.action == "start"
    assert FileProcessedEvent.action == "processing"
    assert JobCompletedEvent.action == "complete"
    assert JobFailedEvent.action == "error"


def test_events_are_immutable():
    event = make_event()
    with pytest.raises(Exception):
        event.progress = 50
