"""
Tests for BusinessSoftwareDetector.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from backup_agent.services.business_software_detector import (
    BusinessSoftwareDetector,
    is_process_running,
    normalize_process_name,
)


class FakeProcessTable:
    def __init__(self):
        self.running = False
        self.queries = []

    def __call__(self, process_name: str) -> bool:
        self.queries.append(process_name)
        return self.running


@pytest.fixture
def process_table():
    return FakeProcessTable()


@pytest.fixture
def listener():
    mock = Mock()
    mock.on_business_software_detected = AsyncMock()
    mock.on_business_software_undetected = AsyncMock()
    return mock


@pytest.fixture
def detector(process_table, listener):
    return BusinessSoftwareDetector(
        "Calc.exe", poll_interval_ms=10, process_probe=process_table, listener=listener
    )


class TestProcessNames:
    def test_normalize(self):
        assert normalize_process_name("Calc.EXE") == "calc"
        assert normalize_process_name(" notepad ") == "notepad"
        assert normalize_process_name("") == ""

    def test_is_process_running_matches_without_extension(self):
        processes = [Mock(info={"name": "bash"}), Mock(info={"name": "CALC.exe"})]
        with patch("psutil.process_iter", return_value=processes):
            assert is_process_running("calc")
            assert not is_process_running("notepad")

    def test_empty_name_never_runs(self):
        assert not is_process_running("")


class TestTransitions:
    @pytest.mark.asyncio
    async def test_each_edge_is_reported_once(self, detector, process_table, listener):
        assert not await detector.check_now()
        listener.on_business_software_detected.assert_not_awaited()

        process_table.running = True
        assert await detector.check_now()
        assert await detector.check_now()
        listener.on_business_software_detected.assert_awaited_once()
        assert detector.is_running

        process_table.running = False
        await detector.check_now()
        await detector.check_now()
        listener.on_business_software_undetected.assert_awaited_once()
        assert process_table.queries[0] == "calc"

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_detection(self, detector, process_table, listener):
        listener.on_business_software_detected.side_effect = RuntimeError("boom")
        process_table.running = True

        with patch("logging.error") as mock_error:
            assert await detector.check_now()

        mock_error.assert_called_once()
        assert detector.is_running


class TestMonitoring:
    @pytest.mark.asyncio
    async def test_poll_loop_picks_up_process(self, detector, process_table, listener):
        await detector.start_monitoring()
        assert detector.is_monitoring

        process_table.running = True
        await asyncio.sleep(0.1)
        listener.on_business_software_detected.assert_awaited_once()

        await detector.stop_monitoring()
        assert not detector.is_monitoring

    @pytest.mark.asyncio
    async def test_no_process_name_is_inert(self, process_table, listener):
        detector = BusinessSoftwareDetector("", process_probe=process_table, listener=listener)

        await detector.start_monitoring()

        assert not detector.is_monitoring
        assert process_table.queries == []

    @pytest.mark.asyncio
    async def test_clearing_the_name_forces_not_running(self, detector, process_table, listener):
        process_table.running = True
        await detector.start_monitoring()
        assert detector.is_running

        await detector.update_business_software_name("")

        assert not detector.is_running
        assert not detector.is_monitoring
        listener.on_business_software_undetected.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_setting_a_name_starts_monitoring(self, process_table, listener):
        detector = BusinessSoftwareDetector(
            "", poll_interval_ms=10, process_probe=process_table, listener=listener
        )

        await detector.update_business_software_name("notepad.exe")

        assert detector.process_name == "notepad"
        assert detector.is_monitoring
        await detector.stop_monitoring()
