"""
Tests for the heartbeat scanner.
"""

import asyncio
import shutil
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from deadman.heartbeat.alarm import AlarmStateMachine
from deadman.heartbeat.scanner import HeartbeatScanner
from deadman.instrumentation import Instrumentation
from deadman.models import AlarmState, DispatchReport, Group, HistoryStatus, Monitor
from deadman.store import InMemoryRepository


def _dispatcher() -> AsyncMock:
    dispatcher = AsyncMock()
    dispatcher.dispatch_group_alert.side_effect = (
        lambda group_id, context: DispatchReport(group_id=group_id)
    )
    return dispatcher


def _scanner(repository, clock, dispatcher) -> HeartbeatScanner:
    alarm = AlarmStateMachine(repository, clock=clock)
    return HeartbeatScanner(repository, alarm, dispatcher, clock=clock)


class TestScanOnce:
    """Tests for a single evaluation pass."""

    @pytest.mark.asyncio
    async def test_never_beaten_monitor_triggers(self, repository, clock, seed) -> None:
        """Test a monitor without heartbeat alarms and dispatches once."""
        await seed(interval_seconds=60)
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        stored = await repository.find_monitor_by_uuid("m1")
        assert stored.state == AlarmState.ALARM
        assert [e.status for e in stored.history] == [HistoryStatus.TRIGGERED]
        assert report.triggered == ["m1"]
        dispatcher.dispatch_group_alert.assert_awaited_once()
        group_id, context = dispatcher.dispatch_group_alert.await_args.args
        assert group_id == "g1"
        assert context.missed_for_seconds is None
        assert context.missed_display == "Infinity"

    @pytest.mark.asyncio
    async def test_recent_heartbeat_is_left_alone(self, repository, clock, seed) -> None:
        """Test a heartbeat within the interval changes nothing."""
        await seed(interval_seconds=60, last_heartbeat=clock.now - timedelta(seconds=30))
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        stored = await repository.find_monitor_by_uuid("m1")
        assert stored.state == AlarmState.NORMAL
        assert stored.history == []
        assert report.triggered == []
        assert report.evaluated == 1
        dispatcher.dispatch_group_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exactly_at_interval_is_not_missed(self, repository, clock, seed) -> None:
        """Test missed == interval does not trigger."""
        await seed(interval_seconds=60, last_heartbeat=clock.now - timedelta(seconds=60))
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        assert report.triggered == []

    @pytest.mark.asyncio
    async def test_literal_scenario(self, repository, clock, seed) -> None:
        """Test heartbeat 125s ago with a 60s interval."""
        await seed(uuid="m1", interval_seconds=60, last_heartbeat=clock.now - timedelta(seconds=125))
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        await scanner.scan_once()

        stored = await repository.find_monitor_by_uuid("m1")
        assert stored.history[-1].status == HistoryStatus.TRIGGERED
        assert stored.history[-1].timestamp == clock.now
        context = dispatcher.dispatch_group_alert.await_args.args[1]
        assert context.missed_for_seconds == 125
        assert context.monitor_uuid == "m1"
        assert context.triggered_at == clock.now

    @pytest.mark.asyncio
    async def test_second_scan_does_not_duplicate(self, repository, clock, seed) -> None:
        """Test an alarming monitor is observed without new entries or dispatch."""
        await seed()
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        await scanner.scan_once()
        clock.advance(60)
        report = await scanner.scan_once()

        stored = await repository.find_monitor_by_uuid("m1")
        assert len(stored.history) == 1
        assert report.still_alarming == ["m1"]
        assert report.triggered == []
        assert dispatcher.dispatch_group_alert.await_count == 1

    @pytest.mark.asyncio
    async def test_disabled_monitor_is_skipped(self, repository, clock, seed) -> None:
        """Test disabled monitors are never evaluated."""
        await seed(enabled=False)
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        assert report.evaluated == 0
        dispatcher.dispatch_group_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_monitors_sharing_a_group_dispatch_separately(self, repository, clock, seed) -> None:
        """Test each monitor in a group gets its own dispatch."""
        await seed(uuid="a", group_id="shared")
        await seed(uuid="b", group_id="shared")
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        assert sorted(report.triggered) == ["a", "b"]
        assert dispatcher.dispatch_group_alert.await_count == 2
        uuids = {call.args[1].monitor_uuid for call in dispatcher.dispatch_group_alert.await_args_list}
        assert uuids == {"a", "b"}


class TestFailureIsolation:
    """Tests for per-monitor and per-pass error containment."""

    @pytest.mark.asyncio
    async def test_one_broken_monitor_does_not_abort_pass(self, clock, seed, repository) -> None:
        """Test a repository error on one monitor leaves the others evaluated."""
        await seed(uuid="broken")
        await seed(uuid="healthy")

        original_find = repository.find_monitor_by_uuid

        async def flaky_find(uuid: str):
            if uuid == "broken":
                raise RuntimeError("database unavailable")
            return await original_find(uuid)

        repository.find_monitor_by_uuid = flaky_find
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        assert "broken" in report.failures
        assert "database unavailable" in report.failures["broken"]
        assert report.triggered == ["healthy"]
        assert report.evaluated == 2

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_contained(self, repository, clock, seed) -> None:
        """Test an exploding dispatcher is recorded, not raised."""
        await seed()
        dispatcher = AsyncMock()
        dispatcher.dispatch_group_alert.side_effect = RuntimeError("boom")
        scanner = _scanner(repository, clock, dispatcher)

        report = await scanner.scan_once()

        assert "m1" in report.failures
        stored = await repository.find_monitor_by_uuid("m1")
        assert stored.state == AlarmState.ALARM

    @pytest.mark.asyncio
    async def test_listing_failure_is_reported(self, clock) -> None:
        """Test a failure to list monitors does not raise."""

        class BrokenRepository(InMemoryRepository):
            async def list_enabled_monitors(self):
                raise ConnectionError("store offline")

        repository = BrokenRepository()
        scanner = _scanner(repository, clock, _dispatcher())

        report = await scanner.scan_once()

        assert report.error == "store offline"
        assert report.evaluated == 0
        assert report.finished_at is not None


class TestUndeliveredAlerts:
    """Tests for alerts that failed to persist or dispatch."""

    @pytest.mark.asyncio
    async def test_failed_save_alerts_on_next_scan(self, tmp_path, clock) -> None:
        """Test a trigger whose write fails leaves the monitor Normal and alerts later."""
        state_dir = tmp_path / "state"
        repository = InMemoryRepository(state_dir / "store.json")
        await repository.create_group(Group(id="g1", name="ops", owner_id="u1"))
        await repository.create_monitor(
            Monitor(uuid="m1", name="backup", owner_id="u1", group_id="g1", interval_seconds=60)
        )
        shutil.rmtree(state_dir)
        state_dir.write_text("not a directory")
        dispatcher = _dispatcher()
        scanner = _scanner(repository, clock, dispatcher)

        first = await scanner.scan_once()

        assert "m1" in first.failures
        assert first.triggered == []
        stored = await repository.find_monitor_by_uuid("m1")
        assert stored.state == AlarmState.NORMAL
        assert stored.history == []
        dispatcher.dispatch_group_alert.assert_not_awaited()

        state_dir.unlink()
        clock.advance(60)
        second = await scanner.scan_once()

        assert second.triggered == ["m1"]
        assert second.failures == {}
        dispatcher.dispatch_group_alert.assert_awaited_once()
        reloaded = InMemoryRepository(state_dir / "store.json")
        monitor = await reloaded.find_monitor_by_uuid("m1")
        assert monitor.state == AlarmState.ALARM
        assert [e.status for e in monitor.history] == [HistoryStatus.TRIGGERED]

    @pytest.mark.asyncio
    async def test_failed_dispatch_is_retried(self, repository, clock, seed) -> None:
        """Test an alert whose dispatch raised is sent on the next pass."""
        await seed()
        dispatcher = AsyncMock()
        dispatcher.dispatch_group_alert.side_effect = [
            RuntimeError("store offline"),
            DispatchReport(group_id="g1"),
        ]
        instrumentation = RecordingInstrumentation()
        alarm = AlarmStateMachine(repository, clock=clock)
        scanner = HeartbeatScanner(
            repository, alarm, dispatcher, clock=clock, instrumentation=instrumentation
        )

        first = await scanner.scan_once()
        clock.advance(60)
        second = await scanner.scan_once()
        clock.advance(60)
        third = await scanner.scan_once()

        assert first.triggered == ["m1"]
        assert "m1" in first.failures
        assert second.failures == {}
        assert dispatcher.dispatch_group_alert.await_count == 2
        retried = dispatcher.dispatch_group_alert.await_args_list[1].args
        assert retried[0] == "g1"
        assert retried[1].triggered_at == first.started_at
        assert third.still_alarming == ["m1"]
        outcomes = [call[2] for call in instrumentation.calls if call[0] == "monitor_evaluated"]
        assert outcomes == ["failed", "redispatched", "alarming"]
        stored = await repository.find_monitor_by_uuid("m1")
        assert len(stored.history) == 1

    @pytest.mark.asyncio
    async def test_acknowledged_monitor_drops_pending_alert(self, repository, clock, seed) -> None:
        """Test a heartbeat after a failed dispatch cancels the retry."""
        await seed()
        dispatcher = AsyncMock()
        dispatcher.dispatch_group_alert.side_effect = RuntimeError("boom")
        alarm = AlarmStateMachine(repository, clock=clock)
        scanner = HeartbeatScanner(repository, alarm, dispatcher, clock=clock)

        await scanner.scan_once()
        await alarm.acknowledge("m1")
        report = await scanner.scan_once()

        assert report.failures == {}
        assert report.triggered == []
        assert dispatcher.dispatch_group_alert.await_count == 1

    @pytest.mark.asyncio
    async def test_deleted_monitor_drops_pending_alert(self, repository, clock, seed) -> None:
        """Test a removed monitor is not retried."""
        await seed()
        dispatcher = AsyncMock()
        dispatcher.dispatch_group_alert.side_effect = RuntimeError("boom")
        scanner = _scanner(repository, clock, dispatcher)

        await scanner.scan_once()
        await repository.delete_monitor("m1")
        report = await scanner.scan_once()

        assert report.evaluated == 0
        assert dispatcher.dispatch_group_alert.await_count == 1


class TestSingleFlight:
    """Tests for the non-overlap guard."""

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, repository, clock, seed) -> None:
        """Test a tick arriving during a pass is skipped."""
        await seed()
        release = asyncio.Event()
        entered = asyncio.Event()

        async def slow_dispatch(group_id, context):
            entered.set()
            await release.wait()
            return DispatchReport(group_id=group_id)

        dispatcher = AsyncMock()
        dispatcher.dispatch_group_alert.side_effect = slow_dispatch
        scanner = _scanner(repository, clock, dispatcher)

        first = asyncio.create_task(scanner.scan_once(wait=False))
        await entered.wait()
        assert scanner.is_scanning is True

        skipped = await scanner.scan_once(wait=False)
        assert skipped.skipped is True
        assert skipped.evaluated == 0

        release.set()
        report = await first
        assert report.triggered == ["m1"]
        assert scanner.is_scanning is False

        stored = await repository.find_monitor_by_uuid("m1")
        assert len(stored.history) == 1

    @pytest.mark.asyncio
    async def test_manual_scan_waits_for_in_flight_pass(self, repository, clock, seed) -> None:
        """Test a waiting scan runs after the in-flight one completes."""
        await seed()
        release = asyncio.Event()
        entered = asyncio.Event()

        async def slow_dispatch(group_id, context):
            entered.set()
            await release.wait()
            return DispatchReport(group_id=group_id)

        dispatcher = AsyncMock()
        dispatcher.dispatch_group_alert.side_effect = slow_dispatch
        scanner = _scanner(repository, clock, dispatcher)

        first = asyncio.create_task(scanner.scan_once())
        await entered.wait()
        second = asyncio.create_task(scanner.scan_once(wait=True))
        await asyncio.sleep(0)
        assert not second.done()

        release.set()
        first_report, second_report = await asyncio.gather(first, second)

        assert first_report.triggered == ["m1"]
        assert second_report.skipped is False
        assert second_report.still_alarming == ["m1"]
        assert dispatcher.dispatch_group_alert.await_count == 1


class RecordingInstrumentation(Instrumentation):
    """Collects hook calls in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def scan_started(self) -> None:
        self.calls.append(("scan_started",))

    def scan_finished(self, report) -> None:
        self.calls.append(("scan_finished", report.evaluated))

    def monitor_evaluated(self, monitor_uuid, outcome) -> None:
        self.calls.append(("monitor_evaluated", monitor_uuid, outcome))


class TestInstrumentation:
    """Tests for scanner hooks."""

    @pytest.mark.asyncio
    async def test_hooks_called_in_order(self, repository, clock, seed) -> None:
        """Test scan hooks bracket per-monitor outcomes."""
        await seed(uuid="late")
        await seed(uuid="fresh", last_heartbeat=clock.now)
        instrumentation = RecordingInstrumentation()
        alarm = AlarmStateMachine(repository, clock=clock)
        scanner = HeartbeatScanner(
            repository,
            alarm,
            _dispatcher(),
            clock=clock,
            instrumentation=instrumentation,
        )

        await scanner.scan_once()

        assert instrumentation.calls == [
            ("scan_started",),
            ("monitor_evaluated", "late", "triggered"),
            ("monitor_evaluated", "fresh", "ok"),
            ("scan_finished", 2),
        ]

    @pytest.mark.asyncio
    async def test_raising_hook_does_not_fail_scan(self, repository, clock, seed) -> None:
        """Test a broken hook is logged while the pass still alerts."""
        await seed()

        class BrokenInstrumentation(Instrumentation):
            def scan_started(self) -> None:
                raise RuntimeError("tracer down")

            def monitor_evaluated(self, monitor_uuid, outcome) -> None:
                raise RuntimeError("tracer down")

            def scan_finished(self, report) -> None:
                raise RuntimeError("tracer down")

        dispatcher = _dispatcher()
        alarm = AlarmStateMachine(repository, clock=clock)
        scanner = HeartbeatScanner(
            repository,
            alarm,
            dispatcher,
            clock=clock,
            instrumentation=BrokenInstrumentation(),
        )

        report = await scanner.scan_once()

        assert report.triggered == ["m1"]
        assert report.failures == {}
        assert report.finished_at is not None
        dispatcher.dispatch_group_alert.assert_awaited_once()
