from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

from stopboard.data.carris_client import CarrisClientError
from stopboard.data.models import RawArrival, Stop, Vehicle
from stopboard.data.poller import (
    ARRIVALS,
    ArrivalsResult,
    PollingScheduler,
    RepeatingTask,
    VehiclesResult,
)


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _scheduler(client, on_arrivals=None, on_vehicles=None, on_error=None, **kwargs) -> PollingScheduler:
    return PollingScheduler(
        client=client,
        on_arrivals=on_arrivals or MagicMock(),
        on_vehicles=on_vehicles or MagicMock(),
        on_error=on_error,
        arrivals_interval_seconds=kwargs.get("arrivals_interval_seconds", 60),
        vehicle_interval_seconds=kwargs.get("vehicle_interval_seconds", 60),
        vehicle_start_delay_seconds=kwargs.get("vehicle_start_delay_seconds", 0),
    )


def _arrival(stop_id: str) -> RawArrival:
    return RawArrival("1523", "Oeiras", "10:00:00", None, stop_id, f"trip-{stop_id}")


def test_arrivals_tick_success() -> None:
    client = MagicMock()
    client.get_stop.return_value = Stop("A", "Stop A")
    client.get_realtime.return_value = [_arrival("A")]
    on_arrivals = MagicMock()
    scheduler = _scheduler(client, on_arrivals=on_arrivals)
    scheduler._stop_id = "A"

    scheduler._arrivals_tick("A", scheduler._arrivals_generation)

    result = on_arrivals.call_args.args[0]
    assert isinstance(result, ArrivalsResult)
    assert result.stop.name == "Stop A"
    assert result.arrivals == [_arrival("A")]
    assert result.fetched_at > 0


def test_arrivals_tick_failure_reports_and_keeps_data() -> None:
    client = MagicMock()
    client.get_stop.side_effect = CarrisClientError("timeout")
    on_arrivals = MagicMock()
    on_error = MagicMock()
    scheduler = _scheduler(client, on_arrivals=on_arrivals, on_error=on_error)

    scheduler._arrivals_tick("A", scheduler._arrivals_generation)

    on_arrivals.assert_not_called()
    loop, exc = on_error.call_args.args
    assert loop == ARRIVALS
    assert str(exc) == "timeout"


def test_stale_arrivals_for_previous_stop_are_dropped() -> None:
    client = MagicMock()
    on_arrivals = MagicMock()
    scheduler = _scheduler(client, on_arrivals=on_arrivals)
    stale_generation = scheduler._arrivals_generation

    def switch_while_in_flight(stop_id: str):
        # The user picks stop B while the request for A is still open.
        scheduler._arrivals_generation += 1
        scheduler._stop_id = "B"
        return [_arrival(stop_id)]

    client.get_stop.return_value = Stop("A", "Stop A")
    client.get_realtime.side_effect = switch_while_in_flight

    scheduler._arrivals_tick("A", stale_generation)

    on_arrivals.assert_not_called()


def test_failure_of_superseded_fetch_is_not_reported() -> None:
    client = MagicMock()
    client.get_vehicles.side_effect = CarrisClientError("boom")
    on_error = MagicMock()
    scheduler = _scheduler(client, on_error=on_error)
    stale_generation = scheduler._vehicle_generation
    scheduler._vehicle_generation += 1

    scheduler._vehicle_tick("743", stale_generation)

    on_error.assert_not_called()


def test_vehicle_tick_success() -> None:
    client = MagicMock()
    client.get_vehicles.return_value = [Vehicle("v1", 38.7, -9.1, "743")]
    on_vehicles = MagicMock()
    scheduler = _scheduler(client, on_vehicles=on_vehicles)

    scheduler._vehicle_tick("743", scheduler._vehicle_generation)

    result = on_vehicles.call_args.args[0]
    assert isinstance(result, VehiclesResult)
    assert result.line_id == "743"
    assert [v.id for v in result.vehicles] == ["v1"]


def test_set_stop_fetches_immediately() -> None:
    client = MagicMock()
    client.get_stop.return_value = Stop("A", "Stop A")
    client.get_realtime.return_value = []
    applied = threading.Event()
    scheduler = _scheduler(client, on_arrivals=lambda result: applied.set())

    scheduler.set_stop("A")
    try:
        assert applied.wait(timeout=2)
        client.get_stop.assert_called_with("A")
        assert scheduler.stop_id == "A"
    finally:
        scheduler.stop_all(wait=True, timeout=2)


def test_switching_stop_only_applies_new_stop() -> None:
    client = MagicMock()
    client.get_stop.side_effect = lambda stop_id: Stop(stop_id, f"Stop {stop_id}")
    client.get_realtime.side_effect = lambda stop_id: [_arrival(stop_id)]
    applied: list[str] = []
    scheduler = _scheduler(client, on_arrivals=lambda result: applied.append(result.stop_id), arrivals_interval_seconds=0.05)

    scheduler.set_stop("A")
    assert _wait_for(lambda: "A" in applied)
    scheduler.set_stop("B")
    try:
        assert _wait_for(lambda: applied.count("B") >= 2)
        first_b = applied.index("B")
        assert "A" not in applied[first_b:]
    finally:
        scheduler.stop_all(wait=True, timeout=2)


def test_vehicle_loop_stops_after_clear_line() -> None:
    client = MagicMock()
    client.get_vehicles.return_value = []
    scheduler = _scheduler(client, vehicle_interval_seconds=0.05, vehicle_start_delay_seconds=0.05)

    scheduler.select_line("743")
    assert _wait_for(lambda: client.get_vehicles.call_count >= 2)
    task = scheduler._vehicle_task
    assert task is not None

    scheduler.clear_line()
    assert _wait_for(lambda: not task._thread.is_alive())
    calls = client.get_vehicles.call_count
    time.sleep(0.25)

    assert client.get_vehicles.call_count == calls
    assert scheduler.line_id is None
    assert not scheduler.vehicle_loop_running


def test_vehicle_loop_waits_for_start_delay() -> None:
    client = MagicMock()
    client.get_vehicles.return_value = []
    scheduler = _scheduler(client, vehicle_start_delay_seconds=0.3)

    scheduler.select_line("743")
    try:
        time.sleep(0.1)
        client.get_vehicles.assert_not_called()
        assert _wait_for(lambda: client.get_vehicles.call_count == 1)
    finally:
        scheduler.stop_all(wait=True, timeout=2)


def test_repeating_task_survives_callback_errors() -> None:
    calls: list[int] = []

    def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    task = RepeatingTask("flaky", flaky, interval_seconds=0.02)
    task.start()
    try:
        assert _wait_for(lambda: len(calls) >= 3)
    finally:
        task.stop(wait=True, timeout=2)

    assert not task.is_running


def test_repeating_task_stop_during_initial_delay() -> None:
    callback = MagicMock()
    task = RepeatingTask("delayed", callback, interval_seconds=1, initial_delay_seconds=5)

    task.start()
    task.stop(wait=True, timeout=2)

    callback.assert_not_called()
