"""Threaded polling loops for stop arrivals and live vehicle positions."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable

from stopboard.data.carris_client import CarrisClient, CarrisClientError
from stopboard.data.models import RawArrival, Stop, Vehicle

logger = logging.getLogger(__name__)

ARRIVALS_INTERVAL_SECONDS = 30.0
VEHICLE_INTERVAL_SECONDS = 10.0
VEHICLE_START_DELAY_SECONDS = 1.0

ARRIVALS = "arrivals"
VEHICLES = "vehicles"


@dataclass(frozen=True)
class ArrivalsResult:
    """Stop metadata and raw arrivals from one arrivals tick."""

    stop_id: str
    stop: Stop
    arrivals: list[RawArrival]
    fetched_at: float


@dataclass(frozen=True)
class VehiclesResult:
    """Vehicle snapshot from one vehicle tick."""

    line_id: str
    vehicles: list[Vehicle]
    fetched_at: float


class RepeatingTask:
    """Background thread that runs ``callback`` every ``interval_seconds``."""

    def __init__(
        self,
        name: str,
        callback: Callable[[], None],
        interval_seconds: float,
        initial_delay_seconds: float = 0.0,
    ) -> None:
        self._name = name
        self._callback = callback
        self._interval_seconds = interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        """Start the background thread."""
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, wait: bool = False, timeout: float | None = None) -> None:
        """Signal the thread to stop; a tick already running is allowed to finish."""
        self._stop_event.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run_loop(self) -> None:
        if self._initial_delay_seconds > 0 and self._stop_event.wait(timeout=self._initial_delay_seconds):
            return
        while not self._stop_event.is_set():
            try:
                self._callback()
            except Exception:
                logger.exception("Unhandled error in %s tick", self._name)
            self._stop_event.wait(timeout=self._interval_seconds)


class PollingScheduler:
    """Owns the arrivals loop (per stop) and the vehicle loop (per selected line).

    Every tick is tagged with the generation of its loop at dispatch time.
    Selection changes bump the generation, so a fetch that resolves after
    the user moved on is dropped instead of overwriting newer data.
    """

    def __init__(
        self,
        client: CarrisClient,
        on_arrivals: Callable[[ArrivalsResult], None],
        on_vehicles: Callable[[VehiclesResult], None],
        on_error: Callable[[str, Exception], None] | None = None,
        arrivals_interval_seconds: float = ARRIVALS_INTERVAL_SECONDS,
        vehicle_interval_seconds: float = VEHICLE_INTERVAL_SECONDS,
        vehicle_start_delay_seconds: float = VEHICLE_START_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self._on_arrivals = on_arrivals
        self._on_vehicles = on_vehicles
        self._on_error = on_error
        self._arrivals_interval_seconds = arrivals_interval_seconds
        self._vehicle_interval_seconds = vehicle_interval_seconds
        self._vehicle_start_delay_seconds = vehicle_start_delay_seconds
        self._lock = threading.RLock()
        self._stop_id: str | None = None
        self._line_id: str | None = None
        self._arrivals_generation = 0
        self._vehicle_generation = 0
        self._arrivals_task: RepeatingTask | None = None
        self._vehicle_task: RepeatingTask | None = None

    @property
    def stop_id(self) -> str | None:
        with self._lock:
            return self._stop_id

    @property
    def line_id(self) -> str | None:
        with self._lock:
            return self._line_id

    @property
    def vehicle_loop_running(self) -> bool:
        with self._lock:
            return self._vehicle_task is not None and self._vehicle_task.is_running

    def set_stop(self, stop_id: str) -> None:
        """Restart the arrivals loop for ``stop_id``; the first tick runs immediately."""
        with self._lock:
            if stop_id == self._stop_id and self._arrivals_task is not None:
                return
            previous = self._arrivals_task
            self._arrivals_generation += 1
            generation = self._arrivals_generation
            self._stop_id = stop_id
            self._arrivals_task = RepeatingTask(
                name=f"arrivals-{stop_id}",
                callback=lambda: self._arrivals_tick(stop_id, generation),
                interval_seconds=self._arrivals_interval_seconds,
            )
            task = self._arrivals_task
        if previous is not None:
            previous.stop()
        logger.info("Polling arrivals for stop %s every %ss", stop_id, self._arrivals_interval_seconds)
        task.start()

    def select_line(self, line_id: str) -> None:
        """Start (or restart) the vehicle loop for ``line_id`` after the start delay."""
        with self._lock:
            previous = self._vehicle_task
            self._vehicle_generation += 1
            generation = self._vehicle_generation
            self._line_id = line_id
            self._vehicle_task = RepeatingTask(
                name=f"vehicles-{line_id}",
                callback=lambda: self._vehicle_tick(line_id, generation),
                interval_seconds=self._vehicle_interval_seconds,
                initial_delay_seconds=self._vehicle_start_delay_seconds,
            )
            task = self._vehicle_task
        if previous is not None:
            previous.stop()
        logger.info("Polling vehicles for line %s every %ss", line_id, self._vehicle_interval_seconds)
        task.start()

    def clear_line(self) -> None:
        """Stop the vehicle loop; any fetch still in flight is discarded."""
        with self._lock:
            task = self._vehicle_task
            self._vehicle_task = None
            self._vehicle_generation += 1
            line_id = self._line_id
            self._line_id = None
        if task is not None:
            task.stop()
            logger.info("Stopped vehicle polling for line %s", line_id)

    def stop_all(self, wait: bool = False, timeout: float | None = None) -> None:
        """Stop both loops."""
        with self._lock:
            tasks = [task for task in (self._arrivals_task, self._vehicle_task) if task is not None]
            self._arrivals_task = None
            self._vehicle_task = None
            self._arrivals_generation += 1
            self._vehicle_generation += 1
            self._stop_id = None
            self._line_id = None
        for task in tasks:
            task.stop(wait=wait, timeout=timeout)

    def _arrivals_tick(self, stop_id: str, generation: int) -> None:
        try:
            stop = self._client.get_stop(stop_id)
            arrivals = self._client.get_realtime(stop_id)
        except CarrisClientError as exc:
            self._report_failure(ARRIVALS, stop_id, generation, exc)
            return

        result = ArrivalsResult(stop_id=stop_id, stop=stop, arrivals=arrivals, fetched_at=time.time())
        with self._lock:
            if generation != self._arrivals_generation:
                logger.debug("Dropping stale arrivals for stop %s", stop_id)
                return
            self._on_arrivals(result)

    def _vehicle_tick(self, line_id: str, generation: int) -> None:
        try:
            vehicles = self._client.get_vehicles(line_id)
        except CarrisClientError as exc:
            self._report_failure(VEHICLES, line_id, generation, exc)
            return

        result = VehiclesResult(line_id=line_id, vehicles=vehicles, fetched_at=time.time())
        with self._lock:
            if generation != self._vehicle_generation:
                logger.debug("Dropping stale vehicles for line %s", line_id)
                return
            self._on_vehicles(result)

    def _report_failure(self, loop: str, key: str, generation: int, exc: Exception) -> None:
        with self._lock:
            current = self._arrivals_generation if loop == ARRIVALS else self._vehicle_generation
            if generation != current:
                logger.debug("Ignoring failure of superseded %s fetch for %s", loop, key)
                return
            logger.warning("Fetching %s for %s failed: %s", loop, key, exc)
            if self._on_error is not None:
                self._on_error(loop, exc)


__all__ = [
    "ARRIVALS",
    "VEHICLES",
    "ArrivalsResult",
    "PollingScheduler",
    "RepeatingTask",
    "VehiclesResult",
]
