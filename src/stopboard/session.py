"""One user session: selected stop, its arrivals, and the optional line overlay."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone, tzinfo
import logging
import threading
from typing import Callable

from stopboard.data.carris_client import CarrisClient
from stopboard.data.models import Stop
from stopboard.data.poller import (
    ARRIVALS,
    ArrivalsResult,
    PollingScheduler,
    VehiclesResult,
)
from stopboard.logic.arrivals import ProcessedArrival, line_color, process_arrivals
from stopboard.logic.summary import FALLBACK_INSIGHT, SummaryClient, TransitInsight
from stopboard.overlay.controller import MapOverlayController
from stopboard.rendering.frame_data import BoardData, BoardRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardState:
    """Everything the board shows for the selected stop."""

    stop_id: str | None = None
    stop: Stop | None = None
    arrivals: list[ProcessedArrival] = field(default_factory=list)
    updated_at: datetime | None = None
    insight: TransitInsight | None = None
    loading: bool = False
    error: str | None = None

    def to_board_data(self, ticker_text: str | None = None) -> BoardData:
        if self.stop is not None:
            name = self.stop.name or f"Stop {self.stop_id}"
            area = self.stop.area or ""
        else:
            name = "Loading..." if self.loading else f"Stop {self.stop_id or ''}".strip()
            area = ""
        if ticker_text is None:
            ticker_text = self.insight.summary if self.insight else ""
        return BoardData(
            stop_name=name,
            area=area,
            clock_time=self.updated_at.strftime("%H:%M") if self.updated_at else "--:--",
            rows=[
                BoardRow(
                    line_id=a.line_id,
                    destination=a.destination,
                    minutes=a.minutes_until_arrival,
                    is_live=a.is_live,
                    color=a.display_color,
                )
                for a in self.arrivals
            ],
            loading=self.loading,
            ticker_text=ticker_text,
        )


class StopBoardSession:
    """Composes arrival polling, countdowns, the AI briefing and the map overlay."""

    def __init__(
        self,
        client: CarrisClient,
        overlay: MapOverlayController,
        summary: SummaryClient | None = None,
        tz: tzinfo | None = None,
        arrivals_interval_seconds: float = 30.0,
        vehicle_interval_seconds: float = 10.0,
        vehicle_start_delay_seconds: float = 1.0,
        now: Callable[[], datetime] | None = None,
        on_update: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self._overlay = overlay
        self._summary = summary
        self._tz = tz or timezone.utc
        self._now = now or (lambda: datetime.now(self._tz))
        self._on_update = on_update
        self._lock = threading.Lock()
        self._state = BoardState()
        self._scheduler = PollingScheduler(
            client,
            on_arrivals=self._apply_arrivals,
            on_vehicles=self._apply_vehicles,
            on_error=self._record_error,
            arrivals_interval_seconds=arrivals_interval_seconds,
            vehicle_interval_seconds=vehicle_interval_seconds,
            vehicle_start_delay_seconds=vehicle_start_delay_seconds,
        )

    @property
    def overlay(self) -> MapOverlayController:
        return self._overlay

    @property
    def scheduler(self) -> PollingScheduler:
        return self._scheduler

    def get_state(self) -> BoardState:
        with self._lock:
            return self._state

    def select_stop(self, stop_id: str) -> None:
        """Show ``stop_id``; arrivals of the previous stop are cleared."""
        stop_id = stop_id.strip()
        if not stop_id:
            return
        with self._lock:
            if stop_id != self._state.stop_id:
                self._state = BoardState(stop_id=stop_id, loading=True)
        self._scheduler.set_stop(stop_id)

    def find_and_select_stop(self, query: str) -> Stop | None:
        """Resolve ``query`` to a stop and select it. Returns None when nothing matches."""
        stops = self._client.search_stops(query)
        if not stops:
            logger.warning("No stop matches %r", query)
            return None
        stop = stops[0]
        self.select_stop(stop.id)
        return stop

    def toggle_line(self, line_id: str) -> bool:
        """Open the overlay for ``line_id``, or close it if already open. Returns True when open."""
        if self._scheduler.line_id == line_id:
            self._scheduler.clear_line()
            self._overlay.close()
            self._notify()
            return False
        self._overlay.select_line(line_id, line_color(line_id))
        self._scheduler.select_line(line_id)
        self._notify()
        return True

    def close(self) -> None:
        """Stop both loops and release the map surface."""
        self._scheduler.stop_all()
        self._overlay.shutdown()

    def _apply_arrivals(self, result: ArrivalsResult) -> None:
        reference = self._now()
        arrivals = process_arrivals(result.arrivals, reference)
        with self._lock:
            previous = self._state
            self._state = BoardState(
                stop_id=result.stop_id,
                stop=result.stop,
                arrivals=arrivals,
                updated_at=reference,
                insight=previous.insight if previous.stop_id == result.stop_id else None,
                loading=False,
                error=None,
            )
        self._notify()
        if self._summary is not None and arrivals:
            threading.Thread(
                target=self._refresh_insight,
                args=(result.stop_id, result.stop.name, arrivals),
                name=f"briefing-{result.stop_id}",
                daemon=True,
            ).start()

    def _refresh_insight(self, stop_id: str, stop_name: str, arrivals: list[ProcessedArrival]) -> None:
        try:
            insight = self._summary.get_briefing(stop_name, arrivals)
        except Exception:
            logger.exception("Briefing failed for stop %s", stop_id)
            insight = FALLBACK_INSIGHT
        with self._lock:
            if self._state.stop_id != stop_id:
                return
            self._state = replace(self._state, insight=insight)
        self._notify()

    def _apply_vehicles(self, result: VehiclesResult) -> None:
        self._overlay.apply_snapshot(result.line_id, result.vehicles)
        self._notify()

    def _record_error(self, loop: str, exc: Exception) -> None:
        if loop != ARRIVALS:
            return
        with self._lock:
            self._state = replace(self._state, loading=False, error=str(exc))
        self._notify()

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update()


__all__ = ["BoardState", "StopBoardSession"]
