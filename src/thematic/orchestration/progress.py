"""Progress-event emission with ordering guarantees."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from ..entities.reports import TOTAL_STAGES, LiveStats, ProgressEvent
from ..utils.logging import get_logger

_LOGGER = get_logger(module=__name__)

ProgressCallback = Callable[[ProgressEvent], None]

STAGE_NAMES: Dict[int, str] = {
    1: "Familiarization",
    2: "Initial Coding",
    3: "Theme Generation",
    4: "Theme Review",
    5: "Theme Definition",
    6: "Report Production",
}


class ProgressEmitter:
    """Deliver progress events for one run in a consistent order.

    ``sources_analyzed`` never decreases, stages never go backwards, the
    percentage never decreases within a stage and nothing is delivered after
    :meth:`close`. A failing consumer callback is logged and ignored since
    the final response is authoritative.
    """

    def __init__(self, run_id: str, callback: Optional[ProgressCallback] = None) -> None:
        self.run_id = run_id
        self._callback = callback
        self._closed = False
        self._stage = 0
        self._percentage = 0.0
        self._stats = LiveStats()
        self.events: List[ProgressEvent] = []
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def live_stats(self) -> LiveStats:
        return self._stats

    def close(self) -> None:
        self._closed = True

    def finish(self, operation: str, message: str = "") -> Optional[ProgressEvent]:
        """Deliver the terminal event on the current stage and close the emitter."""

        event = self.emit(max(self._stage, 1), self._percentage, message, current_operation=operation)
        self.close()
        return event

    def emit(
        self,
        stage_number: int,
        percentage: float,
        message: str = "",
        **stats: object,
    ) -> Optional[ProgressEvent]:
        if self._closed or stage_number < self._stage:
            self.dropped += 1
            return None
        if stage_number > self._stage:
            self._stage = stage_number
            self._percentage = 0.0
        percentage = min(100.0, max(self._percentage, float(percentage)))
        self._percentage = percentage

        update = {key: value for key, value in stats.items() if key in LiveStats.model_fields}
        analysed = update.get("sources_analyzed")
        if isinstance(analysed, int) and analysed < self._stats.sources_analyzed:
            update["sources_analyzed"] = self._stats.sources_analyzed
        self._stats = self._stats.model_copy(update=update)

        event = ProgressEvent(
            run_id=self.run_id,
            stage_name=STAGE_NAMES[stage_number],
            stage_number=stage_number,
            total_stages=TOTAL_STAGES,
            percentage=percentage,
            message=message,
            live_stats=self._stats,
        )
        self.events.append(event)
        if self._callback is not None:
            try:
                self._callback(event)
            except Exception as exc:
                _LOGGER.warning(
                    "Progress consumer raised; continuing",
                    run_id=self.run_id,
                    stage=stage_number,
                    error=str(exc),
                )
        return event


__all__ = ["ProgressCallback", "ProgressEmitter", "STAGE_NAMES"]
