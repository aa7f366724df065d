"""Typed progress events and the ordered channel that carries them to the caller."""

from __future__ import annotations

import json
import logging
import queue
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

LOGGER = logging.getLogger(__name__)

STATUS = "status"
PROGRESS = "progress"
PAPERS = "papers"
ERROR = "error"
COMPLETE = "complete"

EVENT_KINDS = frozenset({STATUS, PROGRESS, PAPERS, ERROR, COMPLETE})

PHASE_INIT = "init"
PHASE_GENERATING = "generating"
PHASE_DONE = "done"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        """Frame the event as ``event: <kind>\\ndata: <json>\\n\\n``."""
        return f"event: {self.kind}\ndata: {json.dumps(self.data, ensure_ascii=False)}\n\n"


def status_event(message: str, phase: str) -> ProgressEvent:
    return ProgressEvent(STATUS, {"message": message, "phase": phase})


def progress_event(page: int, total_so_far: int, message: str) -> ProgressEvent:
    return ProgressEvent(PROGRESS, {"page": page, "totalSoFar": total_so_far, "message": message})


def papers_event(new_count: int, total_so_far: int, latest_title: str) -> ProgressEvent:
    return ProgressEvent(PAPERS, {"newCount": new_count, "totalSoFar": total_so_far, "latestTitle": latest_title})


def error_event(message: str) -> ProgressEvent:
    return ProgressEvent(ERROR, {"message": message})


def complete_event(total_records: int, filename: str, message: str | None = None) -> ProgressEvent:
    data: dict[str, Any] = {"totalRecords": total_records, "filename": filename}
    if message:
        data["message"] = message
    return ProgressEvent(COMPLETE, data)


_CLOSED = object()


class ProgressChannel:
    """Single-producer, single-consumer FIFO of progress events.

    ``emit`` never blocks. Iterating yields events in emission order and
    stops once the producer has called ``close``. Events emitted after
    ``close`` are dropped.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            LOGGER.debug("Dropping %s event emitted after channel close", event.kind)
            return
        self._queue.put(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item
