"""Caller-side reconstruction of a harvest from its event stream."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from progress_channel import COMPLETE, ERROR, PAPERS, PHASE_GENERATING, PROGRESS, STATUS, ProgressEvent

LOGGER = logging.getLogger(__name__)


class SSEDecoder:
    """Incremental parser for ``event:``/``data:`` frames.

    Chunks may split lines (or UTF-8 sequences) anywhere; incomplete input
    is buffered until the next ``feed``. A ``data:`` line whose payload is
    not a JSON object is dropped and parsing carries on.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pending_kind: str | None = None
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: str | bytes) -> list[ProgressEvent]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk

        *lines, self._buffer = self._buffer.split("\n")
        events: list[ProgressEvent] = []
        for raw_line in lines:
            event = self._parse_line(raw_line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    def _parse_line(self, line: str) -> ProgressEvent | None:
        if line.startswith("event:"):
            self._pending_kind = line[len("event:"):].strip()
            return None
        if not line.startswith("data:") or not self._pending_kind:
            return None

        kind, self._pending_kind = self._pending_kind, None
        try:
            data = json.loads(line[len("data:"):].strip())
        except json.JSONDecodeError:
            LOGGER.debug("Skipping malformed %s payload: %r", kind, line)
            return None
        if not isinstance(data, dict):
            LOGGER.debug("Skipping non-object %s payload: %r", kind, line)
            return None
        return ProgressEvent(kind, data)


class HarvestPhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(slots=True)
class HarvestView:
    """UI-facing model of a harvest, driven only by progress events."""

    phase: HarvestPhase = HarvestPhase.IDLE
    page: int = 0
    total_records: int = 0
    message: str = ""
    latest_title: str = ""
    filename: str = ""
    error_message: str = ""

    @property
    def download_ready(self) -> bool:
        return self.phase is HarvestPhase.COMPLETE and bool(self.filename) and self.total_records > 0

    def apply(self, event: ProgressEvent) -> None:
        data = event.data
        if self.phase is HarvestPhase.IDLE:
            self.phase = HarvestPhase.SEARCHING

        if event.kind == STATUS:
            if self.phase is HarvestPhase.ERROR:
                return
            self.message = _as_str(data.get("message"), self.message)
            if data.get("phase") == PHASE_GENERATING:
                self.phase = HarvestPhase.GENERATING
        elif event.kind == PROGRESS:
            self.page = _as_int(data.get("page"), self.page)
            self.total_records = _as_int(data.get("totalSoFar"), self.total_records)
            if self.phase is not HarvestPhase.ERROR:
                self.message = _as_str(data.get("message"), self.message)
        elif event.kind == PAPERS:
            self.total_records = _as_int(data.get("totalSoFar"), self.total_records)
            self.latest_title = _as_str(data.get("latestTitle"), self.latest_title)
        elif event.kind == ERROR:
            self.phase = HarvestPhase.ERROR
            self.error_message = _as_str(data.get("message"), "Unknown error")
            self.message = self.error_message
        elif event.kind == COMPLETE:
            # A complete after an error still delivers the partial artifact.
            self.phase = HarvestPhase.COMPLETE
            self.total_records = _as_int(data.get("totalRecords"), self.total_records)
            self.filename = _as_str(data.get("filename"), "")
            if self.total_records > 0:
                self.message = f"Successfully harvested {self.total_records} papers!"
            else:
                self.message = _as_str(data.get("message"), "No papers found for this search query.")
        else:
            LOGGER.debug("Ignoring unknown event kind %r", event.kind)


def consume(
    chunks: Iterable[str | bytes],
    view: HarvestView | None = None,
    on_event: Callable[[ProgressEvent], None] | None = None,
) -> HarvestView:
    """Fold a stream of raw transport chunks into a HarvestView."""
    if view is None:
        view = HarvestView()
    decoder = SSEDecoder()
    for chunk in chunks:
        for event in decoder.feed(chunk):
            view.apply(event)
            if on_event is not None:
                on_event(event)
    return view


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default


def _as_str(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default
