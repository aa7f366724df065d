"""Pagination engine: pages through Scholar results and reports progress as events."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterator

from artifact_store import ArtifactStore
from csv_sink import derive_filename, encode_papers
from models import HarvestRequest, HarvestRun, TerminationReason
from progress_channel import (
    PHASE_DONE,
    PHASE_GENERATING,
    PHASE_INIT,
    ProgressChannel,
    ProgressEvent,
    complete_event,
    error_event,
    papers_event,
    progress_event,
    status_event,
)
from scholar_feed import PAGE_SIZE, UpstreamTransientError, UpstreamUnauthorized, fetch_page, normalize_page

# Pause between page fetches to stay under SerpAPI rate limits.
PAGE_DELAY_SECONDS = float(os.getenv("HARVEST_PAGE_DELAY_SECONDS", "1"))

LOGGER = logging.getLogger(__name__)

Emit = Callable[[ProgressEvent], None]

_DONE_MESSAGES = {
    TerminationReason.EXHAUSTED: "No more results found.",
    TerminationReason.LIMIT_REACHED: "Reached the requested number of results.",
    TerminationReason.UPSTREAM_ERROR: "Stopped after an upstream error.",
    TerminationReason.CANCELLED: "Stopped on request.",
}


def harvest(
    request: HarvestRequest,
    emit: Emit,
    store: ArtifactStore,
    cancel: threading.Event | None = None,
) -> HarvestRun:
    """Run one harvest to completion and return its final state.

    Pages are fetched one at a time, ``PAGE_SIZE`` results per page, until
    one of these holds (checked in order on every iteration): ``cancel`` is
    set, the offset reaches ``request.max_records``, the upstream fails, or
    a page comes back empty. Whatever was collected is encoded to CSV and
    registered in ``store``; the last event is ``complete``.

    An unauthorized response is the exception: it emits a final ``error``
    event and returns without producing an artifact or a ``complete`` event.
    """
    run = HarvestRun()
    emit(status_event("Starting search...", PHASE_INIT))
    LOGGER.info("Harvest started: query=%r max_records=%s", request.query, request.max_records)

    while not run.terminated:
        if cancel is not None and cancel.is_set():
            run.terminate(TerminationReason.CANCELLED)
            break

        start = run.page_index * PAGE_SIZE
        if start >= request.max_records:
            run.terminate(TerminationReason.LIMIT_REACHED)
            break

        page_num = run.page_index + 1
        try:
            results = fetch_page(request.credential, request.query, start)
        except UpstreamUnauthorized as exc:
            LOGGER.warning("Harvest aborted on page %s: %s", page_num, exc)
            run.terminate(TerminationReason.UNAUTHORIZED)
            emit(error_event(str(exc)))
            return run
        except UpstreamTransientError as exc:
            LOGGER.warning("Harvest stopped on page %s: %s", page_num, exc)
            run.terminate(TerminationReason.UPSTREAM_ERROR)
            emit(error_event(f"Error on page {page_num}: {exc}"))
            break

        emit(progress_event(page_num, len(run.accumulated), f"Fetched page {page_num}"))

        if not results:
            run.terminate(TerminationReason.EXHAUSTED)
            break

        papers = normalize_page(results)
        run.accumulated.extend(papers)
        run.page_index += 1
        latest_title = run.accumulated[-1].title if run.accumulated else ""
        emit(papers_event(len(papers), len(run.accumulated), latest_title))
        LOGGER.info("Page %s: +%s papers (total=%s)", page_num, len(papers), len(run.accumulated))

        if start + PAGE_SIZE < request.max_records:
            time.sleep(PAGE_DELAY_SECONDS)

    _finish(request, run, emit, store)
    return run


def _finish(request: HarvestRequest, run: HarvestRun, emit: Emit, store: ArtifactStore) -> None:
    total = len(run.accumulated)
    done_message = f"{_DONE_MESSAGES[run.termination_reason]} Total: {total} papers"

    if total == 0:
        emit(status_event(done_message, PHASE_DONE))
        emit(complete_event(0, "", "No papers found for this search query."))
        LOGGER.info("Harvest finished with no papers: reason=%s", run.termination_reason.value)
        return

    emit(status_event("Generating CSV...", PHASE_GENERATING))
    run.filename = derive_filename(request.query)
    store.put(run.filename, encode_papers(run.accumulated))

    emit(status_event(done_message, PHASE_DONE))
    emit(complete_event(total, run.filename))
    LOGGER.info(
        "Harvest finished: reason=%s papers=%s filename=%s",
        run.termination_reason.value,
        total,
        run.filename,
    )


def start_harvest(
    request: HarvestRequest,
    store: ArtifactStore,
    cancel: threading.Event,
) -> tuple[ProgressChannel, threading.Thread]:
    """Start ``harvest`` on a daemon worker thread feeding a fresh channel.

    The channel is closed by the worker after its final event, including
    when the run crashes.
    """
    channel = ProgressChannel()
    worker = threading.Thread(
        target=_run_worker,
        args=(request, channel, store, cancel),
        name="harvest-worker",
        daemon=True,
    )
    worker.start()
    return channel, worker


def stream_harvest(
    request: HarvestRequest,
    store: ArtifactStore,
    cancel: threading.Event | None = None,
) -> Iterator[str]:
    """Run ``harvest`` on a worker thread and yield its events as SSE frames.

    If the consumer stops iterating before the run is over (client
    disconnect), the cancel token is set and the worker stops at its next
    page boundary.
    """
    if cancel is None:
        cancel = threading.Event()
    channel, worker = start_harvest(request, store, cancel)

    try:
        for event in channel:
            yield event.to_sse()
    finally:
        if worker.is_alive():
            LOGGER.info("Consumer went away; cancelling harvest for query=%r", request.query)
        cancel.set()


def _run_worker(
    request: HarvestRequest,
    channel: ProgressChannel,
    store: ArtifactStore,
    cancel: threading.Event,
) -> None:
    try:
        harvest(request, channel.emit, store, cancel)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Harvest crashed for query=%r", request.query)
        channel.emit(error_event(f"Harvest failed: {exc}"))
    finally:
        channel.close()
