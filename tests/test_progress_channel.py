import json
import threading

from progress_channel import (
    ProgressChannel,
    ProgressEvent,
    complete_event,
    papers_event,
    progress_event,
    status_event,
)


def test_to_sse_framing() -> None:
    frame = status_event("Starting search...", "init").to_sse()

    assert frame == 'event: status\ndata: {"message": "Starting search...", "phase": "init"}\n\n'


def test_to_sse_keeps_non_ascii_titles() -> None:
    frame = papers_event(10, 10, "Étude génomique").to_sse()

    payload = json.loads(frame.split("data: ", 1)[1])
    assert payload == {"newCount": 10, "totalSoFar": 10, "latestTitle": "Étude génomique"}
    assert "Étude" in frame


def test_complete_event_message_is_optional() -> None:
    assert complete_event(5, "a.csv").data == {"totalRecords": 5, "filename": "a.csv"}
    assert complete_event(0, "", "nothing").data["message"] == "nothing"


def test_channel_preserves_order_and_stops_at_close() -> None:
    channel = ProgressChannel()
    events = [progress_event(i, i * 10, f"Fetched page {i}") for i in range(1, 4)]
    for event in events:
        channel.emit(event)
    channel.close()

    assert list(channel) == events


def test_emit_after_close_is_dropped() -> None:
    channel = ProgressChannel()
    channel.close()
    channel.emit(ProgressEvent("status", {}))

    assert channel.closed
    assert list(channel) == []


def test_channel_across_threads() -> None:
    channel = ProgressChannel()

    def produce() -> None:
        for i in range(100):
            channel.emit(progress_event(i, i, ""))
        channel.close()

    producer = threading.Thread(target=produce)
    producer.start()
    pages = [event.data["page"] for event in channel]
    producer.join()

    assert pages == list(range(100))
