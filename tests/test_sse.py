from __future__ import annotations

from channel import SseDecoder, decode_event, encode_event
from core import RawEvent, ReadinessPing, TaskCompletion, UnknownEvent, UnparseableEvent


def test_decoder_dispatches_on_blank_line_with_default_event_name() -> None:
    decoder = SseDecoder()

    assert decoder.feed_line("data: ready") is None
    raw = decoder.feed_line("")

    assert raw == RawEvent(event="message", data="ready")


def test_decoder_joins_multiline_data_and_tracks_id() -> None:
    decoder = SseDecoder()
    lines = [
        ": keep-alive",
        "event: job_update",
        "id: 42",
        "data: {\"task_id\": \"t1\",",
        "data: \"success\": true}",
        "retry: 1500",
        "",
    ]

    events = list(decoder.feed(lines))

    assert len(events) == 1
    assert events[0].event == "job_update"
    assert events[0].data == "{\"task_id\": \"t1\",\n\"success\": true}"
    assert events[0].id == "42"
    assert decoder.last_event_id == "42"
    assert decoder.retry_ms == 1500


def test_decoder_ignores_frames_without_data() -> None:
    decoder = SseDecoder()
    assert list(decoder.feed(["event: cover_letter_update", "", "data: ready", ""])) == [
        RawEvent(event="message", data="ready")
    ]


def test_encode_event_round_trips_through_decoder() -> None:
    frame = encode_event("cover_letter_update", {"task_id": "abc", "success": True})
    decoder = SseDecoder()

    events = list(decoder.feed(frame.split("\n")))

    assert events[0].event == "cover_letter_update"
    assert decode_event(events[0]) == TaskCompletion(kind="cover_letter_update", task_id="abc", success=True)


def test_unlabeled_messages_map_to_readiness() -> None:
    assert decode_event(RawEvent(data="ready")) == ReadinessPing(ready=True)
    assert decode_event(RawEvent(data="READY")) == ReadinessPing(ready=True)
    assert decode_event(RawEvent(data="compiling")) == ReadinessPing(ready=False)
    assert decode_event(RawEvent(data='{"ready": true}')) == ReadinessPing(ready=True)
    assert decode_event(RawEvent(data='{"ready": "false"}')) == ReadinessPing(ready=False)
    assert decode_event(RawEvent(data="true")) == ReadinessPing(ready=True)


def test_unlabeled_message_without_ready_field_is_unparseable() -> None:
    event = decode_event(RawEvent(data='{"status": "ok"}'))

    assert isinstance(event, UnparseableEvent)
    assert event.name == "message"
    assert "ready" in event.reason


def test_empty_or_broken_payloads_never_raise() -> None:
    assert isinstance(decode_event(RawEvent(data="   ")), UnparseableEvent)
    assert isinstance(decode_event(RawEvent(data="{not json")), UnparseableEvent)
    assert isinstance(decode_event(RawEvent(event="job_update", data="{oops")), UnparseableEvent)
    assert isinstance(decode_event(RawEvent(event="job_update", data="[1, 2]")), UnparseableEvent)


def test_labeled_completion_keeps_extra_fields_in_payload() -> None:
    raw = RawEvent(
        event="job_update",
        data='{"task_id": "t9", "success": true, "jobs": [{"title": "SWE"}], "total_jobs": 1}',
    )

    event = decode_event(raw)

    assert isinstance(event, TaskCompletion)
    assert event.kind == "job_update"
    assert event.task_id == "t9"
    assert event.success is True
    assert event.error is None
    assert event.payload == {"jobs": [{"title": "SWE"}], "total_jobs": 1}


def test_labeled_failure_carries_error_text() -> None:
    event = decode_event(
        RawEvent(event="cover_letter_update", data='{"task_id": "t1", "success": false, "error": "  model down "}')
    )

    assert isinstance(event, TaskCompletion)
    assert event.success is False
    assert event.error == "model down"


def test_labeled_event_without_success_is_unknown() -> None:
    assert decode_event(RawEvent(event="heartbeat", data='{"ts": 1}')) == UnknownEvent(name="heartbeat")
