import json

from tests.fakes import FakePage
from transfer_harness.src.console import ConsoleRecord, ConsoleRecorder, TransferEvent


def test_structured_event_is_parsed() -> None:
    text = json.dumps({"event": "transfer.success", "message": "✅ Transfer successful", "transactionId": "12345"})
    record = ConsoleRecord.from_text("log", text)

    assert record.kind == "transfer.success"
    assert record.payload["transactionId"] == "12345"
    assert record.message == "✅ Transfer successful"
    assert record.is_event(TransferEvent.SUCCESS)
    assert not record.is_event(TransferEvent.FAILURE)


def test_plain_text_falls_back_to_markers() -> None:
    success = ConsoleRecord.from_text("log", "✅ Transfer successful: {...}")
    failure = ConsoleRecord.from_text("error", "❌ Transfer failed: Insufficient funds")
    unrelated = ConsoleRecord.from_text("log", "page ready")

    assert success.kind is None
    assert success.is_event("transfer.success")
    assert failure.is_event(TransferEvent.FAILURE)
    assert not unrelated.is_event(TransferEvent.SUCCESS)
    assert not unrelated.is_event(TransferEvent.FAILURE)
    assert unrelated.message == "page ready"


def test_json_without_event_key_is_plain_text() -> None:
    record = ConsoleRecord.from_text("log", json.dumps({"message": "Transfer failed"}))
    assert record.kind is None
    # marker fallback still applies to the raw text
    assert record.is_event(TransferEvent.FAILURE)


def test_recorder_keeps_arrival_order_and_filters() -> None:
    page = FakePage()
    recorder = ConsoleRecorder().attach(page)

    page._console("log", "page ready")
    page._console("error", json.dumps({"event": "transfer.failure", "message": "❌ Transfer failed"}))
    page._console("log", json.dumps({"event": "transfer.success", "message": "✅ Transfer successful"}))

    assert [r.severity for r in recorder.records] == ["log", "error", "log"]
    assert [r.message for r in recorder.events(TransferEvent.FAILURE)] == ["❌ Transfer failed"]
    assert recorder.has_event(TransferEvent.SUCCESS)

    recorder.clear()
    assert recorder.records == []
    assert not recorder.has_event(TransferEvent.SUCCESS)


def test_unknown_event_kind_is_simply_absent() -> None:
    page = FakePage()
    recorder = ConsoleRecorder().attach(page)
    page._console("log", json.dumps({"event": "transfer.success", "message": "✅ Transfer successful"}))
    page._console("log", "✅ Transfer successful (plain)")

    assert recorder.has_event("transfer.refunded") is False
    assert recorder.events("other.kind") == []
    assert recorder.has_event("transfer.success")
