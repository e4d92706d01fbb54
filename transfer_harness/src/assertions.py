from typing import Any, Iterable, Optional

from transfer_harness.src.console import ConsoleRecorder, TransferEvent
from transfer_harness.src.exceptions import ScenarioAssertionError
from transfer_harness.src.intercept import CapturedRequest


def assert_text_contains(text: Optional[str], fragments: Iterable[str]) -> None:
    observed = text or ""
    for fragment in fragments:
        if fragment not in observed:
            raise ScenarioAssertionError("terminal message text", f"...{fragment}...", observed)


def _same_value(expected: Any, actual: Any) -> bool:
    # 250.75 must not match "250.75", and True must not match 1
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    if isinstance(expected, (int, float)):
        return isinstance(actual, (int, float)) and expected == actual
    return type(expected) is type(actual) and expected == actual


def assert_captured_request(
    captured: Optional[CapturedRequest],
    method: str,
    body: dict,
    content_type: Optional[str] = None,
) -> None:
    if captured is None:
        raise ScenarioAssertionError("captured request", "one intercepted call", None)
    if captured.method != method:
        raise ScenarioAssertionError("request method", method, captured.method)
    if content_type is not None and content_type not in captured.content_type:
        raise ScenarioAssertionError("request content-type", content_type, captured.content_type)
    if not isinstance(captured.body, dict):
        raise ScenarioAssertionError("request body", "a JSON object", captured.raw_body)
    for key, expected in body.items():
        actual = captured.body.get(key)
        if not _same_value(expected, actual):
            raise ScenarioAssertionError(f"request body field '{key}'", expected, actual)


def assert_console_event(recorder: ConsoleRecorder, kind: TransferEvent) -> None:
    if not recorder.has_event(kind):
        raise ScenarioAssertionError(
            "console event",
            kind.value,
            [record.text for record in recorder.records],
        )
