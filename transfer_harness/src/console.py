"""
Console capture for the page under test.

The page logs its outcome as a JSON event, e.g.

    {"event": "transfer.success", "message": "✅ Transfer successful", "transactionId": "12345"}

ConsoleRecorder keeps every console message in arrival order and parses
those events so assertions can check the event kind rather than grep the
human text. Plain-text messages stay matchable through the legacy markers.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TransferEvent(str, Enum):
    SUCCESS = "transfer.success"
    FAILURE = "transfer.failure"


LEGACY_MARKERS: Dict[str, tuple[str, ...]] = {
    TransferEvent.SUCCESS.value: ("Transfer successful", "✅"),
    TransferEvent.FAILURE.value: ("Transfer failed", "❌"),
}


@dataclass(frozen=True)
class ConsoleRecord:
    severity: str
    text: str
    kind: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(cls, severity: str, text: str) -> "ConsoleRecord":
        try:
            data = json.loads(text)
        except ValueError:
            return cls(severity=severity, text=text)
        if isinstance(data, dict) and isinstance(data.get("event"), str):
            return cls(severity=severity, text=text, kind=data["event"], payload=data)
        return cls(severity=severity, text=text)

    @property
    def message(self) -> str:
        """Human-readable text: the event's message, or the raw console text."""
        return str(self.payload.get("message", self.text))

    def is_event(self, kind: TransferEvent | str) -> bool:
        kind_value = kind.value if isinstance(kind, TransferEvent) else str(kind)
        if self.kind is not None:
            return self.kind == kind_value
        markers = LEGACY_MARKERS.get(kind_value, ())
        return any(marker in self.text for marker in markers)


class ConsoleRecorder:
    def __init__(self):
        self.records: List[ConsoleRecord] = []

    def attach(self, page: Any) -> "ConsoleRecorder":
        page.on("console", self._on_console)
        return self

    def _on_console(self, msg: Any) -> None:
        self.records.append(ConsoleRecord.from_text(msg.type, msg.text))

    def events(self, kind: TransferEvent | str) -> List[ConsoleRecord]:
        return [record for record in self.records if record.is_event(kind)]

    def has_event(self, kind: TransferEvent | str) -> bool:
        return bool(self.events(kind))

    def clear(self) -> None:
        self.records = []
