"""Structured exception hierarchy for the harness."""
from typing import Any, Optional


class HarnessException(Exception):
    """Base class for every harness error."""
    def __init__(self, message: str, error_code: str = "HARNESS_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class InterceptConfigError(HarnessException, ValueError):
    """Invalid interception rule or fabricated response."""
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "INTERCEPT_CONFIG", details)


class TerminalStateTimeout(HarnessException):
    """The page never reached the expected terminal DOM state."""
    def __init__(self, selector: str, timeout_ms: int, details: Optional[dict[str, Any]] = None):
        message = f"Timed out after {timeout_ms}ms waiting for '{selector}'"
        observed = (details or {}).get("observed_state")
        if observed:
            message += f" (page reached '{observed}' instead)"
        super().__init__(message, "TERMINAL_STATE_TIMEOUT",
                         details or {"selector": selector, "timeout_ms": timeout_ms})


class ScenarioAssertionError(HarnessException, AssertionError):
    """An observed value did not match the scenario's expectation."""
    def __init__(self, what: str, expected: Any, actual: Any):
        message = f"{what}: expected {expected!r}, got {actual!r}"
        super().__init__(message, "ASSERTION_FAILED",
                         {"what": what, "expected": expected, "actual": actual})


class PortBindError(HarnessException):
    """The static content host port could not be reserved or bound."""
    def __init__(self, host: str, port: int, reason: str):
        message = f"Cannot bind {host}:{port}: {reason}"
        super().__init__(message, "PORT_BIND", {"host": host, "port": port, "reason": reason})
