"""
Request interception for a single scenario.

InterceptHarness binds glob patterns to responders on a Playwright Page (or
BrowserContext). Each intercepted call is snapshotted as a CapturedRequest,
handed to the responder, and answered with whatever the responder decided:
a FabricatedResponse is fulfilled, an AbortSignal aborts the call at the
transport layer so the page sees no response at all.

Usage:
    harness = InterceptHarness(page)
    await harness.register_rule("**/api/transfer", success_fixture("12345"))
    await page.goto(url)
    ...
    assert harness.last_request.method == "POST"
    await harness.clear()
"""
import inspect
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from playwright.async_api import Route

from transfer_harness.logger import MOCK_LOGGER_NAME
from transfer_harness.src.exceptions import InterceptConfigError

mock_log = logging.getLogger(MOCK_LOGGER_NAME)

ABORT_REASONS = frozenset({
    "aborted",
    "accessdenied",
    "addressunreachable",
    "blockedbyclient",
    "blockedbyresponse",
    "connectionaborted",
    "connectionclosed",
    "connectionfailed",
    "connectionrefused",
    "connectionreset",
    "internetdisconnected",
    "namenotresolved",
    "timedout",
    "failed",
})

CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, OPTIONS",
    "access-control-allow-headers": "content-type",
}


def _is_json_content_type(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


@dataclass(frozen=True)
class FabricatedResponse:
    status: int
    content_type: str = "application/json"
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not 100 <= self.status <= 599:
            raise InterceptConfigError(f"Invalid HTTP status {self.status}")
        if _is_json_content_type(self.content_type):
            try:
                json.loads(self.body)
            except ValueError as exc:
                raise InterceptConfigError(
                    f"Body declared as {self.content_type} is not valid JSON: {self.body!r}"
                ) from exc

    @classmethod
    def json(cls, status: int, payload: Any, headers: Optional[Dict[str, str]] = None) -> "FabricatedResponse":
        return cls(
            status=status,
            content_type="application/json",
            body=json.dumps(payload),
            headers=dict(headers or {}),
        )


@dataclass(frozen=True)
class AbortSignal:
    reason: str = "failed"

    def __post_init__(self):
        if self.reason not in ABORT_REASONS:
            raise InterceptConfigError(
                f"Unknown abort reason '{self.reason}'. Try one of: {', '.join(sorted(ABORT_REASONS))}"
            )


@dataclass(frozen=True)
class CapturedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    raw_body: Optional[str]
    body: Any = None

    @classmethod
    def from_request(cls, request: Any) -> "CapturedRequest":
        raw_body = request.post_data
        body = None
        if raw_body:
            try:
                body = json.loads(raw_body)
            except ValueError:
                body = None
        return cls(
            method=request.method,
            url=request.url,
            headers={k.lower(): v for k, v in request.headers.items()},
            raw_body=raw_body,
            body=body,
        )

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


Outcome = Union[FabricatedResponse, AbortSignal]
Responder = Callable[[CapturedRequest], Union[Outcome, Awaitable[Outcome]]]


# characters that are literal in a URL glob but special in a regex
_REGEX_SPECIAL = frozenset("$^+.*()|\\?{}[]")


def _literal(c: str) -> str:
    return "\\" + c if c in _REGEX_SPECIAL else c


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """
    Translate a URL glob into a compiled regex, following page.route():
    `*` stops at `/`, `**` crosses it, `/**/` may match a single `/`,
    `{a,b}` alternates, `\\` escapes the next character and `?` is literal.
    """
    tokens: List[str] = ["^"]
    in_group = False
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            i += 1
            tokens.append(_literal(pattern[i]))
        elif c == "*":
            before = pattern[i - 1] if i > 0 else None
            stars = 1
            while pattern[i + 1:i + 2] == "*":
                stars += 1
                i += 1
            if stars == 1:
                tokens.append("([^/]*)")
            elif pattern[i + 1:i + 2] == "/":
                tokens.append("((.+/)|)" if before == "/" else "(.*/)")
                i += 1
            else:
                tokens.append("(.*)")
        elif c == "{":
            in_group = True
            tokens.append("(")
        elif c == "}":
            in_group = False
            tokens.append(")")
        elif c == ",":
            tokens.append("|" if in_group else "\\,")
        else:
            tokens.append(_literal(c))
        i += 1
    tokens.append("$")
    return re.compile("".join(tokens))


@dataclass
class InterceptRule:
    pattern: str
    responder: Responder

    def __post_init__(self):
        if not isinstance(self.pattern, str) or not self.pattern.strip():
            raise InterceptConfigError("Interception pattern must be a non-empty string")
        if not callable(self.responder):
            raise InterceptConfigError(
                f"Responder for '{self.pattern}' is not callable: {self.responder!r}"
            )
        self._regex = glob_to_regex(self.pattern)

    def matches(self, url: str) -> bool:
        return bool(self._regex.match(url))


class InterceptHarness:
    """Owns the interception rules and captured requests of one scenario."""

    def __init__(self, target: Any, *, logger: Optional[logging.Logger] = None):
        self._target = target
        self._rules: Dict[str, InterceptRule] = {}
        self._history: List[CapturedRequest] = []
        self.errors: List[str] = []
        self.log = logger or mock_log

    @property
    def rules(self) -> List[InterceptRule]:
        return list(self._rules.values())

    @property
    def last_request(self) -> Optional[CapturedRequest]:
        return self._history[-1] if self._history else None

    async def register_rule(self, pattern: str, responder: Responder) -> None:
        rule = InterceptRule(pattern, responder)
        if pattern in self._rules:
            self.log.info("Replacing interception rule for %s", pattern)
            await self._target.unroute(pattern)
        self._rules[pattern] = rule

        async def _handler(route: Route) -> None:
            await self._handle(rule, route)

        await self._target.route(pattern, _handler)
        self.log.info("Registered interception rule for %s", pattern)

    async def _handle(self, rule: InterceptRule, route: Route) -> None:
        request = route.request
        if request.method == "OPTIONS":
            await route.fulfill(status=204, headers=CORS_HEADERS, body="")
            return

        captured = CapturedRequest.from_request(request)
        self._history.append(captured)
        self.log.info("Intercepted %s %s", captured.method, captured.url)

        try:
            outcome = rule.responder(captured)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as exc:
            self._record_error(f"Responder for '{rule.pattern}' raised {type(exc).__name__}: {exc}")
            await route.abort("failed")
            return

        if isinstance(outcome, AbortSignal):
            self.log.info("Aborting %s with '%s'", captured.url, outcome.reason)
            await route.abort(outcome.reason)
        elif isinstance(outcome, FabricatedResponse):
            self.log.info("Fulfilling %s with HTTP %s", captured.url, outcome.status)
            await route.fulfill(
                status=outcome.status,
                content_type=outcome.content_type,
                body=outcome.body,
                headers={**CORS_HEADERS, **outcome.headers},
            )
        else:
            self._record_error(
                f"Responder for '{rule.pattern}' returned {type(outcome).__name__}, "
                "expected FabricatedResponse or AbortSignal"
            )
            await route.abort("failed")

    def _record_error(self, message: str) -> None:
        self.log.error(message)
        self.errors.append(message)

    def get_history(self) -> List[CapturedRequest]:
        return list(self._history)

    async def flush(self) -> List[CapturedRequest]:
        history, self._history = self._history, []
        return history

    async def clear(self) -> None:
        for pattern in list(self._rules):
            await self._target.unroute(pattern)
        self._rules.clear()
        self._history = []
        self.errors = []
