"""
Scenario runner for the transfer page.

One routine drives every scenario: register the interception rule, load the
page, fill the form, submit, wait for the expected terminal message, then
check the message text, the captured request and the console events.
The only knob that differs between the served and the local-file flavours
of the suite is the NavigationStrategy.
"""
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from transfer_harness.base import BrowserContextManager
from transfer_harness.logger import HARNESS_LOGGER_NAME
from transfer_harness.sites.tests.fixture_server import FixtureServer, load_app
from transfer_harness.sites.tests.registry import TRANSFER_PAGE_MODULE
from transfer_harness.sites.tests.scenario import Scenario, TerminalState
from transfer_harness.src.assertions import (
    assert_captured_request,
    assert_console_event,
    assert_text_contains,
)
from transfer_harness.src.console import ConsoleRecord, ConsoleRecorder
from transfer_harness.src.exceptions import (
    InterceptConfigError,
    ScenarioAssertionError,
    TerminalStateTimeout,
)
from transfer_harness.src.intercept import CapturedRequest, InterceptHarness
from transfer_harness.src.port_service import PortReservationService
from transfer_harness.src.utils.constants import (
    AMOUNT_INPUT,
    CONSOLE_SETTLE_MS,
    RECIPIENT_INPUT,
    STATIC_HOST,
    STATIC_PORT,
    SUBMIT_BUTTON,
    TERMINAL_STATE_TIMEOUT_MS,
    TRANSFER_API_PATTERN,
    TRANSFER_PAGE,
)

LOGGER = logging.getLogger(HARNESS_LOGGER_NAME)


class NavigationStrategy(str, Enum):
    HTTP = "http"
    FILE = "file"

    @property
    def load_state(self) -> str:
        return "load" if self is NavigationStrategy.HTTP else "networkidle"


@dataclass
class ScenarioResult:
    scenario: Scenario
    navigation: NavigationStrategy
    passed: bool = False
    terminal_state: Optional[TerminalState] = None
    message_text: Optional[str] = None
    captured_request: Optional[CapturedRequest] = None
    console_records: List[ConsoleRecord] = field(default_factory=list)
    error: Optional[str] = None
    screenshot: Optional[Path] = None


class ScenarioRunner:
    def __init__(
        self,
        browser: Any,
        *,
        navigation: NavigationStrategy = NavigationStrategy.HTTP,
        base_url: Optional[str] = None,
        page_path: Path = TRANSFER_PAGE,
        timeout_ms: int = TERMINAL_STATE_TIMEOUT_MS,
        settle_ms: int = CONSOLE_SETTLE_MS,
        screenshot_dir: Optional[Path] = None,
    ):
        if navigation is NavigationStrategy.HTTP and not base_url:
            raise ValueError("HTTP navigation needs a base_url")
        self.browser = browser
        self.navigation = navigation
        self.base_url = base_url
        self.page_path = Path(page_path)
        self.timeout_ms = timeout_ms
        self.settle_ms = settle_ms
        self.screenshot_dir = screenshot_dir

    @property
    def start_url(self) -> str:
        if self.navigation is NavigationStrategy.FILE:
            return self.page_path.resolve().as_uri()
        return f"{self.base_url.rstrip('/')}/"

    async def run(self, scenario: Scenario) -> ScenarioResult:
        """Run one scenario in a fresh page. Failures are reported, not raised."""
        result = ScenarioResult(scenario=scenario, navigation=self.navigation)
        async with self.browser.new_page() as page:
            recorder = ConsoleRecorder().attach(page)
            harness = InterceptHarness(page)
            try:
                await self.execute(scenario, page, harness, recorder, result)
            except (InterceptConfigError, ScenarioAssertionError, TerminalStateTimeout, PlaywrightError) as exc:
                result.error = str(exc)
                result.screenshot = await self._screenshot(page, scenario)
                LOGGER.error("Scenario %s (%s) failed: %s", scenario.number, scenario.slug, exc)
            else:
                result.passed = True
                LOGGER.info("Scenario %s (%s) passed", scenario.number, scenario.slug)
            finally:
                result.captured_request = harness.last_request
                result.console_records = list(recorder.records)
                await self._release_rules(harness, scenario)
        return result

    async def _release_rules(self, harness: InterceptHarness, scenario: Scenario) -> None:
        # closing the page's context drops its routes anyway
        try:
            await harness.clear()
        except PlaywrightError as exc:
            LOGGER.warning("Could not unroute rules of %s: %s", scenario.slug, exc)

    async def execute(
        self,
        scenario: Scenario,
        page: Any,
        harness: InterceptHarness,
        recorder: ConsoleRecorder,
        result: Optional[ScenarioResult] = None,
    ) -> None:
        """The interaction script. Raises on the first failed check."""
        responder = scenario.build_responder()
        if responder is not None:
            await harness.register_rule(TRANSFER_API_PATTERN, responder)
        else:
            LOGGER.warning("Scenario %s registers no interception rule", scenario.slug)

        await page.goto(self.start_url)
        await page.wait_for_load_state(self.navigation.load_state)

        await page.fill(RECIPIENT_INPUT, scenario.recipient)
        await page.fill(AMOUNT_INPUT, scenario.amount)
        await page.click(SUBMIT_BUTTON)

        try:
            text = await self._wait_for_terminal_state(page, scenario.expected_state)
        except TerminalStateTimeout:
            self._raise_on_responder_errors(harness)
            raise
        self._raise_on_responder_errors(harness)
        if result is not None:
            result.terminal_state = scenario.expected_state
            result.message_text = text

        assert_text_contains(text, scenario.expected_texts)

        expected_request = scenario.expected_request
        if expected_request is not None:
            assert_captured_request(
                harness.last_request,
                method=expected_request.method,
                body=expected_request.body,
                content_type=expected_request.content_type,
            )

        if scenario.expected_event is not None:
            # console events are delivered asynchronously
            await page.wait_for_timeout(self.settle_ms)
            assert_console_event(recorder, scenario.expected_event)

    async def _wait_for_terminal_state(self, page: Any, state: TerminalState) -> Optional[str]:
        try:
            await page.wait_for_selector(state.selector, timeout=self.timeout_ms)
        except PlaywrightTimeoutError as exc:
            observed = None
            if await page.query_selector(state.other.selector) is not None:
                observed = state.other.value
            raise TerminalStateTimeout(
                state.selector,
                self.timeout_ms,
                {"selector": state.selector, "timeout_ms": self.timeout_ms, "observed_state": observed},
            ) from exc
        return await page.text_content(state.selector)

    def _raise_on_responder_errors(self, harness: InterceptHarness) -> None:
        if harness.errors:
            raise ScenarioAssertionError("responder errors", [], list(harness.errors))

    async def _screenshot(self, page: Any, scenario: Scenario) -> Optional[Path]:
        if self.screenshot_dir is None:
            return None
        path = Path(self.screenshot_dir) / f"{scenario.number:02d}-{scenario.slug}-{self.navigation.value}.png"
        try:
            await page.screenshot(path=str(path), full_page=True)
        except Exception as exc:
            LOGGER.warning("Could not capture failure screenshot for %s: %s", scenario.slug, exc)
            return None
        return path


async def run_suite(
    scenarios: List[Scenario],
    *,
    navigation: NavigationStrategy = NavigationStrategy.HTTP,
    host: str = STATIC_HOST,
    port: int = STATIC_PORT,
    headless: bool = True,
    reservations: Optional[PortReservationService] = None,
    timeout_ms: int = TERMINAL_STATE_TIMEOUT_MS,
    settle_ms: int = CONSOLE_SETTLE_MS,
    screenshot_dir: Optional[Path] = None,
) -> List[ScenarioResult]:
    """
    Run `scenarios` one after another.

    With HTTP navigation the static host is started once for the whole suite
    and holds the port reservation until every scenario has finished.
    A PortBindError propagates and aborts the suite.
    """
    results: List[ScenarioResult] = []
    async with AsyncExitStack() as stack:
        base_url = None
        if navigation is NavigationStrategy.HTTP:
            server = FixtureServer(load_app(TRANSFER_PAGE_MODULE), host, port, reservations)
            await stack.enter_async_context(server)
            base_url = server.base_url

        browser = await stack.enter_async_context(BrowserContextManager(headless=headless))
        runner = ScenarioRunner(
            browser,
            navigation=navigation,
            base_url=base_url,
            timeout_ms=timeout_ms,
            settle_ms=settle_ms,
            screenshot_dir=screenshot_dir,
        )
        for scenario in scenarios:
            LOGGER.info("Executing scenario %s (%s) via %s", scenario.number, scenario.slug, navigation.value)
            results.append(await runner.run(scenario))

    passed = sum(1 for r in results if r.passed)
    LOGGER.info("%s/%s scenarios passed", passed, len(results))
    return results
