import logging
import platform
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from transfer_harness.logger import HARNESS_LOGGER_NAME
from transfer_harness.src.utils.constants import BROWSER_DEVICE, BROWSER_LAUNCH_TIMEOUT_MS

harness_log = logging.getLogger(HARNESS_LOGGER_NAME)


def build_launch_args() -> List[str]:
    args: List[str] = [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-background-networking",
        "--disable-default-apps",
        "--disable-extensions",
        "--no-first-run",
        "--no-default-browser-check",
    ]
    if platform.system().lower() == "linux":
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])
    return args


def device_options(pw: Playwright, device: Optional[str]) -> Dict[str, Any]:
    """new_context() kwargs for a named Playwright device profile."""
    if not device:
        return {}
    descriptor = dict(pw.devices[device])
    descriptor.pop("default_browser_type", None)
    return descriptor


class BrowserContextManager:
    """
    Context manager for the playwright driver and a single Chromium browser.

    Scenarios never share state: every new_page() call opens a fresh
    BrowserContext, and closing it discards its routes, cookies and storage.
    """

    def __init__(
        self,
        headless: bool = True,
        device: Optional[str] = BROWSER_DEVICE,
        launch_timeout_ms: float = BROWSER_LAUNCH_TIMEOUT_MS,
    ):
        self.headless = headless
        self.device = device
        self.launch_timeout_ms = launch_timeout_ms
        self.pw: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.contexts: List[BrowserContext] = []

    async def __aenter__(self) -> "BrowserContextManager":
        try:
            self.pw = await async_playwright().start()
            self.browser = await self.pw.chromium.launch(
                headless=self.headless,
                args=build_launch_args(),
                timeout=self.launch_timeout_ms,
            )
            harness_log.info("Browser started (headless=%s, device=%s)", self.headless, self.device)
            return self
        except BaseException:
            await self._cleanup_resources()
            raise

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[Page]:
        if self.pw is None or self.browser is None:
            raise RuntimeError("BrowserContextManager has not been entered")
        context = await self.browser.new_context(**device_options(self.pw, self.device))
        self.contexts.append(context)
        try:
            yield await context.new_page()
        finally:
            self.contexts.remove(context)
            await context.close()

    async def _cleanup_resources(self):
        for context in list(self.contexts):
            await context.close()
        self.contexts = []

        if self.browser:
            await self.browser.close()
            self.browser = None

        if self.pw:
            await self.pw.stop()
            self.pw = None

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        harness_log.info("Terminating browser ...")
        await self._cleanup_resources()
