import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright


async def _chromium_launches() -> bool:
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=True)
            await browser.close()
    except PlaywrightError:
        return False
    return True


@pytest.fixture(scope="session")
def chromium_available() -> None:
    if not asyncio.run(_chromium_launches()):
        pytest.skip("Chromium is not installed (run `playwright install chromium`)")


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "tests/e2e" in item.nodeid.replace("\\", "/"):
            item.add_marker(pytest.mark.e2e)
