import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

PACKAGE_ROOT = Path(__file__).resolve().parents[2]

# static content host
STATIC_HOST = "127.0.0.1"
STATIC_PORT = 3000
TRANSFER_PAGE_DIR = PACKAGE_ROOT / "sites" / "tests" / "transfer_page"
TRANSFER_PAGE = TRANSFER_PAGE_DIR / "transfer-page.html"
FIXTURE_SERVER_READY_TIMEOUT = 10.0

# interception
TRANSFER_API_PATTERN = "**/api/transfer"

# scenario timings (ms)
TERMINAL_STATE_TIMEOUT_MS = 10_000
CONSOLE_SETTLE_MS = 500

# browser
BROWSER_DEVICE = "Desktop Chrome"
BROWSER_LAUNCH_TIMEOUT_MS = 30_000

# selectors
RECIPIENT_INPUT = "#recipient"
AMOUNT_INPUT = "#amount"
SUBMIT_BUTTON = 'button[type="submit"]'
SUCCESS_MESSAGE = ".message.success"
ERROR_MESSAGE = ".message.error"

# folders
HARNESS_FOLDER = Path(".harness")
LOCK_DB_PATH = HARNESS_FOLDER / "locks.db"
LOG_DIR = Path(os.getenv("HARNESS_LOG_DIR", str(HARNESS_FOLDER / "logs")))
LOG_LEVEL = os.getenv("HARNESS_LOG_LEVEL", "info")

# port reservation lease, outlives any single suite run
PORT_LOCK_LEASE_SECONDS = 30 * 60
PORT_LOCK_BLOCKING_TIMEOUT = 10
