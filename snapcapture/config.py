"""Application configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
DATA_DIR = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
DB_PATH = DATA_DIR / "snapcapture.db"
LOG_DIR = DATA_DIR / "logs"

# Capture manager service
CAPTURE_MANAGER_HOST = os.getenv("CAPTURE_MANAGER_HOST", "127.0.0.1")
CAPTURE_MANAGER_PORT = int(os.getenv("CAPTURE_MANAGER_PORT", "8025"))
CAPTURE_MANAGER_URL = f"http://{CAPTURE_MANAGER_HOST}:{CAPTURE_MANAGER_PORT}"

# Browser
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "false").lower() == "true"
BROWSER_VIEWPORT = {"width": 1366, "height": 768}

# Navigation
NAVIGATION_TIMEOUT = float(os.getenv("NAVIGATION_TIMEOUT", "60"))
NAVIGATION_SETTLE_DELAY = float(os.getenv("NAVIGATION_SETTLE_DELAY", "0.25"))

# UI messaging
MESSAGE_RETRY_ATTEMPTS = int(os.getenv("MESSAGE_RETRY_ATTEMPTS", "3"))
MESSAGE_RETRY_DELAY = float(os.getenv("MESSAGE_RETRY_DELAY", "0.2"))

# Upload
UPLOAD_TIMEOUT = float(os.getenv("UPLOAD_TIMEOUT", "120"))
UPLOAD_FILE_FIELD = os.getenv("UPLOAD_FILE_FIELD", "file")

# Navigation targets the page is allowed to request. "<all_urls>" allows any http(s) URL.
ALLOW_LIST = [
    entry.strip()
    for entry in os.getenv("ALLOW_LIST", "http://localhost:5177/").split(",")
    if entry.strip()
]

# Activation input bounds
MAX_URL_LENGTH = 2048
MAX_TOKEN_LENGTH = 256
MIN_SELECTION_PX = 5


def ensure_dirs():
    """Create required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
