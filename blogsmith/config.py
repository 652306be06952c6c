"""Application configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
DATA_DIR = Path(os.getenv("DATA_DIR", Path(__file__).parent.parent / "data"))
DB_PATH = DATA_DIR / "blogsmith.db"
BROWSER_PROFILE_DIR = Path(os.getenv("BROWSER_PROFILE_DIR", DATA_DIR / "session-data"))
LOG_DIR = DATA_DIR / "logs"
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", Path(__file__).parent.parent / "public" / "uploads" / "media"))
UPLOADS_URL_PREFIX = os.getenv("UPLOADS_URL_PREFIX", "/uploads/media").rstrip("/")

# Session manager
SESSION_MANAGER_HOST = os.getenv("SESSION_MANAGER_HOST", "127.0.0.1")
SESSION_MANAGER_PORT = int(os.getenv("SESSION_MANAGER_PORT", "8024"))
SESSION_MANAGER_URL = f"http://{SESSION_MANAGER_HOST}:{SESSION_MANAGER_PORT}"

# Browser
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "false").lower() == "true"
BROWSER_TIMEOUT = int(os.getenv("BROWSER_TIMEOUT", "30000"))
LOGIN_TIMEOUT_MS = int(os.getenv("LOGIN_TIMEOUT_MS", "300000"))  # 5 minutes for a human to log in
INPUT_TIMEOUT_MS = int(os.getenv("INPUT_TIMEOUT_MS", "15000"))
INPUT_SETTLE_MS = int(os.getenv("INPUT_SETTLE_MS", "1000"))

# Completion heuristics (tuned against one Gemini UI version)
POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", "500"))
STABLE_DURATION_MS = int(os.getenv("STABLE_DURATION_MS", "1500"))
STABLE_CHECKS_NEEDED = int(os.getenv("STABLE_CHECKS_NEEDED", "5"))
FIRST_CONTENT_TIMEOUT_MS = int(os.getenv("FIRST_CONTENT_TIMEOUT_MS", "120000"))
RESPONSE_TIMEOUT_MS = int(os.getenv("RESPONSE_TIMEOUT_MS", "180000"))
OBSERVE_DELAY_MS = int(os.getenv("OBSERVE_DELAY_MS", "800"))
STRICT_COMPLETION = os.getenv("STRICT_COMPLETION", "false").lower() == "true"
DEFAULT_DOM_DELAY_MS = int(os.getenv("DEFAULT_DOM_DELAY_MS", "1000"))

# Extraction
MIN_BLOCK_LENGTH = int(os.getenv("MIN_BLOCK_LENGTH", "50"))
MIN_IMAGE_SIZE = int(os.getenv("MIN_IMAGE_SIZE", "200"))
IMAGE_POLL_INTERVAL_MS = int(os.getenv("IMAGE_POLL_INTERVAL_MS", "1500"))
IMAGE_TIMEOUT_MS = int(os.getenv("IMAGE_TIMEOUT_MS", "120000"))

# Request serialization
COOLDOWN_MS = int(os.getenv("COOLDOWN_MS", "2000"))
QUERY_MAX_ATTEMPTS = int(os.getenv("QUERY_MAX_ATTEMPTS", "1"))
RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "5"))


def ensure_dirs():
    """Create required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    BROWSER_PROFILE_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
