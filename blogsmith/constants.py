"""Gemini URLs, CSS selectors, and DOM heuristics."""

# ── URLs ─────────────────────────────────────────────────────────────────────

GEMINI_BASE = "https://gemini.google.com"
GEMINI_APP_URL = f"{GEMINI_BASE}/app"
GOOGLE_LOGIN_HOSTS = ["accounts.google.com", "/ServiceLogin", "/signin"]

# ── Browser ──────────────────────────────────────────────────────────────────

# Resource types aborted on the primary (text) page. The image page loads everything.
BLOCKED_RESOURCE_TYPES = {"image", "stylesheet", "font", "media"}

VIEWPORT = {"width": 1366, "height": 900}

# ── CSS Selectors ────────────────────────────────────────────────────────────

SELECTORS = {
    # Prompt input: plain textarea or a rich editable region
    "input": 'textarea, div[role="textbox"]',

    # Response containers
    "response": "message-content",
    "image_response": "model-response, message-content",

    # Completion signals
    "copy_button": 'button[aria-label*="Copy"], button[data-tooltip*="Copy"], button[title*="Copy"]',
    "stop_button": 'button[aria-label*="Stop"], button[aria-label*="stop"]',
    "typing_indicator": '.typing-indicator, .cursor, [class*="typing"]',

    # Text extraction
    "code_block": 'pre code, code[class*="language-"], .code-block code',
    "markdown": ".markdown",

    # Image extraction
    "image_candidates": "img, canvas",
}

# ── Image Heuristics ─────────────────────────────────────────────────────────

# Substrings in src/alt/class that mark an element as UI chrome, not content
IMAGE_CHROME_MARKERS = [
    "icon",
    "avatar",
    "logo",
    "profile",
    "favicon",
    "sprite",
    "emoji",
    "data:image/svg",
]

MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}
