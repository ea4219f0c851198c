"""Free-text sanitization and email validation."""
import re
from typing import Any

SCRIPT_BLOCK_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
TAG_RE = re.compile(r"<[^>]*>")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Field length caps applied at the API edge
MAX_NAME = 100
MAX_EMAIL = 100
MAX_PHONE = 20
MAX_CITY = 100
MAX_RELATIONSHIP = 50
MAX_CONNECTED_THROUGH = 100
MAX_BRANCH = 200
MAX_CAPTION = 25
MAX_UPLOADER = 50


def sanitize_string(value: Any, max_length: int) -> str:
    """Strip script blocks and tags, trim, and truncate to max_length."""
    if not isinstance(value, str):
        return ""
    cleaned = SCRIPT_BLOCK_RE.sub("", value)
    cleaned = TAG_RE.sub("", cleaned)
    return cleaned.strip()[:max_length]


def validate_email(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return EMAIL_RE.match(value) is not None
