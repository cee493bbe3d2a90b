from __future__ import annotations
import re
from typing import Optional
from urllib.parse import urlsplit

_LABEL = r"[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?"
URL_PATTERN = re.compile(rf"^(https?://)?{_LABEL}(\.{_LABEL})*(/.*)?$", re.IGNORECASE)


def _parses(candidate: str) -> bool:
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc) and " " not in candidate


def valid_url(text: Optional[str]) -> Optional[str]:
    """
    Normalize user input into an absolute URL string.

    "example.com/x" becomes "https://example.com/x"; input that already
    carries a scheme is kept as typed. Returns None when nothing usable
    can be built.
    """
    if text is None:
        return None
    trimmed = text.strip()
    if not trimmed:
        return None

    if "://" in trimmed:
        return trimmed if _parses(trimmed) else None

    # looks like a domain
    if "." in trimmed and not trimmed.lower().startswith("http"):
        candidate = f"https://{trimmed}"
        return candidate if _parses(candidate) else None

    return None


def is_valid_url_format(text: Optional[str]) -> bool:
    if text is None:
        return False
    trimmed = text.strip()
    if not trimmed:
        return False
    return URL_PATTERN.match(trimmed) is not None
