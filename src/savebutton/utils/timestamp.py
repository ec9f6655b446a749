"""Filename timestamp and slug helpers."""

import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """Return the UTC time as ``YYYY-MM-DDTHHMMSS``."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H%M%S")


def url_to_domain_slug(url: str) -> str:
    """Turn a URL's hostname into a filename-safe slug."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "unknown"
    if not hostname:
        return "unknown"
    return re.sub(r"[^a-zA-Z0-9]", "-", hostname)
