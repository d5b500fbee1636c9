"""
Domain canonicalisation.

Every ingress point (commands, browser events, persisted records) passes
through normalize_domain() so that "WWW.Reddit.com", "reddit.com" and
"https://www.reddit.com/r/x" all name the same key. Lookups normalise before
comparing; nothing stores a "www." twin.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

from ..errors import ValidationError

_LABEL = r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
_DOMAIN_RE = re.compile(rf"^(?=.{{1,253}}$){_LABEL}(?:\.{_LABEL})*$")

# URLs on these schemes never belong to a website
_INTERNAL_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "moz-extension://",
    "devtools://",
    "view-source:",
    "file://",
    "data:",
)


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def normalize_domain(value: str) -> str:
    """
    Return the canonical domain for *value* (a bare domain or a URL).
    Raises ValidationError if nothing domain-like remains.
    """
    if not isinstance(value, str):
        raise ValidationError(f"Domain must be a string, got {type(value).__name__}")

    raw = value.strip().lower()
    if "://" in raw:
        host = urlparse(raw).hostname or ""
    else:
        host = raw.split("/", 1)[0].split("?", 1)[0]
        host = host.rsplit("@", 1)[-1].split(":", 1)[0]
    host = _strip_www(host.rstrip("."))

    if not host or not _DOMAIN_RE.match(host):
        raise ValidationError(f"Invalid domain: {value!r}")
    return host


def extract_domain(url: Optional[str]) -> Optional[str]:
    """
    Domain a tab URL should be accounted to, or None for internal pages,
    blank tabs and anything unparsable.
    """
    if not url:
        return None
    lowered = url.strip().lower()
    if lowered.startswith(_INTERNAL_PREFIXES):
        return None
    try:
        host = urlparse(lowered).hostname
    except ValueError:
        return None
    if not host:
        return None
    try:
        return normalize_domain(host)
    except ValidationError:
        return None
