"""
String helpers for the duplicate pipeline: URL normalization, domain
extraction and Levenshtein-based similarity.

URL parsing fails soft. A URL without a scheme or host is treated as
unparseable: ``normalize_url`` falls back to a textual normalization and
``extract_domain`` returns None.
"""

import re
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

from .lsh import round_half_up

TRACKING_PARAMS = frozenset([
    "utm_source", "utm_medium", "utm_campaign", "utm_content",
    "utm_term", "ref", "source", "fbclid", "gclid",
])

_WWW = re.compile(r"^www\.")
_SCHEME_WWW = re.compile(r"^https?://(www\.)?")


def _parse(url: Optional[str]):
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    return parts


def normalize_url(url: Optional[str]) -> str:
    """Canonical form used for exact-URL grouping.

    https://www.Example.com/path/?utm_source=x  ->  example.com/path
    """
    parts = _parse(url)
    if parts is None:
        text = (url or "").lower()
        return re.sub(r"/$", "", _SCHEME_WWW.sub("", text))

    query = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    search = f"?{urlencode(query)}" if query else ""
    path = re.sub(r"/$", "", parts.path)

    return (_WWW.sub("", parts.hostname) + path + search).lower()


def extract_domain(url: Optional[str]) -> Optional[str]:
    parts = _parse(url)
    if parts is None:
        return None
    return _WWW.sub("", parts.hostname)


def levenshtein(a: str, b: str) -> int:
    """Edit distance keeping two rows sized by the shorter string."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) > len(b):
        a, b = b, a

    prev: List[int] = list(range(len(a) + 1))
    curr: List[int] = [0] * (len(a) + 1)

    for j in range(1, len(b) + 1):
        curr[0] = j
        bj = b[j - 1]
        for i in range(1, len(a) + 1):
            cost = 0 if a[i - 1] == bj else 1
            curr[i] = min(
                prev[i] + 1,         # deletion
                curr[i - 1] + 1,     # insertion
                prev[i - 1] + cost,  # substitution
            )
        prev, curr = curr, prev

    return prev[len(a)]


def string_similarity(a: Optional[str], b: Optional[str]) -> int:
    """0-100, 100 meaning identical ignoring case."""
    if not a and not b:
        return 100
    if not a or not b:
        return 0
    max_len = max(len(a), len(b))
    distance = levenshtein(a.lower(), b.lower())
    return round_half_up((1 - distance / max_len) * 100)
