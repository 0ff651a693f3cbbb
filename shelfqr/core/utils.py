"""
Small text helpers shared by services and endpoints.
"""

import re
import secrets
import string
from typing import Any, Dict, List
from urllib.parse import urlparse

MAX_TRACKED_STRING_LENGTH = 500

# nanoid's URL-safe alphabet; every generated code passes sanitize_code
CODE_ALPHABET = string.ascii_letters + string.digits + "_-"
CODE_LENGTH = 8

SLUG_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SLUG_SUFFIX_LENGTH = 4

_MOBILE_RE = re.compile(r"mobile", re.IGNORECASE)
_TABLET_RE = re.compile(r"tablet|ipad", re.IGNORECASE)


def generate_code(length: int = CODE_LENGTH, alphabet: str = CODE_ALPHABET) -> str:
    """Random code from a cryptographically secure source."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def with_slug_suffix(slug: str) -> str:
    """Disambiguate a taken slug: "aftercare" -> "aftercare-x7k2"."""
    return f"{slug}-{generate_code(SLUG_SUFFIX_LENGTH, SLUG_SUFFIX_ALPHABET)}"


def slugify(text: str) -> str:
    """
    Generate a URL-safe slug from a string.

    Example:
        slugify("Kids' Fluoride Toothpaste (Age 6+)") -> "kids-fluoride-toothpaste-age-6"
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def detect_device_type(user_agent: str) -> str:
    """Coarse device class from a user-agent: mobile, tablet or desktop."""
    user_agent = user_agent or ""
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    if _TABLET_RE.search(user_agent):
        return "tablet"
    return "desktop"


def truncate(value: str, limit: int = MAX_TRACKED_STRING_LENGTH) -> str:
    return (value or "")[:limit]


def is_valid_product_url(url: str) -> bool:
    """Validate that a URL looks like an Amazon product link."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    return "amazon." in hostname or "amzn." in hostname


def _csv_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    if "," in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def array_to_csv(rows: List[Dict[str, Any]]) -> str:
    """
    Generate CSV content from a list of dicts.

    Headers come from the first row. Values containing commas or quotes are
    quoted; an empty list yields an empty string.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_csv_cell(row.get(header)) for header in headers))
    return "\n".join(lines)
