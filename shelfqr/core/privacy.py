"""
Visitor IP hashing.

IPs are never stored. Scan events carry a 16-hex-character fingerprint made
from the IP and a salt that rotates every UTC day, so the same visitor can be
de-duplicated within a day but not linked across days.
"""

import hashlib
from datetime import date, datetime, timezone
from typing import Optional

from shelfqr.core.setting import settings

HASH_LENGTH = 16


def daily_salt(secret: str, today: date) -> str:
    return f"{secret}:{today.isoformat()}"


def hash_ip(ip: str, secret: Optional[str] = None, today: Optional[date] = None) -> str:
    """
    Hash an IP address with a daily-rotating salt.

    Args:
        ip: Client IP address (or "unknown")
        secret: Salt secret; defaults to the configured IP_HASH_SECRET
        today: Calendar day for the salt; defaults to the current UTC date

    Returns:
        First 16 lowercase hex characters of sha256("<ip>:<secret>:<YYYY-MM-DD>")
    """
    if secret is None:
        secret = settings.ip_hash_secret
    if today is None:
        today = datetime.now(timezone.utc).date()

    digest = hashlib.sha256(f"{ip}:{daily_salt(secret, today)}".encode("utf-8"))
    return digest.hexdigest()[:HASH_LENGTH]
