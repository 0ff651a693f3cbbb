"""
Tests for visitor IP hashing.
"""

import hashlib
import re
from datetime import date

from shelfqr.core.privacy import HASH_LENGTH, hash_ip
from shelfqr.core.setting import DEFAULT_IP_HASH_SECRET


def test_hash_matches_documented_construction():
    expected = hashlib.sha256(b"203.0.113.7:s3cret:2026-03-01").hexdigest()[:16]
    assert hash_ip("203.0.113.7", secret="s3cret", today=date(2026, 3, 1)) == expected


def test_hash_is_sixteen_lowercase_hex_chars():
    value = hash_ip("10.0.0.1", secret="x", today=date(2026, 1, 1))
    assert len(value) == HASH_LENGTH == 16
    assert re.fullmatch(r"[0-9a-f]{16}", value)


def test_same_ip_same_day_is_stable():
    day = date(2026, 5, 5)
    assert hash_ip("1.2.3.4", secret="x", today=day) == hash_ip("1.2.3.4", secret="x", today=day)


def test_hash_rotates_daily():
    assert hash_ip("1.2.3.4", secret="x", today=date(2026, 5, 5)) != \
        hash_ip("1.2.3.4", secret="x", today=date(2026, 5, 6))


def test_secret_changes_hash():
    day = date(2026, 5, 5)
    assert hash_ip("1.2.3.4", secret="a", today=day) != hash_ip("1.2.3.4", secret="b", today=day)


def test_unknown_ip_still_hashes():
    assert len(hash_ip("unknown", secret="x", today=date(2026, 5, 5))) == 16


def test_default_secret_used_when_unset(monkeypatch):
    from shelfqr.core.setting import settings

    monkeypatch.setattr(settings, "IP_HASH_SECRET", None)
    day = date(2026, 5, 5)
    assert hash_ip("1.2.3.4", today=day) == hash_ip("1.2.3.4", secret=DEFAULT_IP_HASH_SECRET, today=day)
