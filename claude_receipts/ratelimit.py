"""Fixed-window rate limiting for the sharing API."""
import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from claude_receipts import db
from claude_receipts.models import RateLimitEntry


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime


def hash_client(address: str, salt: str) -> str:
    """Hash a client address so raw addresses are never stored."""
    return hashlib.sha256((address + salt).encode("utf-8")).hexdigest()[:32]


def check_rate_limit(address: str, limit: int, window_seconds: int, salt: str,
                     now: Optional[datetime] = None) -> RateLimitResult:
    """Count one request from ``address`` and decide whether it is allowed."""
    now = now or datetime.utcnow()
    window = timedelta(seconds=window_seconds)
    key = hash_client(address, salt)

    entry = db.session.get(RateLimitEntry, key)
    if entry is None or now > entry.window_start + window:
        if entry is None:
            entry = RateLimitEntry(key=key)
            db.session.add(entry)
        entry.count = 1
        entry.window_start = now
        db.session.commit()
        return RateLimitResult(True, limit - 1, now + window)

    reset_at = entry.window_start + window
    if entry.count >= limit:
        return RateLimitResult(False, 0, reset_at)

    entry.count += 1
    db.session.commit()
    return RateLimitResult(True, limit - entry.count, reset_at)
