"""Fixed-window, per-IP request limiter kept in process memory."""
from __future__ import annotations

import threading
import time
from typing import Dict, Tuple

from fastapi import HTTPException, Request


class RateLimiter:
    def __init__(self) -> None:
        self._hits: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window_seconds: int) -> bool:
        """Record one hit for ``key``; False once the window's budget is spent."""
        now = time.monotonic()
        with self._lock:
            count, reset_at = self._hits.get(key, (0, now + window_seconds))
            if now > reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._hits[key] = (count, reset_at)
            return count <= limit

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = RateLimiter()


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_ip(request: Request, scope: str, *, limit: int, window_seconds: int) -> None:
    if not limiter.hit(f"{scope}:{client_ip(request)}", limit, window_seconds):
        raise HTTPException(429, "Too many requests. Try again shortly.")
