"""
Simple Memory-based Rate Limiter, keyed by client IP.
Single-process only; counters reset when the server restarts.
"""
import threading
import time
from fastapi import Request, HTTPException
from typing import Dict, Tuple

# In-memory storage: {scope:ip: (window_start, count)}
_rate_limit_store: Dict[str, Tuple[float, int]] = {}
_store_lock = threading.Lock()


def rate_limit(requests: int, window: int, scope: str = "default"):
    """
    Dependency for rate limiting.
    Example: Depends(rate_limit(requests=5, window=60, scope="login"))
    """
    def limiter(request: Request):
        ip = request.client.host if request.client else "unknown"
        key = f"{scope}:{ip}"
        now = time.time()

        with _store_lock:
            last_ts, count = _rate_limit_store.get(key, (now, 0))

            # Reset window if expired
            if now - last_ts > window:
                last_ts, count = now, 0

            if count >= requests:
                raise HTTPException(
                    status_code=429,
                    detail=f"Rate limit exceeded. Try again in {int(window - (now - last_ts))} seconds.",
                )

            _rate_limit_store[key] = (last_ts, count + 1)
        return True

    return limiter


def reset_rate_limits():
    """Forget all counters."""
    with _store_lock:
        _rate_limit_store.clear()
