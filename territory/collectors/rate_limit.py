"""
Provider rate limiting

One limiter per external provider, shared by every session in the process.
"""

import threading
import time
from typing import Dict

_registry: Dict[str, "ProviderRateLimiter"] = {}
_registry_lock = threading.Lock()


class ProviderRateLimiter:
    """Enforces a minimum interval between calls to one provider"""

    def __init__(self, provider: str, min_interval: float):
        self.provider = provider
        self.min_interval = min_interval
        self._lock = threading.Lock()
        self._last_request_time = 0.0

    def wait(self) -> float:
        """Block until the next call is allowed; returns seconds slept"""
        with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            delay = self.min_interval - elapsed
            if delay > 0:
                time.sleep(delay)
            else:
                delay = 0.0
            self._last_request_time = time.monotonic()
            return delay


def get_rate_limiter(provider: str, min_interval: float) -> ProviderRateLimiter:
    """Shared limiter for a provider; the first caller fixes the interval"""
    with _registry_lock:
        limiter = _registry.get(provider)
        if limiter is None:
            limiter = ProviderRateLimiter(provider, min_interval)
            _registry[provider] = limiter
        return limiter
