from __future__ import annotations
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from plugin_api_server.plugin_runtime.descriptor import RateLimitSpec


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after: Optional[int] = None


class RateLimiter:
    """Sliding-window request counter keyed by (client, plugin name).

    Timestamps older than the window are pruned lazily on each check. Keys are
    never evicted, but each key holds at most `limit` timestamps.
    """

    def __init__(self, clock: Callable[[], float] = _monotonic_ms):
        self._clock = clock
        self._windows: Dict[Tuple[str, str], List[float]] = {}

    def check(self, client: str, plugin_name: str, rate_limit: RateLimitSpec) -> RateLimitDecision:
        key = (client, plugin_name)
        now = self._clock()
        window = rate_limit.window_ms
        recent = [t for t in self._windows.get(key, []) if now - t < window]

        if len(recent) >= rate_limit.limit:
            oldest = recent[0]
            retry_after = math.ceil((window - (now - oldest)) / 1000)
            return RateLimitDecision(allowed=False, retry_after=retry_after)

        recent.append(now)
        self._windows[key] = recent
        return RateLimitDecision(allowed=True)

    def reset(self, plugin_name: str | None = None) -> None:
        if plugin_name is None:
            self._windows.clear()
            return
        for key in [k for k in self._windows if k[1] == plugin_name]:
            self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)
