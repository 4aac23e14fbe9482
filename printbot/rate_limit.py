import threading
from typing import Callable, Dict, Iterable, List

WINDOW_SECONDS = 60 * 60


class RateLimiter:
    """
    Per-sender sliding-window admission control.

    - one timestamp list per sender, trimmed to the trailing hour on each check
    - a denied request is not recorded
    - admin senders are never limited
    """

    def __init__(
        self,
        max_per_hour: int,
        clock: Callable[[], float],
        admins: Iterable[str] = (),
        enabled: bool = True,
        window_seconds: float = WINDOW_SECONDS,
    ):
        self.max_per_hour = max_per_hour
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._admins = set(admins)
        self._lock = threading.Lock()
        self._windows: Dict[str, List[float]] = {}

    def admit(self, sender_id: str) -> bool:
        if not self.enabled or sender_id in self._admins:
            return True

        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            recent = [ts for ts in self._windows.get(sender_id, []) if ts > cutoff]
            if len(recent) >= self.max_per_hour:
                self._windows[sender_id] = recent
                return False
            recent.append(now)
            self._windows[sender_id] = recent
            return True
