import asyncio
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple, TypeVar

from utils.logger import get_logger
from utils.utcnow import now_ms as _wall_clock_ms

logger = get_logger("rate_limiter")

T = TypeVar("T")


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limit for one route class"""

    name: str
    limit: int
    window_seconds: int = 60

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


@dataclass(frozen=True)
class RateLimitEntry:
    """Request count for one key inside one fixed window"""

    count: int
    reset_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return self.reset_at_ms <= now_ms


class RateLimitStore(Protocol):
    """Key/value store for window entries.

    ``update`` must apply ``fn`` atomically for its key: ``fn`` receives the
    current entry (or ``None``) and returns ``(new_entry, result)``; a
    ``None`` new entry removes the key.
    """

    def get(self, key: str) -> Optional[RateLimitEntry]: ...

    def update(
        self,
        key: str,
        fn: Callable[[Optional[RateLimitEntry]], Tuple[Optional[RateLimitEntry], T]],
    ) -> T: ...

    def delete_if(self, key: str, predicate: Callable[[RateLimitEntry], bool]) -> bool: ...

    def keys(self) -> list[str]: ...

    def __len__(self) -> int: ...


class InMemoryRateLimitStore:
    """Process-local store. One lock guards every read-modify-write."""

    def __init__(self):
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def update(self, key, fn):
        with self._lock:
            new_entry, result = fn(self._entries.get(key))
            if new_entry is None:
                self._entries.pop(key, None)
            else:
                self._entries[key] = new_entry
            return result

    def delete_if(self, key: str, predicate: Callable[[RateLimitEntry], bool]) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not predicate(entry):
                return False
            del self._entries[key]
            return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries.keys())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class FixedWindowRateLimiter:
    """Fixed-window request counter per key.

    The first ``limit`` requests in a window pass and the rest fail until the
    window rolls over. Bursts straddling a window edge can see close to
    ``2 * limit`` admissions; that is the accepted cost of fixed windows.
    """

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], int] = _wall_clock_ms,
    ):
        self._store: RateLimitStore = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock
        self._sweeper_task: Optional[asyncio.Task] = None
        self._sweeping = False

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def check_and_increment(
        self,
        key: str,
        limit: int,
        window_ms: int,
        now_ms: Optional[int] = None,
    ) -> bool:
        """Count one request for ``key``; return whether it is allowed."""
        now = self._clock() if now_ms is None else now_ms

        def apply(entry: Optional[RateLimitEntry]) -> Tuple[RateLimitEntry, bool]:
            if entry is None or entry.is_expired(now):
                return RateLimitEntry(count=1, reset_at_ms=now + window_ms), True
            updated = RateLimitEntry(count=entry.count + 1, reset_at_ms=entry.reset_at_ms)
            return updated, updated.count <= limit

        return self._store.update(key, apply)

    def hit(self, key: str, policy: RateLimitPolicy, now_ms: Optional[int] = None) -> bool:
        return self.check_and_increment(key, policy.limit, policy.window_ms, now_ms=now_ms)

    def remaining(self, key: str, limit: int, now_ms: Optional[int] = None) -> int:
        now = self._clock() if now_ms is None else now_ms
        entry = self._store.get(key)
        if entry is None or entry.is_expired(now):
            return limit
        return max(0, limit - entry.count)

    def sweep(self, now_ms: Optional[int] = None) -> int:
        """Drop expired windows. Expiry is re-checked under the store lock."""
        now = self._clock() if now_ms is None else now_ms
        removed = 0
        for key in self._store.keys():
            if self._store.delete_if(key, lambda entry: entry.is_expired(now)):
                removed += 1
        return removed

    async def run_sweeper(self, interval_seconds: float):
        """Sweep on a fixed interval until stopped."""
        self._sweeping = True
        logger.info("Starting rate limit sweeper", interval_seconds=interval_seconds)

        while self._sweeping:
            try:
                await asyncio.sleep(interval_seconds)
                if not self._sweeping:
                    break
                removed = self.sweep()
                if removed:
                    logger.debug("Swept expired rate limit windows", removed=removed, live=len(self._store))
            except asyncio.CancelledError:
                logger.info("Rate limit sweeper cancelled")
                break
            except Exception as e:
                logger.error("Rate limit sweep failed", error=str(e))

        logger.info("Rate limit sweeper stopped")

    def start_sweeper(self, interval_seconds: float) -> asyncio.Task:
        if self._sweeper_task is None or self._sweeper_task.done():
            self._sweeper_task = asyncio.create_task(self.run_sweeper(interval_seconds))
        return self._sweeper_task

    async def stop_sweeper(self):
        self._sweeping = False
        task = self._sweeper_task
        self._sweeper_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def get_status(self) -> dict:
        """Current limiter state for the admin dashboard"""
        return {
            "tracked_keys": len(self._store),
            "sweeper_running": bool(self._sweeper_task and not self._sweeper_task.done()),
            "policies": {
                policy.name: f"{policy.limit}/{policy.window_seconds}s"
                for policy in POLICIES.values()
            },
        }


LOGIN_POLICY = RateLimitPolicy(name="login", limit=5, window_seconds=60)
CRON_POLICY = RateLimitPolicy(name="cron", limit=10, window_seconds=60)
ADMIN_POLICY = RateLimitPolicy(name="admin", limit=30, window_seconds=60)

POLICIES: Dict[str, RateLimitPolicy] = {
    policy.name: policy for policy in (LOGIN_POLICY, CRON_POLICY, ADMIN_POLICY)
}

# Global rate limiter instance
rate_limiter = FixedWindowRateLimiter()
