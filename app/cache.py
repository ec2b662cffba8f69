import fnmatch
import heapq
import itertools
import logging
import math
import numbers
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Condition.wait overflows on very large timeouts; far deadlines are re-checked hourly.
_MAX_WAIT = min(threading.TIMEOUT_MAX, 3600.0)


class InvalidArgument(ValueError):
    """Raised when the cache is called with a malformed key or TTL."""


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float]
    generation: int


class TTLCache:
    """In-memory key-value cache with proactive per-entry expiration.

    Parameters
    ----------
    default_ttl : float
        Lifetime in seconds applied when `set` is called without a TTL.
        Defaults to 300 (five minutes).

    Notes
    -----
    - Keys are non-empty `str`; values are stored by reference, never copied.
    - A TTL of 0 or less means the entry never expires on its own.
    - Expiration is proactive: a background worker removes each entry when its
      deadline passes, so `size()` drops without any `get` being issued.
    - Every write stamps the entry with a fresh generation. A deadline whose
      generation no longer matches the stored entry is stale and is skipped,
      so an overwritten or deleted key is never removed by an old deadline.
    - Thread-safe; a single condition variable guards the map and the heap.
    """

    def __init__(self, default_ttl: float = 300):
        self.default_ttl = self._check_ttl(default_ttl)
        self._store: Dict[str, _Entry] = {}
        self._deadlines: List[Tuple[float, int, str]] = []
        self._generations = itertools.count(1)
        self._cond = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self._stopping = False

    @staticmethod
    def _check_key(key: Any) -> str:
        if not isinstance(key, str):
            raise InvalidArgument(f"cache key must be a str, got {type(key).__name__}")
        if not key:
            raise InvalidArgument("cache key must not be empty")
        return key

    @staticmethod
    def _check_ttl(ttl: Any) -> float:
        if isinstance(ttl, bool) or not isinstance(ttl, numbers.Real):
            raise InvalidArgument(f"ttl must be a number of seconds, got {type(ttl).__name__}")
        if math.isnan(ttl):
            raise InvalidArgument("ttl must not be NaN")
        return ttl

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or replace `value` under `key`.

        Parameters
        ----------
        key : str
            Cache key. Callers sharing one cache should namespace their keys
            (e.g. `search:paris`).
        value : Any
            Arbitrary Python object to store.
        ttl : Optional[float]
            Lifetime in seconds. `None` uses `default_ttl`; 0 or negative keeps
            the entry until it is deleted or the cache is cleared.

        Raises
        ------
        InvalidArgument
            If `key` is not a non-empty string or `ttl` is not a number.
        """

        self._check_key(key)
        ttl = self.default_ttl if ttl is None else self._check_ttl(ttl)
        with self._cond:
            generation = next(self._generations)
            expires_at = None
            if ttl > 0:
                expires_at = time.monotonic() + ttl
            # Replacing the entry retires the previous generation's deadline.
            self._store[key] = _Entry(value=value, expires_at=expires_at, generation=generation)
            if expires_at is not None:
                heapq.heappush(self._deadlines, (expires_at, generation, key))
                self._ensure_worker()
                if self._deadlines[0][1] == generation:
                    self._cond.notify()
            self._compact_deadlines()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for `key`, or `default` when absent or expired.

        Raises
        ------
        InvalidArgument
            If `key` is not a non-empty string.
        """

        self._check_key(key)
        with self._cond:
            entry = self._live_entry(key)
            if entry is None:
                return default
            return entry.value

    def has(self, key: str) -> bool:
        """Whether an unexpired entry exists for `key`."""

        self._check_key(key)
        with self._cond:
            return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        """Remove `key` and cancel its pending expiration.

        Returns
        -------
        bool
            True if a live entry was removed, False if there was nothing to remove.
        """

        self._check_key(key)
        with self._cond:
            if self._live_entry(key) is None:
                return False
            del self._store[key]
            self._compact_deadlines()
            return True

    def clear(self) -> int:
        """Remove every entry and drop all pending expirations.

        Returns
        -------
        int
            Number of live entries that were removed.
        """

        with self._cond:
            self._expire_due(time.monotonic())
            count = len(self._store)
            self._store.clear()
            self._deadlines.clear()
            self._cond.notify()
        logger.debug("cache cleared (%d entries)", count)
        return count

    def size(self) -> int:
        """Number of live entries."""

        with self._cond:
            self._expire_due(time.monotonic())
            return len(self._store)

    def keys(self, pattern: str = "*") -> List[str]:
        """Return live keys matching a shell-style glob (`*`, `?`, `[...]`)."""

        with self._cond:
            self._expire_due(time.monotonic())
            return [k for k in self._store if fnmatch.fnmatchcase(k, pattern)]

    def shutdown(self) -> None:
        """Stop the expiration worker.

        Entries stay readable and still count as absent once their deadline has
        passed. A later `set` with a positive TTL starts a new worker.
        """

        with self._cond:
            worker = self._worker
            self._stopping = True
            self._cond.notify()
        if worker is not None and worker is not threading.current_thread():
            worker.join()
        with self._cond:
            if self._worker is worker:
                self._worker = None

    def _live_entry(self, key: str) -> Optional[_Entry]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= time.monotonic():
            del self._store[key]
            return None
        return entry

    def _expire_due(self, now: float) -> None:
        # Caller holds the lock.
        while self._deadlines and self._deadlines[0][0] <= now:
            _, generation, key = heapq.heappop(self._deadlines)
            entry = self._store.get(key)
            if entry is not None and entry.generation == generation:
                del self._store[key]
                logger.debug("cache entry expired: %s", key)

    def _compact_deadlines(self) -> None:
        # Caller holds the lock. Drops deadlines retired by overwrite or delete.
        if len(self._deadlines) <= 2 * len(self._store) + 64:
            return
        current = []
        for expires_at, generation, key in self._deadlines:
            entry = self._store.get(key)
            if entry is not None and entry.generation == generation:
                current.append((expires_at, generation, key))
        heapq.heapify(current)
        self._deadlines = current

    def _ensure_worker(self) -> None:
        # Caller holds the lock.
        if self._worker is not None and self._worker.is_alive() and not self._stopping:
            return
        self._stopping = False
        self._worker = threading.Thread(target=self._run, name="ttl-cache-expiry", daemon=True)
        self._worker.start()

    def _run(self) -> None:
        me = threading.current_thread()
        with self._cond:
            while not self._stopping and self._worker is me:
                self._expire_due(time.monotonic())
                if self._deadlines:
                    delay = self._deadlines[0][0] - time.monotonic()
                    self._cond.wait(timeout=min(_MAX_WAIT, max(0.0, delay)))
                else:
                    self._cond.wait()
