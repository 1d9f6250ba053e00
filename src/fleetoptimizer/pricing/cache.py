"""In-process price cache"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from ..core.base import CapacityClass

DEFAULT_TTL = 24 * 60 * 60


class PriceSource(Enum):
    PROCESS_CACHE = "process-cache"
    CATALOG_API = "catalog-api"
    STATIC_TABLE = "static-table"
    FAMILY_HEURISTIC = "family-heuristic"
    TEXT_MODEL_ESTIMATE = "text-model-estimate"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class PriceQuote:
    instance_type: str
    capacity_class: CapacityClass
    price_per_hour: float
    source: PriceSource
    expires_at: Optional[float] = None


CacheKey = Tuple[str, CapacityClass]


def cache_key(instance_type: str, capacity_class: CapacityClass) -> CacheKey:
    return instance_type.strip().lower(), capacity_class


class ReadWriteLock:
    """Many concurrent readers or a single writer"""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class PriceCache:
    """Quotes keyed by (instance type, capacity class) with a fixed TTL.

    The clock is injectable so expiry can be tested without sleeping.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[CacheKey, PriceQuote] = {}
        self._lock = ReadWriteLock()

    def get(self, key: CacheKey) -> Optional[PriceQuote]:
        with self._lock.read():
            quote = self._entries.get(key)
        if quote is None:
            return None
        if quote.expires_at is not None and self.clock() >= quote.expires_at:
            return None
        return quote

    def put(self, key: CacheKey, quote: PriceQuote) -> PriceQuote:
        """Store a quote, stamping it with this cache's expiry.

        Expired entries are dropped on every write.
        """
        self.purge_expired()
        stamped = PriceQuote(
            instance_type=quote.instance_type,
            capacity_class=quote.capacity_class,
            price_per_hour=quote.price_per_hour,
            source=quote.source,
            expires_at=self.clock() + self.ttl,
        )
        with self._lock.write():
            self._entries[key] = stamped
        return stamped

    def clear(self):
        with self._lock.write():
            self._entries.clear()

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock.write():
            expired = [k for k, q in self._entries.items()
                       if q.expires_at is not None and now >= q.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)
