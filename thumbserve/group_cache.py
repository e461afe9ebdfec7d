"""
CacheGroup - In-memory, byte-bounded cache that computes values on a miss.

Concurrent gets for the same key share one computation. When a PeerPool is
attached, keys owned by another process are fetched from that process
instead of being computed locally.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Callable, Dict, Optional

from .errors import ComputeError, NotFoundError, ThumbnailError

if TYPE_CHECKING:
    from .peers import PeerPool


MEGABYTE = 1 << 20

Loader = Callable[[str], bytes]


class ByteLRU:
    """
    LRU map of bytes values bounded by the total size of its values.

    All public methods are protected by a lock.
    """

    def __init__(self, max_bytes: int):
        self.max_bytes = max_bytes
        self._items: 'OrderedDict[str, bytes]' = OrderedDict()
        self._bytes = 0
        self._evictions = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            value = self._items.get(key)
            if value is not None:
                self._items.move_to_end(key)
            return value

    def add(self, key: str, value: bytes) -> bool:
        """
        Store a value, evicting least recently used entries to stay in budget.

        Returns False if the value alone is larger than the budget, in which
        case it is not stored.
        """
        size = len(key) + len(value)
        if size > self.max_bytes:
            return False
        with self._lock:
            old = self._items.pop(key, None)
            if old is not None:
                self._bytes -= len(key) + len(old)
            self._items[key] = value
            self._bytes += size
            while self._bytes > self.max_bytes:
                old_key, old_value = self._items.popitem(last=False)
                self._bytes -= len(old_key) + len(old_value)
                self._evictions += 1
        return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def bytes(self) -> int:
        with self._lock:
            return self._bytes

    @property
    def evictions(self) -> int:
        with self._lock:
            return self._evictions


class _Call:
    """One in-flight computation and its outcome."""

    def __init__(self):
        self.done = threading.Event()
        self.value: Optional[bytes] = None
        self.error: Optional[BaseException] = None


class SingleFlight:
    """
    Collapses concurrent calls for the same key onto one execution.

    The first caller for a key runs the function; callers arriving while it
    runs wait for it and receive the same value or exception. Nothing is
    remembered once the call finishes.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[str, _Call] = {}

    def do(self, key: str, fn: Callable[[], bytes]) -> bytes:
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = self._calls[key] = _Call()

        if not leader:
            call.done.wait()
        else:
            try:
                call.value = fn()
            except BaseException as e:
                call.error = e
            finally:
                with self._lock:
                    del self._calls[key]
                call.done.set()

        if call.error is not None:
            raise call.error
        return call.value

    def in_flight(self) -> int:
        with self._lock:
            return len(self._calls)


@dataclass
class CacheStats:
    """
    Counters for one cache group.

    Attributes:
        gets: Total get calls
        hits: Gets answered from the main or hot cache
        loads: Gets that missed and went through single-flight
        peer_loads: Values fetched from the owning peer
        peer_errors: Failed peer fetches that fell back to a local load
        local_loads: Values computed by the local loader
        load_errors: Loader failures
        evictions: Entries evicted from both caches
        bytes: Bytes held in both caches
        items: Entries held in both caches
    """
    gets: int = 0
    hits: int = 0
    loads: int = 0
    peer_loads: int = 0
    peer_errors: int = 0
    local_loads: int = 0
    load_errors: int = 0
    evictions: int = 0
    bytes: int = 0
    items: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class CacheGroup:
    """
    A named, byte-bounded cache that fills itself through a loader.

    Values are immutable once computed; there is no invalidation. Loader
    failures are wrapped in ComputeError and never cached, so the next get
    retries the whole computation.
    """

    # Share of the byte budget given to values fetched from peers
    HOT_CACHE_FRACTION = 8

    def __init__(
        self,
        name: str,
        max_bytes: int,
        loader: Loader,
        peers: Optional['PeerPool'] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize a cache group.

        Args:
            name: Group name, unique within the peer pool
            max_bytes: Byte budget for cached values
            loader: Computes the value for a key on a miss
            peers: Optional peer pool; the group registers itself with it
            logger: Optional logger instance
        """
        if max_bytes <= 0:
            raise ValueError(f"cache size must be positive, got {max_bytes}")
        self.name = name
        self.max_bytes = max_bytes
        self.loader = loader
        self.peers = peers
        self.logger = logger or logging.getLogger(__name__)

        self._main = ByteLRU(max_bytes)
        self._hot = ByteLRU(max(1, max_bytes // self.HOT_CACHE_FRACTION))
        self._flight = SingleFlight()
        self._stats = CacheStats()
        self._stats_lock = threading.Lock()

        if peers is not None:
            peers.register(self)

    def get(self, key: str) -> bytes:
        """
        Return the value for key, computing it on a miss.

        Raises:
            ComputeError: if the value could not be computed or fetched
        """
        self._count('gets')
        value = self._lookup(key)
        if value is not None:
            self._count('hits')
            return value
        self._count('loads')
        return self._flight.do(key, lambda: self._load(key))

    def get_local(self, key: str) -> bytes:
        """
        Return the value for key without consulting peers.

        Used to answer peer requests for keys this process owns.
        """
        self._count('gets')
        value = self._main.get(key)
        if value is not None:
            self._count('hits')
            return value
        self._count('loads')
        return self._flight.do(key, lambda: self._load_local(key))

    @property
    def stats(self) -> CacheStats:
        with self._stats_lock:
            stats = CacheStats(**asdict(self._stats))
        stats.evictions = self._main.evictions + self._hot.evictions
        stats.bytes = self._main.bytes + self._hot.bytes
        stats.items = len(self._main) + len(self._hot)
        return stats

    def _lookup(self, key: str) -> Optional[bytes]:
        value = self._main.get(key)
        if value is None:
            value = self._hot.get(key)
        return value

    def _load(self, key: str) -> bytes:
        # Another flight may have filled the cache while this one waited
        value = self._lookup(key)
        if value is not None:
            return value

        if self.peers is not None:
            peer = self.peers.pick_peer(key)
            if peer is not None:
                try:
                    value = peer.fetch(self.name, key)
                except NotFoundError as e:
                    self._count('load_errors')
                    raise ComputeError(key, e) from e
                except ThumbnailError as e:
                    self._count('peer_errors')
                    self.logger.warning(f"Peer {peer.base_url} failed for [{key}], loading locally: {e}")
                else:
                    self._count('peer_loads')
                    self._hot.add(key, value)
                    return value

        return self._load_local(key)

    def _load_local(self, key: str) -> bytes:
        value = self._main.get(key)
        if value is not None:
            return value
        try:
            value = self.loader(key)
        except ComputeError:
            self._count('load_errors')
            raise
        except Exception as e:
            self._count('load_errors')
            raise ComputeError(key, e) from e
        self._count('local_loads')
        if not self._main.add(key, value):
            self.logger.debug(f"Not caching [{key}]: {len(value)} bytes exceeds group [{self.name}] budget")
        return value

    def _count(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self._stats, counter, getattr(self._stats, counter) + 1)
