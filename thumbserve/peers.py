"""
PeerPool - Key ownership across cooperating server processes.

Each process is started with the same list of peer base URLs and its own
URL. A consistent-hash ring maps every key to one owner; non-owners fetch
the value from the owner over HTTP so a thumbnail is computed once across
the pool.
"""

import bisect
import hashlib
import logging
import threading
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

import urllib3

from .errors import NotFoundError, PeerError

if TYPE_CHECKING:
    from .group_cache import CacheGroup


BASE_PATH = '/_groupcache'
DEFAULT_REPLICAS = 50


def _hash(value: str) -> int:
    # MD5 only spreads keys around the ring
    return int(hashlib.md5(value.encode('utf-8')).hexdigest()[:8], 16)


class HashRing:
    """
    Consistent-hash ring with virtual replicas per member.
    """

    def __init__(self, members: Iterable[str] = (), replicas: int = DEFAULT_REPLICAS):
        self.replicas = replicas
        self._points: List[Tuple[int, str]] = []
        for member in members:
            self.add(member)

    def add(self, member: str) -> None:
        for i in range(self.replicas):
            bisect.insort(self._points, (_hash(f"{i}{member}"), member))

    def get(self, key: str) -> Optional[str]:
        """Member owning key, or None if the ring is empty."""
        if not self._points:
            return None
        idx = bisect.bisect_left(self._points, (_hash(key), ''))
        if idx == len(self._points):
            idx = 0
        return self._points[idx][1]

    def __len__(self) -> int:
        return len(self._points) // self.replicas if self.replicas else 0


class HTTPPeer:
    """
    A remote process reachable at base_url.
    """

    def __init__(self, base_url: str, http: urllib3.PoolManager, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.http = http
        self.timeout = timeout

    def url(self, group: str, key: str) -> str:
        return f"{self.base_url}{BASE_PATH}/{quote(group, safe='')}/{quote(key.lstrip('/'), safe='/')}"

    def fetch(self, group: str, key: str) -> bytes:
        """
        Fetch the value for key from the peer's group.

        Raises:
            NotFoundError: if the peer reports the source image missing
            PeerError: on connection failures or any other status
        """
        url = self.url(group, key)
        try:
            response = self.http.request('GET', url, timeout=self.timeout, retries=False)
        except urllib3.exceptions.HTTPError as e:
            raise PeerError(f"peer {self.base_url} unreachable: {e}") from e

        if response.status == 200:
            return response.data
        if response.status == 404:
            raise NotFoundError(f"peer {self.base_url} has no [{key}]")
        raise PeerError(f"peer {self.base_url} returned {response.status} for [{key}]")


class PeerPool:
    """
    The set of processes sharing cache groups.

    Created once at startup and handed to every CacheGroup that should
    participate; groups register themselves by name so the peer route can
    find them.
    """

    def __init__(
        self,
        self_url: str,
        peer_urls: Iterable[str] = (),
        replicas: int = DEFAULT_REPLICAS,
        http: Optional[urllib3.PoolManager] = None,
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize a peer pool.

        Args:
            self_url: Base URL other peers use to reach this process
            peer_urls: Base URLs of all peers (self_url is added if missing)
            replicas: Virtual ring points per peer
            http: Optional urllib3 pool manager
            timeout: Seconds to wait for a peer response
            logger: Optional logger instance
        """
        self.self_url = self_url.rstrip('/')
        self.logger = logger or logging.getLogger(__name__)
        self.http = http or urllib3.PoolManager()

        urls = [u.rstrip('/') for u in peer_urls if u]
        if self.self_url not in urls:
            urls.append(self.self_url)
        self.ring = HashRing(urls, replicas)
        self.peers: Dict[str, HTTPPeer] = {
            url: HTTPPeer(url, self.http, timeout)
            for url in urls if url != self.self_url
        }

        self._groups: Dict[str, 'CacheGroup'] = {}
        self._lock = threading.Lock()

    def register(self, group: 'CacheGroup') -> None:
        """
        Register a cache group by name.

        Raises:
            ValueError: if a group with the same name is already registered
        """
        with self._lock:
            if group.name in self._groups:
                raise ValueError(f"duplicate cache group name: {group.name}")
            self._groups[group.name] = group
        self.logger.debug(f"Registered cache group [{group.name}]")

    def group(self, name: str) -> Optional['CacheGroup']:
        with self._lock:
            return self._groups.get(name)

    def group_names(self) -> List[str]:
        with self._lock:
            return list(self._groups)

    def pick_peer(self, key: str) -> Optional[HTTPPeer]:
        """Peer owning key, or None if this process owns it."""
        owner = self.ring.get(key)
        if owner is None or owner == self.self_url:
            return None
        return self.peers.get(owner)
