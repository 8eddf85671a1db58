import asyncio
import logging
import threading
import time
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Optional

from PIL import Image

from .utils import aspect_ratio


__all__ = [
    "CACHE_TTL",
    "CachedSkin",
    "SkinCache",
]

log = logging.getLogger(__name__)

CACHE_TTL = 10 * 60  # seconds


class CachedSkin:
    """A decoded render together with its display metadata

    The image is owned by the :py:class:`SkinCache` holding this entry and is closed
    once the entry is evicted, expired or replaced. Callers holding a pin (see
    :py:meth:`SkinCache.lookup` and :py:meth:`SkinCache.get_or_fetch`) keep the image
    open until they call :py:meth:`unpin`. Don't keep references to it around after that.

    Parameters
    ----------
    image: PIL.Image.Image
        The decoded render
    size: float
        Display width the render was fetched for
    """
    def __init__(self, image: Image.Image, size: float):
        self._image: Image.Image = image
        self._aspect_ratio: float = aspect_ratio(image)
        self._height: float = size * self._aspect_ratio
        self._inserted_at: Optional[float] = None

        self._pins: int = 0
        self._released: bool = False
        self._lock = threading.Lock()

    def __repr__(self):
        return f"<CachedSkin (size={self._image.width}x{self._image.height}) (height={self._height})>"

    @property
    def image(self):
        """The decoded render"""
        return self._image

    @property
    def aspect_ratio(self):
        """Height divided by width of the render"""
        return self._aspect_ratio

    @property
    def height(self):
        """Display height for the size this render was fetched with"""
        return self._height

    @property
    def inserted_at(self):
        """Clock value at which this entry was stored. None if it was never stored"""
        return self._inserted_at

    def height_for(self, size: float) -> float:
        """Display height for an arbitrary display width"""
        return size * self._aspect_ratio

    def pin(self, count: int = 1):
        """Keep the image open until :py:meth:`unpin` is called ``count`` times"""
        with self._lock:
            self._pins += count

    def unpin(self):
        with self._lock:
            self._pins -= 1
            close = self._released and self._pins == 0
        if close:
            self._image.close()

    def release(self):
        """Close the image now, or once the last pin is gone"""
        with self._lock:
            self._released = True
            close = self._pins == 0
        if close:
            self._image.close()


class SkinCache:
    """Thread safe in-memory cache of rendered skins keyed by render URL

    Entries expire ``ttl`` seconds after they were stored. Expiry is checked lazily on
    :py:meth:`lookup`; :py:meth:`purge_expired` sweeps all stale entries at once.

    Parameters
    ----------
    ttl: float
        Seconds an entry stays valid
    max_entries: int
        Optional upper bound. Least recently used entries are evicted once it's exceeded
    clock: Callable[[], float]
        Monotonic clock returning seconds, mostly useful for tests
    """
    def __init__(
            self,
            ttl: float = CACHE_TTL,
            max_entries: Optional[int] = None,
            clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CachedSkin]" = OrderedDict()
        self._lock = threading.RLock()

        # only touched from the event loop
        self._pending: Dict[str, "_PendingFetch"] = {}

    def __repr__(self):
        return f"<SkinCache (entries={len(self)}) (ttl={self._ttl})>"

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    @property
    def ttl(self):
        return self._ttl

    @property
    def max_entries(self):
        return self._max_entries

    def lookup(self, key: str, pin: bool = False) -> Optional[CachedSkin]:
        """Get a cached render

        Stale entries are removed while looking them up.

        Parameters
        ----------
        key: str
            The render URL
        pin: bool
            Pin the entry before returning it, so its image stays open even if the entry
            is evicted meanwhile. The caller has to call :py:meth:`CachedSkin.unpin`

        Returns
        -------
        Optional[CachedSkin]
            None if there is no valid entry for the key
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry):
                log.debug("Cache entry for %s expired", key)
                self._discard(key)
                return None
            self._entries.move_to_end(key)
            if pin:
                entry.pin()
            return entry

    def store(self, key: str, entry: CachedSkin):
        """Store a render, replacing whatever was cached for the key before

        Parameters
        ----------
        key: str
            The render URL
        entry: CachedSkin
            The render to cache. The cache takes ownership of it
        """
        with self._lock:
            old = self._entries.pop(key, None)
            if old is not None and old is not entry:
                old.release()

            entry._inserted_at = self._clock()
            self._entries[key] = entry

            if self._max_entries is not None:
                while len(self._entries) > self._max_entries:
                    evicted, _ = next(iter(self._entries.items()))
                    log.debug("Evicting least recently used entry %s", evicted)
                    self._discard(evicted)

    def remove(self, key: str) -> bool:
        """Drop an entry. Returns whether there was one"""
        with self._lock:
            if key not in self._entries:
                return False
            self._discard(key)
            return True

    def purge_expired(self) -> int:
        """Remove every stale entry

        Returns
        -------
        int
            The number of removed entries
        """
        with self._lock:
            stale = [key for key, entry in self._entries.items() if self._is_expired(entry)]
            for key in stale:
                self._discard(key)
        if stale:
            log.debug("Purged %d expired cache entries", len(stale))
        return len(stale)

    def clear(self):
        with self._lock:
            for entry in self._entries.values():
                entry.release()
            self._entries.clear()

    async def get_or_fetch(self, key: str, fetch: Callable[[], Awaitable[CachedSkin]]) -> CachedSkin:
        """Return the cached render or fetch and store it

        Concurrent calls for the same key share a single call to ``fetch``. Failures are not
        cached, every waiting caller gets the same exception.

        The returned entry is pinned for the caller, which has to call
        :py:meth:`CachedSkin.unpin` once it is done with the image.

        Parameters
        ----------
        key: str
            The render URL
        fetch: Callable[[], Awaitable[CachedSkin]]
            Coroutine function producing the entry on a miss

        Returns
        -------
        CachedSkin
            The cached or freshly fetched render
        """
        entry = self.lookup(key, pin=True)
        if entry is not None:
            log.debug("Cache hit for %s", key)
            return entry

        pending = self._pending.get(key)
        if pending is None:
            log.debug("Cache miss for %s", key)
            pending = _PendingFetch(asyncio.ensure_future(self._fetch_and_store(key, fetch)))
            pending.task.add_done_callback(_consume_exception)
            self._pending[key] = pending

        pending.waiters += 1
        try:
            return await asyncio.shield(pending.task)
        except asyncio.CancelledError:
            pending.task.add_done_callback(_unpin_result)
            raise

    async def _fetch_and_store(self, key, fetch):
        try:
            entry = await fetch()
            # one pin per waiting caller, taken before store can evict the entry
            entry.pin(self._pending[key].waiters)
            self.store(key, entry)
            return entry
        finally:
            self._pending.pop(key, None)

    def _is_expired(self, entry):
        return self._clock() - entry.inserted_at > self._ttl

    def _discard(self, key):
        entry = self._entries.pop(key)
        entry.release()


class _PendingFetch:
    def __init__(self, task: asyncio.Future):
        self.task = task
        self.waiters = 0


def _consume_exception(task):
    # waiters may all be cancelled, so nobody else is guaranteed to retrieve it
    if not task.cancelled():
        task.exception()


def _unpin_result(task):
    if not task.cancelled() and task.exception() is None:
        task.result().unpin()
