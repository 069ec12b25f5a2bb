import asyncio
import collections
import contextlib
import logging
import threading

from datastore.errors import DataStoreError

logger = logging.getLogger(__name__)


class PropertyGuard:
    """
    FIFO mutex for one property id, shared by every thread and event loop.

    Each request drives its coroutines on its own loop (async_to_sync), so an
    asyncio.Lock cannot serialize two requests. Waiters park on a future of
    their own loop and are woken with call_soon_threadsafe in arrival order.
    """

    def __init__(self):
        self._mutex = threading.Lock()
        self._locked = False
        self._waiters = collections.deque()

    @property
    def locked(self):
        return self._locked

    async def acquire(self):
        loop = asyncio.get_running_loop()
        with self._mutex:
            if not self._locked:
                self._locked = True
                return
            waiter = loop.create_future()
            self._waiters.append((loop, waiter))
        try:
            await waiter
        except asyncio.CancelledError:
            # woken but cancelled before resuming: ownership was handed to us
            if waiter.done() and not waiter.cancelled():
                self.release()
            raise

    def release(self):
        with self._mutex:
            if not self._waiters:
                self._locked = False
                return
            loop, waiter = self._waiters.popleft()
        try:
            loop.call_soon_threadsafe(self._hand_over, waiter)
        except RuntimeError:
            # the waiter's loop is already closed
            self.release()

    def _hand_over(self, waiter):
        if waiter.cancelled():
            self.release()
        else:
            waiter.set_result(None)


class SavedPropertyTracker:
    """
    Client-side set of saved property ids, mirrored from the store.

    The set only changes after the store confirms a save / unsave, never
    optimistically. Operations on the same id are serialized with a per-id
    guard, so a second toggle issued before the first one is confirmed sees
    the membership the first one produced, whichever request issued it.
    Failed operations leave the set unchanged and return False.
    """

    def __init__(self, store, saved_ids=()):
        self.store = store
        self._saved = set(saved_ids)
        self._state = threading.Lock()
        self._guards = {}
        self._closed = False

    @classmethod
    async def load(cls, store):
        """Mirror the store's saved ids; store errors propagate to the caller."""
        return cls(store, await store.list_saved_ids())

    @property
    def saved_ids(self):
        with self._state:
            return frozenset(self._saved)

    @property
    def closed(self):
        return self._closed

    def close(self):
        """Results confirmed after this point are no longer applied."""
        self._closed = True

    def is_saved(self, property_id):
        return property_id in self._saved

    def _apply(self, property_id, saved):
        if self._closed:
            return
        with self._state:
            if saved:
                self._saved.add(property_id)
            else:
                self._saved.discard(property_id)

    @contextlib.asynccontextmanager
    async def _guard(self, property_id):
        with self._state:
            guard = self._guards.get(property_id)
            if guard is None:
                guard = self._guards[property_id] = PropertyGuard()
        await guard.acquire()
        try:
            yield
        finally:
            guard.release()

    async def _confirm(self, operation, property_id):
        try:
            ok = await operation(property_id)
        except DataStoreError as e:
            logger.error("Store error during %s of property %s: %s", operation.__name__, property_id, e)
            return False
        if not ok:
            logger.warning("Store did not confirm %s of property %s", operation.__name__, property_id)
        return bool(ok)

    async def _refresh(self, property_id):
        """Re-read one id from the store; keeps the mirrored value when the store is unavailable."""
        try:
            saved = await self.store.is_saved(property_id)
        except DataStoreError as e:
            logger.warning("Could not re-read saved state of property %s: %s", property_id, e)
            return
        self._apply(property_id, saved)

    async def _save(self, property_id):
        if property_id in self._saved:
            return True
        ok = await self._confirm(self.store.save, property_id)
        if ok:
            self._apply(property_id, True)
        return ok

    async def _unsave(self, property_id):
        if property_id not in self._saved:
            return True
        ok = await self._confirm(self.store.unsave, property_id)
        if ok:
            self._apply(property_id, False)
        return ok

    async def save(self, property_id):
        async with self._guard(property_id):
            return await self._save(property_id)

    async def unsave(self, property_id):
        async with self._guard(property_id):
            return await self._unsave(property_id)

    async def toggle_membership(self, property_id):
        """Toggle and return (ok, saved), both decided while the id is guarded."""
        async with self._guard(property_id):
            await self._refresh(property_id)
            if property_id in self._saved:
                ok = await self._unsave(property_id)
            else:
                ok = await self._save(property_id)
            return ok, self.is_saved(property_id)

    async def toggle(self, property_id):
        ok, _ = await self.toggle_membership(property_id)
        return ok

    async def unsave_all(self):
        """Unsave every tracked id in order; returns the ids that failed."""
        failed = []
        for property_id in sorted(self.saved_ids):
            if not await self.unsave(property_id):
                failed.append(property_id)
        return failed


_shared = None
_shared_lock = threading.Lock()


async def get_tracker(store):
    """
    The process-wide tracker for `store`, loaded on first use.

    Every surface (list pages, toggle, saved page) goes through this one
    instance so its per-id guards see all requests. A failed load is not
    cached; the DataStoreError propagates and the next call retries.
    """
    global _shared
    tracker = _shared
    if tracker is not None and tracker.store is store:
        return tracker
    loaded = await SavedPropertyTracker.load(store)
    with _shared_lock:
        if _shared is None or _shared.store is not store:
            if _shared is not None:
                _shared.close()
            _shared = loaded
            logger.info("Saved property tracker loaded for %s: %d saved", type(store).__name__, len(loaded.saved_ids))
        return _shared
