from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Set

from .backends import StorageBackend


logger = logging.getLogger(__name__)

Snapshot = Mapping[str, str]
EMPTY_SNAPSHOT: Snapshot = MappingProxyType({})


class Subscription:
    """
    Single-consumer stream of store snapshots.

    - The first emission is the latest snapshot; after that there is one
      emission per committed store mutation, whichever keys it touched.
    - Every emission loads the snapshot from the backend, so a failing backend
      raises StorageIOError for that emission only; the subscription stays
      registered and the next `__anext__` waits for the next change.
    - Must be consumed by one task. Call `close()` (or use `async with`) to
      unregister.
    """

    def __init__(self, store: "PreferencesStore") -> None:
        self._store = store
        self._pending: asyncio.Queue[None] = asyncio.Queue()
        self._pending.put_nowait(None)  # replay the current state first
        self._closed = False

    def _notify(self) -> None:
        self._pending.put_nowait(None)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        if self._closed:
            raise StopAsyncIteration
        await self._pending.get()
        return await self._store.snapshot()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._store._unsubscribe(self)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class PreferencesStore:
    """
    Transactional key-value text store on top of a `StorageBackend`.

    Notes
    - `edit()` runs read-modify-write under an asyncio lock, so at most one edit
      commits at a time per store instance. The transform sees a private copy
      of the data; if it raises, nothing is saved.
    - Backend I/O runs in a worker thread.
    - Subscribers are notified after every successful commit.
    - Coordination between processes is out of scope; the S3 backend's
      conditional save only detects conflicting writers.
    """

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self._lock = asyncio.Lock()
        self._subscribers: Set[Subscription] = set()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    async def snapshot(self) -> Snapshot:
        data, _version = await asyncio.to_thread(self._backend.load)
        return MappingProxyType(dict(data))

    async def get(self, key: str) -> Optional[str]:
        return (await self.snapshot()).get(key)

    async def edit(self, transform: Callable[[Dict[str, str]], None]) -> Snapshot:
        """Apply `transform` to a mutable copy of the store and commit it atomically.

        Returns the committed snapshot. Exceptions from the transform or the
        backend propagate and leave the stored data unchanged.
        """
        async with self._lock:
            data, version = await asyncio.to_thread(self._backend.load)
            draft = dict(data)
            transform(draft)
            await asyncio.to_thread(self._backend.save, draft, version)
            committed = MappingProxyType(draft)
        logger.debug("edit committed (%d keys)", len(committed))
        self._notify_all()
        return committed

    async def set(self, key: str, value: str) -> None:
        def _apply(data: Dict[str, str]) -> None:
            data[key] = value

        await self.edit(_apply)

    async def clear_all(self) -> None:
        await self.edit(lambda data: data.clear())

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        self._subscribers.add(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)

    def _notify_all(self) -> None:
        for sub in list(self._subscribers):
            sub._notify()
