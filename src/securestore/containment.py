from __future__ import annotations

import logging
from typing import AsyncIterator

from .errors import StorageIOError
from .preferences import EMPTY_SNAPSHOT, Snapshot, Subscription


async def contain_storage_errors(
    subscription: Subscription,
    *,
    logger: logging.Logger,
    context: str,
) -> AsyncIterator[Snapshot]:
    """Yield snapshots from `subscription`, replacing I/O failures with an empty snapshot.

    A StorageIOError affects only the emission it was raised for: it is logged,
    an empty snapshot is yielded in its place, and iteration carries on with the
    next change. Any other exception propagates and ends the stream.
    """
    while True:
        try:
            snapshot = await subscription.__anext__()
        except StopAsyncIteration:
            return
        except StorageIOError as ex:
            logger.warning("%s: storage unavailable: %s", context, ex)
            snapshot = EMPTY_SNAPSHOT
        yield snapshot
