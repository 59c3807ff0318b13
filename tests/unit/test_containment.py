from __future__ import annotations

import logging

import pytest

from securestore.containment import contain_storage_errors
from securestore.errors import StorageIOError


class ScriptedSubscription:
    """Replays a fixed list of snapshots or exceptions, then ends."""

    def __init__(self, steps) -> None:
        self._steps = list(steps)

    async def __anext__(self):
        if not self._steps:
            raise StopAsyncIteration
        step = self._steps.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step


log = logging.getLogger("test.containment")


@pytest.mark.asyncio
async def test_storage_error_becomes_empty_snapshot_and_stream_continues(caplog):
    sub = ScriptedSubscription([{"a": "1"}, StorageIOError("gone"), {"a": "2"}])

    with caplog.at_level(logging.WARNING, logger="test.containment"):
        out = [dict(s) async for s in contain_storage_errors(sub, logger=log, context="read_value: a")]

    assert out == [{"a": "1"}, {}, {"a": "2"}]
    assert "read_value: a: storage unavailable: gone" in caplog.text


@pytest.mark.asyncio
async def test_unclassified_error_terminates_stream():
    sub = ScriptedSubscription([{"a": "1"}, KeyError("bug"), {"a": "2"}])
    stream = contain_storage_errors(sub, logger=log, context="x")

    assert dict(await stream.__anext__()) == {"a": "1"}
    with pytest.raises(KeyError):
        await stream.__anext__()
