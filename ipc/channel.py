"""
Request/response framing over the equalizer transport.

Every call gets its own correlation id and a single future, registered under
the call's channel name. The future settles exactly once, from the first
matching reply or from the timeout, and is unregistered either way.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Mapping, Optional, Sequence

from config import COMMAND_TIMEOUT_SEC, DEBUG_IPC
from errors import EqualizerError, ErrorCode
from models import Command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Envelope:
    command: Command
    channel: str
    args: tuple
    correlation_id: int


@dataclass(frozen=True)
class Reply:
    result: object = None
    error_code: Optional[ErrorCode] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None

    @classmethod
    def from_payload(cls, payload) -> "Reply":
        """Decode a raw reply; anything that is not a well-formed reply becomes UNKNOWN."""
        if not isinstance(payload, Mapping):
            return cls(error_code=ErrorCode.UNKNOWN)
        if "errorCode" in payload:
            try:
                return cls(error_code=ErrorCode(payload["errorCode"]))
            except (TypeError, ValueError):
                return cls(error_code=ErrorCode.UNKNOWN)
        result = payload.get("result")
        if isinstance(result, bool) or result is None:
            return cls(error_code=ErrorCode.UNKNOWN)
        if isinstance(result, Mapping):
            return cls(result=result)
        if isinstance(result, Real) and math.isfinite(result):
            return cls(result=result)
        return cls(error_code=ErrorCode.UNKNOWN)


def channel_name(command: Command, index: Optional[int] = None) -> str:
    if index is None:
        return command.value
    return f"{command.value}:{index}"


class CommandChannel:
    def __init__(self, transport, timeout_sec: float = COMMAND_TIMEOUT_SEC):
        self._transport = transport
        self._timeout_sec = float(timeout_sec)
        self._pending: dict[str, tuple[int, asyncio.Future]] = {}
        self._ids = itertools.count(1)
        transport.set_reply_handler(self._on_reply)

    @property
    def timeout_sec(self) -> float:
        return self._timeout_sec

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    async def invoke(self, command: Command, args: Sequence = (), channel: Optional[str] = None) -> Reply:
        name = channel or channel_name(command)
        # One outstanding call per channel name; later calls wait their turn.
        while name in self._pending:
            await asyncio.wait({self._pending[name][1]})

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        correlation_id = next(self._ids)
        self._pending[name] = (correlation_id, future)
        envelope = Envelope(command=command, channel=name, args=tuple(args), correlation_id=correlation_id)
        if DEBUG_IPC:
            logger.debug("send %s #%d %r", name, correlation_id, envelope.args)
        try:
            self._transport.send(envelope)
            return await asyncio.wait_for(future, self._timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("No reply on %s after %.1fs", name, self._timeout_sec)
            raise EqualizerError.from_code(ErrorCode.TIMEOUT, name) from None
        finally:
            if not future.done():
                future.cancel()
            entry = self._pending.get(name)
            if entry is not None and entry[0] == correlation_id:
                del self._pending[name]

    def _on_reply(self, channel: str, correlation_id: int, payload) -> None:
        entry = self._pending.get(channel)
        if entry is None or entry[0] != correlation_id:
            logger.debug("Dropping stale reply on %s #%d", channel, correlation_id)
            return
        future = entry[1]
        if future.done():
            return
        reply = Reply.from_payload(payload)
        if DEBUG_IPC:
            logger.debug("reply %s #%d %r", channel, correlation_id, reply)
        future.set_result(reply)
