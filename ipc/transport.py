from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Callable, Optional

from errors import ErrorCode

logger = logging.getLogger(__name__)

ReplyHandler = Callable[[str, int, object], None]


class Transport:
    """Sends envelopes and hands replies back as (channel, correlation_id, payload)."""

    def __init__(self):
        self._reply_handler: Optional[ReplyHandler] = None

    def set_reply_handler(self, handler: ReplyHandler) -> None:
        self._reply_handler = handler

    def send(self, envelope) -> None:
        raise NotImplementedError

    def _deliver(self, channel: str, correlation_id: int, payload) -> None:
        if self._reply_handler is None:
            logger.debug("No reply handler, dropping reply on %s", channel)
            return
        self._reply_handler(channel, correlation_id, payload)


class ExecutorTransport(Transport):
    """
    Runs a blocking backend on a worker thread and delivers replies on the event loop.

    The backend is anything with dispatch(command, args) -> payload. Exceptions
    raised by it are reported as UNKNOWN replies and never reach the caller.

    Commands reach the backend strictly in send order: band indices are
    positional, so a removal must land before any command addressed with the
    shifted indices. Replies may still be awaited concurrently.
    """

    def __init__(self, backend):
        super().__init__()
        self._backend = backend
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="eqlink-ipc")

    def send(self, envelope) -> None:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, self._backend.dispatch, envelope.command, envelope.args)
        future.add_done_callback(partial(self._on_done, envelope))

    def _on_done(self, envelope, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        try:
            payload = future.result()
        except Exception:
            logger.exception("Backend failed on %s", envelope.channel)
            payload = {"errorCode": int(ErrorCode.UNKNOWN)}
        self._deliver(envelope.channel, envelope.correlation_id, payload)

    def close(self) -> None:
        self._executor.shutdown(wait=False)
