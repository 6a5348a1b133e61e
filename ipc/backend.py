from __future__ import annotations

import logging
from typing import Optional

from config import DEBUG_IPC, NOT_READY_SENTINEL
from errors import ErrorCode
from models import Command

logger = logging.getLogger(__name__)


class EqualizerHost:
    """The external equalizer process, as seen through its raw command primitive."""

    def is_installed(self) -> bool:
        raise NotImplementedError

    def is_running(self) -> bool:
        raise NotImplementedError

    def send_command(self, command: Command, args: tuple) -> int:
        """Send one command and return the host's raw unsigned 32-bit result."""
        raise NotImplementedError

    def get_state(self) -> Optional[dict]:
        """Full state payload, or None while the host is not ready for commands."""
        raise NotImplementedError


class CommandDispatcher:
    """Checks host health before every command and turns raw results into reply payloads."""

    def __init__(self, host: EqualizerHost):
        self._host = host

    def dispatch(self, command: Command, args: tuple) -> dict:
        if not self._host.is_installed():
            return {"errorCode": int(ErrorCode.NOT_INSTALLED)}
        if not self._host.is_running():
            return {"errorCode": int(ErrorCode.NOT_RUNNING)}

        if command is Command.GET_STATE:
            state = self._host.get_state()
            if state is None:
                return {"errorCode": int(ErrorCode.NOT_READY)}
            return {"result": state}

        result = self._host.send_command(command, tuple(args))
        if result == NOT_READY_SENTINEL:
            return {"errorCode": int(ErrorCode.NOT_READY)}
        if DEBUG_IPC:
            logger.debug("%s%r -> %d", command.value, tuple(args), result)
        return {"result": result}
