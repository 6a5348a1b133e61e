"""
Typed catalogue of equalizer commands.

Setters check their arguments synchronously and raise ValueError before
anything is sent; they return an awaitable for the round trip. Every call
that reaches the host either returns a decoded value or raises
EqualizerError carrying the matching ErrorDescription.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from config import (
    MAX_FREQUENCY,
    MAX_GAIN,
    MAX_NUM_FILTERS,
    MAX_QUALITY,
    MIN_FREQUENCY,
    MIN_GAIN,
    MIN_QUALITY,
    SUCCESS_RESULT,
)
from equalizer import codec
from errors import EqualizerError, ErrorCode
from ipc.channel import CommandChannel, Reply, channel_name
from models import Command, EqualizerState, FilterType, require_in_range

logger = logging.getLogger(__name__)


def _check_index(index: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < MAX_NUM_FILTERS:
        raise ValueError(f"Invalid filter index {index!r} - outside of range [0, {MAX_NUM_FILTERS - 1}]")
    return index


class EqualizerApi:
    def __init__(self, channel: CommandChannel):
        self._channel = channel

    # -----------------------------
    # Plumbing
    # -----------------------------

    async def _call(self, command: Command, args: tuple = (), index: Optional[int] = None) -> Reply:
        reply = await self._channel.invoke(command, args, channel=channel_name(command, index))
        if not reply.ok:
            logger.warning("%s failed: %s", command.value, reply.error_code.name)
            raise EqualizerError.from_code(reply.error_code, command.value)
        return reply

    async def _get(self, command: Command, decode: Callable[[int], object], index: Optional[int] = None):
        args = () if index is None else (index,)
        reply = await self._call(command, args, index)
        if not isinstance(reply.result, (int, float)):
            raise EqualizerError.from_code(ErrorCode.UNKNOWN, f"{command.value} returned {reply.result!r}")
        value = decode(int(reply.result))
        if value is None:
            raise EqualizerError.from_code(ErrorCode.UNKNOWN, f"{command.value} returned {reply.result!r}")
        return value

    async def _set(self, command: Command, args: tuple, index: Optional[int] = None) -> None:
        reply = await self._call(command, args, index)
        if reply.result != SUCCESS_RESULT:
            raise EqualizerError.from_code(ErrorCode.UNKNOWN, f"{command.value} returned {reply.result!r}")

    # -----------------------------
    # Global parameters
    # -----------------------------

    async def get_enable(self) -> bool:
        return await self._get(Command.GET_ENABLE, codec.decode_flag)

    def set_enable(self, enabled: bool) -> Awaitable[None]:
        return self._set(Command.SET_ENABLE, (codec.encode_flag(enabled),))

    def set_auto_preamp(self, enabled: bool) -> Awaitable[None]:
        return self._set(Command.SET_AUTOPREAMP, (codec.encode_flag(enabled),))

    def set_graph_view(self, enabled: bool) -> Awaitable[None]:
        return self._set(Command.SET_GRAPH_VIEW, (codec.encode_flag(enabled),))

    async def get_preamp(self) -> float:
        return await self._get(Command.GET_PREAMP, codec.decode_gain)

    def set_preamp(self, gain: float) -> Awaitable[None]:
        gain = require_in_range("gain", gain, MIN_GAIN, MAX_GAIN)
        return self._set(Command.SET_PREAMP, (codec.encode_gain(gain),))

    # -----------------------------
    # Per-band parameters
    # -----------------------------

    async def get_gain(self, index: int) -> float:
        return await self._get(Command.GET_FILTER_GAIN, codec.decode_gain, _check_index(index))

    def set_gain(self, index: int, gain: float) -> Awaitable[None]:
        _check_index(index)
        gain = require_in_range("gain", gain, MIN_GAIN, MAX_GAIN)
        return self._set(Command.SET_FILTER_GAIN, (index, codec.encode_gain(gain)), index)

    async def get_frequency(self, index: int) -> float:
        return await self._get(Command.GET_FILTER_FREQUENCY, codec.decode_frequency, _check_index(index))

    def set_frequency(self, index: int, frequency: float) -> Awaitable[None]:
        _check_index(index)
        frequency = require_in_range("frequency", frequency, MIN_FREQUENCY, MAX_FREQUENCY)
        return self._set(Command.SET_FILTER_FREQUENCY, (index, codec.encode_frequency(frequency)), index)

    async def get_quality(self, index: int) -> float:
        return await self._get(Command.GET_FILTER_QUALITY, codec.decode_quality, _check_index(index))

    def set_quality(self, index: int, quality: float) -> Awaitable[None]:
        _check_index(index)
        quality = require_in_range("quality", quality, MIN_QUALITY, MAX_QUALITY)
        return self._set(Command.SET_FILTER_QUALITY, (index, codec.encode_quality(quality)), index)

    async def get_type(self, index: int) -> FilterType:
        return await self._get(Command.GET_FILTER_TYPE, codec.decode_type, _check_index(index))

    def set_type(self, index: int, filter_type: FilterType) -> Awaitable[None]:
        _check_index(index)
        filter_type = FilterType.from_setting(filter_type)
        return self._set(Command.SET_FILTER_TYPE, (index, codec.encode_type(filter_type)), index)

    # -----------------------------
    # Band list
    # -----------------------------

    async def get_filter_count(self) -> int:
        return await self._get(Command.GET_FILTER_COUNT, int)

    def add_filter(self, frequency: float) -> Awaitable[None]:
        frequency = require_in_range("frequency", frequency, MIN_FREQUENCY, MAX_FREQUENCY)
        return self._set(Command.ADD_FILTER, (codec.encode_frequency(frequency),))

    def remove_filter(self, index: int) -> Awaitable[None]:
        _check_index(index)
        return self._set(Command.REMOVE_FILTER, (index,))

    # -----------------------------
    # Health check
    # -----------------------------

    async def get_equalizer_state(self) -> EqualizerState:
        """Fetch the whole equalizer state in one round trip."""
        reply = await self._call(Command.GET_STATE)
        try:
            return EqualizerState.from_payload(reply.result)
        except ValueError as e:
            logger.warning("Rejected equalizer state: %s", e)
            raise EqualizerError.from_code(ErrorCode.UNKNOWN, str(e)) from None
