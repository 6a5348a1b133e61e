from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from config import (
    DEFAULT_FREQUENCIES,
    DEFAULT_QUALITY,
    MAX_NUM_FILTERS,
    MIN_NUM_FILTERS,
    NOT_READY_SENTINEL,
    SUCCESS_RESULT,
)
from equalizer import codec
from ipc.backend import EqualizerHost
from models import Command, FilterType

logger = logging.getLogger(__name__)


class SimulatedEqualizer(EqualizerHost):
    """
    In-memory equalizer host.

    Stores values in the host's raw encoding and answers commands the way the
    real process does, including unsigned wrap-around of negative gains.
    Health toggles (installed/running/ready) and a per-command latency let
    callers reproduce every failure class.
    """

    def __init__(self, frequencies=DEFAULT_FREQUENCIES, latency_sec: float = 0.0):
        self.installed = True
        self.running = True
        self.ready = True
        self.latency_sec = float(latency_sec)
        self.is_enabled = True
        self.is_auto_preamp_on = False
        self.is_graph_view_on = True
        self.reject: set[Command] = set()
        self.commands: list[tuple[Command, tuple]] = []
        self._lock = threading.Lock()
        self._pre_amp = 0
        self._bands = [self._new_band(f) for f in frequencies]

    @staticmethod
    def _new_band(frequency: float) -> dict:
        return {
            "frequency": codec.encode_frequency(frequency),
            "gain": 0,
            "quality": codec.encode_quality(DEFAULT_QUALITY),
            "type": codec.encode_type(FilterType.PEAK),
        }

    @property
    def band_count(self) -> int:
        with self._lock:
            return len(self._bands)

    def is_installed(self) -> bool:
        return self.installed

    def is_running(self) -> bool:
        return self.running

    def get_state(self) -> Optional[dict]:
        if not self.ready:
            return None
        with self._lock:
            return {
                "isEnabled": self.is_enabled,
                "isAutoPreAmpOn": self.is_auto_preamp_on,
                "isGraphViewOn": self.is_graph_view_on,
                "preAmp": self._pre_amp / 1000.0,
                "filters": [
                    {
                        "id": str(index),
                        "frequency": float(band["frequency"]),
                        "gain": band["gain"] / 1000.0,
                        "quality": band["quality"] / 1000.0,
                        "type": codec.decode_type(band["type"]).value,
                    }
                    for index, band in enumerate(self._bands)
                ],
            }

    def send_command(self, command: Command, args: tuple) -> int:
        if self.latency_sec > 0:
            time.sleep(self.latency_sec)
        with self._lock:
            self.commands.append((command, tuple(args)))
            if not self.ready:
                return NOT_READY_SENTINEL
            if command in self.reject:
                return 0
            return self._handle(command, tuple(args))

    def _handle(self, command: Command, args: tuple) -> int:
        if command is Command.GET_ENABLE:
            return codec.encode_flag(self.is_enabled)
        if command is Command.SET_ENABLE:
            self.is_enabled = codec.decode_flag(args[0])
            return SUCCESS_RESULT
        if command is Command.SET_AUTOPREAMP:
            self.is_auto_preamp_on = codec.decode_flag(args[0])
            return SUCCESS_RESULT
        if command is Command.SET_GRAPH_VIEW:
            self.is_graph_view_on = codec.decode_flag(args[0])
            return SUCCESS_RESULT
        if command is Command.GET_PREAMP:
            return codec.to_unsigned(self._pre_amp)
        if command is Command.SET_PREAMP:
            self._pre_amp = int(args[0])
            return SUCCESS_RESULT
        if command is Command.GET_FILTER_COUNT:
            return len(self._bands)
        if command is Command.ADD_FILTER:
            if len(self._bands) >= MAX_NUM_FILTERS:
                return 0
            self._bands.append(self._new_band(args[0]))
            return SUCCESS_RESULT
        if command is Command.REMOVE_FILTER:
            if len(self._bands) <= MIN_NUM_FILTERS:
                return 0
            del self._bands[args[0]]
            return SUCCESS_RESULT

        # Per-band commands; a bad index raises IndexError, which the
        # transport reports as an unknown error.
        band = self._bands[args[0]]
        if command is Command.GET_FILTER_GAIN:
            return codec.to_unsigned(band["gain"])
        if command is Command.SET_FILTER_GAIN:
            band["gain"] = int(args[1])
            return SUCCESS_RESULT
        if command is Command.GET_FILTER_FREQUENCY:
            return band["frequency"]
        if command is Command.SET_FILTER_FREQUENCY:
            band["frequency"] = int(args[1])
            return SUCCESS_RESULT
        if command is Command.GET_FILTER_QUALITY:
            return band["quality"]
        if command is Command.SET_FILTER_QUALITY:
            band["quality"] = int(args[1])
            return SUCCESS_RESULT
        if command is Command.GET_FILTER_TYPE:
            return band["type"]
        if command is Command.SET_FILTER_TYPE:
            band["type"] = int(args[1])
            return SUCCESS_RESULT
        logger.warning("Unhandled command %s", command)
        return 0
