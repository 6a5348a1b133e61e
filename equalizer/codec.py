"""
Conversion between equalizer values and the host's integer encoding.

The host only speaks unsigned 32-bit integers. Gains are sent as
milli-decibels and come back wrapped modulo 2**32 when negative; quality is
sent as thousandths; frequency is whole hertz; filter types are indices into
FILTER_TYPE_ORDER.
"""

from __future__ import annotations

from typing import Optional

from config import (
    MAX_FREQUENCY,
    MAX_GAIN,
    MAX_QUALITY,
    MIN_FREQUENCY,
    MIN_GAIN,
    MIN_QUALITY,
    OVERFLOW_OFFSET,
    VALUE_SCALE,
)
from models import FILTER_TYPE_ORDER, FilterType
from utils import clamp


def to_unsigned(value: int) -> int:
    return int(value) % OVERFLOW_OFFSET


def encode_gain(gain_db: float) -> int:
    return int(round(gain_db * VALUE_SCALE))


def decode_gain(result: int) -> float:
    scaled = result / VALUE_SCALE
    if scaled > MAX_GAIN:
        # Anything above the maximum is a wrapped negative number.
        adjusted = (result - OVERFLOW_OFFSET) / VALUE_SCALE
        if adjusted > 0:
            return MIN_GAIN
        scaled = adjusted
    return clamp(scaled, MIN_GAIN, MAX_GAIN)


def encode_frequency(frequency: float) -> int:
    return int(round(frequency))


def decode_frequency(result: int) -> float:
    return clamp(float(result), MIN_FREQUENCY, MAX_FREQUENCY)


def encode_quality(quality: float) -> int:
    return int(round(quality * VALUE_SCALE))


def decode_quality(result: int) -> float:
    return clamp(result / VALUE_SCALE, MIN_QUALITY, MAX_QUALITY)


def encode_type(filter_type: FilterType) -> int:
    return FILTER_TYPE_ORDER.index(filter_type)


def decode_type(result: int) -> Optional[FilterType]:
    if 0 <= result < len(FILTER_TYPE_ORDER):
        return FILTER_TYPE_ORDER[int(result)]
    return None


def encode_flag(value: bool) -> int:
    return 1 if value else 0


def decode_flag(result: int) -> bool:
    return result != 0
