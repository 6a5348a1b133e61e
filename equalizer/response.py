from __future__ import annotations

import math
from functools import lru_cache
from typing import Iterable

import numpy as np

from config import (
    MAX_FREQUENCY,
    MAX_GAIN,
    MIN_FREQUENCY,
    MIN_GAIN,
    RESPONSE_CACHE_SIZE,
    RESPONSE_FLOOR_DB,
    RESPONSE_MIN_HALF_OCTAVES,
    RESPONSE_POINTS_PER_DECADE,
    RESPONSE_RANGE_BANDWIDTHS,
    RESPONSE_SAMPLE_RATE,
)
from models import Filter, FilterType, GAIN_FILTER_TYPES, QUALITY_FILTER_TYPES
from utils import clamp, round_to_precision

BUTTERWORTH_Q = 1.0 / math.sqrt(2.0)

_LOWPASS_TYPES = {FilterType.LPQ, FilterType.BWLP, FilterType.LRLP}
_HIGHPASS_TYPES = {FilterType.HPQ, FilterType.BWHP, FilterType.LRHP}
_LOW_SHELF_TYPES = {FilterType.LS, FilterType.LSC, FilterType.LSCQ}
_HIGH_SHELF_TYPES = {FilterType.HS, FilterType.HSC, FilterType.HSCQ}
_BUTTERWORTH_TYPES = {FilterType.BWLP, FilterType.BWHP, FilterType.LRLP, FilterType.LRHP}


def _frequency_grid() -> np.ndarray:
    # Integer steps keep decade points (100 Hz, 1 kHz, ...) exact.
    lo = math.log10(MIN_FREQUENCY)
    hi = math.log10(MAX_FREQUENCY)
    steps = int(math.floor((hi - lo) * RESPONSE_POINTS_PER_DECADE))
    grid = 10.0 ** (lo + np.arange(steps + 1) / RESPONSE_POINTS_PER_DECADE)
    if grid[-1] < MAX_FREQUENCY:
        grid = np.append(grid, MAX_FREQUENCY)
    grid.setflags(write=False)
    return grid


FREQUENCY_GRID = _frequency_grid()


# -----------------------------
# Biquad sections (RBJ cookbook)
# -----------------------------

def _section(filter_type: FilterType, f0: float, gain_db: float, q: float, sample_rate: int) -> tuple[float, ...]:
    """Normalized (b0, b1, b2, a1, a2) for one second-order section."""
    A = 10.0 ** (gain_db / 40.0)
    w0 = 2.0 * math.pi * f0 / float(sample_rate)
    cos_w0 = math.cos(w0)
    sin_w0 = math.sin(w0)
    alpha = sin_w0 / (2.0 * q)

    if filter_type is FilterType.PEAK:
        b0, b1, b2 = 1.0 + alpha * A, -2.0 * cos_w0, 1.0 - alpha * A
        a0, a1, a2 = 1.0 + alpha / A, -2.0 * cos_w0, 1.0 - alpha / A
    elif filter_type in _LOWPASS_TYPES:
        b0, b1, b2 = (1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0
        a0, a1, a2 = 1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha
    elif filter_type in _HIGHPASS_TYPES:
        b0, b1, b2 = (1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0
        a0, a1, a2 = 1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha
    elif filter_type is FilterType.BP:
        b0, b1, b2 = alpha, 0.0, -alpha
        a0, a1, a2 = 1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha
    elif filter_type is FilterType.NO:
        b0, b1, b2 = 1.0, -2.0 * cos_w0, 1.0
        a0, a1, a2 = 1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha
    elif filter_type is FilterType.AP:
        b0, b1, b2 = 1.0 - alpha, -2.0 * cos_w0, 1.0 + alpha
        a0, a1, a2 = 1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha
    elif filter_type in _LOW_SHELF_TYPES:
        k = 2.0 * math.sqrt(A) * alpha
        b0 = A * ((A + 1.0) - (A - 1.0) * cos_w0 + k)
        b1 = 2.0 * A * ((A - 1.0) - (A + 1.0) * cos_w0)
        b2 = A * ((A + 1.0) - (A - 1.0) * cos_w0 - k)
        a0 = (A + 1.0) + (A - 1.0) * cos_w0 + k
        a1 = -2.0 * ((A - 1.0) + (A + 1.0) * cos_w0)
        a2 = (A + 1.0) + (A - 1.0) * cos_w0 - k
    elif filter_type in _HIGH_SHELF_TYPES:
        k = 2.0 * math.sqrt(A) * alpha
        b0 = A * ((A + 1.0) + (A - 1.0) * cos_w0 + k)
        b1 = -2.0 * A * ((A - 1.0) + (A + 1.0) * cos_w0)
        b2 = A * ((A + 1.0) + (A - 1.0) * cos_w0 - k)
        a0 = (A + 1.0) - (A - 1.0) * cos_w0 + k
        a1 = 2.0 * ((A - 1.0) - (A + 1.0) * cos_w0)
        a2 = (A + 1.0) - (A - 1.0) * cos_w0 - k
    else:
        raise ValueError(f"no response model for {filter_type}")

    return b0 / a0, b1 / a0, b2 / a0, a1 / a0, a2 / a0


def _effective_quality(filter_type: FilterType, quality: float) -> float:
    if filter_type not in QUALITY_FILTER_TYPES or filter_type in _BUTTERWORTH_TYPES:
        return BUTTERWORTH_Q
    return quality


def _sections(filter_type: FilterType, f0: float, gain_db: float, q: float) -> list[tuple[float, ...]]:
    if filter_type not in GAIN_FILTER_TYPES:
        gain_db = 0.0
    if filter_type in (FilterType.LRLP, FilterType.LRHP):
        section = _section(filter_type, f0, 0.0, BUTTERWORTH_Q, RESPONSE_SAMPLE_RATE)
        return [section, section]
    return [_section(filter_type, f0, gain_db, q, RESPONSE_SAMPLE_RATE)]


def _effective_range(f0: float, q: float) -> tuple[float, float]:
    bandwidth_octaves = (2.0 / math.log(2.0)) * math.asinh(1.0 / (2.0 * q))
    half = max(RESPONSE_MIN_HALF_OCTAVES, RESPONSE_RANGE_BANDWIDTHS * bandwidth_octaves)
    nyquist_guard = RESPONSE_SAMPLE_RATE * 0.49
    return f0 * 2.0 ** -half, min(f0 * 2.0 ** half, nyquist_guard)


# -----------------------------
# Response curves
# -----------------------------

@lru_cache(maxsize=RESPONSE_CACHE_SIZE)
def band_response(frequency: float, gain: float, quality: float, filter_type: FilterType) -> np.ndarray:
    """
    Magnitude response of one band in dB over FREQUENCY_GRID.

    The band is evaluated only inside its effective range and held flat at the
    range edges outside it. Results are cached by value and read-only.
    """
    q = _effective_quality(filter_type, quality)
    lo, hi = _effective_range(frequency, q)
    f = np.clip(FREQUENCY_GRID, lo, hi)
    w = 2.0 * np.pi * f / float(RESPONSE_SAMPLE_RATE)
    z1 = np.exp(-1j * w)
    z2 = z1 * z1

    magnitude = np.ones_like(f)
    for b0, b1, b2, a1, a2 in _sections(filter_type, frequency, gain, q):
        h = (b0 + b1 * z1 + b2 * z2) / (1.0 + a1 * z1 + a2 * z2)
        magnitude = magnitude * np.abs(h)

    floor = 10.0 ** (RESPONSE_FLOOR_DB / 20.0)
    curve = 20.0 * np.log10(np.maximum(magnitude, floor))
    curve.setflags(write=False)
    return curve


def filter_response(band: Filter) -> np.ndarray:
    return band_response(float(band.frequency), float(band.gain), float(band.quality), band.type)


def composed_response(filters: Iterable[Filter], pre_amp: float) -> np.ndarray:
    """Point-wise sum of every band curve plus the preamp offset, in dB."""
    total = np.full(FREQUENCY_GRID.shape, float(pre_amp))
    for band in filters:
        total += filter_response(band)
    return total


def auto_preamp(filters: Iterable[Filter], pre_amp: float) -> float:
    """Preamp that brings the peak of the unshifted response to 0 dB."""
    curve = composed_response(filters, pre_amp)
    highest = float(np.max(curve))
    value = clamp(-(highest - pre_amp), MIN_GAIN, MAX_GAIN)
    return round_to_precision(value, 2) + 0.0
