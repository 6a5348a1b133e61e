from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List, Mapping, Optional

from config import (
    DEFAULT_FREQUENCIES,
    DEFAULT_NEW_BAND_FREQUENCY,
    DEFAULT_QUALITY,
    MAX_FREQUENCY,
    MAX_GAIN,
    MAX_NUM_FILTERS,
    MAX_QUALITY,
    MIN_FREQUENCY,
    MIN_GAIN,
    MIN_NUM_FILTERS,
    MIN_QUALITY,
)
from utils import round_to_precision


class FilterType(Enum):
    PEAK = "PK"
    LPQ = "LPQ"
    HPQ = "HPQ"
    BP = "BP"
    LS = "LS"
    HS = "HS"
    NO = "NO"
    AP = "AP"
    LSC = "LSC"
    HSC = "HSC"
    BWLP = "BWLP"
    BWHP = "BWHP"
    LRLP = "LRLP"
    LRHP = "LRHP"
    LSCQ = "LSCQ"
    HSCQ = "HSCQ"

    @classmethod
    def from_setting(cls, value) -> "FilterType":
        if isinstance(value, cls):
            return value
        for filter_type in cls:
            if filter_type.value == value or filter_type.name == value:
                return filter_type
        raise ValueError(f"unknown filter type {value!r}")


# Wire order of filter types; the host addresses them by position.
FILTER_TYPE_ORDER: tuple[FilterType, ...] = tuple(FilterType)

GAIN_FILTER_TYPES = frozenset({
    FilterType.PEAK,
    FilterType.LS,
    FilterType.HS,
    FilterType.LSC,
    FilterType.HSC,
    FilterType.LSCQ,
    FilterType.HSCQ,
})

QUALITY_FILTER_TYPES = frozenset(FilterType) - {FilterType.LS, FilterType.HS}


class Command(Enum):
    """Commands understood by the equalizer host."""
    GET_STATE = "getState"
    GET_ENABLE = "getEnable"
    SET_ENABLE = "setEnable"
    SET_AUTOPREAMP = "setAutoPreAmp"
    SET_GRAPH_VIEW = "setGraphView"
    GET_PREAMP = "getPreamp"
    SET_PREAMP = "setPreamp"
    GET_FILTER_GAIN = "getFilterGain"
    SET_FILTER_GAIN = "setFilterGain"
    GET_FILTER_FREQUENCY = "getFilterFrequency"
    SET_FILTER_FREQUENCY = "setFilterFrequency"
    GET_FILTER_QUALITY = "getFilterQuality"
    SET_FILTER_QUALITY = "setFilterQuality"
    GET_FILTER_TYPE = "getFilterType"
    SET_FILTER_TYPE = "setFilterType"
    GET_FILTER_COUNT = "getFilterCount"
    ADD_FILTER = "addFilter"
    REMOVE_FILTER = "removeFilter"


def new_filter_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Filter:
    id: str
    frequency: float
    gain: float = 0.0
    quality: float = DEFAULT_QUALITY
    type: FilterType = FilterType.PEAK

    def to_payload(self) -> dict:
        return {
            "id": self.id,
            "frequency": self.frequency,
            "gain": self.gain,
            "quality": self.quality,
            "type": self.type.value,
        }


def default_filter(filter_id: Optional[str] = None, frequency: float = DEFAULT_NEW_BAND_FREQUENCY) -> Filter:
    return Filter(id=filter_id or new_filter_id(), frequency=frequency)


@dataclass(frozen=True)
class EqualizerState:
    is_enabled: bool = True
    is_auto_preamp_on: bool = False
    is_graph_view_on: bool = True
    pre_amp: float = 0.0
    filters: Mapping[str, Filter] = field(default_factory=dict)

    def with_filters(self, filters: Mapping[str, Filter]) -> "EqualizerState":
        return replace(self, filters=filters)

    def to_payload(self) -> dict:
        return {
            "isEnabled": self.is_enabled,
            "isAutoPreAmpOn": self.is_auto_preamp_on,
            "isGraphViewOn": self.is_graph_view_on,
            "preAmp": self.pre_amp,
            "filters": [f.to_payload() for f in self.filters.values()],
        }

    @classmethod
    def from_payload(cls, payload) -> "EqualizerState":
        """
        Build a state from a health-check payload.

        Raises ValueError if anything is missing, mistyped or out of bounds.
        """
        if not isinstance(payload, Mapping):
            raise ValueError(f"state payload must be a mapping, got {type(payload).__name__}")
        try:
            is_enabled = payload["isEnabled"]
            is_auto_preamp_on = payload["isAutoPreAmpOn"]
            is_graph_view_on = payload["isGraphViewOn"]
            pre_amp = payload["preAmp"]
            raw_filters = payload["filters"]
        except KeyError as e:
            raise ValueError(f"state payload is missing {e.args[0]!r}") from None

        for name, flag in (
            ("isEnabled", is_enabled),
            ("isAutoPreAmpOn", is_auto_preamp_on),
            ("isGraphViewOn", is_graph_view_on),
        ):
            if not isinstance(flag, bool):
                raise ValueError(f"{name} must be a bool")

        if isinstance(raw_filters, Mapping):
            raw_filters = [dict(item, id=item.get("id", key)) for key, item in raw_filters.items()]
        if not isinstance(raw_filters, list):
            raise ValueError("filters must be a list or a mapping")
        if not MIN_NUM_FILTERS <= len(raw_filters) <= MAX_NUM_FILTERS:
            raise ValueError(f"band count {len(raw_filters)} outside [{MIN_NUM_FILTERS}, {MAX_NUM_FILTERS}]")

        filters: dict[str, Filter] = {}
        for item in raw_filters:
            band = _parse_filter(item)
            if band.id in filters:
                raise ValueError(f"duplicate filter id {band.id!r}")
            filters[band.id] = band

        return cls(
            is_enabled=is_enabled,
            is_auto_preamp_on=is_auto_preamp_on,
            is_graph_view_on=is_graph_view_on,
            pre_amp=require_in_range("preAmp", pre_amp, MIN_GAIN, MAX_GAIN),
            filters=filters,
        )


def _parse_filter(item) -> Filter:
    if not isinstance(item, Mapping):
        raise ValueError("filter entries must be mappings")
    try:
        filter_type = FilterType.from_setting(item["type"])
        return Filter(
            id=str(item.get("id") or new_filter_id()),
            frequency=require_in_range("frequency", item["frequency"], MIN_FREQUENCY, MAX_FREQUENCY),
            gain=require_in_range("gain", item["gain"], MIN_GAIN, MAX_GAIN),
            quality=require_in_range("quality", item["quality"], MIN_QUALITY, MAX_QUALITY),
            type=filter_type,
        )
    except KeyError as e:
        raise ValueError(f"filter is missing {e.args[0]!r}") from None


def require_in_range(name: str, value, lo: float, hi: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if math.isnan(value) or not lo <= value <= hi:
        raise ValueError(f"Invalid {name} value {value} - outside of range [{lo:g}, {hi:g}]")
    return float(value)


def default_state() -> EqualizerState:
    filters = {}
    for frequency in DEFAULT_FREQUENCIES:
        band = default_filter(frequency=frequency)
        filters[band.id] = band
    return EqualizerState(filters=filters)


def sort_filters(filters: Iterable[Filter]) -> List[Filter]:
    return sorted(filters, key=lambda f: f.frequency)


def compute_avg_freq(filters: List[Filter], index: int) -> float:
    """
    Geometric mean of the neighbours around a gap in a frequency-sorted band list.

    index 0 is the gap below the first band, len(filters) the gap above the last.
    """
    lo = MIN_FREQUENCY if index == 0 else filters[index - 1].frequency
    hi = MAX_FREQUENCY if index == len(filters) else filters[index].frequency
    exponent = (math.log10(lo) + math.log10(hi)) / 2.0
    return round_to_precision(10.0 ** exponent, 0)
