"""
Local equalizer state with optimistic updates.

Every mutation is applied to the local snapshot first and confirmed with the
host afterwards. A failed confirmation raises the global error and leaves the
local state as it is; callers resynchronize with perform_health_check().
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Mapping, Optional, Union, assert_never

from PySide6 import QtCore

from config import (
    MAX_FREQUENCY,
    MAX_GAIN,
    MAX_NUM_FILTERS,
    MAX_QUALITY,
    MIN_FREQUENCY,
    MIN_GAIN,
    MIN_NUM_FILTERS,
    MIN_QUALITY,
    THROTTLE_INTERVAL_MS,
)
from equalizer import response
from equalizer.api import EqualizerApi
from equalizer.throttle import ThrottledWriter
from errors import EqualizerError, ErrorDescription
from models import (
    EqualizerState,
    Filter,
    FilterType,
    compute_avg_freq,
    default_filter,
    default_state,
    new_filter_id,
    require_in_range,
    sort_filters,
)

logger = logging.getLogger(__name__)

Filters = Mapping[str, Filter]


# -----------------------------
# Actions
# -----------------------------

@dataclass(frozen=True)
class InitFilters:
    filters: Filters


@dataclass(frozen=True)
class SetFrequency:
    filter_id: str
    value: float


@dataclass(frozen=True)
class SetGain:
    filter_id: str
    value: float


@dataclass(frozen=True)
class SetQuality:
    filter_id: str
    value: float


@dataclass(frozen=True)
class SetType:
    filter_id: str
    value: FilterType


@dataclass(frozen=True)
class AddFilter:
    frequency: float
    filter_id: str = field(default_factory=new_filter_id)


@dataclass(frozen=True)
class RemoveFilter:
    filter_id: str


FilterAction = Union[InitFilters, SetFrequency, SetGain, SetQuality, SetType, AddFilter, RemoveFilter]


def _update_filter(filters: Filters, filter_id: str, **changes) -> dict[str, Filter]:
    updated = dict(filters)
    current = updated.get(filter_id)
    if current is None:
        logger.debug("Ignoring update for unknown filter %s", filter_id)
        return updated
    updated[filter_id] = replace(current, **changes)
    return updated


def filter_reducer(filters: Filters, action: FilterAction) -> dict[str, Filter]:
    """
    Next band mapping for an action.

    Always returns a new dict and never touches the input. Actions that do not
    apply (unknown id, band count at its limit) leave the bands unchanged.
    """
    match action:
        case InitFilters(filters=new_filters):
            return dict(new_filters)
        case SetFrequency(filter_id=filter_id, value=value):
            return _update_filter(filters, filter_id, frequency=value)
        case SetGain(filter_id=filter_id, value=value):
            return _update_filter(filters, filter_id, gain=value)
        case SetQuality(filter_id=filter_id, value=value):
            return _update_filter(filters, filter_id, quality=value)
        case SetType(filter_id=filter_id, value=value):
            return _update_filter(filters, filter_id, type=value)
        case AddFilter(frequency=frequency, filter_id=filter_id):
            updated = dict(filters)
            if len(updated) >= MAX_NUM_FILTERS:
                logger.warning("Not adding a band, already at %d", MAX_NUM_FILTERS)
                return updated
            updated[filter_id] = default_filter(filter_id, frequency=frequency)
            return updated
        case RemoveFilter(filter_id=filter_id):
            updated = dict(filters)
            if filter_id in updated and len(updated) <= MIN_NUM_FILTERS:
                logger.warning("Not removing the last %d band(s)", MIN_NUM_FILTERS)
                return updated
            updated.pop(filter_id, None)
            return updated
        case _:
            assert_never(action)


# -----------------------------
# Store
# -----------------------------

class EqualizerStore(QtCore.QObject):
    stateChanged = QtCore.Signal(object)            # EqualizerState
    filtersChanged = QtCore.Signal(object, object)  # previous, next
    globalErrorChanged = QtCore.Signal(object)      # ErrorDescription or None
    loadingChanged = QtCore.Signal(bool)

    def __init__(
        self,
        api: EqualizerApi,
        initial: Optional[EqualizerState] = None,
        throttle_interval_ms: float = THROTTLE_INTERVAL_MS,
        parent=None,
    ):
        super().__init__(parent)
        self._api = api
        self._state = initial or default_state()
        self._global_error: Optional[ErrorDescription] = None
        self._loading = False
        self._throttle_interval_ms = throttle_interval_ms
        self._writers: dict[tuple[str, Optional[str]], ThrottledWriter] = {}

    # -----------------------------
    # Read access
    # -----------------------------

    @property
    def state(self) -> EqualizerState:
        return self._state

    @property
    def filters(self) -> Filters:
        return self._state.filters

    def sorted_filters(self) -> list[Filter]:
        return sort_filters(self._state.filters.values())

    @property
    def global_error(self) -> Optional[ErrorDescription]:
        return self._global_error

    @property
    def writes_enabled(self) -> bool:
        return self._global_error is None

    @property
    def is_loading(self) -> bool:
        return self._loading

    def auto_preamp_value(self) -> float:
        return response.auto_preamp(self._state.filters.values(), self._state.pre_amp)

    def index_of(self, filter_id: str) -> int:
        for index, key in enumerate(self._state.filters):
            if key == filter_id:
                return index
        raise KeyError(f"unknown filter id {filter_id!r}")

    # -----------------------------
    # Local mutations
    # -----------------------------

    def dispatch(self, action: FilterAction) -> None:
        previous = self._state.filters
        self._state = self._state.with_filters(filter_reducer(previous, action))
        self.filtersChanged.emit(previous, self._state.filters)
        self.stateChanged.emit(self._state)

    def _update_state(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        self.stateChanged.emit(self._state)

    def set_global_error(self, error: Optional[ErrorDescription]) -> None:
        if error != self._global_error:
            self._global_error = error
            self.globalErrorChanged.emit(error)

    def _set_loading(self, loading: bool) -> None:
        if loading != self._loading:
            self._loading = loading
            self.loadingChanged.emit(loading)

    # -----------------------------
    # Confirmation
    # -----------------------------

    async def _confirm(self, call: Awaitable, what: str) -> bool:
        try:
            await call
        except EqualizerError as e:
            logger.warning("Could not confirm %s: %s", what, e)
            self.set_global_error(e.description)
            return False
        return True

    def _submit(self, call: Awaitable, what: str) -> asyncio.Task:
        return asyncio.ensure_future(self._confirm(call, what))

    async def perform_health_check(self) -> bool:
        """Reload the whole state from the host and clear the global error."""
        self._set_loading(True)
        try:
            state = await self._api.get_equalizer_state()
        except EqualizerError as e:
            logger.warning("Health check failed: %s", e)
            self.set_global_error(e.description)
            return False
        finally:
            self._set_loading(False)

        self._writers.clear()
        # One snapshot for flags and bands together.
        previous = self._state.filters
        self._state = replace(
            state,
            filters=filter_reducer(previous, InitFilters(state.filters)),
        )
        self.filtersChanged.emit(previous, self._state.filters)
        self.stateChanged.emit(self._state)
        self.set_global_error(None)
        self._sync_auto_preamp()
        return True

    # -----------------------------
    # Global parameters
    # -----------------------------

    def set_enabled(self, enabled: bool) -> asyncio.Task:
        call = self._api.set_enable(enabled)
        self._update_state(is_enabled=bool(enabled))
        return self._submit(call, "enable")

    def set_graph_view_on(self, enabled: bool) -> asyncio.Task:
        call = self._api.set_graph_view(enabled)
        self._update_state(is_graph_view_on=bool(enabled))
        return self._submit(call, "graph view")

    def set_auto_preamp_on(self, enabled: bool) -> asyncio.Task:
        call = self._api.set_auto_preamp(enabled)
        self._update_state(is_auto_preamp_on=bool(enabled))
        task = self._submit(call, "auto preamp")
        self._sync_auto_preamp()
        return task

    def set_preamp(self, gain: float) -> asyncio.Task:
        call = self._api.set_preamp(gain)
        self._update_state(pre_amp=float(gain))
        return self._submit(call, "preamp")

    # -----------------------------
    # Per-band parameters
    # -----------------------------

    def set_gain(self, filter_id: str, gain: float) -> asyncio.Task:
        call = self._api.set_gain(self.index_of(filter_id), gain)
        self.dispatch(SetGain(filter_id, float(gain)))
        task = self._submit(call, "gain")
        self._sync_auto_preamp()
        return task

    def set_frequency(self, filter_id: str, frequency: float) -> asyncio.Task:
        call = self._api.set_frequency(self.index_of(filter_id), frequency)
        self.dispatch(SetFrequency(filter_id, float(frequency)))
        task = self._submit(call, "frequency")
        self._sync_auto_preamp()
        return task

    def set_quality(self, filter_id: str, quality: float) -> asyncio.Task:
        call = self._api.set_quality(self.index_of(filter_id), quality)
        self.dispatch(SetQuality(filter_id, float(quality)))
        task = self._submit(call, "quality")
        self._sync_auto_preamp()
        return task

    def set_type(self, filter_id: str, filter_type: FilterType) -> asyncio.Task:
        filter_type = FilterType.from_setting(filter_type)
        call = self._api.set_type(self.index_of(filter_id), filter_type)
        self.dispatch(SetType(filter_id, filter_type))
        task = self._submit(call, "filter type")
        self._sync_auto_preamp()
        return task

    # -----------------------------
    # Band list
    # -----------------------------

    def add_filter(self, frequency: Optional[float] = None) -> asyncio.Task:
        if len(self._state.filters) >= MAX_NUM_FILTERS:
            raise ValueError(f"Cannot add more than {MAX_NUM_FILTERS} bands")
        if frequency is None:
            bands = self.sorted_filters()
            frequency = compute_avg_freq(bands, len(bands))
        call = self._api.add_filter(frequency)
        self.dispatch(AddFilter(frequency=float(frequency)))
        task = self._submit(call, "add band")
        self._sync_auto_preamp()
        return task

    def remove_filter(self, filter_id: str) -> asyncio.Task:
        if len(self._state.filters) <= MIN_NUM_FILTERS:
            raise ValueError(f"Cannot remove the last {MIN_NUM_FILTERS} band(s)")
        call = self._api.remove_filter(self.index_of(filter_id))
        self.dispatch(RemoveFilter(filter_id))
        for key in [key for key in self._writers if key[1] == filter_id]:
            del self._writers[key]
        task = self._submit(call, "remove band")
        self._sync_auto_preamp()
        return task

    # -----------------------------
    # Throttled writers
    # -----------------------------

    def _writer(self, name: str, filter_id: Optional[str], apply, send) -> ThrottledWriter:
        key = (name, filter_id)
        writer = self._writers.get(key)
        if writer is None:
            writer = ThrottledWriter(apply, send, interval_ms=self._throttle_interval_ms)
            self._writers[key] = writer
        return writer

    def gain_writer(self, filter_id: str) -> ThrottledWriter:
        self.index_of(filter_id)

        def apply(value):
            require_in_range("gain", value, MIN_GAIN, MAX_GAIN)
            self.dispatch(SetGain(filter_id, float(value)))
            self._sync_auto_preamp()

        def send(value):
            return self._confirm(self._api.set_gain(self.index_of(filter_id), value), "gain")

        return self._writer("gain", filter_id, apply, send)

    def frequency_writer(self, filter_id: str) -> ThrottledWriter:
        self.index_of(filter_id)

        def apply(value):
            require_in_range("frequency", value, MIN_FREQUENCY, MAX_FREQUENCY)
            self.dispatch(SetFrequency(filter_id, float(value)))
            self._sync_auto_preamp()

        def send(value):
            return self._confirm(self._api.set_frequency(self.index_of(filter_id), value), "frequency")

        return self._writer("frequency", filter_id, apply, send)

    def quality_writer(self, filter_id: str) -> ThrottledWriter:
        self.index_of(filter_id)

        def apply(value):
            require_in_range("quality", value, MIN_QUALITY, MAX_QUALITY)
            self.dispatch(SetQuality(filter_id, float(value)))
            self._sync_auto_preamp()

        def send(value):
            return self._confirm(self._api.set_quality(self.index_of(filter_id), value), "quality")

        return self._writer("quality", filter_id, apply, send)

    def preamp_writer(self) -> ThrottledWriter:
        def apply(value):
            require_in_range("gain", value, MIN_GAIN, MAX_GAIN)
            self._update_state(pre_amp=float(value))

        def send(value):
            return self._confirm(self._api.set_preamp(value), "preamp")

        return self._writer("preamp", None, apply, send)

    def _sync_auto_preamp(self) -> None:
        if not self._state.is_auto_preamp_on:
            return
        value = self.auto_preamp_value()
        if value != self._state.pre_amp:
            self.preamp_writer()(value)
