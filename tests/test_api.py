import asyncio

import pytest

from config import MAX_NUM_FILTERS
from equalizer.api import EqualizerApi
from errors import EqualizerError, ErrorCode
from ipc.backend import CommandDispatcher
from ipc.channel import CommandChannel
from ipc.simulator import SimulatedEqualizer
from ipc.transport import ExecutorTransport
from models import Command, FilterType


def _raises(coro, code):
    with pytest.raises(EqualizerError) as info:
        asyncio.run(coro)
    assert info.value.code is code
    return info.value


def test_out_of_range_setter_fails_before_sending(api, host):
    with pytest.raises(ValueError, match="outside of range"):
        api.set_gain(3, 45)
    with pytest.raises(ValueError):
        api.set_frequency(0, 5)
    with pytest.raises(ValueError):
        api.set_quality(0, 0)
    with pytest.raises(ValueError):
        api.set_gain(MAX_NUM_FILTERS, 0)
    assert host.commands == []


def test_gain_round_trip_through_host(api, host):
    async def main():
        await api.set_gain(0, -12.5)
        await api.set_gain(1, 7.25)
        return await api.get_gain(0), await api.get_gain(1)

    assert asyncio.run(main()) == (-12.5, 7.25)
    assert host.commands[0] == (Command.SET_FILTER_GAIN, (0, -12500))


def test_band_parameters(api):
    async def main():
        await api.set_frequency(2, 440.4)
        await api.set_quality(2, 0.707)
        await api.set_type(2, FilterType.LSC)
        return await api.get_frequency(2), await api.get_quality(2), await api.get_type(2)

    assert asyncio.run(main()) == (440.0, 0.707, FilterType.LSC)


def test_global_parameters(api, host):
    async def main():
        await api.set_preamp(-3.5)
        await api.set_enable(False)
        await api.set_auto_preamp(True)
        await api.set_graph_view(False)
        return await api.get_preamp(), await api.get_enable()

    assert asyncio.run(main()) == (-3.5, False)
    assert host.is_auto_preamp_on is True
    assert host.is_graph_view_on is False


def test_add_and_remove_bands(api, host):
    async def main():
        await api.add_filter(1500)
        count = await api.get_filter_count()
        await api.remove_filter(0)
        return count, await api.get_filter_count()

    assert asyncio.run(main()) == (11, 10)


def test_add_at_capacity_is_unknown():
    host = SimulatedEqualizer(frequencies=[100.0 + i for i in range(MAX_NUM_FILTERS)])
    transport = ExecutorTransport(CommandDispatcher(host))
    try:
        api = EqualizerApi(CommandChannel(transport, timeout_sec=2.0))
        _raises(api.add_filter(1000), ErrorCode.UNKNOWN)
    finally:
        transport.close()
    assert host.band_count == MAX_NUM_FILTERS


def test_rejected_command_is_unknown(api, host):
    host.reject.add(Command.SET_FILTER_GAIN)
    error = _raises(api.set_gain(0, 3), ErrorCode.UNKNOWN)
    assert "setFilterGain" in str(error)


def test_host_health_errors(api, host):
    host.installed = False
    _raises(api.get_enable(), ErrorCode.NOT_INSTALLED)

    host.installed = True
    host.running = False
    _raises(api.get_enable(), ErrorCode.NOT_RUNNING)

    host.running = True
    host.ready = False
    _raises(api.get_enable(), ErrorCode.NOT_READY)
    _raises(api.get_equalizer_state(), ErrorCode.NOT_READY)


def test_band_missing_on_host_is_unknown(api):
    # Index is valid locally but the host only has ten bands.
    _raises(api.get_gain(15), ErrorCode.UNKNOWN)


def test_get_equalizer_state(api, host):
    async def main():
        await api.set_gain(5, -4)
        return await api.get_equalizer_state()

    state = asyncio.run(main())
    assert list(state.filters) == [str(i) for i in range(10)]
    assert state.filters["5"].gain == -4.0
    assert state.filters["0"].frequency == 31.0
    assert state.filters["0"].type is FilterType.PEAK
    assert state.is_enabled is True
    assert state.pre_amp == 0.0
