import asyncio
import time

import pytest

from conftest import drain
from equalizer.api import EqualizerApi
from equalizer.store import EqualizerStore
from errors import ErrorCode
from ipc.backend import CommandDispatcher
from ipc.channel import CommandChannel
from ipc.simulator import SimulatedEqualizer
from ipc.transport import ExecutorTransport
from models import Command, EqualizerState, Filter, FilterType


def _host_band(host, index):
    return host.get_state()["filters"][index]


def test_invalid_gain_changes_nothing(api, host):
    store = EqualizerStore(api)

    async def main():
        await store.perform_health_check()
        before = store.state
        with pytest.raises(ValueError, match="outside of range"):
            store.set_gain("3", 45)
        assert store.state is before

    asyncio.run(main())
    assert host.commands == []


def test_optimistic_gain_then_confirmed(api, host):
    host.latency_sec = 0.05
    store = EqualizerStore(api)

    async def main():
        await store.perform_health_check()
        task = store.set_gain("3", 20)
        assert store.filters["3"].gain == 20.0
        assert _host_band(host, 3)["gain"] == 0.0
        return await task

    assert asyncio.run(main()) is True
    assert _host_band(host, 3)["gain"] == 20.0
    assert host.commands == [(Command.SET_FILTER_GAIN, (3, 20000))]


def test_failed_write_keeps_local_value_and_blocks(api, host):
    store = EqualizerStore(api)
    errors = []
    store.globalErrorChanged.connect(errors.append)

    async def main():
        await store.perform_health_check()
        host.reject.add(Command.SET_FILTER_GAIN)
        ok = await store.set_gain("3", 20)
        assert not ok
        assert store.filters["3"].gain == 20.0
        assert not store.writes_enabled
        assert store.global_error.code is ErrorCode.UNKNOWN

        # Resynchronize with what the host really has.
        assert await store.perform_health_check()

    asyncio.run(main())
    assert store.filters["3"].gain == 0.0
    assert store.global_error is None
    assert [e.code if e else None for e in errors] == [ErrorCode.UNKNOWN, None]


def test_health_check_failure(api, host):
    host.running = False
    store = EqualizerStore(api)
    loading = []
    store.loadingChanged.connect(loading.append)

    ok = asyncio.run(store.perform_health_check())
    assert ok is False
    assert store.global_error.code is ErrorCode.NOT_RUNNING
    assert store.is_loading is False
    assert loading == [True, False]


def test_health_check_replaces_state(api, host):
    host.is_graph_view_on = False
    store = EqualizerStore(api)
    seen = []
    store.filtersChanged.connect(lambda previous, current: seen.append((previous, current)))

    asyncio.run(store.perform_health_check())
    assert list(store.filters) == [str(i) for i in range(10)]
    assert store.state.is_graph_view_on is False
    previous, current = seen[-1]
    assert previous != current
    assert current == store.filters


def test_add_and_remove_bands(api, host):
    store = EqualizerStore(api)

    async def main():
        await store.perform_health_check()
        added = await store.add_filter()
        removed = await store.remove_filter("0")
        return added, removed

    assert asyncio.run(main()) == (True, True)
    frequencies = [f.frequency for f in store.filters.values()]
    assert "0" not in store.filters
    assert frequencies[-1] == 17889.0
    assert host.band_count == 10
    assert _host_band(host, 9)["frequency"] == 17889.0


def test_band_count_limits_raise():
    single = EqualizerState(filters={"a": Filter(id="a", frequency=1000.0)})
    store = EqualizerStore(api=None, initial=single)
    with pytest.raises(ValueError):
        store.remove_filter("a")
    assert list(store.filters) == ["a"]

    full = EqualizerState(filters={str(i): Filter(id=str(i), frequency=100.0 + i) for i in range(20)})
    store = EqualizerStore(api=None, initial=full)
    with pytest.raises(ValueError):
        store.add_filter(1000.0)


def test_unknown_band_id(api):
    store = EqualizerStore(api)
    with pytest.raises(KeyError):
        store.set_gain("missing", 1.0)


def test_set_type_and_globals(api, host):
    store = EqualizerStore(api)

    async def main():
        await store.perform_health_check()
        results = [
            await store.set_type("0", "LSC"),
            await store.set_enabled(False),
            await store.set_graph_view_on(False),
            await store.set_preamp(-2.5),
        ]
        await drain()
        return results

    assert asyncio.run(main()) == [True] * 4
    assert store.filters["0"].type is FilterType.LSC
    state = host.get_state()
    assert state["filters"][0]["type"] == "LSC"
    assert state["isEnabled"] is False
    assert state["isGraphViewOn"] is False
    assert state["preAmp"] == -2.5


def test_auto_preamp_follows_band_changes(api, host):
    store = EqualizerStore(api)

    async def main():
        await store.perform_health_check()
        store.set_auto_preamp_on(True)
        await drain()
        assert store.state.pre_amp == 0.0

        # Band "5" is the 1 kHz band.
        store.set_gain("5", 10.0)
        assert store.state.pre_amp == -10.0
        await drain()

    asyncio.run(main())
    state = host.get_state()
    assert state["isAutoPreAmpOn"] is True
    assert state["preAmp"] == -10.0
    assert store.auto_preamp_value() == -10.0


def test_gain_writer_drops_intermediate_values(api, host):
    store = EqualizerStore(api, throttle_interval_ms=100)

    async def main():
        await store.perform_health_check()
        writer = store.gain_writer("2")
        assert store.gain_writer("2") is writer
        first = writer(5.0)
        assert writer(6.0) is None
        with pytest.raises(ValueError):
            writer(45.0)
        assert await first is True
        await drain()
        return writer

    writer = asyncio.run(main())
    assert store.filters["2"].gain == 6.0
    assert _host_band(host, 2)["gain"] == 5.0
    assert writer.dropped == 1


class SlowRemoveEqualizer(SimulatedEqualizer):
    def send_command(self, command, args):
        if command is Command.REMOVE_FILTER:
            time.sleep(0.2)
        return super().send_command(command, args)


def test_commands_reach_host_in_issue_order():
    host = SlowRemoveEqualizer()
    transport = ExecutorTransport(CommandDispatcher(host))
    store = EqualizerStore(EqualizerApi(CommandChannel(transport, timeout_sec=2.0)))

    async def main():
        await store.perform_health_check()
        removed = store.remove_filter("0")
        # Band "5" (1 kHz) now sits at index 4.
        changed = store.set_gain("5", 12.0)
        return await removed, await changed

    try:
        assert asyncio.run(main()) == (True, True)
    finally:
        transport.close()

    assert host.commands == [
        (Command.REMOVE_FILTER, (0,)),
        (Command.SET_FILTER_GAIN, (4, 12000)),
    ]
    band = _host_band(host, 4)
    assert band["frequency"] == 1000.0
    assert band["gain"] == 12.0
    assert store.global_error is None


def test_health_check_emits_one_complete_snapshot(api, host):
    host.is_graph_view_on = False
    host.send_command(Command.SET_PREAMP, (-2000,))
    store = EqualizerStore(api)
    snapshots = []
    store.stateChanged.connect(snapshots.append)

    assert asyncio.run(store.perform_health_check())
    assert len(snapshots) == 1
    state = snapshots[0]
    assert state.is_graph_view_on is False
    assert state.pre_amp == -2.0
    assert list(state.filters) == [str(i) for i in range(10)]


def test_health_check_reapplies_auto_preamp(api, host):
    host.is_auto_preamp_on = True
    host.send_command(Command.SET_FILTER_GAIN, (5, 10000))
    store = EqualizerStore(api)

    async def main():
        assert await store.perform_health_check()
        assert store.state.pre_amp == -10.0
        await drain()

    asyncio.run(main())
    assert host.get_state()["preAmp"] == -10.0
