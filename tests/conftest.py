import asyncio

import pytest
from PySide6 import QtCore

from equalizer.api import EqualizerApi
from ipc.backend import CommandDispatcher
from ipc.channel import CommandChannel
from ipc.simulator import SimulatedEqualizer
from ipc.transport import ExecutorTransport, Transport


class ManualTransport(Transport):
    """Records outgoing envelopes; the test decides if and when to answer."""

    def __init__(self):
        super().__init__()
        self.sent = []

    def send(self, envelope):
        self.sent.append(envelope)

    def reply(self, envelope, payload):
        self._deliver(envelope.channel, envelope.correlation_id, payload)


async def until(predicate, attempts=50):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


async def drain():
    current = asyncio.current_task()
    while True:
        pending = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
        if not pending:
            return
        await asyncio.gather(*pending)


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


@pytest.fixture
def host():
    return SimulatedEqualizer()


@pytest.fixture
def transport(host):
    transport = ExecutorTransport(CommandDispatcher(host))
    yield transport
    transport.close()


@pytest.fixture
def api(transport):
    return EqualizerApi(CommandChannel(transport, timeout_sec=2.0))
