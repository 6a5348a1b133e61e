from ipc.backend import CommandDispatcher, EqualizerHost
from ipc.channel import CommandChannel, Envelope, Reply, channel_name
from ipc.transport import ExecutorTransport, Transport
