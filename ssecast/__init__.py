from .channel import Channel
from .connection import Connection
from .errors import InvalidArgument
from .events import Event
from .liveness import LivenessMap
from .signals import Signal

__all__ = ["Channel", "Connection", "Event", "InvalidArgument", "LivenessMap", "Signal"]
