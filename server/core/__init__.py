from .connection import ConnectionContext
from .connection_manager import ConnectionManager, ConnectionState
from .correlator import Correlator, PendingCall
from .router import FrameRouter
from .server import BridgeServer

__all__ = [
    "ConnectionContext",
    "ConnectionManager",
    "ConnectionState",
    "Correlator",
    "PendingCall",
    "FrameRouter",
    "BridgeServer",
]
