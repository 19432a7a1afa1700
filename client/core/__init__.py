from .backoff import ReconnectBackoff
from .network import BridgeClient
from .session import ClientSession

__all__ = ["BridgeClient", "ClientSession", "ReconnectBackoff"]
