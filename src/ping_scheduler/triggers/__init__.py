from .protocol import DaemonTrigger
from .http import HttpDaemonTrigger

__all__ = ["DaemonTrigger", "HttpDaemonTrigger"]
