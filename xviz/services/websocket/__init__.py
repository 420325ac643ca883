from .sender import WebsocketSink, XVIZWebsocketSender
from .session import LogSession, QueuedSocket

__all__ = ["WebsocketSink", "XVIZWebsocketSender", "LogSession", "QueuedSocket"]
