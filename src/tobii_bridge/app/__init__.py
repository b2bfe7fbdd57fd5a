from .bridge import AsyncioLoopThread
from .websocket import WebSocketClient, WebSocketServer

__all__ = ["AsyncioLoopThread", "WebSocketClient", "WebSocketServer"]
