import asyncio
import logging
from concurrent.futures import Future
from typing import Any, Dict, List, Optional

from fastapi import WebSocket
from fastapi.requests import HTTPConnection
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


def app_channel(app_id: int) -> str:
    """Channel for canvas and element events of one app."""
    return f"app:{app_id}"


def state_channel(app_id: int) -> str:
    # Bulk state saves have always gone out on this name instead of app_channel.
    # Clients subscribe to both; unify only together with the editor frontend.
    return f"canvas-{app_id}"


class ConnectionManager:
    def __init__(self):
        # Map channel name to list of WebSockets
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, websocket: WebSocket, *channels: str):
        await websocket.accept()
        if self.loop is None or not self.loop.is_running():
            self.loop = asyncio.get_running_loop()
        for channel in channels:
            self.subscribe(websocket, channel)

    def subscribe(self, websocket: WebSocket, channel: str):
        subscribers = self.active_connections.setdefault(channel, [])
        if websocket not in subscribers:
            subscribers.append(websocket)

    def disconnect(self, websocket: WebSocket, *channels: str):
        """Drop a socket from the given channels, or from every channel when none are given."""
        for channel in channels or list(self.active_connections):
            subscribers = self.active_connections.get(channel)
            if subscribers and websocket in subscribers:
                subscribers.remove(websocket)
                if not subscribers:
                    del self.active_connections[channel]

    def channel_size(self, channel: str) -> int:
        return len(self.active_connections.get(channel, []))

    async def broadcast(self, message: dict, channel: str) -> int:
        sent = 0
        # Iterate over a copy to avoid modification during iteration if disconnect happens
        for connection in self.active_connections.get(channel, [])[:]:
            try:
                await connection.send_json(message)
                sent += 1
            except Exception as e:
                logger.warning(f"Dropping dead WebSocket on {channel}: {e}")
                self.disconnect(connection)
        return sent

    async def broadcast_all(self, message: dict) -> int:
        seen: List[WebSocket] = []
        for subscribers in list(self.active_connections.values()):
            for connection in subscribers:
                if connection not in seen:
                    seen.append(connection)

        sent = 0
        for connection in seen:
            try:
                await connection.send_json(message)
                sent += 1
            except Exception as e:
                logger.warning(f"Dropping dead WebSocket: {e}")
                self.disconnect(connection)
        return sent

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> bool:
        """
        Fire-and-forget broadcast callable from sync handlers running in threads.
        Returns False when no event loop is available and the event is skipped.
        """
        message = {"event": event, "channel": channel, "data": jsonable_encoder(payload)}
        return self._schedule(self.broadcast(message, channel), event)

    def publish_all(self, event: str, payload: Dict[str, Any]) -> bool:
        message = {"event": event, "data": jsonable_encoder(payload)}
        return self._schedule(self.broadcast_all(message), event)

    def _schedule(self, coro, event: str) -> bool:
        if self.loop and self.loop.is_running():
            future = asyncio.run_coroutine_threadsafe(coro, self.loop)
            future.add_done_callback(lambda f: self._log_failure(f, event))
            return True
        coro.close()
        logger.warning(f"ConnectionManager loop not set. Skipping broadcast of {event}")
        return False

    @staticmethod
    def _log_failure(future: Future, event: str) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Broadcast of {event} failed: {exc}")


def get_broadcaster(connection: HTTPConnection) -> Optional[ConnectionManager]:
    """Dependency: the broadcaster wired into this application, if any."""
    return getattr(connection.app.state, "broadcaster", None)


def notify(broadcaster: Optional[ConnectionManager], channel: str, event: str, payload: Dict[str, Any]) -> bool:
    """Best-effort publish after a committed mutation. Never raises into the request."""
    if broadcaster is None:
        return False
    try:
        return broadcaster.publish(channel, event, payload)
    except Exception:
        logger.exception(f"Failed to publish {event} on {channel}")
        return False


def notify_all(broadcaster: Optional[ConnectionManager], event: str, payload: Dict[str, Any]) -> bool:
    if broadcaster is None:
        return False
    try:
        return broadcaster.publish_all(event, payload)
    except Exception:
        logger.exception(f"Failed to publish {event}")
        return False
