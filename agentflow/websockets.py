import asyncio
import json
import logging
from typing import List

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self.loop = None

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: str):
        dead_connections = []
        for connection in list(self.active_connections):
            try:
                await connection.send_text(message)
            except Exception as e:
                logger.error(f"Failed to send to connection: {e}")
                dead_connections.append(connection)

        for dead_conn in dead_connections:
            self.disconnect(dead_conn)

    def event_callback(self, event: dict):
        """Thread-safe: executions run in worker threads, sockets live on the app loop."""
        if self.loop is None or not self.active_connections:
            return
        payload = {k: v for k, v in event.items() if k != "type"}
        message = json.dumps({"type": event["type"], "payload": payload}, default=str)
        asyncio.run_coroutine_threadsafe(self.broadcast(message), self.loop)


manager = ConnectionManager()
