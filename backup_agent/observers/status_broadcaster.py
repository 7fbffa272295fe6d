"""
Status Broadcaster - pushes job status snapshots to remote console clients.
"""

import asyncio
import json
import logging
from asyncio import Queue, Task
from typing import Any, Callable, Dict, List

from fastapi import WebSocket, WebSocketDisconnect

from backup_agent.core.events.job_event import JobEvent
from backup_agent.models import JobStatus

StatusProvider = Callable[[], List[JobStatus]]


class StatusBroadcaster:
    """Manages WebSocket connections and broadcasts the job status list."""

    def __init__(self, status_provider: StatusProvider):
        self._status_provider = status_provider
        self._connections: List[WebSocket] = []
        self._message_queue: Queue = Queue()
        self._sender_task: Task | None = None
        logging.info("StatusBroadcaster initialiseret")

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def start_sender_task(self) -> None:
        if self._sender_task is None:
            self._sender_task = asyncio.create_task(self._message_sender_task())
            logging.info("WebSocket message sender task started.")

    def stop_sender_task(self) -> None:
        if self._sender_task:
            self._sender_task.cancel()
            self._sender_task = None
            logging.info("WebSocket message sender task stopped.")

    def snapshot_message(self) -> Dict[str, Any]:
        return {
            "type": "job_statuses",
            "data": [status.model_dump(mode="json") for status in self._status_provider()],
        }

    async def __call__(self, event: JobEvent) -> None:
        # Never block the job worker on slow clients
        if self._connections:
            self._message_queue.put_nowait(self.snapshot_message())

    async def _message_sender_task(self) -> None:
        while True:
            try:
                message_data = await self._message_queue.get()
                await self._broadcast_to_connections(message_data)
                self._message_queue.task_done()
            except asyncio.CancelledError:
                logging.info("Message sender task cancelled.")
                break
            except Exception as e:
                logging.error(f"Error in message sender task: {e}")

    async def _broadcast_to_connections(self, message_data: Dict[str, Any]) -> None:
        if not self._connections:
            return

        message_json = json.dumps(message_data)
        disconnected_clients = []

        for websocket in list(self._connections):
            try:
                await websocket.send_text(message_json)
            except WebSocketDisconnect:
                disconnected_clients.append(websocket)
            except Exception as e:
                disconnected_clients.append(websocket)
                logging.warning(f"Fejl ved sending til client: {e}")

        for websocket in disconnected_clients:
            self.disconnect(websocket)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a client and send it the current snapshot right away."""
        await websocket.accept()
        self._connections.append(websocket)
        logging.info(f"Remote console connected. Total connections: {len(self._connections)}")
        await websocket.send_text(json.dumps(self.snapshot_message()))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._connections:
            self._connections.remove(websocket)
        logging.info(f"Remote console disconnected. Total connections: {len(self._connections)}")
