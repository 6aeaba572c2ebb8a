"""
WebSocket message handlers.

Handles all incoming WebSocket message types and routes them to the
orchestrator.
"""

import json
import logging
from typing import Any, Dict

from fastapi import WebSocket

from ..services.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)


class MessageHandler:
    """
    Handles incoming WebSocket messages and routes them to the orchestrator.

    Each method handles a specific message type from the client.
    """

    def __init__(self, websocket: WebSocket, orchestrator: AnalysisOrchestrator):
        self.websocket = websocket
        self.orchestrator = orchestrator

    async def handle(self, data: Dict[str, Any]):
        """Route a message to the appropriate handler."""
        msg_type = data.get("type")
        handler = getattr(self, f"_handle_{msg_type}", None)

        if handler is None:
            logger.debug("Ignoring unknown message type: %s", msg_type)
            return

        try:
            await handler(data)
        except ValueError as e:
            await self._send("error", str(e))

    async def _send(self, message_type: str, content: Any):
        """Reply to this client only."""
        await self.websocket.send_text(json.dumps({"type": message_type, "content": content}))

    async def _handle_capture(self, data: Dict[str, Any]):
        self.orchestrator.spawn(self.orchestrator.capture())

    async def _handle_reset(self, data: Dict[str, Any]):
        await self.orchestrator.reset()

    async def _handle_trigger_analysis(self, data: Dict[str, Any]):
        """Manual analysis; runs in the background so the socket stays responsive."""
        prompt = data.get("prompt", data.get("content"))
        if prompt is not None and not isinstance(prompt, str):
            raise ValueError("Prompt must be a string")
        self.orchestrator.spawn(self.orchestrator.trigger_analysis(prompt))

    async def _handle_set_prompt(self, data: Dict[str, Any]):
        self.orchestrator.set_prompt(str(data.get("content") or ""))

    async def _handle_set_mode(self, data: Dict[str, Any]):
        await self.orchestrator.set_mode(str(data.get("content", "")))

    async def _handle_toggle_mode(self, data: Dict[str, Any]):
        await self.orchestrator.toggle_mode()

    async def _handle_set_model(self, data: Dict[str, Any]):
        await self.orchestrator.set_model(str(data.get("content", "")))

    async def _handle_next_model(self, data: Dict[str, Any]):
        await self.orchestrator.next_model()

    async def _handle_set_provider(self, data: Dict[str, Any]):
        await self.orchestrator.set_provider(str(data.get("content", "")))

    async def _handle_next_provider(self, data: Dict[str, Any]):
        await self.orchestrator.next_provider()

    async def _handle_get_status(self, data: Dict[str, Any]):
        await self._send("status", self.orchestrator.get_status())

    async def _handle_open_screenshot(self, data: Dict[str, Any]):
        """Return the file path of a slot so the shell can open it."""
        try:
            index = int(data.get("content"))
        except (TypeError, ValueError):
            raise ValueError("Screenshot index must be an integer")

        path = self.orchestrator.open_screenshot(index)
        if path is None:
            raise ValueError(f"No screenshot in slot {index}")
        await self._send("screenshot_path", {"index": index, "path": path})
