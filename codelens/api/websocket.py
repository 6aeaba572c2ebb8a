"""
WebSocket endpoint for real-time communication.

Handles bidirectional WebSocket connections with the overlay shell.
"""
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect

from ..core.connection import manager
from .handlers import MessageHandler

logger = logging.getLogger(__name__)


async def websocket_endpoint(websocket: WebSocket):
    """
    Bidirectional WebSocket endpoint.

    Client -> Server messages (JSON):
      - capture: Take a screenshot into the next slot
      - reset: Drop screenshots and previous context
      - trigger_analysis: Analyze now (content: optional prompt)
      - set_prompt: Store the prompt used by the next analysis
      - set_mode / toggle_mode: Switch between 'code' and 'general'
      - set_model / next_model: Select or cycle the model
      - set_provider / next_provider: Select or cycle the provider
      - get_status: Request a status snapshot
      - open_screenshot: Ask for the file path of a slot (content: index)

    Server -> Client broadcast messages (JSON):
      - status: Human readable status line (or snapshot dict on request)
      - show_loading: An analysis started
      - screenshot_start / screenshot_complete: Hide/show the overlay
      - image_added: Screenshot stored in a slot
      - analysis_result: Markdown result or failure
      - language_detected: Language found by a code analysis
      - context_reset: Screenshots and context cleared
      - mode_changed / model_changed / provider_changed: Selection updates
      - error: Error message
    """
    orchestrator = websocket.app.state.orchestrator
    await manager.connect(websocket)

    # Send the current state to the newly connected client
    await websocket.send_text(json.dumps({
        "type": "status",
        "content": orchestrator.get_status(),
    }))

    handler = MessageHandler(websocket, orchestrator)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Ignoring malformed websocket message")
                continue
            if not isinstance(data, dict):
                continue

            await handler.handle(data)

    except WebSocketDisconnect:
        manager.disconnect(websocket)
