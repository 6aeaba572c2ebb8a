"""
CodeLens entry point.

Starts the FastAPI server on its own thread and event loop, then runs the
global hotkey listener on the main thread. Hotkey callbacks are handed to
the server loop so every orchestrator action runs on that single loop.
"""
import asyncio
import logging
import socket
import threading
import time

import uvicorn

from .app import create_app
from .config import DEFAULT_PORT, MAX_PORT_ATTEMPTS
from .core.lifecycle import cleanup_resources, register_signal_handlers
from .core.logging_setup import configure_logging
from .services.orchestrator import AnalysisOrchestrator
from .ss import HotkeyService

logger = logging.getLogger(__name__)


def find_available_port(start_port: int = DEFAULT_PORT, max_attempts: int = MAX_PORT_ATTEMPTS) -> int:
    """Find an available port starting from start_port."""
    for port in range(start_port, start_port + max_attempts):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.bind(("", port))
                return port
        except OSError:
            continue
    raise RuntimeError(
        f"Could not find an available port in range {start_port}-{start_port + max_attempts - 1}"
    )


def start_fastapi_server(app, loop_holder: dict):
    """Start FastAPI server in a dedicated thread & store its loop."""
    try:
        port = find_available_port()
    except RuntimeError as e:
        logger.error("Error finding available port: %s", e)
        return

    logger.info("Starting server on port %d", port)
    loop = asyncio.new_event_loop()
    loop_holder["loop"] = loop
    loop_holder["port"] = port
    asyncio.set_event_loop(loop)
    config = uvicorn.Config(app, host="127.0.0.1", port=port, log_level="warning", loop="asyncio")
    server = uvicorn.Server(config)
    loop.run_until_complete(server.serve())


def make_hotkey_dispatcher(orchestrator: AnalysisOrchestrator, loop_holder: dict):
    """
    Build the callback run on the pynput thread for each hotkey action.

    The action name maps to an orchestrator coroutine method, which is
    scheduled onto the server loop.
    """

    def dispatch(action: str):
        server_loop = loop_holder.get("loop")
        if server_loop is None:
            logger.warning("Server loop not ready yet. Ignoring hotkey %s.", action)
            return

        method = getattr(orchestrator, action, None)
        if method is None:
            logger.error("Unknown hotkey action: %s", action)
            return

        def schedule():
            orchestrator.spawn(method())

        server_loop.call_soon_threadsafe(schedule)

    return dispatch


def main():
    configure_logging()

    orchestrator = AnalysisOrchestrator()
    app = create_app(orchestrator)
    loop_holder = orchestrator.state.server_loop_holder

    logger.info("Starting FastAPI WebSocket server...")
    server_thread = threading.Thread(
        target=start_fastapi_server, args=(app, loop_holder), daemon=True
    )
    server_thread.start()

    # Wait until loop is available (startup barrier)
    for _ in range(50):  # up to ~5 seconds
        if loop_holder.get("loop") is not None:
            break
        time.sleep(0.1)
    else:
        logger.warning("Server loop not initialized; continuing anyway.")

    hotkeys = HotkeyService(make_hotkey_dispatcher(orchestrator, loop_holder))
    register_signal_handlers(orchestrator, hotkeys)

    port = loop_holder.get("port", DEFAULT_PORT)
    logger.info("Overlay endpoint: ws://localhost:%d/ws", port)

    try:
        hotkeys.start_listener(block=True)
    except KeyboardInterrupt:
        logger.info("Exiting...")
    finally:
        cleanup_resources()


if __name__ == "__main__":
    main()
