"""
Application lifecycle management.

Handles shutdown, signal handling, and resource cleanup.
"""
import atexit
import logging
import signal
import sys
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Resources registered by main(); cleaned up once on shutdown
_resources: Dict[str, Any] = {}
_cleaned_up = False


def cleanup_resources():
    """Clean up all resources when shutting down."""
    global _cleaned_up
    if _cleaned_up:
        return
    _cleaned_up = True

    logger.info("Cleaning up resources...")

    hotkeys = _resources.get("hotkeys")
    if hotkeys is not None:
        try:
            hotkeys.stop_listener()
            logger.info("Hotkey service stopped")
        except Exception as e:
            logger.error("Error stopping hotkey service: %s", e)

    orchestrator = _resources.get("orchestrator")
    if orchestrator is not None:
        orchestrator.cancel_scheduled_analysis()
        removed = orchestrator.ring.reset()
        logger.info("Removed %d screenshot file(s)", len(removed))

    logger.info("Cleanup completed")


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logger.info("Received signal %s, shutting down...", signum)
    cleanup_resources()
    sys.exit(0)


def register_signal_handlers(orchestrator=None, hotkeys=None):
    """Register signal handlers and the resources they release."""
    global _cleaned_up
    _cleaned_up = False
    _resources["orchestrator"] = orchestrator
    _resources["hotkeys"] = hotkeys

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    atexit.register(cleanup_resources)
