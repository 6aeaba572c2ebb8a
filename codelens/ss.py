import io
import logging
import threading
from typing import Callable, Dict, Optional

import PIL.ImageGrab as ImageGrab
from pynput import keyboard

from .config import HOTKEYS

logger = logging.getLogger(__name__)


def take_fullscreen_screenshot_bytes() -> Optional[bytes]:
    """
    Grab the whole screen (all monitors) and return it as PNG bytes.

    Returns None when the platform refuses the grab (no display, missing
    permission).
    """
    try:
        screen = ImageGrab.grab(all_screens=True)
    except OSError as e:
        logger.error("Screen grab failed: %s", e)
        return None

    buffer = io.BytesIO()
    screen.save(buffer, format="PNG")
    return buffer.getvalue()


class HotkeyService:
    """
    Global keyboard shortcuts.

    Runs a pynput GlobalHotKeys listener and forwards every activation to
    ``dispatch(action)`` where action is one of the values of HOTKEYS.
    Callbacks fire on the listener thread, so ``dispatch`` must hand the work
    over to the server loop itself.
    """

    def __init__(self, dispatch: Callable[[str], None], hotkeys: Optional[Dict[str, str]] = None):
        self.dispatch = dispatch
        self.hotkeys = dict(hotkeys or HOTKEYS)
        self.listener = None
        self.running = False
        self._lock = threading.Lock()

    def _make_callback(self, action: str):
        def on_activate():
            logger.debug("Hotkey pressed: %s", action)
            try:
                self.dispatch(action)
            except Exception as e:
                logger.error("Hotkey action %s failed: %s", action, e)
        return on_activate

    def start_listener(self, block: bool = True):
        """Start listening for the configured shortcuts."""
        with self._lock:
            if self.running:
                return
            self.listener = keyboard.GlobalHotKeys(
                {combo: self._make_callback(action) for combo, action in self.hotkeys.items()}
            )
            self.listener.start()
            self.running = True

        logger.info("Hotkeys active: %s", ", ".join(
            f"{combo} -> {action}" for combo, action in self.hotkeys.items()
        ))
        if block:
            try:
                self.listener.join()
            except KeyboardInterrupt:
                logger.info("Hotkey service stopped")
            finally:
                self.running = False

    def stop_listener(self):
        """Stop the keyboard listener."""
        with self._lock:
            if self.listener:
                self.listener.stop()
                self.listener = None
            self.running = False
