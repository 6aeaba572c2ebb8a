"""
Screenshot handling service.

Manages screenshot capture and the fixed-size rotating ring of slot files.
"""
import asyncio
import base64
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..config import CAPTURE_HIDE_DELAY_SECONDS, MAX_SLOTS, SCREENSHOT_FOLDER
from ..core.connection import broadcast_message
from ..core.thread_pool import run_in_thread

logger = logging.getLogger(__name__)

Emitter = Callable[[str, Any], Awaitable[None]]


@dataclass
class CaptureSlot:
    """One position of the capture ring and the file that currently fills it."""

    index: int
    file_path: str
    captured_at: datetime = field(default_factory=datetime.now)


def _remove_quietly(path: str) -> bool:
    """Delete a file, logging instead of raising. Returns True if removed."""
    try:
        os.remove(path)
        return True
    except FileNotFoundError:
        logger.debug("Screenshot already gone: %s", path)
    except OSError as e:
        logger.warning("Error deleting screenshot %s: %s", path, e)
    return False


class CaptureSlotRing:
    """
    Fixed-capacity circular buffer of screenshot files.

    Slots are numbered 1..max_slots and reused cyclically. Writing a slot
    that already holds a file evicts that file in the background. Eviction
    and reset deletions are best-effort: failures are logged and the
    critical path never waits on them.

    Inserts are not serialized here; ScreenshotHandler runs one capture at
    a time.
    """

    def __init__(self, folder: str = SCREENSHOT_FOLDER, max_slots: int = MAX_SLOTS):
        if max_slots < 1:
            raise ValueError("max_slots must be at least 1")
        self.folder = folder
        self.max_slots = max_slots
        self.count = 0  # last slot index written
        self._slots: Dict[int, CaptureSlot] = {}
        self._cleanup_tasks: Set[asyncio.Task] = set()

    # ── Views ──────────────────────────────────────────────────────

    @property
    def slots(self) -> List[CaptureSlot]:
        return [self._slots[i] for i in sorted(self._slots)]

    @property
    def paths(self) -> List[str]:
        return [slot.file_path for slot in self.slots]

    @property
    def is_full(self) -> bool:
        return len(self._slots) >= self.max_slots

    def get_slot(self, index: int) -> Optional[CaptureSlot]:
        return self._slots.get(index)

    def next_slot_index(self) -> int:
        return 1 if self.count >= self.max_slots else self.count + 1

    # ── Mutations ──────────────────────────────────────────────────

    def _build_path(self, index: int, captured_at: datetime) -> str:
        timestamp = captured_at.strftime("%Y%m%dT%H%M%S%f")
        return os.path.join(self.folder, f"screenshot-{index}-{timestamp}.png")

    def _write_file(self, path: str, buffer: bytes):
        os.makedirs(self.folder, exist_ok=True)
        with open(path, "wb") as f:
            f.write(buffer)

    async def insert(self, buffer: bytes) -> str:
        """
        Write *buffer* into the next slot and return its file path.

        The file previously held by that slot (if any) is deleted after the
        new path is committed.
        """
        index = self.next_slot_index()
        captured_at = datetime.now()
        path = self._build_path(index, captured_at)

        await run_in_thread(self._write_file, path, buffer)

        evicted = self._slots.get(index)
        self._slots[index] = CaptureSlot(index=index, file_path=path, captured_at=captured_at)
        self.count = index
        logger.info("Screenshot saved to slot %d: %s", index, path)

        if evicted is not None and evicted.file_path != path:
            logger.debug("Evicting slot %d file %s", index, evicted.file_path)
            self._schedule_delete([evicted.file_path])
        return path

    def reset(self) -> List[str]:
        """Clear the ring and delete every tracked file in the background."""
        old_paths = self.paths
        self._slots = {}
        self.count = 0
        if old_paths:
            self._schedule_delete(old_paths)
        return old_paths

    # ── Background cleanup ─────────────────────────────────────────

    def _schedule_delete(self, paths: List[str]):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (e.g. shutdown from a signal handler): delete inline
            for path in paths:
                _remove_quietly(path)
            return

        task = loop.create_task(self._delete_files(paths))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _delete_files(self, paths: List[str]):
        for path in paths:
            try:
                await run_in_thread(_remove_quietly, path)
            except RuntimeError as e:
                # Executor already shut down
                logger.warning("Could not schedule deletion of %s: %s", path, e)

    async def wait_for_cleanup(self):
        """Wait until every scheduled deletion has finished."""
        while True:
            pending = [t for t in self._cleanup_tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)


def _default_grab() -> Optional[bytes]:
    from ..ss import take_fullscreen_screenshot_bytes

    return take_fullscreen_screenshot_bytes()


class ScreenshotHandler:
    """
    Handles screenshot capture and hands the image to the capture ring.

    Captures are serialized: the hide delay, the grab and the ring insert of
    one capture finish before the next capture starts, so every capture gets
    its own slot.
    """

    def __init__(
        self,
        ring: CaptureSlotRing,
        emit: Emitter = broadcast_message,
        grab: Callable[[], Optional[bytes]] = _default_grab,
        hide_delay: float = CAPTURE_HIDE_DELAY_SECONDS,
    ):
        self.ring = ring
        self.emit = emit
        self.grab = grab
        self.hide_delay = hide_delay
        self._capture_lock = asyncio.Lock()

    async def capture(self) -> Optional[CaptureSlot]:
        """
        Capture the screen and store it in the next ring slot.

        Returns the filled slot, or None when the capture failed.
        """
        async with self._capture_lock:
            await self.emit("status", "Capturing screenshot...")
            # Let the overlay hide itself before the grab
            await self.emit("screenshot_start", "Screenshot capture starting")
            await asyncio.sleep(self.hide_delay)

            try:
                buffer = await run_in_thread(self.grab)
            except Exception as e:
                logger.error("Screen capture failed: %s", e)
                buffer = None
            finally:
                await self.emit("screenshot_complete", "")

            if not buffer:
                await self.emit("status", "Error capturing screenshot")
                return None

            return await self._store(buffer)

    async def add_screenshot(self, buffer: bytes) -> CaptureSlot:
        """Insert an image buffer into the ring and notify clients."""
        async with self._capture_lock:
            return await self._store(buffer)

    async def _store(self, buffer: bytes) -> CaptureSlot:
        path = await self.ring.insert(buffer)
        slot = self.ring.get_slot(self.ring.count)

        await self.emit("image_added", {
            "index": slot.index,
            "path": path,
            "data": base64.standard_b64encode(buffer).decode("utf-8"),
        })
        await self.emit(
            "status", f"Captured screenshot {slot.index} of {self.ring.max_slots}"
        )
        return slot

    def clear_screenshots(self) -> List[str]:
        """Drop every slot; files are deleted in the background."""
        return self.ring.reset()

    def get_screenshot_path(self, index: int) -> Optional[str]:
        slot = self.ring.get_slot(index)
        return slot.file_path if slot else None
