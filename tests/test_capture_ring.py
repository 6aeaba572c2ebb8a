"""
Capture ring and screenshot handler tests.
"""

import os

import pytest

from codelens.services.screenshots import CaptureSlot, CaptureSlotRing, ScreenshotHandler

from conftest import FAKE_PNG


class TestCaptureSlotRing:

    @pytest.mark.asyncio
    async def test_slots_cycle_and_evict(self, ring):
        first = await ring.insert(b"one")
        assert ring.count == 1
        second = await ring.insert(b"two")
        assert ring.count == 2
        assert ring.is_full
        third = await ring.insert(b"three")
        assert ring.count == 1

        await ring.wait_for_cleanup()

        assert not os.path.exists(first)
        assert os.path.exists(second)
        assert os.path.exists(third)
        assert ring.paths == [third, second]
        with open(third, "rb") as f:
            assert f.read() == b"three"

    @pytest.mark.asyncio
    async def test_file_names_carry_slot_index(self, ring):
        path = await ring.insert(b"x")
        assert os.path.basename(path).startswith("screenshot-1-")
        assert path.endswith(".png")

    @pytest.mark.asyncio
    async def test_reset_deletes_all_files(self, ring):
        paths = [await ring.insert(b"a"), await ring.insert(b"b")]
        removed = ring.reset()
        await ring.wait_for_cleanup()

        assert removed == paths
        assert ring.count == 0
        assert ring.paths == []
        assert not any(os.path.exists(p) for p in paths)
        assert ring.next_slot_index() == 1

    @pytest.mark.asyncio
    async def test_eviction_of_missing_file_is_harmless(self, ring):
        first = await ring.insert(b"a")
        await ring.insert(b"b")
        os.remove(first)

        await ring.insert(b"c")
        await ring.wait_for_cleanup()
        assert ring.count == 1

    def test_reset_without_loop_deletes_inline(self, tmp_path):
        ring = CaptureSlotRing(folder=str(tmp_path))
        path = tmp_path / "screenshot-1-x.png"
        path.write_bytes(b"a")
        ring._slots[1] = CaptureSlot(index=1, file_path=str(path))
        ring.count = 1

        ring.reset()
        assert not path.exists()

    def test_single_slot_ring_always_writes_slot_one(self, tmp_path):
        ring = CaptureSlotRing(folder=str(tmp_path), max_slots=1)
        assert ring.next_slot_index() == 1
        ring.count = 1
        assert ring.next_slot_index() == 1

    def test_rejects_empty_capacity(self, tmp_path):
        with pytest.raises(ValueError):
            CaptureSlotRing(folder=str(tmp_path), max_slots=0)


class TestScreenshotHandler:

    @pytest.mark.asyncio
    async def test_capture_emits_events_in_order(self, ring, recorder):
        handler = ScreenshotHandler(ring, emit=recorder, grab=lambda: FAKE_PNG, hide_delay=0)
        slot = await handler.capture()

        assert slot.index == 1
        assert recorder.types() == [
            "status", "screenshot_start", "screenshot_complete", "image_added", "status",
        ]
        added = recorder.of("image_added")[0]
        assert added["index"] == 1
        assert added["path"] == slot.file_path
        assert recorder.of("status")[-1] == "Captured screenshot 1 of 2"

    @pytest.mark.asyncio
    async def test_failed_grab_leaves_ring_untouched(self, ring, recorder):
        def broken_grab():
            raise OSError("no display")

        handler = ScreenshotHandler(ring, emit=recorder, grab=broken_grab, hide_delay=0)
        assert await handler.capture() is None
        assert ring.count == 0
        assert "screenshot_complete" in recorder.types()
        assert recorder.of("status")[-1] == "Error capturing screenshot"

    @pytest.mark.asyncio
    async def test_screenshot_path_lookup(self, ring, recorder):
        handler = ScreenshotHandler(ring, emit=recorder, hide_delay=0)
        slot = await handler.add_screenshot(FAKE_PNG)
        assert handler.get_screenshot_path(1) == slot.file_path
        assert handler.get_screenshot_path(2) is None
