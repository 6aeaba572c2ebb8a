"""
Business logic services.
"""
from .screenshots import CaptureSlotRing, ScreenshotHandler

__all__ = ['CaptureSlotRing', 'ScreenshotHandler']
