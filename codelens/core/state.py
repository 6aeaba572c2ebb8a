"""
Orchestrator state management.

Centralizes the mutable state of the capture/analysis cycle into a single
object owned by the orchestrator, instead of scattered module globals.
"""

from typing import Any, Dict, List, Optional

from ..config import AnalysisMode, MAX_SLOTS
from .single_flight import SingleFlight


class OrchestratorState:
    """
    State container for one orchestrator instance.

    The capture ring, the per-mode previous analysis and the single-flight
    guard all live here so handlers only ever need a reference to the
    orchestrator that owns it.
    """

    def __init__(self, ring: Any = None, max_slots: int = MAX_SLOTS):
        # Capture ring (CaptureSlotRing); created by the orchestrator when omitted
        self.ring = ring
        self.max_slots = max_slots

        # Analysis mode: 'code' | 'general'
        self.current_mode: str = AnalysisMode.CODE

        # Provider/model selection. None means "resolve from environment".
        self.current_provider: Optional[str] = None
        self.current_model: Optional[str] = None

        # Last user-supplied prompt; empty means the mode's default prompt
        self.user_prompt: str = ""

        # Most recent serialized result per mode, never mixed across modes
        self.previous_analysis: Dict[str, Optional[str]] = {
            mode: None for mode in AnalysisMode.ALL
        }

        # Bumped by every reset so in-flight results can tell they are stale
        self.reset_generation: int = 0

        # Single-flight guard for analysis runs
        self.analysis_flight = SingleFlight()

        # Event loop holder for cross-thread scheduling (hotkey thread)
        self.server_loop_holder: Dict[str, Any] = {}

    # ── Ring views ─────────────────────────────────────────────────

    @property
    def screenshot_count(self) -> int:
        """Last slot index written (0 when empty)."""
        return self.ring.count if self.ring is not None else 0

    @property
    def screenshot_paths(self) -> List[str]:
        return self.ring.paths if self.ring is not None else []

    # ── Single-flight views ────────────────────────────────────────

    @property
    def is_analysis_running(self) -> bool:
        return self.analysis_flight.running

    @property
    def pending_analysis(self) -> bool:
        return self.analysis_flight.pending

    # ── Previous context ───────────────────────────────────────────

    def get_previous_analysis(self, mode: Optional[str] = None) -> Optional[str]:
        return self.previous_analysis.get(mode or self.current_mode)

    def set_previous_analysis(self, mode: str, serialized: Optional[str]):
        if mode not in self.previous_analysis:
            raise ValueError(f"Unknown analysis mode: {mode}")
        self.previous_analysis[mode] = serialized

    def reset_context(self):
        """Forget previous analyses for every mode and start a new generation."""
        for mode in self.previous_analysis:
            self.previous_analysis[mode] = None
        self.reset_generation += 1

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view used by the status endpoint and IPC."""
        return {
            "mode": self.current_mode,
            "provider": self.current_provider,
            "model": self.current_model,
            "screenshot_count": self.screenshot_count,
            "screenshot_paths": list(self.screenshot_paths),
            "max_slots": self.max_slots,
            "is_analysis_running": self.is_analysis_running,
            "pending_analysis": self.pending_analysis,
            "has_previous_analysis": {
                mode: value is not None
                for mode, value in self.previous_analysis.items()
            },
        }
