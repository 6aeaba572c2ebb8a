"""
Analysis orchestration.

Owns the capture ring and the orchestrator state, decides when a capture
triggers an analysis, keeps at most one analysis in flight (later requests
collapse into a single rerun), threads the previous result of the current
mode into the next request, and formats results for the overlay.

State machine:
    Idle --qualifying capture / manual trigger--> Running
    Running --trigger--> Running + rerun requested
    Running --done, rerun requested--> Running (one more pass)
    Running --done--> Idle
    any --reset--> Idle (an in-flight call is not interrupted)
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..config import ANALYSIS_DEBOUNCE_SECONDS, AnalysisMode, MAX_SLOTS
from ..core.connection import broadcast_message
from ..core.state import OrchestratorState
from ..llm.gateway import ProviderGateway
from ..llm.prompt import default_prompt
from ..llm.providers import (
    PROVIDERS,
    get_current_provider,
    get_default_model,
    get_next_model,
    get_next_provider,
    get_provider_info,
    resolve_selection,
)
from ..llm.results import AnalysisResult, CodeAnalysisResult
from .screenshots import CaptureSlot, CaptureSlotRing, ScreenshotHandler

logger = logging.getLogger(__name__)

Emitter = Callable[[str, Any], Awaitable[None]]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_analysis_result(result: AnalysisResult) -> str:
    """Render a result as the markdown shown in the overlay."""
    if isinstance(result, CodeAnalysisResult):
        return (
            "# Code Analysis\n\n"
            f"## Language\n{result.language}\n\n"
            f"## Code\n```{result.language.lower()}\n{result.code}\n```\n\n"
            f"## Summary\n{result.summary}\n\n"
            f"## Time Complexity\n{result.time_complexity}\n\n"
            f"## Space Complexity\n{result.space_complexity}\n"
        )

    return (
        "# General Analysis\n\n"
        f"## Solution\n{result.answer}\n\n"
        f"## Analysis\n{result.explanation}\n\n"
        f"## Test Plan\n{result.test}\n"
    )


def format_failure(error: str, result: Optional[AnalysisResult] = None) -> str:
    """Render a failed analysis; the placeholder result is appended when given."""
    message = f"# Analysis Failed\n\n**Error:** {error}\n"
    if result is not None:
        message += "\n" + format_analysis_result(result).replace("# ", "## ", 1)
    return message


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class AnalysisOrchestrator:
    """
    Long-lived controller for the capture/analysis cycle.

    Args:
        gateway:        Provider gateway used for analysis calls.
        emit:           Coroutine ``emit(type, content)`` delivering events
                        to the overlay; defaults to the websocket broadcast.
        ring:           Capture ring; created in the screenshot folder when
                        omitted.
        grab:           Blocking screen grab returning PNG bytes.
        debounce_delay: Seconds a qualifying capture waits before the
                        analysis starts; a newer capture restarts the wait.
        hide_delay:     Seconds to wait for the overlay to hide before a grab.
    """

    def __init__(
        self,
        gateway: Optional[ProviderGateway] = None,
        emit: Emitter = broadcast_message,
        ring: Optional[CaptureSlotRing] = None,
        grab: Optional[Callable[[], Optional[bytes]]] = None,
        debounce_delay: float = ANALYSIS_DEBOUNCE_SECONDS,
        hide_delay: Optional[float] = None,
        max_slots: int = MAX_SLOTS,
    ):
        ring = ring or CaptureSlotRing(max_slots=max_slots)
        self.state = OrchestratorState(ring=ring, max_slots=ring.max_slots)
        self.gateway = gateway or ProviderGateway()
        self.emit = emit
        self.debounce_delay = debounce_delay

        handler_kwargs: Dict[str, Any] = {"emit": emit}
        if grab is not None:
            handler_kwargs["grab"] = grab
        if hide_delay is not None:
            handler_kwargs["hide_delay"] = hide_delay
        self.screenshots = ScreenshotHandler(ring, **handler_kwargs)

        self._scheduled: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def ring(self) -> CaptureSlotRing:
        return self.state.ring

    # ── Capture ────────────────────────────────────────────────────

    async def capture(self) -> Optional[CaptureSlot]:
        """Capture the screen into the next slot and maybe schedule analysis."""
        slot = await self.screenshots.capture()
        if slot is not None:
            await self._on_screenshot_added(slot)
        return slot

    async def add_screenshot(self, buffer: bytes) -> CaptureSlot:
        """Store an already captured image (e.g. pasted by the shell)."""
        slot = await self.screenshots.add_screenshot(buffer)
        await self._on_screenshot_added(slot)
        return slot

    async def _on_screenshot_added(self, slot: CaptureSlot):
        if self.should_auto_analyze():
            logger.info("Slot %d filled; scheduling analysis", slot.index)
            await self.emit("status", f"Captured screenshot {slot.index} of {self.state.max_slots}. Analyzing...")
            self.schedule_analysis()

    def should_auto_analyze(self) -> bool:
        """
        Whether the capture that just landed starts an analysis.

        True when the ring just filled up, or when exactly one slot is
        filled and the current mode already has a previous result to extend.
        """
        count = self.state.screenshot_count
        if count == 0:
            return False
        if count == self.state.max_slots:
            return True
        return count == 1 and self.state.get_previous_analysis() is not None

    def open_screenshot(self, index: int) -> Optional[str]:
        return self.screenshots.get_screenshot_path(index)

    # ── Scheduling ─────────────────────────────────────────────────

    def schedule_analysis(self, delay: Optional[float] = None):
        """Start an analysis after *delay*, replacing any pending schedule."""
        self.cancel_scheduled_analysis()
        loop = asyncio.get_running_loop()
        wait = self.debounce_delay if delay is None else delay
        self._scheduled = loop.call_later(wait, self._fire_scheduled)

    def cancel_scheduled_analysis(self) -> bool:
        """Cancel a not-yet-fired schedule. Returns True if one was pending."""
        if self._scheduled is None:
            return False
        self._scheduled.cancel()
        self._scheduled = None
        logger.debug("Cancelled scheduled analysis")
        return True

    @property
    def has_scheduled_analysis(self) -> bool:
        return self._scheduled is not None

    def _fire_scheduled(self):
        self._scheduled = None
        self.spawn(self.run_analysis())

    def spawn(self, coro) -> asyncio.Task:
        """Run *coro* as a tracked background task on the running loop."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background analysis task failed: %s", task.exception())

    async def wait_for_idle(self):
        """Wait for scheduled/background analyses and file cleanup to finish."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        await self.ring.wait_for_cleanup()

    # ── Analysis ───────────────────────────────────────────────────

    async def trigger_analysis(self, prompt: Optional[str] = None) -> bool:
        """
        Manual trigger (submit button or shortcut).

        Returns False when there is nothing to analyze. When an analysis is
        already running this only requests a rerun.
        """
        if prompt is not None:
            self.set_prompt(prompt)

        if not self.state.screenshot_paths:
            logger.info("Manual trigger ignored: no screenshots")
            await self.emit("status", "No screenshots to analyze. Capture a screenshot first.")
            return False

        self.cancel_scheduled_analysis()
        await self.run_analysis()
        return True

    async def run_analysis(self) -> bool:
        """Run the analysis loop, or request a rerun when one is in flight."""
        if self.state.is_analysis_running:
            logger.info("Analysis already running; rerun requested")
            await self.emit("status", "Analysis in progress. It will re-run with the latest screenshots.")
        return await self.state.analysis_flight.run(self._analyze_once)

    async def _analyze_once(self):
        mode = self.state.current_mode

        selection = resolve_selection(self.state.current_provider, self.state.current_model)
        if selection is None:
            provider = PROVIDERS[get_current_provider(self.state.current_provider)]
            logger.warning("No usable provider; analysis skipped")
            await self.emit(
                "status",
                f"No API key configured for {provider.display_name}. Set {provider.env_var} to analyze.",
            )
            return
        provider_name, model_name = selection

        image_paths = list(self.state.screenshot_paths)
        if not image_paths:
            await self.emit("status", "No screenshots to analyze")
            return

        generation = self.state.reset_generation
        previous_context = self.state.get_previous_analysis(mode)
        prompt = self.state.user_prompt or default_prompt(mode)

        await self.emit("show_loading", "")
        await self.emit(
            "status", f"Analyzing {len(image_paths)} screenshot(s) with {model_name}..."
        )
        logger.info(
            "Running %s analysis: %d images, provider=%s, model=%s, context=%s",
            mode, len(image_paths), provider_name, model_name, previous_context is not None,
        )

        try:
            result = await self.gateway.analyze_images(
                image_paths,
                mode,
                prompt,
                previous_context=previous_context,
                provider=provider_name,
                model=model_name,
            )
        except Exception as e:
            logger.exception("Analysis failed unexpectedly")
            await self.emit("analysis_result", format_failure(str(e)))
            await self.emit("status", "Analysis failed")
            return

        if result.error:
            # Keep the last good context for the next turn
            logger.warning("Analysis failed: %s", result.error)
            await self.emit("analysis_result", format_failure(result.error, result))
            await self.emit("status", "Analysis failed")
            return

        if generation == self.state.reset_generation:
            self.state.set_previous_analysis(mode, result.serialize())
        else:
            logger.info("Context was reset during analysis; result not kept as context")

        if isinstance(result, CodeAnalysisResult) and result.language and result.language != "Unknown":
            await self.emit("language_detected", result.language)

        await self.emit("analysis_result", format_analysis_result(result))
        await self.emit("status", "Analysis complete")

    # ── Reset & selection ──────────────────────────────────────────

    async def reset(self):
        """Clear screenshots and previous context for every mode."""
        self.cancel_scheduled_analysis()
        self.state.analysis_flight.cancel_rerun()
        removed = self.screenshots.clear_screenshots()
        self.state.reset_context()
        logger.info("Context reset (%d screenshots dropped)", len(removed))

        await self.emit("context_reset", "")
        await self.emit("status", "Context reset. Ready for new screenshots.")

    def set_prompt(self, prompt: str):
        """Prompt for the next analysis; empty means the mode default."""
        self.state.user_prompt = (prompt or "").strip()

    async def set_mode(self, mode: str):
        if mode not in AnalysisMode.ALL:
            raise ValueError(f"Unknown analysis mode: {mode}")
        self.cancel_scheduled_analysis()
        self.state.current_mode = mode
        logger.info("Analysis mode set to %s", mode)
        await self.emit("mode_changed", mode)
        await self.emit("status", f"Mode: {mode}")

    async def toggle_mode(self) -> str:
        if self.state.current_mode == AnalysisMode.CODE:
            mode = AnalysisMode.GENERAL
        else:
            mode = AnalysisMode.CODE
        await self.set_mode(mode)
        return mode

    async def set_provider(self, provider: str):
        provider = provider.lower()
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider}")
        self.state.current_provider = provider
        self.state.current_model = None
        model = get_default_model(provider)
        logger.info("Provider set to %s (model %s)", provider, model)
        await self.emit("provider_changed", {
            "provider": provider,
            "display_name": PROVIDERS[provider].display_name,
            "model": model,
            "is_configured": PROVIDERS[provider].is_configured(),
        })

    async def next_provider(self) -> str:
        current = get_current_provider(self.state.current_provider)
        provider = get_next_provider(current)
        await self.set_provider(provider)
        return provider

    async def set_model(self, model: str):
        model = model.strip()
        if not model:
            raise ValueError("Model name cannot be empty")
        self.state.current_model = model
        logger.info("Model set to %s", model)
        await self.emit("model_changed", model)

    async def next_model(self) -> str:
        provider = get_current_provider(self.state.current_provider)
        current = self.state.current_model or get_default_model(self.state.current_provider)
        model = get_next_model(provider, current)
        await self.set_model(model)
        return model

    def get_status(self) -> Dict[str, Any]:
        status = self.state.snapshot()
        info = get_provider_info(self.state.current_provider)
        status["resolved_provider"] = info["provider"]
        status["provider_configured"] = info["is_configured"]
        status["resolved_model"] = self.state.current_model or get_default_model(
            self.state.current_provider
        )
        status["has_scheduled_analysis"] = self.has_scheduled_analysis
        return status
