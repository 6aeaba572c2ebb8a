"""
Single-flight task runner.

Guarantees at most one in-progress unit of work. A request that arrives
while work is running does not start a second run; it marks a rerun, and
the running task loops once more when it finishes. Any number of requests
made during one run collapse into exactly one rerun.

Usage:
    flight = SingleFlight()
    ...
    await flight.run(do_analysis)   # runs, or marks a rerun if busy
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class SingleFlight:
    """Depth-1 task queue: one running task plus at most one queued rerun."""

    def __init__(self) -> None:
        self._running = False
        self._pending = False
        self.completed_runs = 0

    # ── Read-only state ────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> bool:
        return self._pending

    # ── Actions ────────────────────────────────────────────────────

    def request_rerun(self) -> None:
        """Ask the running task to loop once more. No-op when idle."""
        if self._running:
            self._pending = True

    def cancel_rerun(self) -> None:
        self._pending = False

    async def run(self, work: Callable[[], Awaitable[None]]) -> bool:
        """Run *work*, looping while reruns were requested.

        Returns False without running anything when another run is already
        in progress (a rerun is recorded instead), True otherwise. A pass
        that raises is logged and followed by the queued rerun when there
        is one; otherwise the error propagates.
        """
        if self._running:
            self._pending = True
            return False

        self._running = True
        try:
            while True:
                try:
                    await work()
                except Exception:
                    # A queued rerun survives a failed pass
                    if not self._pending:
                        raise
                    logger.exception("Pass failed; running the queued rerun")
                else:
                    self.completed_runs += 1
                if not self._pending:
                    break
                # Clear before re-entry so triggers during the rerun queue another
                self._pending = False
        finally:
            self._running = False
            self._pending = False
        return True
