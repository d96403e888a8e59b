"""
Live Camera Countdown

The live camera captures automatically once a short countdown finishes.
Closing the camera before then cancels the capture.

CRITICAL: Cancellation only covers the countdown. Once the frame has been
grabbed and the request is in flight, it runs to completion.
"""

import asyncio
from collections.abc import Callable
from typing import Optional


class CaptureCountdown:
    """
    Cancellable countdown reporting progress from 0 to 100.

    Usage:
        countdown = CaptureCountdown(2.0, on_progress=bar.progress)
        if await countdown.wait():
            frame = grab_frame()
    """

    def __init__(
        self,
        duration: float = 2.0,
        step: float = 0.05,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        if duration < 0:
            raise ValueError("duration must not be negative")
        if step <= 0:
            raise ValueError("step must be positive")
        self._duration = duration
        self._step = step
        self._on_progress = on_progress
        self._cancelled = asyncio.Event()
        self._progress = 0

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop the countdown. Safe to call at any time, any number of times."""
        self._cancelled.set()

    def _report(self, progress: int) -> None:
        self._progress = progress
        if self._on_progress is not None:
            self._on_progress(progress)

    async def wait(self) -> bool:
        """
        Run the countdown.

        Returns:
            True if it completed, False if it was cancelled first
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        self._report(0)

        while not self._cancelled.is_set():
            elapsed = loop.time() - start
            if elapsed >= self._duration:
                self._report(100)
                return True
            self._report(int(elapsed / self._duration * 100))
            try:
                await asyncio.wait_for(
                    self._cancelled.wait(),
                    timeout=min(self._step, self._duration - elapsed),
                )
            except asyncio.TimeoutError:
                pass

        return False
