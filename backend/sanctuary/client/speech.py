import asyncio
import logging
from typing import Awaitable, Callable, Optional

import numpy as np

log = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.02
DEFAULT_INTERVAL = 0.05


def rms_level(samples) -> float:
    """Root-mean-square level of a PCM buffer, normalised to 0..1."""
    arr = np.asarray(samples)
    if arr.size == 0:
        return 0.0
    if np.issubdtype(arr.dtype, np.integer):
        scale = float(np.iinfo(arr.dtype).max)
        data = arr.astype(np.float64) / scale
    else:
        data = arr.astype(np.float64)
    return float(np.sqrt(np.mean(np.square(data))))


class SpeechDetector:
    """Turns a sampled microphone level into speaking on/off transitions.

    ``level_source`` is polled every ``interval`` seconds. ``gate`` must be
    true for the detector to report speech at all (in a channel and unmuted);
    while it is false the detector settles to not-speaking.
    """

    def __init__(self, level_source: Callable[[], float],
                 on_change: Callable[[bool], Awaitable[None]],
                 gate: Callable[[], bool] = lambda: True,
                 threshold: float = DEFAULT_THRESHOLD,
                 interval: float = DEFAULT_INTERVAL):
        self.level_source = level_source
        self.on_change = on_change
        self.gate = gate
        self.threshold = threshold
        self.interval = interval
        self.speaking = False
        self._task: Optional[asyncio.Task] = None

    def sample(self) -> Optional[bool]:
        """Take one reading. Returns the new state on a transition, else None."""
        speaking_now = self.gate() and self.level_source() > self.threshold
        if speaking_now == self.speaking:
            return None
        self.speaking = speaking_now
        return speaking_now

    async def _run(self) -> None:
        while True:
            change = self.sample()
            if change is not None:
                try:
                    await self.on_change(change)
                except Exception as exc:
                    log.warning("speaking update failed: %s", exc)
            await asyncio.sleep(self.interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.speaking = False
