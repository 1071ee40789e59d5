"""
Display-side refresh loop for the check-in QR code.

The display keeps showing a code until its remaining validity drops below a
safety margin, then asks for a new one. The loop is an ordinary asyncio task
owned by whoever started it and stops deterministically on stop().
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Union

from storeclock.core.clock import Clock, system_clock

_log = logging.getLogger(__name__)


class QRDisplayRefresher:
    """
    Args:
        issue_fn: returns an object with an `expires_at` datetime (sync or async)
        on_code: receives every freshly issued code
        clock: time source used to compute the next refresh
        safety_margin_seconds: refresh this long before `expires_at`
        min_delay_seconds: lower bound between two issues, also the retry delay after an error
        sleep: awaitable sleep, replaceable in tests
    """

    def __init__(
        self,
        issue_fn: Callable[[], Union[object, Awaitable[object]]],
        on_code: Callable[[object], None],
        clock: Clock = system_clock,
        safety_margin_seconds: float = 10,
        min_delay_seconds: float = 1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._issue_fn = issue_fn
        self._on_code = on_code
        self._clock = clock
        self._margin = safety_margin_seconds
        self._min_delay = min_delay_seconds
        self._sleep = sleep
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.issued = 0

    def next_delay(self, expires_at: datetime) -> float:
        """
        Seconds until the next issue: `expires_at - margin`, or, when the code
        is already inside the margin, `expires_at` itself so the next issue
        lands in the following window.
        """
        remaining = (expires_at - self._clock.now()).total_seconds()
        if remaining - self._margin >= self._min_delay:
            return remaining - self._margin
        return max(self._min_delay, remaining)

    async def _issue(self):
        result = self._issue_fn()
        if asyncio.iscoroutine(result):
            result = await result
        return result

    async def _wait(self, delay: float) -> None:
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(self._stopped.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (sleeper, stopper):
                if not fut.done():
                    fut.cancel()

    async def run(self) -> None:
        while not self._stopped.is_set():
            try:
                code = await self._issue()
            except Exception:
                _log.exception("QR code refresh failed, retrying in %ss", self._min_delay)
                await self._wait(self._min_delay)
                continue

            if self._stopped.is_set():
                break
            self.issued += 1
            self._on_code(code)
            await self._wait(self.next_delay(code.expires_at))

    def start(self) -> asyncio.Task:
        """Schedule run() on the running loop."""
        if self._task is None or self._task.done():
            self._stopped.clear()
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish. Safe to call more than once."""
        self._stopped.set()
        if self._task is not None:
            await self._task
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
