"""
Speech countdown timer.
"""

import logging
from typing import Callable, Optional

from bailey.grid.scheduler import AsyncioScheduler, Scheduler
from bailey.utils.constants import COLUMN_META

logger = logging.getLogger(__name__)

TICK_MS = 1000


def format_time(seconds: int) -> str:
    """Format seconds as m:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def _leading_int(value: str) -> int:
    digits = ""
    for ch in value.strip():
        if not ch.isdigit():
            break
        digits += ch
    return int(digits) if digits else 0


def parse_time_input(value: str) -> int:
    """Parse "8", "8:00" or "8:30" into seconds. Returns 0 if invalid."""
    trimmed = (value or "").strip()
    if not trimmed:
        return 0
    parts = trimmed.split(":")
    minutes = _leading_int(parts[0])
    seconds = _leading_int(parts[1]) if len(parts) > 1 else 0
    return max(0, minutes * 60 + seconds)


class CountdownTimer:
    """
    Counts down once per second on the given scheduler.

    Args:
        seconds: Starting time
        scheduler: Timer source; defaults to the asyncio event loop
        on_expire: Called once when the countdown reaches zero
    """

    def __init__(
        self,
        seconds: int,
        scheduler: Optional[Scheduler] = None,
        on_expire: Optional[Callable[[], None]] = None,
    ):
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_expire = on_expire
        self.total_seconds = max(0, int(seconds))
        self.seconds_left = self.total_seconds
        self.running = False
        self.expired = False
        self._handle = None

    @property
    def display(self) -> str:
        return format_time(self.seconds_left)

    def start(self) -> None:
        if self.seconds_left <= 0 or self.running:
            return
        self.expired = False
        self.running = True
        self._schedule()

    def pause(self) -> None:
        self._stop()

    def reset(self) -> None:
        self._stop()
        self.seconds_left = self.total_seconds
        self.expired = False

    def set_time(self, seconds: int) -> None:
        self._stop()
        self.total_seconds = max(0, int(seconds))
        self.seconds_left = self.total_seconds
        self.expired = False

    def _schedule(self) -> None:
        self._handle = self.scheduler.call_later(TICK_MS, self._tick)

    def _stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.running = False

    def _tick(self) -> None:
        self._handle = None
        if self.seconds_left <= 1:
            self.seconds_left = 0
            self._stop()
            self.expired = True
            logger.debug("Timer expired")
            if self.on_expire:
                self.on_expire()
            return
        self.seconds_left -= 1
        self._schedule()


def timer_for_speech(label: str, scheduler: Optional[Scheduler] = None, **kwargs) -> CountdownTimer:
    """
    Build a timer preset to a speech's length (8:00 constructives, 5:00 rebuttals).

    Raises:
        ValueError: If the label is not a known speech
    """
    meta = COLUMN_META.get(label)
    if meta is None:
        raise ValueError(f"Unknown speech: {label}")
    return CountdownTimer(meta["minutes"] * 60, scheduler, **kwargs)
