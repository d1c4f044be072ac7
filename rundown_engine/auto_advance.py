"""
Auto-advance timer for the LIVE item.

Driven by an external tick (every 100ms in production). Expiry is judged on
a millisecond deadline; the whole-second countdown is for display only.
"""

import logging
import math
from typing import Callable, Optional

from .models import Item

logger = logging.getLogger(__name__)

TICK_INTERVAL_MS = 100


def to_ms(seconds: float) -> int:
    """Convert clock seconds to integer milliseconds."""
    return int(round(seconds * 1000))


class AutoAdvanceTimer:
    """
    One countdown at a time, bound to the current LIVE item.

    The timer never calls advance() synchronously from start(); instant items
    fire on the next tick so observers see the live transition first.
    """

    def __init__(self, on_expire: Optional[Callable[[float], None]] = None):
        self._on_expire = on_expire
        self.item_id: Optional[str] = None
        self.remaining_seconds: Optional[int] = None

        self._deadline_ms: Optional[int] = None
        self._frozen_ms: Optional[int] = None  # remaining time captured on pause
        self._instant_pending = False

    def set_callback(self, on_expire: Optional[Callable[[float], None]]):
        self._on_expire = on_expire

    @property
    def is_running(self) -> bool:
        return self._deadline_ms is not None or (self._instant_pending and self._frozen_ms is None)

    @property
    def is_paused(self) -> bool:
        return self._frozen_ms is not None

    @property
    def is_active(self) -> bool:
        return self.item_id is not None

    def start(self, item: Optional[Item], now: float):
        """Start timing item; any previous countdown is cancelled first."""
        self.cancel()
        if item is None or not item.is_auto:
            return

        self.item_id = item.id
        duration = item.automation_duration_seconds
        if duration <= 0 or item.executes_instantly:
            self._instant_pending = True
            self.remaining_seconds = 0
            logger.debug(f"Instant item {item.id} will advance on next tick")
            return

        self._deadline_ms = to_ms(now) + to_ms(duration)
        self.remaining_seconds = math.ceil(duration)
        logger.debug(f"Timer started for {item.id}: {duration}s")

    def cancel(self):
        """Drop the countdown immediately; nothing fires afterwards."""
        self.item_id = None
        self.remaining_seconds = None
        self._deadline_ms = None
        self._frozen_ms = None
        self._instant_pending = False

    def pause(self, now: float):
        """Stop counting but keep the remaining time."""
        if self.item_id is None or self._frozen_ms is not None:
            return
        if self._deadline_ms is not None:
            self._frozen_ms = max(0, self._deadline_ms - to_ms(now))
            self._deadline_ms = None
        else:
            self._frozen_ms = 0
        logger.debug(f"Timer paused for {self.item_id} with {self._frozen_ms}ms left")

    def resume(self, now: float):
        """Restart the countdown for exactly the frozen remaining time."""
        if self._frozen_ms is None:
            return
        remaining_ms = self._frozen_ms
        self._frozen_ms = None
        if self._instant_pending:
            return
        self._deadline_ms = to_ms(now) + remaining_ms
        self.remaining_seconds = math.ceil(remaining_ms / 1000)
        logger.debug(f"Timer resumed for {self.item_id} with {remaining_ms}ms left")

    def remaining_ms(self, now: float) -> Optional[int]:
        if self._frozen_ms is not None:
            return self._frozen_ms
        if self._deadline_ms is not None:
            return max(0, self._deadline_ms - to_ms(now))
        if self._instant_pending:
            return 0
        return None

    def tick(self, now: float) -> bool:
        """Advance the countdown; returns True when the timer fired."""
        if self.item_id is None or self._frozen_ms is not None:
            return False

        if self._instant_pending:
            self._fire(now)
            return True

        if self._deadline_ms is None:
            return False

        remaining = self._deadline_ms - to_ms(now)
        self.remaining_seconds = math.ceil(max(0, remaining) / 1000)
        if remaining <= 0:
            self._fire(now)
            return True
        return False

    def _fire(self, now: float):
        item_id = self.item_id
        self.cancel()
        logger.debug(f"Timer expired for {item_id}")
        if self._on_expire:
            self._on_expire(now)
