"""
Execution state machine for a live rundown session.
Owns the LIVE/PREVIEW pointers, stop/pause flags, armed slots and the set of
live manual items.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Any, Optional, Set

from .auto_advance import AutoAdvanceTimer
from .models import Item
from .rundown_index import RundownIndex

logger = logging.getLogger(__name__)


@dataclass
class ExecutionState:
    """Snapshot-able state of one control session."""
    stopped: bool = False
    paused: bool = False
    live_id: Optional[str] = None
    preview_id: Optional[str] = None
    armed_transition: Optional[str] = None
    armed_manual_button_id: Optional[str] = None
    armed_manual_item_id: Optional[str] = None
    preview_manual_item_id: Optional[str] = None
    live_manual_item_ids: Set[str] = field(default_factory=set)
    show_started_at: Optional[float] = None
    segment_started_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stopped": self.stopped,
            "paused": self.paused,
            "live_id": self.live_id,
            "preview_id": self.preview_id,
            "armed_transition": self.armed_transition,
            "armed_manual_button_id": self.armed_manual_button_id,
            "armed_manual_item_id": self.armed_manual_item_id,
            "preview_manual_item_id": self.preview_manual_item_id,
            "live_manual_item_ids": sorted(self.live_manual_item_ids),
            "show_started_at": self.show_started_at,
            "segment_started_at": self.segment_started_at,
        }


def _resume_point(
    previous: RundownIndex,
    index: RundownIndex,
    live_id: str,
    preview_id: Optional[str],
) -> Optional[str]:
    """First item of the old order after live_id that survives in the new index.

    When live_id was already missing from the old index (two updates before an
    advance), the pending resume point in preview_id is kept or moved forward.
    """
    position = previous.index_of(live_id)
    if position is not None:
        position += 1
    else:
        position = previous.index_of(preview_id)
        if position is None:
            return None
    for candidate in previous.items[position:]:
        if candidate.id in index:
            return candidate.id
    return None


class ExecutionStateMachine:
    """
    Pointer/armed-state machine driven by operator events and timer expiry.

    All operations are total: unknown or stale ids turn the operation into a
    no-op, and the next advance() re-derives pointers from the current index.
    """

    def __init__(
        self,
        index: Optional[RundownIndex] = None,
        timer: Optional[AutoAdvanceTimer] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.index = index or RundownIndex()
        self.timer = timer or AutoAdvanceTimer()
        self.timer.set_callback(self._on_timer_expired)
        self.state = ExecutionState()
        self._clock = clock

        # Callbacks
        self._on_live_change: Optional[Callable[[Optional[Item], float], None]] = None
        self._on_manual_promoted: Optional[Callable[[Item, bool, float], None]] = None
        self._on_stop: Optional[Callable[[bool], None]] = None
        self._on_pause_change: Optional[Callable[[bool, float], None]] = None

    def set_callbacks(
        self,
        on_live_change: Optional[Callable[[Optional[Item], float], None]] = None,
        on_manual_promoted: Optional[Callable[[Item, bool, float], None]] = None,
        on_stop: Optional[Callable[[bool], None]] = None,
        on_pause_change: Optional[Callable[[bool, float], None]] = None,
    ):
        """Set callback functions for execution events."""
        self._on_live_change = on_live_change
        self._on_manual_promoted = on_manual_promoted
        self._on_stop = on_stop
        self._on_pause_change = on_pause_change

    @property
    def live_item(self) -> Optional[Item]:
        return self.index.get(self.state.live_id)

    @property
    def preview_item(self) -> Optional[Item]:
        return self.index.get(self.state.preview_id)

    def set_index(self, index: RundownIndex):
        """Swap in a rebuilt index after a rundown mutation."""
        previous, self.index = self.index, index
        state = self.state
        if state.live_id is not None and state.live_id not in index:
            # Removed LIVE item: the next advance resumes where it stood in the old order
            state.preview_id = _resume_point(previous, index, state.live_id, state.preview_id)
            logger.info(f"Live item {state.live_id} removed, next advance goes to {state.preview_id}")
        elif state.live_id in index and state.preview_id is not None:
            following = index.next_after(state.live_id)
            state.preview_id = following.id if following else None
        elif state.preview_id is not None and state.preview_id not in index:
            state.preview_id = None
        for slot in ("armed_manual_button_id", "armed_manual_item_id", "preview_manual_item_id"):
            if not index.is_manual_item(getattr(state, slot)):
                setattr(state, slot, None)

    # === Sequence ===

    def advance(self, now: Optional[float] = None):
        """Go to next: manual promotion, then preview, then start, then follow-on."""
        if now is None:
            now = self._clock()
        state = self.state

        if state.stopped:
            state.stopped = False
            logger.info("Execution restarted")

        dropped_live = self._drop_stale_pointers()

        try:
            manual_id = (
                state.armed_manual_item_id
                or state.preview_manual_item_id
                or state.armed_manual_button_id
            )
            if manual_id is not None:
                self._promote_manual(manual_id, now)
                return

            if state.preview_id is not None:
                self._go_live(self.index.get(state.preview_id), now)
            elif state.live_id is None:
                if dropped_live:
                    logger.info("Nothing left after the removed live item")
                    return
                self._go_live(self.index.first(), now)
            else:
                following = self.index.next_after(state.live_id)
                if following is None:
                    logger.info(f"End of rundown reached at {state.live_id}")
                    return
                self._go_live(following, now)
        finally:
            state.armed_transition = None

    def _drop_stale_pointers(self) -> bool:
        """Clear pointers the current index no longer holds; True when LIVE was dropped."""
        state = self.state
        dropped_live = False
        if state.live_id is not None and state.live_id not in self.index:
            logger.info(f"Live item {state.live_id} no longer in rundown")
            state.live_id = None
            self.timer.cancel()
            dropped_live = True
        if state.preview_id is not None and state.preview_id not in self.index:
            state.preview_id = None
        for slot in ("armed_manual_button_id", "armed_manual_item_id", "preview_manual_item_id"):
            if not self.index.is_manual_item(getattr(state, slot)):
                setattr(state, slot, None)
        return dropped_live

    def _promote_manual(self, manual_id: str, now: float):
        state = self.state
        item = self.index.find(manual_id)
        newly_live = manual_id not in state.live_manual_item_ids

        self.timer.cancel()
        had_live = state.live_id is not None
        state.live_id = None
        state.preview_id = None
        state.live_manual_item_ids.add(manual_id)
        self._clear_manual_slots()

        logger.info(f"Manual item {manual_id} promoted to live", extra={"item_id": manual_id})
        if had_live and self._on_live_change:
            self._on_live_change(None, now)
        if item is not None and self._on_manual_promoted:
            self._on_manual_promoted(item, newly_live, now)

    def _go_live(self, item: Optional[Item], now: float):
        if item is None:
            return
        state = self.state
        previous_segment = self.index.segment_of(state.live_id)

        state.live_id = item.id
        following = self.index.next_after(item.id)
        state.preview_id = following.id if following else None
        state.armed_manual_item_id = None
        state.preview_manual_item_id = None

        if state.show_started_at is None:
            state.show_started_at = now
        segment = self.index.segment_of(item.id)
        if state.segment_started_at is None or segment is not previous_segment:
            state.segment_started_at = now

        self.timer.start(item, now)
        if state.paused:
            self.timer.pause(now)

        logger.info(
            f"LIVE: {item.id} ({item.title or item.type_name}), preview: {state.preview_id}",
            extra={"item_id": item.id},
        )
        if self._on_live_change:
            self._on_live_change(item, now)

    def _on_timer_expired(self, now: float):
        logger.debug(f"Auto-advance from {self.state.live_id}")
        self.advance(now)

    def stop(self, now: Optional[float] = None):
        """Toggle stopped; entering stopped resets the whole session."""
        state = self.state
        if state.stopped:
            state.stopped = False
            logger.info("Stop released")
            if self._on_stop:
                self._on_stop(False)
            return

        self.timer.cancel()
        self.state = ExecutionState(stopped=True)
        logger.info("Stopped")
        if self._on_stop:
            self._on_stop(True)

    # === Pause ===

    def toggle_pause(self, now: Optional[float] = None):
        if self.state.paused:
            self.resume(now)
        else:
            self.pause(now)

    def pause(self, now: Optional[float] = None):
        if self.state.paused:
            return
        if now is None:
            now = self._clock()
        self.state.paused = True
        self.timer.pause(now)
        logger.info("Paused")
        if self._on_pause_change:
            self._on_pause_change(True, now)

    def resume(self, now: Optional[float] = None):
        if not self.state.paused:
            return
        if now is None:
            now = self._clock()
        self.state.paused = False
        self.timer.resume(now)
        logger.info("Resumed")
        if self._on_pause_change:
            self._on_pause_change(False, now)

    # === Armed slots ===

    def arm_transition(self, name: Optional[str]):
        self.state.armed_transition = name or None

    def clear_armed_transition(self):
        self.state.armed_transition = None

    def arm_manual_button(self, item_id: str):
        if not self.index.is_manual_item(item_id):
            logger.debug(f"Ignoring arm of unknown manual button {item_id}")
            return
        self.state.armed_manual_button_id = item_id

    def clear_armed_manual_button(self):
        self.state.armed_manual_button_id = None

    def _clear_manual_slots(self):
        self.state.armed_manual_button_id = None
        self.state.armed_manual_item_id = None
        self.state.preview_manual_item_id = None

    # === Manual items ===

    def toggle_manual_item(self, item_id: str) -> Optional[bool]:
        """
        Add or remove a manual item from the live set.

        Returns True when it went live, False when it was removed, None when
        the id is not a known manual item.
        """
        live = self.state.live_manual_item_ids
        if item_id in live:
            live.discard(item_id)
            logger.info(f"Manual item {item_id} off", extra={"item_id": item_id})
            return False
        if not self.index.is_manual_item(item_id):
            logger.debug(f"Ignoring toggle of unknown manual item {item_id}")
            return None
        live.add(item_id)
        logger.info(f"Manual item {item_id} on", extra={"item_id": item_id})
        return True

    def arm_manual_item(self, item_id: str):
        """Arm a manual item so the next advance() promotes it."""
        if not self.index.is_manual_item(item_id):
            return
        state = self.state
        state.armed_manual_item_id = item_id
        state.armed_manual_button_id = item_id
        state.preview_manual_item_id = item_id
        state.preview_id = None
        logger.info(f"Manual item {item_id} armed", extra={"item_id": item_id})

    def execute_manual_item(self, item_id: str):
        """Control-pad press: disarm if already armed, otherwise arm."""
        state = self.state
        if item_id in (
            state.armed_manual_item_id,
            state.preview_manual_item_id,
            state.armed_manual_button_id,
        ):
            self._clear_manual_slots()
            logger.info(f"Manual item {item_id} disarmed", extra={"item_id": item_id})
            return
        self.arm_manual_item(item_id)
