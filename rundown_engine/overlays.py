"""
Overlay automation engine.

Automatic overlays follow the item that most recently went LIVE:
waiting (until the in-point) -> live -> removed. Manual overlays are simply
toggled on and off and outlive any parent.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .auto_advance import to_ms
from .models import Item, OverlayPolicy
from .rundown_index import RundownIndex

logger = logging.getLogger(__name__)


class OverlayPhase(Enum):
    ABSENT = "absent"
    WAITING = "waiting"
    LIVE = "live"


@dataclass
class OverlayState:
    """Runtime state of one overlay."""
    overlay_id: str
    phase: OverlayPhase
    policy: OverlayPolicy = OverlayPolicy.AUTO_OUT
    manual: bool = False
    parent_id: Optional[str] = None
    segment_id: Optional[str] = None
    in_point_ms: int = 0
    duration_ms: int = 0
    started_at_ms: Optional[int] = None
    remaining_seconds: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "overlay_id": self.overlay_id,
            "phase": self.phase.value,
            "policy": self.policy.value,
            "manual": self.manual,
            "parent_id": self.parent_id,
            "remaining_seconds": self.remaining_seconds,
        }


class OverlayAutomationEngine:
    """Per-overlay state machines driven by one shared parent clock."""

    def __init__(self, index: Optional[RundownIndex] = None):
        self.index = index or RundownIndex()
        self._states: Dict[str, OverlayState] = {}
        self._parent_id: Optional[str] = None
        self._parent_live_at_ms: Optional[int] = None
        self._paused_at_ms: Optional[int] = None

        self._on_change: Optional[Callable[[OverlayState], None]] = None

    def set_callbacks(self, on_change: Optional[Callable[[OverlayState], None]] = None):
        self._on_change = on_change

    def set_index(self, index: RundownIndex):
        self.index = index

    @property
    def parent_id(self) -> Optional[str]:
        return self._parent_id

    @property
    def is_paused(self) -> bool:
        return self._paused_at_ms is not None

    def state_of(self, overlay_id: str) -> OverlayPhase:
        state = self._states.get(overlay_id)
        return state.phase if state else OverlayPhase.ABSENT

    def states(self) -> List[OverlayState]:
        return list(self._states.values())

    def to_dict(self) -> Dict[str, dict]:
        return {overlay_id: state.to_dict() for overlay_id, state in self._states.items()}

    # === Parent lifecycle ===

    def on_parent_live(self, parent: Optional[Item], now: float):
        """Discard the previous parent's overlays and arm the new parent's."""
        now_ms = to_ms(now)
        segment = self.index.segment_of(parent.id) if parent else None
        segment_id = segment.id if segment else None

        for overlay_id, state in list(self._states.items()):
            if not self._survives_parent_change(state, segment_id):
                self._remove(overlay_id)

        self._parent_id = parent.id if parent else None
        self._parent_live_at_ms = now_ms if parent else None
        if self._paused_at_ms is not None:
            self._paused_at_ms = now_ms

        if parent is None:
            return

        for overlay in self.index.child_overlays(parent.id):
            settings = overlay.overlay
            self._states[overlay.id] = OverlayState(
                overlay_id=overlay.id,
                phase=OverlayPhase.WAITING,
                policy=settings.automation_policy,
                parent_id=parent.id,
                segment_id=segment_id,
                in_point_ms=to_ms(settings.in_point_seconds),
                duration_ms=to_ms(settings.duration_seconds),
                remaining_seconds=settings.in_point_seconds,
            )
            logger.debug(f"Overlay {overlay.id} waiting {settings.in_point_seconds}s")
        self.tick(now)

    @staticmethod
    def _survives_parent_change(state: OverlayState, segment_id: Optional[str]) -> bool:
        if state.manual:
            return True
        if state.phase != OverlayPhase.LIVE:
            return False
        if state.policy == OverlayPolicy.LEAVE_IN_GLOBAL:
            return True
        if state.policy == OverlayPolicy.LEAVE_IN_LOCAL:
            return segment_id is not None and state.segment_id == segment_id
        return False

    # === Clock ===

    def tick(self, now: float) -> List[OverlayState]:
        """Advance every automatic overlay; returns the states that changed phase."""
        if self._paused_at_ms is not None:
            return []
        now_ms = to_ms(now)
        changed = []

        for overlay_id, state in list(self._states.items()):
            if state.manual:
                continue

            if state.phase == OverlayPhase.WAITING:
                if self._parent_live_at_ms is None:
                    continue
                remaining_ms = state.in_point_ms - (now_ms - self._parent_live_at_ms)
                if remaining_ms > 0:
                    state.remaining_seconds = remaining_ms / 1000
                    continue
                state.phase = OverlayPhase.LIVE
                state.started_at_ms = now_ms
                changed.append(state)
                logger.debug(f"Overlay {overlay_id} live")

            if state.phase == OverlayPhase.LIVE:
                if state.policy != OverlayPolicy.AUTO_OUT:
                    state.remaining_seconds = None
                    continue
                remaining_ms = state.duration_ms - (now_ms - state.started_at_ms)
                if remaining_ms > 0:
                    state.remaining_seconds = remaining_ms / 1000
                    continue
                self._remove(overlay_id)
                changed.append(state)

        if self._on_change:
            for state in changed:
                self._on_change(state)
        return changed

    def pause(self, now: float):
        if self._paused_at_ms is None:
            self._paused_at_ms = to_ms(now)

    def resume(self, now: float):
        """Shift every running clock by the time spent paused."""
        if self._paused_at_ms is None:
            return
        shift_ms = to_ms(now) - self._paused_at_ms
        self._paused_at_ms = None
        if self._parent_live_at_ms is not None:
            self._parent_live_at_ms += shift_ms
        for state in self._states.values():
            if state.started_at_ms is not None and not state.manual:
                state.started_at_ms += shift_ms

    # === Operator actions ===

    def force_remove(self, overlay_id: str) -> bool:
        """Remove an overlay regardless of policy; False if it was not present."""
        if overlay_id not in self._states:
            return False
        state = self._remove(overlay_id)
        if self._on_change:
            self._on_change(state)
        return True

    def toggle_manual_overlay(self, overlay_id: str, now: float) -> OverlayPhase:
        """Flip a manual overlay between absent and live."""
        existing = self._states.get(overlay_id)
        if existing is not None and existing.manual:
            state = self._remove(overlay_id)
        else:
            overlay = self.index.find(overlay_id)
            if overlay is None or not overlay.is_manual_overlay:
                logger.debug(f"Ignoring toggle of unknown manual overlay {overlay_id}")
                return self.state_of(overlay_id)
            state = OverlayState(
                overlay_id=overlay_id,
                phase=OverlayPhase.LIVE,
                policy=overlay.overlay.automation_policy,
                manual=True,
                started_at_ms=to_ms(now),
            )
            self._states[overlay_id] = state
            logger.info(f"Manual overlay {overlay_id} on")

        if self._on_change:
            self._on_change(state)
        return state.phase

    def reset(self):
        """Drop every automatic overlay and the parent clock; manual overlays stay."""
        for overlay_id, state in list(self._states.items()):
            if not state.manual:
                self._remove(overlay_id)
        self._parent_id = None
        self._parent_live_at_ms = None
        self._paused_at_ms = None

    def clear(self):
        """Drop every overlay, manual ones included."""
        self._states.clear()
        self._parent_id = None
        self._parent_live_at_ms = None
        self._paused_at_ms = None

    def _remove(self, overlay_id: str) -> OverlayState:
        state = self._states.pop(overlay_id)
        state.phase = OverlayPhase.ABSENT
        state.remaining_seconds = None
        logger.debug(f"Overlay {overlay_id} removed")
        return state
