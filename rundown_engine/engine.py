"""
Rundown engine facade.

Wires the index, execution state machine, auto-advance timer, overlay engine
and audio resolver into one object with an explicit lifecycle:
create(rundown) ... tick(now) ... dispose().
"""

import time
import logging
from typing import Any, Callable, Dict, List, Optional

from .audio import ActiveAudio, build_manual_audio_command, resolve
from .auto_advance import AutoAdvanceTimer
from .execution import ExecutionStateMachine
from .models import Item, Rundown, normalize_type_name
from .overlays import OverlayAutomationEngine, OverlayPhase
from .rundown_index import RundownIndex

logger = logging.getLogger(__name__)


def _describe(segment_or_group) -> Optional[Dict[str, Any]]:
    if segment_or_group is None:
        return None
    result = {"id": segment_or_group.id, "title": segment_or_group.title}
    allotted = getattr(segment_or_group, "allotted_time_seconds", None)
    if allotted is not None:
        result["allotted_time"] = allotted
    return result


class RundownEngine:
    """
    One control session over one rundown.

    Every public operation runs synchronously to completion; outbound
    commands and state notifications are delivered through callbacks whose
    failures are logged and never reach the engine.
    """

    def __init__(self, rundown: Optional[Rundown] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.rundown = rundown or Rundown()
        self.index = RundownIndex(self.rundown)
        self.timer = AutoAdvanceTimer()
        self.execution = ExecutionStateMachine(self.index, self.timer, clock)
        self.overlays = OverlayAutomationEngine(self.index)
        self.execution.set_callbacks(
            on_live_change=self._handle_live_change,
            on_manual_promoted=self._handle_manual_promoted,
            on_stop=self._handle_stop,
            on_pause_change=self._handle_pause_change,
        )

        # Stats
        self.advances_total = 0
        self.commands_total = 0

        self._disposed = False
        self._anchor_id: Optional[str] = None  # last item that was LIVE, for manual buttons
        self._audio = self.active_audio()
        self._last_countdown: Optional[int] = None

        # Callbacks
        self._on_command: Optional[Callable[[dict], None]] = None
        self._on_state_change: Optional[Callable[[], None]] = None

    @classmethod
    def create(cls, rundown: Rundown, clock: Callable[[], float] = time.monotonic) -> "RundownEngine":
        engine = cls(rundown, clock=clock)
        logger.info(
            f"Engine created: {len(engine.index)} navigable items, "
            f"{len(engine.index.manual_items())} manual items"
        )
        return engine

    def set_callbacks(
        self,
        on_command: Optional[Callable[[dict], None]] = None,
        on_state_change: Optional[Callable[[], None]] = None,
    ):
        """Set callback functions for outbound commands and state changes."""
        self._on_command = on_command
        self._on_state_change = on_state_change

    def dispose(self):
        """Cancel every timer and drop all runtime state; the engine is inert afterwards."""
        if self._disposed:
            return
        self.timer.cancel()
        self.overlays.clear()
        self._on_command = None
        self._on_state_change = None
        self._disposed = True
        logger.info("Engine disposed")

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def state(self):
        return self.execution.state

    def update_rundown(self, rundown: Rundown):
        """Rebuild the index after a rundown change and re-point every component."""
        if self._disposed:
            return
        self.rundown = rundown
        self.index = RundownIndex(rundown)
        self.execution.set_index(self.index)
        self.overlays.set_index(self.index)
        logger.info(f"Rundown updated: {len(self.index)} navigable items")
        self._changed()

    # === Clock ===

    def tick(self, now: Optional[float] = None) -> bool:
        """Drive timers and overlays; returns True when anything visible changed."""
        if self._disposed:
            return False
        if now is None:
            now = self._clock()
        fired = self.timer.tick(now)
        overlay_changes = self.overlays.tick(now)

        countdown = self.timer.remaining_seconds
        changed = fired or bool(overlay_changes) or countdown != self._last_countdown
        if changed:
            self._changed()
        return changed

    # === Operator actions ===

    def advance(self):
        if self._disposed:
            return
        self.execution.advance()
        self._changed()

    def stop(self):
        if self._disposed:
            return
        self.execution.stop()
        self._changed()

    def toggle_pause(self):
        if self._disposed:
            return
        self.execution.toggle_pause()
        self._changed()

    def arm_transition(self, name: Optional[str]):
        if self._disposed:
            return
        self.execution.arm_transition(name)
        self._changed()

    def clear_armed_transition(self):
        if self._disposed:
            return
        self.execution.clear_armed_transition()
        self._changed()

    def arm_manual_button(self, item_id: str):
        if self._disposed:
            return
        self.execution.arm_manual_button(item_id)
        self._changed()

    def clear_armed_manual_button(self):
        if self._disposed:
            return
        self.execution.clear_armed_manual_button()
        self._changed()

    def arm_manual_item(self, item_id: str):
        if self._disposed:
            return
        self.execution.arm_manual_item(item_id)
        self._changed()

    def execute_manual_item(self, item_id: str):
        """Control-pad press on a manual button: arm it, or disarm it when already armed."""
        if self._disposed:
            return
        self.execution.execute_manual_item(item_id)
        self._changed()

    def handle_control_action(self, button: Dict[str, Any]) -> bool:
        """
        Map a control-surface button press onto the execution operations.

        Returns False for unknown or incomplete buttons, which are ignored.
        """
        if self._disposed or not isinstance(button, dict):
            return False
        action = normalize_type_name(button.get("type"))
        data = button.get("data") if isinstance(button.get("data"), dict) else {}

        if action == "stop":
            self.stop()
        elif action == "pause":
            self.toggle_pause()
        elif action == "next":
            self.advance()
        elif action == "transition":
            name = data.get("type") or data.get("name")
            if not name:
                return False
            self.arm_transition(str(name))
        elif action == "manual":
            item_id = data.get("id")
            if not item_id:
                return False
            self.execute_manual_item(str(item_id))
        else:
            logger.debug(f"Ignoring unknown control action: {button.get('type')}")
            return False
        return True

    def toggle_manual_item(self, item_id: str) -> Optional[bool]:
        """
        Toggle a manual item in or out of the live set.

        Emits exactly one outbound command for audio-cue items and flips
        manual overlays to match.
        """
        if self._disposed:
            return None
        before = self._audio
        going_live = self.execution.toggle_manual_item(item_id)
        if going_live is None:
            return None

        item = self.index.find(item_id)
        if item is not None:
            if item.is_manual_overlay:
                overlay_live = self.overlays.state_of(item.id) == OverlayPhase.LIVE
                if overlay_live != going_live:
                    self.overlays.toggle_manual_overlay(item.id, self._clock())
            self._emit(build_manual_audio_command(item, going_live, before))
        self._changed()
        return going_live

    def toggle_manual_overlay(self, overlay_id: str) -> OverlayPhase:
        if self._disposed:
            return OverlayPhase.ABSENT
        phase = self.overlays.toggle_manual_overlay(overlay_id, self._clock())
        self._changed()
        return phase

    def force_remove_overlay(self, overlay_id: str) -> bool:
        if self._disposed:
            return False
        removed = self.overlays.force_remove(overlay_id)
        if removed:
            self._changed()
        return removed

    # === Derived state ===

    def active_audio(self) -> ActiveAudio:
        state = self.execution.state
        return resolve(self.index.all_items, state.live_id, state.live_manual_item_ids)

    def manual_buttons(self) -> List[Item]:
        """Manual block children of the group holding the current (or last) LIVE item."""
        return self.index.manual_buttons_for(self.state.live_id or self._anchor_id)

    def snapshot(self, now: Optional[float] = None) -> Dict[str, Any]:
        """JSON-ready view of the whole session."""
        if now is None:
            now = self._clock()
        state = self.execution.state
        live_id = state.live_id
        live = self.index.get(live_id)
        preview = self.index.get(state.preview_id)
        anchor = live_id or self._anchor_id
        upcoming_segment, upcoming_group = self.index.upcoming_group(anchor)

        def elapsed(started_at):
            return round(now - started_at, 3) if started_at is not None else None

        return {
            "execution": state.to_dict(),
            "live_item": live.to_dict() if live else None,
            "preview_item": preview.to_dict() if preview else None,
            "countdown_seconds": self.timer.remaining_seconds,
            "overlays": self.overlays.to_dict(),
            "audio": self.active_audio().to_dict(),
            "show_elapsed_seconds": elapsed(state.show_started_at),
            "segment_elapsed_seconds": elapsed(state.segment_started_at),
            "current_segment": _describe(self.index.segment_of(anchor)),
            "current_group": _describe(self.index.group_of(anchor)),
            "upcoming_segment": _describe(upcoming_segment),
            "upcoming_group": _describe(upcoming_group),
            "presenter_note": self.index.presenter_note_for(anchor),
            "manual_buttons": [
                {
                    "id": child.id,
                    "title": child.title,
                    "type": child.type_name,
                    "live": child.id in state.live_manual_item_ids,
                    "armed": child.id == state.armed_manual_button_id,
                }
                for child in self.manual_buttons()
            ],
        }

    # === Component callbacks ===

    def _handle_live_change(self, item: Optional[Item], now: float):
        self.overlays.on_parent_live(item, now)
        if item is not None:
            self._anchor_id = item.id
            self.advances_total += 1

    def _handle_manual_promoted(self, item: Item, newly_live: bool, now: float):
        if not newly_live:
            return
        if item.is_manual_overlay and self.overlays.state_of(item.id) != OverlayPhase.LIVE:
            self.overlays.toggle_manual_overlay(item.id, now)
        self._emit(build_manual_audio_command(item, True, self._audio))

    def _handle_stop(self, stopped: bool):
        if stopped:
            self.overlays.reset()
            self._anchor_id = None

    def _handle_pause_change(self, paused: bool, now: float):
        if paused:
            self.overlays.pause(now)
        else:
            self.overlays.resume(now)

    def _emit(self, command: Optional[dict]):
        if command is None:
            return
        self.commands_total += 1
        logger.info(
            f"Command {command['type']} for {command.get('itemId')}",
            extra={"item_id": command.get("itemId")},
        )
        if self._on_command:
            try:
                self._on_command(command)
            except Exception:
                logger.exception(f"Command callback failed for {command['type']}")

    def _changed(self):
        self._audio = self.active_audio()
        self._last_countdown = self.timer.remaining_seconds
        if self._on_state_change:
            try:
                self._on_state_change()
            except Exception:
                logger.exception("State change callback failed")
