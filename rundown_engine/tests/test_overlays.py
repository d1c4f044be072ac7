"""Tests for the overlay automation engine."""

from unittest.mock import MagicMock

import pytest

from rundown_engine.overlays import OverlayAutomationEngine, OverlayPhase
from rundown_engine.rundown_index import RundownIndex

from builders import cue, manual_block, overlay, segments, single_group


def make_engine(rundown):
    index = RundownIndex(rundown)
    return OverlayAutomationEngine(index), index


def run_ticks(engine, until, start=0.0):
    """Tick every 100ms from start up to and including until."""
    step = int(round(start * 10))
    while step <= int(round(until * 10)):
        engine.tick(step / 10)
        step += 1


class TestAutoOverlayLifecycle:
    """Tests for waiting -> live -> removed."""

    @pytest.mark.parametrize("t,expected", [
        (0.0, OverlayPhase.WAITING),
        (4.9, OverlayPhase.WAITING),
        (5.0, OverlayPhase.LIVE),
        (14.9, OverlayPhase.LIVE),
        (15.0, OverlayPhase.ABSENT),
        (20.0, OverlayPhase.ABSENT),
    ])
    def test_in_point_and_duration(self, t, expected):
        engine, index = make_engine(single_group(cue("p"), overlay("o", in_point=5, duration=10)))
        engine.on_parent_live(index.get("p"), 0.0)
        run_ticks(engine, t)
        assert engine.state_of("o") == expected

    def test_zero_in_point_goes_live_immediately(self):
        engine, index = make_engine(single_group(cue("p"), overlay("o", in_point=0)))
        engine.on_parent_live(index.get("p"), 2.0)
        assert engine.state_of("o") == OverlayPhase.LIVE

    def test_waiting_countdown_tracks_remaining(self):
        engine, index = make_engine(single_group(cue("p"), overlay("o", in_point=5)))
        engine.on_parent_live(index.get("p"), 0.0)
        engine.tick(1.5)
        assert engine.states()[0].remaining_seconds == pytest.approx(3.5)

    def test_only_overlays_directly_after_parent(self):
        engine, index = make_engine(single_group(
            cue("p"), overlay("o1", in_point=1), overlay("o2", in_point=2), cue("q"), overlay("o3"),
        ))
        engine.on_parent_live(index.get("p"), 0.0)
        assert {state.overlay_id for state in engine.states()} == {"o1", "o2"}

    def test_on_change_reports_phase_changes(self):
        on_change = MagicMock()
        engine, index = make_engine(single_group(cue("p"), overlay("o", in_point=1, duration=1)))
        engine.set_callbacks(on_change=on_change)
        engine.on_parent_live(index.get("p"), 0.0)
        run_ticks(engine, 2.0)
        phases = [call.args[0].phase for call in on_change.call_args_list]
        assert len(phases) == 2
        assert phases[-1] == OverlayPhase.ABSENT


class TestParentChange:
    """Tests for what survives a new LIVE item."""

    def test_previous_parent_overlays_discarded(self):
        engine, index = make_engine(single_group(
            cue("p"), overlay("waiting", in_point=10), overlay("shown", in_point=0), cue("q"),
        ))
        engine.on_parent_live(index.get("p"), 0.0)
        assert engine.state_of("shown") == OverlayPhase.LIVE

        engine.on_parent_live(index.get("q"), 1.0)
        assert engine.state_of("waiting") == OverlayPhase.ABSENT
        assert engine.state_of("shown") == OverlayPhase.ABSENT

    def test_leave_in_local_survives_within_segment(self):
        rundown = segments(
            ("s1", [("g1", [cue("p"), overlay("local", policy="leave_in_local"), cue("q")])]),
            ("s2", [("g2", [cue("r")])]),
        )
        engine, index = make_engine(rundown)
        engine.on_parent_live(index.get("p"), 0.0)
        run_ticks(engine, 30.0)
        assert engine.state_of("local") == OverlayPhase.LIVE

        engine.on_parent_live(index.get("q"), 31.0)
        assert engine.state_of("local") == OverlayPhase.LIVE

        engine.on_parent_live(index.get("r"), 32.0)
        assert engine.state_of("local") == OverlayPhase.ABSENT

    def test_leave_in_global_survives_until_removed(self):
        rundown = segments(
            ("s1", [("g1", [cue("p"), overlay("global", policy="leave_in_global")])]),
            ("s2", [("g2", [cue("r")])]),
        )
        engine, index = make_engine(rundown)
        engine.on_parent_live(index.get("p"), 0.0)
        engine.on_parent_live(index.get("r"), 100.0)
        assert engine.state_of("global") == OverlayPhase.LIVE

        assert engine.force_remove("global") is True
        assert engine.state_of("global") == OverlayPhase.ABSENT
        assert engine.force_remove("global") is False

    def test_waiting_leave_in_overlay_is_discarded(self):
        engine, index = make_engine(single_group(
            cue("p"), overlay("late", in_point=5, policy="leave_in_global"), cue("q"),
        ))
        engine.on_parent_live(index.get("p"), 0.0)
        engine.on_parent_live(index.get("q"), 1.0)
        assert engine.state_of("late") == OverlayPhase.ABSENT

    def test_reset_removes_automatic_overlays(self):
        engine, index = make_engine(single_group(
            cue("p"), overlay("global", policy="leave_in_global"), overlay("bug", kind="manual"),
        ))
        engine.on_parent_live(index.get("p"), 0.0)
        engine.toggle_manual_overlay("bug", 0.0)

        engine.reset()
        assert engine.state_of("global") == OverlayPhase.ABSENT
        assert engine.state_of("bug") == OverlayPhase.LIVE
        assert engine.parent_id is None


class TestManualOverlays:
    """Tests for manually toggled overlays."""

    def test_toggle_flips_state(self):
        engine, _ = make_engine(single_group(cue("p"), overlay("bug", kind="manual")))
        assert engine.toggle_manual_overlay("bug", 0.0) == OverlayPhase.LIVE
        engine.tick(1000.0)
        assert engine.state_of("bug") == OverlayPhase.LIVE
        assert engine.toggle_manual_overlay("bug", 1.0) == OverlayPhase.ABSENT

    def test_manual_overlay_in_manual_block(self):
        engine, _ = make_engine(single_group(cue("p"), manual_block("mb", overlay("logo", kind="manual"))))
        assert engine.toggle_manual_overlay("logo", 0.0) == OverlayPhase.LIVE

    def test_survives_parent_change(self):
        engine, index = make_engine(single_group(cue("p"), overlay("bug", kind="manual"), cue("q")))
        engine.toggle_manual_overlay("bug", 0.0)
        engine.on_parent_live(index.get("p"), 1.0)
        engine.on_parent_live(index.get("q"), 2.0)
        engine.on_parent_live(None, 3.0)
        assert engine.state_of("bug") == OverlayPhase.LIVE

    def test_unknown_or_auto_overlay_is_ignored(self):
        engine, _ = make_engine(single_group(cue("p"), overlay("auto-one")))
        assert engine.toggle_manual_overlay("auto-one", 0.0) == OverlayPhase.ABSENT
        assert engine.toggle_manual_overlay("ghost", 0.0) == OverlayPhase.ABSENT
        assert engine.states() == []

    def test_clear_removes_everything(self):
        engine, _ = make_engine(single_group(cue("p"), overlay("bug", kind="manual")))
        engine.toggle_manual_overlay("bug", 0.0)
        engine.clear()
        assert engine.states() == []


class TestPause:
    """Tests for freezing the overlay clock."""

    def test_pause_shifts_in_point(self):
        engine, index = make_engine(single_group(cue("p"), overlay("o", in_point=5, duration=10)))
        engine.on_parent_live(index.get("p"), 0.0)
        engine.tick(2.0)
        engine.pause(2.0)
        engine.tick(50.0)
        assert engine.state_of("o") == OverlayPhase.WAITING

        engine.resume(100.0)
        engine.tick(102.9)
        assert engine.state_of("o") == OverlayPhase.WAITING
        engine.tick(103.0)
        assert engine.state_of("o") == OverlayPhase.LIVE

    def test_pause_shifts_live_duration(self):
        engine, index = make_engine(single_group(cue("p"), overlay("o", in_point=0, duration=4)))
        engine.on_parent_live(index.get("p"), 0.0)
        engine.pause(1.0)
        engine.resume(11.0)
        engine.tick(13.9)
        assert engine.state_of("o") == OverlayPhase.LIVE
        engine.tick(14.0)
        assert engine.state_of("o") == OverlayPhase.ABSENT
