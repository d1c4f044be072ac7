"""Tests for the auto-advance timer."""

from unittest.mock import MagicMock

import pytest

from rundown_engine.auto_advance import AutoAdvanceTimer, to_ms
from rundown_engine.models import Item

from builders import audio_cue, cue


def make_item(raw):
    return Item.from_dict(raw)


class TestStart:
    """Tests for starting the countdown."""

    def test_manual_item_is_not_timed(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="manual", duration=5)), now=0.0)

        assert timer.item_id is None
        assert timer.tick(100.0) is False
        expire.assert_not_called()

    def test_countdown_display_uses_ceil(self):
        timer = AutoAdvanceTimer()
        timer.start(make_item(cue("a", mode="auto", duration=10)), now=0.0)
        assert timer.remaining_seconds == 10

        timer.tick(0.1)
        assert timer.remaining_seconds == 10
        timer.tick(1.0)
        assert timer.remaining_seconds == 9
        timer.tick(9.999)
        assert timer.remaining_seconds == 1

    def test_fires_once_at_deadline(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="auto", duration=2.5)), now=10.0)

        assert timer.tick(12.4) is False
        assert timer.tick(12.5) is True
        assert timer.tick(12.6) is False
        expire.assert_called_once_with(12.5)
        assert timer.item_id is None

    def test_restart_replaces_previous_countdown(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="auto", duration=10)), now=0.0)
        timer.start(make_item(cue("b", mode="auto", duration=5)), now=0.0)

        assert timer.item_id == "b"
        assert timer.tick(5.0) is True
        assert timer.tick(10.0) is False
        expire.assert_called_once()


class TestInstantItems:
    """Tests for items that advance on the next tick."""

    def test_zero_duration_waits_for_next_tick(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="auto", duration=0)), now=0.0)

        expire.assert_not_called()
        assert timer.remaining_seconds == 0
        assert timer.tick(0.1) is True
        expire.assert_called_once_with(0.1)

    def test_audio_cue_executes_instantly(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(audio_cue("snd", duration=8)), now=0.0)

        assert timer.tick(0.1) is True
        expire.assert_called_once()

    def test_paused_instant_item_fires_after_resume(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="auto", duration=0)), now=0.0)
        timer.pause(0.0)

        assert timer.tick(5.0) is False
        timer.resume(6.0)
        assert timer.tick(6.1) is True


class TestPauseResume:
    """Tests for pause/resume timing."""

    def test_resume_runs_exactly_the_remaining_time(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="auto", duration=10)), now=0.0)

        timer.tick(3.0)
        timer.pause(3.0)
        assert timer.is_paused
        assert timer.remaining_ms(50.0) == 7000

        # 100s of wall time while paused
        assert timer.tick(103.0) is False
        timer.resume(103.0)
        assert timer.remaining_seconds == 7

        assert timer.tick(103.1) is False
        assert timer.tick(109.9) is False
        expire.assert_not_called()
        assert timer.tick(110.0) is True
        expire.assert_called_once_with(110.0)

    def test_pause_and_resume_are_idempotent(self):
        timer = AutoAdvanceTimer()
        timer.start(make_item(cue("a", mode="auto", duration=10)), now=0.0)
        timer.pause(2.0)
        timer.pause(5.0)
        assert timer.remaining_ms(9.0) == 8000
        timer.resume(9.0)
        timer.resume(12.0)
        assert timer.remaining_ms(9.0) == 8000

    def test_pause_without_item_is_noop(self):
        timer = AutoAdvanceTimer()
        timer.pause(1.0)
        assert not timer.is_paused
        assert timer.remaining_ms(1.0) is None


class TestCancel:
    """Tests for cancellation."""

    def test_cancel_prevents_fire(self):
        expire = MagicMock()
        timer = AutoAdvanceTimer(expire)
        timer.start(make_item(cue("a", mode="auto", duration=1)), now=0.0)
        timer.cancel()

        assert timer.tick(5.0) is False
        expire.assert_not_called()
        assert timer.remaining_seconds is None
        assert not timer.is_active


@pytest.mark.parametrize("seconds,expected", [(0, 0), (0.1, 100), (2.5, 2500), (0.30000000000000004, 300)])
def test_to_ms(seconds, expected):
    assert to_ms(seconds) == expected
