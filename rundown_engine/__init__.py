"""
Rundown execution engine.
Tracks what is LIVE/PREVIEW, auto-advances timed items, automates overlays
and derives the active audio sources from rundown history.
"""

from .models import (
    AudioAction,
    AudioCuePayload,
    AudioMode,
    AutomationMode,
    Group,
    Item,
    ItemKind,
    OverlayKind,
    OverlayPolicy,
    Rundown,
    Segment,
    SourceType,
)
from .rundown_index import RundownIndex
from .auto_advance import AutoAdvanceTimer
from .execution import ExecutionState, ExecutionStateMachine
from .overlays import OverlayAutomationEngine, OverlayPhase, OverlayState
from .audio import ActiveAudio, Track, build_manual_audio_command, resolve
from .engine import RundownEngine

__all__ = [
    'RundownEngine',
    'RundownIndex',
    'ExecutionState',
    'ExecutionStateMachine',
    'AutoAdvanceTimer',
    'OverlayAutomationEngine',
    'OverlayPhase',
    'OverlayState',
    'ActiveAudio',
    'Track',
    'resolve',
    'build_manual_audio_command',
    'Rundown',
    'Segment',
    'Group',
    'Item',
    'ItemKind',
    'AutomationMode',
    'OverlayKind',
    'OverlayPolicy',
    'AudioCuePayload',
    'AudioMode',
    'AudioAction',
    'SourceType',
]
