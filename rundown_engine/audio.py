"""
Active audio resolution.

The set of playing mics and media tracks is never stored; it is replayed from
the rundown history up to the LIVE pointer on every state change.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .models import AudioAction, AudioCuePayload, AudioMode, Item, ItemKind, SourceType

logger = logging.getLogger(__name__)

# Volume used by adjust/fade_to cues that carry no target
DEFAULT_TARGET_VOLUME = 50.0


@dataclass
class Track:
    """One logical audio track."""
    id: str
    name: str
    volume: float
    track_id: str
    source_type: SourceType = SourceType.MIC
    media_duration_seconds: Optional[float] = None
    started_at_item_id: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "name": self.name,
            "volume": self.volume,
            "track_id": self.track_id,
        }
        if self.source_type == SourceType.MEDIA:
            result["media_duration_seconds"] = self.media_duration_seconds
            result["started_at_item_id"] = self.started_at_item_id
        return result


@dataclass
class ActiveAudio:
    mics: List[Track] = field(default_factory=list)
    media: List[Track] = field(default_factory=list)

    def find(self, track_id: Optional[str]) -> Optional[Track]:
        for track in self.mics + self.media:
            if track.track_id == track_id:
                return track
        return None

    def to_dict(self) -> dict:
        return {
            "mics": [track.to_dict() for track in self.mics],
            "media": [track.to_dict() for track in self.media],
        }


class _Accumulator:
    def __init__(self):
        self.mics: Dict[str, Track] = OrderedDict()
        self.media: Dict[str, Track] = OrderedDict()

    def contains(self, track_id: str) -> bool:
        return track_id in self.mics or track_id in self.media

    def apply(self, item_id: str, cue: AudioCuePayload, only_new_tracks: bool = False):
        """Apply one cue as a delta; malformed cues contribute nothing."""
        if cue.mode == AudioMode.NEW:
            track = _new_track(item_id, cue)
            if track is None:
                return
            if only_new_tracks and self.contains(track.track_id):
                return
            target, other = (
                (self.mics, self.media) if track.source_type == SourceType.MIC
                else (self.media, self.mics)
            )
            other.pop(track.track_id, None)
            target[track.track_id] = track
            return

        if not cue.track_id or cue.action is None:
            logger.debug(f"Skipping audio cue {item_id} with no track/action")
            return
        if cue.action in (AudioAction.STOP, AudioAction.FADE_OUT):
            self.mics.pop(cue.track_id, None)
            self.media.pop(cue.track_id, None)
        else:
            track = self.mics.get(cue.track_id) or self.media.get(cue.track_id)
            if track is not None:
                track.volume = _target_volume(cue)

    def result(self) -> ActiveAudio:
        return ActiveAudio(mics=list(self.mics.values()), media=list(self.media.values()))


def _target_volume(cue: AudioCuePayload) -> float:
    return cue.target_volume if cue.target_volume is not None else DEFAULT_TARGET_VOLUME


def _new_track(item_id: str, cue: AudioCuePayload) -> Optional[Track]:
    if cue.source_type == SourceType.MIC:
        if not cue.source_id:
            return None
        return Track(
            id=cue.source_id,
            name=cue.source_name or cue.source_id,
            volume=cue.volume,
            track_id=cue.track_id,
            source_type=SourceType.MIC,
        )
    if cue.source_type == SourceType.MEDIA:
        if not cue.media_id:
            return None
        return Track(
            id=cue.media_id,
            name=cue.source_name or cue.media_id,
            volume=cue.volume,
            track_id=cue.track_id,
            source_type=SourceType.MEDIA,
            media_duration_seconds=cue.media_duration_seconds,
            started_at_item_id=item_id,
        )
    return None


def resolve(
    items: Iterable[Item],
    live_id: Optional[str],
    live_manual_item_ids: Iterable[str] = (),
) -> ActiveAudio:
    """
    Replay audio cues up to and including the live item, then live manual items.

    Args:
        items: Top-level items in document order; manual blocks found here
            supply the manual children.
        live_id: Current LIVE item. When None or not among items, the regular
            sequence contributes nothing.
        live_manual_item_ids: Manual children currently live.
    """
    items = list(items)
    manual_ids: Set[str] = set(live_manual_item_ids)
    acc = _Accumulator()

    if live_id is not None and any(item.id == live_id for item in items):
        for item in items:
            if item.kind == ItemKind.AUDIO_CUE and item.audio is not None:
                acc.apply(item.id, item.audio)
            if item.id == live_id:
                break

    if manual_ids:
        for item in items:
            if item.kind != ItemKind.MANUAL_BLOCK:
                continue
            for child in item.manual_items:
                if child.id in manual_ids and child.audio is not None:
                    acc.apply(child.id, child.audio, only_new_tracks=True)

    return acc.result()


def build_manual_audio_command(
    item: Item,
    going_live: bool,
    active_audio: Optional[ActiveAudio] = None,
) -> Optional[dict]:
    """
    Outbound actuator command for a manual audio cue changing state.

    active_audio is the state before the toggle; it is used to find which
    kind of source an existing-track cue addresses.
    """
    cue = item.audio
    if item.kind != ItemKind.AUDIO_CUE or cue is None:
        return None

    if cue.mode == AudioMode.NEW:
        if cue.source_type == SourceType.MIC and cue.source_id:
            command = {
                "type": "CONTROL_MIC",
                "itemId": item.id,
                "sourceId": cue.source_id,
                "sourceName": cue.source_name or cue.source_id,
                "action": "unmute" if going_live else "mute",
            }
            if going_live:
                command["volume"] = cue.volume
            return command
        if cue.source_type == SourceType.MEDIA and cue.media_id:
            if going_live:
                return {
                    "type": "PLAY_AUDIO",
                    "itemId": item.id,
                    "mediaPath": cue.media_path,
                    "mediaId": cue.media_id,
                    "volume": cue.volume,
                }
            return {
                "type": "STOP_AUDIO",
                "itemId": item.id,
                "mediaId": cue.media_id,
                "fadeOut": False,
                "fadeDuration": 0,
            }
        return None

    # Existing-track cues only act when they go live
    if not going_live or cue.action is None:
        return None
    track = active_audio.find(cue.track_id) if active_audio else None
    if track is None:
        return None

    fading = cue.action == AudioAction.FADE_OUT
    if track.source_type == SourceType.MIC:
        if cue.action in (AudioAction.STOP, AudioAction.FADE_OUT):
            return {
                "type": "CONTROL_MIC",
                "itemId": item.id,
                "sourceId": track.id,
                "sourceName": track.name,
                "action": "mute",
                "fadeOut": fading,
                "fadeDuration": cue.fade_duration_seconds if fading else 0,
            }
        return {
            "type": "CONTROL_MIC",
            "itemId": item.id,
            "sourceId": track.id,
            "sourceName": track.name,
            "action": "unmute",
            "volume": _target_volume(cue),
        }

    if cue.action in (AudioAction.STOP, AudioAction.FADE_OUT):
        return {
            "type": "STOP_AUDIO",
            "itemId": item.id,
            "mediaId": track.id,
            "fadeOut": fading,
            "fadeDuration": cue.fade_duration_seconds if fading else 0,
        }
    return None
