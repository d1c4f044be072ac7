"""
Data models for the rundown engine.

A rundown arrives as nested dicts (segments -> groups -> items). It is parsed
once here into typed items so the rest of the engine dispatches on ItemKind
instead of re-normalizing type strings on every read.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Display-only duration for items that never declared an automation mode
DEFAULT_AUTOMATION_DURATION = 10.0

DEFAULT_OVERLAY_DURATION = 10.0


def normalize_type_name(value: Optional[str]) -> str:
    """Lowercase a type name and drop punctuation/whitespace.

    "AudioCue", "audio-cue" and "audio_cue" all become "audiocue".
    """
    if not value:
        return ""
    return re.sub(r"[^a-z0-9]", "", str(value).lower())


class ItemKind(Enum):
    REGULAR = "regular"
    PRESENTER_NOTE = "presenter_note"
    MANUAL_BLOCK = "manual_block"
    OVERLAY = "overlay"
    AUDIO_CUE = "audio_cue"


_KIND_ALIASES: Dict[str, ItemKind] = {
    "presenternote": ItemKind.PRESENTER_NOTE,
    "note": ItemKind.PRESENTER_NOTE,
    "manualblock": ItemKind.MANUAL_BLOCK,
    "overlay": ItemKind.OVERLAY,
    "audiocue": ItemKind.AUDIO_CUE,
}

# Regular cue types whose effect is a fire-and-forget command
INSTANT_TYPE_NAMES = frozenset({"audiocue", "obscommand"})


def parse_kind(type_name: Optional[str]) -> ItemKind:
    """Map a raw type string onto an ItemKind; anything unknown is a regular cue."""
    return _KIND_ALIASES.get(normalize_type_name(type_name), ItemKind.REGULAR)


def _enum_value(enum_cls, raw: Any, default):
    """Parse an enum from a loosely formatted string, falling back to default."""
    if isinstance(raw, enum_cls):
        return raw
    if raw is None:
        return default
    wanted = normalize_type_name(str(raw))
    for member in enum_cls:
        if normalize_type_name(member.value) == wanted:
            return member
    return default


def _pick(data: Dict[str, Any], *keys: str, default=None):
    """Return the first present, non-None value among keys."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _as_float(value: Any, default: Optional[float]) -> Optional[float]:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


class AutomationMode(Enum):
    AUTO = "auto"
    MANUAL = "manual"


class OverlayKind(Enum):
    AUTO = "auto"
    MANUAL = "manual"


class OverlayPolicy(Enum):
    AUTO_OUT = "auto_out"
    LEAVE_IN_LOCAL = "leave_in_local"
    LEAVE_IN_GLOBAL = "leave_in_global"


class AudioMode(Enum):
    NEW = "new"
    EXISTING = "existing"


class SourceType(Enum):
    MIC = "mic"
    MEDIA = "media"


class AudioAction(Enum):
    ADJUST = "adjust"
    FADE_TO = "fade_to"
    FADE_OUT = "fade_out"
    STOP = "stop"


@dataclass
class AudioCuePayload:
    """Audio cue settings carried in an item's data payload.

    Fields are parsed leniently: a missing source type or track id leaves the
    field as None and the resolver skips the cue instead of failing.
    """
    mode: AudioMode = AudioMode.NEW
    source_type: Optional[SourceType] = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    media_id: Optional[str] = None
    media_path: Optional[str] = None
    volume: float = 100.0
    fade_in_seconds: float = 0.0
    media_duration_seconds: Optional[float] = None
    track_id: Optional[str] = None
    action: Optional[AudioAction] = None
    target_volume: Optional[float] = None
    fade_duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "sourceType": self.source_type.value if self.source_type else None,
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "mediaId": self.media_id,
            "mediaPath": self.media_path,
            "volume": self.volume,
            "fadeInSeconds": self.fade_in_seconds,
            "mediaDurationSeconds": self.media_duration_seconds,
            "trackId": self.track_id,
            "action": self.action.value if self.action else None,
            "targetVolume": self.target_volume,
            "fadeDurationSeconds": self.fade_duration_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict, item_id: str) -> "AudioCuePayload":
        mode = _enum_value(AudioMode, data.get("mode"), AudioMode.NEW)
        source_type = _enum_value(SourceType, _pick(data, "sourceType", "source_type"), None)
        track_id = _pick(data, "trackId", "track_id")
        if mode == AudioMode.NEW and not track_id:
            track_id = f"track_{item_id}"
        source_id = _pick(data, "sourceId", "source_id")
        media_id = _pick(data, "mediaId", "media_id")
        return cls(
            mode=mode,
            source_type=source_type,
            source_id=str(source_id) if source_id is not None else None,
            source_name=_pick(data, "sourceName", "source_name"),
            media_id=str(media_id) if media_id is not None else None,
            media_path=_pick(data, "mediaPath", "media_path", "filePath", "file_path"),
            volume=_as_float(data.get("volume"), 100.0),
            fade_in_seconds=_as_float(_pick(data, "fadeInSeconds", "fadeIn", "fade_in"), 0.0),
            media_duration_seconds=_as_float(
                _pick(data, "mediaDurationSeconds", "mediaDuration", "media_duration"), None
            ),
            track_id=str(track_id) if track_id else None,
            action=_enum_value(AudioAction, data.get("action"), None),
            target_volume=_as_float(_pick(data, "targetVolume", "target_volume"), None),
            fade_duration_seconds=_as_float(
                _pick(data, "fadeDurationSeconds", "fadeDuration", "fade_duration"), 0.0
            ),
        )


@dataclass
class OverlaySettings:
    """Timing and automation settings of an overlay item."""
    overlay_kind: OverlayKind = OverlayKind.MANUAL
    in_point_seconds: float = 0.0
    duration_seconds: float = DEFAULT_OVERLAY_DURATION
    automation_policy: OverlayPolicy = OverlayPolicy.AUTO_OUT
    color_index: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "overlay_type": self.overlay_kind.value,
            "overlay_in_point": self.in_point_seconds,
            "overlay_duration": self.duration_seconds,
            "overlay_automation": self.automation_policy.value,
            "overlay_color_index": self.color_index,
        }

    @classmethod
    def from_item(cls, raw: dict) -> "OverlaySettings":
        # Overlay fields live either on the item itself or in its data payload
        data = raw.get("data") if isinstance(raw.get("data"), dict) else {}

        def field_value(*keys):
            value = _pick(raw, *keys)
            return value if value is not None else _pick(data, *keys)

        color = field_value("overlay_color_index", "overlayColorIndex")
        return cls(
            overlay_kind=_enum_value(
                OverlayKind, field_value("overlay_type", "overlayKind", "overlay_kind"),
                OverlayKind.MANUAL,
            ),
            in_point_seconds=_as_float(
                field_value("overlay_in_point", "inPointSeconds", "in_point"), 0.0
            ),
            duration_seconds=_as_float(
                field_value("overlay_duration", "durationSeconds"), DEFAULT_OVERLAY_DURATION
            ),
            automation_policy=_enum_value(
                OverlayPolicy,
                field_value("overlay_automation", "automationPolicy", "automation_policy"),
                OverlayPolicy.AUTO_OUT,
            ),
            color_index=int(color) if isinstance(color, (int, float)) else None,
        )


@dataclass
class Item:
    """A single rundown item (tagged by kind)."""
    id: str
    kind: ItemKind = ItemKind.REGULAR
    type_name: str = ""
    title: str = ""
    automation_mode: AutomationMode = AutomationMode.MANUAL
    automation_duration_seconds: float = DEFAULT_AUTOMATION_DURATION
    data: Dict[str, Any] = field(default_factory=dict)
    audio: Optional[AudioCuePayload] = None
    overlay: Optional[OverlaySettings] = None
    manual_items: List["Item"] = field(default_factory=list)

    @property
    def is_auto(self) -> bool:
        return self.automation_mode == AutomationMode.AUTO

    @property
    def is_auto_overlay(self) -> bool:
        return (
            self.kind == ItemKind.OVERLAY
            and self.overlay is not None
            and self.overlay.overlay_kind == OverlayKind.AUTO
        )

    @property
    def is_manual_overlay(self) -> bool:
        return (
            self.kind == ItemKind.OVERLAY
            and self.overlay is not None
            and self.overlay.overlay_kind == OverlayKind.MANUAL
        )

    @property
    def executes_instantly(self) -> bool:
        """True for items whose effect is a one-shot command (no on-air duration)."""
        return (
            self.kind == ItemKind.AUDIO_CUE
            or normalize_type_name(self.type_name) in INSTANT_TYPE_NAMES
        )

    @property
    def note_text(self) -> str:
        return _pick(self.data, "note", "text", default=self.title) or ""

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "type": self.type_name or self.kind.value,
            "kind": self.kind.value,
            "title": self.title,
            "automation_mode": self.automation_mode.value,
            "automation_duration": self.automation_duration_seconds,
            "data": self.data,
        }
        if self.overlay:
            result.update(self.overlay.to_dict())
        if self.kind == ItemKind.MANUAL_BLOCK:
            result["data"] = {
                **self.data,
                "items": [child.to_dict() for child in self.manual_items],
            }
        return result

    @classmethod
    def from_dict(
        cls,
        raw: dict,
        fallback_id: Optional[str] = None,
        default_duration: float = DEFAULT_AUTOMATION_DURATION,
    ) -> Optional["Item"]:
        """Parse an item dict; returns None when the item has no usable id."""
        item_id = raw.get("id", fallback_id)
        if item_id is None or item_id == "":
            logger.warning(f"Skipping rundown item without id: {raw.get('title', '?')}")
            return None
        item_id = str(item_id)

        type_name = str(_pick(raw, "type", "kind", default="") or "")
        kind = parse_kind(type_name)
        data = raw.get("data") if isinstance(raw.get("data"), dict) else {}

        raw_mode = _pick(raw, "automation_mode", "automationMode")
        mode = _enum_value(AutomationMode, raw_mode, AutomationMode.MANUAL)
        duration = _as_float(
            _pick(raw, "automation_duration", "automationDurationSeconds"), None
        )
        if duration is None or duration < 0:
            duration = default_duration

        item = cls(
            id=item_id,
            kind=kind,
            type_name=type_name,
            title=str(_pick(raw, "title", "name", default="") or ""),
            automation_mode=mode,
            automation_duration_seconds=duration,
            data=data,
        )

        if kind == ItemKind.AUDIO_CUE:
            item.audio = AudioCuePayload.from_dict(data, item_id)
        elif kind == ItemKind.OVERLAY:
            item.overlay = OverlaySettings.from_item(raw)
        elif kind == ItemKind.MANUAL_BLOCK:
            children = data.get("items") if isinstance(data.get("items"), list) else []
            for index, child_raw in enumerate(children):
                if not isinstance(child_raw, dict):
                    continue
                child = cls.from_dict(
                    child_raw, fallback_id=f"{item_id}:{index}", default_duration=default_duration
                )
                if child is not None:
                    item.manual_items.append(child)
        return item


@dataclass
class Group:
    """A group (cue) of items inside a segment."""
    id: str
    title: str = ""
    items: List[Item] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict, default_duration: float = DEFAULT_AUTOMATION_DURATION) -> "Group":
        group = cls(id=str(data.get("id", "")), title=str(data.get("title", "") or ""))
        for raw in data.get("items") or []:
            if isinstance(raw, dict):
                item = Item.from_dict(raw, default_duration=default_duration)
                if item is not None:
                    group.items.append(item)
        return group


@dataclass
class Segment:
    """A rundown segment."""
    id: str
    title: str = ""
    groups: List[Group] = field(default_factory=list)
    allotted_time_seconds: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "allotted_time": self.allotted_time_seconds,
            "groups": [group.to_dict() for group in self.groups],
        }

    @classmethod
    def from_dict(cls, data: dict, default_duration: float = DEFAULT_AUTOMATION_DURATION) -> "Segment":
        # Older clients renamed groups to cues
        raw_groups = data.get("groups")
        if raw_groups is None:
            raw_groups = data.get("cues") or []
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "") or ""),
            groups=[
                Group.from_dict(g, default_duration) for g in raw_groups if isinstance(g, dict)
            ],
            allotted_time_seconds=_as_float(data.get("allotted_time"), None),
        )


@dataclass
class Rundown:
    """A complete rundown: ordered segments of groups of items."""
    segments: List[Segment] = field(default_factory=list)
    episode_id: Optional[str] = None
    name: str = ""

    def to_dict(self) -> dict:
        return {
            "episode_id": self.episode_id,
            "name": self.name,
            "segments": [segment.to_dict() for segment in self.segments],
        }

    @classmethod
    def from_dict(cls, data: dict, default_duration: float = DEFAULT_AUTOMATION_DURATION) -> "Rundown":
        return cls(
            segments=[
                Segment.from_dict(s, default_duration)
                for s in data.get("segments") or []
                if isinstance(s, dict)
            ],
            episode_id=data.get("episode_id"),
            name=data.get("name", ""),
        )

    @classmethod
    def from_segments(
        cls,
        segments: List[dict],
        episode_id: Optional[str] = None,
        default_duration: float = DEFAULT_AUTOMATION_DURATION,
    ) -> "Rundown":
        """Build from the raw segment list returned by the rundown API."""
        return cls(
            segments=[Segment.from_dict(s, default_duration) for s in segments if isinstance(s, dict)],
            episode_id=episode_id,
        )

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str, default_duration: float = DEFAULT_AUTOMATION_DURATION) -> "Rundown":
        data = json.loads(json_str)
        if isinstance(data, list):
            return cls.from_segments(data, default_duration=default_duration)
        return cls.from_dict(data, default_duration)
