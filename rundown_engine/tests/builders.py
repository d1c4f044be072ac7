"""Rundown builders shared by the engine tests."""

from rundown_engine.models import Rundown


class FakeClock:
    """Controllable monotonic clock (seconds)."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def set(self, seconds: float) -> float:
        self.now = seconds
        return self.now

    def advance(self, seconds: float) -> float:
        self.now = round(self.now + seconds, 6)
        return self.now


def cue(item_id, type="Graphic", mode="manual", duration=None, **extra):
    item = {"id": item_id, "type": type, "title": item_id, "automation_mode": mode}
    if duration is not None:
        item["automation_duration"] = duration
    item.update(extra)
    return item


def audio_cue(item_id, automation="auto", duration=0, **data):
    return cue(item_id, type="AudioCue", mode=automation, duration=duration, data=data)


def mic_on(item_id, source_id, volume=100, **extra):
    data = {"mode": "new", "sourceType": "mic", "sourceId": source_id, "sourceName": source_id}
    data.update(volume=volume, **extra)
    return audio_cue(item_id, **data)


def media_on(item_id, media_id, volume=100, track_id=None, **extra):
    data = {"mode": "new", "sourceType": "media", "mediaId": media_id, "sourceName": media_id}
    if track_id:
        data["trackId"] = track_id
    data.update(volume=volume, **extra)
    return audio_cue(item_id, **data)


def existing(item_id, track_id, action, target_volume=None, **extra):
    data = {"mode": "existing", "trackId": track_id, "action": action}
    if target_volume is not None:
        data["targetVolume"] = target_volume
    data.update(extra)
    return audio_cue(item_id, **data)


def overlay(item_id, kind="auto", in_point=0, duration=10, policy="auto_out"):
    return {
        "id": item_id,
        "type": "Overlay",
        "title": item_id,
        "overlay_type": kind,
        "overlay_in_point": in_point,
        "overlay_duration": duration,
        "overlay_automation": policy,
    }


def note(item_id, text):
    return {"id": item_id, "type": "PresenterNote", "data": {"note": text}}


def manual_block(item_id, *children):
    return {"id": item_id, "type": "ManualBlock", "title": item_id, "data": {"items": list(children)}}


def single_group(*items) -> Rundown:
    """One segment, one group, the given items."""
    return Rundown.from_segments(
        [{"id": "seg-1", "title": "Segment 1", "groups": [{"id": "grp-1", "items": list(items)}]}]
    )


def segments(*layout) -> Rundown:
    """layout: (segment_id, [(group_id, [items...]), ...]) tuples."""
    return Rundown.from_segments([
        {
            "id": segment_id,
            "title": segment_id,
            "groups": [{"id": group_id, "title": group_id, "items": items} for group_id, items in groups],
        }
        for segment_id, groups in layout
    ])
