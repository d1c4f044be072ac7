"""Rundown sources: the rundown HTTP API, a saved JSON file, or a built-in demo."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from rundown_engine.models import DEFAULT_AUTOMATION_DURATION, Rundown

logger = logging.getLogger(__name__)

SEGMENTS_PATH = "/api/episodes/{episode_id}/segments"


class RundownFetchError(Exception):
    """The rundown could not be loaded; no session may start."""


def _parse_segments(payload: Any, episode_id: str | None, default_duration: float) -> Rundown:
    if isinstance(payload, dict) and isinstance(payload.get("segments"), list):
        payload = payload["segments"]
    if not isinstance(payload, list):
        raise RundownFetchError("Rundown response is not a list of segments")
    return Rundown.from_segments(payload, episode_id=episode_id, default_duration=default_duration)


class HttpRundownSource:
    """Fetch an episode rundown from the rundown REST API."""

    def __init__(
        self,
        api_base_url: str,
        episode_id: str,
        timeout: float = 10.0,
        default_duration: float = DEFAULT_AUTOMATION_DURATION,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.episode_id = episode_id
        self.timeout = timeout
        self.default_duration = default_duration
        self._transport = transport

    @property
    def url(self) -> str:
        return self.api_base_url + SEGMENTS_PATH.format(episode_id=self.episode_id)

    async def fetch(self) -> Rundown:
        """Load the rundown; raises RundownFetchError on any failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.url, params={"include": "groups,items"})
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise RundownFetchError(
                f"Rundown API returned {e.response.status_code} for episode {self.episode_id}"
            ) from e
        except httpx.HTTPError as e:
            raise RundownFetchError(f"Rundown API unavailable: {e}") from e
        except ValueError as e:
            raise RundownFetchError(f"Rundown API returned invalid JSON: {e}") from e

        rundown = _parse_segments(payload, self.episode_id, self.default_duration)
        logger.info(f"Fetched rundown for episode {self.episode_id}: {len(rundown.segments)} segments")
        return rundown


class FileRundownSource:
    """Load a rundown saved as JSON (either a segment list or a full rundown object)."""

    def __init__(self, path: str | Path, default_duration: float = DEFAULT_AUTOMATION_DURATION):
        self.path = Path(path)
        self.default_duration = default_duration

    async def fetch(self) -> Rundown:
        try:
            text = self.path.read_text(encoding="utf-8")
            data = json.loads(text)
        except OSError as e:
            raise RundownFetchError(f"Cannot read rundown file {self.path}: {e}") from e
        except ValueError as e:
            raise RundownFetchError(f"Invalid rundown file {self.path}: {e}") from e

        if isinstance(data, dict) and "segments" in data and "episode_id" in data:
            return Rundown.from_dict(data, self.default_duration)
        return _parse_segments(data, None, self.default_duration)


class StaticRundownSource:
    """Serve an in-memory rundown."""

    def __init__(self, rundown: Rundown):
        self.rundown = rundown

    async def fetch(self) -> Rundown:
        return self.rundown


def create_demo_rundown() -> Rundown:
    """Small two-segment show exercising every item kind."""
    segments = [
        {
            "id": "seg-open",
            "title": "Opening",
            "allotted_time": 120,
            "groups": [
                {
                    "id": "grp-intro",
                    "title": "Intro",
                    "items": [
                        {"id": "title-card", "type": "FullScreenGraphic", "title": "Title card"},
                        {
                            "id": "host-mic-on",
                            "type": "AudioCue",
                            "title": "Host mic",
                            "automation_mode": "auto",
                            "automation_duration": 0,
                            "data": {
                                "mode": "new",
                                "sourceType": "mic",
                                "sourceId": "host-mic",
                                "sourceName": "Host",
                                "volume": 80,
                            },
                        },
                        {
                            "id": "intro-video",
                            "type": "FullScreenVideo",
                            "title": "Intro video",
                            "automation_mode": "auto",
                            "automation_duration": 30,
                        },
                        {
                            "id": "intro-lower-third",
                            "type": "Overlay",
                            "title": "Host lower third",
                            "overlay_type": "auto",
                            "overlay_in_point": 5,
                            "overlay_duration": 10,
                            "overlay_automation": "auto_out",
                        },
                        {
                            "id": "intro-note",
                            "type": "PresenterNote",
                            "data": {"note": "Welcome viewers, introduce tonight's guest."},
                        },
                        {
                            "id": "intro-manual",
                            "type": "ManualBlock",
                            "title": "Stings",
                            "data": {
                                "items": [
                                    {
                                        "id": "sting-applause",
                                        "type": "AudioCue",
                                        "title": "Applause",
                                        "data": {
                                            "mode": "new",
                                            "sourceType": "media",
                                            "mediaId": "applause",
                                            "mediaPath": "media/applause.mp3",
                                            "sourceName": "Applause",
                                            "volume": 70,
                                        },
                                    },
                                    {
                                        "id": "bug-logo",
                                        "type": "Overlay",
                                        "title": "Logo bug",
                                        "overlay_type": "manual",
                                    },
                                ]
                            },
                        },
                    ],
                },
            ],
        },
        {
            "id": "seg-interview",
            "title": "Interview",
            "allotted_time": 600,
            "groups": [
                {
                    "id": "grp-guest",
                    "title": "Guest",
                    "items": [
                        {
                            "id": "guest-cam",
                            "type": "CameraShot",
                            "title": "Guest camera",
                            "automation_mode": "manual",
                        },
                        {
                            "id": "guest-name",
                            "type": "Overlay",
                            "title": "Guest name",
                            "overlay_type": "auto",
                            "overlay_in_point": 2,
                            "overlay_automation": "leave_in_local",
                        },
                        {
                            "id": "host-mic-off",
                            "type": "AudioCue",
                            "title": "Fade host mic",
                            "automation_mode": "auto",
                            "automation_duration": 0,
                            "data": {
                                "mode": "existing",
                                "trackId": "track_host-mic-on",
                                "action": "fade_out",
                                "fadeDurationSeconds": 2,
                            },
                        },
                        {"id": "outro-graphic", "type": "FullScreenGraphic", "title": "Outro"},
                    ],
                },
            ],
        },
    ]
    return Rundown.from_segments(segments, episode_id="demo")
