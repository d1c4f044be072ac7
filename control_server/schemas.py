"""Pydantic schemas for the control WebSocket protocol."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter

# ---------------------------------------------------------------------------
# Inbound (control surface -> server)
# ---------------------------------------------------------------------------


class ControlButton(BaseModel):
    # stop | pause | next | transition | manual, matched case-insensitively by the engine
    type: str = Field(..., min_length=1)
    data: Optional[dict[str, Any]] = None


class ControlActionMessage(BaseModel):
    type: Literal["CONTROL_ACTION"]
    button: ControlButton


class _ItemMessage(BaseModel):
    item_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("itemId", "item_id", "id")
    )


class ToggleManualItemMessage(_ItemMessage):
    type: Literal["TOGGLE_MANUAL_ITEM"]


class ExecuteManualItemMessage(_ItemMessage):
    type: Literal["EXECUTE_MANUAL_ITEM"]


class ArmManualItemMessage(_ItemMessage):
    type: Literal["ARM_MANUAL_ITEM"]


class _OverlayMessage(BaseModel):
    overlay_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("overlayId", "overlay_id", "id")
    )


class ToggleManualOverlayMessage(_OverlayMessage):
    type: Literal["TOGGLE_MANUAL_OVERLAY"]


class ForceRemoveOverlayMessage(_OverlayMessage):
    type: Literal["FORCE_REMOVE_OVERLAY"]


class GetStateMessage(BaseModel):
    type: Literal["GET_STATE"]


class PingMessage(BaseModel):
    type: Literal["ping"]


InboundMessage = Annotated[
    Union[
        ControlActionMessage,
        ToggleManualItemMessage,
        ExecuteManualItemMessage,
        ArmManualItemMessage,
        ToggleManualOverlayMessage,
        ForceRemoveOverlayMessage,
        GetStateMessage,
        PingMessage,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[Any] = TypeAdapter(InboundMessage)


def parse_inbound(raw: str | bytes) -> Any:
    """Parse one inbound frame.

    Raises ``ValueError`` for bad JSON and ``pydantic.ValidationError`` (itself a
    ``ValueError``) for schema violations.
    """
    data = json.loads(raw)
    return _inbound_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Outbound commands (server -> actuators)
# ---------------------------------------------------------------------------


class PlayAudioCommand(BaseModel):
    type: Literal["PLAY_AUDIO"] = "PLAY_AUDIO"
    itemId: str
    mediaPath: Optional[str] = None
    mediaId: str
    volume: float = Field(default=100, ge=0, le=100)


class StopAudioCommand(BaseModel):
    type: Literal["STOP_AUDIO"] = "STOP_AUDIO"
    itemId: str
    mediaId: str
    fadeOut: bool = False
    fadeDuration: float = Field(default=0, ge=0)


class ControlMicCommand(BaseModel):
    type: Literal["CONTROL_MIC"] = "CONTROL_MIC"
    itemId: str
    sourceId: str
    sourceName: Optional[str] = None
    volume: Optional[float] = Field(default=None, ge=0, le=100)
    action: Literal["unmute", "mute"]
    fadeOut: Optional[bool] = None
    fadeDuration: Optional[float] = Field(default=None, ge=0)


OutboundCommand = Annotated[
    Union[PlayAudioCommand, StopAudioCommand, ControlMicCommand],
    Field(discriminator="type"),
]

_command_adapter: TypeAdapter[Any] = TypeAdapter(OutboundCommand)


def serialize_command(command: dict[str, Any]) -> str:
    """Validate an engine command and render it as a JSON frame."""
    model = _command_adapter.validate_python(command)
    return model.model_dump_json(exclude_none=True)
