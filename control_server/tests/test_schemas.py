"""Tests for the control WebSocket message schemas."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from control_server.schemas import (
    ArmManualItemMessage,
    ControlActionMessage,
    ExecuteManualItemMessage,
    ForceRemoveOverlayMessage,
    GetStateMessage,
    PingMessage,
    ToggleManualItemMessage,
    ToggleManualOverlayMessage,
    parse_inbound,
    serialize_command,
)


class TestParseInbound:
    """Inbound frame validation."""

    def test_control_action(self) -> None:
        message = parse_inbound(
            json.dumps({"type": "CONTROL_ACTION", "button": {"type": "transition", "data": {"type": "Fade"}}})
        )
        assert isinstance(message, ControlActionMessage)
        assert message.button.type == "transition"
        assert message.button.data == {"type": "Fade"}

    @pytest.mark.parametrize("key", ["itemId", "item_id", "id"])
    def test_item_id_aliases(self, key: str) -> None:
        message = parse_inbound(json.dumps({"type": "TOGGLE_MANUAL_ITEM", key: "sting"}))
        assert isinstance(message, ToggleManualItemMessage)
        assert message.item_id == "sting"

    @pytest.mark.parametrize(
        "type_name, model",
        [
            ("EXECUTE_MANUAL_ITEM", ExecuteManualItemMessage),
            ("ARM_MANUAL_ITEM", ArmManualItemMessage),
        ],
    )
    def test_other_item_messages(self, type_name: str, model) -> None:
        message = parse_inbound(json.dumps({"type": type_name, "itemId": "sting"}))
        assert isinstance(message, model)

    @pytest.mark.parametrize(
        "type_name, model",
        [
            ("TOGGLE_MANUAL_OVERLAY", ToggleManualOverlayMessage),
            ("FORCE_REMOVE_OVERLAY", ForceRemoveOverlayMessage),
        ],
    )
    def test_overlay_messages(self, type_name: str, model) -> None:
        message = parse_inbound(json.dumps({"type": type_name, "overlayId": "bug-logo"}))
        assert isinstance(message, model)
        assert message.overlay_id == "bug-logo"

    def test_simple_messages(self) -> None:
        assert isinstance(parse_inbound('{"type": "GET_STATE"}'), GetStateMessage)
        assert isinstance(parse_inbound(b'{"type": "ping"}'), PingMessage)

    @pytest.mark.parametrize(
        "raw",
        [
            '{"type": "LAUNCH_MISSILES"}',
            '{"type": "TOGGLE_MANUAL_ITEM"}',
            '{"type": "TOGGLE_MANUAL_ITEM", "itemId": ""}',
            '{"type": "CONTROL_ACTION", "button": {"type": ""}}',
            '{"button": {"type": "next"}}',
        ],
    )
    def test_rejects_invalid_messages(self, raw: str) -> None:
        with pytest.raises(ValidationError):
            parse_inbound(raw)

    def test_rejects_invalid_json(self) -> None:
        with pytest.raises(ValueError):
            parse_inbound("{not json")


class TestSerializeCommand:
    """Outbound actuator commands."""

    def test_play_audio_drops_missing_fields(self) -> None:
        frame = serialize_command(
            {"type": "PLAY_AUDIO", "itemId": "sting", "mediaId": "applause", "mediaPath": None, "volume": 70}
        )
        assert json.loads(frame) == {
            "type": "PLAY_AUDIO",
            "itemId": "sting",
            "mediaId": "applause",
            "volume": 70,
        }

    def test_control_mic(self) -> None:
        frame = serialize_command(
            {
                "type": "CONTROL_MIC",
                "itemId": "off",
                "sourceId": "host-mic",
                "action": "mute",
                "fadeOut": True,
                "fadeDuration": 2.0,
            }
        )
        data = json.loads(frame)
        assert data["action"] == "mute"
        assert data["fadeDuration"] == 2.0
        assert "volume" not in data

    @pytest.mark.parametrize(
        "command",
        [
            {"type": "PLAY_AUDIO", "itemId": "x", "mediaId": "m", "volume": 150},
            {"type": "CONTROL_MIC", "itemId": "x", "sourceId": "s", "action": "shout"},
            {"type": "STOP_AUDIO", "itemId": "x"},
            {"type": "REBOOT"},
        ],
    )
    def test_rejects_invalid_commands(self, command: dict) -> None:
        with pytest.raises(ValidationError):
            serialize_command(command)
