"""
Control pad layout.

8 x 4 button grid sent to hardware-style control surfaces. Rows 1-3 hold the
manual buttons of the current group; row 4 is fixed:
[STOP][T1][T2][T3][T4][ ][PAUSE][NEXT]
"""

from typing import Any, Dict, List, Optional, Sequence

COLUMNS = 8
ROWS = 4
MANUAL_SLOTS = COLUMNS * (ROWS - 1)
TRANSITION_SLOTS = 4

DEFAULT_TRANSITIONS = ("Cut", "Fade", "Slide")


def _empty() -> Dict[str, Any]:
    return {"type": "empty", "label": ""}


def _manual_button(button: Dict[str, Any]) -> Dict[str, Any]:
    if button.get("live"):
        status = "live"
    elif button.get("armed"):
        status = "armed"
    else:
        status = "idle"
    return {
        "type": "manual",
        "label": button.get("title") or button["id"],
        "data": {"id": button["id"]},
        "status": status,
    }


def build_control_pad(
    snapshot: Dict[str, Any],
    transitions: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """Build the UPDATE_CONTROL_PAD message from an engine snapshot."""
    execution = snapshot.get("execution", {})
    transitions = list(transitions) if transitions else list(DEFAULT_TRANSITIONS)
    armed_transition = execution.get("armed_transition")

    buttons: List[Dict[str, Any]] = [
        _manual_button(button) for button in snapshot.get("manual_buttons", [])[:MANUAL_SLOTS]
    ]
    while len(buttons) < MANUAL_SLOTS:
        buttons.append(_empty())

    buttons.append({"type": "stop", "label": "STOP", "active": bool(execution.get("stopped"))})
    for slot in range(TRANSITION_SLOTS):
        if slot < len(transitions):
            name = transitions[slot]
            buttons.append({
                "type": "transition",
                "label": name,
                "data": {"type": name},
                "active": name == armed_transition,
            })
        else:
            buttons.append(_empty())
    buttons.append(_empty())
    buttons.append({"type": "pause", "label": "PAUSE", "active": bool(execution.get("paused"))})
    buttons.append({"type": "next", "label": "NEXT"})

    for position, button in enumerate(buttons):
        button["row"] = position // COLUMNS
        button["col"] = position % COLUMNS

    return {
        "type": "UPDATE_CONTROL_PAD",
        "columns": COLUMNS,
        "rows": ROWS,
        "buttons": buttons,
    }
