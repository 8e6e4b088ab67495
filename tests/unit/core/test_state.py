"""Unit tests for the canonical state model."""

from ecp_visual.core.state import (
    HISTORY_LIMIT,
    CanonicalState,
    VisualParams,
    resolve_toggle_field,
)


class TestVisualParams:

    def test_defaults(self):
        p = VisualParams()
        assert (p.hue, p.speed, p.complexity, p.scale, p.mode) == (200, 1.0, 3, 1.0, "lissajous")
        assert p.color_shift is False
        assert p.pulse_on_beat is False

    def test_to_dict_uses_wire_names(self):
        data = VisualParams(color_shift=True).to_dict()
        assert data["colorShift"] is True
        assert data["pulseOnBeat"] is False
        assert "color_shift" not in data

    def test_restore_overwrites_in_place(self):
        p = VisualParams(hue=10, speed=4.0, pulse_on_beat=True)
        original = p
        p.restore(VisualParams())
        assert p is original
        assert p == VisualParams()

    def test_copy_is_independent(self):
        p = VisualParams()
        q = p.copy()
        q.hue = 5
        assert p.hue == 200


class TestCanonicalState:

    def test_record_button_most_recent_first(self):
        state = CanonicalState()
        for key in ("Up", "Down", "Left"):
            state.record_button(key)
        assert state.last_button == "Left"
        assert state.button_history == ["Left", "Down", "Up"]

    def test_history_is_capped(self):
        state = CanonicalState()
        for i in range(HISTORY_LIMIT + 5):
            state.record_button(f"K{i}")
        assert len(state.button_history) == HISTORY_LIMIT
        assert state.button_history[0] == f"K{HISTORY_LIMIT + 4}"

    def test_safe_state_fields(self):
        state = CanonicalState()
        state.record_button("Up")
        snap = state.safe_state()
        assert set(snap) == {
            "connected", "powerMode", "activeApp", "volume",
            "lastButton", "buttonHistory", "params",
        }
        assert snap["lastButton"] == "Up"
        assert snap["buttonHistory"] == ["Up"]
        assert snap["powerMode"] == "unknown"
        assert snap["activeApp"] == "Home"

    def test_safe_state_can_blank_buttons(self):
        state = CanonicalState()
        state.record_button("Up")
        snap = state.safe_state(include_buttons=False)
        assert snap["lastButton"] is None
        assert snap["buttonHistory"] == []
        # The state itself is untouched
        assert state.last_button == "Up"

    def test_safe_state_history_is_a_copy(self):
        state = CanonicalState()
        state.record_button("Up")
        snap = state.safe_state()
        snap["buttonHistory"].append("X")
        assert state.button_history == ["Up"]


def test_resolve_toggle_field():
    assert resolve_toggle_field("colorShift") == "color_shift"
    assert resolve_toggle_field("pulse_on_beat") == "pulse_on_beat"
    assert resolve_toggle_field("hue") is None
