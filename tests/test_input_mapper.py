from __future__ import annotations

import pytest

from gzteleop.services.input_mapper import MOVE_BINDINGS, SPEED_BINDINGS, TeleopInputMapper
from gzteleop.state import Vector3


def _vectors(mapper: TeleopInputMapper) -> tuple[tuple[float, ...], tuple[float, ...]]:
    s = mapper.state
    return (s.linear.x, s.linear.y, s.linear.z), (s.angular.x, s.angular.y, s.angular.z)


@pytest.mark.unit
def test_forward_speedup_turn_sequence():
    """Keys i, i, q, j from speed=0.5 turn=1.0: forward, unchanged, gains up, turn in place."""
    mapper = TeleopInputMapper(speed=0.5, turn=1.0)

    mapper.map_key("i")
    assert _vectors(mapper) == ((0.5, 0.0, 0.0), (0.0, 0.0, 0.0))

    mapper.map_key("i")
    assert _vectors(mapper) == ((0.5, 0.0, 0.0), (0.0, 0.0, 0.0))

    mapper.map_key("q")
    assert mapper.state.speed == pytest.approx(0.55)
    assert mapper.state.turn == pytest.approx(1.1)
    assert _vectors(mapper) == ((0.5, 0.0, 0.0), (0.0, 0.0, 0.0))

    mapper.map_key("j")
    linear, angular = _vectors(mapper)
    assert linear == (0.0, 0.0, 0.0)
    assert angular == pytest.approx((0.0, 0.0, 1.1))


@pytest.mark.unit
@pytest.mark.parametrize("key", ["k", "a", " ", "Escape", "Shift", "ArrowUp", "K", ""])
def test_unbound_keys_stop_motion(key: str):
    mapper = TeleopInputMapper()
    mapper.map_key("u")
    mapper.map_key("q")
    speed, turn = mapper.state.speed, mapper.state.turn

    state = mapper.map_key(key)

    assert state.linear == Vector3() and state.angular == Vector3(), f"{key!r} should stop motion"
    assert (state.speed, state.turn) == (speed, turn), "stop must keep the gains"


@pytest.mark.unit
@pytest.mark.parametrize("key", sorted(MOVE_BINDINGS))
def test_move_keys_depend_only_on_key_and_gains(key: str):
    mapper = TeleopInputMapper(speed=0.7, turn=1.3)
    first = mapper.map_key(key).twist()
    mapper.map_key("k")
    mapper.map_key("b" if key != "b" else "t")
    second = mapper.map_key(key).twist()

    assert first == second

    x, y, z, th = MOVE_BINDINGS[key]
    assert first["linear"] == pytest.approx({"x": x * 0.7, "y": y * 0.7, "z": z * 0.7})
    assert first["angular"] == pytest.approx({"x": 0.0, "y": 0.0, "z": th * 1.3})


@pytest.mark.unit
@pytest.mark.parametrize("key", sorted(SPEED_BINDINGS))
def test_speed_keys_leave_held_command_alone(key: str):
    mapper = TeleopInputMapper(speed=0.5, turn=1.0)
    held = mapper.map_key("o").twist()

    state = mapper.map_key(key)

    s_mul, t_mul = SPEED_BINDINGS[key]
    assert state.twist() == held
    assert state.speed == pytest.approx(0.5 * s_mul)
    assert state.turn == pytest.approx(1.0 * t_mul)

    # Only the next movement key sees the new gains
    state = mapper.map_key("o")
    assert state.linear.x == pytest.approx(0.5 * s_mul)
    assert state.angular.z == pytest.approx(-1.0 * t_mul)


@pytest.mark.unit
def test_bindings_are_case_sensitive():
    mapper = TeleopInputMapper()
    mapper.map_key("j")
    assert _vectors(mapper) == ((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))

    mapper.map_key("J")
    assert _vectors(mapper) == ((0.0, 0.5, 0.0), (0.0, 0.0, 0.0))

    mapper.map_key("Q")
    assert _vectors(mapper) == ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0)), "'Q' is not a speed key"
    assert mapper.state.speed == 0.5


@pytest.mark.unit
def test_new_key_overwrites_instead_of_adding():
    mapper = TeleopInputMapper(speed=1.0, turn=1.0)
    mapper.map_key("i")
    mapper.map_key("l")
    assert _vectors(mapper) == ((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
    mapper.map_key("t")
    assert _vectors(mapper) == ((0.0, 0.0, 1.0), (0.0, 0.0, 0.0))


@pytest.mark.unit
def test_gains_drift_without_clamping():
    mapper = TeleopInputMapper(speed=0.5, turn=1.0)
    for _ in range(60):
        mapper.map_key("z")
    assert 0.0 < mapper.state.speed < 0.01
    assert 0.0 < mapper.state.turn < 0.01

    for _ in range(200):
        mapper.map_key("w")
    assert mapper.state.speed > 100.0, "no upper bound on speed"


@pytest.mark.unit
def test_injected_tables_are_copied_and_read_only():
    moves = {"f": (1, 0, 0, 0)}
    speeds = {"+": (2.0, 1.0)}
    mapper = TeleopInputMapper(moves, speeds, speed=1.0, turn=1.0)

    moves["f"] = (0, 0, 0, 1)
    speeds["-"] = (0.5, 0.5)
    assert mapper.map_key("f").linear.x == 1.0
    assert not mapper.is_bound("-")
    assert not mapper.is_bound("i"), "defaults are replaced, not merged"

    with pytest.raises(TypeError):
        mapper.move_bindings["g"] = (0, 1, 0, 0)  # type: ignore[index]
    with pytest.raises(TypeError):
        MOVE_BINDINGS["g"] = (0, 1, 0, 0)  # type: ignore[index]


@pytest.mark.unit
@pytest.mark.parametrize(
    "moves,speeds",
    [
        ({"i": (1, 0, 0)}, {}),
        ({}, {"q": (1.1, 0.0)}),
        ({}, {"q": (1.1,)}),
    ],
)
def test_malformed_tables_are_rejected(moves, speeds):
    with pytest.raises(ValueError):
        TeleopInputMapper(moves, speeds)


@pytest.mark.unit
def test_twist_payload_shape():
    mapper = TeleopInputMapper(speed=0.5, turn=1.0)
    payload = mapper.map_key("u").twist()
    assert payload == {
        "linear": {"x": 0.5, "y": 0.0, "z": 0.0},
        "angular": {"x": 0.0, "y": 0.0, "z": 1.0},
    }
