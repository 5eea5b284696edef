from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from gzteleop.common.logging_config import trace
from gzteleop.state import Vector3, VelocityState

MoveBinding = tuple[float, float, float, float]  # x, y, z, yaw
SpeedBinding = tuple[float, float]  # speed multiplier, turn multiplier

# Same layout as teleop_twist_keyboard; upper case keys strafe (holonomic)
MOVE_BINDINGS: Mapping[str, MoveBinding] = MappingProxyType(
    {
        "i": (1, 0, 0, 0),
        "o": (1, 0, 0, -1),
        "j": (0, 0, 0, 1),
        "l": (0, 0, 0, -1),
        "u": (1, 0, 0, 1),
        ",": (-1, 0, 0, 0),
        ".": (-1, 0, 0, 1),
        "m": (-1, 0, 0, -1),
        "O": (1, -1, 0, 0),
        "I": (1, 0, 0, 0),
        "J": (0, 1, 0, 0),
        "L": (0, -1, 0, 0),
        "U": (1, 1, 0, 0),
        "<": (-1, 0, 0, 0),
        ">": (-1, -1, 0, 0),
        "M": (-1, 1, 0, 0),
        "t": (0, 0, 1, 0),
        "b": (0, 0, -1, 0),
    }
)

SPEED_BINDINGS: Mapping[str, SpeedBinding] = MappingProxyType(
    {
        "q": (1.1, 1.1),
        "z": (0.9, 0.9),
        "w": (1.1, 1.0),
        "x": (0.9, 1.0),
        "e": (1.0, 1.1),
        "c": (1.0, 0.9),
    }
)


class TeleopInputMapper:
    """
    Turns single key presses into a velocity command.

    - movement key: overwrite linear/angular from the binding scaled by the gains
    - speed key: multiply the gains, leave the held command untouched
    - any other key: stop (zero vectors, gains kept)

    The most recent key wins; presses are never combined.
    """

    def __init__(
        self,
        move_bindings: Mapping[str, MoveBinding] = MOVE_BINDINGS,
        speed_bindings: Mapping[str, SpeedBinding] = SPEED_BINDINGS,
        speed: float = 0.5,
        turn: float = 1.0,
    ) -> None:
        for key, binding in move_bindings.items():
            if len(binding) != 4:
                raise ValueError(f"Move binding for {key!r} must have 4 values, got {binding!r}")
        for key, factors in speed_bindings.items():
            if len(factors) != 2 or 0 in factors:
                raise ValueError(f"Speed binding for {key!r} needs two nonzero factors, got {factors!r}")
        self.move_bindings: Mapping[str, MoveBinding] = MappingProxyType(
            {k: tuple(float(v) for v in b) for k, b in move_bindings.items()}
        )
        self.speed_bindings: Mapping[str, SpeedBinding] = MappingProxyType(
            {k: (float(f[0]), float(f[1])) for k, f in speed_bindings.items()}
        )
        self.state = VelocityState(speed=float(speed), turn=float(turn))

    def is_bound(self, key: str) -> bool:
        return key in self.move_bindings or key in self.speed_bindings

    def map_key(self, key: str) -> VelocityState:
        state = self.state
        if key in self.move_bindings:
            x, y, z, th = self.move_bindings[key]
            state.linear = Vector3(x * state.speed, y * state.speed, z * state.speed)
            state.angular = Vector3(0.0, 0.0, th * state.turn)
        elif key in self.speed_bindings:
            speed_mul, turn_mul = self.speed_bindings[key]
            state.speed *= speed_mul
            state.turn *= turn_mul
        else:
            state.stop()
        trace("key %r -> %s speed=%.3f turn=%.3f", key, state.twist(), state.speed, state.turn)
        return state
