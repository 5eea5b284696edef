from dataclasses import dataclass, field

from gzteleop.constants import STATUS_DISCONNECTED


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass
class VelocityState:
    """Current velocity command plus the gains applied to movement keys."""

    linear: Vector3 = field(default_factory=Vector3)
    angular: Vector3 = field(default_factory=Vector3)
    speed: float = 0.5  # linear gain
    turn: float = 1.0  # yaw gain

    def stop(self) -> None:
        self.linear = Vector3()
        self.angular = Vector3()

    def twist(self) -> dict[str, dict[str, float]]:
        """Payload in the geometry_msgs/Twist field shape."""
        return {"linear": self.linear.as_dict(), "angular": self.angular.as_dict()}


@dataclass
class SceneModel:
    name: str
    id: int = 0
    position: Vector3 = field(default_factory=Vector3)


# Read-only projection of a session for UI bindings
@dataclass
class SessionStatus:
    connection_status: str = STATUS_DISCONNECTED  # scene channel
    messaging_status: str = STATUS_DISCONNECTED  # rosbridge channel
    following: bool = False
    follow_target: str | None = None
    selected: str | None = None
    speed: float = 0.5
    turn: float = 1.0
    dropped_commands: int = 0
