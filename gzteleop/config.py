from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


@dataclass
class Config:
    """Runtime defaults for the scene and rosbridge connections."""
    SCENE_URL: str = "ws://localhost:9002"
    SCENE_KEY: str = ""
    ROS_URL: str = "ws://localhost:9090"
    CMD_VEL_TOPIC: str = "/cmd_vel"
    CMD_VEL_TYPE: str = "geometry_msgs/msg/Twist"  # ROS 2 style type name
    SPEED: float = 0.5
    TURN: float = 1.0
    CONNECT_TIMEOUT: float = 5.0  # seconds

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            SCENE_URL=os.getenv("GZTELEOP_SCENE_URL", cls.SCENE_URL),
            SCENE_KEY=os.getenv("GZTELEOP_SCENE_KEY", cls.SCENE_KEY),
            ROS_URL=os.getenv("GZTELEOP_ROS_URL", cls.ROS_URL),
            CMD_VEL_TOPIC=os.getenv("GZTELEOP_CMD_VEL_TOPIC", cls.CMD_VEL_TOPIC),
            CMD_VEL_TYPE=os.getenv("GZTELEOP_CMD_VEL_TYPE", cls.CMD_VEL_TYPE),
            SPEED=_env_float("GZTELEOP_SPEED", cls.SPEED),
            TURN=_env_float("GZTELEOP_TURN", cls.TURN),
            CONNECT_TIMEOUT=_env_float("GZTELEOP_CONNECT_TIMEOUT", cls.CONNECT_TIMEOUT),
        )


# Export a default instance for convenience
config = Config.from_env()
