from __future__ import annotations

import logging

import pytest

from gzteleop.common.logging_config import TRACE
from gzteleop.config import Config


@pytest.mark.unit
def test_defaults_match_local_simulation():
    cfg = Config.from_env()
    assert cfg.SCENE_URL == "ws://localhost:9002"
    assert cfg.ROS_URL == "ws://localhost:9090"
    assert cfg.CMD_VEL_TOPIC == "/cmd_vel"
    assert cfg.CMD_VEL_TYPE == "geometry_msgs/msg/Twist"
    assert (cfg.SPEED, cfg.TURN) == (0.5, 1.0)


@pytest.mark.unit
def test_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("GZTELEOP_SCENE_URL", "ws://sim.lan:9002")
    monkeypatch.setenv("GZTELEOP_SCENE_KEY", "abc")
    monkeypatch.setenv("GZTELEOP_ROS_URL", "wss://robot.lan/bridge")
    monkeypatch.setenv("GZTELEOP_CMD_VEL_TOPIC", "/robot/cmd_vel")
    monkeypatch.setenv("GZTELEOP_SPEED", "0.2")
    monkeypatch.setenv("GZTELEOP_TURN", " ")

    cfg = Config.from_env()

    assert cfg.SCENE_URL == "ws://sim.lan:9002"
    assert cfg.SCENE_KEY == "abc"
    assert cfg.ROS_URL == "wss://robot.lan/bridge"
    assert cfg.CMD_VEL_TOPIC == "/robot/cmd_vel"
    assert cfg.SPEED == 0.2
    assert cfg.TURN == 1.0, "blank values fall back to the default"


@pytest.mark.unit
@pytest.mark.parametrize(
    "argv,expected",
    [
        (["--log-level", "DEBUG"], logging.DEBUG),
        (["--log-level", "TRACE", "-q"], TRACE),
        (["-v"], logging.INFO),
        (["-vv"], logging.DEBUG),
        (["-vvv"], TRACE),
        (["-q"], logging.WARNING),
    ],
)
def test_cli_log_level_priority(argv: list[str], expected: int):
    from gzteleop import main

    assert main.resolve_log_level(main.parse_args(argv)) == expected


@pytest.mark.unit
def test_cli_connection_overrides():
    from gzteleop import main

    args = main.parse_args(["--scene-url", "ws://other:9002", "--ros-url", "ws://other:9090", "--port", "9000"])
    assert args.scene_url == "ws://other:9002"
    assert args.ros_url == "ws://other:9090"
    assert args.port == 9000


@pytest.mark.unit
def test_trace_helper_logs_only_when_enabled(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture):
    from gzteleop.common import logging_config

    caplog.set_level(TRACE)
    monkeypatch.setattr(logging_config, "TRACE_ENABLED", False)
    logging_config.trace("key %s", "i")
    assert caplog.records == []

    monkeypatch.setattr(logging_config, "TRACE_ENABLED", True)
    logging_config.trace("key %s", "i")
    assert [(r.levelname, r.getMessage()) for r in caplog.records] == [("TRACE", "key i")]
