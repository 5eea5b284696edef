from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from gzteleop.services.input_mapper import TeleopInputMapper
from gzteleop.services.session_manager import SessionManager
from tests.utils.fakes import ChannelFactory

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep GZTELEOP_* settings from the developer shell out of the tests."""
    for name in (
        "GZTELEOP_SCENE_URL",
        "GZTELEOP_SCENE_KEY",
        "GZTELEOP_ROS_URL",
        "GZTELEOP_CMD_VEL_TOPIC",
        "GZTELEOP_CMD_VEL_TYPE",
        "GZTELEOP_SPEED",
        "GZTELEOP_TURN",
        "GZTELEOP_CONNECT_TIMEOUT",
        "GZTELEOP_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def channels() -> ChannelFactory:
    return ChannelFactory()


@pytest.fixture
def session(channels: ChannelFactory) -> Iterator[SessionManager]:
    """Session wired to fake channels; closed at the end of the test."""
    with SessionManager(
        open_scene=channels.open_scene,
        open_messaging=channels.open_messaging,
        mapper=TeleopInputMapper(speed=0.5, turn=1.0),
        cmd_vel_topic="/cmd_vel",
        on_notice=channels.notice,
    ) as mgr:
        yield mgr
