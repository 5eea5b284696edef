from __future__ import annotations

import logging
from collections import deque
from typing import Any

from nicegui import ui
from nicegui.events import KeyEventArguments

from gzteleop.common.logging_config import attach_ui_log, detach_ui_log
from gzteleop.config import Config
from gzteleop.constants import ESCAPE_KEY, MODEL_TABLE_REFRESH_S
from gzteleop.services.input_mapper import TeleopInputMapper
from gzteleop.services.ros_client import open_rosbridge_channel
from gzteleop.services.scene_client import open_scene_session
from gzteleop.services.session_manager import ChannelEvent, SessionManager
from gzteleop.state import SceneModel, Vector3

MODEL_COLOR = "#5898d4"
SELECTED_COLOR = "#f2711c"


class NiceGuiSceneView:
    """SceneView on a ui.scene: one sphere per model, camera moves for follow/move-to."""

    HOME_CAMERA = (-6.0, -6.0, 4.0)

    def __init__(self, scene: ui.scene) -> None:
        self.scene = scene
        self._objects: dict[str, Any] = {}
        self._highlighted: str | None = None

    def update_model(self, model: SceneModel) -> None:
        obj = self._objects.get(model.name)
        if obj is None:
            with self.scene:
                color = SELECTED_COLOR if model.name == self._highlighted else MODEL_COLOR
                obj = self.scene.sphere(0.2).material(color).with_name(model.name)
            self._objects[model.name] = obj
        p = model.position
        obj.move(p.x, p.y, p.z)

    def highlight(self, name: str | None) -> None:
        self._highlighted = name
        for obj_name, obj in self._objects.items():
            obj.material(SELECTED_COLOR if obj_name == name else MODEL_COLOR)

    def look_at(self, position: Vector3) -> None:
        hx, hy, hz = self.HOME_CAMERA
        self.scene.move_camera(
            x=position.x + hx / 2,
            y=position.y + hy / 2,
            z=position.z + hz / 2,
            look_at_x=position.x,
            look_at_y=position.y,
            look_at_z=position.z,
            duration=0.2,
        )

    def reset_camera(self) -> None:
        x, y, z = self.HOME_CAMERA
        self.scene.move_camera(x=x, y=y, z=z, look_at_x=0, look_at_y=0, look_at_z=0)

    def resize(self) -> None:
        ui.run_javascript("window.dispatchEvent(new Event('resize'));")

    def snapshot(self) -> None:
        # Render once more so the drawing buffer is still valid for toDataURL
        ui.run_javascript(
            f"""
            const el = getElement({self.scene.id});
            el.renderer.render(el.scene, el.camera);
            const a = document.createElement('a');
            a.href = el.renderer.domElement.toDataURL('image/png');
            a.download = 'scene-' + Date.now() + '.png';
            a.click();
            """
        )


class VisualizationPage:
    """Scene viewer with keyboard teleoperation; one instance per browser client."""

    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        self.view: NiceGuiSceneView | None = None
        self._notices: deque[tuple[str, ChannelEvent, str]] = deque(maxlen=50)
        self._model_names: list[str] = []

        # Widgets
        self.scene_url_input: ui.input | None = None
        self.scene_key_input: ui.input | None = None
        self.ros_url_input: ui.input | None = None
        self.model_select: ui.select | None = None
        self.response_log: ui.log | None = None
        self.fullscreen: ui.fullscreen | None = None

        self.session = SessionManager(
            open_scene=self._open_scene,
            open_messaging=self._open_messaging,
            mapper=TeleopInputMapper(speed=cfg.SPEED, turn=cfg.TURN),
            cmd_vel_topic=cfg.CMD_VEL_TOPIC,
            on_notice=lambda channel, event, detail: self._notices.append((channel, event, detail)),
        )

    # ---- Channel openers ----

    def _open_scene(self, url: str, key: str, on_event):
        return open_scene_session(url, key, on_event, view=self.view)

    def _open_messaging(self, url: str, on_event):
        return open_rosbridge_channel(
            url,
            on_event,
            message_type=self.cfg.CMD_VEL_TYPE,
            connect_timeout=self.cfg.CONNECT_TIMEOUT,
        )

    # ---- Actions ----

    def connect_scene(self) -> None:
        url = (self.scene_url_input.value if self.scene_url_input else "") or self.cfg.SCENE_URL
        key = (self.scene_key_input.value if self.scene_key_input else "") or ""
        if self.session.connect(url, key):
            ui.notify(f"Connecting to {url}", color="primary")

    def disconnect_scene(self) -> None:
        self.session.disconnect()
        ui.notify("Scene disconnected", color="warning")

    def connect_ros(self) -> None:
        url = (self.ros_url_input.value if self.ros_url_input else "") or self.cfg.ROS_URL
        if self.session.connect_messaging(url):
            ui.notify(f"Connecting to rosbridge at {url}", color="primary")

    def disconnect_ros(self) -> None:
        self.session.disconnect_messaging()
        ui.notify("rosbridge disconnected", color="warning")

    def _selected_model(self) -> str | None:
        value = self.model_select.value if self.model_select else None
        if not value:
            ui.notify("Select a model first", color="warning")
        return value or None

    def select_model(self) -> None:
        model = self._selected_model()
        if model:
            self.session.select(model)

    def move_to_model(self) -> None:
        model = self._selected_model()
        if model:
            self.session.move_to(model)

    def follow_model(self) -> None:
        model = self._selected_model()
        if model:
            self.session.follow(model)

    def on_key(self, e: KeyEventArguments) -> None:
        if not e.action.keydown:
            return
        key = e.key.name
        if key == ESCAPE_KEY:
            self.session.unfollow()
        self.session.handle_key(key)

    # ---- Periodic UI sync ----

    def _drain_notices(self) -> None:
        while self._notices:
            channel, event, detail = self._notices.popleft()
            if event is ChannelEvent.OPEN:
                ui.notify(f"{channel.capitalize()} connected", color="positive")
            elif event is ChannelEvent.ERROR:
                ui.notify(f"{channel.capitalize()} connection failed: {detail}", color="negative")
            else:
                ui.notify(f"{channel.capitalize()} connection closed", color="warning")

    def _refresh_models(self) -> None:
        names = [m.name for m in self.session.models]
        if names != self._model_names and self.model_select is not None:
            self._model_names = names
            self.model_select.set_options(names)

    # ---- Teardown ----

    def close(self) -> None:
        if self.response_log is not None:
            detach_ui_log(self.response_log)
        self.session.close()

    # ---- UI ----

    def build(self) -> None:
        status = self.session.status
        with ui.row().classes("w-full items-start gap-4"):
            with ui.card().classes("w-96"):
                ui.label("Simulation").classes("text-md font-medium")
                self.scene_url_input = ui.input("Scene URL", value=self.cfg.SCENE_URL).classes("w-full")
                self.scene_key_input = ui.input(
                    "Authorization key", value=self.cfg.SCENE_KEY, password=True
                ).classes("w-full")
                with ui.row().classes("items-center gap-2"):
                    ui.button("Connect", on_click=self.connect_scene).props("color=primary")
                    ui.button("Disconnect", on_click=self.disconnect_scene).props("color=negative")
                ui.label().bind_text_from(
                    status, "connection_status", backward=lambda v: f"Scene: {v}"
                ).classes("text-sm")

                ui.separator()
                ui.label("Robot").classes("text-md font-medium")
                self.ros_url_input = ui.input("rosbridge URL", value=self.cfg.ROS_URL).classes("w-full")
                with ui.row().classes("items-center gap-2"):
                    ui.button("Connect", on_click=self.connect_ros).props("color=primary")
                    ui.button("Disconnect", on_click=self.disconnect_ros).props("color=negative")
                ui.label().bind_text_from(
                    status, "messaging_status", backward=lambda v: f"rosbridge: {v}"
                ).classes("text-sm")
                with ui.row().classes("items-center gap-4 text-sm"):
                    ui.label().bind_text_from(status, "speed", backward=lambda v: f"speed {v:.2f}")
                    ui.label().bind_text_from(status, "turn", backward=lambda v: f"turn {v:.2f}")
                    ui.label().bind_text_from(
                        status, "dropped_commands", backward=lambda v: f"dropped {v}"
                    )
                ui.label(
                    "Move: u i o / j k l / m , .  (shift strafes)  t/b up/down  "
                    "Speed: q/z both, w/x linear, e/c turn  Any other key stops"
                ).classes("text-xs text-gray-500")

                ui.separator()
                ui.label("Models").classes("text-md font-medium")
                self.model_select = ui.select([], label="Model").classes("w-full")
                with ui.row().classes("items-center gap-2"):
                    ui.button("Select", on_click=self.select_model).props("unelevated")
                    ui.button("Move to", on_click=self.move_to_model).props("unelevated")
                    ui.button("Follow", on_click=self.follow_model).props("unelevated")
                    ui.button("Unfollow", on_click=self.session.unfollow).props("unelevated")
                ui.label().bind_text_from(
                    status,
                    "follow_target",
                    backward=lambda v: f"Following: {v}" if v else "Following: none",
                ).classes("text-sm")

            with ui.card().classes("grow"):
                with ui.row().classes("w-full items-center justify-between"):
                    ui.label("Scene").classes("text-md font-medium")
                    with ui.row().classes("items-center gap-2"):
                        ui.button("Reset view", on_click=self.session.reset_view).props("flat")
                        ui.button("Snapshot", on_click=self.session.snapshot).props("flat")
                        self.fullscreen = ui.fullscreen(
                            on_value_change=lambda _: self.session.resize()
                        )
                        ui.button("Fullscreen", on_click=self.fullscreen.toggle).props("flat")
                scene = ui.scene(grid=(20, 20)).classes("w-full").style("height: 480px")
                self.view = NiceGuiSceneView(scene)
                self.view.reset_camera()

        with ui.card().classes("w-full"):
            ui.label("Log").classes("text-md font-medium")
            self.response_log = (
                ui.log(max_lines=500)
                .classes("w-full whitespace-pre-wrap break-words")
                .style("height: 160px")
            )
        attach_ui_log(self.response_log)

        ui.keyboard(on_key=self.on_key)
        ui.timer(0.2, self._drain_notices)
        ui.timer(MODEL_TABLE_REFRESH_S, self._refresh_models)
        logging.debug("Visualization page built")
