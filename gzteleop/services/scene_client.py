from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import WebSocketException

from gzteleop.services.session_manager import ChannelEvent, EventCallback
from gzteleop.state import SceneModel, Vector3

AUTHORIZED = "authorized"
INVALID = "invalid"

MSG_WORLDS = "gz.msgs.StringMsg_V"
MSG_SCENE = "gz.msgs.Scene"
MSG_POSES = "gz.msgs.Pose_V"


class SceneView(Protocol):
    """Renderer side of the scene channel (camera and model drawing)."""

    def update_model(self, model: SceneModel) -> None: ...
    def highlight(self, name: str | None) -> None: ...
    def look_at(self, position: Vector3) -> None: ...
    def reset_camera(self) -> None: ...
    def resize(self) -> None: ...
    def snapshot(self) -> None: ...


@dataclass(frozen=True)
class SceneFrame:
    op: str
    topic: str
    msg_type: str
    payload: str


def build_frame(op: str, topic: str = "", msg_type: str = "", payload: str = "") -> str:
    return f"{op},{topic},{msg_type},{payload}"


def parse_frame(raw: str | bytes) -> SceneFrame | None:
    """Split `op,topic,type,payload`; the payload may itself contain commas."""
    text = raw.decode("utf-8", errors="ignore") if isinstance(raw, bytes) else raw
    parts = text.split(",", 3)
    if len(parts) != 4:
        return None
    return SceneFrame(*parts)


def _vector(data: dict | None) -> Vector3:
    data = data or {}
    return Vector3(
        float(data.get("x", 0.0)), float(data.get("y", 0.0)), float(data.get("z", 0.0))
    )


def _entries(body: dict, field: str) -> list:
    entries = body.get(field) or []
    if not isinstance(entries, list):
        logging.debug("Ignoring %s field that is not a list: %r", field, entries)
        return []
    return entries


class GzSceneClient:
    """
    Websocket session to a gz scene server.

    Handshake: optional `auth,,,<key>` answered by `authorized`/`invalid`, then
    `worlds,,,`; the first world gets a `scene` request and a dynamic pose subscription.
    Message bodies are the JSON form of the gz-msgs types.

    Camera commands are local: they are applied to the attached SceneView, if any.
    """

    def __init__(
        self,
        url: str,
        key: str,
        on_event: EventCallback,
        view: SceneView | None = None,
        open_timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.key = key
        self.on_event = on_event
        self.view = view
        self.open_timeout = open_timeout
        self.world: str | None = None
        self.models: list[SceneModel] = []
        self.selected: str | None = None
        self.follow_target: str | None = None
        self._by_name: dict[str, SceneModel] = {}
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._stopped = False

    def start(self) -> "GzSceneClient":
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    # ---- SceneHandle ----

    def disconnect(self) -> None:
        self._stopped = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._task = None

    def select(self, model: str) -> None:
        self.selected = model
        if self.view:
            self.view.highlight(model)

    def move_to(self, model: str) -> None:
        target = self._by_name.get(model)
        if target is None:
            logging.debug("move_to: unknown model %s", model)
            return
        if self.view:
            self.view.look_at(target.position)

    def follow(self, model: str | None) -> None:
        self.follow_target = model or None
        if self.follow_target:
            self.move_to(self.follow_target)

    def resize(self) -> None:
        if self.view:
            self.view.resize()

    def reset_view(self) -> None:
        if self.view:
            self.view.reset_camera()

    def snapshot(self) -> None:
        if self.view:
            self.view.snapshot()

    # ---- Connection ----

    async def _run(self) -> None:
        try:
            async with ws_connect(self.url, open_timeout=self.open_timeout) as ws:
                self._ws = ws
                if self.key:
                    await ws.send(build_frame("auth", payload=self.key))
                    reply = await asyncio.wait_for(ws.recv(), timeout=self.open_timeout)
                    if isinstance(reply, bytes):
                        reply = reply.decode("utf-8", errors="ignore")
                    if reply.strip() != AUTHORIZED:
                        self._emit(ChannelEvent.ERROR, f"authorization rejected ({reply.strip()})")
                        return
                self._emit(ChannelEvent.OPEN, self.url)
                await ws.send(build_frame("worlds"))
                async for raw in ws:
                    await self.handle_frame(raw)
        except asyncio.CancelledError:
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._emit(ChannelEvent.ERROR, str(e) or type(e).__name__)
        except Exception as e:
            logging.error("Scene session to %s failed: %s", self.url, e, exc_info=True)
            self._emit(ChannelEvent.ERROR, f"scene session failed: {e}")
        else:
            self._emit(ChannelEvent.CLOSE, "server closed the connection")
        finally:
            self._ws = None

    async def handle_frame(self, raw: str | bytes) -> None:
        frame = parse_frame(raw)
        if frame is None or frame.op != "pub":
            logging.debug("Ignoring scene frame: %r", raw[:64])
            return
        try:
            body = json.loads(frame.payload) if frame.payload else {}
        except json.JSONDecodeError as e:
            logging.debug("Undecodable %s payload: %s", frame.msg_type, e)
            return
        if not isinstance(body, dict):
            logging.debug("Ignoring %s payload that is not an object", frame.msg_type)
            return

        if frame.msg_type == MSG_WORLDS:
            worlds = _entries(body, "data")
            if worlds and self.world is None:
                self.world = str(worlds[0])
                logging.info("Scene world: %s", self.world)
                if self._ws is not None:
                    await self._ws.send(build_frame("scene", self.world))
                    await self._ws.send(
                        build_frame("sub", f"/world/{self.world}/dynamic_pose/info")
                    )
        elif frame.msg_type == MSG_SCENE:
            self.apply_scene(body)
        elif frame.msg_type == MSG_POSES:
            self.apply_poses(body)

    def apply_scene(self, body: dict) -> None:
        """Replace the model list from a gz.msgs.Scene body."""
        self._by_name = {}
        for entry in _entries(body, "model"):
            try:
                name = entry.get("name")
                if not name:
                    continue
                pose = entry.get("pose") or {}
                model = SceneModel(
                    name=str(name), id=int(entry.get("id", 0)), position=_vector(pose.get("position"))
                )
            except (AttributeError, TypeError, ValueError) as e:
                logging.debug("Skipping scene model %r: %s", entry, e)
                continue
            self._by_name[model.name] = model
            if self.view:
                self.view.update_model(model)
        self.models = list(self._by_name.values())
        logging.info("Scene loaded with %d models", len(self.models))

    def apply_poses(self, body: dict) -> None:
        """Move known models from a gz.msgs.Pose_V body; re-aim the camera when following."""
        for entry in _entries(body, "pose"):
            try:
                model = self._by_name.get(entry.get("name", ""))
                if model is None:
                    continue
                model.position = _vector(entry.get("position"))
            except (AttributeError, TypeError, ValueError) as e:
                logging.debug("Skipping pose %r: %s", entry, e)
                continue
            if self.view:
                self.view.update_model(model)
                if model.name == self.follow_target:
                    self.view.look_at(model.position)

    def _emit(self, event: ChannelEvent, detail: str = "") -> None:
        if self._stopped:
            return
        self.on_event(event, detail)


def open_scene_session(
    url: str, key: str, on_event: EventCallback, view: SceneView | None = None
) -> GzSceneClient:
    """SceneOpener for GzSceneClient; must be called from the event loop thread."""
    return GzSceneClient(url, key, on_event, view=view).start()
