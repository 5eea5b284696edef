from __future__ import annotations

import logging
import threading
from enum import Enum
from functools import partial
from typing import Any, Callable, Protocol

from gzteleop.common.logging_config import trace
from gzteleop.constants import STATUS_CONNECTED, STATUS_DISCONNECTED
from gzteleop.services.input_mapper import TeleopInputMapper
from gzteleop.state import SceneModel, SessionStatus, VelocityState


class ChannelEvent(str, Enum):
    OPEN = "open"
    ERROR = "error"
    CLOSE = "close"


# (event, detail) delivered by a channel handle after its opener returned
EventCallback = Callable[[ChannelEvent, str], None]
# (channel name, event, detail) surfaced to the UI
NoticeCallback = Callable[[str, ChannelEvent, str], None]


class SceneHandle(Protocol):
    models: list[SceneModel]

    def disconnect(self) -> None: ...
    def select(self, model: str) -> None: ...
    def move_to(self, model: str) -> None: ...
    def follow(self, model: str | None) -> None: ...
    def resize(self) -> None: ...
    def reset_view(self) -> None: ...
    def snapshot(self) -> None: ...


class MessagingHandle(Protocol):
    def publish(self, topic: str, payload: dict[str, Any]) -> None: ...
    def close(self) -> None: ...


SceneOpener = Callable[[str, str, EventCallback], SceneHandle]
MessagingOpener = Callable[[str, EventCallback], MessagingHandle]

SCENE = "scene"
MESSAGING = "messaging"


class SessionManager:
    """
    Owns the scene and messaging connections of one operator session.

    - At most one live handle per channel; connecting again tears the old one down first.
    - Each connect gets a generation number; events from older generations are dropped.
    - Status is only ever "connected" or "disconnected".
    - Velocity commands are best effort: dropped (and counted) unless messaging is connected.

    Public methods and channel callbacks are serialized behind one lock. Handles are
    detached under the lock and closed outside of it.
    """

    def __init__(
        self,
        open_scene: SceneOpener,
        open_messaging: MessagingOpener,
        mapper: TeleopInputMapper | None = None,
        cmd_vel_topic: str = "/cmd_vel",
        on_notice: NoticeCallback | None = None,
    ) -> None:
        self._open_scene = open_scene
        self._open_messaging = open_messaging
        self.mapper = mapper or TeleopInputMapper()
        self.cmd_vel_topic = cmd_vel_topic
        self.on_notice = on_notice

        self._lock = threading.RLock()
        self._scene: SceneHandle | None = None
        self._scene_gen = 0
        self._messaging: MessagingHandle | None = None
        self._messaging_gen = 0
        self._closed = False

        self.status = SessionStatus(
            speed=self.mapper.state.speed, turn=self.mapper.state.turn
        )

    # ---- Projections ----

    @property
    def connection_status(self) -> str:
        return self.status.connection_status

    @property
    def messaging_status(self) -> str:
        return self.status.messaging_status

    @property
    def following(self) -> bool:
        return self.status.following

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def models(self) -> list[SceneModel]:
        with self._lock:
            return list(self._scene.models) if self._scene is not None else []

    # ---- Scene channel ----

    def connect(self, url: str, key: str = "") -> bool:
        """Open a fresh scene connection, replacing any existing one."""
        with self._lock:
            if self._closed:
                logging.warning("Scene connect to %s ignored: session closed", url)
                return False
            previous = self._detach_scene()
        self._close_quietly(SCENE, previous)

        late: SceneHandle | None = None
        with self._lock:
            if self._closed:
                return False
            gen = self._scene_gen
            try:
                handle = self._open_scene(url, key, partial(self._on_scene_event, gen))
            except Exception as e:
                logging.error("Scene connect to %s failed: %s", url, e)
                self.status.connection_status = STATUS_DISCONNECTED
                failed = str(e)
            else:
                failed = None
                if gen != self._scene_gen:
                    # Invalidated by an error raised while opening
                    late = handle
                else:
                    self._scene = handle
                    self.status.connection_status = STATUS_CONNECTED
                    logging.info("Scene connected: %s", url)
        if failed is not None:
            self._notify(SCENE, ChannelEvent.ERROR, failed)
            return False
        if late is not None:
            self._close_quietly(SCENE, late)
            return False
        return True

    def disconnect(self) -> None:
        with self._lock:
            handle = self._detach_scene()
        if handle is not None:
            self._close_quietly(SCENE, handle)
            logging.info("Scene disconnected")

    def select(self, model: str) -> bool:
        with self._lock:
            ok = self._forward("select", model)
            if ok:
                self.status.selected = model
            return ok

    def move_to(self, model: str) -> bool:
        return self._forward("move_to", model)

    def follow(self, model: str | None) -> bool:
        """Follow `model` with the camera; an empty or missing model stops following."""
        target = model or None
        with self._lock:
            self.status.follow_target = target
            self.status.following = target is not None
            if target is None:
                logging.debug("Follow cleared")
            else:
                logging.info("Following %s", target)
            return self._forward("follow", target)

    def unfollow(self) -> bool:
        """Escape/cancel shape of follow(None)."""
        return self.follow(None)

    def resize(self) -> bool:
        return self._forward("resize")

    def reset_view(self) -> bool:
        return self._forward("reset_view")

    def snapshot(self) -> bool:
        return self._forward("snapshot")

    # ---- Messaging channel ----

    def connect_messaging(self, url: str) -> bool:
        """Open the rosbridge connection; status flips to connected on its OPEN event."""
        with self._lock:
            if self._closed:
                logging.warning("Messaging connect to %s ignored: session closed", url)
                return False
            previous = self._detach_messaging()
        self._close_quietly(MESSAGING, previous)

        late: MessagingHandle | None = None
        with self._lock:
            if self._closed:
                return False
            gen = self._messaging_gen
            try:
                handle = self._open_messaging(url, partial(self._on_messaging_event, gen))
            except Exception as e:
                logging.error("Messaging connect to %s failed: %s", url, e)
                failed = str(e)
            else:
                failed = None
                if gen != self._messaging_gen:
                    late = handle
                else:
                    self._messaging = handle
                    logging.info("Messaging connecting: %s", url)
        if failed is not None:
            self._notify(MESSAGING, ChannelEvent.ERROR, failed)
            return False
        if late is not None:
            self._close_quietly(MESSAGING, late)
            return False
        return True

    def disconnect_messaging(self) -> None:
        with self._lock:
            handle = self._detach_messaging()
        if handle is not None:
            self._close_quietly(MESSAGING, handle)
            logging.info("Messaging disconnected")

    def publish_velocity(self, state: VelocityState) -> bool:
        """Publish the command if messaging is live; otherwise drop it."""
        with self._lock:
            handle = self._messaging
            if handle is None or self.status.messaging_status != STATUS_CONNECTED:
                self.status.dropped_commands += 1
                trace("Velocity command dropped: messaging not connected")
                return False
            try:
                handle.publish(self.cmd_vel_topic, state.twist())
            except Exception as e:
                self.status.dropped_commands += 1
                logging.warning("Velocity publish on %s failed: %s", self.cmd_vel_topic, e)
                return False
            return True

    def handle_key(self, key: str) -> bool:
        with self._lock:
            state = self.mapper.map_key(key)
            self.status.speed = state.speed
            self.status.turn = state.turn
            return self.publish_velocity(state)

    # ---- Teardown ----

    def close(self) -> None:
        """Tear down both channels. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            scene = self._detach_scene()
            messaging = self._detach_messaging()
        self._close_quietly(SCENE, scene)
        self._close_quietly(MESSAGING, messaging)
        logging.info("Session closed")

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ---- Internals ----

    def _forward(self, op: str, *args: Any) -> bool:
        with self._lock:
            handle = self._scene
            if handle is None:
                logging.debug("Scene %s ignored: no scene connection", op)
                return False
            try:
                getattr(handle, op)(*args)
            except Exception as e:
                logging.error("Scene %s failed: %s", op, e)
                return False
            return True

    def _detach_scene(self) -> SceneHandle | None:
        handle, self._scene = self._scene, None
        self._scene_gen += 1
        self.status.connection_status = STATUS_DISCONNECTED
        return handle

    def _detach_messaging(self) -> MessagingHandle | None:
        handle, self._messaging = self._messaging, None
        self._messaging_gen += 1
        self.status.messaging_status = STATUS_DISCONNECTED
        return handle

    def _close_quietly(self, channel: str, handle: Any) -> None:
        if handle is None:
            return
        try:
            if channel == SCENE:
                handle.disconnect()
            else:
                handle.close()
        except Exception as e:
            logging.warning("Closing %s channel failed: %s", channel, e)

    def _on_scene_event(self, gen: int, event: ChannelEvent, detail: str = "") -> None:
        with self._lock:
            if gen != self._scene_gen:
                logging.debug("Stale scene %s event discarded", event.value)
                return
            if event is ChannelEvent.OPEN:
                logging.info("Scene handshake complete")
                return
            handle = self._detach_scene()
        self._close_quietly(SCENE, handle)
        self._report(SCENE, event, detail)

    def _on_messaging_event(self, gen: int, event: ChannelEvent, detail: str = "") -> None:
        with self._lock:
            if gen != self._messaging_gen:
                logging.debug("Stale messaging %s event discarded", event.value)
                return
            if event is ChannelEvent.OPEN:
                self.status.messaging_status = STATUS_CONNECTED
                logging.info("Messaging connected")
                handle = None
            else:
                handle = self._detach_messaging()
        if event is ChannelEvent.OPEN:
            self._notify(MESSAGING, event, detail)
            return
        self._close_quietly(MESSAGING, handle)
        self._report(MESSAGING, event, detail)

    def _report(self, channel: str, event: ChannelEvent, detail: str) -> None:
        if event is ChannelEvent.ERROR:
            logging.error("%s channel error: %s", channel.capitalize(), detail)
        else:
            logging.warning("%s channel closed%s", channel.capitalize(), f": {detail}" if detail else "")
        self._notify(channel, event, detail)

    def _notify(self, channel: str, event: ChannelEvent, detail: str) -> None:
        if self.on_notice is None:
            return
        try:
            self.on_notice(channel, event, detail)
        except Exception as e:
            logging.debug("Notice callback failed: %s", e)
