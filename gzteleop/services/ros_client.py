from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any

import roslibpy

from gzteleop.services.session_manager import ChannelEvent, EventCallback


class RosbridgeChannel:
    """
    Publishing side of a rosbridge websocket.

    `open()` returns immediately; the handshake runs on a worker thread and is
    reported through `on_event` (OPEN on ready, ERROR on timeout/failure, CLOSE when
    the socket goes away). roslibpy's client factory reconnects on its own, so
    every exit from the channel stops it, and a handshake that completes after
    `close()` is torn down again.
    """

    def __init__(
        self,
        url: str,
        on_event: EventCallback,
        message_type: str = "geometry_msgs/msg/Twist",
        connect_timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.on_event = on_event
        self.message_type = message_type
        self.connect_timeout = connect_timeout
        self._topics: dict[str, roslibpy.Topic] = {}
        self._lock = threading.Lock()
        self._closed = False
        # port=None: roslibpy takes the host argument as the full websocket URL
        self.ros = roslibpy.Ros(host=url, port=None)

    def open(self) -> "RosbridgeChannel":
        self.ros.on("close", self._on_close)
        threading.Thread(
            target=self._run, name=f"rosbridge-{self.url}", daemon=True
        ).start()
        return self

    def _run(self) -> None:
        try:
            self.ros.run(timeout=self.connect_timeout)
        except Exception as e:
            if self._closed:
                return
            self.close()
            self._emit(ChannelEvent.ERROR, f"rosbridge connect to {self.url} failed: {e}")
            return
        if self._closed:
            # closed while the handshake was pending
            self._release()
            return
        self._emit(ChannelEvent.OPEN, self.url)

    def _on_close(self, *_args: Any) -> None:
        self._stop_reconnecting()
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._topics.clear()
        self._emit(ChannelEvent.CLOSE, "rosbridge connection closed")

    def _emit(self, event: ChannelEvent, detail: str) -> None:
        try:
            self.on_event(event, detail)
        except Exception as e:
            logging.error("rosbridge %s handler failed: %s", event.value, e)

    # ---- MessagingHandle ----

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            if self._closed:
                raise ConnectionError("rosbridge channel is closed")
            publisher = self._topics.get(topic)
            if publisher is None:
                publisher = roslibpy.Topic(self.ros, topic, self.message_type)
                publisher.advertise()
                self._topics[topic] = publisher
        publisher.publish(roslibpy.Message(payload))

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            topics = list(self._topics.values())
            self._topics.clear()
        for publisher in topics:
            with contextlib.suppress(Exception):
                publisher.unadvertise()
        self._release()

    def _stop_reconnecting(self) -> None:
        try:
            self.ros.factory.stopTrying()
        except Exception as e:
            logging.debug("rosbridge stopTrying: %s", e)

    def _release(self) -> None:
        self._stop_reconnecting()
        # Ros.close() only acts on a connected socket
        if not self.ros.is_connected:
            return
        try:
            self.ros.close()
        except Exception as e:
            logging.debug("rosbridge close: %s", e)


def open_rosbridge_channel(
    url: str,
    on_event: EventCallback,
    message_type: str = "geometry_msgs/msg/Twist",
    connect_timeout: float = 5.0,
) -> RosbridgeChannel:
    return RosbridgeChannel(
        url, on_event, message_type=message_type, connect_timeout=connect_timeout
    ).open()
