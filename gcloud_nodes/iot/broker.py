#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import paho.mqtt.client as paho_mqtt

from ..lib.constants import COMMANDS_QOS, EVENTS_QOS, MQTT_USERNAME
from .auth import TokenFactory
from .errors import BrokerPublishError
from .models import DeviceConfig
from .topics import device_topic

logger = logging.getLogger(__name__)

BrokerListener = Callable[..., None]


class BrokerClient(ABC):
    """
    Base interface for a per-device broker session

    Events (listener arguments):
      - "connect"    ()
      - "disconnect" (reason: str)
      - "close"      ()                   session ended by disconnect()
      - "error"      (exc: BaseException)
      - "message"    (topic: str, payload: bytes)

    Listeners are always invoked on the asyncio loop that called connect()
    """

    EVENTS = ("connect", "disconnect", "close", "error", "message")

    def __init__(self) -> None:
        self._listeners: Dict[str, List[BrokerListener]] = {}

    def on(self, event: str, listener: BrokerListener) -> None:
        if event not in self.EVENTS:
            raise ValueError(f"Unknown broker event: {event!r}")
        self._listeners.setdefault(event, []).append(listener)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception:
                logger.exception("Broker listener for %r failed", event)

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def connect(self) -> None:
        """Start connecting; completion is signalled by the "connect" event"""
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, topic: str, qos: int = COMMANDS_QOS) -> None:
        raise NotImplementedError

    @abstractmethod
    def publish(self, topic: Optional[str], payload: bytes) -> None:
        """Hand payload to the broker; raises BrokerPublishError when refused"""
        raise NotImplementedError

    @abstractmethod
    def disconnect(self) -> None:
        raise NotImplementedError


BrokerFactory = Callable[[DeviceConfig], BrokerClient]


class PahoBrokerClient(BrokerClient):
    """
    Cloud IoT MQTT bridge session using paho-mqtt

    Notes:
      - In tests we inject a mocked paho client via `client=...`
      - paho runs its network loop in a background thread; every callback is
        re-posted onto the asyncio loop so listeners never run concurrently
      - Reconnects are paho's own; a fresh JWT is set before each one
    """

    def __init__(
        self,
        cfg: DeviceConfig,
        token_factory: TokenFactory,
        *,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__()
        self._cfg = cfg
        self._token_factory = token_factory
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subs: Dict[str, int] = {}
        self._closing = False

        if client is None:
            client = paho_mqtt.Client(
                paho_mqtt.CallbackAPIVersion.VERSION2,
                client_id=cfg.client_id,
                protocol=paho_mqtt.MQTTv311,
            )
        self._client = client

        # Callbacks
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message
        self._client.on_disconnect = self._on_disconnect

    @property
    def connected(self) -> bool:
        return bool(self._client.is_connected())

    def connect(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._closing = False
        logger.info(
            "Connecting %s to %s:%s",
            self._cfg.client_id,
            self._cfg.mqtt_host,
            self._cfg.mqtt_port,
        )
        self._client.username_pw_set(MQTT_USERNAME, self._token_factory())
        if self._cfg.ca_certs or self._cfg.mqtt_port == 8883:
            self._client.tls_set(ca_certs=self._cfg.ca_certs)
        self._client.connect_async(self._cfg.mqtt_host, self._cfg.mqtt_port, keepalive=self._cfg.keepalive)

        # Start network loop in background thread
        self._client.loop_start()

    def subscribe(self, topic: str, qos: int = COMMANDS_QOS) -> None:
        # Remembered for resubscription in _on_connect; sent now only when a session exists
        self._subs[topic] = qos
        if self._client.is_connected():
            self._client.subscribe(topic, qos=qos)

    def publish(self, topic: Optional[str], payload: bytes) -> None:
        full_topic = device_topic(self._cfg.device_id, topic)
        logger.debug("MQTT publish: topic=%s bytes=%d", full_topic, len(payload))
        try:
            info = self._client.publish(full_topic, payload=payload, qos=EVENTS_QOS)
        except ValueError as e:
            raise BrokerPublishError(f"Invalid publish to {full_topic}: {e}") from e
        if info.rc != paho_mqtt.MQTT_ERR_SUCCESS:
            raise BrokerPublishError(f"Publish to {full_topic} failed: {paho_mqtt.error_string(info.rc)}")

    def disconnect(self) -> None:
        logger.info("Disconnecting %s", self._cfg.client_id)
        self._closing = True
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()

    # ---- paho callbacks (network thread) ----

    def _post(self, event: str, *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Dropping %r event, no running loop", event)
            return
        loop.call_soon_threadsafe(self._emit, event, *args)

    def _on_connect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        if getattr(reason_code, "is_failure", False):
            logger.warning("MQTT connection refused: %s", reason_code)
            self._post("error", ConnectionRefusedError(str(reason_code)))
            return
        logger.info("MQTT connected: %s", self._cfg.client_id)
        for topic, qos in self._subs.items():
            try:
                client.subscribe(topic, qos=qos)
            except Exception:
                logger.exception("MQTT subscribe failed: %s", topic)
        self._post("connect")

    def _on_disconnect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        if self._closing:
            logger.info("MQTT session closed: %s", self._cfg.client_id)
            self._post("close")
            return
        logger.warning("MQTT disconnected: %s rc=%s", self._cfg.client_id, reason_code)
        try:
            # The bridge rejects expired tokens on reconnect
            client.username_pw_set(MQTT_USERNAME, self._token_factory())
        except Exception as e:
            logger.error("JWT refresh failed: %r", e)
            self._post("error", e)
        self._post("disconnect", str(reason_code))

    def _on_message(self, client: Any, userdata: Any, msg: Any) -> None:
        self._post("message", str(msg.topic), bytes(msg.payload))
