#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..lib.constants import COMMANDS_QOS, CONFIG_QOS
from .broker import BrokerFactory
from .errors import BrokerPublishError, DeviceConnectionError, DeviceTransportError
from .http import HttpDeviceTransport
from .models import ConnectivityStatus, DeviceConfig, DeviceConnection, RelayMessage, Transport
from .pool import ConnectionPool
from .topics import commands_topic, config_topic

logger = logging.getLogger(__name__)

# Outbound message accepted by a transport and passed on downstream
SendHandler = Callable[[RelayMessage], None]
# Message received from the broker for a device
InboundHandler = Callable[[RelayMessage], None]
# Connectivity of one device changed or was re-evaluated
StatusHandler = Callable[[str, ConnectivityStatus], None]
# Transport failure, with the message that triggered it
ErrorHandler = Callable[[str, Optional[RelayMessage]], None]


class DeviceRelay:
    """
    Routes messages between the flow and device transports

    Responsibilities:
      1) Outbound (flow -> device):
         - MQTT: publish on the device's pooled broker connection, only if it
           is connected; otherwise drop silently and report DISCONNECTED
         - HTTP: one publishEvent call, message forwarded whatever the outcome

      2) Inbound (broker -> flow):
         - every "message" event of a pooled connection is forwarded as is

      3) Connection lifecycle:
         - establish_connection() creates, subscribes and pools a session
         - connection events flip DeviceConnection.connected
         - teardown() disconnects and forgets a session

    Notes:
      - Relay does NOT reconnect; the broker client does
      - Relay does NOT know paho or httpx; broker/http modules do
      - All methods and listeners run on one asyncio loop, so no locks
    """

    def __init__(
        self,
        *,
        broker_factory: BrokerFactory,
        http_transport: Optional[HttpDeviceTransport] = None,
    ) -> None:
        self._broker_factory = broker_factory
        self._http = http_transport
        self._pool = ConnectionPool()

        # Injected handlers
        self._send_handler: Optional[SendHandler] = None
        self._inbound_handler: Optional[InboundHandler] = None
        self._status_handler: Optional[StatusHandler] = None
        self._error_handler: Optional[ErrorHandler] = None

    # --- Setup Methods ---

    def register_send_handler(self, handler: SendHandler) -> None:
        self._send_handler = handler

    def register_inbound_handler(self, handler: InboundHandler) -> None:
        self._inbound_handler = handler

    def register_status_handler(self, handler: StatusHandler) -> None:
        self._status_handler = handler

    def register_error_handler(self, handler: ErrorHandler) -> None:
        self._error_handler = handler

    # --- Queries ---

    def has_connection(self, device_id: str) -> bool:
        return device_id in self._pool

    def status_of(self, device_id: str) -> ConnectivityStatus:
        conn = self._pool.get(device_id)
        if conn is None:
            return ConnectivityStatus.DISCONNECTED
        return conn.status

    # --- Outbound ---

    async def handle_outbound(self, msg: RelayMessage) -> None:
        if msg.transport is Transport.MQTT:
            self._outbound_mqtt(msg)
        elif msg.transport is Transport.HTTP:
            await self._outbound_http(msg)
        else:  # pragma: no cover
            raise ValueError(f"Unknown transport: {msg.transport!r}")

    def _outbound_mqtt(self, msg: RelayMessage) -> None:
        conn = self._pool.get(msg.device_id)
        if conn is None or not conn.connected:
            # Offline device: status only, nothing forwarded
            logger.debug("Device %s not connected, message dropped", msg.device_id)
            self._set_status(msg.device_id, ConnectivityStatus.DISCONNECTED)
            return

        self._set_status(msg.device_id, ConnectivityStatus.CONNECTED)
        try:
            conn.client.publish(msg.topic, msg.payload)
        except BrokerPublishError as e:
            self._report_error(str(e), msg)
            return
        msg.send_status = True
        self._forward(msg)

    async def _outbound_http(self, msg: RelayMessage) -> None:
        if self._http is None:
            self._report_error("HTTP transport is not configured", msg)
            return
        try:
            await self._http.publish_event(msg.device_id, msg.payload)
        except DeviceTransportError as e:
            logger.warning("HTTP telemetry for %s failed: %s", msg.device_id, e)
        # Forwarded regardless of outcome; send_status stays False on this path
        self._forward(msg)

    # --- Connection lifecycle ---

    async def establish_connection(self, device_id: str, config: DeviceConfig) -> DeviceConnection:
        """
        Create the broker session of a device and add it to the pool

        Raises DeviceConnectionError if the attempt fails synchronously; the
        device then stays DISCONNECTED and nothing retries.
        """
        existing = self._pool.get(device_id)
        if existing is not None:
            logger.debug("Device %s already has a connection", device_id)
            return existing

        self._set_status(device_id, ConnectivityStatus.DISCONNECTED)
        try:
            client = self._broker_factory(config)
        except Exception as e:
            logger.error("Connection error for %s: %r", device_id, e)
            raise DeviceConnectionError(device_id, e) from e

        conn = DeviceConnection(device_id=device_id, client=client)
        client.on("connect", lambda: self._on_connect(conn))
        client.on("disconnect", lambda reason=None: self._on_connection_lost(conn, "disconnect"))
        client.on("close", lambda: self._on_connection_lost(conn, "close"))
        client.on("error", lambda exc=None: self._on_connection_lost(conn, f"error {exc!r}"))
        client.on("message", lambda topic, payload: self._on_message(conn, topic, payload))

        # Pooled before connecting so events raised during connect() are not lost
        self._pool.add(conn)
        try:
            client.connect()
            for topic, qos in ((config_topic(device_id), CONFIG_QOS), (commands_topic(device_id), COMMANDS_QOS)):
                client.subscribe(topic, qos)
                conn.subscribed_topics.add(topic)
        except Exception as e:
            self._pool.remove(device_id)
            client.remove_all_listeners()
            logger.error("Connection error for %s: %r", device_id, e)
            raise DeviceConnectionError(device_id, e) from e

        logger.info("Device %s session created, subscribed to %s", device_id, sorted(conn.subscribed_topics))
        return conn

    def teardown(self, device_id: str) -> None:
        conn = self._pool.remove(device_id)
        if conn is None:
            return
        logger.info("Tearing down connection of %s", device_id)
        try:
            conn.client.disconnect()
        except Exception:
            logger.exception("Disconnect of %s failed", device_id)

    def teardown_all(self) -> None:
        for device_id in self._pool:
            self.teardown(device_id)

    # --- Broker listeners ---

    def _is_live(self, conn: DeviceConnection) -> bool:
        return self._pool.get(conn.device_id) is conn

    def _on_connect(self, conn: DeviceConnection) -> None:
        if not self._is_live(conn):
            return
        conn.connected = True
        self._set_status(conn.device_id, ConnectivityStatus.CONNECTED)

    def _on_connection_lost(self, conn: DeviceConnection, why: str) -> None:
        if not self._is_live(conn):
            return
        logger.info("Device %s connection lost (%s)", conn.device_id, why)
        conn.connected = False
        self._set_status(conn.device_id, ConnectivityStatus.DISCONNECTED)

    def _on_message(self, conn: DeviceConnection, topic: str, payload: bytes) -> None:
        if not self._is_live(conn):
            logger.debug("Ignoring message for torn down device %s", conn.device_id)
            return
        self._set_status(conn.device_id, conn.status)
        if self._inbound_handler is None:
            return
        self._inbound_handler(
            RelayMessage(
                payload=payload,
                topic=topic,
                device_id=conn.device_id,
                transport=Transport.MQTT,
            )
        )

    # --- Internal Helpers ---

    def _set_status(self, device_id: str, status: ConnectivityStatus) -> None:
        if self._status_handler:
            self._status_handler(device_id, status)

    def _forward(self, msg: RelayMessage) -> None:
        if self._send_handler:
            self._send_handler(msg)

    def _report_error(self, text: str, msg: Optional[RelayMessage]) -> None:
        logger.error("Relay error for %s: %s", msg.device_id if msg else "-", text)
        if self._error_handler:
            self._error_handler(text, msg)
