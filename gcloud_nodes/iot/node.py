#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Message hub node

Options (node config):
  transport     "MQTT" | "HTTP"
  projectId, region, registryId, deviceId
  privateKeyFile, algorithm        device key used to sign JWTs

Input:
  msg.payload   telemetry to send (required)
  msg.topic     MQTT topic suffix, "events" when absent

Output:
  the input msg with msg.send_status, once the transport accepted it
  {"topic", "payload"} for every message the device receives from the cloud
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..flow.base import FlowNode, NodeHost
from ..flow.models import (
    STATUS_CONFIG_ERROR,
    STATUS_CONNECTED,
    STATUS_DISCONNECTED,
    FlowMessage,
)
from ..lib.constants import NODE_TYPE_MESSAGE_HUB
from ..lib.errors import ConfigError
from ..lib.util import ensure_bytes, payload_missing
from .auth import TokenFactory, make_token_factory
from .broker import BrokerFactory, PahoBrokerClient
from .errors import DeviceConnectionError
from .http import HttpDeviceTransport
from .models import ConnectivityStatus, DeviceConfig, RelayMessage, Transport
from .relay import DeviceRelay

logger = logging.getLogger(__name__)


class MessageHubNode(FlowNode):
    node_type = NODE_TYPE_MESSAGE_HUB

    def __init__(
        self,
        config: Dict[str, Any],
        host: NodeHost,
        *,
        broker_factory: Optional[BrokerFactory] = None,
        http_transport: Optional[HttpDeviceTransport] = None,
        token_factory: Optional[TokenFactory] = None,
    ) -> None:
        super().__init__(config, host)
        self.device: Optional[DeviceConfig] = None
        self.relay: Optional[DeviceRelay] = None
        self._config_error: Optional[str] = None
        self._http: Optional[HttpDeviceTransport] = None
        self._owns_http = False

        try:
            self.device = DeviceConfig.from_config(config)
            tokens = token_factory or make_token_factory(self.device)
        except ConfigError as e:
            self._config_error = str(e)
            return

        if self.device.transport is Transport.HTTP and http_transport is None:
            http_transport = HttpDeviceTransport(self.device, tokens)
            self._owns_http = True
        self._http = http_transport

        if broker_factory is None:
            broker_factory = lambda cfg: PahoBrokerClient(cfg, tokens)  # noqa: E731

        self.relay = DeviceRelay(broker_factory=broker_factory, http_transport=http_transport)
        self.relay.register_send_handler(self._on_relay_send)
        self.relay.register_inbound_handler(self._on_relay_inbound)
        self.relay.register_status_handler(self._on_relay_status)
        self.relay.register_error_handler(self._on_relay_error)

    async def start(self) -> None:
        if self.relay is None:
            self.status(STATUS_CONFIG_ERROR)
            self.error(f"Invalid configuration: {self._config_error}")
            return

        # Create the MQTT connection to the bridge and subscribe to config/commands.
        # Nothing to set up for HTTP
        if self.device.transport is Transport.MQTT:
            try:
                await self.relay.establish_connection(self.device.device_id, self.device)
            except DeviceConnectionError as e:
                # Stays DISCONNECTED until the node is restarted
                logger.error("connection error : %s", e)

    async def on_input(self, msg: FlowMessage) -> None:
        if self.relay is None:
            self.error(f"Invalid configuration: {self._config_error}", msg)
            return

        if payload_missing(msg.get("payload")):
            self.error("No data found in msg.payload", msg)
            return
        payload = ensure_bytes(msg["payload"])

        msg["send_status"] = False
        topic = msg.get("topic")
        await self.relay.handle_outbound(
            RelayMessage(
                payload=payload,
                topic=str(topic) if topic else None,
                device_id=self.device.device_id,
                transport=self.device.transport,
                meta=msg,
            )
        )

    async def close(self) -> None:
        if self.relay is not None:
            # No-op for HTTP, nothing is pooled
            self.relay.teardown_all()
        if self._owns_http:
            await self._http.aclose()

    # --- Relay -> host ---

    def _on_relay_send(self, rm: RelayMessage) -> None:
        out = dict(rm.meta)
        out["send_status"] = rm.send_status
        self.send(out)

    def _on_relay_inbound(self, rm: RelayMessage) -> None:
        self.send({"topic": rm.topic, "payload": rm.payload})

    def _on_relay_status(self, device_id: str, status: ConnectivityStatus) -> None:
        if device_id != self.device.device_id:
            return
        self.status(STATUS_CONNECTED if status is ConnectivityStatus.CONNECTED else STATUS_DISCONNECTED)

    def _on_relay_error(self, text: str, rm: Optional[RelayMessage]) -> None:
        self.error(text, dict(rm.meta) if rm is not None else None)
