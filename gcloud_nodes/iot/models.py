#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Set

from ..lib.constants import (
    HTTP_BRIDGE_ENDPOINT,
    HTTP_TIMEOUT,
    JWT_ALGORITHMS,
    JWT_DEFAULT_ALGORITHM,
    JWT_EXPIRES_MINUTES,
    MQTT_BRIDGE_HOST,
    MQTT_BRIDGE_PORT,
    MQTT_KEEPALIVE,
    Transport as TransportName,
)
from ..lib.config_loader import require
from ..lib.errors import ConfigError

if TYPE_CHECKING:
    from .broker import BrokerClient


class Transport(Enum):
    MQTT = TransportName.MQTT
    HTTP = TransportName.HTTP


class ConnectivityStatus(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class DeviceConfig:
    """
    Identity and credentials of one Cloud IoT device.

    Built from the message-hub node options.

    Example (input JSON):
        {
          "transport": "MQTT",
          "projectId": "my-project",
          "region": "europe-west1",
          "registryId": "my-registry",
          "deviceId": "d1",
          "privateKeyFile": "/etc/keys/d1_private.pem",
          "algorithm": "RS256"
        }
    """

    transport: Transport
    project_id: str
    region: str
    registry_id: str
    device_id: str
    private_key_file: Optional[str] = None
    algorithm: str = JWT_DEFAULT_ALGORITHM
    jwt_expires_minutes: int = JWT_EXPIRES_MINUTES
    ca_certs: Optional[str] = None
    mqtt_host: str = MQTT_BRIDGE_HOST
    mqtt_port: int = MQTT_BRIDGE_PORT
    keepalive: int = MQTT_KEEPALIVE
    http_endpoint: str = HTTP_BRIDGE_ENDPOINT
    http_timeout: float = HTTP_TIMEOUT

    @property
    def client_id(self) -> str:
        """Full device path, also the MQTT client id"""
        return (
            f"projects/{self.project_id}/locations/{self.region}"
            f"/registries/{self.registry_id}/devices/{self.device_id}"
        )

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "DeviceConfig":
        transport_name = require(cfg, "transport").upper()
        try:
            transport = Transport(transport_name)
        except ValueError:
            raise ConfigError(f"Unknown transport: {transport_name!r}") from None

        algorithm = str(cfg.get("algorithm") or JWT_DEFAULT_ALGORITHM).upper()
        if algorithm not in JWT_ALGORITHMS:
            raise ConfigError(f"Unsupported JWT algorithm: {algorithm!r}")

        return cls(
            transport=transport,
            project_id=require(cfg, "projectId"),
            region=require(cfg, "region"),
            registry_id=require(cfg, "registryId"),
            device_id=require(cfg, "deviceId"),
            private_key_file=cfg.get("privateKeyFile") or None,
            algorithm=algorithm,
            jwt_expires_minutes=_number(cfg, "jwtExpiresMinutes", JWT_EXPIRES_MINUTES, int),
            ca_certs=cfg.get("caCerts") or None,
            mqtt_host=cfg.get("mqttHost") or MQTT_BRIDGE_HOST,
            mqtt_port=_number(cfg, "mqttPort", MQTT_BRIDGE_PORT, int),
            keepalive=_number(cfg, "keepalive", MQTT_KEEPALIVE, int),
            http_endpoint=(cfg.get("httpEndpoint") or HTTP_BRIDGE_ENDPOINT).rstrip("/"),
            http_timeout=_number(cfg, "httpTimeout", HTTP_TIMEOUT, float),
        )


def _number(cfg: Dict[str, Any], key: str, default: Any, kind: type) -> Any:
    value = cfg.get(key)
    if value is None or value == "":
        return default
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Option '{key}' must be a number, got {value!r}") from None


@dataclass
class DeviceConnection:
    """
    One broker session of one device

    `connected` is only written by the relay's connection-event listeners
    """

    device_id: str
    client: "BrokerClient"
    connected: bool = False
    subscribed_topics: Set[str] = field(default_factory=set)

    @property
    def status(self) -> ConnectivityStatus:
        return ConnectivityStatus.CONNECTED if self.connected else ConnectivityStatus.DISCONNECTED


@dataclass
class RelayMessage:
    """
    Unit crossing the relay boundary

    Fields:
      - payload: opaque bytes
      - topic: publish topic outbound, delivery topic inbound
      - device_id: device the message belongs to
      - transport: MQTT / HTTP
      - send_status: set by the relay once an MQTT publish was handed to the broker
      - meta: remaining flow-message fields, forwarded untouched
    """

    payload: bytes
    topic: Optional[str] = None
    device_id: str = ""
    transport: Transport = Transport.MQTT
    send_status: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)
