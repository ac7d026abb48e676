#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import pytest

from gcloud_nodes.flow.base import NodeHost
from gcloud_nodes.iot.broker import BrokerClient
from gcloud_nodes.iot.errors import BrokerPublishError
from gcloud_nodes.iot.models import DeviceConfig, Transport


class FakeBrokerClient(BrokerClient):
    """
    Broker client stub:
    - records connect/subscribe/publish/disconnect calls
    - fire_*() helpers raise broker events the way a real session would
    """

    def __init__(self, cfg: Optional[DeviceConfig] = None, fail_connect: Optional[Exception] = None) -> None:
        super().__init__()
        self.cfg = cfg
        self.fail_connect = fail_connect
        self.fail_publish: Optional[Exception] = None
        self.connect_calls = 0
        self.subscriptions: List[Tuple[str, int]] = []
        self.published: List[Tuple[Optional[str], bytes]] = []
        self.disconnected = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect is not None:
            raise self.fail_connect

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscriptions.append((topic, qos))

    def publish(self, topic: Optional[str], payload: bytes) -> None:
        if self.fail_publish is not None:
            raise self.fail_publish
        self.published.append((topic, payload))

    def disconnect(self) -> None:
        self.disconnected = True
        self._connected = False
        self._emit("close")

    # ---- test helpers ----

    def fire_connect(self) -> None:
        self._connected = True
        self._emit("connect")

    def fire_disconnect(self, reason: str = "Unspecified error") -> None:
        self._connected = False
        self._emit("disconnect", reason)

    def fire_error(self, exc: Exception) -> None:
        self._emit("error", exc)

    def fire_message(self, topic: str, payload: bytes) -> None:
        self._emit("message", topic, payload)


class BrokerFactory:
    """Broker factory recording every client it hands out"""

    def __init__(self) -> None:
        self.created: List[FakeBrokerClient] = []
        self.fail_connect: Optional[Exception] = None

    def __call__(self, cfg: DeviceConfig) -> FakeBrokerClient:
        client = FakeBrokerClient(cfg, fail_connect=self.fail_connect)
        self.created.append(client)
        return client

    @property
    def last(self) -> FakeBrokerClient:
        return self.created[-1]


class RecordingHost(NodeHost):
    """Collects everything a node hands to the runtime"""

    def __init__(self) -> None:
        self.sent: List[dict] = []
        self.statuses: List[Any] = []
        self.errors: List[Tuple[str, Optional[dict]]] = []

    def send(self, msg) -> None:
        self.sent.append(msg)

    def status(self, status) -> None:
        self.statuses.append(status)

    def error(self, text: str, msg=None) -> None:
        self.errors.append((text, msg))


def _make_device(device_id: str = "d1", transport: Transport = Transport.MQTT, **kw: Any) -> DeviceConfig:
    return DeviceConfig(
        transport=transport,
        project_id="proj",
        region="europe-west1",
        registry_id="reg",
        device_id=device_id,
        **kw,
    )


@pytest.fixture
def brokers() -> BrokerFactory:
    return BrokerFactory()


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def publish_error() -> BrokerPublishError:
    return BrokerPublishError("Publish to /devices/d1/events failed: The client is not currently connected.")


@pytest.fixture
def make_device():
    return _make_device
