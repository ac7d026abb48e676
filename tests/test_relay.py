#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

"""
Device relay tests.

Outbound:
  - MQTT to a connected device: one publish, one forward with send_status
  - MQTT to an unknown/offline device: dropped, status DISCONNECTED
  - HTTP: one call, forwarded whatever the outcome, send_status untouched

Lifecycle:
  - connection events drive status
  - inbound messages forwarded in order, byte for byte
  - teardown removes the connection and silences it
  - a failing first connect is not retried
"""

from typing import List, Optional, Tuple

import pytest

from gcloud_nodes.iot.errors import DeviceConnectionError, DeviceTransportError
from gcloud_nodes.iot.models import ConnectivityStatus, RelayMessage, Transport
from gcloud_nodes.iot.relay import DeviceRelay

CONNECTED = ConnectivityStatus.CONNECTED
DISCONNECTED = ConnectivityStatus.DISCONNECTED


class StubHttpTransport:
    """publish_event() records calls and optionally fails"""

    def __init__(self, fail: Optional[Exception] = None) -> None:
        self.calls: List[Tuple[str, bytes]] = []
        self.fail = fail

    async def publish_event(self, device_id: str, payload: bytes) -> None:
        self.calls.append((device_id, payload))
        if self.fail is not None:
            raise self.fail


class Recorder:
    def __init__(self, relay: DeviceRelay) -> None:
        self.sent: List[RelayMessage] = []
        self.inbound: List[RelayMessage] = []
        self.statuses: List[Tuple[str, ConnectivityStatus]] = []
        self.errors: List[Tuple[str, Optional[RelayMessage]]] = []
        relay.register_send_handler(self.sent.append)
        relay.register_inbound_handler(self.inbound.append)
        relay.register_status_handler(lambda dev, st: self.statuses.append((dev, st)))
        relay.register_error_handler(lambda text, msg: self.errors.append((text, msg)))


def _relay(brokers, http=None) -> Tuple[DeviceRelay, Recorder]:
    relay = DeviceRelay(broker_factory=brokers, http_transport=http)
    return relay, Recorder(relay)


@pytest.mark.asyncio
async def test_establish_connection_pools_and_subscribes(brokers, make_device):
    relay, rec = _relay(brokers)

    conn = await relay.establish_connection("d1", make_device("d1"))

    client = brokers.last
    assert client.connect_calls == 1
    assert ("/devices/d1/config", 1) in client.subscriptions
    assert ("/devices/d1/commands/#", 0) in client.subscriptions
    assert conn.subscribed_topics == {"/devices/d1/config", "/devices/d1/commands/#"}
    assert relay.has_connection("d1")
    # not connected until the broker says so
    assert conn.connected is False
    assert rec.statuses == [("d1", DISCONNECTED)]


@pytest.mark.asyncio
async def test_establish_connection_twice_reuses_pooled_connection(brokers, make_device):
    relay, _ = _relay(brokers)

    first = await relay.establish_connection("d1", make_device("d1"))
    second = await relay.establish_connection("d1", make_device("d1"))

    assert first is second
    assert len(brokers.created) == 1


@pytest.mark.asyncio
async def test_connected_device_publishes_once_and_forwards_with_send_status(brokers, make_device):
    relay, rec = _relay(brokers)
    await relay.establish_connection("d1", make_device("d1"))
    brokers.last.fire_connect()

    msg = RelayMessage(payload=b"abc", topic="events", device_id="d1", transport=Transport.MQTT)
    await relay.handle_outbound(msg)

    assert brokers.last.published == [("events", b"abc")]
    assert len(rec.sent) == 1
    assert rec.sent[0] is msg
    assert rec.sent[0].payload == b"abc"
    assert rec.sent[0].topic == "events"
    assert rec.sent[0].send_status is True
    assert rec.statuses[-1] == ("d1", CONNECTED)


@pytest.mark.asyncio
async def test_unknown_device_is_dropped_silently(brokers):
    relay, rec = _relay(brokers)

    msg = RelayMessage(payload=b"abc", topic="events", device_id="d2", transport=Transport.MQTT)
    await relay.handle_outbound(msg)

    assert rec.sent == []
    assert rec.errors == []
    assert msg.send_status is False
    assert rec.statuses == [("d2", DISCONNECTED)]


@pytest.mark.asyncio
async def test_pooled_but_offline_device_is_dropped(brokers, make_device):
    relay, rec = _relay(brokers)
    await relay.establish_connection("d1", make_device("d1"))
    brokers.last.fire_connect()
    brokers.last.fire_disconnect()

    msg = RelayMessage(payload=b"abc", topic="events", device_id="d1")
    await relay.handle_outbound(msg)

    assert brokers.last.published == []
    assert rec.sent == []
    assert msg.send_status is False
    assert rec.statuses[-1] == ("d1", DISCONNECTED)
    # the connection stays pooled, reconnecting is the client's job
    assert relay.has_connection("d1")


@pytest.mark.asyncio
async def test_publish_failure_is_reported_and_not_forwarded(brokers, make_device, publish_error):
    relay, rec = _relay(brokers)
    await relay.establish_connection("d1", make_device("d1"))
    brokers.last.fire_connect()
    brokers.last.fail_publish = publish_error

    msg = RelayMessage(payload=b"abc", topic="events", device_id="d1")
    await relay.handle_outbound(msg)

    assert rec.sent == []
    assert msg.send_status is False
    assert len(rec.errors) == 1
    assert "failed" in rec.errors[0][0]
    assert rec.errors[0][1] is msg


@pytest.mark.asyncio
@pytest.mark.parametrize("fail", [None, DeviceTransportError("publishEvent failed with status 403", 403)])
async def test_http_forwards_exactly_once_whatever_the_outcome(brokers, fail):
    http = StubHttpTransport(fail=fail)
    relay, rec = _relay(brokers, http=http)

    msg = RelayMessage(payload=b"xyz", device_id="d3", transport=Transport.HTTP)
    await relay.handle_outbound(msg)

    assert http.calls == [("d3", b"xyz")]
    assert rec.sent == [msg]
    assert msg.send_status is False
    assert rec.errors == []
    assert brokers.created == []


@pytest.mark.asyncio
async def test_http_without_transport_reports_error(brokers):
    relay, rec = _relay(brokers)

    await relay.handle_outbound(RelayMessage(payload=b"xyz", device_id="d3", transport=Transport.HTTP))

    assert rec.sent == []
    assert rec.errors[0][0] == "HTTP transport is not configured"


@pytest.mark.asyncio
async def test_status_changes_only_on_events_and_attempts(brokers, make_device):
    relay, rec = _relay(brokers)
    await relay.establish_connection("d1", make_device("d1"))
    client = brokers.last
    assert rec.statuses == [("d1", DISCONNECTED)]

    client.fire_connect()
    assert rec.statuses[-1] == ("d1", CONNECTED)
    assert relay.status_of("d1") is CONNECTED

    client.fire_error(OSError("connection reset"))
    assert rec.statuses[-1] == ("d1", DISCONNECTED)

    client.fire_connect()
    client.fire_disconnect()
    assert [s for _, s in rec.statuses] == [DISCONNECTED, CONNECTED, DISCONNECTED, CONNECTED, DISCONNECTED]
    assert relay.status_of("d1") is DISCONNECTED


@pytest.mark.asyncio
async def test_inbound_messages_forwarded_in_order_byte_for_byte(brokers, make_device):
    relay, rec = _relay(brokers)
    await relay.establish_connection("d1", make_device("d1"))
    client = brokers.last
    client.fire_connect()

    payloads = [b"\x00\x01binary", b"{\"fan\": 1}", b"", b"reboot"]
    for i, p in enumerate(payloads):
        client.fire_message(f"/devices/d1/commands/c{i}", p)

    assert [m.payload for m in rec.inbound] == payloads
    assert [m.topic for m in rec.inbound] == [f"/devices/d1/commands/c{i}" for i in range(4)]
    assert all(m.device_id == "d1" for m in rec.inbound)
    assert rec.sent == []
    # connectivity re-reported once per delivered message
    assert rec.statuses == [("d1", DISCONNECTED), ("d1", CONNECTED)] + [("d1", CONNECTED)] * len(payloads)


@pytest.mark.asyncio
async def test_teardown_removes_connection_and_ignores_later_events(brokers, make_device):
    relay, rec = _relay(brokers)
    await relay.establish_connection("d1", make_device("d1"))
    client = brokers.last
    client.fire_connect()

    relay.teardown("d1")

    assert client.disconnected is True
    assert not relay.has_connection("d1")

    statuses_before = list(rec.statuses)
    client.fire_message("/devices/d1/commands", b"late")
    client.fire_connect()
    assert rec.inbound == []
    assert rec.statuses == statuses_before

    # outbound now behaves as for an unknown device
    msg = RelayMessage(payload=b"abc", topic="events", device_id="d1")
    await relay.handle_outbound(msg)
    assert rec.sent == []


def test_teardown_without_connection_is_noop(brokers):
    relay, rec = _relay(brokers)
    relay.teardown("nope")
    assert rec.statuses == []


@pytest.mark.asyncio
async def test_teardown_all_disconnects_every_device(brokers, make_device):
    relay, _ = _relay(brokers)
    for dev in ("a", "b"):
        await relay.establish_connection(dev, make_device(dev))

    relay.teardown_all()

    assert not relay.has_connection("a")
    assert not relay.has_connection("b")
    assert all(c.disconnected for c in brokers.created)


@pytest.mark.asyncio
async def test_failed_first_connect_is_not_retried(brokers, make_device):
    """
    A connect attempt that raises leaves the device DISCONNECTED for good:
    nothing is pooled and no second attempt is made
    """
    brokers.fail_connect = OSError("Name or service not known")
    relay, rec = _relay(brokers)

    with pytest.raises(DeviceConnectionError) as exc_info:
        await relay.establish_connection("d1", make_device("d1"))

    assert isinstance(exc_info.value.cause, OSError)
    assert not relay.has_connection("d1")
    assert brokers.last.connect_calls == 1
    assert rec.statuses == [("d1", DISCONNECTED)]

    msg = RelayMessage(payload=b"abc", topic="events", device_id="d1")
    await relay.handle_outbound(msg)
    assert rec.sent == []
    assert len(brokers.created) == 1
    assert relay.status_of("d1") is DISCONNECTED


@pytest.mark.asyncio
async def test_broker_factory_failure_is_wrapped(make_device):
    def factory(cfg):
        raise ValueError("bad key")

    relay = DeviceRelay(broker_factory=factory)
    with pytest.raises(DeviceConnectionError, match="bad key"):
        await relay.establish_connection("d1", make_device("d1"))
    assert not relay.has_connection("d1")


@pytest.mark.asyncio
async def test_devices_are_independent(brokers, make_device):
    relay, rec = _relay(brokers)
    await relay.establish_connection("a", make_device("a"))
    await relay.establish_connection("b", make_device("b"))
    client_a, client_b = brokers.created
    client_a.fire_connect()

    await relay.handle_outbound(RelayMessage(payload=b"1", topic="events", device_id="a"))
    await relay.handle_outbound(RelayMessage(payload=b"2", topic="events", device_id="b"))

    assert client_a.published == [("events", b"1")]
    assert client_b.published == []
    assert [m.device_id for m in rec.sent] == ["a"]
