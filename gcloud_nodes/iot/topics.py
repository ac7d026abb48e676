"""
topics.py - Cloud IoT device topic helpers

Device topics follow /devices/<device_id>/<suffix>:

    /devices/d1/config          (subscribe, QoS 1)
    /devices/d1/commands/#      (subscribe, QoS 0)
    /devices/d1/events          (publish telemetry)
    /devices/d1/events/alerts   (publish telemetry to a subfolder)
    /devices/d1/state           (publish device state)

Typical usage:
    device_topic("d1", "events")          # /devices/d1/events
    device_topic("d1", None)              # /devices/d1/events
    device_topic("d1", "/devices/d1/state")  # unchanged
"""

from ..lib.constants import DEFAULT_EVENT_TOPIC

TOPIC_PREFIX = "/devices"


def device_topic(device_id, topic=None):
    """Expand a relative topic suffix into the full device topic

    Args:
        device_id (str): device identifier
        topic (str | None): suffix such as "events" or "state"; an absolute
            topic (leading "/") is returned unchanged; None means "events"

    Returns:
        str: full topic
    """
    if not topic:
        topic = DEFAULT_EVENT_TOPIC
    if topic.startswith("/"):
        return topic
    return f"{TOPIC_PREFIX}/{device_id}/{topic}"


def config_topic(device_id):
    return f"{TOPIC_PREFIX}/{device_id}/config"


def commands_topic(device_id):
    """Wildcard subscription covering all command subfolders"""
    return f"{TOPIC_PREFIX}/{device_id}/commands/#"
