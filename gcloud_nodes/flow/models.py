#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

# Flow messages are plain dicts, as the runtime passes them around
FlowMessage = Dict[str, Any]


@dataclass(frozen=True)
class NodeStatus:
    """
    Status badge shown under a node in the editor

    Fields:
      - fill: "green" / "red" / "yellow" / "grey"
      - shape: "dot" or "ring"
      - text: short label
    """

    fill: str
    shape: str
    text: str


STATUS_CONNECTED = NodeStatus(fill="green", shape="dot", text="connected")
STATUS_DISCONNECTED = NodeStatus(fill="red", shape="dot", text="disconnected")
STATUS_CONFIG_ERROR = NodeStatus(fill="red", shape="ring", text="config error")
