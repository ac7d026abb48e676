#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from .errors import DuplicateConnectionError
from .models import DeviceConnection


@dataclass
class ConnectionPool:
    """In-memory pool of broker connections keyed by device id

    At most one DeviceConnection per device id. Owned by a single relay and
    only mutated from its event loop, so no locking.
    """

    connections: Dict[str, DeviceConnection] = field(default_factory=dict)

    def get(self, device_id: str) -> Optional[DeviceConnection]:
        return self.connections.get(device_id)

    def add(self, conn: DeviceConnection) -> None:
        if conn.device_id in self.connections:
            raise DuplicateConnectionError(f"Device {conn.device_id!r} already has a connection")
        self.connections[conn.device_id] = conn

    def remove(self, device_id: str) -> Optional[DeviceConnection]:
        return self.connections.pop(device_id, None)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self.connections

    def __len__(self) -> int:
        return len(self.connections)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.connections))
