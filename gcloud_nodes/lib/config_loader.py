#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedConfig:
    """
    Thin wrapper over a loaded flow file.

    Example (input JSON):
        {
          "nodes": [
            {"id": "hub1", "type": "google-cloud-iot message-hub",
             "transport": "MQTT", "deviceId": "d1", ...}
          ],
          "credentials": {"gcp1": {"account": "{...service account json...}"}}
        }
    """
    raw: Dict[str, Any]

    @property
    def nodes(self) -> List[Dict[str, Any]]:
        return list(self.raw.get("nodes") or [])

    def credentials(self, ref: Optional[str]) -> Optional[Dict[str, Any]]:
        """Credentials entry referenced by a node, or None"""
        if not ref:
            return None
        creds = self.raw.get("credentials") or {}
        entry = creds.get(ref)
        if entry is None:
            raise ConfigError(f"Unknown credentials reference: {ref!r}")
        return entry


def load_config(path: str) -> LoadedConfig:
    """
    Load JSON flow file from disk.

    Output:
      LoadedConfig with .raw containing parsed dict.
    """
    logger.debug("Reading flow file %s", path)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigError(f"Flow file must contain a JSON object: {path}")
    nodes = data.get("nodes", [])
    if not isinstance(nodes, list):
        raise ConfigError("'nodes' must be a list")
    return LoadedConfig(raw=data)


def require(cfg: Dict[str, Any], key: str) -> str:
    """Fetch a non-empty string option, raising ConfigError when absent"""
    value = cfg.get(key)
    if value is None or str(value).strip() == "":
        raise ConfigError(f"Missing required option '{key}'")
    return str(value).strip()
