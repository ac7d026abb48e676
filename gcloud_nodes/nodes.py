#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
from typing import Any, Dict, Type

from .flow.base import FlowNode, NodeHost
from .gcs.node import GcsWriteNode
from .iot.node import MessageHubNode
from .lib.config_loader import LoadedConfig
from .lib.errors import ConfigError

logger = logging.getLogger(__name__)

NODE_TYPES: Dict[str, Type[FlowNode]] = {
    MessageHubNode.node_type: MessageHubNode,
    GcsWriteNode.node_type: GcsWriteNode,
}


def build_node(node_cfg: Dict[str, Any], host: NodeHost, loaded: LoadedConfig) -> FlowNode:
    """
    Instantiate a node from its flow-file entry

    A "credentials" key names an entry of the flow file's credentials
    section; its fields are merged into the node options.
    """
    node_type = node_cfg.get("type")
    node_cls = NODE_TYPES.get(node_type)
    if node_cls is None:
        raise ConfigError(f"Unknown node type: {node_type!r}")

    options = dict(node_cfg)
    creds = loaded.credentials(options.pop("credentials", None))
    if creds:
        options.update(creds)
    logger.debug("Building %s node %r", node_type, options.get("id"))
    return node_cls(options, host)
