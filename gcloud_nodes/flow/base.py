# flow/base.py

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .models import FlowMessage, NodeStatus

logger = logging.getLogger(__name__)


class NodeHost(ABC):
    """
    Runtime hooks available to a node
    Only knows how to deliver - not know about relays, brokers or buckets
    """

    @abstractmethod
    def send(self, msg: FlowMessage) -> None:
        """
        Forward a message to the nodes wired after this one
        """
        pass

    @abstractmethod
    def status(self, status: NodeStatus) -> None:
        """
        Replace the node status badge
        """
        pass

    @abstractmethod
    def error(self, text: str, msg: Optional[FlowMessage] = None) -> None:
        """
        Report an error; msg is attached so catch nodes can inspect it
        """
        pass


class FlowNode(ABC):
    """
    Abstract flow node

    Lifecycle:
      - start(): called once after construction (open connections etc)
      - on_input(msg): called for every incoming message
      - close(): called on redeploy / shutdown
    """

    node_type: str = ""

    def __init__(self, config: Dict[str, Any], host: NodeHost):
        self.config = config
        self.host = host
        self.id = config.get("id", "")

    # --- Lifecycle Methods ---

    async def start(self) -> None:
        """
        Start node resources. Default: nothing to start
        """
        pass

    @abstractmethod
    async def on_input(self, msg: FlowMessage) -> None:
        """
        Process one incoming message. Must not raise
        """
        pass

    async def close(self) -> None:
        """
        Release node resources. Default: nothing to release
        """
        pass

    # --- Helpers (For subclasses) ---

    def send(self, msg: FlowMessage) -> None:
        self.host.send(msg)

    def status(self, status: NodeStatus) -> None:
        self.host.status(status)

    def error(self, text: str, msg: Optional[FlowMessage] = None) -> None:
        logger.error("[%s %s] %s", self.node_type, self.id, text)
        self.host.error(text, msg)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r})"
