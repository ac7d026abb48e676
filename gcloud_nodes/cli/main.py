#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Run the nodes of a flow file outside the editor

Input messages are read from stdin, one JSON object per line. A "_node" key
restricts a line to the node with that id, otherwise every node gets it.
Messages the nodes send are printed to stdout as JSON lines:

    {"node": "hub1", "msg": {"topic": "/devices/d1/commands", "payload": "reboot"}}
"""
import argparse
import asyncio
import base64
import json
import logging
import sys
from enum import IntEnum
from typing import List, Optional

from gcloud_nodes import __version__
from gcloud_nodes.flow.base import FlowNode, NodeHost
from gcloud_nodes.flow.models import NodeStatus
from gcloud_nodes.lib.config_loader import LoadedConfig, load_config
from gcloud_nodes.nodes import build_node


class ExitCode(IntEnum):
    SUCCESS = 0
    GEN_ERROR = 1  # Unexpected errors while running
    INIT_ERROR = 2  # Bad arguments, unreadable or invalid flow file


logger = logging.getLogger("gcloud-nodes")


def _json_default(value):
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return {"base64": base64.b64encode(value).decode("ascii")}
    return repr(value)


class StdoutHost(NodeHost):
    """Prints forwarded messages as JSON lines; status and errors go to the log"""

    def __init__(self, node_id: str, out=None):
        self.node_id = node_id
        self.out = out or sys.stdout

    def send(self, msg) -> None:
        line = json.dumps({"node": self.node_id, "msg": msg}, default=_json_default)
        print(line, file=self.out, flush=True)

    def status(self, status: NodeStatus) -> None:
        logger.info("[%s] status: %s", self.node_id, status.text)

    def error(self, text: str, msg=None) -> None:
        logger.error("[%s] %s", self.node_id, text)


def build_nodes(loaded: LoadedConfig, only: Optional[List[str]] = None) -> List[FlowNode]:
    nodes = []
    for node_cfg in loaded.nodes:
        node_id = node_cfg.get("id", "")
        if only and node_id not in only:
            continue
        nodes.append(build_node(node_cfg, StdoutHost(node_id), loaded))
    return nodes


async def run(nodes: List[FlowNode], linger: float = 0.0, stdin=None) -> ExitCode:
    stdin = stdin or sys.stdin
    loop = asyncio.get_running_loop()

    for node in nodes:
        await node.start()

    try:
        while True:
            line = await loop.run_in_executor(None, stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                msg = json.loads(line)
            except ValueError as e:
                logger.error("Skipping invalid JSON line: %r", e)
                continue
            if not isinstance(msg, dict):
                msg = {"payload": msg}
            target = msg.pop("_node", None)
            for node in nodes:
                if target is None or node.id == target:
                    await node.on_input(dict(msg))

        if linger > 0:
            # Keep sessions open for inbound messages
            await asyncio.sleep(linger)
    finally:
        for node in nodes:
            try:
                await node.close()
            except Exception:
                logger.exception("Closing %r failed", node)
    return ExitCode.SUCCESS


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run Google Cloud flow nodes from a flow file")
    parser.add_argument("flow", help="Path to JSON flow file")
    parser.add_argument("-n", "--node", action="append", help="Only run the node with this id (repeatable)")
    parser.add_argument("--linger", type=float, default=0.0, help="Seconds to keep running after stdin EOF")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=__version__)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    try:
        loaded = load_config(args.flow)
        nodes = build_nodes(loaded, args.node)
    except (OSError, ValueError) as e:
        logger.error("Cannot load flow %s: %s", args.flow, e)
        return ExitCode.INIT_ERROR
    if not nodes:
        logger.error("No nodes to run in %s", args.flow)
        return ExitCode.INIT_ERROR

    try:
        return asyncio.run(run(nodes, linger=args.linger))
    except KeyboardInterrupt:
        return ExitCode.SUCCESS
    except Exception as e:
        logger.exception("Runner failed: %r", e)
        return ExitCode.GEN_ERROR


if __name__ == "__main__":
    sys.exit(main())
