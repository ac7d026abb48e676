#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
GCS write node

msg.payload     = data to be written
msg.filename    = gs://[BUCKET]/[FILE_PATH], overrides the configured filename
msg.contentType = MIME type of the object, overrides the configured content type

At least one of msg.filename / configured filename must be present.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from google.auth import exceptions as auth_exceptions

from ..flow.base import FlowNode, NodeHost
from ..flow.models import FlowMessage
from ..lib.constants import NODE_TYPE_GCS_WRITE
from ..lib.errors import ConfigError
from ..lib.util import ensure_bytes, ensure_str, payload_missing
from .backend import GcsStorageBackend, StorageBackend, StorageWriteError
from .url import parse_gcs_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GcsWriteConfig:
    filename: str = ""
    content_type: str = ""
    credentials_info: Optional[Dict[str, Any]] = None
    key_filename: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "GcsWriteConfig":
        account = cfg.get("account")
        info = None
        if isinstance(account, dict):
            info = account
        elif account:
            try:
                info = json.loads(account)
            except ValueError as e:
                raise ConfigError(f"Service account key is not valid JSON: {e}") from e
        return cls(
            filename=str(cfg.get("filename") or "").strip(),
            content_type=str(cfg.get("contentType") or "").strip(),
            credentials_info=info,
            key_filename=cfg.get("keyFilename") or None,
        )


class GcsWriteNode(FlowNode):
    node_type = NODE_TYPE_GCS_WRITE

    def __init__(
        self,
        config: Dict[str, Any],
        host: NodeHost,
        *,
        backend: Optional[StorageBackend] = None,
    ) -> None:
        super().__init__(config, host)
        self._backend = backend
        self._config_error: Optional[str] = None
        try:
            self.options = GcsWriteConfig.from_config(config)
        except ConfigError as e:
            self._config_error = str(e)
            self.options = GcsWriteConfig()

    async def start(self) -> None:
        if self._config_error:
            self.error(f"Invalid configuration: {self._config_error}")

    @property
    def backend(self) -> StorageBackend:
        # Created on first use so a bad key only fails the message that needs it
        if self._backend is None:
            try:
                self._backend = GcsStorageBackend(
                    credentials_info=self.options.credentials_info,
                    key_filename=self.options.key_filename,
                )
            except (auth_exceptions.GoogleAuthError, OSError, ValueError) as e:
                raise ConfigError(f"Cannot create storage client: {e}") from e
        return self._backend

    def resolve_url(self, msg: FlowMessage) -> str:
        """msg.filename if present, else the configured filename"""
        if msg.get("filename"):
            try:
                return ensure_str(msg["filename"]).strip()
            except UnicodeDecodeError as e:
                raise ConfigError(f"Badly formed URL: {msg['filename']!r}") from e
        if self.options.filename == "":
            raise ConfigError(
                f"No filename found in msg.filename and no file name configured ({self.options.filename})"
            )
        return self.options.filename

    def resolve_content_type(self, msg: FlowMessage) -> Optional[str]:
        if msg.get("contentType"):
            try:
                return ensure_str(msg["contentType"])
            except UnicodeDecodeError as e:
                raise ConfigError(f"Badly formed content type: {msg['contentType']!r}") from e
        if self.options.content_type != "":
            return self.options.content_type
        return None

    async def on_input(self, msg: FlowMessage) -> None:
        if self._config_error:
            self.error(f"Invalid configuration: {self._config_error}", msg)
            return

        try:
            gs_url = self.resolve_url(msg)
            if payload_missing(msg.get("payload")):
                raise ConfigError("No data found in msg.payload")
            bucket, key = parse_gcs_url(gs_url)
            content_type = self.resolve_content_type(msg)
            backend = self.backend
        except ConfigError as e:
            self.error(str(e), msg)
            return

        data = ensure_bytes(msg["payload"])
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                functools.partial(backend.write, bucket, key, data, content_type),
            )
        except StorageWriteError as e:
            self.error(f"writeStream error: {e}", msg)
            return
        logger.debug("Stored gs://%s/%s, forwarding", bucket, key)
        self.send(msg)
