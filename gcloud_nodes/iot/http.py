#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx
import jwt

from .auth import TokenFactory
from .errors import DeviceTransportError
from .models import DeviceConfig

logger = logging.getLogger(__name__)


class HttpDeviceTransport:
    """
    One-shot telemetry over the Cloud IoT HTTP bridge

    Each call is a single POST to <endpoint>/<device path>:publishEvent with
    the payload base64-encoded in "binary_data". Stateless apart from the
    pooled httpx client.
    """

    def __init__(
        self,
        cfg: DeviceConfig,
        token_factory: TokenFactory,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._cfg = cfg
        self._token_factory = token_factory
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=cfg.http_timeout)

    def publish_url(self, device_id: str) -> str:
        return (
            f"{self._cfg.http_endpoint}/projects/{self._cfg.project_id}"
            f"/locations/{self._cfg.region}/registries/{self._cfg.registry_id}"
            f"/devices/{device_id}:publishEvent"
        )

    async def publish_event(self, device_id: str, payload: bytes) -> httpx.Response:
        """
        Send one telemetry event

        Raises DeviceTransportError when no JWT can be signed, on network
        errors and on non-2xx answers
        """
        url = self.publish_url(device_id)
        try:
            token = self._token_factory()
        except (jwt.PyJWTError, ValueError) as e:
            raise DeviceTransportError(f"Cannot sign JWT for {device_id}: {e}") from e
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        }
        body = {"binary_data": base64.b64encode(payload).decode("ascii")}

        logger.debug("POST %s bytes=%d", url, len(payload))
        try:
            response = await self._client.post(url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            raise DeviceTransportError(f"publishEvent timed out for {device_id}: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DeviceTransportError(f"publishEvent HTTP error for {device_id}: {e}") from e

        if not response.is_success:
            raise DeviceTransportError(
                f"publishEvent failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        logger.info("publishEvent for %s succeeded with status %s", device_id, response.status_code)
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
