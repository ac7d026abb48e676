#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import datetime
import logging
from pathlib import Path
from typing import Callable, Optional

import jwt

from ..lib.errors import ConfigError
from .models import DeviceConfig

logger = logging.getLogger(__name__)

TokenFactory = Callable[[], str]


def create_jwt(
    project_id: str,
    private_key: str,
    algorithm: str,
    expires_minutes: int,
    now: Optional[datetime.datetime] = None,
) -> str:
    """
    Sign a device JWT for the Cloud IoT bridges

    Claims:
      iat: issued at
      exp: iat + expires_minutes
      aud: project id
    """
    iat = now or datetime.datetime.now(tz=datetime.timezone.utc)
    token_payload = {
        "iat": iat,
        "exp": iat + datetime.timedelta(minutes=expires_minutes),
        "aud": project_id,
    }
    logger.debug("Creating %s JWT for project %s", algorithm, project_id)
    return jwt.encode(token_payload, private_key, algorithm=algorithm)


def make_token_factory(cfg: DeviceConfig) -> TokenFactory:
    """
    Return a callable producing fresh JWTs for the device

    The key file is read once; a missing file or a key that cannot sign
    is a configuration error
    """
    if not cfg.private_key_file:
        raise ConfigError("Missing required option 'privateKeyFile'")
    try:
        private_key = Path(cfg.private_key_file).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read private key {cfg.private_key_file}: {e}") from e

    def factory() -> str:
        return create_jwt(cfg.project_id, private_key, cfg.algorithm, cfg.jwt_expires_minutes)

    # Sign once so an unusable key is reported at start, not on every message
    try:
        factory()
    except (jwt.PyJWTError, ValueError) as e:
        raise ConfigError(f"Cannot sign {cfg.algorithm} JWT with {cfg.private_key_file}: {e}") from e

    return factory
