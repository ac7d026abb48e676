#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

logger = logging.getLogger(__name__)


class StorageWriteError(Exception):
    """Object could not be written"""
    pass


class StorageBackend(ABC):
    """
    Object store as seen by the write node

    write() blocks until the object is stored; the node runs it off-loop
    """

    @abstractmethod
    def write(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        raise NotImplementedError


class GcsStorageBackend(StorageBackend):
    """
    Google Cloud Storage backend

    Credential precedence:
      1) service account info (parsed JSON key)
      2) key file path
      3) application default credentials
    """

    def __init__(
        self,
        *,
        credentials_info: Optional[Dict[str, Any]] = None,
        key_filename: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif credentials_info:
            logger.debug("Using service account credentials")
            self._client = storage.Client.from_service_account_info(credentials_info)
        elif key_filename:
            logger.debug("Using key file %s", key_filename)
            self._client = storage.Client.from_service_account_json(key_filename)
        else:
            logger.debug("Using application default credentials")
            self._client = storage.Client()

    def write(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        blob = self._client.bucket(bucket).blob(key)
        logger.debug("Uploading gs://%s/%s bytes=%d content_type=%s", bucket, key, len(data), content_type)
        try:
            # Known size lets the client use a single multipart request for small objects
            blob.upload_from_file(io.BytesIO(data), size=len(data), content_type=content_type)
        except (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError, OSError) as e:
            raise StorageWriteError(str(e)) from e
        logger.info("Wrote gs://%s/%s (%d bytes)", bucket, key, len(data))
