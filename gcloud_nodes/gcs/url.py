from __future__ import annotations

import re
from typing import Tuple

from ..lib.errors import ConfigError

GCS_URL_RE = re.compile(r"^gs://([^/]+)/(.+)$")


def parse_gcs_url(url: str) -> Tuple[str, str]:
    """
    Split gs://[BUCKET]/[FILE_PATH] into (bucket, object name)

    >>> parse_gcs_url("gs://my-bucket/dir/file.json")
    ('my-bucket', 'dir/file.json')
    """
    m = GCS_URL_RE.match(url.strip())
    if m is None:
        raise ConfigError(f"Badly formed URL: {url}")
    return m.group(1), m.group(2)
