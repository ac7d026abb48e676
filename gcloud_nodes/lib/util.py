from __future__ import annotations

import json
from typing import Any


def ensure_bytes(value: Any) -> bytes:
    """
    Coerce a flow payload into bytes

      bytes/bytearray -> as is
      str             -> UTF-8
      dict/list       -> JSON text
      None            -> b""
      anything else   -> str(value)
    """
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (dict, list)):
        return json.dumps(value).encode("utf-8")
    return str(value).encode("utf-8")


def ensure_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def payload_missing(value: Any) -> bool:
    """
    True for values a flow treats as "no payload":
    None, False, 0, "" and empty bytes. Objects and arrays always count as data.
    """
    if isinstance(value, (dict, list)):
        return False
    return not value
