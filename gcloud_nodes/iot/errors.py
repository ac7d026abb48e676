from __future__ import annotations


class DeviceRelayError(Exception):
    """Base exception for device relay operations"""
    pass


class DeviceConnectionError(DeviceRelayError):
    """Initial broker connection attempt failed"""

    def __init__(self, device_id: str, cause: BaseException):
        super().__init__(f"Connection for device {device_id!r} failed: {cause}")
        self.device_id = device_id
        self.cause = cause


class DuplicateConnectionError(DeviceRelayError):
    """A live connection already exists for the device"""
    pass


class BrokerPublishError(DeviceRelayError):
    """Broker client refused or failed a publish"""
    pass


class DeviceTransportError(DeviceRelayError):
    """One-shot HTTP call failed (network error or non-2xx answer)"""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code
