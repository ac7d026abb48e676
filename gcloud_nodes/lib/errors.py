from __future__ import annotations


class ConfigError(ValueError):
    """Node configuration or input message is missing a required field"""
