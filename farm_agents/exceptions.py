"""Exceptions raised by the farm coordination engine."""


class FarmError(Exception):
    """Base class for all farm engine errors"""


class MalformedMessage(FarmError):
    """A message payload or envelope could not be decoded"""

    def __init__(self, message: str, payload=None):
        super().__init__(message)
        self.payload = payload


class UnknownEndpoint(FarmError):
    """No agent is registered under the given name"""


class ConfigError(FarmError):
    """Invalid farm configuration"""
