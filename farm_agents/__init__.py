"""
Farm multi-agent coordination engine

Fields, mobile workers, a BDI planner and market counterparties talking
over a channel-layer message bus.
"""

from .config import FarmConfig, load_config
from .exceptions import ConfigError, FarmError, MalformedMessage, UnknownEndpoint

__all__ = ['FarmConfig', 'load_config', 'FarmError', 'MalformedMessage', 'ConfigError', 'UnknownEndpoint']
