"""
Agent Core - Fields, mobile workers and market counterparties

Every agent runs one sequential loop (perceive-execute-report) and talks to
the rest of the farm only through the message bus.
"""

from .base_agent import BaseAgent
from .field_agent import FieldAgent
from .worker_agent import (
    WorkerAgent, WorkerState, ScannerAgent, SprayerAgent, HarvesterAgent, IrrigatorAgent,
)
from .market_agents import SupplierAgent, BuyerAgent
from .weather_agent import WeatherAgent

__all__ = [
    'BaseAgent', 'FieldAgent', 'WorkerAgent', 'WorkerState', 'ScannerAgent', 'SprayerAgent',
    'HarvesterAgent', 'IrrigatorAgent', 'SupplierAgent', 'BuyerAgent', 'WeatherAgent',
]
