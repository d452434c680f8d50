"""
Simulation Engine

Hosts the farm agents in an AgentPy model and runs their loops
concurrently.
"""

from .model import FarmModel
from .runner import build_model, configure_logging, run_simulation, run_simulation_async

__all__ = ['FarmModel', 'build_model', 'configure_logging', 'run_simulation', 'run_simulation_async']
