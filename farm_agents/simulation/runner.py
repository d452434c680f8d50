"""
Simulation Runner

Entry points to run a farm from synchronous code (scripts, web views) or
in a background thread.
"""

import logging
import threading
from typing import Any, Dict, Optional, Union

from asgiref.sync import async_to_sync

from ..config import FarmConfig, load_config
from .model import FarmModel

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def configure_logging(level: Union[int, str] = logging.INFO):
    """Basic logging setup for scripts"""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_model(
    config: Union[FarmConfig, Dict[str, Any], str, None] = None,
    farm_id: str = 'default',
    send_updates: bool = True,
    seed: Optional[int] = None,
    bus=None,
) -> FarmModel:
    """
    Create and set up a farm model.

    Args:
        config: FarmConfig, plain dict or path to a YAML file (None uses the demo farm)
        farm_id: Identifier of the farm (dashboard group)
        send_updates: Whether to publish dashboard events
        seed: Seed of the shared random source
        bus: Optional MessageBus to route over
    """
    if isinstance(config, str):
        config = load_config(config)

    parameters = {
        'config': config,
        'farm_id': farm_id,
        'send_updates': send_updates,
        'bus': bus,
    }
    if seed is not None:
        parameters['seed'] = seed

    model = FarmModel(parameters)
    model.setup()
    return model


def run_simulation(
    config: Union[FarmConfig, Dict[str, Any], str, None] = None,
    duration: float = 60.0,
    farm_id: str = 'default',
    send_updates: bool = True,
    seed: Optional[int] = None,
    bus=None,
) -> Dict[str, Any]:
    """
    Run a farm simulation to completion.

    Args:
        config: FarmConfig, plain dict or path to a YAML file
        duration: Simulated time units to run
        farm_id: Identifier of the farm
        send_updates: Whether to publish dashboard events
        seed: Seed of the shared random source
        bus: Optional MessageBus to route over

    Returns:
        Final simulation status
    """
    model = build_model(config, farm_id=farm_id, send_updates=send_updates, seed=seed, bus=bus)

    try:
        status = async_to_sync(model.simulate)(duration)
    except Exception as e:
        logger.exception("Simulation of farm %s failed", farm_id)
        if model.broadcaster:
            model.broadcaster.send_error_sync(str(e), farm_id=farm_id)
        raise
    finally:
        model.end()

    logger.info("Simulation of farm %s completed: %s", farm_id, status['inventory'])
    return status


def run_simulation_async(**kwargs) -> threading.Thread:
    """
    Run a simulation in a background thread.

    Args:
        **kwargs: Arguments for run_simulation
    """
    thread = threading.Thread(
        target=run_simulation,
        kwargs=kwargs,
        daemon=True,
    )
    thread.start()
    return thread
