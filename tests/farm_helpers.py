import asyncio

from farm_agents.communication.protocol import Envelope, Performative
from farm_agents.config import FarmConfig
from farm_agents.simulation import build_model


def build_farm(seed=7, **overrides):
    options = {'time_unit': 0.01, 'disease_probability': 0.0, 'negotiation_deadline': 50.0}
    options.update(overrides)
    return build_model(FarmConfig(**options), send_updates=False, seed=seed)


def start_loops(model, agents):
    """Run the loops of some agents; model.shutdown() cancels them"""
    loop = asyncio.get_running_loop()
    for agent in agents:
        model._loops.append(loop.create_task(agent.run(), name=agent.name))


async def wait_until(predicate, timeout=2.0, step=0.005):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(step)
    return True


def request(sender, receiver, payload, conversation_id=None):
    return Envelope(sender, receiver, Performative.REQUEST, payload, conversation_id)


def inform(sender, receiver, payload, conversation_id=None):
    return Envelope(sender, receiver, Performative.INFORM, payload, conversation_id)
