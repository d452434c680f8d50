"""
Communication Layer

Wire protocol, message bus and verb dispatch between farm agents, plus the
one-way dashboard broadcaster.
"""

from .protocol import Envelope, FarmProtocol, Performative, Verb, parse_payload
from .bus import MessageBus, Mailbox
from .handlers import MessageDispatcher
from .broadcaster import StateBroadcaster

__all__ = [
    'Envelope', 'FarmProtocol', 'Performative', 'Verb', 'parse_payload',
    'MessageBus', 'Mailbox', 'MessageDispatcher', 'StateBroadcaster',
]
