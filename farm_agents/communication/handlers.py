"""
Verb Handlers

Routes decoded messages received by an agent to the handler registered for
their verb. Malformed and unknown messages are logged and dropped; they never
stop the receiving agent.
"""

import inspect
import logging
from typing import Callable, Dict

from ..exceptions import MalformedMessage
from .protocol import Command, Envelope, Verb, parse_payload

logger = logging.getLogger(__name__)

Handler = Callable[[Envelope, Command], object]


class MessageDispatcher:
    """
    Dispatches envelopes to handlers by verb.

    Handlers receive ``(envelope, command)`` and may be plain functions or
    coroutines.
    """

    def __init__(self, owner: str):
        """
        Initialize the dispatcher.

        Args:
            owner: Name of the agent owning this dispatcher (for logs)
        """
        self.owner = owner
        self.handlers: Dict[Verb, Handler] = {}

        # Statistics
        self.handled = 0
        self.dropped = 0

    def register_handler(self, verb: Verb, handler: Handler):
        """
        Register a handler for a verb.

        Args:
            verb: The verb to handle
            handler: Function(envelope, command) -> any
        """
        self.handlers[verb] = handler

    async def dispatch(self, envelope: Envelope) -> bool:
        """
        Handle an incoming envelope.

        Returns:
            True if a handler ran to completion
        """
        try:
            command = parse_payload(envelope.payload)
        except MalformedMessage as e:
            self.dropped += 1
            logger.warning("%s dropping malformed message from %s: %s", self.owner, envelope.sender, e)
            return False

        handler = self.handlers.get(command.verb)
        if handler is None:
            self.dropped += 1
            logger.warning("%s has no handler for %s from %s", self.owner, command.verb.value, envelope.sender)
            return False

        try:
            result = handler(envelope, command)
            if inspect.isawaitable(result):
                await result
        except MalformedMessage as e:
            self.dropped += 1
            logger.warning("%s dropping message from %s: %s", self.owner, envelope.sender, e)
            return False
        except Exception:
            self.dropped += 1
            logger.exception("%s failed handling %r from %s", self.owner, envelope.payload, envelope.sender)
            return False

        self.handled += 1
        return True
