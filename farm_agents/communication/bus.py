"""
Message Bus

Routes envelopes between named endpoints over a Django Channels channel
layer. Each endpoint owns a mailbox fed by a pump task; receivers take the
next message matching a predicate, optionally waiting up to a deadline,
while non-matching messages stay stashed in arrival order.
"""

import asyncio
import logging
import re
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from channels.exceptions import ChannelFull
from channels.layers import InMemoryChannelLayer

from ..exceptions import MalformedMessage
from .protocol import Envelope, REPLY_PERFORMATIVES

logger = logging.getLogger(__name__)

ENDPOINT_NAME = re.compile(r'^[A-Za-z0-9_.\-]+$')

Matcher = Callable[[Envelope], bool]


class Mailbox:
    """
    Stash of received envelopes for one endpoint.

    Selective receive: `get` returns the oldest envelope accepted by the
    matcher and leaves everything else in place.
    """

    def __init__(self, endpoint: str, max_closed: int = 512):
        self.endpoint = endpoint
        self._messages: List[Envelope] = []
        self._arrived = asyncio.Condition()
        self._closed: Deque[str] = deque(maxlen=max_closed)

    async def put(self, envelope: Envelope):
        if self._is_late_reply(envelope):
            logger.debug("%s ignoring late %s for closed conversation %s",
                         self.endpoint, envelope.performative.value, envelope.conversation_id)
            return
        async with self._arrived:
            self._messages.append(envelope)
            self._arrived.notify_all()

    async def get(self, match: Optional[Matcher] = None, timeout: Optional[float] = None) -> Optional[Envelope]:
        """
        Take the next matching envelope.

        Args:
            match: Predicate selecting envelopes (None accepts any)
            timeout: Seconds to wait; None waits forever, 0 polls

        Returns:
            The envelope, or None if the deadline passed first
        """
        async def _wait() -> Envelope:
            async with self._arrived:
                while True:
                    envelope = self._take(match)
                    if envelope is not None:
                        return envelope
                    await self._arrived.wait()

        if timeout is None:
            return await _wait()

        if timeout <= 0:
            return self._take(match)

        try:
            return await asyncio.wait_for(_wait(), timeout)
        except asyncio.TimeoutError:
            return None

    def close_conversation(self, conversation_id: str):
        """Discard stashed replies of a finished conversation and ignore later ones"""
        self._closed.append(conversation_id)
        self._messages = [
            m for m in self._messages
            if not (m.conversation_id == conversation_id and m.performative in REPLY_PERFORMATIVES)
        ]

    def _take(self, match: Optional[Matcher]) -> Optional[Envelope]:
        for index, envelope in enumerate(self._messages):
            if match is None or match(envelope):
                return self._messages.pop(index)
        return None

    def _is_late_reply(self, envelope: Envelope) -> bool:
        return (
            envelope.conversation_id is not None
            and envelope.performative in REPLY_PERFORMATIVES
            and envelope.conversation_id in self._closed
        )

    def __len__(self):
        return len(self._messages)


class MessageBus:
    """
    Named-endpoint message bus.

    Works with any channel layer: the in-memory layer keeps everything in
    process, a networked layer (for example channels_redis) lets endpoints
    live in different processes.
    """

    def __init__(self, channel_layer=None, prefix: str = 'farm', capacity: int = 1000):
        """
        Initialize the bus.

        Args:
            channel_layer: Channel layer to route over (defaults to an in-memory layer)
            prefix: Channel name prefix for every endpoint
            capacity: Per-channel capacity of the default in-memory layer
        """
        self.channel_layer = channel_layer or InMemoryChannelLayer(capacity=capacity)
        self.prefix = prefix
        self._mailboxes: Dict[str, Mailbox] = {}
        self._pumps: Dict[str, asyncio.Task] = {}

        # Statistics
        self.sent = 0
        self.dropped = 0

    def register(self, endpoint: str) -> Mailbox:
        """
        Register an endpoint and return its mailbox.

        Raises:
            ValueError: if the name cannot be used as an endpoint
        """
        if not ENDPOINT_NAME.match(endpoint or ''):
            raise ValueError(f"invalid endpoint name: {endpoint!r}")
        if endpoint not in self._mailboxes:
            self._mailboxes[endpoint] = Mailbox(endpoint)
        return self._mailboxes[endpoint]

    def unregister(self, endpoint: str):
        pump = self._pumps.pop(endpoint, None)
        if pump:
            pump.cancel()
        self._mailboxes.pop(endpoint, None)

    def is_registered(self, endpoint: str) -> bool:
        return endpoint in self._mailboxes

    def channel_for(self, endpoint: str) -> str:
        return f'{self.prefix}.{endpoint}'

    # ========== SEND / RECEIVE ==========

    async def send(self, envelope: Envelope) -> bool:
        """
        Send an envelope to its receiver.

        Returns:
            True if the channel layer accepted it
        """
        if not ENDPOINT_NAME.match(envelope.receiver or ''):
            logger.warning("Dropping message to invalid endpoint %r: %s", envelope.receiver, envelope.payload)
            self.dropped += 1
            return False

        try:
            await self.channel_layer.send(self.channel_for(envelope.receiver), envelope.to_dict())
        except ChannelFull:
            logger.warning("Channel of %s is full, dropping %s", envelope.receiver, envelope.payload)
            self.dropped += 1
            return False

        self.sent += 1
        logger.debug("%s -> %s [%s] %s", envelope.sender, envelope.receiver,
                     envelope.performative.value, envelope.payload)
        return True

    async def receive(self, endpoint: str, match: Optional[Matcher] = None,
                      timeout: Optional[float] = None) -> Optional[Envelope]:
        """
        Receive the next envelope for an endpoint that satisfies `match`.

        Args:
            endpoint: Registered endpoint name
            match: Predicate selecting envelopes (None accepts any)
            timeout: Seconds to wait (None blocks, 0 polls)

        Returns:
            The envelope, or None on timeout
        """
        mailbox = self._mailboxes.get(endpoint)
        if mailbox is None:
            mailbox = self.register(endpoint)
        self._ensure_pump(endpoint)

        if timeout == 0:
            # Give the pump a chance to move already queued messages
            await asyncio.sleep(0)
        return await mailbox.get(match, timeout)

    def close_conversation(self, endpoint: str, conversation_id: str):
        mailbox = self._mailboxes.get(endpoint)
        if mailbox is not None:
            mailbox.close_conversation(conversation_id)

    # ========== LIFECYCLE ==========

    async def start(self):
        """Start pumps for every registered endpoint"""
        for endpoint in list(self._mailboxes):
            self._ensure_pump(endpoint)

    async def stop(self):
        """Cancel every pump task"""
        pumps = list(self._pumps.values())
        self._pumps.clear()
        for pump in pumps:
            pump.cancel()
        if pumps:
            await asyncio.gather(*pumps, return_exceptions=True)

    def _ensure_pump(self, endpoint: str):
        pump = self._pumps.get(endpoint)
        if pump is None or pump.done():
            self._pumps[endpoint] = asyncio.get_running_loop().create_task(self._pump(endpoint))

    async def _pump(self, endpoint: str):
        """Move messages from the endpoint's channel into its mailbox"""
        channel = self.channel_for(endpoint)
        while True:
            message = await self.channel_layer.receive(channel)
            try:
                envelope = Envelope.from_dict(message)
            except MalformedMessage as e:
                logger.warning("Dropping malformed envelope for %s: %s", endpoint, e)
                self.dropped += 1
                continue

            mailbox = self._mailboxes.get(endpoint)
            if mailbox is None:
                return
            await mailbox.put(envelope)
