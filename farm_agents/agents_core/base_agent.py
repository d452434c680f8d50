"""
BaseAgent - Sequential agent loop following the perceive-execute-report cycle

All farm agents inherit from this class and run a single event loop:
1. Perceive: Take the next matching message, waiting at most until the next timer
2. Execute: Dispatch it to the handler registered for its verb
3. Fire timers that are due (ticks, planning cycles)
4. Report: Publish state to the dashboard when something changed
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import agentpy as ap

from ..communication.handlers import MessageDispatcher
from ..communication.protocol import Envelope, Performative

logger = logging.getLogger(__name__)


class Timer:
    """Fixed-period schedule driven by an agent loop"""

    def __init__(self, name: str, period: float, callback: Callable[[], Awaitable[Any]]):
        self.name = name
        self.period = period
        self.callback = callback
        self.next_at: Optional[float] = None
        self.fired = 0

    def start(self, now: float):
        self.next_at = now + self.period

    def due(self, now: float) -> bool:
        return self.next_at is not None and now >= self.next_at

    def advance(self, now: float):
        """Schedule the next firing; missed periods are skipped, not queued"""
        self.next_at += self.period
        if self.next_at <= now:
            self.next_at = now + self.period
        self.fired += 1


class BaseAgent(ap.Agent):
    """
    Base class for all farm agents.

    Agents share nothing but the inventory ledger: everything else
    goes through messages on the bus.
    """

    role = 'agent'

    def setup(self, name: str):
        """
        Initialize the agent.

        Subclasses call this first and then register their handlers and timers.
        """
        self.name = name
        self.config = self.model.config
        self.bus = self.model.bus
        self.registry = self.model.registry
        self.broadcaster = self.model.broadcaster

        # Agent state
        self.status = 'idle'
        self.running = False

        self.dispatcher = MessageDispatcher(self.name)
        self.timers: Dict[str, Timer] = {}
        self._tasks: Set[asyncio.Task] = set()

        # Statistics
        self.messages_received = 0

        self.bus.register(self.name)
        self.registry.register(self)

    def add_timer(self, name: str, period_units: float, callback: Callable[[], Awaitable[Any]]):
        """Run `callback` every `period_units` time units inside the agent loop"""
        self.timers[name] = Timer(name, self.config.seconds(period_units), callback)

    # ========== LOOP ==========

    async def run(self):
        """Main loop. Runs until stopped or cancelled."""
        loop = asyncio.get_running_loop()
        self.running = True

        now = loop.time()
        for timer in self.timers.values():
            timer.start(now)

        await self.on_start()

        try:
            while self.running:
                envelope = await self.perceive(self._next_timeout(loop.time()))
                if envelope is not None:
                    await self.execute(envelope)
                await self._fire_due_timers(loop.time())
        finally:
            self.running = False

    async def perceive(self, timeout: Optional[float]) -> Optional[Envelope]:
        """Take the next message this agent's main loop accepts"""
        return await self.bus.receive(self.name, match=self.accepts, timeout=timeout)

    def accepts(self, envelope: Envelope) -> bool:
        """
        Filter for the main loop.

        Conversation replies that another coroutine of this agent is waiting
        for must be left in the mailbox; override to exclude them.
        """
        return True

    async def execute(self, envelope: Envelope):
        self.messages_received += 1
        await self.dispatcher.dispatch(envelope)

    async def report(self):
        """Publish current state to the dashboard"""
        if self.broadcaster:
            await self.broadcaster.send_worker_update(self.snapshot())

    async def on_start(self):
        """Hook run once before the loop starts"""
        pass

    def snapshot(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'role': self.role,
            'status': self.status,
        }

    def _next_timeout(self, now: float) -> float:
        if not self.timers:
            return self.config.seconds(1.0)
        next_at = min(t.next_at for t in self.timers.values())
        return max(0.0, next_at - now)

    async def _fire_due_timers(self, now: float):
        for timer in list(self.timers.values()):
            if not timer.due(now):
                continue
            timer.advance(now)
            try:
                await timer.callback()
            except Exception:
                logger.exception("%s: timer %s failed", self.name, timer.name)

    # ========== MESSAGING ==========

    async def send(self, receiver: str, performative: Performative, payload: str,
                   conversation_id: Optional[str] = None) -> bool:
        """Send a payload to a named endpoint"""
        return await self.bus.send(Envelope(
            sender=self.name,
            receiver=receiver,
            performative=performative,
            payload=payload,
            conversation_id=conversation_id,
        ))

    async def reply(self, envelope: Envelope, performative: Performative, payload: str) -> bool:
        """Reply within the conversation of `envelope`"""
        return await self.bus.send(envelope.reply(performative, payload))

    # ========== DETACHED TASKS ==========

    def spawn(self, coro, name: Optional[str] = None) -> asyncio.Task:
        """Run a coroutine detached from the main loop (missions, negotiation rounds)"""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s: task %s failed", self.name, task.get_name(), exc_info=exc)

    async def shutdown(self):
        """Stop the loop and cancel detached tasks"""
        self.running = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.__dict__.get('name', '?')}>"
