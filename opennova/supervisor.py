"""
Actuation Supervisor - grants and revokes the single drive lock
"""

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, List, Optional, Set

from .logging_config import get_logger
from .schemas import Goal

logger = get_logger(__name__)


class Priority(IntEnum):
    """Drive lock priorities, higher preempts lower"""

    IDLE = 0
    NAVIGATION = 1
    TASK = 2
    GUARD = 3
    FLEE = 4


@dataclass(order=True)
class _Waiter:
    """A queued acquire_wait request, ordered by priority then arrival"""

    sort_key: tuple
    skill_id: str = field(compare=False)
    priority: int = field(compare=False)
    on_preempt: Optional[Callable[[], None]] = field(compare=False, default=None)
    future: Optional[asyncio.Future] = field(compare=False, default=None)


class ActuationSupervisor:
    """Owns the drive lock that authorizes a skill to issue world calls.

    The supervisor only tracks ownership; it never talks to the world itself.
    A preempted holder is told through its ``on_preempt`` callback and is
    expected to stop issuing calls at its next checkpoint.
    """

    def __init__(self):
        self._holder: Optional[str] = None
        self._holder_priority: Optional[Priority] = None
        self._on_preempt: Optional[Callable[[], None]] = None
        self._goal: Optional[Goal] = None
        self._goal_dynamic = False
        self._preempted: Set[str] = set()
        self._waiters: List[_Waiter] = []
        self._sequence = itertools.count()

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    @property
    def holder_priority(self) -> Optional[Priority]:
        return self._holder_priority

    @property
    def goal_dynamic(self) -> bool:
        return self._goal_dynamic

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.future.done())

    def holds(self, skill_id: str) -> bool:
        return self._holder is not None and self._holder == skill_id

    def was_preempted(self, skill_id: str) -> bool:
        return skill_id in self._preempted

    def acquire(self, skill_id: str, priority: int, on_preempt: Optional[Callable[[], None]] = None) -> bool:
        """Try to take the drive lock without waiting.

        Args:
            skill_id: Identifier of the requesting skill
            priority: Requested priority
            on_preempt: Called if this holder is later preempted

        Returns:
            True if the lock is now held by ``skill_id``
        """
        priority = Priority(priority)

        if self._holder is None:
            self._grant(skill_id, priority, on_preempt)
            return True

        if self._holder == skill_id:
            if priority > self._holder_priority:
                self._holder_priority = priority
            if on_preempt is not None:
                self._on_preempt = on_preempt
            return True

        if priority > self._holder_priority:
            self._preempt(by=skill_id)
            self._grant(skill_id, priority, on_preempt)
            return True

        logger.debug(
            "Drive lock busy",
            requester=skill_id,
            priority=priority.name,
            holder=self._holder,
            holder_priority=self._holder_priority.name,
        )
        return False

    async def acquire_wait(
        self,
        skill_id: str,
        priority: int,
        on_preempt: Optional[Callable[[], None]] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """Take the drive lock, queueing behind the holder when it is busy.

        Waiters are served highest priority first, ties in arrival order.

        Returns:
            True once granted, False if ``timeout`` seconds elapse first
        """
        if self.acquire(skill_id, priority, on_preempt):
            return True

        waiter = _Waiter(
            sort_key=(-int(priority), next(self._sequence)),
            skill_id=skill_id,
            priority=int(priority),
            on_preempt=on_preempt,
            future=asyncio.get_running_loop().create_future(),
        )
        heapq.heappush(self._waiters, waiter)
        logger.debug("Waiting for drive lock", skill=skill_id, priority=Priority(priority).name, holder=self._holder)

        try:
            if timeout is None:
                return await asyncio.shield(waiter.future)
            return await asyncio.wait_for(asyncio.shield(waiter.future), timeout)
        except asyncio.TimeoutError:
            logger.debug("Drive lock wait timed out", skill=skill_id, timeout=timeout)
            return self._abandon(waiter)
        except asyncio.CancelledError:
            if self._abandon(waiter):
                self.release(skill_id)
            raise

    def release(self, skill_id: str) -> None:
        """Free the lock if ``skill_id`` holds it and hand it to the next waiter"""
        if not self.holds(skill_id):
            return

        logger.debug("Drive lock released", skill=skill_id)
        self._clear()
        self._grant_next()

    def current_goal(self) -> Optional[Goal]:
        return self._goal

    def set_goal(self, skill_id: str, goal: Optional[Goal], dynamic: bool = False) -> bool:
        """Record the holder's active goal. Only the holder may do this."""
        if not self.holds(skill_id):
            logger.debug("Goal rejected from non-holder", skill=skill_id, holder=self._holder)
            return False
        self._goal = goal
        self._goal_dynamic = dynamic if goal is not None else False
        return True

    def _grant(self, skill_id: str, priority: Priority, on_preempt: Optional[Callable[[], None]]) -> None:
        self._holder = skill_id
        self._holder_priority = priority
        self._on_preempt = on_preempt
        self._preempted.discard(skill_id)
        logger.debug("Drive lock granted", skill=skill_id, priority=priority.name)

    def _preempt(self, by: str) -> None:
        victim = self._holder
        callback = self._on_preempt
        logger.info("Drive lock preempted", holder=victim, by=by)

        self._clear()
        self._preempted.add(victim)
        if callback is not None:
            callback()

    def _clear(self) -> None:
        self._holder = None
        self._holder_priority = None
        self._on_preempt = None
        self._goal = None
        self._goal_dynamic = False

    def _grant_next(self) -> None:
        while self._waiters and self._holder is None:
            waiter = heapq.heappop(self._waiters)
            if waiter.future.done():
                continue
            self._grant(waiter.skill_id, Priority(waiter.priority), waiter.on_preempt)
            waiter.future.set_result(True)

    def _abandon(self, waiter: _Waiter) -> bool:
        """Drop a waiter. Returns True if it had already been granted the lock."""
        if waiter.future.done() and not waiter.future.cancelled():
            return waiter.future.result()
        waiter.future.cancel()
        if waiter in self._waiters:
            self._waiters.remove(waiter)
            heapq.heapify(self._waiters)
        return False
