"""
Base skill - drive lock handling and guarded world calls shared by every skill
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..config import AgentConfig, get_config
from ..errors import WorldCallError
from ..logging_config import get_logger
from ..schemas import Goal, Vec3
from ..supervisor import ActuationSupervisor, Priority
from ..world import WorldInterface

logger = get_logger(__name__)

APPROACH_TOLERANCE = 2.0


class BaseSkill:
    """One behavioural domain driven as a state machine under the drive lock.

    Subclasses set ``skill_id``, ``priority`` and ``State`` (an Enum whose
    ``IDLE`` member is the resting state). A skill runs one operation at a time;
    starting a second while the first is still winding down returns False.
    """

    skill_id = "skill"
    priority = Priority.TASK
    State: Enum = None

    def __init__(self, world: WorldInterface, supervisor: ActuationSupervisor, config: Optional[AgentConfig] = None):
        self.world = world
        self.supervisor = supervisor
        self.config = config or get_config()
        self.state = self.State.IDLE
        self._cancelled = False
        self._in_flight = 0

    def is_active(self) -> bool:
        return self.state != self.State.IDLE

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def running(self) -> bool:
        """True while the current operation may keep issuing world calls"""
        return not self._cancelled and self.supervisor.holds(self.skill_id)

    async def stop(self) -> None:
        """Request cooperative cancellation.

        The lock is released right away when no world call is in flight, otherwise
        as soon as the in-flight call resolves.
        """
        if not self.is_active():
            return
        logger.info("Stopping skill", skill=self.skill_id, state=self.state.value)
        self._cancelled = True
        if self._in_flight == 0:
            self.supervisor.release(self.skill_id)

    def _begin(self, state: Enum, priority: Optional[int] = None) -> bool:
        if self.is_active():
            logger.info("Skill busy", skill=self.skill_id, state=self.state.value)
            return False
        if priority is None:
            priority = self.priority
        if not self.supervisor.acquire(self.skill_id, priority, on_preempt=self._on_preempt):
            return False
        self._cancelled = False
        self.state = state
        return True

    def _end(self) -> None:
        self.state = self.State.IDLE
        self.supervisor.release(self.skill_id)

    def _on_preempt(self) -> None:
        logger.info("Skill preempted", skill=self.skill_id, state=self.state.value)
        self._cancelled = True

    async def _call(
        self,
        name: str,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        holder: Optional[str] = None,
        default: Any = False,
        **kwargs: Any,
    ) -> Any:
        """Issue one world call on behalf of ``holder`` (the skill by default).

        Refuses to issue the call once the skill is cancelled or no longer holds
        the lock. A WorldCallError is logged and turned into ``default``.
        """
        holder = holder or self.skill_id
        if (holder == self.skill_id and self._cancelled) or not self.supervisor.holds(holder):
            logger.debug("World call refused", skill=self.skill_id, call=name, holder=self.supervisor.holder)
            return default

        self._in_flight += 1
        try:
            return await fn(*args, **kwargs)
        except WorldCallError as e:
            logger.warning("World call failed", skill=self.skill_id, call=name, error=e.message)
            return default
        finally:
            self._in_flight -= 1
            if self._cancelled and self._in_flight == 0:
                self.supervisor.release(self.skill_id)

    async def _approach(self, position: Vec3, holder: Optional[str] = None) -> bool:
        """Walk to within reach of ``position`` unless already there"""
        status = self.world.agent_status()
        if status.position.distance_to(position) <= self.config.interaction_radius:
            return True
        goal = Goal.near_point(position, APPROACH_TOLERANCE)
        self.supervisor.set_goal(holder or self.skill_id, goal)
        return bool(await self._call("move_to", self.world.move_to, goal, holder=holder))

    async def _stop_world(self, name: str, fn: Callable[[], Awaitable[Any]]) -> None:
        """Best-effort stop call that bypasses the lock"""
        try:
            await fn()
        except WorldCallError as e:
            logger.warning("Stop call failed", skill=self.skill_id, call=name, error=e.message)

    @staticmethod
    async def _pause(milliseconds: float) -> None:
        await asyncio.sleep(max(milliseconds, 0) / 1000)
