"""
Pathfinding skill - goal based navigation and entity following
"""

import asyncio
from enum import Enum
from typing import Optional

from ..logging_config import get_logger
from ..schemas import BlockRef, EntityRef, Goal, Vec3
from ..supervisor import Priority
from .base import BaseSkill

logger = get_logger(__name__)


class PathfindingState(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    FOLLOWING = "following"


class PathfindingSkill(BaseSkill):
    """Moves the agent toward goals at Navigation priority"""

    skill_id = "pathfinder"
    priority = Priority.NAVIGATION
    State = PathfindingState

    def __init__(self, world, supervisor, config=None):
        super().__init__(world, supervisor, config)
        self.following: Optional[EntityRef] = None
        self._follow_task: Optional[asyncio.Task] = None

    async def goto(self, point: Vec3, tolerance: float = 0.0) -> bool:
        """Go to ``point`` exactly, or within ``tolerance`` blocks when non-zero"""
        if tolerance == 0:
            goal = Goal.exact_block(point)
        else:
            goal = Goal.near_point(point, tolerance)
        return await self._navigate(goal)

    async def goto_near(self, point: Vec3, range: float = 2.0) -> bool:
        return await self._navigate(Goal.near_point(point, range))

    async def goto_entity(self, entity: EntityRef, range: float = 2.0) -> bool:
        """Walk to where ``entity`` is now. Use follow() to keep tracking it."""
        return await self._navigate(Goal.near_point(entity.position, range))

    async def goto_player(self, name: str, range: float = 2.0) -> bool:
        player = self.world.player(name)
        if player is None:
            logger.warning("Player not visible", player=name)
            return False
        return await self.goto_entity(player, range)

    async def goto_block(self, block: BlockRef) -> bool:
        return await self._navigate(Goal.near_point(block.position, 1.0))

    async def flee_from(self, position: Vec3, distance: float = 16.0) -> bool:
        return await self._navigate(Goal.inverted(position, distance))

    async def follow(self, entity: EntityRef, range: float = 2.0) -> bool:
        """Start following ``entity`` until stopped, preempted or the entity is gone.

        Returns once following has started; the goal is refreshed every follow tick
        by a background task.
        """
        if not self._begin(PathfindingState.FOLLOWING):
            return False

        self.following = entity
        logger.info("Following entity", entity=entity.display_name, range=range)
        self._follow_task = asyncio.create_task(self._follow_loop(entity.id, range))
        return True

    async def stop(self) -> None:
        if not self.is_active():
            return
        await super().stop()
        await self._stop_world("stop_movement", self.world.stop_movement)

    async def shutdown(self) -> None:
        """Stop and wait for the follow task to notice"""
        task = self._follow_task
        await self.stop()
        if task is not None:
            await task

    async def _navigate(self, goal: Goal) -> bool:
        if not self._begin(PathfindingState.NAVIGATING):
            return False

        try:
            self.supervisor.set_goal(self.skill_id, goal)
            logger.info("Navigating", goal=goal.kind.value, target=str(goal.target), tolerance=goal.tolerance)
            reached = bool(await self._call("move_to", self.world.move_to, goal))
            if reached:
                logger.info("Goal reached", target=str(goal.target))
            else:
                logger.warning("Navigation failed", target=str(goal.target))
            return reached
        finally:
            self._end()

    async def _follow_loop(self, entity_id: int, range: float) -> None:
        try:
            while self.running():
                entity = self.world.entity(entity_id)
                if entity is None:
                    logger.info("Follow target gone", entity_id=entity_id)
                    break

                self.following = entity
                goal = Goal.near_entity(entity, range)
                self.supervisor.set_goal(self.skill_id, goal, dynamic=True)
                await self._call("set_goal", self.world.set_goal, goal, True, default=None)
                await self._pause(self.config.follow_tick_ms)
        finally:
            self.following = None
            self._follow_task = None
            self._end()
