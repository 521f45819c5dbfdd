"""
Nova Agent - composition root wiring one supervisor, the skills and world events
"""

import asyncio
from typing import List, Optional, Set

from .config import AgentConfig, get_config
from .crafting import CraftingResolver
from .logging_config import get_logger
from .skills import CombatSkill, MiningSkill, PathfindingSkill, StorageSkill, SurvivalSkill
from .supervisor import ActuationSupervisor
from .world import WorldInterface

logger = get_logger(__name__)


class NovaAgent:
    """One agent body: a world, its drive lock and every skill built against it"""

    def __init__(self, world: WorldInterface, config: Optional[AgentConfig] = None):
        self.world = world
        self.config = config or get_config()
        self.supervisor = ActuationSupervisor()

        self.pathfinder = PathfindingSkill(world, self.supervisor, self.config)
        self.combat = CombatSkill(world, self.supervisor, self.config)
        self.miner = MiningSkill(world, self.supervisor, self.config)
        self.crafter = CraftingResolver(world, self.supervisor, self.config)
        self.storage = StorageSkill(world, self.supervisor, self.config)
        self.survival = SurvivalSkill(world, self.supervisor, self.config)

        self._tasks: Set[asyncio.Task] = set()
        self._started = False

    @property
    def skills(self) -> List:
        return [self.pathfinder, self.combat, self.miner, self.crafter, self.storage, self.survival]

    def start(self) -> None:
        """Subscribe to world events. Call once, from inside the event loop."""
        if self._started:
            return
        self.world.add_listener("attack_ended", self.combat.handle_attack_ended)
        self.world.add_listener("health", self._on_health)
        self.world.add_listener("death", self._on_death)
        self._started = True
        logger.info("Agent started", skills=[skill.skill_id for skill in self.skills])

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_health(self, health: float) -> None:
        if health > self.config.flee_health_threshold or self.combat.fleeing:
            return
        logger.warning("Health critical", health=health)
        self._spawn(self.combat.flee())

    def _on_death(self) -> None:
        logger.warning("Agent died, stopping all skills")
        self._spawn(self.stop_all())

    async def stop_all(self) -> None:
        for skill in self.skills:
            await skill.stop()

    async def shutdown(self) -> None:
        """Stop every skill and cancel any task the agent started"""
        logger.info("Shutting down agent")
        await self.combat.shutdown()
        await self.pathfinder.shutdown()
        await self.stop_all()

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Agent shut down", holder=self.supervisor.holder)
