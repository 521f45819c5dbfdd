"""
Combat skill - attacking, defending, guarding and fleeing
"""

import asyncio
from enum import Enum
from typing import List, Optional

from ..logging_config import get_logger
from ..schemas import EntityRef, Goal, Vec3
from ..supervisor import Priority
from .base import BaseSkill
from .equipment import best_weapon

logger = get_logger(__name__)

NEAREST_HOSTILE_RANGE = 16.0


class CombatState(str, Enum):
    IDLE = "idle"
    ATTACKING = "attacking"
    DEFENDING = "defending"
    GUARDING = "guarding"
    FLEEING = "fleeing"


class CombatSkill(BaseSkill):
    """Fights hostiles and protects players.

    Attacks are fire-and-forget: the world signals ``attack_ended`` and
    ``handle_attack_ended`` returns the skill to its resting state. Defending and
    guarding share one repeating poll task. Fleeing runs under its own holder id
    at Flee priority so it can preempt this skill's own attacks.
    """

    skill_id = "combat"
    flee_id = "combat.flee"
    priority = Priority.TASK
    State = CombatState

    def __init__(self, world, supervisor, config=None):
        super().__init__(world, supervisor, config)
        self.target: Optional[EntityRef] = None
        self.guarded_player: Optional[str] = None
        self.attacking = False
        self.defending = False
        self.guarding = False
        self.fleeing = False
        self._poll_task: Optional[asyncio.Task] = None
        self._poll_cancelled = False

    def is_active(self) -> bool:
        return self.attacking or self.defending or self.guarding or self.fleeing

    async def attack(self, entity: EntityRef, priority: int = Priority.TASK) -> bool:
        """Start attacking ``entity``. Returns once the attack has been issued."""
        if entity is None:
            logger.warning("No entity to attack")
            return False
        if not self.supervisor.acquire(self.skill_id, priority, on_preempt=self._on_preempt):
            logger.info("Cannot attack, drive lock busy", target=entity.display_name)
            return False

        self._cancelled = False
        self.attacking = True
        self.target = entity
        self.state = CombatState.ATTACKING
        logger.info("Attacking", target=entity.display_name, entity_id=entity.id)

        await self._equip_weapon()
        if await self._call("attack", self._start_attack, entity):
            return True

        logger.warning("Attack failed", target=entity.display_name)
        self._attack_finished()
        return False

    async def attack_player(self, name: str) -> bool:
        player = self.world.player(name)
        if player is None:
            logger.warning("Player not found or not visible", player=name)
            return False
        return await self.attack(player)

    async def attack_nearest(self) -> bool:
        hostiles = self.nearby_hostiles(NEAREST_HOSTILE_RANGE)
        if not hostiles:
            logger.info("No hostile mobs nearby")
            return False
        return await self.attack(hostiles[0])

    def handle_attack_ended(self, *args) -> None:
        """World notification that the current target was lost or defeated"""
        if not self.attacking:
            return
        logger.info("Attack ended", target=self.target.display_name if self.target else None)
        self._attack_finished()

    async def start_defending(self) -> bool:
        """Attack any hostile that comes close until stop_defending()"""
        if self.defending:
            return True
        self.defending = True
        self._poll_cancelled = False
        if not self.attacking and not self.guarding:
            self.state = CombatState.DEFENDING
        logger.info("Entering defensive mode", interval_ms=self.config.defend_interval_ms)
        self._ensure_poll()
        return True

    async def stop_defending(self) -> None:
        if not self.defending:
            return
        self.defending = False
        if not self.guarding:
            self._stop_poll()
        await self.stop_attacking()
        self.state = self._resting_state()
        logger.info("Stopped defending")

    async def guard(self, player_name: str) -> bool:
        """Follow ``player_name`` and fight hostiles around them, holding the lock throughout"""
        player = self.world.player(player_name)
        if player is None:
            logger.warning("Player not found", player=player_name)
            return False
        if not self.supervisor.acquire(self.skill_id, Priority.GUARD, on_preempt=self._on_preempt):
            logger.info("Cannot guard, drive lock busy", player=player_name)
            return False

        self._cancelled = False
        self.guarding = True
        self.guarded_player = player_name
        self._poll_cancelled = False
        if not self.attacking:
            self.state = CombatState.GUARDING
        logger.info("Guarding player", player=player_name)

        await self._follow_guarded(player)
        self._ensure_poll()
        return True

    async def stop_guarding(self) -> None:
        if not self.guarding:
            return
        self.guarding = False
        self.guarded_player = None
        if not self.defending:
            self._stop_poll()
        await self.stop_attacking()
        self.supervisor.release(self.skill_id)
        await self._stop_world("stop_movement", self.world.stop_movement)
        self.state = self._resting_state()
        logger.info("Stopped guarding")

    async def stop_attacking(self) -> None:
        if not self.attacking:
            return
        await self._stop_world("stop_attack", self.world.stop_attack)
        self._attack_finished()

    async def flee(self) -> bool:
        """Run away from nearby hostiles. Preempts whatever holds the lock."""
        status = self.world.agent_status()
        threats = self.nearby_hostiles(self.config.flee_scan_radius)
        if not threats:
            logger.info("No threats to flee from")
            return False
        if self.fleeing:
            return False

        centroid = Vec3.of(
            sum(t.position.x for t in threats) / len(threats),
            sum(t.position.y for t in threats) / len(threats),
            sum(t.position.z for t in threats) / len(threats),
        )
        position = status.position
        escape = Vec3.of(
            position.x + (position.x - centroid.x) * 2,
            position.y,
            position.z + (position.z - centroid.z) * 2,
        )
        radius = max(self.config.flee_distance, escape.distance_to(centroid))
        goal = Goal.inverted(centroid, radius)

        was_attacking = self.attacking
        if not self.supervisor.acquire(self.flee_id, Priority.FLEE):
            return False

        self.fleeing = True
        self.state = CombatState.FLEEING
        logger.warning("Fleeing from threats", threats=len(threats), centroid=str(centroid), radius=round(radius, 1))
        try:
            self.supervisor.set_goal(self.flee_id, goal)
            if was_attacking:
                await self._stop_world("stop_attack", self.world.stop_attack)
                if self.attacking:
                    self._attack_finished()
            escaped = bool(await self._call("move_to", self.world.move_to, goal, holder=self.flee_id))
            if not escaped:
                logger.warning("Flee path failed")
            return escaped
        finally:
            self.fleeing = False
            self.state = self._resting_state()
            self.supervisor.release(self.flee_id)

    async def equip_best_weapon(self) -> bool:
        """Equip the best sword or axe in the inventory"""
        acquired = not self.supervisor.holds(self.skill_id)
        if acquired and not self.supervisor.acquire(self.skill_id, self.priority, on_preempt=self._on_preempt):
            return False
        try:
            return await self._equip_weapon()
        finally:
            if acquired:
                self.supervisor.release(self.skill_id)

    async def tick(self) -> None:
        """One check-and-act cycle of the defend/guard poll"""
        if self._poll_cancelled:
            return

        status = self.world.agent_status()
        if status.health <= self.config.flee_health_threshold:
            logger.warning("Health critical, fleeing", health=status.health)
            await self.stop_guarding()
            await self.stop_defending()
            await self.flee()
            return

        if self.attacking or self.fleeing:
            return

        hostiles = self.nearby_hostiles(self.config.attack_range + 5)
        if hostiles:
            await self.attack(hostiles[0], priority=Priority.GUARD)
        elif self.guarding:
            player = self.world.player(self.guarded_player)
            if player is not None:
                await self._follow_guarded(player)

    async def stop(self) -> None:
        if not self.is_active():
            return
        logger.info("Stopping combat", state=self.state.value)
        self._cancelled = True
        self._stop_poll()
        self.defending = False
        self.guarding = False
        self.guarded_player = None
        await self.stop_attacking()
        if self._in_flight == 0:
            self.supervisor.release(self.skill_id)
        self.state = self._resting_state()

    async def shutdown(self) -> None:
        task = self._poll_task
        await self.stop()
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    def nearby_hostiles(self, radius: float) -> List[EntityRef]:
        """Hostile entities within ``radius``, nearest first"""
        position = self.world.agent_status().position
        hostiles = [e for e in self.world.nearby_entities(radius) if e.is_hostile]
        hostiles = [e for e in hostiles if e.position.distance_to(position) <= radius]
        return sorted(hostiles, key=lambda e: e.position.distance_to(position))

    def _on_preempt(self) -> None:
        super()._on_preempt()
        self.attacking = False
        self.target = None
        self.state = self._resting_state()

    def _resting_state(self) -> CombatState:
        if self.fleeing:
            return CombatState.FLEEING
        if self.attacking:
            return CombatState.ATTACKING
        if self.guarding:
            return CombatState.GUARDING
        if self.defending:
            return CombatState.DEFENDING
        return CombatState.IDLE

    def _attack_finished(self) -> None:
        self.attacking = False
        self.target = None
        self.state = self._resting_state()
        if not self.guarding:
            self.supervisor.release(self.skill_id)

    async def _start_attack(self, entity: EntityRef) -> bool:
        await self.world.attack(entity)
        return True

    async def _equip_weapon(self) -> bool:
        weapon = best_weapon(self.world.inventory_snapshot())
        if weapon is None:
            return False
        return bool(await self._call("equip", self.world.equip, weapon, "hand"))

    async def _follow_guarded(self, player: EntityRef) -> None:
        goal = Goal.near_entity(player, self.config.guard_follow_range)
        self.supervisor.set_goal(self.skill_id, goal, dynamic=True)
        await self._call("set_goal", self.world.set_goal, goal, True, default=None)

    def _ensure_poll(self) -> None:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())

    def _stop_poll(self) -> None:
        self._poll_cancelled = True
        task = self._poll_task
        self._poll_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _poll_loop(self) -> None:
        interval = self.config.defend_interval_ms
        while not self._poll_cancelled and (self.defending or self.guarding):
            await self._pause(interval)
            await self.tick()
