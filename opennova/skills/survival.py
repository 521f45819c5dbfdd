"""
Survival skill - eating, armor and status
"""

from enum import Enum

from ..logging_config import get_logger
from ..schemas import AgentStatus
from ..supervisor import Priority
from .base import BaseSkill
from .equipment import best_armor, best_food

logger = get_logger(__name__)

MAX_FOOD = 20


class SurvivalState(str, Enum):
    IDLE = "idle"
    EATING = "eating"
    EQUIPPING = "equipping"


class SurvivalSkill(BaseSkill):
    skill_id = "survival"
    priority = Priority.TASK
    State = SurvivalState

    async def eat(self) -> bool:
        """Eat the most preferred food in the inventory"""
        if self.world.agent_status().food >= MAX_FOOD:
            logger.info("Not hungry")
            return False
        food = best_food(self.world.inventory_snapshot())
        if food is None:
            logger.warning("No food available")
            return False
        if not self._begin(SurvivalState.EATING):
            return False

        logger.info("Eating", food=food)
        try:
            if not await self._call("equip", self.world.equip, food, "hand"):
                return False
            eaten = bool(await self._call("consume", self.world.consume))
            if eaten:
                logger.info("Finished eating", food=food)
            return eaten
        finally:
            self._end()

    async def equip_armor(self) -> bool:
        """Equip the best armor piece for each slot. True if anything was equipped."""
        pieces = best_armor(self.world.inventory_snapshot())
        if not pieces:
            logger.info("No armor to equip")
            return False
        if not self._begin(SurvivalState.EQUIPPING):
            return False

        equipped = 0
        try:
            for slot, piece in pieces.items():
                if not self.running():
                    break
                if await self._call("equip", self.world.equip, piece, slot):
                    equipped += 1
                    logger.info("Equipped armor", piece=piece, slot=slot)
            return equipped > 0
        finally:
            self._end()

    def status(self) -> AgentStatus:
        return self.world.agent_status()
