"""
Mining skill - block mining, strip mining, ore search and item collection
"""

import math
from enum import Enum
from typing import Iterable, List, Optional, Union

from ..logging_config import get_logger
from ..schemas import AIR_BLOCKS, BlockRef, Goal, Vec3
from ..supervisor import Priority
from .base import BaseSkill
from .equipment import best_tool

logger = get_logger(__name__)

STRIP_MINE_SKIP = AIR_BLOCKS | {"bedrock", "lava", "water"}

ORES = (
    "diamond_ore",
    "deepslate_diamond_ore",
    "iron_ore",
    "deepslate_iron_ore",
    "gold_ore",
    "deepslate_gold_ore",
    "coal_ore",
    "deepslate_coal_ore",
)

LOGS = (
    "oak_log",
    "birch_log",
    "spruce_log",
    "jungle_log",
    "acacia_log",
    "dark_oak_log",
    "mangrove_log",
    "cherry_log",
)

MAX_COLLECT_ITEMS = 10


class MiningState(str, Enum):
    IDLE = "idle"
    MINING_SINGLE = "mining_single"
    STRIP_MINING = "strip_mining"
    ORE_SEARCH = "ore_search"


def _clamp(value: int, upper: int) -> int:
    return max(0, min(int(value), upper))


class MiningSkill(BaseSkill):
    """Finds and breaks blocks at Task priority.

    Every loop re-reads the world each iteration: a block located before a
    suspension is looked up again before it is broken.
    """

    skill_id = "miner"
    priority = Priority.TASK
    State = MiningState

    def __init__(self, world, supervisor, config=None):
        super().__init__(world, supervisor, config)
        self.last_steps = 0

    async def mine_blocks(self, names: Union[str, Iterable[str]], count: int = 1, auto_collect: bool = True) -> int:
        """Mine up to ``count`` blocks matching ``names``, nearest first.

        Args:
            names: Block name or names to look for
            count: Blocks to mine, clamped to the configured maximum
            auto_collect: Walk over nearby drops after each block

        Returns:
            Number of blocks broken
        """
        names = [names] if isinstance(names, str) else list(names)
        count = _clamp(count, self.config.max_mine_count)
        if count == 0 or not names:
            return 0
        if not self._begin(MiningState.MINING_SINGLE):
            return 0

        logger.info("Mining blocks", blocks=names, count=count)
        try:
            mined = await self._mine_loop(names, count, auto_collect, self.config.max_search_distance)
            logger.info("Finished mining", blocks=names, mined=mined, requested=count)
            return mined
        finally:
            self._end()

    async def dig_at(self, position: Vec3) -> bool:
        position = position.floored()
        block = self.world.block_at(position)
        if block is None or block.is_air:
            logger.warning("No block to dig", position=str(position))
            return False
        if not self._begin(MiningState.MINING_SINGLE):
            return False

        logger.info("Digging block", block=block.name, position=str(position))
        try:
            return await self._dig(position)
        finally:
            self._end()

    async def strip_mine(self, length: int = 20) -> int:
        """Mine a two-tall tunnel along the agent's heading.

        Returns:
            Number of blocks broken. ``last_steps`` holds the number of steps taken.
        """
        length = _clamp(length, self.config.max_strip_length)
        self.last_steps = 0
        if not self._begin(MiningState.STRIP_MINING):
            return 0

        status = self.world.agent_status()
        dx = -math.sin(status.yaw)
        dz = -math.cos(status.yaw)
        start = status.position
        mined = 0
        logger.info("Starting strip mine", length=length, heading=(round(dx, 2), round(dz, 2)))

        try:
            for step in range(length):
                if not self.running():
                    break
                column = Vec3.of(
                    math.floor(start.x + dx * step),
                    math.floor(start.y),
                    math.floor(start.z + dz * step),
                )
                for dy in (0, 1):
                    if not self.running():
                        break
                    position = column.offset(dy=dy)
                    block = self.world.block_at(position)
                    if block is None or block.name in STRIP_MINE_SKIP:
                        continue
                    if await self._dig(position):
                        mined += 1
                if not self.running():
                    break
                self.last_steps = step + 1
                await self._pause(self.config.strip_step_delay_ms)

            logger.info("Strip mining complete", mined=mined, steps=self.last_steps)
            return mined
        finally:
            self._end()

    async def mine_ores(self, max_blocks: int = 5) -> int:
        """Mine one block of each ore in priority order until ``max_blocks`` are mined"""
        limit = _clamp(max_blocks, self.config.max_ore_blocks)
        if limit == 0:
            return 0
        if not self._begin(MiningState.ORE_SEARCH):
            return 0

        logger.info("Searching for ores", limit=limit)
        total = 0
        try:
            for ore in ORES:
                if total >= limit or not self.running():
                    break
                found = self.world.find_blocks([ore], self.config.ore_search_distance, 1)
                if not found:
                    continue
                logger.info("Found ore", ore=ore, position=str(found[0]))
                if await self._dig(found[0], expected=[ore]):
                    total += 1
                await self._pause(self.config.mine_step_delay_ms)

            logger.info("Ore mining complete", mined=total)
            return total
        finally:
            self._end()

    async def chop_wood(self, count: int = 10) -> int:
        count = _clamp(count, self.config.max_mine_count)
        if count == 0:
            return 0
        if not self._begin(MiningState.MINING_SINGLE):
            return 0

        logger.info("Chopping wood", count=count)
        try:
            chopped = await self._mine_loop(list(LOGS), count, True, self.config.wood_search_distance)
            if chopped == 0:
                logger.warning("No trees found nearby")
            return chopped
        finally:
            self._end()

    async def collect_items(self, range: float = 8.0) -> int:
        """Walk onto dropped items within ``range``"""
        if not self._begin(MiningState.MINING_SINGLE):
            return 0
        try:
            return await self._collect(self.world.agent_status().position, range)
        finally:
            self._end()

    async def equip_tool_for(self, block: BlockRef) -> bool:
        tool = best_tool(block, self.world.inventory_snapshot())
        if tool is None:
            return False
        return bool(await self._call("equip", self.world.equip, tool, "hand"))

    async def stop(self) -> None:
        if not self.is_active():
            return
        await super().stop()
        await self._stop_world("stop_movement", self.world.stop_movement)

    async def _mine_loop(self, names: List[str], count: int, auto_collect: bool, max_distance: float) -> int:
        mined = 0
        skipped = 0
        search_count = min(count, self.config.max_search_count)

        while mined < count and self.running():
            found = self.world.find_blocks(names, max_distance, search_count)
            if not found:
                logger.info("No more matching blocks", blocks=names)
                break

            target = found[0]
            if not await self._approach(target):
                logger.warning("Could not reach block", position=str(target))
                break
            if not self.running():
                break

            block = self._current_block(target, names)
            if block is None:
                skipped += 1
                logger.debug("Block changed before mining, skipping", position=str(target), skipped=skipped)
                if skipped > self.config.max_skipped_blocks:
                    break
                continue

            await self.equip_tool_for(block)
            block = self._current_block(target, names)
            if block is None:
                skipped += 1
                if skipped > self.config.max_skipped_blocks:
                    break
                continue

            if not await self._call("break_block", self.world.break_block, block):
                logger.warning("Failed to break block", block=block.name, position=str(target))
                break

            mined += 1
            logger.debug("Mined block", block=block.name, mined=mined, count=count)

            if auto_collect and self.running():
                await self._pause(self.config.collect_delay_ms)
                await self._collect(target, self.config.collect_radius)
            await self._pause(self.config.mine_step_delay_ms)

        return mined

    async def _dig(self, position: Vec3, expected: Optional[List[str]] = None) -> bool:
        """Approach, equip and break the block at ``position`` if it is still there"""
        block = self._current_block(position, expected)
        if block is None:
            return False
        if not await self._approach(position):
            return False

        block = self._current_block(position, expected)
        if block is None:
            return False
        await self.equip_tool_for(block)

        block = self._current_block(position, expected)
        if block is None or not self.running():
            return False
        return bool(await self._call("break_block", self.world.break_block, block))

    def _current_block(self, position: Vec3, names: Optional[List[str]] = None) -> Optional[BlockRef]:
        block = self.world.block_at(position)
        if block is None or block.is_air:
            return None
        if names is not None and block.name not in names:
            return None
        return block

    async def _collect(self, center: Vec3, radius: float) -> int:
        items = [e for e in self.world.nearby_entities(radius + self.config.interaction_radius) if e.is_item]
        items = sorted(
            (e for e in items if e.position.distance_to(center) <= radius),
            key=lambda e: e.position.distance_to(center),
        )[:MAX_COLLECT_ITEMS]

        collected = 0
        for item in items:
            if not self.running():
                break
            goal = Goal.near_point(item.position, 1.0)
            self.supervisor.set_goal(self.skill_id, goal)
            if await self._call("move_to", self.world.move_to, goal):
                collected += 1
        if collected:
            logger.debug("Collected items", count=collected)
        return collected
