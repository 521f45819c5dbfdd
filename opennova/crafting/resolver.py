"""
Crafting Resolver - recursive planning and execution of crafting chains
"""

import math
from enum import Enum
from typing import Dict, List, Optional

from ..errors import ResourceMissingError
from ..logging_config import get_logger
from ..schemas import BlockRef, RecipeNode
from ..supervisor import Priority
from ..skills.base import BaseSkill
from .plan import CraftPlan, PlanNode, PlanStatus
from .stations import UP, find_station, placement_candidates

logger = get_logger(__name__)

FURNACE = "furnace"
FUELS = ("coal", "charcoal", "coal_block")
ITEMS_PER_FUEL = 8


class CraftingState(str, Enum):
    IDLE = "idle"
    CRAFTING = "crafting"
    SMELTING = "smelting"


def normalize_item_name(name: str) -> str:
    return name.strip().lower().replace(" ", "_")


class CraftingResolver(BaseSkill):
    """Crafts items depth-first, crafting missing ingredients and stations on the way.

    The first recipe the recipe book returns is committed to; there is no
    backtracking to alternates. Inventory is re-read from the world before every
    decision since deeper crafts consume and produce items.
    """

    skill_id = "crafting"
    priority = Priority.TASK
    State = CraftingState

    def __init__(self, world, supervisor, config=None):
        super().__init__(world, supervisor, config)
        self.last_plan: Optional[CraftPlan] = None

    async def craft(self, item: str, count: int = 1) -> bool:
        """Make sure at least ``count`` of ``item`` is in the inventory.

        Args:
            item: Item name
            count: Units wanted in total (not additional units)

        Returns:
            True on success. On failure ``last_plan.missing_item`` names the
            deepest item that could not be obtained.
        """
        item = normalize_item_name(item)
        plan = CraftPlan(item=item, count=count)
        self.last_plan = plan

        if count <= 0 or self.world.count_item(item) >= count:
            plan.root.status = PlanStatus.SATISFIED
            logger.info("Already have item", item=item, count=count)
            return True

        if not self._begin(CraftingState.CRAFTING):
            plan.fail(item, "drive lock busy")
            return False

        logger.info("Crafting", item=item, count=count)
        try:
            await self._resolve(plan.root, [])
            logger.info("Craft complete", item=item, count=count, steps=len(plan.crafted()))
            return True
        except ResourceMissingError as e:
            plan.fail(e.item, e.reason)
            logger.warning("Craft failed", item=item, missing=e.item, reason=e.reason, depth=e.depth)
            return False
        finally:
            self._end()

    def recipes(self, item: str) -> List[RecipeNode]:
        return self.world.recipes_for(normalize_item_name(item), 1)

    def can_craft(self, item: str, count: int = 1) -> bool:
        """True if the item is on hand or the recipe book knows a recipe for it"""
        item = normalize_item_name(item)
        if self.world.count_item(item) >= count:
            return True
        return len(self.world.recipes_for(item, count)) > 0

    async def smelt(self, item: str, count: int = 1) -> bool:
        """Smelt ``count`` of ``item`` in the nearest furnace and take the output"""
        item = normalize_item_name(item)
        if self.world.count_item(item) < count:
            logger.warning("Not enough to smelt", item=item, count=count)
            return False

        furnace = find_station(self.world, FURNACE, self.config.station_search_radius)
        if furnace is None:
            logger.warning("No furnace found nearby")
            return False

        inventory = self.world.inventory_snapshot()
        fuel = next((name for name in FUELS if inventory.get(name, 0) > 0), None)
        if fuel is None:
            logger.warning("No fuel available")
            return False

        if not self._begin(CraftingState.SMELTING):
            return False

        try:
            if not await self._approach(furnace.position):
                logger.warning("Furnace unreachable", position=str(furnace.position))
                return False
            handle = await self._call("open_container", self.world.open_container, furnace, default=None)
            if handle is None:
                return False

            try:
                fuel_count = min(inventory[fuel], math.ceil(count / ITEMS_PER_FUEL))
                if not await self._call("deposit", handle.deposit, fuel, fuel_count, slot="fuel"):
                    logger.warning("Furnace refused fuel", fuel=fuel)
                    return False
                if not await self._call("deposit", handle.deposit, item, count, slot="input"):
                    logger.warning("Furnace refused input", item=item)
                    return False

                logger.info("Smelting in progress", item=item, count=count, fuel=fuel)
                await self._pause(self.config.smelt_seconds_per_item * count * 1000)

                outputs = {name: n for name, n in handle.items().items() if name not in (item, fuel)}
                for name, n in outputs.items():
                    if not self.running():
                        logger.info("Smelting interrupted, output left in furnace", item=item)
                        return False
                    if not await self._call("withdraw", handle.withdraw, name, n, slot="output"):
                        logger.warning("Could not take smelted output", output=name)
                        return False
                    logger.info("Smelted", output=name, count=n)
                return True
            finally:
                await self._stop_world("close", handle.close)
        finally:
            self._end()

    async def _resolve(self, node: PlanNode, path: List[str]) -> None:
        item = node.item
        if not self.running():
            node.status = PlanStatus.FAILED
            raise ResourceMissingError(item, "crafting cancelled", node.depth)
        if item in path:
            node.status = PlanStatus.FAILED
            raise ResourceMissingError(item, f"recipe cycle: {' -> '.join(path + [item])}", node.depth)
        if len(path) >= self.config.max_craft_depth:
            node.status = PlanStatus.FAILED
            raise ResourceMissingError(item, "recipe chain too deep", node.depth)

        on_hand = self.world.count_item(item)
        if on_hand >= node.requested:
            node.status = PlanStatus.SATISFIED
            return

        needed = node.requested - on_hand
        node.remaining = needed
        recipes = self.world.recipes_for(item, needed)
        if not recipes:
            node.status = PlanStatus.FAILED
            raise ResourceMissingError(item, "no recipe and not enough on hand", node.depth)

        recipe = recipes[0]
        operations = recipe.operations_for(needed)
        node.recipe = recipe
        node.operations = operations
        node.status = PlanStatus.IN_PROGRESS
        logger.debug("Resolving", item=item, needed=needed, operations=operations, depth=node.depth)

        totals = recipe.ingredient_totals(operations)
        try:
            await self._gather_ingredients(node, totals, path + [item])

            station = None
            if recipe.requires_station:
                station = await self._acquire_station(node, recipe.station, path + [item])
                # Crafting the station may have eaten into our ingredients
                await self._gather_ingredients(node, totals, path + [item])
                if not await self._approach(station.position):
                    raise ResourceMissingError(recipe.station, "station unreachable", node.depth + 1)

            if not self.running():
                raise ResourceMissingError(item, "crafting cancelled", node.depth)
            crafted = await self._call("craft_recipe", self.world.craft_recipe, recipe, operations, station)
            if not crafted:
                raise ResourceMissingError(item, "craft call failed", node.depth)
        except ResourceMissingError:
            node.status = PlanStatus.FAILED
            raise

        logger.info("Crafted", item=item, operations=operations, produced=operations * recipe.result_count)
        node.remaining = 0
        node.status = PlanStatus.SATISFIED

    async def _gather_ingredients(self, node: PlanNode, totals: Dict[str, int], path: List[str]) -> None:
        """Craft every short ingredient, repeating when a later craft used up an earlier one"""
        for _ in range(self.config.max_ingredient_passes):
            short = [name for name, total in totals.items() if self.world.count_item(name) < total]
            if not short:
                return
            for name in short:
                if self.world.count_item(name) >= totals[name]:
                    continue
                await self._resolve(node.add_child(name, totals[name]), path)

        for name, total in totals.items():
            if self.world.count_item(name) < total:
                raise ResourceMissingError(name, "ingredient used up by other crafts", node.depth + 1)

    async def _acquire_station(self, node: PlanNode, station: str, path: List[str]) -> BlockRef:
        block = find_station(self.world, station, self.config.station_search_radius)
        if block is None:
            if self.world.count_item(station) == 0:
                logger.info("No station nearby, crafting one", station=station)
                await self._resolve(node.add_child(station, 1), path)
            block = await self._place_station(station)
            if block is None:
                raise ResourceMissingError(station, "no place to put the station", node.depth + 1)
        return block

    async def _place_station(self, station: str) -> Optional[BlockRef]:
        for anchor, spot in placement_candidates(self.world):
            if not self.running():
                return None
            if not await self._call("equip", self.world.equip, station, "hand"):
                return None
            if await self._call("place_block", self.world.place_block, anchor, UP, station):
                placed = self.world.block_at(spot)
                logger.info("Placed station", station=station, position=str(spot))
                if placed is not None and placed.name == station:
                    return placed
                return BlockRef(name=station, position=spot)
            logger.debug("Placement rejected, trying next spot", station=station, position=str(spot))
        return None
