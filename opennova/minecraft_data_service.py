"""
Minecraft Data Service - item, block and recipe lookups backed by python-minecraft-data
"""

from difflib import SequenceMatcher
from typing import Any, Dict, List, Optional, Tuple

import minecraft_data

from .logging_config import get_logger
from .schemas import DEFAULT_STATION, RecipeNode

logger = get_logger(__name__)

INVENTORY_GRID = 2
INVENTORY_SHAPELESS_SLOTS = 4


class MinecraftDataService:
    """Recipe book and block metadata for one Minecraft version.

    One instance is shared per version.
    """

    _instance = None
    _version = None

    def __new__(cls, mc_version: str = "1.21.1"):
        if cls._instance is None or cls._version != mc_version:
            cls._instance = super().__new__(cls)
            cls._version = mc_version
        return cls._instance

    def __init__(self, mc_version: str = "1.21.1"):
        if not hasattr(self, "mc_data") or self.version != mc_version:
            try:
                self.mc_data = minecraft_data(mc_version)
                self.version = mc_version
                logger.info("Initialized MinecraftDataService", version=mc_version)
            except Exception as e:
                logger.error("Failed to load minecraft-data", version=mc_version, error=str(e))
                raise

    def get_item_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        item = self.mc_data.items_name.get(name)
        if item:
            return item
        return self.mc_data.find_item_or_block(name)

    def get_item_by_id(self, item_id: int) -> Optional[Dict[str, Any]]:
        if 0 <= item_id < len(self.mc_data.items_list):
            return self.mc_data.items_list[item_id]
        return None

    def get_block_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return self.mc_data.blocks_name.get(name)

    def get_recipes_for_item_name(self, item_name: str) -> List[Dict[str, Any]]:
        """Raw minecraft-data recipes producing ``item_name``"""
        item = self.get_item_by_name(item_name)
        if not item:
            return []
        return self.mc_data.recipes.get(str(item["id"]), [])

    def get_recipe_materials(self, recipe: Dict[str, Any]) -> Dict[str, int]:
        """Ingredient counts for one craft of ``recipe``, in first-seen order.

        Alternative ingredients (lists) resolve to their first option.
        """
        materials: Dict[str, int] = {}

        def add(ingredient: Any) -> None:
            if ingredient is None:
                return
            if isinstance(ingredient, list):
                if ingredient:
                    add(ingredient[0])
                return

            count = 1
            if isinstance(ingredient, dict):
                count = ingredient.get("count", 1)
                ingredient = ingredient.get("id", ingredient.get("name"))
            if isinstance(ingredient, (int, float)):
                item = self.get_item_by_id(int(ingredient))
                if not item:
                    return
                name = item["name"]
            elif isinstance(ingredient, str):
                name = ingredient
            else:
                return
            materials[name] = materials.get(name, 0) + count

        if "inShape" in recipe:
            for row in recipe["inShape"]:
                if isinstance(row, list):
                    for slot in row:
                        add(slot)
                else:
                    add(row)
        elif "ingredients" in recipe:
            for ingredient in recipe["ingredients"]:
                add(ingredient)

        return materials

    def recipe_needs_station(self, recipe: Dict[str, Any]) -> bool:
        """True unless the recipe fits the 2x2 inventory crafting grid"""
        if "inShape" in recipe:
            shape = recipe["inShape"]
            return len(shape) > INVENTORY_GRID or any(len(row) > INVENTORY_GRID for row in shape)
        if "ingredients" in recipe:
            return len(recipe["ingredients"]) > INVENTORY_SHAPELESS_SLOTS
        return True

    def needs_crafting_table(self, item_name: str) -> bool:
        recipes = self.get_recipes_for_item_name(item_name)
        if not recipes:
            return True
        return all(self.recipe_needs_station(recipe) for recipe in recipes)

    def recipe_nodes(self, item_name: str) -> List[RecipeNode]:
        """Recipes for ``item_name`` as RecipeNodes, in minecraft-data order"""
        nodes = []
        for recipe in self.get_recipes_for_item_name(item_name):
            materials = self.get_recipe_materials(recipe)
            if not materials:
                continue
            result = recipe.get("result", {})
            nodes.append(
                RecipeNode.build(
                    item=item_name,
                    ingredients=materials,
                    result_count=max(int(result.get("count", 1)), 1),
                    requires_station=self.recipe_needs_station(recipe),
                    station=DEFAULT_STATION,
                )
            )
        return nodes

    def block_material(self, block_name: str) -> Optional[str]:
        block = self.get_block_by_name(block_name)
        if not block:
            return None
        return block.get("material")

    def harvest_tools(self, block_name: str) -> Tuple[str, ...]:
        """Item names able to harvest ``block_name`` (empty when any tool works)"""
        block = self.get_block_by_name(block_name)
        if not block or not block.get("harvestTools"):
            return ()
        tools = []
        for item_id in block["harvestTools"]:
            item = self.get_item_by_id(int(item_id))
            if item:
                tools.append(item["name"])
        return tuple(tools)

    def normalize_item_name(self, item_name: str) -> str:
        """Map a user supplied item name to a minecraft-data name where possible"""
        normalized = item_name.lower().strip().replace(" ", "_")

        if self.get_item_by_name(normalized):
            return normalized
        if normalized.endswith("s") and len(normalized) > 2 and self.get_item_by_name(normalized[:-1]):
            return normalized[:-1]

        best_match = self.fuzzy_match_item_name(normalized)
        return best_match or normalized

    def fuzzy_match_item_name(self, query: str, threshold: float = 0.75) -> Optional[str]:
        best_name = None
        best_score = 0.0
        for name in self.mc_data.items_name:
            score = SequenceMatcher(None, query, name).ratio()
            if query in name:
                score = max(score, 0.8)
            if score > best_score:
                best_name, best_score = name, score
        if best_score >= threshold:
            logger.debug("Fuzzy matched item name", query=query, match=best_name, score=round(best_score, 2))
            return best_name
        return None
