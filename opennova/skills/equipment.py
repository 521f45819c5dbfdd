"""
Equipment selection - best tool, weapon, armor and food from an inventory snapshot
"""

from typing import Dict, Mapping, Optional

from ..schemas import BlockRef

TOOL_TIERS = ("netherite", "diamond", "iron", "stone", "wooden", "golden")
TOOL_TYPES = ("pickaxe", "axe", "shovel", "hoe", "sword")

WEAPONS = tuple(f"{tier}_sword" for tier in TOOL_TIERS) + tuple(f"{tier}_axe" for tier in TOOL_TIERS)

ARMOR_SLOTS = {
    "head": (
        "netherite_helmet",
        "diamond_helmet",
        "iron_helmet",
        "chainmail_helmet",
        "golden_helmet",
        "leather_helmet",
        "turtle_helmet",
    ),
    "torso": (
        "netherite_chestplate",
        "diamond_chestplate",
        "iron_chestplate",
        "chainmail_chestplate",
        "golden_chestplate",
        "leather_chestplate",
    ),
    "legs": (
        "netherite_leggings",
        "diamond_leggings",
        "iron_leggings",
        "chainmail_leggings",
        "golden_leggings",
        "leather_leggings",
    ),
    "feet": (
        "netherite_boots",
        "diamond_boots",
        "iron_boots",
        "chainmail_boots",
        "golden_boots",
        "leather_boots",
    ),
}

FOODS = (
    "golden_apple",
    "enchanted_golden_apple",
    "cooked_beef",
    "cooked_porkchop",
    "cooked_mutton",
    "cooked_chicken",
    "cooked_rabbit",
    "cooked_salmon",
    "cooked_cod",
    "bread",
    "baked_potato",
    "pumpkin_pie",
    "golden_carrot",
    "apple",
    "carrot",
    "potato",
    "melon_slice",
    "beef",
    "porkchop",
    "chicken",
    "mutton",
    "rabbit",
)


def _tier_rank(item: str) -> int:
    for rank, tier in enumerate(TOOL_TIERS):
        if item.startswith(f"{tier}_"):
            return rank
    return len(TOOL_TIERS)


def tool_type_for(block: BlockRef) -> Optional[str]:
    """Tool type that harvests ``block`` fastest, e.g. 'pickaxe' for 'mineable/pickaxe'"""
    if block.material and block.material.startswith("mineable/"):
        kind = block.material.split("/", 1)[1]
        if kind in TOOL_TYPES:
            return kind
    for tool in block.harvest_tools:
        kind = tool.rsplit("_", 1)[-1]
        if kind in TOOL_TYPES:
            return kind
    return None


def best_tool(block: BlockRef, inventory: Mapping[str, int]) -> Optional[str]:
    """Best tool in ``inventory`` for breaking ``block``, or None to use the hand"""
    candidates = [tool for tool in block.harvest_tools if inventory.get(tool, 0) > 0]
    if candidates:
        return min(candidates, key=_tier_rank)

    kind = tool_type_for(block)
    if kind is None:
        return None
    for tier in TOOL_TIERS:
        tool = f"{tier}_{kind}"
        if inventory.get(tool, 0) > 0:
            return tool
    return None


def best_weapon(inventory: Mapping[str, int]) -> Optional[str]:
    for weapon in WEAPONS:
        if inventory.get(weapon, 0) > 0:
            return weapon
    return None


def best_armor(inventory: Mapping[str, int]) -> Dict[str, str]:
    """Best armor piece available for each slot"""
    chosen = {}
    for slot, pieces in ARMOR_SLOTS.items():
        for piece in pieces:
            if inventory.get(piece, 0) > 0:
                chosen[slot] = piece
                break
    return chosen


def best_food(inventory: Mapping[str, int]) -> Optional[str]:
    for food in FOODS:
        if inventory.get(food, 0) > 0:
            return food
    return None
