"""Schema definitions for world values, goals and recipes."""

from .goals import Goal, GoalKind
from .recipes import DEFAULT_STATION, Ingredient, RecipeNode
from .world import AIR_BLOCKS, HOSTILE_MOBS, LIQUID_BLOCKS, AgentStatus, BlockRef, EntityRef, Vec3

__all__ = [
    # World
    "Vec3",
    "BlockRef",
    "EntityRef",
    "AgentStatus",
    "AIR_BLOCKS",
    "LIQUID_BLOCKS",
    "HOSTILE_MOBS",
    # Goals
    "Goal",
    "GoalKind",
    # Recipes
    "Ingredient",
    "RecipeNode",
    "DEFAULT_STATION",
]
