"""Recursive crafting resolver."""

from .plan import CraftPlan, PlanNode, PlanStatus
from .resolver import CraftingResolver, CraftingState, normalize_item_name

__all__ = [
    "CraftingResolver",
    "CraftingState",
    "CraftPlan",
    "PlanNode",
    "PlanStatus",
    "normalize_item_name",
]
