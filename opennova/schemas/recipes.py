"""Recipe schemas produced by the recipe book."""

import math
from typing import Dict, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_STATION = "crafting_table"


class Ingredient(BaseModel):
    """One ingredient of a recipe, counted per craft operation."""

    model_config = ConfigDict(frozen=True)

    item: str
    count: int = Field(..., ge=1, description="Units consumed per craft operation")


class RecipeNode(BaseModel):
    """A recipe producing ``result_count`` units of ``item`` per operation."""

    model_config = ConfigDict(frozen=True)

    item: str
    result_count: int = Field(1, ge=1, description="Units produced per craft operation")
    ingredients: Tuple[Ingredient, ...] = ()
    requires_station: bool = False
    station: str = DEFAULT_STATION

    @classmethod
    def build(
        cls,
        item: str,
        ingredients: Mapping[str, int],
        result_count: int = 1,
        requires_station: bool = False,
        station: str = DEFAULT_STATION,
    ) -> "RecipeNode":
        return cls(
            item=item,
            result_count=result_count,
            ingredients=tuple(Ingredient(item=name, count=count) for name, count in ingredients.items()),
            requires_station=requires_station,
            station=station,
        )

    def operations_for(self, needed: int) -> int:
        """Craft operations required to produce at least ``needed`` units."""
        if needed <= 0:
            return 0
        return math.ceil(needed / self.result_count)

    def ingredient_totals(self, operations: int) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for ingredient in self.ingredients:
            totals[ingredient.item] = totals.get(ingredient.item, 0) + ingredient.count * operations
        return totals
