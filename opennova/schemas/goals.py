"""Navigation goals consumed by the movement capability."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .world import EntityRef, Vec3


class GoalKind(str, Enum):
    EXACT_BLOCK = "exact_block"
    NEAR_POINT = "near_point"
    NEAR_ENTITY = "near_entity"
    INVERTED = "inverted"


class Goal(BaseModel):
    """Immutable navigation intent.

    NearEntity goals track an entity and are the only goals that are dynamic:
    their target is recomputed every tick while the entity moves. Inverted goals
    are satisfied once the agent is at least ``tolerance`` away from the target.
    """

    model_config = ConfigDict(frozen=True)

    kind: GoalKind
    point: Optional[Vec3] = None
    entity: Optional[EntityRef] = None
    tolerance: float = Field(0.0, ge=0, description="Acceptable distance from the target")
    dynamic: bool = False

    @model_validator(mode="after")
    def check_target(self) -> "Goal":
        if self.kind == GoalKind.NEAR_ENTITY:
            if self.entity is None:
                raise ValueError("near_entity goal requires an entity")
        elif self.point is None:
            raise ValueError(f"{self.kind.value} goal requires a point")
        if self.dynamic and self.kind != GoalKind.NEAR_ENTITY:
            raise ValueError("only near_entity goals can be dynamic")
        return self

    @classmethod
    def exact_block(cls, point: Vec3) -> "Goal":
        return cls(kind=GoalKind.EXACT_BLOCK, point=point.floored())

    @classmethod
    def near_point(cls, point: Vec3, tolerance: float = 2.0) -> "Goal":
        return cls(kind=GoalKind.NEAR_POINT, point=point, tolerance=tolerance)

    @classmethod
    def near_entity(cls, entity: EntityRef, tolerance: float = 2.0) -> "Goal":
        return cls(kind=GoalKind.NEAR_ENTITY, entity=entity, tolerance=tolerance, dynamic=True)

    @classmethod
    def inverted(cls, point: Vec3, radius: float) -> "Goal":
        return cls(kind=GoalKind.INVERTED, point=point, tolerance=radius)

    @property
    def target(self) -> Vec3:
        """Current target position (the entity's last known position for NearEntity)."""
        if self.kind == GoalKind.NEAR_ENTITY:
            return self.entity.position
        return self.point

    def is_satisfied(self, position: Vec3) -> bool:
        distance = position.distance_to(self.target)
        if self.kind == GoalKind.EXACT_BLOCK:
            return position.floored() == self.point
        if self.kind == GoalKind.INVERTED:
            return distance >= self.tolerance
        return distance <= self.tolerance
