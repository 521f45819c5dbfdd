"""World value objects - positions, blocks, entities and agent status."""

import math
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

AIR_BLOCKS = frozenset({"air", "cave_air", "void_air"})
LIQUID_BLOCKS = frozenset({"water", "lava"})

HOSTILE_MOBS = (
    "zombie",
    "skeleton",
    "creeper",
    "spider",
    "cave_spider",
    "enderman",
    "witch",
    "slime",
    "phantom",
    "drowned",
    "husk",
    "stray",
    "pillager",
    "vindicator",
    "ravager",
    "blaze",
    "ghast",
    "wither_skeleton",
    "piglin_brute",
)


class Vec3(BaseModel):
    """Immutable 3D position in the Minecraft world."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="X coordinate")
    y: float = Field(..., description="Y coordinate")
    z: float = Field(..., description="Z coordinate")

    @classmethod
    def of(cls, x: float, y: float, z: float) -> "Vec3":
        return cls(x=x, y=y, z=z)

    @classmethod
    def from_any(cls, value: Any) -> "Vec3":
        """Build a Vec3 from a dict, a sequence or any object exposing x/y/z."""
        if isinstance(value, Vec3):
            return value
        if isinstance(value, dict):
            return cls(x=value["x"], y=value["y"], z=value["z"])
        if isinstance(value, (list, tuple)):
            x, y, z = value
            return cls(x=x, y=y, z=z)
        return cls(x=getattr(value, "x"), y=getattr(value, "y"), z=getattr(value, "z"))

    def offset(self, dx: float = 0, dy: float = 0, dz: float = 0) -> "Vec3":
        return Vec3(x=self.x + dx, y=self.y + dy, z=self.z + dz)

    def plus(self, other: "Vec3") -> "Vec3":
        return self.offset(other.x, other.y, other.z)

    def minus(self, other: "Vec3") -> "Vec3":
        return self.offset(-other.x, -other.y, -other.z)

    def scaled(self, factor: float) -> "Vec3":
        return Vec3(x=self.x * factor, y=self.y * factor, z=self.z * factor)

    def floored(self) -> "Vec3":
        return Vec3(x=math.floor(self.x), y=math.floor(self.y), z=math.floor(self.z))

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt((other.x - self.x) ** 2 + (other.y - self.y) ** 2 + (other.z - self.z) ** 2)

    def horizontal_distance_to(self, other: "Vec3") -> float:
        return math.sqrt((other.x - self.x) ** 2 + (other.z - self.z) ** 2)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"({math.floor(self.x)}, {math.floor(self.y)}, {math.floor(self.z)})"


class BlockRef(BaseModel):
    """A block observed at a position. Only valid until the next suspension."""

    model_config = ConfigDict(frozen=True)

    name: str
    position: Vec3
    material: Optional[str] = Field(None, description="Harvest material, e.g. 'mineable/pickaxe'")
    harvest_tools: Tuple[str, ...] = Field(default=(), description="Item names able to harvest the block")

    @property
    def is_air(self) -> bool:
        return self.name in AIR_BLOCKS

    @property
    def is_liquid(self) -> bool:
        return self.name in LIQUID_BLOCKS

    @property
    def is_solid(self) -> bool:
        return not self.is_air and not self.is_liquid


class EntityRef(BaseModel):
    """Reference to an entity (player, mob or dropped item)."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    kind: str = Field("mob", description="player, hostile, mob, item or object")
    position: Vec3
    username: Optional[str] = None

    @property
    def is_hostile(self) -> bool:
        if self.kind == "hostile":
            return True
        if self.kind not in ("mob", "hostile"):
            return False
        return any(mob in self.name for mob in HOSTILE_MOBS)

    @property
    def is_item(self) -> bool:
        return self.kind == "item"

    @property
    def display_name(self) -> str:
        return self.username or self.name


class AgentStatus(BaseModel):
    """Snapshot of the agent's own body."""

    model_config = ConfigDict(frozen=True)

    position: Vec3
    yaw: float = 0.0
    health: float = 20.0
    food: float = 20.0
    saturation: float = 5.0
