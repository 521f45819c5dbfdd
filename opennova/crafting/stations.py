"""
Station placement - where a crafting station may be put down near the agent
"""

from typing import List, Optional, Tuple

from ..schemas import BlockRef, Vec3
from ..world import WorldInterface

PLACEMENT_RING = (
    (1, 0, 0),
    (-1, 0, 0),
    (0, 0, 1),
    (0, 0, -1),
    (1, 0, 1),
    (-1, 0, -1),
    (1, 0, -1),
    (-1, 0, 1),
)

UP = Vec3.of(0, 1, 0)


def placement_candidates(world: WorldInterface) -> List[Tuple[BlockRef, Vec3]]:
    """Valid (anchor, spot) pairs around the agent, in ring order.

    A spot is valid when the block under it is solid and the spot itself is air.
    """
    origin = world.agent_status().position.floored()
    candidates = []
    for dx, dy, dz in PLACEMENT_RING:
        spot = origin.offset(dx, dy, dz)
        below = world.block_at(spot.offset(dy=-1))
        if below is None or not below.is_solid:
            continue
        current = world.block_at(spot)
        if current is not None and not current.is_air:
            continue
        candidates.append((below, spot))
    return candidates


def find_station(world: WorldInterface, station: str, radius: float) -> Optional[BlockRef]:
    return world.nearest_block([station], radius)
