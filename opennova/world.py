"""
World Interface - the fixed capability surface the agent core drives
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from .schemas import AgentStatus, BlockRef, EntityRef, Goal, RecipeNode, Vec3

WORLD_EVENTS = ("attack_ended", "health", "death")


class ContainerHandle(ABC):
    """An open container window (chest, furnace). Must be closed by the opener."""

    @abstractmethod
    async def deposit(self, item: str, count: int, slot: Optional[str] = None) -> bool:
        """Move ``count`` of ``item`` from the inventory into the container (or a named slot)"""

    @abstractmethod
    async def withdraw(self, item: str, count: int, slot: Optional[str] = None) -> bool:
        """Move ``count`` of ``item`` out of the container (or a named slot)"""

    @abstractmethod
    def items(self) -> Dict[str, int]:
        """Current container contents by item name"""

    @abstractmethod
    async def close(self) -> None:
        """Close the window"""


class WorldInterface(ABC):
    """Capability calls, snapshot queries and event subscription for one agent body.

    Async methods may suspend the calling task. A call that is rejected either
    returns False or raises ``WorldCallError``; the skills treat both the same.
    Snapshot queries are synchronous and reflect the world at the time of the
    call only.
    """

    # Movement

    @abstractmethod
    async def move_to(self, goal: Goal) -> bool:
        """Move until ``goal`` is satisfied. Raises UnreachableError on no path or timeout."""

    @abstractmethod
    async def set_goal(self, goal: Optional[Goal], dynamic: bool = False) -> None:
        """Replace the background movement goal without waiting for it"""

    @abstractmethod
    async def stop_movement(self) -> None:
        pass

    # Combat

    @abstractmethod
    async def attack(self, entity: EntityRef) -> None:
        """Start attacking ``entity``. Completion is signalled by the ``attack_ended`` event."""

    @abstractmethod
    async def stop_attack(self) -> None:
        pass

    # Blocks and items

    @abstractmethod
    async def break_block(self, block: BlockRef) -> bool:
        pass

    @abstractmethod
    async def place_block(self, anchor: BlockRef, face: Vec3, item: str) -> bool:
        """Place ``item`` against ``anchor`` on the face pointed to by ``face``"""

    @abstractmethod
    async def open_container(self, block: BlockRef) -> ContainerHandle:
        """Open a container block. Raises WorldCallError when it cannot be opened."""

    @abstractmethod
    async def equip(self, item: str, destination: str = "hand") -> bool:
        pass

    @abstractmethod
    async def consume(self) -> bool:
        """Eat or drink the held item"""

    # Crafting

    @abstractmethod
    def recipes_for(self, item: str, count: int = 1) -> List[RecipeNode]:
        """Recipes producing ``item``, in recipe-book order"""

    @abstractmethod
    async def craft_recipe(self, recipe: RecipeNode, operations: int, station: Optional[BlockRef] = None) -> bool:
        """Run ``recipe`` ``operations`` times, at ``station`` when given"""

    # Snapshots

    @abstractmethod
    def inventory_snapshot(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def agent_status(self) -> AgentStatus:
        pass

    @abstractmethod
    def nearby_entities(self, radius: float) -> List[EntityRef]:
        pass

    @abstractmethod
    def entity(self, entity_id: int) -> Optional[EntityRef]:
        pass

    @abstractmethod
    def player(self, name: str) -> Optional[EntityRef]:
        pass

    @abstractmethod
    def block_at(self, position: Vec3) -> Optional[BlockRef]:
        pass

    @abstractmethod
    def find_blocks(self, names: List[str], max_distance: float, count: int = 1) -> List[Vec3]:
        """Positions of matching blocks, nearest first"""

    # Events

    @abstractmethod
    def add_listener(self, event: str, handler: Callable) -> None:
        """Subscribe to ``attack_ended``, ``health`` or ``death``"""

    def count_item(self, item: str) -> int:
        return self.inventory_snapshot().get(item, 0)

    def nearest_block(self, names: List[str], max_distance: float) -> Optional[BlockRef]:
        positions = self.find_blocks(names, max_distance, 1)
        if not positions:
            return None
        return self.block_at(positions[0])
