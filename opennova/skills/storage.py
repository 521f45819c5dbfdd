"""
Storage skill - moving items between the inventory and a nearby chest
"""

from enum import Enum
from typing import Optional

from ..logging_config import get_logger
from ..schemas import BlockRef
from ..supervisor import Priority
from ..world import ContainerHandle
from .base import BaseSkill

logger = get_logger(__name__)

CHEST_BLOCKS = ["chest", "trapped_chest", "barrel"]


class StorageState(str, Enum):
    IDLE = "idle"
    TRANSFERRING = "transferring"


class StorageSkill(BaseSkill):
    skill_id = "storage"
    priority = Priority.TASK
    State = StorageState

    async def store(self, item: Optional[str] = None) -> int:
        """Deposit ``item`` (or everything) into the nearest chest.

        Returns:
            Number of units stored
        """
        inventory = self.world.inventory_snapshot()
        if item is not None:
            if inventory.get(item, 0) == 0:
                logger.warning("Item not in inventory", item=item)
                return 0
            to_store = {item: inventory[item]}
        else:
            to_store = {name: count for name, count in inventory.items() if count > 0}
        if not to_store:
            return 0

        handle = await self._open_chest()
        if handle is None:
            return 0

        stored = 0
        try:
            for name, count in to_store.items():
                if not self.running():
                    break
                if not await self._call("deposit", handle.deposit, name, count):
                    logger.warning("Chest refused item", item=name)
                    break
                stored += count
            logger.info("Stored items", count=stored, kinds=len(to_store))
            return stored
        finally:
            await self._close(handle)

    async def withdraw(self, item: str, count: Optional[int] = None) -> int:
        """Take ``count`` of ``item`` (all of it by default) from the nearest chest"""
        handle = await self._open_chest()
        if handle is None:
            return 0

        try:
            available = handle.items().get(item, 0)
            amount = available if count is None else min(count, available)
            if amount <= 0:
                logger.warning("Item not in chest", item=item)
                return 0
            if not self.running():
                return 0
            if not await self._call("withdraw", handle.withdraw, item, amount):
                return 0
            logger.info("Withdrew items", item=item, count=amount)
            return amount
        finally:
            await self._close(handle)

    def find_chest(self) -> Optional[BlockRef]:
        return self.world.nearest_block(CHEST_BLOCKS, self.config.chest_search_radius)

    async def _open_chest(self) -> Optional[ContainerHandle]:
        chest = self.find_chest()
        if chest is None:
            logger.warning("No chest nearby", radius=self.config.chest_search_radius)
            return None
        if not self._begin(StorageState.TRANSFERRING):
            return None

        if not await self._approach(chest.position):
            self._end()
            return None
        handle = await self._call("open_container", self.world.open_container, chest, default=None)
        if handle is None:
            self._end()
        return handle

    async def _close(self, handle: ContainerHandle) -> None:
        try:
            await self._stop_world("close", handle.close)
        finally:
            self._end()
