"""
Mineflayer World - WorldInterface implementation over the JSPyBridge bot
"""

from typing import Any, Callable, Dict, List, Optional

from ..errors import UnreachableError, WorldCallError
from ..logging_config import get_logger
from ..minecraft_data_service import MinecraftDataService
from ..schemas import AgentStatus, BlockRef, EntityRef, Goal, RecipeNode, Vec3
from ..world import ContainerHandle, WorldInterface
from .bridge_manager import BridgeManager

logger = get_logger(__name__)

# World event name -> mineflayer event name
EVENT_MAP = {
    "attack_ended": "stoppedAttacking",
    "health": "health",
    "death": "death",
}

STOP_PRIORITY = 10


def _xyz(position: Vec3) -> Dict[str, float]:
    return {"x": position.x, "y": position.y, "z": position.z}


def _goal_args(goal: Goal) -> Dict[str, Any]:
    args = {"kind": goal.kind.value, "range": goal.tolerance}
    if goal.entity is not None:
        args["entityId"] = goal.entity.id
    args.update(_xyz(goal.target))
    return args


def _entity_kind(data: Dict[str, Any]) -> str:
    kind = data.get("type") or "object"
    if data.get("name") == "item":
        return "item"
    if kind in ("player", "hostile"):
        return kind
    if kind in ("mob", "animal", "passive", "water_creature", "ambient"):
        return "mob"
    return "object"


class MineflayerContainer(ContainerHandle):
    """A container window opened by the bot script"""

    def __init__(self, bridge: BridgeManager, window_id: Any, contents: Optional[List[Dict[str, Any]]] = None):
        self.bridge = bridge
        self.window_id = window_id
        self._contents = self._count(contents or [])

    @staticmethod
    def _count(items: List[Dict[str, Any]]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for item in items:
            counts[item["name"]] = counts.get(item["name"], 0) + int(item["count"])
        return counts

    async def _transfer(self, method: str, item: str, count: int, slot: Optional[str]) -> bool:
        try:
            result = await self.bridge.execute_command(
                method, id=self.window_id, item=item, count=count, slot=slot
            )
        except (RuntimeError, TimeoutError) as e:
            raise WorldCallError(method, str(e))
        if isinstance(result, dict) and "items" in result:
            self._contents = self._count(result["items"])
        return True

    async def deposit(self, item: str, count: int, slot: Optional[str] = None) -> bool:
        return await self._transfer("container.deposit", item, count, slot)

    async def withdraw(self, item: str, count: int, slot: Optional[str] = None) -> bool:
        return await self._transfer("container.withdraw", item, count, slot)

    def items(self) -> Dict[str, int]:
        return dict(self._contents)

    async def close(self) -> None:
        try:
            await self.bridge.execute_command("container.close", id=self.window_id)
        except (RuntimeError, TimeoutError) as e:
            raise WorldCallError("container.close", str(e))


class MineflayerWorld(WorldInterface):
    """Drives a Mineflayer bot through BridgeManager commands and queries.

    Transport failures become False or WorldCallError here so the agent core
    never sees bridge exceptions.
    """

    def __init__(self, bridge: BridgeManager, data_service: Optional[MinecraftDataService] = None):
        self.bridge = bridge
        self.data = data_service

    async def _command(self, method: str, priority: int = 0, **kwargs) -> Any:
        try:
            return await self.bridge.execute_command(method, priority=priority, **kwargs)
        except (RuntimeError, TimeoutError) as e:
            raise WorldCallError(method, str(e))

    async def _ok(self, method: str, **kwargs) -> bool:
        try:
            await self._command(method, **kwargs)
            return True
        except WorldCallError as e:
            logger.warning("World command failed", method=method, error=e.message)
            return False

    def _query(self, method: str, **kwargs) -> Any:
        try:
            return self.bridge.query(method, **kwargs)
        except RuntimeError as e:
            logger.warning("World query failed", method=method, error=str(e))
            return None

    # Movement

    async def move_to(self, goal: Goal) -> bool:
        try:
            await self._command("pathfinder.goto", goal=_goal_args(goal), timeout=self.bridge.config.pathfinder_timeout)
        except WorldCallError as e:
            raise UnreachableError(e.message)
        return True

    async def set_goal(self, goal: Optional[Goal], dynamic: bool = False) -> None:
        await self._command("pathfinder.setGoal", goal=_goal_args(goal) if goal else None, dynamic=dynamic)

    async def stop_movement(self) -> None:
        await self._command("pathfinder.stop", priority=STOP_PRIORITY)

    # Combat

    async def attack(self, entity: EntityRef) -> None:
        await self._command("pvp.attack", entityId=entity.id)

    async def stop_attack(self) -> None:
        await self._command("pvp.stop", priority=STOP_PRIORITY)

    # Blocks and items

    async def break_block(self, block: BlockRef) -> bool:
        return await self._ok("dig", **_xyz(block.position))

    async def place_block(self, anchor: BlockRef, face: Vec3, item: str) -> bool:
        return await self._ok("placeBlock", face=_xyz(face), item=item, **_xyz(anchor.position))

    async def open_container(self, block: BlockRef) -> ContainerHandle:
        result = await self._command("container.open", **_xyz(block.position))
        if not isinstance(result, dict) or "id" not in result:
            raise WorldCallError("container.open", f"no window for {block.name} at {block.position}")
        return MineflayerContainer(self.bridge, result["id"], result.get("items"))

    async def equip(self, item: str, destination: str = "hand") -> bool:
        return await self._ok("inventory.equip", item=item, destination=destination)

    async def consume(self) -> bool:
        return await self._ok("consume")

    # Crafting

    def recipes_for(self, item: str, count: int = 1) -> List[RecipeNode]:
        if self.data is None:
            return []
        return self.data.recipe_nodes(item)

    async def craft_recipe(self, recipe: RecipeNode, operations: int, station: Optional[BlockRef] = None) -> bool:
        table = _xyz(station.position) if station is not None else None
        return await self._ok("craft", item=recipe.item, count=operations, table=table)

    # Snapshots

    def inventory_snapshot(self) -> Dict[str, int]:
        items = self._query("inventory.items") or []
        counts: Dict[str, int] = {}
        for item in items:
            counts[item["name"]] = counts.get(item["name"], 0) + int(item["count"])
        return counts

    def agent_status(self) -> AgentStatus:
        data = self._query("entity.status")
        if not data:
            raise WorldCallError("entity.status", "bot entity not available")
        return AgentStatus(
            position=Vec3.from_any(data["position"]),
            yaw=data.get("yaw", 0.0),
            health=data.get("health", 20.0),
            food=data.get("food", 20.0),
            saturation=data.get("saturation", 5.0),
        )

    def _entity(self, data: Optional[Dict[str, Any]]) -> Optional[EntityRef]:
        if not data or data.get("position") is None:
            return None
        return EntityRef(
            id=data["id"],
            name=data.get("name") or "unknown",
            kind=_entity_kind(data),
            position=Vec3.from_any(data["position"]),
            username=data.get("username"),
        )

    def nearby_entities(self, radius: float) -> List[EntityRef]:
        entities = [self._entity(data) for data in self._query("entities.nearby", radius=radius) or []]
        return [entity for entity in entities if entity is not None]

    def entity(self, entity_id: int) -> Optional[EntityRef]:
        return self._entity(self._query("entities.get", id=entity_id))

    def player(self, name: str) -> Optional[EntityRef]:
        return self._entity(self._query("players.get", name=name))

    def block_at(self, position: Vec3) -> Optional[BlockRef]:
        data = self._query("world.getBlock", **_xyz(position.floored()))
        if not data:
            return None
        name = data["name"]
        material = data.get("material")
        harvest_tools = ()
        if self.data is not None:
            material = material or self.data.block_material(name)
            harvest_tools = self.data.harvest_tools(name)
        return BlockRef(
            name=name,
            position=Vec3.from_any(data.get("position") or position.floored()),
            material=material,
            harvest_tools=harvest_tools,
        )

    def find_blocks(self, names: List[str], max_distance: float, count: int = 1) -> List[Vec3]:
        positions = self._query("world.findBlocks", names=list(names), maxDistance=max_distance, count=count) or []
        return [Vec3.from_any(position) for position in positions]

    # Events

    def add_listener(self, event: str, handler: Callable) -> None:
        if event not in EVENT_MAP:
            raise ValueError(f"Unknown world event: {event}")
        if event == "health":
            self.bridge.register_event_handler("health", lambda *args: handler(self._health()))
        else:
            self.bridge.register_event_handler(EVENT_MAP[event], lambda *args: handler())

    def _health(self) -> float:
        data = self._query("entity.status")
        return float(data.get("health", 20.0)) if data else 20.0
