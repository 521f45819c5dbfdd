"""
Tests for bridge functionality and the Mineflayer world adapter
"""

import asyncio
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from opennova.bridge import BridgeConfig, BridgeManager, MineflayerWorld
from opennova.errors import UnreachableError, WorldCallError
from opennova.schemas import BlockRef, EntityRef, Goal, RecipeNode, Vec3

from mocks import make_config, settle


def connected_bridge(execute_result=None):
    """Bridge wired to a mock bot wrapper without starting JSPyBridge"""
    bridge = BridgeManager(BridgeConfig(), auto_start=False)
    bridge.bot = MagicMock()
    bridge.bot.executeCommand.return_value = execute_result
    bridge.is_connected = True
    bridge.is_spawned = True
    return bridge


@pytest.mark.asyncio
async def test_bridge_initialization(tmp_path):
    """Test bridge initialization"""
    script = tmp_path / "index.js"
    script.write_text("// bot")
    bridge = BridgeManager(agent_config=make_config(bot_script_path=str(script), spawn_timeout_seconds=1))

    mock_bot_module = MagicMock()
    mock_bot_instance = MagicMock()
    mock_bot_instance.bot.bot.entity = MagicMock()
    mock_bot_module.startBot.return_value = mock_bot_instance
    javascript = MagicMock()
    javascript.require.return_value = mock_bot_module

    # Mock the JavaScript module loading
    with patch.dict(sys.modules, {"javascript": javascript}):
        await bridge.initialize()

    try:
        assert bridge.is_connected
        assert bridge.is_spawned
        assert bridge.bot is mock_bot_instance.bot
        options = mock_bot_module.startBot.call_args[0][0]
        assert options["username"] == "OpenNova"
        assert options["port"] == 25565
        events = [call.args[0] for call in mock_bot_instance.bot.bot.on.call_args_list]
        assert "stoppedAttacking" in events and "health" in events and "death" in events
    finally:
        await bridge.close()
    assert not bridge.is_connected


@pytest.mark.asyncio
async def test_bridge_missing_script(tmp_path):
    bridge = BridgeManager(agent_config=make_config(bot_script_path=str(tmp_path / "missing.js")))

    with patch.dict(sys.modules, {"javascript": MagicMock()}):
        with pytest.raises(FileNotFoundError):
            await bridge.initialize()


@pytest.mark.asyncio
async def test_bridge_without_auto_start():
    bridge = BridgeManager(auto_start=False)

    await bridge.initialize()

    assert not bridge.is_connected
    with pytest.raises(RuntimeError):
        await bridge.execute_command("pathfinder.stop")


@pytest.mark.asyncio
async def test_bridge_command_execution():
    """Test command execution through bridge"""
    bridge = connected_bridge(SimpleNamespace(success=True, result={"id": 7}))
    bridge._command_processor_task = asyncio.create_task(bridge._process_command_queue())

    try:
        result = await bridge.execute_command("container.open", x=1, y=64, z=2)
    finally:
        await bridge.close()

    assert result == {"id": 7}
    payload = bridge.bot.executeCommand.call_args[0][0]
    assert payload["method"] == "container.open"
    assert payload["args"] == {"x": 1, "y": 64, "z": 2}


@pytest.mark.asyncio
async def test_bridge_command_failure_raises():
    bridge = connected_bridge(SimpleNamespace(success=False, result=None, error="Cannot dig"))
    bridge._command_processor_task = asyncio.create_task(bridge._process_command_queue())

    try:
        with pytest.raises(RuntimeError, match="Cannot dig"):
            await bridge.execute_command("dig", x=0, y=64, z=0)
    finally:
        await bridge.close()


@pytest.mark.asyncio
async def test_bridge_command_timeout():
    bridge = connected_bridge()
    bridge.config.command_timeout = 10

    with pytest.raises(TimeoutError):
        await bridge.execute_command("consume")
    assert bridge.pending_commands == {}


@pytest.mark.asyncio
async def test_bridge_events_reach_handlers_on_loop():
    bridge = BridgeManager(auto_start=False)
    await bridge.initialize()
    received = []
    bridge.register_event_handler("health", lambda *args: received.append(args))

    bridge._handle_event("health", ("a",))

    assert await settle(lambda: received)
    assert received == [("a",)]


def test_bridge_config():
    """Test bridge configuration"""
    config = BridgeConfig.from_agent_config(make_config(command_timeout_ms=5000, pathfinder_timeout_ms=1000))

    assert config.command_timeout == 5000
    assert config.pathfinder_timeout == 1000
    assert config.batch_size == 10


def test_pathfinder_commands_get_longer_timeout():
    bridge = BridgeManager(BridgeConfig(command_timeout=100, pathfinder_timeout=2000), auto_start=False)
    goto = SimpleNamespace(method="pathfinder.goto", args={})
    dig = SimpleNamespace(method="dig", args={})

    assert bridge._command_timeout(goto) == 7000
    assert bridge._command_timeout(dig) == 100


def world_with(execute=None, query=None):
    bridge = MagicMock()
    bridge.config = BridgeConfig()
    bridge.execute_command = AsyncMock(side_effect=execute)
    bridge.query = MagicMock(side_effect=query)
    return MineflayerWorld(bridge), bridge


@pytest.mark.asyncio
async def test_world_move_failure_is_unreachable():
    world, bridge = world_with(execute=RuntimeError("No path"))

    with pytest.raises(UnreachableError):
        await world.move_to(Goal.near_point(Vec3.of(10, 64, 10), 2))

    method = bridge.execute_command.call_args[0][0]
    goal = bridge.execute_command.call_args[1]["goal"]
    assert method == "pathfinder.goto"
    assert goal == {"kind": "near_point", "range": 2, "x": 10, "y": 64, "z": 10}


@pytest.mark.asyncio
async def test_world_break_block_reports_false_on_failure():
    world, _ = world_with(execute=TimeoutError("slow"))
    block = BlockRef(name="stone", position=Vec3.of(1, 64, 1))

    assert not await world.break_block(block)


@pytest.mark.asyncio
async def test_world_stop_calls_jump_the_queue():
    world, bridge = world_with(execute=lambda *args, **kwargs: None)

    await world.stop_movement()
    await world.stop_attack()

    for call in bridge.execute_command.call_args_list:
        assert call.kwargs["priority"] == 10


@pytest.mark.asyncio
async def test_world_crafts_at_station():
    world, bridge = world_with(execute=lambda *args, **kwargs: True)
    recipe = RecipeNode.build("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)
    table = BlockRef(name="crafting_table", position=Vec3.of(2, 64, 0))

    assert await world.craft_recipe(recipe, 2, table)

    kwargs = bridge.execute_command.call_args.kwargs
    assert kwargs["item"] == "wooden_pickaxe"
    assert kwargs["count"] == 2
    assert kwargs["table"] == {"x": 2, "y": 64, "z": 0}


@pytest.mark.asyncio
async def test_world_container_round_trip():
    def execute(method, **kwargs):
        if method == "container.open":
            return {"id": 3, "items": [{"name": "coal", "count": 4}]}
        if method == "container.withdraw":
            return {"items": []}
        return None

    world, bridge = world_with(execute=execute)
    chest = BlockRef(name="chest", position=Vec3.of(0, 64, 2))

    handle = await world.open_container(chest)
    assert handle.items() == {"coal": 4}
    assert await handle.withdraw("coal", 4)
    assert handle.items() == {}
    await handle.close()

    assert bridge.execute_command.call_args[0][0] == "container.close"


@pytest.mark.asyncio
async def test_world_container_without_window():
    world, _ = world_with(execute=lambda *args, **kwargs: None)

    with pytest.raises(WorldCallError):
        await world.open_container(BlockRef(name="stone", position=Vec3.of(0, 64, 0)))


def test_world_snapshots():
    answers = {
        "inventory.items": [{"name": "dirt", "count": 40}, {"name": "dirt", "count": 64}, {"name": "stick", "count": 2}],
        "entity.status": {"position": {"x": 1.5, "y": 64, "z": -2.5}, "yaw": 1.0, "health": 15, "food": 18},
        "entities.nearby": [
            {"id": 4, "name": "zombie", "type": "hostile", "position": {"x": 3, "y": 64, "z": 0}},
            {"id": 5, "name": "item", "type": "object", "position": {"x": 1, "y": 64, "z": 0}},
            {"id": 6, "name": "cow", "type": "animal", "position": None},
        ],
    }
    world, _ = world_with(query=lambda method, **kwargs: answers[method])

    assert world.inventory_snapshot() == {"dirt": 104, "stick": 2}
    assert world.count_item("dirt") == 104

    status = world.agent_status()
    assert status.position == Vec3.of(1.5, 64, -2.5)
    assert status.health == 15

    zombie, drop = world.nearby_entities(16)
    assert zombie.is_hostile
    assert drop.is_item


def test_world_block_lookup_uses_data_service():
    data = MagicMock()
    data.block_material.return_value = "mineable/pickaxe"
    data.harvest_tools.return_value = ("wooden_pickaxe",)
    bridge = MagicMock()
    bridge.query.return_value = {"name": "stone"}
    world = MineflayerWorld(bridge, data)

    block = world.block_at(Vec3.of(1.2, 64.7, 3.9))

    assert block.name == "stone"
    assert block.position == Vec3.of(1, 64, 3)
    assert block.material == "mineable/pickaxe"
    assert block.harvest_tools == ("wooden_pickaxe",)
    assert bridge.query.call_args.kwargs == {"x": 1, "y": 64, "z": 3}


def test_world_query_failure_reads_as_missing():
    world, _ = world_with(query=RuntimeError("Bot not available"))

    assert world.block_at(Vec3.of(0, 0, 0)) is None
    assert world.player("Steve") is None
    assert world.inventory_snapshot() == {}
    with pytest.raises(WorldCallError):
        world.agent_status()


def test_world_listeners_map_bot_events():
    world, bridge = world_with(query=lambda method, **kwargs: {"position": {"x": 0, "y": 0, "z": 0}, "health": 7})
    seen = []

    world.add_listener("attack_ended", lambda: seen.append("ended"))
    world.add_listener("health", lambda health: seen.append(health))
    with pytest.raises(ValueError):
        world.add_listener("chat", lambda: None)

    registered = {call.args[0]: call.args[1] for call in bridge.register_event_handler.call_args_list}
    assert set(registered) == {"stoppedAttacking", "health"}
    registered["stoppedAttacking"]("entity proxy")
    registered["health"]()
    assert seen == ["ended", 7.0]


def test_entity_lookup_for_player():
    world, _ = world_with(
        query=lambda method, **kwargs: {
            "id": 9,
            "name": "player",
            "type": "player",
            "username": kwargs.get("name"),
            "position": [4, 64, 4],
        }
    )

    steve = world.player("Steve")

    assert isinstance(steve, EntityRef)
    assert steve.kind == "player"
    assert steve.display_name == "Steve"
    assert not steve.is_hostile
