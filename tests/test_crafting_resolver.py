"""
Tests for the recursive crafting resolver
"""

import asyncio

import pytest

from opennova.crafting import CraftingResolver, CraftingState, PlanStatus
from opennova.schemas import Vec3
from opennova.supervisor import Priority

from mocks import make_config, settle


@pytest.fixture
def crafter(world, supervisor, config):
    return CraftingResolver(world, supervisor, config)


@pytest.fixture
def wood_recipes(world):
    world.add_recipe("oak_planks", {"oak_log": 1}, result_count=4)
    world.add_recipe("stick", {"oak_planks": 2}, result_count=4)
    return world


@pytest.mark.asyncio
async def test_craft_already_on_hand_is_noop(crafter, world, supervisor):
    world.inventory["stick"] = 5
    world.add_recipe("stick", {"oak_planks": 2}, result_count=4)

    assert await crafter.craft("stick", 3)

    assert world.calls == []
    assert supervisor.holder is None
    assert crafter.last_plan.succeeded


@pytest.mark.asyncio
async def test_recursive_resolution_crafts_ingredient_then_item(crafter, world, supervisor):
    world.inventory.update({"oak_log": 1, "stick": 2})
    world.add_recipe("oak_planks", {"oak_log": 1}, result_count=4)
    world.add_recipe("crafting_table", {"oak_planks": 4, "stick": 2})

    assert await crafter.craft("crafting_table", 1)

    assert world.crafted_items() == ["oak_planks", "crafting_table"]
    assert world.inventory == {"crafting_table": 1}
    assert supervisor.holder is None

    summary = crafter.last_plan.summary()
    assert summary["status"] == "satisfied"
    assert summary["steps"] == ["1x crafting_table", "1x oak_planks"]


@pytest.mark.asyncio
async def test_item_name_is_normalized(crafter, wood_recipes):
    wood_recipes.inventory["oak_log"] = 1

    assert await crafter.craft(" Oak Planks ", 4)
    assert wood_recipes.crafted_items() == ["oak_planks"]


@pytest.mark.asyncio
async def test_batch_operations_round_up(crafter, wood_recipes):
    wood_recipes.inventory["oak_planks"] = 4

    assert await crafter.craft("stick", 5)

    (_, recipe, operations, station), = wood_recipes.calls_named("craft_recipe")
    assert operations == 2
    assert station is None
    assert wood_recipes.inventory == {"stick": 8}


@pytest.mark.asyncio
async def test_recipe_cycle_fails_without_recursing_forever(crafter, world, supervisor):
    world.add_recipe("item_a", {"item_b": 1})
    world.add_recipe("item_b", {"item_a": 1})

    assert not await crafter.craft("item_a", 1)

    assert crafter.last_plan.missing_item == "item_a"
    assert "cycle" in crafter.last_plan.failure_reason
    assert world.calls_named("craft_recipe") == []
    assert supervisor.holder is None


@pytest.mark.asyncio
async def test_missing_raw_material_is_reported(crafter, world):
    world.inventory["stick"] = 2
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)

    assert not await crafter.craft("wooden_pickaxe")

    plan = crafter.last_plan
    assert plan.missing_item == "oak_planks"
    assert plan.root.status == PlanStatus.FAILED
    assert world.calls == []


@pytest.mark.asyncio
async def test_uses_existing_station_within_reach(crafter, world):
    world.inventory.update({"oak_planks": 3, "stick": 2})
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)
    table = world.set_block("crafting_table", Vec3.of(3, 64, 0))

    assert await crafter.craft("wooden_pickaxe")

    (_, _, _, station), = world.calls_named("craft_recipe")
    assert station == table
    assert world.calls_named("move_to") == []


@pytest.mark.asyncio
async def test_walks_to_distant_station(crafter, world):
    world.inventory.update({"oak_planks": 3, "stick": 2})
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)
    world.set_block("crafting_table", Vec3.of(12, 64, 0))

    assert await crafter.craft("wooden_pickaxe")
    assert world.call_names() == ["move_to", "craft_recipe"]


@pytest.mark.asyncio
async def test_places_station_from_inventory(crafter, world):
    world.floor()
    world.inventory.update({"crafting_table": 1, "oak_planks": 3, "stick": 2})
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)

    assert await crafter.craft("wooden_pickaxe")

    assert world.call_names() == ["equip", "place_block", "craft_recipe"]
    _, anchor, face, item = world.calls_named("place_block")[0]
    assert anchor.position == Vec3.of(1, 63, 0)
    assert face == Vec3.of(0, 1, 0)
    assert item == "crafting_table"
    station = world.calls_named("craft_recipe")[0][3]
    assert station.name == "crafting_table"
    assert station.position == Vec3.of(1, 64, 0)


@pytest.mark.asyncio
async def test_placement_skips_occupied_spots(crafter, world):
    world.floor()
    world.set_block("stone", Vec3.of(1, 64, 0))
    world.inventory.update({"crafting_table": 1, "oak_planks": 3, "stick": 2})
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)

    assert await crafter.craft("wooden_pickaxe")

    _, anchor, _, _ = world.calls_named("place_block")[0]
    assert anchor.position == Vec3.of(-1, 63, 0)


@pytest.mark.asyncio
async def test_crafts_missing_station_first(crafter, world):
    world.floor()
    world.inventory.update({"oak_planks": 7, "stick": 2})
    world.add_recipe("crafting_table", {"oak_planks": 4})
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)

    assert await crafter.craft("wooden_pickaxe")

    assert world.crafted_items() == ["crafting_table", "wooden_pickaxe"]
    assert world.inventory == {"wooden_pickaxe": 1}


@pytest.mark.asyncio
async def test_station_crafted_from_shared_materials(crafter, wood_recipes):
    wood_recipes.floor()
    wood_recipes.inventory["oak_log"] = 3
    wood_recipes.add_recipe("crafting_table", {"oak_planks": 4})
    wood_recipes.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)

    assert await crafter.craft("wooden_pickaxe")

    assert wood_recipes.crafted_items() == [
        "oak_planks",
        "stick",
        "oak_planks",
        "crafting_table",
        "oak_planks",
        "wooden_pickaxe",
    ]
    assert wood_recipes.inventory == {"oak_planks": 3, "stick": 2, "wooden_pickaxe": 1}
    assert crafter.last_plan.succeeded


@pytest.mark.asyncio
async def test_fails_without_placement_spot(crafter, world):
    world.inventory.update({"crafting_table": 1, "oak_planks": 3, "stick": 2})
    world.add_recipe("wooden_pickaxe", {"oak_planks": 3, "stick": 2}, requires_station=True)

    assert not await crafter.craft("wooden_pickaxe")

    assert crafter.last_plan.missing_item == "crafting_table"
    assert world.calls_named("craft_recipe") == []


@pytest.mark.asyncio
async def test_failed_craft_call_is_not_retried(crafter, wood_recipes):
    wood_recipes.inventory["oak_log"] = 1
    wood_recipes.craft_ok = False

    assert not await crafter.craft("oak_planks", 4)

    assert len(wood_recipes.calls_named("craft_recipe")) == 1
    assert crafter.last_plan.failure_reason == "craft call failed"


@pytest.mark.asyncio
async def test_ingredient_used_up_by_sibling_is_recrafted(crafter, wood_recipes):
    wood_recipes.inventory["oak_log"] = 2
    wood_recipes.add_recipe("ladder_kit", {"oak_planks": 4, "stick": 4})

    assert await crafter.craft("ladder_kit")

    assert wood_recipes.crafted_items() == ["oak_planks", "stick", "oak_planks", "ladder_kit"]


@pytest.mark.asyncio
async def test_craft_refused_while_lock_busy(crafter, wood_recipes, supervisor):
    wood_recipes.inventory["oak_log"] = 1
    supervisor.acquire("miner", Priority.TASK)

    assert not await crafter.craft("oak_planks", 4)
    assert crafter.last_plan.failure_reason == "drive lock busy"
    assert wood_recipes.calls == []


def test_can_craft(crafter, wood_recipes):
    wood_recipes.inventory["diamond"] = 1

    assert crafter.can_craft("stick")
    assert crafter.can_craft("diamond")
    assert not crafter.can_craft("emerald")
    assert [r.item for r in crafter.recipes("Stick")] == ["stick"]


@pytest.mark.asyncio
async def test_smelt_in_nearby_furnace(crafter, world, supervisor):
    world.inventory.update({"raw_iron": 3, "coal": 2})
    world.smelts["raw_iron"] = "iron_ingot"
    world.add_container("furnace", Vec3.of(2, 64, 0))

    assert await crafter.smelt("raw_iron", 3)

    furnace = world.opened[0]
    assert furnace.transfers == [
        ("deposit", "coal", 1, "fuel"),
        ("deposit", "raw_iron", 3, "input"),
        ("withdraw", "iron_ingot", 3, "output"),
    ]
    assert furnace.closed
    assert world.inventory == {"coal": 1, "iron_ingot": 3}
    assert supervisor.holder is None


@pytest.mark.asyncio
async def test_smelt_without_fuel(crafter, world):
    world.inventory["raw_iron"] = 3
    world.add_container("furnace", Vec3.of(2, 64, 0))

    assert not await crafter.smelt("raw_iron", 3)
    assert world.calls == []


@pytest.mark.asyncio
async def test_smelt_without_enough_input(crafter, world):
    world.inventory.update({"raw_iron": 1, "coal": 1})
    world.add_container("furnace", Vec3.of(2, 64, 0))

    assert not await crafter.smelt("raw_iron", 3)
    assert world.calls == []


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_craft(crafter, wood_recipes, supervisor):
    wood_recipes.inventory["oak_log"] = 1
    entered, release = wood_recipes.gate("craft_recipe")

    task = asyncio.create_task(crafter.craft("stick", 4))
    await entered.wait()

    await crafter.stop()
    assert supervisor.holder == "crafting"

    release.set()
    assert not await task
    assert wood_recipes.crafted_items() == ["oak_planks"]
    assert crafter.last_plan.failure_reason == "crafting cancelled"
    assert supervisor.holder is None
    assert crafter.state == CraftingState.IDLE


@pytest.mark.asyncio
async def test_stop_during_smelt_deposit(crafter, world, supervisor):
    world.inventory.update({"raw_iron": 3, "coal": 2})
    world.smelts["raw_iron"] = "iron_ingot"
    world.add_container("furnace", Vec3.of(2, 64, 0))
    entered, release = world.gate("deposit")

    task = asyncio.create_task(crafter.smelt("raw_iron", 3))
    await entered.wait()

    await crafter.stop()
    assert supervisor.holder == "crafting"

    release.set()
    assert not await task
    furnace = world.opened[0]
    assert furnace.transfers == [("deposit", "coal", 1, "fuel")]
    assert furnace.closed
    assert supervisor.holder is None


@pytest.mark.asyncio
async def test_stop_while_smelting_leaves_output_in_furnace(world, supervisor):
    crafter = CraftingResolver(world, supervisor, make_config(smelt_seconds_per_item=0.05))
    world.inventory.update({"raw_iron": 3, "coal": 2})
    world.smelts["raw_iron"] = "iron_ingot"
    world.add_container("furnace", Vec3.of(2, 64, 0))

    task = asyncio.create_task(crafter.smelt("raw_iron", 3))
    assert await settle(lambda: world.opened and len(world.opened[0].transfers) == 2)

    await crafter.stop()
    assert supervisor.holder is None

    assert not await task
    furnace = world.opened[0]
    assert [transfer[0] for transfer in furnace.transfers] == ["deposit", "deposit"]
    assert furnace.items() == {"iron_ingot": 3}
    assert furnace.closed
    assert "iron_ingot" not in world.inventory
