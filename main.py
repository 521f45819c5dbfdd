"""
Main entry point for the OpenNova agent
Connects a Mineflayer bot, builds the agent and runs one task or defends until interrupted
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from opennova.agent import NovaAgent
from opennova.bridge import BridgeManager, MineflayerWorld
from opennova.config import get_config
from opennova.logging_config import get_logger, setup_logging
from opennova.minecraft_data_service import MinecraftDataService
from opennova.schemas import Vec3

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command line arguments

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description="OpenNova - autonomous Minecraft agent")
    parser.add_argument("--bot-script", help="Path to the Mineflayer bot script")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="task")

    sub.add_parser("defend", help="Defend against hostiles until interrupted (default)")

    craft = sub.add_parser("craft", help="Craft an item, gathering sub-ingredients on the way")
    craft.add_argument("item")
    craft.add_argument("count", type=int, nargs="?", default=1)

    smelt = sub.add_parser("smelt", help="Smelt an item in a nearby furnace")
    smelt.add_argument("item")
    smelt.add_argument("count", type=int, nargs="?", default=1)

    mine = sub.add_parser("mine", help="Mine blocks by name")
    mine.add_argument("block")
    mine.add_argument("count", type=int, nargs="?", default=1)

    strip = sub.add_parser("strip", help="Strip mine along the current heading")
    strip.add_argument("length", type=int, nargs="?", default=20)

    sub.add_parser("ores", help="Mine nearby ores")

    chop = sub.add_parser("chop", help="Chop nearby trees")
    chop.add_argument("count", type=int, nargs="?", default=10)

    goto = sub.add_parser("goto", help="Walk to a position")
    goto.add_argument("x", type=float)
    goto.add_argument("y", type=float)
    goto.add_argument("z", type=float)

    follow = sub.add_parser("follow", help="Follow a player until interrupted")
    follow.add_argument("player")

    guard = sub.add_parser("guard", help="Guard a player until interrupted")
    guard.add_argument("player")

    return parser.parse_args(argv)


async def run_task(agent: NovaAgent, args) -> bool:
    """Run a one-shot task. Returns the task outcome."""
    if args.task == "craft":
        ok = await agent.crafter.craft(args.item, args.count)
        if not ok and agent.crafter.last_plan:
            logger.warning("Missing item", **agent.crafter.last_plan.summary())
        return ok
    if args.task == "smelt":
        return await agent.crafter.smelt(args.item, args.count)
    if args.task == "mine":
        return await agent.miner.mine_blocks(args.block, args.count) > 0
    if args.task == "strip":
        return await agent.miner.strip_mine(args.length) > 0
    if args.task == "ores":
        return await agent.miner.mine_ores() > 0
    if args.task == "chop":
        return await agent.miner.chop_wood(args.count) > 0
    if args.task == "goto":
        return await agent.pathfinder.goto(Vec3.of(args.x, args.y, args.z), tolerance=1.0)
    raise ValueError(f"Unknown task: {args.task}")


async def run_until_interrupted(agent: NovaAgent, args) -> None:
    """Start a long running behaviour and keep the loop alive"""
    if args.task == "follow":
        player = agent.world.player(args.player)
        if player is None or not await agent.pathfinder.follow(player):
            logger.error("Cannot follow player", player=args.player)
            return
    elif args.task == "guard":
        if not await agent.combat.guard(args.player):
            logger.error("Cannot guard player", player=args.player)
            return
    else:
        await agent.combat.start_defending()

    logger.info("Running, press Ctrl+C to stop", task=args.task or "defend")
    while True:
        await asyncio.sleep(1)


async def main(argv=None):
    """Main entry point"""
    load_dotenv()
    args = parse_args(argv)

    config = get_config()
    if args.bot_script:
        config.bot_script_path = args.bot_script

    setup_logging(
        log_level=args.log_level or config.log_level,
        log_file=config.log_file,
        log_dir=config.log_dir,
        console_output=True,
        json_format=config.log_json_format,
        file_output=config.log_to_file,
    )

    logger.info("Starting OpenNova", host=config.minecraft_host, port=config.minecraft_port)

    bridge = BridgeManager(agent_config=config)
    agent = None
    exit_code = 0

    try:
        logger.info("Initializing connection to Minecraft...")
        await bridge.initialize()

        data = MinecraftDataService(config.minecraft_version)
        world = MineflayerWorld(bridge, data)
        agent = NovaAgent(world, config)
        agent.start()

        if args.task in (None, "defend", "follow", "guard"):
            await run_until_interrupted(agent, args)
        else:
            if args.task in ("craft", "smelt"):
                args.item = data.normalize_item_name(args.item)
            ok = await run_task(agent, args)
            logger.info("Task finished", task=args.task, success=ok)
            exit_code = 0 if ok else 1

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Interrupted, shutting down")
    except Exception as e:
        logger.error("Failed to run agent", error=str(e))
        logger.error("Make sure:")
        logger.error("1. Minecraft server is running")
        logger.error("2. Environment variables are set (OPENNOVA_* or .env)")
        logger.error("3. The Mineflayer bot script exists (OPENNOVA_BOT_SCRIPT_PATH)")
        exit_code = 1
    finally:
        if agent is not None:
            await agent.shutdown()
        if bridge.is_connected:
            logger.info("Shutting down bridge connection...")
            await bridge.close()

    return exit_code


def cli():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
