"""
JSPyBridge Manager - Handles Python to JavaScript communication with Mineflayer
"""

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from ..config import AgentConfig

from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_BOT_SCRIPT = os.path.join("bot", "index.js")

BOT_EVENTS = ("stoppedAttacking", "health", "death", "kicked", "error", "end")

PATHFINDER_BUFFER_MS = 5000


@dataclass
class BridgeConfig:
    """Configuration for JSPyBridge"""

    command_timeout: int = 10000  # milliseconds
    js_command_timeout: int = 15000
    pathfinder_timeout: int = 30000
    spawn_timeout: float = 30.0
    batch_size: int = 10
    event_queue_size: int = 1000

    @classmethod
    def from_agent_config(cls, config: "AgentConfig") -> "BridgeConfig":
        return cls(
            command_timeout=config.command_timeout_ms,
            js_command_timeout=config.js_command_timeout_ms,
            pathfinder_timeout=config.pathfinder_timeout_ms,
            spawn_timeout=config.spawn_timeout_seconds,
            event_queue_size=config.event_queue_size,
        )


@dataclass(order=True)
class Command:
    """Represents a command to be sent to JavaScript"""

    id: str = field(compare=False)
    method: str = field(compare=False)
    args: Dict[str, Any] = field(compare=False)

    # Ordering fields for the PriorityQueue, higher priority first
    priority: int = field(default=0, compare=True)
    timestamp: datetime = field(default_factory=datetime.now, compare=True)
    future: Optional[asyncio.Future] = field(default=None, compare=False)


class BridgeManager:
    """Manages communication between Python and the JavaScript Mineflayer bot.

    Actions go through a priority command queue and resolve asynchronously.
    Snapshot queries are synchronous calls into the bot script. Bot events are
    delivered to registered handlers on the asyncio loop thread.
    """

    def __init__(
        self, config: BridgeConfig = None, agent_config: Optional["AgentConfig"] = None, auto_start: bool = True
    ):
        if config is None:
            config = BridgeConfig.from_agent_config(agent_config) if agent_config else BridgeConfig()
        self.config = config
        self.agent_config = agent_config
        self.auto_start = auto_start
        self.bot = None
        self.bot_module = None
        self.event_handlers: Dict[str, List[Callable]] = {}
        self.command_queue = asyncio.PriorityQueue(maxsize=self.config.event_queue_size)
        self.pending_commands: Dict[str, Command] = {}
        self.is_connected = False
        self.is_spawned = False
        self._event_loop = None
        self._command_processor_task = None
        self._command_counter = 0

    async def initialize(self, bot_script_path: str = None):
        """Load the bot script and start the Mineflayer bot"""
        self._event_loop = asyncio.get_running_loop()

        if not self.auto_start:
            logger.info("Auto-start disabled - bridge initialized without bot connection")
            self.is_connected = False
            self.is_spawned = False
            return

        try:
            from javascript import require

            script = bot_script_path or (self.agent_config and self.agent_config.bot_script_path) or DEFAULT_BOT_SCRIPT
            script = os.path.abspath(script)
            if not os.path.exists(script):
                raise FileNotFoundError(f"Bot script not found at {script}")

            logger.info("Initializing JSPyBridge", script=script)
            self.bot_module = require(script)

            options = self._bot_options()
            logger.info(
                "Starting bot",
                host=options["host"],
                port=options["port"],
                username=options["username"],
                version=options["version"],
            )
            bot_result = self.bot_module.startBot(options, timeout=90000)

            wait_count = 0
            while wait_count < 300:
                if hasattr(bot_result, "bot") and bot_result.bot is not None:
                    break
                await asyncio.sleep(0.1)
                wait_count += 1

            if not hasattr(bot_result, "bot") or bot_result.bot is None:
                logger.error("Bot initialization failed - no bot object returned")
                raise TimeoutError(
                    f"Bot failed to initialize - check if Minecraft server is running on {options['host']}:{options['port']}"
                )

            # bot_result.bot wraps the mineflayer bot and exposes executeCommand/query
            self.bot = bot_result.bot

            logger.info("Waiting for bot to spawn in world...")
            self.is_spawned = await self._wait_for_spawn_with_timeout()
            if self.is_spawned:
                logger.info("Bot spawned successfully and ready to use")
            else:
                logger.warning("Bot created but not spawned - server might not be running")

            self._setup_event_listeners()
            self._command_processor_task = asyncio.create_task(self._process_command_queue())

            self.is_connected = True
            logger.info("JSPyBridge initialized successfully")

        except Exception as e:
            logger.error("Failed to initialize bridge", error=str(e))
            raise

    def _bot_options(self) -> Dict[str, Any]:
        if self.agent_config:
            return {
                "host": self.agent_config.minecraft_host,
                "port": self.agent_config.minecraft_port,
                "username": self.agent_config.bot_username,
                "auth": self.agent_config.minecraft_auth,
                "version": self.agent_config.minecraft_version,
                "timeout": 60000,
            }
        return {
            "host": "localhost",
            "port": 25565,
            "username": "OpenNova",
            "auth": "offline",
            "version": "1.21.1",
            "timeout": 60000,
        }

    @property
    def mineflayer(self):
        """The underlying mineflayer bot proxy"""
        if self.bot is None or not hasattr(self.bot, "bot"):
            raise RuntimeError("Bot not available")
        return self.bot.bot

    async def _wait_for_spawn_with_timeout(self, timeout: float = None) -> bool:
        """Wait for bot to spawn in the world

        Returns:
            bool: True if spawned, False on timeout
        """
        if timeout is None:
            timeout = self.config.spawn_timeout

        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while loop.time() - start_time < timeout:
            try:
                if hasattr(self.bot, "bot") and getattr(self.bot.bot, "entity", None) is not None:
                    logger.info("Bot spawned successfully - entity exists")
                    return True
            except Exception as e:
                logger.debug("Error checking spawn status", error=str(e))

            await asyncio.sleep(0.5)

        logger.warning("Bot spawn timeout - server may not be running", timeout=timeout)
        return False

    def _setup_event_listeners(self):
        """Forward bot events to registered handlers"""
        for event in BOT_EVENTS:
            self.mineflayer.on(event, lambda *args, evt=event: self._handle_event(evt, args))

    def _handle_event(self, event_type: str, args):
        """Handle an event from the JS thread by scheduling handlers on the asyncio loop"""
        logger.debug("Received event", event=event_type)

        for handler in self.event_handlers.get(event_type, []):
            if self._event_loop is not None and self._event_loop.is_running():
                self._event_loop.call_soon_threadsafe(self._run_handler, event_type, handler, args)
            else:
                self._run_handler(event_type, handler, args)

    def _run_handler(self, event_type: str, handler: Callable, args) -> None:
        try:
            handler(*args)
        except Exception as e:
            logger.error("Error in event handler", event=event_type, error=str(e))

    def register_event_handler(self, event_type: str, handler: Callable):
        """Register a handler for a bot event"""
        self.event_handlers.setdefault(event_type, []).append(handler)
        logger.debug("Registered event handler", event=event_type)

    async def execute_command(self, method: str, priority: int = 0, **kwargs) -> Any:
        """Queue an action command and wait for its result

        Raises:
            RuntimeError: Bridge not connected or the command failed on the JS side
            TimeoutError: No result within the command timeout
        """
        if not self.is_connected:
            raise RuntimeError("Bridge is not connected")
        if not self.is_spawned:
            raise RuntimeError("Bot is not connected to Minecraft server")

        self._command_counter += 1
        command_id = f"cmd_{self._command_counter}"
        future = asyncio.get_running_loop().create_future()
        command = Command(id=command_id, method=method, args=kwargs, priority=priority, future=future)

        await self.command_queue.put((-command.priority, command))
        self.pending_commands[command_id] = command

        timeout_ms = self._command_timeout(command)
        try:
            return await asyncio.wait_for(future, timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.error("Command timeout", method=method, timeout_ms=timeout_ms)
            raise TimeoutError(f"Command {method} timed out")
        finally:
            self.pending_commands.pop(command_id, None)

    def query(self, method: str, **kwargs) -> Any:
        """Synchronous snapshot query answered by the bot script"""
        if self.bot is None:
            raise RuntimeError("Bot not available")
        result = self.bot.query({"method": method, "args": kwargs})
        if result is None:
            raise RuntimeError(f"No result returned from query: {method}")
        if hasattr(result, "success") and not result.success:
            raise RuntimeError(getattr(result, "error", None) or f"Query {method} failed")
        data = result.result if hasattr(result, "result") else result
        return self._to_python(data)

    @staticmethod
    def _to_python(value: Any) -> Any:
        """Convert a JS proxy into plain Python data"""
        if value is None or isinstance(value, (str, int, float, bool, list, dict)):
            return value
        if hasattr(value, "valueOf"):
            return value.valueOf()
        return value

    def _command_timeout(self, command: Command) -> int:
        if command.method == "pathfinder.goto":
            return command.args.get("timeout", self.config.pathfinder_timeout) + PATHFINDER_BUFFER_MS
        return self.config.command_timeout

    async def _process_command_queue(self):
        """Process commands from the queue in priority order"""
        batch = []

        while True:
            try:
                while len(batch) < self.config.batch_size:
                    try:
                        _, command = await asyncio.wait_for(self.command_queue.get(), timeout=0.1)
                        batch.append(command)
                    except asyncio.TimeoutError:
                        break

                if batch:
                    await self._execute_batch(batch)
                    batch = []

                await asyncio.sleep(0.01)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error in command processor", error=str(e))
                await asyncio.sleep(1)

    async def _execute_batch(self, commands: List[Command]):
        for command in commands:
            if command.future is not None and command.future.done():
                continue
            try:
                result = await self._execute_single_command(command)
                if command.future is not None and not command.future.done():
                    command.future.set_result(result)
            except Exception as e:
                logger.error("Command execution failed", command=command.method, error=str(e))
                if command.future is not None and not command.future.done():
                    command.future.set_exception(RuntimeError(str(e)))

    async def _execute_single_command(self, command: Command) -> Any:
        """Run one command through the bot script's executeCommand handler"""
        logger.debug("Executing command", method=command.method, args=command.args)

        if not hasattr(self.bot, "executeCommand"):
            raise RuntimeError(f"Unknown command: {command.method}")

        js_timeout = self.config.js_command_timeout
        if command.method == "pathfinder.goto":
            js_timeout = command.args.get("timeout", self.config.pathfinder_timeout) + PATHFINDER_BUFFER_MS

        # JSPyBridge calls block until JS answers, keep them off the event loop
        js_result = await asyncio.to_thread(
            self.bot.executeCommand,
            {"method": command.method, "args": command.args, "id": command.id},
            timeout=js_timeout,
        )

        if js_result is None:
            raise RuntimeError(f"No result returned from command: {command.method}")

        if hasattr(js_result, "success"):
            if js_result.success:
                return self._to_python(js_result.result)
            error_msg = js_result.error if hasattr(js_result, "error") else "Command failed"
            raise RuntimeError(error_msg)

        logger.warning("Unexpected result format", method=command.method, result_type=type(js_result).__name__)
        return js_result

    async def close(self):
        """Close the bridge and cleanup resources"""
        logger.info("Closing bridge")

        if self._command_processor_task:
            self._command_processor_task.cancel()
            try:
                await self._command_processor_task
            except asyncio.CancelledError:
                pass

        for command in self.pending_commands.values():
            if command.future is not None and not command.future.done():
                command.future.cancel()
        self.pending_commands.clear()

        if self.bot:
            if hasattr(self.bot, "quit"):
                self.bot.quit()
            elif hasattr(self.bot, "bot") and hasattr(self.bot.bot, "quit"):
                self.bot.bot.quit()

        self.is_connected = False
        logger.info("Bridge closed")
