"""
Configuration management for the OpenNova agent
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentConfig(BaseSettings):
    """Configuration for the agent core, its skills and the Mineflayer bridge"""

    # Minecraft server configuration
    minecraft_host: str = Field(default="localhost", description="Minecraft server host")
    minecraft_port: int = Field(default=25565, description="Minecraft server port")
    bot_username: str = Field(default="OpenNova", description="Bot username in Minecraft")
    minecraft_version: str = Field(default="1.21.1", description="Minecraft version for bot compatibility")
    minecraft_auth: str = Field(default="offline", description="Authentication mode (offline or microsoft)")

    # Bridge configuration
    bot_script_path: Optional[str] = Field(
        default=None, description="Path to the Mineflayer bot script (defaults to bot/index.js)"
    )
    command_timeout_ms: int = Field(default=10000, description="Command timeout in milliseconds")
    event_queue_size: int = Field(default=1000, description="Maximum size of the bridge command queue")
    pathfinder_timeout_ms: int = Field(default=30000, description="Timeout for pathfinder movement in milliseconds")
    js_command_timeout_ms: int = Field(default=15000, description="Timeout for JS command execution in milliseconds")
    spawn_timeout_seconds: float = Field(default=30.0, description="How long to wait for the bot to spawn")

    # Combat configuration
    attack_range: float = Field(default=3.0, description="Melee reach used to size the defend scan")
    flee_health_threshold: float = Field(default=6.0, description="Health at or below which the agent flees")
    defend_interval_ms: int = Field(default=500, description="Interval of the defend/guard poll")
    flee_distance: float = Field(default=16.0, description="Minimum distance to put between agent and threats")
    flee_scan_radius: float = Field(default=32.0, description="Radius scanned for threats when fleeing")
    guard_follow_range: float = Field(default=3.0, description="Follow distance while guarding a player")

    # Navigation configuration
    follow_range: float = Field(default=2.0, description="Follow distance for follow()")
    follow_tick_ms: int = Field(default=250, description="Interval at which a follow goal is recomputed")
    interaction_radius: float = Field(default=4.0, description="Distance within which blocks can be reached")

    # Mining configuration
    max_search_distance: int = Field(default=32, description="Upper bound on block search radius")
    max_search_count: int = Field(default=10, description="Upper bound on block search results")
    max_mine_count: int = Field(default=64, description="Upper bound on blocks mined per request")
    max_strip_length: int = Field(default=30, description="Upper bound on strip mine length")
    max_ore_blocks: int = Field(default=10, description="Upper bound on ores mined per ore search")
    ore_search_distance: int = Field(default=24, description="Search radius for each ore variant")
    wood_search_distance: int = Field(default=64, description="Search radius for logs when chopping wood")
    collect_radius: float = Field(default=3.0, description="Radius around a broken block scanned for drops")
    max_skipped_blocks: int = Field(default=5, description="Vanished blocks tolerated before a mining loop gives up")
    collect_delay_ms: int = Field(default=300, description="Wait for drops to settle before collecting")
    mine_step_delay_ms: int = Field(default=100, description="Pause between mining iterations")
    strip_step_delay_ms: int = Field(default=50, description="Pause between strip mine steps")

    # Crafting configuration
    station_search_radius: int = Field(default=32, description="Search radius for crafting stations and furnaces")
    max_craft_depth: int = Field(default=12, description="Maximum recursion depth of the crafting resolver")
    max_ingredient_passes: int = Field(default=3, description="Ingredient re-check passes per recipe")
    smelt_seconds_per_item: float = Field(default=10.0, description="Smelt wait per item in seconds")
    chest_search_radius: int = Field(default=6, description="Search radius for chests")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Log file name (None for a timestamped name)")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_to_file: bool = Field(default=True, description="Write JSON logs to a file")
    log_json_format: bool = Field(default=False, description="Use JSON format for console logs")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OPENNOVA_",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )


def get_config() -> AgentConfig:
    """Get the configuration instance"""
    return AgentConfig()
