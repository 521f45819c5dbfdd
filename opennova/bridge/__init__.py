from .bridge_manager import BridgeConfig, BridgeManager
from .mineflayer_world import MineflayerContainer, MineflayerWorld

__all__ = ["BridgeManager", "BridgeConfig", "MineflayerWorld", "MineflayerContainer"]
