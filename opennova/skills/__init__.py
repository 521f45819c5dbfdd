"""Skill state machines driven under the actuation supervisor."""

from .base import BaseSkill
from .combat import CombatSkill, CombatState
from .miner import MiningSkill, MiningState
from .pathfinder import PathfindingSkill, PathfindingState
from .storage import StorageSkill, StorageState
from .survival import SurvivalSkill, SurvivalState

__all__ = [
    "BaseSkill",
    "CombatSkill",
    "CombatState",
    "MiningSkill",
    "MiningState",
    "PathfindingSkill",
    "PathfindingState",
    "StorageSkill",
    "StorageState",
    "SurvivalSkill",
    "SurvivalState",
]
