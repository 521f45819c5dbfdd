"""
Error types shared by the agent core and the world adapters
"""

from typing import Optional


class NovaError(Exception):
    """Base class for agent errors"""


class WorldCallError(NovaError):
    """A world interface call was rejected (invalid placement, container desync, lost connection)"""

    def __init__(self, call: str, message: str):
        super().__init__(f"{call} failed: {message}")
        self.call = call
        self.message = message


class UnreachableError(WorldCallError):
    """Navigation could not satisfy a goal (no path or timeout)"""

    def __init__(self, message: str):
        super().__init__("move_to", message)


class ResourceMissingError(NovaError):
    """A recipe, ingredient or station could not be found or produced"""

    def __init__(self, item: str, reason: str, depth: Optional[int] = None):
        super().__init__(f"Missing {item}: {reason}")
        self.item = item
        self.reason = reason
        self.depth = depth
