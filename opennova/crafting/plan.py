"""
Craft plan - the resolver's working tree for one craft() call
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional

from ..schemas import RecipeNode


class PlanStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SATISFIED = "satisfied"
    FAILED = "failed"


@dataclass
class PlanNode:
    """One item being satisfied, with the recipe chosen for it"""

    item: str
    requested: int
    depth: int = 0
    remaining: int = 0
    recipe: Optional[RecipeNode] = None
    operations: int = 0
    status: PlanStatus = PlanStatus.PENDING
    children: List["PlanNode"] = field(default_factory=list)

    def add_child(self, item: str, requested: int) -> "PlanNode":
        child = PlanNode(item=item, requested=requested, depth=self.depth + 1)
        self.children.append(child)
        return child

    def walk(self) -> Iterator["PlanNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class CraftPlan:
    item: str
    count: int
    root: PlanNode = None
    missing_item: Optional[str] = None
    failure_reason: Optional[str] = None

    def __post_init__(self):
        if self.root is None:
            self.root = PlanNode(item=self.item, requested=self.count)

    @property
    def succeeded(self) -> bool:
        return self.root.status == PlanStatus.SATISFIED

    def fail(self, item: str, reason: str) -> None:
        self.missing_item = item
        self.failure_reason = reason
        self.root.status = PlanStatus.FAILED

    def crafted(self) -> List[PlanNode]:
        """Nodes that needed a craft call, in depth-first order"""
        return [node for node in self.root.walk() if node.recipe is not None]

    def summary(self) -> dict:
        return {
            "item": self.item,
            "count": self.count,
            "status": self.root.status.value,
            "steps": [f"{node.operations}x {node.recipe.item}" for node in self.crafted()],
            "missing_item": self.missing_item,
            "failure_reason": self.failure_reason,
        }
