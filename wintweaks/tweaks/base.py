"""Tweak base class - every tweak strategy inherits from this

A tweak is a single reversible configuration unit. It is constructed once
from declarative data and never mutated afterwards.

CRITICAL: Tweaks never spawn processes. They hand finished queries to the
CommandExecutor they are given.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..execution.executor import CommandExecutor

SAFETY_LEVELS = ("safe", "caution", "danger")
DEFAULT_CATEGORY = "System Tweaks"


@dataclass(frozen=True)
class BatchCheck:
    """Descriptor for a check that can be folded into a bulk registry query"""
    target: str
    field: str
    expected_value: str
    kind: str = "registry"


class Tweak(ABC):
    """Base class for all tweaks

    Subclasses implement three behaviours:
    - check_state: is the tweak currently active? Idempotent, no side effects.
    - apply_state: perform the change. Safe to call when already applied.
    - revert_state: undo apply_state. A no-op for irreversible tweaks.
    """

    def __init__(self, id: str, title: str, description: str = "",
                 category: str = DEFAULT_CATEGORY, safety: str = "safe"):
        if not id:
            raise ValueError("Tweak id must not be empty")
        if safety not in SAFETY_LEVELS:
            raise ValueError(f"Tweak '{id}': unknown safety level '{safety}'")
        self.id = id
        self.title = title
        self.description = description
        self.category = category or DEFAULT_CATEGORY
        self.safety = safety

    @property
    @abstractmethod
    def kind(self) -> str:
        """Strategy name as used in the catalog data"""
        raise NotImplementedError

    @property
    def batch_check(self) -> Optional[BatchCheck]:
        """Bulk-query descriptor, or None if only the individual path works"""
        return None

    @property
    def reversible(self) -> bool:
        return True

    @abstractmethod
    def check_state(self, executor: CommandExecutor) -> bool:
        raise NotImplementedError

    @abstractmethod
    def apply_state(self, executor: CommandExecutor) -> None:
        raise NotImplementedError

    @abstractmethod
    def revert_state(self, executor: CommandExecutor) -> None:
        raise NotImplementedError

    def matches(self, search: str) -> bool:
        """Case-insensitive match on title or description"""
        term = (search or "").lower()
        return term in self.title.lower() or term in self.description.lower()

    def to_dict(self) -> Dict[str, Any]:
        """Export tweak metadata for listings"""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "safety": self.safety,
            "kind": self.kind,
            "batchable": self.batch_check is not None,
            "reversible": self.reversible,
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"
