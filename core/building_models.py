"""Data models for the colony build planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Level:
    """Definition for a single building level."""

    level: int
    requirements: Mapping[str, int] = field(default_factory=dict)
    cost: Mapping[str, float] = field(default_factory=dict)
    build_time: Optional[float] = None

    @property
    def requirement_count(self) -> int:
        return len(self.requirements)


@dataclass(frozen=True, slots=True)
class Building:
    """Catalogue entry describing a building and its levels."""

    id: str
    levels: Tuple[Level, ...]
    name: Optional[str] = None
    depot_type: Optional[str] = None
    warns: Tuple[str, ...] = ()

    def get_level(self, level: int) -> Optional[Level]:
        for level_def in self.levels:
            if level_def.level == level:
                return level_def
        return None

    @property
    def max_level(self) -> int:
        if not self.levels:
            return 0
        return max(level_def.level for level_def in self.levels)

    @property
    def display_name(self) -> str:
        return self.name or self.id.replace("_", " ").title()


@dataclass(frozen=True, slots=True)
class BuildRequirement:
    """One (building, level) the player must construct."""

    id: str
    level: int
    is_built: bool = False
    step: int = 0
    depth_cache: int = 0
    requirement_count: int = 0

    @property
    def key(self) -> Tuple[str, int]:
        return (self.id, self.level)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "level": self.level,
            "is_built": self.is_built,
            "step": self.step,
            "depth": self.depth_cache,
            "requirement_count": self.requirement_count,
        }


@dataclass(frozen=True, slots=True)
class BuildPlan:
    """Ordered result of a dependency calculation."""

    target_id: str
    target_level: int
    requirements: Tuple[BuildRequirement, ...]
    truncated: bool = False
    elapsed_ms: float = 0.0
    cache_key: str = ""

    def __len__(self) -> int:
        return len(self.requirements)


@dataclass(slots=True)
class BuildStateValidation:
    """Outcome of checking a build state against the catalogue."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"is_valid": self.is_valid, "errors": list(self.errors)}
