"""Domain models for the pluggable-implementation registries."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, TypeVar

T = TypeVar("T")


class RegistryKind(Enum):
    ALGORITHM = "ALGORITHM"
    ORACLE = "ORACLE"
    DEX = "DEX"
    STRATEGY = "STRATEGY"


@dataclass(frozen=True)
class RegistryEntry(Generic[T]):
    name: str
    creator: str
    created_at: int
    last_updated: int
    is_active: bool
    meta: T

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "creator": self.creator,
            "created_at": self.created_at,
            "last_updated": self.last_updated,
            "is_active": self.is_active,
            "implementation": type(self.meta).__name__,
        }
