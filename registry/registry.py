"""Name-keyed, versioned catalog of pluggable implementations."""

import threading
from dataclasses import dataclass, replace
from typing import Dict, Generic, Tuple, TypeVar

from core.errors import (
    DuplicateNameError,
    InactiveEntryError,
    RegistryNotFoundError,
    ValidationError,
)
from core.logger import get_logger

from .models import RegistryEntry, RegistryKind

T = TypeVar("T")

log = get_logger(__name__)


class Registry(Generic[T]):
    """Catalog with activate/deactivate that never forgets an entry.

    Entries are immutable snapshots, so readers never lock. Writers serialize
    per name only.
    """

    def __init__(self, kind: RegistryKind) -> None:
        self._kind = kind
        self._entries: Dict[str, RegistryEntry[T]] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def kind(self) -> RegistryKind:
        return self._kind

    def register(self, name: str, meta: T, creator: str, now: int) -> RegistryEntry[T]:
        if not name or not name.strip():
            raise ValidationError("Registry names must be non-empty.")
        with self._lock_for(name):
            if name in self._entries:
                raise DuplicateNameError(f"{self._kind.value} '{name}' already registered.")
            entry = RegistryEntry(
                name=name,
                creator=creator,
                created_at=now,
                last_updated=now,
                is_active=True,
                meta=meta,
            )
            self._entries[name] = entry
        log.info("registered %s %s by %s", self._kind.value, name, creator)
        return entry

    def activate(self, name: str, now: int) -> RegistryEntry[T]:
        return self._set_active(name, True, now)

    def deactivate(self, name: str, now: int) -> RegistryEntry[T]:
        return self._set_active(name, False, now)

    def lookup(self, name: str, active_only: bool = False) -> RegistryEntry[T]:
        entry = self._entries.get(name)
        if entry is None:
            raise RegistryNotFoundError(f"{self._kind.value} '{name}' not found.")
        if active_only and not entry.is_active:
            raise InactiveEntryError(f"{self._kind.value} '{name}' is inactive.")
        return entry

    def resolve(self, name: str) -> T:
        return self.lookup(name, active_only=True).meta

    def entries(self) -> Tuple[RegistryEntry[T], ...]:
        snapshot = list(self._entries.values())
        return tuple(sorted(snapshot, key=lambda entry: entry.name))

    def _set_active(self, name: str, active: bool, now: int) -> RegistryEntry[T]:
        with self._lock_for(name):
            entry = self.lookup(name)
            updated = replace(
                entry,
                is_active=active,
                last_updated=max(now, entry.last_updated),
            )
            self._entries[name] = updated
        log.info(
            "%s %s %s", "activated" if active else "deactivated", self._kind.value, name
        )
        return updated

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._locks[name] = lock
            return lock


@dataclass(frozen=True)
class EngineRegistries:
    """The four independent registries consulted by the orchestrator."""

    algorithms: Registry
    oracles: Registry
    dexes: Registry
    strategies: Registry

    @classmethod
    def empty(cls) -> "EngineRegistries":
        return cls(
            algorithms=Registry(RegistryKind.ALGORITHM),
            oracles=Registry(RegistryKind.ORACLE),
            dexes=Registry(RegistryKind.DEX),
            strategies=Registry(RegistryKind.STRATEGY),
        )

    def by_kind(self, kind: RegistryKind) -> Registry:
        return {
            RegistryKind.ALGORITHM: self.algorithms,
            RegistryKind.ORACLE: self.oracles,
            RegistryKind.DEX: self.dexes,
            RegistryKind.STRATEGY: self.strategies,
        }[kind]
