from .models import RegistryEntry, RegistryKind
from .registry import EngineRegistries, Registry

__all__ = [
    "EngineRegistries",
    "Registry",
    "RegistryEntry",
    "RegistryKind",
]
