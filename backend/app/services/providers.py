"""
Tow provider reference data.

Providers are injected through ``TowProviderDirectory`` so the list can
be replaced per deployment (settings) or per test (dependency override).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional

from app.core.config import settings
from app.core.errors import NotFound


@dataclass(frozen=True)
class TowProvider:
    name: str
    notification_address: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class TowProviderDirectory(ABC):
    """Reference-data source for tow providers."""

    @abstractmethod
    def list_providers(self) -> List[TowProvider]:
        """Providers in insertion order."""
        pass

    def find(self, ref: str) -> Optional[TowProvider]:
        """Look a provider up by name (case and surrounding whitespace ignored)."""
        wanted = (ref or "").strip().casefold()
        for provider in self.list_providers():
            if provider.name.casefold() == wanted:
                return provider
        return None

    def get(self, ref: str) -> TowProvider:
        provider = self.find(ref)
        if provider is None:
            raise NotFound("TowProvider", ref)
        return provider


class StaticTowProviderDirectory(TowProviderDirectory):
    """Fixed provider list, by default from the ``TOW_PROVIDERS`` setting."""

    def __init__(self, providers: Optional[Iterable[TowProvider]] = None):
        if providers is None:
            providers = [
                TowProvider(name=p["name"], notification_address=p["notification_address"])
                for p in settings.TOW_PROVIDERS
            ]
        self._providers = list(providers)

    def list_providers(self) -> List[TowProvider]:
        return list(self._providers)


_directory: Optional[TowProviderDirectory] = None


def get_provider_directory() -> TowProviderDirectory:
    """Get the provider directory instance (creates if needed)."""
    global _directory
    if _directory is None:
        _directory = StaticTowProviderDirectory()
    return _directory
