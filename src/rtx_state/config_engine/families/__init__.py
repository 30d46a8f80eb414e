"""Configuration families and their registry.

The registry is an explicit value built once from a catalog and handed to
the builder and synthesizer; there is no module-level singleton.
"""
from typing import Any

from ..catalog import Catalog
from ..errors import ValidationError
from .access_list import AccessListFamily
from .admin import AdminUserFamily
from .base import Family, Slot
from .dns import DNSFamily
from .filters import DynamicFilterFamily, EthernetFilterFamily, IPFilterFamily
from .interface import InterfaceFilterFamily
from .route import StaticRouteFamily
from .tunnel import IPsecTunnelFamily

FAMILY_TYPES: tuple[type[Family], ...] = (
    DNSFamily,
    IPFilterFamily,
    DynamicFilterFamily,
    EthernetFilterFamily,
    InterfaceFilterFamily,
    StaticRouteFamily,
    IPsecTunnelFamily,
    AdminUserFamily,
    AccessListFamily,
)

# Catalog families that carry no records (context selectors)
PASSIVE_FAMILIES = frozenset({"context"})


class FamilyRegistry:
    """Lookup of families by catalog family name or by record."""

    def __init__(self, families: list[Family]):
        self._families = list(families)
        self._by_name = {f.name: f for f in self._families}

    def __iter__(self):
        return iter(self._families)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def get(self, name: str) -> Family:
        if name not in self._by_name:
            raise KeyError(f"Unknown family: {name}")
        return self._by_name[name]

    def family_for(self, record: Any) -> Family:
        """Family that synthesizes ``record``.

        Raises:
            ValidationError: If no family handles the record type
        """
        for family in self._families:
            if family.handles(record):
                return family
        raise ValidationError(f"No configuration family handles {type(record).__name__}")


def build_registry(catalog: Catalog) -> FamilyRegistry:
    """Instantiate every family against one catalog."""
    return FamilyRegistry([family_type(catalog) for family_type in FAMILY_TYPES])


__all__ = [
    "AccessListFamily",
    "AdminUserFamily",
    "DNSFamily",
    "DynamicFilterFamily",
    "EthernetFilterFamily",
    "Family",
    "FamilyRegistry",
    "IPFilterFamily",
    "IPsecTunnelFamily",
    "InterfaceFilterFamily",
    "PASSIVE_FAMILIES",
    "Slot",
    "StaticRouteFamily",
    "build_registry",
]
