"""Interface filter bindings (``ip lan2 secure filter in ...``)."""
import logging
from typing import Any

from ..records import InterfaceFilters
from ..schema import NOT_DERIVABLE, MatchResult
from .base import Family, Slot, require

logger = logging.getLogger(__name__)

KIND_PATTERNS = {
    "ip": "ip_interface_filter",
    "ipv6": "ipv6_interface_filter",
    "ethernet": "ethernet_interface_filter",
}
PATTERN_KINDS = {v: k for k, v in KIND_PATTERNS.items()}


class InterfaceFilterFamily(Family):
    """One record per (kind, interface, direction)."""

    name = "interface_filter"
    record_type = InterfaceFilters

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        if match.negated:
            return
        record = InterfaceFilters(
            interface=params["interface"],
            direction=params["direction"],
            filters=list(params["filters"] or []),
            dynamic_filters=list(params.get("dynamic_filters") or []),
            kind=PATTERN_KINDS[match.pattern_name],
            access_list=NOT_DERIVABLE,
        )
        state[record.identity] = record

    def slots(self) -> list[Slot]:
        return [
            Slot(pattern, lambda r, kind=kind: self._items(r, kind), keys=("interface", "direction"))
            for kind, pattern in KIND_PATTERNS.items()
        ]

    @staticmethod
    def _items(record: InterfaceFilters, kind: str) -> dict:
        require(record.kind in KIND_PATTERNS, f"Unknown filter kind {record.kind!r}",
                record=record.identity, field="kind")
        if record.kind != kind or not (record.filters or record.dynamic_filters):
            return {}
        require(
            not (kind == "ethernet" and record.dynamic_filters),
            "Ethernet bindings have no dynamic filters",
            record=record.identity, field="dynamic_filters",
        )
        require(bool(record.filters), "At least one static filter must be bound",
                record=record.identity, field="filters")
        params = {
            "interface": record.interface.lower(),
            "direction": record.direction.lower(),
            "filters": list(record.filters),
        }
        if kind != "ethernet":
            params["dynamic_filters"] = list(record.dynamic_filters)
        return {(params["interface"], params["direction"]): params}
