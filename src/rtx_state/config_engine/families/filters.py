"""Packet filter families: static IP/IPv6, dynamic, and Ethernet filters.

Every filter line is a record of its own, identified by its number. The
device never echoes the access-list a filter was declared under, so parsed
filters carry NOT_DERIVABLE there.
"""
import logging
from typing import Any

from ..records import DynamicFilter, EthernetFilter, IPFilter
from ..schema import NOT_DERIVABLE, MatchResult
from .base import Family, Slot, require

logger = logging.getLogger(__name__)


class IPFilterFamily(Family):
    """``ip filter`` and ``ipv6 filter``."""

    name = "ip_filter"
    record_type = IPFilter

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        if match.negated:
            logger.debug(f"Ignoring negated filter line: {match.source_line.strip()}")
            return
        record = IPFilter(
            number=params["number"],
            action=params["action"],
            source=params["source"],
            destination=params["destination"],
            protocol=params["protocol"],
            source_port=params["source_port"],
            destination_port=params["destination_port"],
            established=bool(params.get("established")),
            ipv6=match.pattern_name == "ipv6_filter",
            access_list=NOT_DERIVABLE,
        )
        state[record.identity] = record

    def slots(self) -> list[Slot]:
        return [
            Slot("ip_filter", lambda r: self._items(r, ipv6=False), keys=("number",)),
            Slot("ipv6_filter", lambda r: self._items(r, ipv6=True), keys=("number",)),
        ]

    @staticmethod
    def _items(record: IPFilter, ipv6: bool) -> dict:
        if record.ipv6 != ipv6:
            return {}
        require(
            not (ipv6 and record.established),
            "IPv6 filters do not support 'established'",
            record=record.identity, field="established",
        )
        params = {
            "number": record.number,
            "action": record.action,
            "source": record.source,
            "destination": record.destination,
            "protocol": record.protocol,
            "source_port": record.source_port,
            "destination_port": record.destination_port,
        }
        if not ipv6:
            params["established"] = record.established
        return {record.number: params}


class DynamicFilterFamily(Family):
    """``ip filter dynamic`` and ``ipv6 filter dynamic`` stateful inspection entries."""

    name = "ip_filter_dynamic"
    record_type = DynamicFilter

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        if match.negated:
            return
        record = DynamicFilter(
            number=params["number"],
            source=params["source"],
            destination=params["destination"],
            protocol=params["protocol"],
            syslog=bool(params["syslog"]),
            ipv6=match.pattern_name == "ipv6_filter_dynamic",
            access_list=NOT_DERIVABLE,
        )
        state[record.identity] = record

    def slots(self) -> list[Slot]:
        return [
            Slot("ip_filter_dynamic", lambda r: self._items(r, ipv6=False), keys=("number",)),
            Slot("ipv6_filter_dynamic", lambda r: self._items(r, ipv6=True), keys=("number",)),
        ]

    @staticmethod
    def _items(record: DynamicFilter, ipv6: bool) -> dict:
        if record.ipv6 != ipv6:
            return {}
        return {record.number: {
            "number": record.number,
            "source": record.source,
            "destination": record.destination,
            "protocol": record.protocol,
            "syslog": record.syslog,
        }}


class EthernetFilterFamily(Family):
    """``ethernet filter`` layer-2 entries."""

    name = "ethernet_filter"
    record_type = EthernetFilter

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        if match.negated:
            return
        record = EthernetFilter(
            number=params["number"],
            action=params["action"],
            source_mac=params["source_mac"],
            destination_mac=params["destination_mac"],
            ether_type=params.get("ether_type"),
            vlan_id=params.get("vlan_id"),
            access_list=NOT_DERIVABLE,
        )
        state[record.identity] = record

    def slots(self) -> list[Slot]:
        return [Slot("ethernet_filter", self._items, keys=("number",))]

    def _items(self, record: EthernetFilter) -> dict:
        action = self.normalizer.canonicalize("filter_action", record.action)
        require(
            action in ("permit", "permit_log", "deny", "deny_log"),
            f"Ethernet filters only pass or reject, not {record.action!r}",
            record=record.identity, field="action",
        )
        return {record.number: {
            "number": record.number,
            "action": record.action,
            "source_mac": record.source_mac,
            "destination_mac": record.destination_mac,
            "ether_type": record.ether_type,
            "vlan_id": record.vlan_id,
        }}
