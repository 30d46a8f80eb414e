"""Static routes with ordered (ECMP) next hops.

All hops of a network share one line, so the hop list is a single
``hops`` parameter. It is split into ``gateway ...`` fragments on read and
each fragment is matched against the ``route_gateway`` pattern.
"""
import logging
import re
from typing import Any, Optional

from ..errors import MalformedInput
from ..records import NextHop, StaticRoute
from ..schema import CommandPattern, MatchResult
from .base import Family, Slot, require

logger = logging.getLogger(__name__)

_HOP_SPLIT = re.compile(r"\s+(?=gateway\s)", re.IGNORECASE)
HOP_PATTERN = "route_gateway"


class StaticRouteFamily(Family):
    """``ip route <network> gateway ... [gateway ...]``."""

    name = "static_route"
    record_type = StaticRoute

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        if match.negated:
            logger.debug(f"Ignoring negated route line: {match.source_line.strip()}")
            return
        hops = [self._hop(text, match) for text in _HOP_SPLIT.split(params["hops"].strip())]
        route = StaticRoute(network=params["network"], next_hops=hops)
        state[route.identity] = route

    def _hop(self, text: str, match: MatchResult) -> NextHop:
        pattern = self.catalog.get(HOP_PATTERN)
        raw = pattern.template.match(text)
        if raw is None:
            raise MalformedInput(
                f"Unrecognized route hop: {text!r}",
                line=match.source_line,
                line_number=match.line_number,
                candidates=[HOP_PATTERN],
            )
        values = {}
        for param in pattern.parameters:
            value = raw.get(param.name)
            values[param.name] = self.default(param) if value is None \
                else self.normalizer.canonicalize_param(param, value)
        return NextHop(
            gateway=values["gateway"],
            weight=values["weight"],
            filters=list(values["filters"] or []),
            hide=bool(values["hide"]),
            keepalive=values["keepalive"],
        )

    def slots(self) -> list[Slot]:
        return [Slot("ip_route", self._items, keys=("network",))]

    def _items(self, record: StaticRoute) -> dict:
        require(bool(record.next_hops), "A route needs at least one gateway",
                record=record.identity, field="next_hops")
        network = self.normalizer.canonicalize("route_network", record.network)
        return {network: {"network": network, "hops": list(record.next_hops)}}

    def spell(self, pattern: CommandPattern, values: dict[str, Any],
              names: Optional[set] = None) -> dict[str, Optional[str]]:
        plain = {k: v for k, v in values.items() if k != "hops"}
        spelled = super().spell(pattern, plain, names)
        if "hops" in values and (names is None or "hops" in names):
            spelled["hops"] = " ".join(self._render_hop(hop) for hop in values["hops"])
        return spelled

    def _render_hop(self, hop: NextHop) -> str:
        pattern = self.catalog.get(HOP_PATTERN)
        values = {
            "gateway": hop.gateway,
            "weight": hop.weight,
            "filters": list(hop.filters),
            "hide": hop.hide,
            "keepalive": hop.keepalive,
        }
        spelled = super().spell(pattern, values)
        defaulted = frozenset(
            p.name for p in pattern.parameters if self.normalizer.is_default(p, values[p.name])
        )
        return pattern.template.render(spelled, defaulted)

    def identity(self, record: StaticRoute) -> tuple:
        return ("static_route", self.normalizer.canonicalize("route_network", record.network))
