"""IPsec tunnel family.

A tunnel spans a ``tunnel select N`` block. Scoped lines (description,
``ipsec tunnel``, TCP MSS, secure filters) belong to whichever tunnel is
selected. IKE and SA lines name an IKE gateway, which need not share the
tunnel's number. Inside a block they attach to the selected tunnel and
bind its gateway. Outside one they are placed after all lines are read:
through the ``ipsec sa policy <policy> <gateway>`` binding of a tunnel's
``ipsec tunnel <policy>``, else the tunnel numbered like the gateway.
A line that fits neither is reported rather than dropped.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import ValidationError
from ..records import IPsecTunnel
from ..schema import NOT_DERIVABLE, DerivableField, Diagnostic, MatchResult
from .base import Family, Slot, require

logger = logging.getLogger(__name__)

MASKED_SECRET = "*"

# IKE lines keyed by gateway id: pattern -> (parameter, record field)
GATEWAY_FIELDS = {
    "ipsec_ike_local_address": ("address", "local_address"),
    "ipsec_ike_remote_address": ("address", "remote_address"),
    "ipsec_ike_encryption": ("ike_encryption", "ike_encryption"),
    "ipsec_ike_hash": ("ike_hash", "ike_hash"),
    "ipsec_ike_group": ("ike_group", "ike_group"),
}

IKE_PATTERNS = set(GATEWAY_FIELDS) | {"ipsec_ike_pre_shared_key", "ipsec_ike_keepalive"}


@dataclass
class _TunnelState:
    tunnels: dict = field(default_factory=dict)
    sa_gateways: dict = field(default_factory=dict)    # sa policy -> gateway
    deferred: list = field(default_factory=list)       # (match, params) outside a block
    sa_bound: set = field(default_factory=set)         # tunnels whose gateway an SA line named


class IPsecTunnelFamily(Family):
    """Site-to-site IPsec tunnels."""

    name = "ipsec_tunnel"
    record_type = IPsecTunnel
    context_pattern = "tunnel_select"

    def new_state(self) -> _TunnelState:
        return _TunnelState()

    def consume(self, state: _TunnelState, match: MatchResult, params: dict[str, Any]) -> None:
        name = match.pattern_name
        if name == "tunnel_select":
            return
        if match.negated:
            logger.debug(f"Ignoring negated tunnel line: {match.source_line.strip()}")
            return

        if name in ("tunnel_description", "ipsec_tunnel", "ip_tunnel_tcp_mss", "ip_tunnel_secure_filter"):
            tunnel_id = self._selected(match)
            if tunnel_id is None:
                logger.debug(f"Scoped line outside a tunnel block: {match.source_line.strip()}")
                return
            tunnel = self._tunnel(state, tunnel_id)
            if name == "tunnel_description":
                tunnel.description = params["description"]
            elif name == "ipsec_tunnel":
                tunnel.sa_policy = params["sa_policy"]
            elif name == "ip_tunnel_tcp_mss":
                tunnel.tcp_mss = params["tcp_mss"]
            elif params["direction"] == "in":
                tunnel.secure_filter_in = list(params["filters"])
            else:
                tunnel.secure_filter_out = list(params["filters"])
            return

        if name == "tunnel_enable":
            self._tunnel(state, params["tunnel_id"]).enabled = params["enabled"]
            return
        if name != "ipsec_sa_policy" and name not in IKE_PATTERNS:
            return

        if name == "ipsec_sa_policy":
            state.sa_gateways[params["sa_policy"]] = params["gateway"]
        tunnel_id = self._selected(match)
        if tunnel_id is None:
            state.deferred.append((match, params))
            return
        self._place(state, self._tunnel(state, tunnel_id), name, params)

    def resolve(self, state: _TunnelState) -> list[Diagnostic]:
        diagnostics = []
        # SA lines first: they decide which policy a gateway serves
        deferred = sorted(state.deferred, key=lambda item: item[0].pattern_name != "ipsec_sa_policy")
        for match, params in deferred:
            gateway = params["gateway"]
            tunnel = self._tunnel_for(state, gateway, params.get("sa_policy"))
            if tunnel is None:
                if match.pattern_name == "ipsec_sa_policy":
                    message = f"SA policy {params['sa_policy']} is not used by any tunnel"
                else:
                    message = f"IKE gateway {gateway} is not bound to any tunnel"
                error = ValidationError(message, field="gateway", value=gateway)
                logger.warning(f"Line {match.line_number}: {error}")
                diagnostics.append(Diagnostic.from_error(error, match.source_line, match.line_number))
                continue
            self._place(state, tunnel, match.pattern_name, params)
        return diagnostics

    @staticmethod
    def _tunnel_for(state: _TunnelState, gateway: int, sa_policy: Optional[int]) -> Optional[IPsecTunnel]:
        tunnels = [state.tunnels[k] for k in sorted(state.tunnels)]
        if sa_policy is not None:
            policies = {sa_policy}
        else:
            policies = {p for p, g in state.sa_gateways.items() if g == gateway}
        for tunnel in tunnels:
            if tunnel.sa_policy is not None and tunnel.sa_policy in policies:
                return tunnel
        for tunnel in tunnels:
            if tunnel.gateway == gateway:
                return tunnel
        return None

    def _place(self, state: _TunnelState, tunnel: IPsecTunnel, name: str, params: dict[str, Any]) -> None:
        gateway = params["gateway"]
        if name == "ipsec_sa_policy":
            # The SA line is the binding; IKE lines only fill it in
            tunnel.gateway_id = None if gateway == tunnel.tunnel_id else gateway
            state.sa_bound.add(tunnel.tunnel_id)
        elif tunnel.tunnel_id not in state.sa_bound and gateway != tunnel.tunnel_id:
            tunnel.gateway_id = gateway
        elif gateway != tunnel.gateway:
            logger.warning(f"IKE gateway {gateway} differs from gateway {tunnel.gateway} "
                           f"of tunnel {tunnel.tunnel_id}; keeping {tunnel.gateway}")
        self._apply(tunnel, name, params)

    @staticmethod
    def _apply(tunnel: IPsecTunnel, name: str, params: dict[str, Any]) -> None:
        if name == "ipsec_sa_policy":
            tunnel.sa_policy = params["sa_policy"]
            tunnel.sa_protocol = params["sa_protocol"]
            tunnel.esp_encryption = params["esp_encryption"]
            tunnel.esp_hash = params["esp_hash"]
        elif name == "ipsec_ike_pre_shared_key":
            if params["psk"] == MASKED_SECRET:
                tunnel.pre_shared_key = NOT_DERIVABLE
            else:
                tunnel.pre_shared_key = DerivableField.known(params["psk"])
        elif name == "ipsec_ike_keepalive":
            tunnel.keepalive = params["keepalive"]
            if params.get("method"):
                tunnel.keepalive_method = params["method"]
            if params.get("interval") is not None:
                tunnel.keepalive_interval = params["interval"]
            tunnel.keepalive_retry = params.get("retry")
        else:
            param, field_name = GATEWAY_FIELDS[name]
            setattr(tunnel, field_name, params[param])

    @staticmethod
    def _selected(match: MatchResult) -> Optional[int]:
        if match.context is None or match.context[0] != "tunnel_select":
            return None
        value = match.context[1]
        return int(value) if value.isdigit() else None

    @staticmethod
    def _tunnel(state: _TunnelState, tunnel_id: int) -> IPsecTunnel:
        if tunnel_id not in state.tunnels:
            # Without a "tunnel enable" line the device leaves the tunnel down
            state.tunnels[tunnel_id] = IPsecTunnel(tunnel_id=tunnel_id, enabled=False)
        return state.tunnels[tunnel_id]

    def finish(self, state: _TunnelState) -> list[Any]:
        tunnels = state.tunnels
        # A select block without an SA policy is some other kind of tunnel
        return [tunnels[k] for k in sorted(tunnels) if tunnels[k].sa_policy is not None]

    # --- Synthesis ---

    def context_value(self, record: IPsecTunnel) -> Optional[str]:
        return str(record.tunnel_id)

    def slots(self) -> list[Slot]:
        return [
            Slot("tunnel_description", self._single("description", "description")),
            Slot("ipsec_tunnel", self._single("sa_policy", "sa_policy")),
            Slot("ipsec_sa_policy", self._sa_items, keys=("sa_policy", "gateway")),
            Slot("ipsec_ike_local_address", self._gateway("address", "local_address"), keys=("gateway",)),
            Slot("ipsec_ike_remote_address", self._gateway("address", "remote_address"), keys=("gateway",)),
            Slot("ipsec_ike_pre_shared_key", self._psk_items, keys=("gateway",)),
            Slot("ipsec_ike_encryption", self._gateway("ike_encryption", "ike_encryption"), keys=("gateway",)),
            Slot("ipsec_ike_hash", self._gateway("ike_hash", "ike_hash"), keys=("gateway",)),
            Slot("ipsec_ike_group", self._gateway("ike_group", "ike_group"), keys=("gateway",)),
            Slot("ipsec_ike_keepalive", self._keepalive_items, keys=("gateway",)),
            Slot("ip_tunnel_tcp_mss", self._single("tcp_mss", "tcp_mss")),
            Slot("ip_tunnel_secure_filter", self._secure_filter_items, keys=("direction",)),
            Slot("tunnel_enable", self._enable_items, keys=("tunnel_id",)),
        ]

    @staticmethod
    def _single(param: str, field_name: str):
        def items(record: IPsecTunnel) -> dict:
            value = getattr(record, field_name)
            return {} if value is None else {None: {param: value}}
        return items

    @staticmethod
    def _gateway(param: str, field_name: str):
        def items(record: IPsecTunnel) -> dict:
            value = getattr(record, field_name)
            if value is None:
                return {}
            return {record.gateway: {"gateway": record.gateway, param: value}}
        return items

    @staticmethod
    def _sa_items(record: IPsecTunnel) -> dict:
        require(record.sa_policy is not None, "An IPsec tunnel needs an SA policy number",
                record=record.identity, field="sa_policy")
        return {record.sa_policy: {
            "sa_policy": record.sa_policy,
            "gateway": record.gateway,
            "sa_protocol": record.sa_protocol,
            "esp_encryption": record.esp_encryption,
            "esp_hash": record.esp_hash,
        }}

    @staticmethod
    def _psk_items(record: IPsecTunnel) -> dict:
        if isinstance(record.pre_shared_key, DerivableField) and record.pre_shared_key.is_absent:
            return {}
        if record.pre_shared_key is None:
            return {}
        return {record.gateway: {"gateway": record.gateway, "psk": record.pre_shared_key}}

    @staticmethod
    def _keepalive_items(record: IPsecTunnel) -> dict:
        params = {"gateway": record.gateway, "keepalive": record.keepalive,
                  "method": None, "interval": None, "retry": None}
        if record.keepalive:
            params.update(
                method=record.keepalive_method,
                interval=record.keepalive_interval,
                retry=record.keepalive_retry,
            )
        return {record.gateway: params}

    @staticmethod
    def _secure_filter_items(record: IPsecTunnel) -> dict:
        items = {}
        for direction, filters in (("in", record.secure_filter_in), ("out", record.secure_filter_out)):
            if filters:
                items[direction] = {"direction": direction, "filters": list(filters)}
        return items

    @staticmethod
    def _enable_items(record: IPsecTunnel) -> dict:
        return {record.tunnel_id: {"enabled": record.enabled, "tunnel_id": record.tunnel_id}}
