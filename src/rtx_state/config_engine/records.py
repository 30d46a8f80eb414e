"""Typed domain records, one per configuration family.

Records hold canonical values after parsing, but callers may build them
with any accepted spelling ("pass", "*", "on"): all comparisons go through
the equivalence normalizer using each record's FIELD_CLASSES.
"""
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from .schema import ABSENT, DerivableField, SequencePolicy


# --- DNS ---

@dataclass
class DNSServer:
    """One upstream server of a server selector, with its own EDNS flag."""
    address: str
    edns: bool = False

    FIELD_CLASSES: ClassVar[dict] = {"address": "ip_address", "edns": "on_off"}


@dataclass
class DNSServerSelect:
    """Domain-based upstream selection (dns server select)."""
    id: int
    servers: list[DNSServer] = field(default_factory=list)
    query_pattern: str = "."
    record_type: str = "a"
    original_sender: Optional[str] = None
    restrict_pp: Optional[int] = None

    FIELD_CLASSES: ClassVar[dict] = {
        "record_type": "lower",
        "original_sender": "ip_address",
    }


@dataclass
class DNSHost:
    """Static host entry."""
    name: str
    address: str

    FIELD_CLASSES: ClassVar[dict] = {"address": "ip_address"}


@dataclass
class DNSConfig:
    """Router-wide DNS configuration (singleton)."""
    service_on: bool = True
    domain_lookup: bool = True
    domain_name: Optional[str] = None
    name_servers: list[str] = field(default_factory=list)
    server_selects: list[DNSServerSelect] = field(default_factory=list)
    hosts: list[DNSHost] = field(default_factory=list)
    private_spoof: bool = False

    FIELD_CLASSES: ClassVar[dict] = {
        "service_on": "dns_service",
        "domain_lookup": "on_off",
        "name_servers": "ip_address",
        "private_spoof": "on_off",
    }

    def __post_init__(self):
        # The device lists selectors by id
        self.server_selects = sorted(self.server_selects, key=lambda s: s.id)

    @property
    def identity(self) -> str:
        return "dns"


# --- Filters ---

@dataclass
class IPFilter:
    """Static IP (or IPv6) packet filter entry."""
    number: Optional[int]
    action: str
    source: str = "*"
    destination: str = "*"
    protocol: str = "*"
    source_port: str = "*"
    destination_port: str = "*"
    established: bool = False
    ipv6: bool = False
    access_list: DerivableField = ABSENT

    FIELD_CLASSES: ClassVar[dict] = {
        "action": "filter_action",
        "source": "address",
        "destination": "address",
        "protocol": "protocol",
        "source_port": "port",
        "destination_port": "port",
    }

    @property
    def identity(self) -> tuple:
        return ("ipv6_filter" if self.ipv6 else "ip_filter", self.number)


@dataclass
class DynamicFilter:
    """Stateful inspection filter (ip filter dynamic, ipv6 filter dynamic)."""
    number: Optional[int]
    source: str = "*"
    destination: str = "*"
    protocol: str = "*"
    syslog: bool = False
    ipv6: bool = False
    access_list: DerivableField = ABSENT

    FIELD_CLASSES: ClassVar[dict] = {
        "source": "address",
        "destination": "address",
        "protocol": "lower",
    }

    @property
    def identity(self) -> tuple:
        return ("ipv6_filter_dynamic" if self.ipv6 else "ip_filter_dynamic", self.number)


@dataclass
class EthernetFilter:
    """Layer-2 MAC filter entry."""
    number: Optional[int]
    action: str
    source_mac: str = "*"
    destination_mac: str = "*"
    ether_type: Optional[str] = None
    vlan_id: Optional[int] = None
    access_list: DerivableField = ABSENT

    FIELD_CLASSES: ClassVar[dict] = {
        "action": "filter_action",
        "source_mac": "mac_address",
        "destination_mac": "mac_address",
        "ether_type": "ether_type",
    }

    @property
    def identity(self) -> tuple:
        return ("ethernet_filter", self.number)


FilterEntry = Union[IPFilter, DynamicFilter, EthernetFilter]


@dataclass
class InterfaceFilters:
    """Filters bound to one interface direction.

    The device stores only filter numbers, so the access-list name a caller
    bound here cannot be read back.
    """
    interface: str
    direction: str
    filters: list[int] = field(default_factory=list)
    dynamic_filters: list[int] = field(default_factory=list)
    kind: str = "ip"    # ip, ipv6, ethernet
    access_list: DerivableField = ABSENT

    FIELD_CLASSES: ClassVar[dict] = {"interface": "lower", "direction": "lower", "kind": "lower"}

    @property
    def identity(self) -> tuple:
        return ("interface_filter", self.kind, self.interface.lower(), self.direction.lower())


@dataclass
class AccessList:
    """An ordered rule list owning a block of filter numbers.

    Entries may leave ``number`` unset when the policy is automatic.
    """
    name: Union[str, DerivableField]
    entries: list[FilterEntry] = field(default_factory=list)
    policy: Optional[SequencePolicy] = None
    kind: str = "ip"    # ip, ipv6, dynamic, ipv6_dynamic, ethernet

    @property
    def identity(self) -> tuple:
        return ("access_list", self.kind, str(self.name))

    @property
    def numbering_space(self) -> str:
        return {
            "ip": "ip_filter",
            "ipv6": "ipv6_filter",
            "dynamic": "ip_filter_dynamic",
            "ipv6_dynamic": "ipv6_filter_dynamic",
            "ethernet": "ethernet_filter",
        }.get(self.kind, self.kind)

    @property
    def sequences(self) -> list[Optional[int]]:
        return [e.number for e in self.entries]


# --- Routing ---

@dataclass
class NextHop:
    """One gateway of a (possibly ECMP) static route."""
    gateway: str
    weight: int = 1
    filters: list[int] = field(default_factory=list)
    hide: bool = False
    keepalive: Optional[int] = None

    FIELD_CLASSES: ClassVar[dict] = {"gateway": "lower"}


@dataclass
class StaticRoute:
    """Static route with one or more next hops, in device order."""
    network: str
    next_hops: list[NextHop] = field(default_factory=list)

    FIELD_CLASSES: ClassVar[dict] = {"network": "route_network"}

    @property
    def identity(self) -> tuple:
        return ("static_route", self.network)


# --- IPsec ---

@dataclass
class IPsecTunnel:
    """Site-to-site IPsec tunnel spanning a ``tunnel select`` block."""
    tunnel_id: int
    sa_policy: Optional[int] = None
    description: Optional[str] = None
    sa_protocol: str = "esp"
    esp_encryption: str = "aes-cbc"
    esp_hash: Optional[str] = "sha-hmac"
    local_address: Optional[str] = None
    remote_address: Optional[str] = None
    pre_shared_key: DerivableField = ABSENT
    ike_encryption: Optional[str] = None
    ike_hash: Optional[str] = None
    ike_group: Optional[str] = None
    keepalive: bool = False
    keepalive_method: str = "dpd"
    keepalive_interval: int = 30
    keepalive_retry: Optional[int] = None
    tcp_mss: Optional[str] = None
    secure_filter_in: list[int] = field(default_factory=list)
    secure_filter_out: list[int] = field(default_factory=list)
    enabled: bool = True
    gateway_id: Optional[int] = None    # IKE gateway, when not numbered like the tunnel

    FIELD_CLASSES: ClassVar[dict] = {
        "local_address": "ip_address",
        "remote_address": "ip_address",
        "esp_encryption": "lower",
        "esp_hash": "lower",
        "ike_encryption": "lower",
        "ike_hash": "lower",
        "ike_group": "lower",
        "keepalive": "on_off",
        "keepalive_method": "lower",
        "tcp_mss": "lower",
    }

    @property
    def identity(self) -> tuple:
        return ("ipsec_tunnel", self.tunnel_id)

    def __post_init__(self):
        if self.gateway_id == self.tunnel_id:
            self.gateway_id = None

    @property
    def gateway(self) -> int:
        """IKE gateway number used by the ipsec ike and sa policy lines."""
        return self.tunnel_id if self.gateway_id is None else self.gateway_id


# --- Administration ---

@dataclass
class AdminUser:
    """Login user and its attributes.

    Encrypted passwords cannot be turned back into the declared plaintext,
    so they read back as NOT_DERIVABLE.
    """
    username: str
    password: DerivableField = ABSENT
    encrypted: bool = False
    administrator: bool = True
    connection: list[str] = field(default_factory=list)
    gui_pages: list[str] = field(default_factory=list)
    login_timer: Optional[int] = None

    FIELD_CLASSES: ClassVar[dict] = {
        "administrator": "administrator",
        "connection": "lower",
        "gui_pages": "lower",
    }

    @property
    def identity(self) -> tuple:
        return ("admin_user", self.username)


def identity_of(record: Any) -> Any:
    """Stable identity key of any record."""
    return record.identity
