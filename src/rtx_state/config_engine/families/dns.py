"""DNS family: service, lookup, domain, servers, selectors, static hosts."""
import logging
from typing import Any

from ..records import DNSConfig, DNSHost, DNSServer, DNSServerSelect
from ..schema import MatchResult
from .base import Family, Slot, require

logger = logging.getLogger(__name__)

MAX_NAME_SERVERS = 3
MAX_SELECT_SERVERS = 2


class DNSFamily(Family):
    """Router-wide DNS settings, folded into a single DNSConfig."""

    name = "dns"
    record_type = DNSConfig

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        config = state.setdefault("dns", DNSConfig())
        name = match.pattern_name

        if match.negated:
            # The device prints "no dns domain lookup" for the disabled state
            if name == "dns_domain_lookup":
                config.domain_lookup = False
            else:
                logger.debug(f"Ignoring negated DNS line: {match.source_line.strip()}")
            return

        if name == "dns_service":
            config.service_on = params["service"]
        elif name == "dns_domain_lookup":
            config.domain_lookup = params["lookup"]
        elif name == "dns_domain":
            config.domain_name = params["domain"]
        elif name == "dns_server":
            config.name_servers = list(params["servers"])
        elif name == "dns_server_select":
            config.server_selects = [s for s in config.server_selects if s.id != params["id"]]
            config.server_selects.append(self._server_select(params))
            config.server_selects.sort(key=lambda s: s.id)
        elif name == "dns_static":
            config.hosts = [h for h in config.hosts if h.name != params["name"]]
            config.hosts.append(DNSHost(name=params["name"], address=params["address"]))
        elif name == "dns_private_spoof":
            config.private_spoof = params["spoof"]

    @staticmethod
    def _server_select(params: dict[str, Any]) -> DNSServerSelect:
        # Each EDNS flag belongs to the server written right before it
        servers = [DNSServer(params["server1"], bool(params["edns1"]))]
        if params.get("server2"):
            servers.append(DNSServer(params["server2"], bool(params["edns2"])))
        return DNSServerSelect(
            id=params["id"],
            servers=servers,
            query_pattern=params["query"],
            record_type=params["record_type"] or "a",
            original_sender=params.get("original_sender"),
            restrict_pp=params.get("restrict_pp"),
        )

    def slots(self) -> list[Slot]:
        return [
            Slot("dns_service", lambda r: {None: {"service": r.service_on}}),
            Slot("dns_domain_lookup", lambda r: {None: {"lookup": r.domain_lookup}}),
            Slot("dns_domain", self._domain_items),
            Slot("dns_server", self._server_items),
            Slot("dns_server_select", self._select_items, keys=("id",)),
            Slot("dns_static", self._host_items, keys=("name",)),
            Slot("dns_private_spoof", lambda r: {None: {"spoof": r.private_spoof}}),
        ]

    @staticmethod
    def _domain_items(record: DNSConfig) -> dict:
        if not record.domain_name:
            return {}
        return {None: {"domain": record.domain_name}}

    @staticmethod
    def _server_items(record: DNSConfig) -> dict:
        if not record.name_servers:
            return {}
        require(
            len(record.name_servers) <= MAX_NAME_SERVERS,
            f"At most {MAX_NAME_SERVERS} name servers are supported",
            record="dns", field="name_servers",
        )
        return {None: {"servers": list(record.name_servers)}}

    @staticmethod
    def _select_items(record: DNSConfig) -> dict:
        items = {}
        for select in record.server_selects:
            require(
                1 <= len(select.servers) <= MAX_SELECT_SERVERS,
                f"Server selector needs 1 to {MAX_SELECT_SERVERS} servers",
                record=f"dns server select {select.id}", field="servers",
            )
            second = select.servers[1] if len(select.servers) > 1 else None
            items[select.id] = {
                "id": select.id,
                "server1": select.servers[0].address,
                "edns1": select.servers[0].edns,
                "server2": second.address if second else None,
                "edns2": second.edns if second else False,
                "record_type": select.record_type,
                "query": select.query_pattern,
                "original_sender": select.original_sender,
                "restrict_pp": select.restrict_pp,
            }
        return items

    @staticmethod
    def _host_items(record: DNSConfig) -> dict:
        return {h.name: {"name": h.name, "address": h.address} for h in record.hosts}
