"""Tests for DNS parsing and synthesis."""
import pytest

from rtx_state.config_engine import (
    DNSConfig,
    DNSHost,
    DNSServer,
    DNSServerSelect,
    ValidationError,
)

class TestDNSParse:
    """Tests for reading DNS settings from device text."""

    def test_service_spellings(self, engine):
        """'on' and 'recursive' both read as service on."""
        for text in ("dns service on", "dns service recursive"):
            config = engine.parse(text).of_type(DNSConfig)[0]
            assert config.service_on is True
        config = engine.parse("dns service off").of_type(DNSConfig)[0]
        assert config.service_on is False

    def test_no_domain_lookup(self, engine):
        """'no dns domain lookup' is the disabled state."""
        config = engine.parse("no dns domain lookup").of_type(DNSConfig)[0]
        assert config.domain_lookup is False

    def test_full_block(self, engine):
        """All DNS lines fold into one record."""
        text = "\n".join([
            "dns service recursive",
            "dns server 8.8.8.8 8.8.4.4",
            "dns domain example.com",
            "dns server select 500 192.168.1.1 .",
            "dns server select 2 10.0.0.1 10.0.0.2 edns=on aaaa internal.example.com 192.168.0.0/24 restrict pp 1",
            "dns static router.example.com 192.168.1.1",
            "dns private address spoof on",
        ])
        result = engine.parse(text)
        assert result.diagnostics == []
        configs = result.of_type(DNSConfig)
        assert len(configs) == 1
        config = configs[0]
        assert config.name_servers == ["8.8.8.8", "8.8.4.4"]
        assert config.domain_name == "example.com"
        assert config.private_spoof is True
        assert config.hosts == [DNSHost("router.example.com", "192.168.1.1")]

        assert [s.id for s in config.server_selects] == [2, 500]
        selector = config.server_selects[0]
        assert selector.servers == [DNSServer("10.0.0.1", False), DNSServer("10.0.0.2", True)]
        assert selector.record_type == "aaaa"
        assert selector.query_pattern == "internal.example.com"
        assert selector.original_sender == "192.168.0.0/24"
        assert selector.restrict_pp == 1

        catch_all = config.server_selects[1]
        assert catch_all.servers == [DNSServer("192.168.1.1", False)]
        assert catch_all.query_pattern == "."
        assert catch_all.record_type == "a"

    def test_trailing_edns_is_diagnosed(self, engine):
        """A malformed selector is reported and the rest still parses."""
        result = engine.parse("dns server select 1 10.0.0.1 . edns=on\ndns server 8.8.8.8")
        assert len(result.diagnostics_of("MalformedInput")) == 1
        assert result.of_type(DNSConfig)[0].name_servers == ["8.8.8.8"]
        assert result.of_type(DNSConfig)[0].server_selects == []


class TestDNSSynthesize:
    """Tests for emitting DNS commands."""

    def test_service_on_uses_canonical_spelling(self, engine):
        """Turning the service on always emits 'recursive'."""
        commands = engine.synthesize(DNSConfig(service_on=True), DNSConfig(service_on=False))
        assert commands == ["dns service recursive"]

    def test_service_off(self, engine):
        """A non-default service state is emitted on creation."""
        assert engine.synthesize(DNSConfig(service_on=False)) == ["dns service off"]

    def test_all_defaults_emit_nothing(self, engine):
        """A default configuration needs no commands."""
        assert engine.synthesize(DNSConfig()) == []

    def test_domain_lookup_off(self, engine):
        """Disabling lookup emits the explicit off form."""
        assert engine.synthesize(DNSConfig(domain_lookup=False)) == ["dns domain lookup off"]

    def test_selector_edns_per_server(self, engine):
        """Each server carries its own edns flag in the command."""
        config = DNSConfig(server_selects=[DNSServerSelect(
            id=1,
            servers=[DNSServer("10.0.0.1", edns=True), DNSServer("10.0.0.2")],
            query_pattern="example.com",
            record_type="any",
        )])
        assert engine.synthesize(config) == [
            "dns server select 1 10.0.0.1 edns=on 10.0.0.2 any example.com",
        ]

    def test_name_servers_replace(self, engine):
        """Changing the server list clears it before setting the new one."""
        commands = engine.synthesize(
            DNSConfig(name_servers=["1.1.1.1"]),
            DNSConfig(name_servers=["8.8.8.8", "8.8.4.4"]),
        )
        assert commands == ["no dns server", "dns server 1.1.1.1"]

    def test_removed_selector(self, engine):
        """Selectors missing from the desired record are removed."""
        old = DNSConfig(server_selects=[DNSServerSelect(7, [DNSServer("10.0.0.1")])])
        assert engine.synthesize(DNSConfig(), old) == ["no dns server select 7"]

    def test_too_many_name_servers(self, engine):
        """More than three name servers cannot be expressed."""
        config = DNSConfig(name_servers=["1.1.1.1", "1.0.0.1", "8.8.8.8", "8.8.4.4"])
        with pytest.raises(ValidationError):
            engine.synthesize(config)

    def test_selector_needs_a_server(self, engine):
        """A selector without servers is rejected."""
        config = DNSConfig(server_selects=[DNSServerSelect(1, [])])
        with pytest.raises(ValidationError):
            engine.synthesize(config)


class TestDNSRoundTrip:
    """Tests for synthesize-then-parse stability."""

    def test_round_trip(self, engine, roundtrip):
        """A synthesized configuration parses back to an equivalent record."""
        config = DNSConfig(
            service_on=False,
            domain_name="example.com",
            name_servers=["8.8.8.8", "8.8.4.4"],
            server_selects=[DNSServerSelect(
                id=1,
                servers=[DNSServer("10.0.0.1", edns=True), DNSServer("10.0.0.2")],
                query_pattern="example.com",
                record_type="any",
            )],
            hosts=[DNSHost("router.example.com", "192.168.1.1")],
            private_spoof=True,
        )
        parsed = roundtrip(config)
        assert parsed.diagnostics == []
        assert engine.equivalent(config, parsed.of_type(DNSConfig)[0])

    def test_idempotent(self, engine):
        """A record compared with itself yields no commands."""
        config = DNSConfig(service_on=False, name_servers=["8.8.8.8"], private_spoof=True)
        assert engine.synthesize(config, config) == []
