"""Config Engine - RTX configuration parsing and command synthesis.

The engine turns ``show config`` text into typed records and synthesizes
the commands that move a router to a desired record:
- One YAML catalog drives both matching and rendering
- Alias spellings collapse through the equivalence normalizer
- Ordered rule lists get sequence allocation and collision checks

Usage:
    from rtx_state.config_engine import ConfigEngine

    engine = ConfigEngine()
    parsed = engine.parse(show_config_text)
    dns = parsed.of_type(DNSConfig)[0]
    commands = engine.synthesize(replace(dns, service_on=False), previous=dns)
"""

from .engine import ConfigEngine
from .catalog import Catalog
from .schema import (
    ABSENT,
    NOT_DERIVABLE,
    CommandPattern,
    DerivableField,
    DerivableState,
    Diagnostic,
    ExecuteResult,
    MatchResult,
    Parameter,
    ParseResult,
    SequenceMode,
    SequencePolicy,
)
from .records import (
    AccessList,
    AdminUser,
    DNSConfig,
    DNSHost,
    DNSServer,
    DNSServerSelect,
    DynamicFilter,
    EthernetFilter,
    InterfaceFilters,
    IPFilter,
    IPsecTunnel,
    NextHop,
    StaticRoute,
)
from .errors import (
    AmbiguousMatch,
    CatalogError,
    CollisionDetected,
    DuplicateSequence,
    MalformedInput,
    RTXStateError,
    SequenceOverflow,
    UnknownPattern,
    ValidationError,
)
from .preprocessor import LinePreprocessor, reconstruct
from .matcher import Matcher
from .normalizer import EquivalenceNormalizer
from .builder import RecordBuilder
from .synthesizer import CommandSynthesizer
from .sequence import SequenceAllocator
from .collision import (
    CollisionReport,
    SequenceRange,
    build_collision_message,
    check_against_device,
    check_against_siblings,
    ranges_from_records,
)
from .diff import RecordDiff, compare, merge_observed, summarize_diff
from .executor import ConfigExecutor

__all__ = [
    # Main engine
    "ConfigEngine",
    "ConfigExecutor",
    # Catalog and schema
    "Catalog",
    "CommandPattern",
    "Parameter",
    "MatchResult",
    "Diagnostic",
    "ParseResult",
    "ExecuteResult",
    "DerivableField",
    "DerivableState",
    "NOT_DERIVABLE",
    "ABSENT",
    "SequenceMode",
    "SequencePolicy",
    # Records
    "AccessList",
    "AdminUser",
    "DNSConfig",
    "DNSHost",
    "DNSServer",
    "DNSServerSelect",
    "DynamicFilter",
    "EthernetFilter",
    "InterfaceFilters",
    "IPFilter",
    "IPsecTunnel",
    "NextHop",
    "StaticRoute",
    # Errors
    "RTXStateError",
    "CatalogError",
    "MalformedInput",
    "UnknownPattern",
    "AmbiguousMatch",
    "ValidationError",
    "SequenceOverflow",
    "DuplicateSequence",
    "CollisionDetected",
    # Components (for advanced use)
    "LinePreprocessor",
    "reconstruct",
    "Matcher",
    "EquivalenceNormalizer",
    "RecordBuilder",
    "CommandSynthesizer",
    "SequenceAllocator",
    "SequenceRange",
    "CollisionReport",
    "check_against_siblings",
    "check_against_device",
    "ranges_from_records",
    "build_collision_message",
    "RecordDiff",
    "compare",
    "merge_observed",
    "summarize_diff",
]
