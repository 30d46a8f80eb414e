"""Main Config Engine - single entry point for the parse and write paths.

Read path:  raw device text -> preprocessor -> matcher -> record builder
Write path: desired record -> synthesizer -> ordered command list

The engine is stateless between calls: nothing read from a device is
cached, so every comparison starts from a fresh parse.
"""
import logging
from typing import Any, Callable, Iterable, Optional

from .builder import RecordBuilder
from .catalog import Catalog
from .collision import (
    CollisionReport,
    SequenceRange,
    SiblingEntry,
    check_against_device,
    check_against_siblings,
)
from .diff import RecordDiff, compare
from .errors import AmbiguousMatch, CollisionDetected, MalformedInput, UnknownPattern
from .families import AccessListFamily, build_registry
from .matcher import Matcher
from .preprocessor import LinePreprocessor
from .records import AccessList
from .schema import Diagnostic, MatchResult, ParseResult, SequencePolicy
from .sequence import DEFAULT_STEP, SequenceAllocator
from .synthesizer import CommandSynthesizer
from ..utils.logging_config import timed_section_sync

logger = logging.getLogger(__name__)

COMMENT_PREFIXES = ("#", "!")


class ConfigEngine:
    """
    Parse RTX configuration text into records and synthesize commands back.

    Usage:
        engine = ConfigEngine()
        result = engine.parse(show_config_text)
        commands = engine.synthesize(desired, previous=result.records[0])
    """

    def __init__(self, catalog: Optional[Catalog] = None):
        """
        Initialize the Config Engine.

        Args:
            catalog: Pattern catalog. Without one, each engine loads its own with Catalog.load()
        """
        self.catalog = catalog if catalog is not None else Catalog.load()
        self.normalizer = self.catalog.normalizer
        self.registry = build_registry(self.catalog)
        self.preprocessor = LinePreprocessor()
        self.matcher = Matcher(self.catalog)
        self.builder = RecordBuilder(self.catalog, self.registry)
        self.synthesizer = CommandSynthesizer(self.catalog, self.registry)

    # --- Read path ---

    def reconstruct(self, raw: str) -> str:
        """Undo console line wrapping."""
        return self.preprocessor.reconstruct(raw)

    def match(self, line: str) -> MatchResult:
        """Identify the catalog pattern of a single line.

        Raises:
            UnknownPattern, AmbiguousMatch, MalformedInput
        """
        return self.matcher.match(line)

    def parse(self, text: str) -> ParseResult:
        """
        Parse device configuration text into records.

        Lines no pattern recognizes, ambiguous lines and malformed lines
        are reported as diagnostics; the rest of the text still parses.

        Args:
            text: Raw ``show config`` output (may be wrapped)

        Returns:
            ParseResult with records and diagnostics
        """
        result = ParseResult()
        with timed_section_sync("parse"):
            lines, problems = self.preprocessor.reconstruct_lines(text)
            result.diagnostics.extend(problems)

            matches: list[MatchResult] = []
            breaks: list[int] = []
            for line in lines:
                stripped = line.text.strip()
                if not stripped or stripped.startswith(COMMENT_PREFIXES):
                    continue
                indented = line.text[:1].isspace()
                try:
                    match = self.matcher.match(stripped, line.line_number)
                except UnknownPattern as e:
                    logger.debug(f"Line {line.line_number}: {e}")
                    result.diagnostics.append(Diagnostic.from_error(e))
                except (AmbiguousMatch, MalformedInput) as e:
                    logger.warning(f"Line {line.line_number}: {e}")
                    result.diagnostics.append(Diagnostic.from_error(e))
                else:
                    match.indented = indented
                    matches.append(match)
                    continue
                if not indented:
                    breaks.append(line.line_number)

            records, problems = self.builder.build(matches, breaks)
            result.records.extend(records)
            result.diagnostics.extend(problems)

        logger.info(
            f"Parsed {len(result.records)} records from {len(lines)} lines "
            f"({len(result.diagnostics)} diagnostics)"
        )
        return result

    # --- Write path ---

    def synthesize(self, desired: Any, previous: Optional[Any] = None) -> list[str]:
        """Ordered commands moving ``previous`` to ``desired``."""
        commands = self.synthesizer.synthesize(desired, previous)
        logger.debug(f"Synthesized {len(commands)} commands for {_describe(desired)}")
        return commands

    def delete(self, record: Any) -> list[str]:
        """Commands removing ``record`` from the device."""
        return self.synthesizer.delete(record)

    # --- Sequences and collisions ---

    def allocator(self, kind: str = "ip") -> SequenceAllocator:
        """Allocator bounded by the numbering space of an access list kind."""
        return self._access_lists().allocator(AccessList(name="", kind=kind))

    def allocate_sequence(self, policy: SequencePolicy, count: int, kind: str = "ip") -> list[int]:
        """Ids for ``count`` entries under an automatic policy."""
        return self.allocator(kind).allocate(policy, count)

    def sequence_range(self, access_list: AccessList) -> Optional[SequenceRange]:
        """Range the list's entries occupy once numbered."""
        return self._access_lists().sequence_range(access_list)

    def next_available_start(
        self,
        used: Iterable[int],
        count: int,
        step: int = DEFAULT_STEP,
        kind: str = "ip",
    ) -> int:
        return self.allocator(kind).next_available_start(used, count, step)

    def check_collision(
        self,
        candidate: SequenceRange,
        siblings: Iterable[SiblingEntry] = (),
        device_query: Optional[Callable[[], Iterable[SiblingEntry]]] = None,
        exclude: Iterable[int] = (),
        replacing: Optional[SiblingEntry] = None,
    ) -> None:
        """
        Check a range against declared siblings, then against the device.

        The device answer is authoritative: it is consulted even when the
        sibling check passes, and its query errors propagate unchanged.

        Raises:
            CollisionDetected: If either check finds an overlap
        """
        report: Optional[CollisionReport] = check_against_siblings(candidate, siblings, replacing)
        if report is None and device_query is not None:
            report = check_against_device(candidate, device_query, exclude)
        if report is not None:
            logger.error(report.message)
            raise CollisionDetected(report)

    # --- Comparison ---

    def compare(self, declared: Any, observed: Any) -> RecordDiff:
        """Field-wise comparison under the equivalence table."""
        return compare(declared, observed, self.normalizer)

    def equivalent(self, a: Any, b: Any) -> bool:
        return self.normalizer.records_equivalent(a, b)

    def _access_lists(self) -> AccessListFamily:
        return self.registry.get(AccessListFamily.name)


def _describe(record: Any) -> str:
    identity = getattr(record, "identity", None)
    return str(identity) if identity is not None else type(record).__name__
