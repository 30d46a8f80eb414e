"""Catalog-driven line matcher.

Every line is tried against every line pattern of the catalog, including
alias spellings and no-forms. Exactly one distinct pattern must match;
several matching patterns is an AmbiguousMatch rather than a silent
first-match-wins.
"""
import logging
from typing import Optional

from .catalog import Catalog
from .errors import AmbiguousMatch, MalformedInput, UnknownPattern
from .schema import CommandPattern, MatchResult

logger = logging.getLogger(__name__)


class Matcher:
    """Identify which catalog pattern a line instantiates."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self._patterns = catalog.line_patterns()

    def match(self, line: str, line_number: Optional[int] = None) -> MatchResult:
        """Match one preprocessed line.

        Args:
            line: Logical line after wrap reconstruction
            line_number: Physical line number, for diagnostics

        Returns:
            MatchResult with raw parameter text

        Raises:
            UnknownPattern: No pattern matches (normal for unrelated config)
            AmbiguousMatch: More than one pattern matches
            MalformedInput: A command we own is present but its parameters
                do not fit any spelling
        """
        hits: list[MatchResult] = []
        for pattern in self._patterns:
            result = self._match_pattern(pattern, line, line_number)
            if result is not None:
                hits.append(result)

        if len(hits) == 1:
            return hits[0]
        if len(hits) > 1:
            raise AmbiguousMatch(line, [h.pattern_name for h in hits], line_number)

        owners = [
            p.name for p in self._patterns
            if p.malformed_prefix and _starts_with_words(line, p.malformed_prefix)
        ]
        if owners:
            raise MalformedInput(
                f"Parameters do not fit any spelling of {', '.join(owners)}",
                line=line,
                line_number=line_number,
                candidates=owners,
            )
        raise UnknownPattern(line, line_number)

    def _match_pattern(
        self,
        pattern: CommandPattern,
        line: str,
        line_number: Optional[int],
    ) -> Optional[MatchResult]:
        for template in (pattern.template, *pattern.alias_templates):
            raw = template.match(line)
            if raw is not None:
                return MatchResult(pattern.name, pattern.family, raw, line, line_number)
        if pattern.no_form_template is not None:
            raw = pattern.no_form_template.match(line)
            if raw is not None:
                return MatchResult(pattern.name, pattern.family, raw, line, line_number, negated=True)
        return None

    def match_fragment(self, pattern_name: str, text: str) -> Optional[dict[str, str]]:
        """Match text against a fragment pattern (e.g. one route hop)."""
        pattern = self.catalog.get(pattern_name)
        for template in (pattern.template, *pattern.alias_templates):
            raw = template.match(text)
            if raw is not None:
                return raw
        return None


def _starts_with_words(line: str, prefix: str) -> bool:
    words = line.split()
    expected = prefix.split()
    return [w.lower() for w in words[:len(expected)]] == [w.lower() for w in expected]
