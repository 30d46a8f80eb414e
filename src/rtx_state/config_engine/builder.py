"""Domain record builder: matched lines to typed records.

Matches are tagged with the context block they appear in, grouped by
family in device order, and folded by each family.

A block opened by an enter line (``tunnel select 1``) ends at:
- another enter line, including ``tunnel select none``
- a top-level line that could not be matched
- a top-level line, when the block's own lines are indented as in
  ``show config`` output
- a top-level line of another family, when the block is written flat as
  a command list
"""
import logging
from typing import Any, Iterable, Optional

from .catalog import Catalog
from .families import PASSIVE_FAMILIES, FamilyRegistry
from .schema import ContextRole, Diagnostic, MatchResult

logger = logging.getLogger(__name__)


class RecordBuilder:
    """Group matches per family and build records."""

    def __init__(self, catalog: Catalog, registry: FamilyRegistry):
        self.catalog = catalog
        self.registry = registry

    def build(
        self,
        matches: list[MatchResult],
        breaks: Iterable[int] = (),
    ) -> tuple[list[Any], list[Diagnostic]]:
        """Build records from matches in device order.

        Args:
            matches: Matched lines in device order
            breaks: Line numbers of unmatched top-level lines

        Returns:
            Tuple of (records, diagnostics). Records are ordered by family
            as registered, then as each family returns them.
        """
        grouped: dict[str, list[MatchResult]] = {}
        pending_breaks = sorted(breaks)
        context: Optional[tuple[str, str]] = None
        context_family: Optional[str] = None
        block_indented: Optional[bool] = None

        for match in matches:
            pattern = self.catalog.get(match.pattern_name)
            crossed = False
            while pending_breaks and match.line_number is not None and pending_breaks[0] < match.line_number:
                pending_breaks.pop(0)
                crossed = True

            if pattern.context == ContextRole.ENTER and not match.negated:
                value = next(iter(match.raw_parameters.values()), "")
                if value.lower() == "none":
                    context, context_family = None, None
                else:
                    context, context_family = (pattern.name, value.lower()), pattern.family
                block_indented = None
            elif context is not None:
                if crossed or (not match.indented and (block_indented or match.family != context_family)):
                    logger.debug(f"Line {match.line_number} ends the {context[0]} {context[1]} block")
                    context, context_family = None, None
                elif block_indented is None:
                    block_indented = match.indented

            match.context = context
            if match.family in PASSIVE_FAMILIES:
                continue
            if match.family not in self.registry:
                logger.debug(f"No family builds '{match.family}' lines, skipping {match.pattern_name}")
                continue
            grouped.setdefault(match.family, []).append(match)

        records: list[Any] = []
        diagnostics: list[Diagnostic] = []
        for family in self.registry:
            family_matches = grouped.get(family.name)
            if not family_matches:
                continue
            built, problems = family.build(family_matches)
            records.extend(built)
            diagnostics.extend(problems)
            logger.debug(f"Built {len(built)} {family.name} records from {len(family_matches)} lines")
        return records, diagnostics
