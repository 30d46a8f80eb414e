"""Access lists: named, ordered groups of filter entries.

The device has no notion of a list; it only stores numbered filters. An
access list therefore synthesizes as its member filters, after the
sequence policy has assigned their numbers, and is never produced by a
parse.
"""
import logging
from typing import Any, Optional

from ..collision import SequenceRange
from ..errors import ValidationError
from ..records import AccessList, DynamicFilter, EthernetFilter, IPFilter
from ..schema import MatchResult
from ..sequence import MAX_SEQUENCE, SequenceAllocator
from .base import Family, Slot, require

logger = logging.getLogger(__name__)

ENTRY_PATTERNS = {
    "ip": "ip_filter",
    "ipv6": "ipv6_filter",
    "dynamic": "ip_filter_dynamic",
    "ipv6_dynamic": "ipv6_filter_dynamic",
    "ethernet": "ethernet_filter",
}

ENTRY_TYPES = {
    "ip": IPFilter,
    "ipv6": IPFilter,
    "dynamic": DynamicFilter,
    "ipv6_dynamic": DynamicFilter,
    "ethernet": EthernetFilter,
}


class AccessListFamily(Family):
    """Composite family expanding into per-entry filter records."""

    name = "access_list"
    record_type = AccessList

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        # Filters read back as individual entries; no line names a list
        raise ValidationError(
            f"Access lists are not read from device text: {match.source_line.strip()}",
            field="access_list",
        )

    def slots(self) -> list[Slot]:
        raise NotImplementedError("Access lists synthesize through expand(), entry by entry")

    def allocator(self, record: AccessList) -> SequenceAllocator:
        pattern = ENTRY_PATTERNS.get(record.kind)
        maximum = None
        if pattern in self.catalog:
            number = self.catalog.get(pattern).parameter("number")
            maximum = number.range[1] if number.range else None
        return SequenceAllocator(maximum or MAX_SEQUENCE)

    def numbered_entries(self, record: AccessList) -> list[Any]:
        """Entries with numbers assigned per the list's policy.

        Raises:
            ValidationError: Wrong entry type or a policy violation
            SequenceOverflow: Auto numbering runs past the family maximum
            DuplicateSequence: Two entries share a number
        """
        require(record.kind in ENTRY_TYPES, f"Unknown access list kind {record.kind!r}",
                record=record.identity, field="kind")
        entry_type = ENTRY_TYPES[record.kind]
        for entry in record.entries:
            require(isinstance(entry, entry_type),
                    f"{record.kind} access list cannot hold {type(entry).__name__}",
                    record=record.identity, field="entries")
            if entry_type in (IPFilter, DynamicFilter):
                require(entry.ipv6 == record.kind.startswith("ipv6"),
                        "Entry address family does not match the list",
                        record=record.identity, field="entries")
        return self.allocator(record).assign(record.entries, record.policy, str(record.name))

    def sequence_range(self, record: AccessList) -> Optional[SequenceRange]:
        """Range covered by the list's numbered entries."""
        numbers = [e.number for e in self.numbered_entries(record)]
        if not numbers:
            return None
        return SequenceRange(min(numbers), max(numbers), str(record.name), record.numbering_space)

    def expand(self, desired: Optional[AccessList], previous: Optional[AccessList]) -> list[tuple[Any, Any]]:
        new = {e.number: e for e in self.numbered_entries(desired)} if desired is not None else {}
        old = {e.number: e for e in self.applied_entries(previous)} if previous is not None else {}
        # Removals first so a renumbered list never holds both numbers at once
        pairs = [(None, entry) for number, entry in old.items() if number not in new]
        pairs += [(entry, old.get(number)) for number, entry in new.items()]
        return pairs

    def applied_entries(self, previous: AccessList) -> list[Any]:
        """Entries of a list as applied before, keeping numbers it already carries."""
        if previous.entries and all(e.number is not None for e in previous.entries):
            self.allocator(previous).validate([e.number for e in previous.entries], None, str(previous.name))
            return list(previous.entries)
        return self.numbered_entries(previous)
