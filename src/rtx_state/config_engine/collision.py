"""Collision detection between rule lists sharing one numbering space.

Two ranges collide when they overlap numerically. The sibling check is a
pure function over what the caller declared; the device check runs one
query through the transport and trusts its answer over the sibling view.
There is no automatic resolution: every collision is reported.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Optional, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

DEVICE_OWNER = "device"


@dataclass(frozen=True)
class SequenceRange:
    """Inclusive id range owned by one rule list."""
    start: int
    end: int
    owner: str = ""
    space: str = ""     # Numbering space, e.g. "ip_filter"

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationError(f"Range start {self.start} is above end {self.end}", field="range")

    def overlaps(self, other: "SequenceRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def intersection(self, other: "SequenceRange") -> Optional[tuple[int, int]]:
        if not self.overlaps(other):
            return None
        return max(self.start, other.start), min(self.end, other.end)

    def __str__(self) -> str:
        return f"[{self.start}, {self.end}]"

    def to_dict(self) -> dict:
        return {"owner": self.owner, "start": self.start, "end": self.end, "space": self.space}


@dataclass
class CollisionReport:
    """A candidate range and everything it overlaps."""
    candidate: SequenceRange
    conflicting_ranges: list[SequenceRange] = field(default_factory=list)
    source: str = "siblings"    # siblings | device

    @property
    def owners(self) -> list[str]:
        owners = [self.candidate.owner]
        for r in self.conflicting_ranges:
            if r.owner not in owners:
                owners.append(r.owner)
        return owners

    @property
    def message(self) -> str:
        return build_collision_message(self)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "candidate": self.candidate.to_dict(),
            "conflicting_ranges": [r.to_dict() for r in self.conflicting_ranges],
            "source": self.source,
            "owners": self.owners,
        }


SiblingEntry = Union[SequenceRange, tuple[str, SequenceRange]]


def _as_range(entry: SiblingEntry) -> SequenceRange:
    if isinstance(entry, SequenceRange):
        return entry
    owner, seq_range = entry
    return replace(seq_range, owner=owner)


def _conflicts(candidate: SequenceRange, ranges: Iterable[SequenceRange]) -> list[SequenceRange]:
    found = []
    for other in ranges:
        if candidate.space and other.space and candidate.space != other.space:
            continue
        if candidate.overlaps(other):
            found.append(other)
    return found


def check_against_siblings(
    candidate: SequenceRange,
    siblings: Iterable[SiblingEntry],
    replacing: Optional[SiblingEntry] = None,
) -> Optional[CollisionReport]:
    """Compare a range with the other declared lists.

    Overlaps are reported whoever owns the other range, the candidate's
    own owner included.

    Args:
        candidate: Range of the list being planned
        siblings: Other lists, as ranges or (owner, range) pairs
        replacing: The range the candidate supersedes; only an entry equal
            to it (owner, bounds and space) is skipped

    Returns:
        CollisionReport, or None when nothing overlaps
    """
    replaced = _as_range(replacing) if replacing is not None else None
    ranges = [r for r in (_as_range(s) for s in siblings) if r != replaced]
    conflicts = _conflicts(candidate, ranges)
    if not conflicts:
        return None
    return CollisionReport(candidate, conflicts, source="siblings")


def check_against_device(
    candidate: SequenceRange,
    device_query: Callable[[], Iterable[SiblingEntry]],
    exclude: Iterable[int] = (),
) -> Optional[CollisionReport]:
    """Compare a range with what the device currently holds.

    The query is called exactly once and its errors propagate unchanged.

    Args:
        candidate: Range of the list being applied
        device_query: Returns the ranges present on the device
        exclude: Ids the candidate list already owns on the device (its
            previously applied entries), which are not collisions

    Returns:
        CollisionReport, or None when nothing overlaps
    """
    excluded = set(exclude)
    ranges = [
        r for r in (_as_range(e) for e in device_query())
        if not (r.start == r.end and r.start in excluded)
    ]
    conflicts = _conflicts(candidate, ranges)
    if not conflicts:
        return None
    logger.warning(f"Device collision for {candidate.owner or 'candidate'} {candidate}")
    return CollisionReport(candidate, conflicts, source="device")


def ranges_from_records(
    records: Iterable[Any],
    owner_of: Optional[Callable[[Any], Optional[str]]] = None,
) -> list[SequenceRange]:
    """Derive ranges from parsed numbered records (filters).

    Records with the same owner and numbering space are merged into one
    range; without ``owner_of`` every record is its own single-id range.
    """
    grouped: dict[tuple[str, str], list[int]] = {}
    singles: list[SequenceRange] = []
    for record in records:
        identity = getattr(record, "identity", None)
        number = getattr(record, "number", None)
        if not isinstance(identity, tuple) or number is None:
            continue
        space = identity[0]
        owner = owner_of(record) if owner_of else None
        if owner is None:
            singles.append(SequenceRange(number, number, f"{DEVICE_OWNER}:{space} {number}", space))
        else:
            grouped.setdefault((owner, space), []).append(number)
    merged = [
        SequenceRange(min(ids), max(ids), owner, space)
        for (owner, space), ids in grouped.items()
    ]
    return merged + singles


def build_collision_message(report: CollisionReport) -> str:
    """Readable description with both owners and suggested actions."""
    candidate = report.candidate
    lines = [
        f"Sequence collision ({report.source}): "
        f"{candidate.owner or 'candidate'} {candidate} overlaps:"
    ]
    for other in report.conflicting_ranges:
        overlap = candidate.intersection(other)
        lines.append(
            f"  - {other.owner or 'unknown'} {other} (overlap {overlap[0]}-{overlap[1]})"
        )
    lines.append("Suggested actions:")
    lines.append("  1. Choose a different start for one list (see next available start)")
    lines.append("  2. Switch to manual sequences and pick ids outside the other range")
    lines.append("  3. Merge the rule lists into one")
    return "\n".join(lines)
