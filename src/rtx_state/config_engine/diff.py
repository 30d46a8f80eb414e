"""Caller-facing comparison of declared and observed records.

Differences are judged under the equivalence normalizer, so alias
spellings never show up as drift. Fields the device cannot echo back
(NOT_DERIVABLE) are reported as preserved, never as removed.
"""
import dataclasses
from dataclasses import dataclass, field
from typing import Any

from .normalizer import EquivalenceNormalizer
from .schema import DerivableField, DerivableState


@dataclass
class FieldChange:
    """One field whose observed value differs from the declaration."""
    field: str
    declared: Any
    observed: Any

    def to_dict(self) -> dict:
        return {"field": self.field, "declared": _plain(self.declared), "observed": _plain(self.observed)}


@dataclass
class RecordDiff:
    """Result of comparing one declared record with what was read back."""
    identity: Any
    changes: list[FieldChange] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict:
        return {
            "identity": _plain(self.identity),
            "changes": [c.to_dict() for c in self.changes],
            "preserved": self.preserved,
        }


def _plain(value: Any) -> Any:
    if isinstance(value, DerivableField):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, tuple):
        return list(value)
    return value


def _is_not_derivable(value: Any) -> bool:
    return isinstance(value, DerivableField) and value.state == DerivableState.NOT_DERIVABLE


def compare(declared: Any, observed: Any, normalizer: EquivalenceNormalizer) -> RecordDiff:
    """Field-by-field semantic comparison.

    Args:
        declared: Record as the caller last declared it
        observed: Record freshly parsed from the device
        normalizer: Equivalence table of the catalog in use

    Raises:
        TypeError: If the records are of different types
    """
    if type(declared) is not type(observed):
        raise TypeError(
            f"Cannot compare {type(declared).__name__} with {type(observed).__name__}"
        )
    classes = getattr(type(declared), "FIELD_CLASSES", {})
    result = RecordDiff(identity=getattr(declared, "identity", None))
    for f in dataclasses.fields(declared):
        a = getattr(declared, f.name)
        b = getattr(observed, f.name)
        if _is_not_derivable(a) or _is_not_derivable(b):
            result.preserved.append(f.name)
            continue
        if not normalizer.equivalent(classes.get(f.name), a, b):
            result.changes.append(FieldChange(f.name, a, b))
    return result


def merge_observed(declared: Any, observed: Any) -> Any:
    """Observed record with NOT_DERIVABLE fields taken from the declaration."""
    updates = {
        f.name: getattr(declared, f.name)
        for f in dataclasses.fields(observed)
        if _is_not_derivable(getattr(observed, f.name))
    }
    return dataclasses.replace(observed, **updates) if updates else observed


def summarize_diff(diffs: list[RecordDiff]) -> str:
    """Human-readable summary of a set of record diffs."""
    changed = [d for d in diffs if d.has_changes]
    if not changed:
        return "No changes detected"

    lines = [f"{len(changed)} record(s) differ from the declaration:"]
    for diff in changed:
        lines.append(f"  {diff.identity}:")
        for change in diff.changes:
            lines.append(f"    {change.field}: {change.declared!r} -> {change.observed!r}")
        if diff.preserved:
            lines.append(f"    (kept as declared: {', '.join(diff.preserved)})")
    return "\n".join(lines)
