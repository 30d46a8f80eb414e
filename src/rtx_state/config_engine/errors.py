"""Error taxonomy for the config engine.

Parse-time errors (MalformedInput, UnknownPattern, AmbiguousMatch) are raised
per line and recovered by the engine into Diagnostic values. Everything else
is fatal to the operation that raised it and carries enough structure for
the caller to report which field, record or owner is involved.
"""
from typing import Any, Optional


class RTXStateError(Exception):
    """Base class for all config engine errors."""
    pass


class CatalogError(RTXStateError):
    """The pattern catalog file is invalid."""
    pass


class MalformedInput(RTXStateError):
    """A line could not be reconstructed or is structurally broken."""

    def __init__(
        self,
        message: str,
        line: str = "",
        line_number: Optional[int] = None,
        candidates: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.line = line
        self.line_number = line_number
        self.candidates = candidates or []


class UnknownPattern(RTXStateError):
    """No catalog pattern matches a line."""

    def __init__(self, line: str, line_number: Optional[int] = None):
        super().__init__(f"No pattern matches line: {line.strip()!r}")
        self.line = line
        self.line_number = line_number


class AmbiguousMatch(RTXStateError):
    """More than one catalog pattern matches a line."""

    def __init__(
        self,
        line: str,
        candidates: list[str],
        line_number: Optional[int] = None,
    ):
        super().__init__(
            f"Line matches {len(candidates)} patterns "
            f"({', '.join(candidates)}): {line.strip()!r}"
        )
        self.line = line
        self.candidates = candidates
        self.line_number = line_number


class ValidationError(RTXStateError):
    """A value is out of its declared range/enum, or a policy is violated."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        record: Optional[Any] = None,
        value: Any = None,
    ):
        details = []
        if record is not None:
            details.append(f"record={record}")
        if field:
            details.append(f"field={field}")
        suffix = f" ({', '.join(details)})" if details else ""
        super().__init__(f"{message}{suffix}")
        self.field = field
        self.record = record
        self.value = value


class SequenceOverflow(RTXStateError):
    """An allocated sequence number exceeds the family maximum."""

    def __init__(self, value: int, maximum: int, record: Optional[Any] = None):
        msg = f"Sequence {value} exceeds maximum {maximum}"
        if record is not None:
            msg += f" (record={record})"
        super().__init__(msg)
        self.value = value
        self.maximum = maximum
        self.record = record


class DuplicateSequence(RTXStateError):
    """The same sequence number is used twice within one record."""

    def __init__(self, sequence: int, record: Optional[Any] = None):
        msg = f"Duplicate sequence number {sequence}"
        if record is not None:
            msg += f" in {record}"
        super().__init__(msg)
        self.sequence = sequence
        self.record = record


class CollisionDetected(RTXStateError):
    """Sequence ranges of independent owners overlap."""

    def __init__(self, report: Any, message: Optional[str] = None):
        super().__init__(message or str(report))
        self.report = report

    @property
    def owners(self) -> list[str]:
        return self.report.owners
