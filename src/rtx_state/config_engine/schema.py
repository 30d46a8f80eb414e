"""Schema definitions for the Config Engine.

Defines catalog entities (patterns, parameters), transient parse products
(match results, diagnostics), the tri-state derivable field, sequence
policies and execution results.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ParamKind(str, Enum):
    """Type of a catalog parameter."""
    INT = "int"
    BOOL = "bool"
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    ENUM = "enum"
    INTERFACE = "interfaceName"
    STRING = "string"


class PatternForm(str, Enum):
    """How a command lays out its parameters."""
    POSITIONAL = "positional"   # Spaced segments in a fixed order
    KEYVALUE = "keyvalue"       # key=value segments in any order


class ContextRole(str, Enum):
    """Role a pattern plays in context-scoped configuration blocks."""
    NONE = "none"
    ENTER = "enter"     # e.g. "tunnel select 1"
    SCOPED = "scoped"   # Only meaningful inside an entered context


@dataclass(frozen=True)
class Parameter:
    """A single placeholder of a command pattern."""
    name: str
    kind: ParamKind
    required: bool = True
    range: Optional[tuple[int, int]] = None
    values: tuple[str, ...] = ()
    default: Any = None
    pattern: Optional[str] = None       # Regex override for matching
    equivalence: Optional[str] = None   # Normalizer equivalence class
    flag: Optional[str] = None          # Bare keyword meaning True when present
    multiple: bool = False              # Declared as {name...} in the template
    separator: Optional[str] = None     # Splits a single token into a list


@dataclass(frozen=True)
class CommandPattern:
    """One catalog entry: a command family member and its spellings.

    Immutable once loaded. The compiled templates
    are attached by the catalog loader.
    """
    name: str
    family: str
    syntax: str
    parameters: tuple[Parameter, ...]
    no_form: Optional[str] = None
    aliases: tuple[str, ...] = ()
    examples: tuple[dict, ...] = ()
    form: PatternForm = PatternForm.POSITIONAL
    clear_before_set: bool = False
    context: ContextRole = ContextRole.NONE
    fragment: bool = False
    malformed_prefix: Optional[str] = None
    template: Any = field(default=None, compare=False, repr=False)
    no_form_template: Any = field(default=None, compare=False, repr=False)
    alias_templates: tuple = field(default=(), compare=False, repr=False)

    def parameter(self, name: str) -> Parameter:
        """Look up a parameter by name.

        Raises:
            KeyError: If the pattern declares no such parameter
        """
        for param in self.parameters:
            if param.name == name:
                return param
        raise KeyError(f"Pattern {self.name} has no parameter {name}")


@dataclass
class MatchResult:
    """A line identified as an instance of a catalog pattern."""
    pattern_name: str
    family: str
    raw_parameters: dict[str, str]
    source_line: str
    line_number: Optional[int] = None
    negated: bool = False   # Matched the no-form
    context: Optional[tuple[str, str]] = None   # (enter pattern, value) in effect
    indented: bool = False


@dataclass
class Diagnostic:
    """A recoverable parse-time issue for a single line."""
    kind: str
    message: str
    line: str = ""
    line_number: Optional[int] = None
    candidates: list[str] = field(default_factory=list)

    @classmethod
    def from_error(cls, error: Exception, line: str = "",
                   line_number: Optional[int] = None) -> "Diagnostic":
        return cls(
            kind=type(error).__name__,
            message=str(error),
            line=getattr(error, "line", "") or line,
            line_number=getattr(error, "line_number", None) or line_number,
            candidates=list(getattr(error, "candidates", []) or []),
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "line": self.line,
            "line_number": self.line_number,
            "candidates": self.candidates,
        }


@dataclass
class ParseResult:
    """Records and diagnostics produced by parsing device text."""
    records: list[Any] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def of_type(self, record_type: type) -> list[Any]:
        """Get all records of a given type."""
        return [r for r in self.records if isinstance(r, record_type)]

    def diagnostics_of(self, kind: str) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]


# --- Derivable fields ---

class DerivableState(str, Enum):
    """Whether a field value could be confirmed by reading the device."""
    KNOWN = "known"
    NOT_DERIVABLE = "not_derivable"   # Device never echoes it back
    ABSENT = "absent"                 # Confirmed not configured


@dataclass(frozen=True)
class DerivableField(Generic[T]):
    """Tri-state wrapper for fields the device may not expose on read.

    NOT_DERIVABLE means "cannot confirm, keep the prior declaration" and is
    never the same thing as ABSENT.
    """
    state: DerivableState
    value: Optional[T] = None

    @classmethod
    def known(cls, value: T) -> "DerivableField[T]":
        return cls(DerivableState.KNOWN, value)

    @classmethod
    def not_derivable(cls) -> "DerivableField[T]":
        return cls(DerivableState.NOT_DERIVABLE)

    @classmethod
    def absent(cls) -> "DerivableField[T]":
        return cls(DerivableState.ABSENT)

    @property
    def is_known(self) -> bool:
        return self.state == DerivableState.KNOWN

    @property
    def is_derivable(self) -> bool:
        return self.state != DerivableState.NOT_DERIVABLE

    @property
    def is_absent(self) -> bool:
        return self.state == DerivableState.ABSENT

    def __str__(self) -> str:
        if self.is_known:
            return str(self.value)
        return f"<{self.state.value}>"


NOT_DERIVABLE: DerivableField = DerivableField.not_derivable()
ABSENT: DerivableField = DerivableField.absent()


# --- Sequence policy ---

class SequenceMode(str, Enum):
    """Ordinal assignment mode for rule lists."""
    AUTO = "auto"       # start + i * step
    MANUAL = "manual"   # Every entry carries an explicit sequence


@dataclass(frozen=True)
class SequencePolicy:
    """How ordinal identifiers in a rule list are obtained."""
    mode: SequenceMode = SequenceMode.AUTO
    start: int = 10
    step: int = 10


# --- Execution results ---

@dataclass
class ExecuteResult:
    """Result of applying a synthesized command list to a device."""
    success: bool = False
    dry_run: bool = False
    commands: list[str] = field(default_factory=list)
    commands_executed: list[str] = field(default_factory=list)
    confirmed: bool = False
    error: Optional[str] = None
    error_context: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        return not self.commands

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "commands": self.commands,
            "commands_executed": self.commands_executed,
            "confirmed": self.confirmed,
            "error": self.error,
            "error_context": self.error_context,
            "warnings": self.warnings,
        }
