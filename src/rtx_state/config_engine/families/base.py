"""Base class for configuration families.

A family binds one record type to the catalog patterns that describe it.
Parsing folds matched lines into records; synthesis lays a record out as
slots, one per pattern, each holding keyed parameter dicts (one dict per
command line). The synthesizer diffs those dicts under the normalizer, so
families never compare raw strings themselves.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..catalog import Catalog
from ..errors import MalformedInput, ValidationError
from ..schema import CommandPattern, Diagnostic, MatchResult, Parameter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    """One catalog pattern contributing command lines to a record.

    Attributes:
        pattern: Catalog pattern name
        items: record -> {key: parameter values}, one entry per line
        keys: Parameters that identify a line rather than configure it;
            a line whose other parameters are all at their defaults is not
            emitted on creation
    """
    pattern: str
    items: Callable[[Any], dict]
    keys: tuple[str, ...] = ()


class Family:
    """Builder and synthesis layout for one record type."""

    name: str = ""
    record_type: type = object
    context_pattern: Optional[str] = None   # e.g. tunnel_select
    context_exit: str = "none"

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self.normalizer = catalog.normalizer

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"

    # --- Parse direction ---

    def build(self, matches: list[MatchResult]) -> tuple[list[Any], list[Diagnostic]]:
        """Fold this family's matches (in device order) into records.

        A line whose parameters fail validation is dropped and reported;
        the remaining lines still produce records.
        """
        state = self.new_state()
        diagnostics: list[Diagnostic] = []
        for match in matches:
            try:
                self.consume(state, match, self.params(match))
            except (ValidationError, MalformedInput) as e:
                logger.warning(f"Line {match.line_number}: {e}")
                diagnostics.append(Diagnostic.from_error(e, match.source_line, match.line_number))
        diagnostics.extend(self.resolve(state))
        return self.finish(state), diagnostics

    def new_state(self) -> Any:
        return {}

    def consume(self, state: dict, match: MatchResult, params: dict[str, Any]) -> None:
        raise NotImplementedError

    def resolve(self, state: Any) -> list[Diagnostic]:
        """Attach lines that could only be placed once every line was seen."""
        return []

    def finish(self, state: dict) -> list[Any]:
        return list(state.values())

    def params(self, match: MatchResult) -> dict[str, Any]:
        """Canonical parameter values of a match, defaults applied."""
        pattern = self.catalog.get(match.pattern_name)
        values = {}
        for param in pattern.parameters:
            raw = match.raw_parameters.get(param.name)
            if raw is None:
                values[param.name] = self.default(param)
            else:
                values[param.name] = self.normalizer.canonicalize_param(param, raw)
        return values

    def default(self, param: Parameter) -> Any:
        if param.default is None:
            return None
        return self.normalizer.canonicalize(self.normalizer.param_class(param), param.default)

    # --- Synthesis direction ---

    def slots(self) -> list[Slot]:
        raise NotImplementedError

    def handles(self, record: Any) -> bool:
        return isinstance(record, self.record_type)

    def identity(self, record: Any) -> Any:
        """Identity key under canonical spelling."""
        return record.identity

    def expand(self, desired: Any, previous: Any) -> Optional[list[tuple[Any, Any]]]:
        """Split a composite record into (desired, previous) member pairs.

        Returns None for plain records.
        """
        return None

    def context_value(self, record: Any) -> Optional[str]:
        """Value selecting this record's context block, if any."""
        return None

    def spell(self, pattern: CommandPattern, values: dict[str, Any],
              names: Optional[set] = None) -> dict[str, Optional[str]]:
        """Device spellings for the given parameters (all by default)."""
        spelled = {}
        for param in pattern.parameters:
            if names is not None and param.name not in names:
                continue
            spelled[param.name] = self.normalizer.spell_param(param, values.get(param.name))
        return spelled

    def context_commands(self, record: Any) -> Optional[tuple[str, str]]:
        """(enter, exit) commands wrapping this record's lines."""
        if not self.context_pattern:
            return None
        value = self.context_value(record)
        if value is None:
            return None
        template = self.catalog.get(self.context_pattern).template
        return template.render({self._context_param(): value}), \
            template.render({self._context_param(): self.context_exit})

    def context_delete(self, record: Any) -> Optional[str]:
        if not self.context_pattern:
            return None
        pattern = self.catalog.get(self.context_pattern)
        if pattern.no_form_template is None:
            return None
        return pattern.no_form_template.render({self._context_param(): self.context_value(record)})

    def _context_param(self) -> str:
        return self.catalog.get(self.context_pattern).parameters[0].name


def require(condition: bool, message: str, record: Any = None, field: Optional[str] = None) -> None:
    """Raise ValidationError unless ``condition`` holds."""
    if not condition:
        raise ValidationError(message, field=field, record=record)
