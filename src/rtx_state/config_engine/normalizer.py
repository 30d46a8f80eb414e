"""Diff equivalence normalizer.

Central table of canonical value <-> alias spellings. Every semantic
comparison in the engine goes through here: the record builder when it
canonicalizes parsed text, the synthesizer when it decides whether a field
changed, and the caller-facing compare layer when it suppresses false diffs.

The first alias listed for a canonical value is the spelling emitted to the
device.
"""
import dataclasses
import ipaddress
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .errors import CatalogError, ValidationError
from .schema import DerivableField, DerivableState, ParamKind, Parameter

logger = logging.getLogger(__name__)


def _normalize_ip(text: str) -> str:
    return str(ipaddress.ip_address(text))


def _normalize_address(text: str) -> str:
    """IP, CIDR, or range; anything else (host names) is kept verbatim."""
    try:
        if "-" in text:
            low, _, high = text.partition("-")
            return f"{_normalize_ip(low)}-{_normalize_ip(high)}"
        if "/" in text:
            return ipaddress.ip_network(text, strict=False).with_prefixlen
        return _normalize_ip(text)
    except ValueError:
        return text


def _normalize_cidr(text: str) -> str:
    try:
        return ipaddress.ip_network(text, strict=False).with_prefixlen
    except ValueError:
        raise ValidationError(f"Invalid network: {text}", value=text)


def _normalize_mac(text: str) -> str:
    """Lowercase colon-separated MAC; wildcard octets are kept."""
    digits = re.sub(r"[:.\-]", "", text)
    if re.fullmatch(r"[0-9a-fA-F]{12}", digits):
        return ":".join(digits[i:i + 2] for i in range(0, 12, 2)).lower()
    return text.lower()


FALLBACKS: dict[str, Callable[[str], Any]] = {
    "address": _normalize_address,
    "cidr": _normalize_cidr,
    "mac": _normalize_mac,
    "lower": lambda text: text.lower(),
    "int": int,
}


def _key(raw: Any) -> Any:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, Enum):
        raw = raw.value
    return str(raw).strip().lower()


def _same_kind(a: Any, b: Any) -> bool:
    return isinstance(a, bool) == isinstance(b, bool)


@dataclass(frozen=True)
class EquivalenceClass:
    """One canonical value table for a field.

    Attributes:
        name: Class name referenced by catalog parameters and records
        members: canonical value -> aliases, first alias is the device spelling
        fallback: Normalizer applied to values not found in the table
    """
    name: str
    members: dict = field(default_factory=dict)
    fallback: Optional[str] = None

    def lookup(self, raw: Any) -> tuple[bool, Any]:
        key = _key(raw)
        for canonical in self.members:
            if _same_kind(canonical, raw) and _key(canonical) == key:
                return True, canonical
        for canonical, aliases in self.members.items():
            for alias in aliases:
                if _same_kind(alias, raw) and _key(alias) == key:
                    return True, canonical
        return False, None

    def spellings(self) -> list[str]:
        """All textual aliases, used to build match regexes."""
        return [a for aliases in self.members.values() for a in aliases if isinstance(a, str)]


class EquivalenceNormalizer:
    """Canonicalize, compare and spell field values.

    Usage:
        normalizer = EquivalenceNormalizer.from_table(catalog_data["equivalences"])
        normalizer.canonicalize("filter_action", "pass-nolog")  # "permit"
        normalizer.spell("filter_action", "permit")             # "pass"
    """

    def __init__(self, classes: dict[str, EquivalenceClass]):
        self._classes = dict(classes)

    @classmethod
    def from_table(cls, table: dict) -> "EquivalenceNormalizer":
        """Build from the ``equivalences`` section of a catalog file.

        Raises:
            CatalogError: If an entry is malformed
        """
        classes = {}
        for name, spec in (table or {}).items():
            spec = spec or {}
            fallback = spec.get("fallback")
            if fallback is not None and fallback not in FALLBACKS:
                raise CatalogError(f"Equivalence {name}: unknown fallback {fallback!r}")
            members = {}
            for canonical, aliases in (spec.get("values") or {}).items():
                if not isinstance(aliases, list) or not aliases:
                    raise CatalogError(
                        f"Equivalence {name}: value {canonical!r} needs a non-empty alias list"
                    )
                members[canonical] = tuple(aliases)
            classes[name] = EquivalenceClass(name, members, fallback)
        return cls(classes)

    def has_class(self, name: str) -> bool:
        return name in self._classes

    def spellings(self, name: str) -> list[str]:
        if name not in self._classes:
            raise CatalogError(f"Unknown equivalence class: {name}")
        return self._classes[name].spellings()

    def is_closed(self, name: str) -> bool:
        """True when only the listed spellings are valid values."""
        eq = self._classes.get(name)
        return eq is not None and bool(eq.members) and eq.fallback is None

    def canonicalize(self, field_name: Optional[str], raw: Any) -> Any:
        """Map a raw or aliased value to its canonical form.

        Raises:
            ValidationError: If the class has no such value and no fallback
        """
        if raw is None:
            return None
        if isinstance(raw, DerivableField):
            if raw.is_known:
                return DerivableField.known(self.canonicalize(field_name, raw.value))
            return raw
        if isinstance(raw, (list, tuple)):
            return [self.canonicalize(field_name, item) for item in raw]
        eq = self._classes.get(field_name) if field_name else None
        if eq is None:
            return raw.strip() if isinstance(raw, str) else raw
        found, canonical = eq.lookup(raw)
        if found:
            return canonical
        if eq.fallback:
            if isinstance(raw, bool):
                raise ValidationError(f"{raw!r} is not a valid {field_name} value", field=field_name)
            return FALLBACKS[eq.fallback](str(raw).strip())
        raise ValidationError(
            f"{raw!r} is not a valid {field_name} value", field=field_name, value=raw
        )

    def spell(self, field_name: Optional[str], value: Any) -> str:
        """Device spelling of a canonical (or aliased) value."""
        eq = self._classes.get(field_name) if field_name else None
        if eq is None:
            return str(value)
        canonical = self.canonicalize(field_name, value)
        aliases = eq.members.get(canonical)
        if aliases:
            for alias in aliases:
                if isinstance(alias, str):
                    return alias
        return str(canonical)

    def equivalent(self, field_name: Optional[str], a: Any, b: Any) -> bool:
        """Semantic equality. NOT_DERIVABLE on either side always matches."""
        if isinstance(a, DerivableField) or isinstance(b, DerivableField):
            return self._derivable_equivalent(field_name, a, b)
        if dataclasses.is_dataclass(a) and dataclasses.is_dataclass(b) \
                and not isinstance(a, type) and not isinstance(b, type):
            return self.records_equivalent(a, b)
        if isinstance(a, (list, tuple)) or isinstance(b, (list, tuple)):
            a_items = list(a or [])
            b_items = list(b or [])
            if len(a_items) != len(b_items):
                return False
            return all(self.equivalent(field_name, x, y) for x, y in zip(a_items, b_items))
        try:
            return self.canonicalize(field_name, a) == self.canonicalize(field_name, b)
        except ValidationError:
            logger.debug(f"Comparing uncanonicalizable {field_name} values verbatim: {a!r} / {b!r}")
            return a == b

    def _derivable_equivalent(self, field_name: Optional[str], a: Any, b: Any) -> bool:
        a_state = a.state if isinstance(a, DerivableField) else DerivableState.KNOWN
        b_state = b.state if isinstance(b, DerivableField) else DerivableState.KNOWN
        if DerivableState.NOT_DERIVABLE in (a_state, b_state):
            return True
        if a_state != b_state:
            return False
        if a_state == DerivableState.ABSENT:
            return True
        a_val = a.value if isinstance(a, DerivableField) else a
        b_val = b.value if isinstance(b, DerivableField) else b
        return self.equivalent(field_name, a_val, b_val)

    def records_equivalent(self, a: Any, b: Any) -> bool:
        """Field-wise semantic equality of two records of the same type.

        Records name the equivalence class of each field in a
        ``FIELD_CLASSES`` class attribute.
        """
        if type(a) is not type(b):
            return False
        classes = getattr(type(a), "FIELD_CLASSES", {})
        for f in dataclasses.fields(a):
            if not self.equivalent(classes.get(f.name), getattr(a, f.name), getattr(b, f.name)):
                return False
        return True

    # --- Catalog parameters ---

    def param_class(self, param: Parameter) -> Optional[str]:
        if param.equivalence:
            return param.equivalence
        if param.kind == ParamKind.BOOL and not param.flag:
            return "on_off"
        return None

    def canonicalize_param(self, param: Parameter, raw: str) -> Any:
        """Convert matched parameter text to its canonical typed value.

        Raises:
            ValidationError: If the value violates the declared range or enum
        """
        if param.flag:
            return raw is not None and raw.lower() == param.flag.lower()
        if param.separator:
            return [self._canonical_token(param, t) for t in raw.split(param.separator) if t]
        if param.multiple:
            tokens = raw.split()
            if param.kind == ParamKind.STRING and not param.equivalence:
                return " ".join(tokens)
            return [self._canonical_token(param, t) for t in tokens]
        return self._canonical_token(param, " ".join(raw.split()))

    def _canonical_token(self, param: Parameter, text: str) -> Any:
        eq = self.param_class(param)
        if eq:
            value = self.canonicalize(eq, text)
        elif param.kind == ParamKind.INT:
            try:
                value = int(text)
            except ValueError:
                raise ValidationError(f"Not an integer: {text!r}", field=param.name, value=text)
        elif param.kind in (ParamKind.IPV4, ParamKind.IPV6):
            try:
                value = _normalize_ip(text)
            except ValueError:
                raise ValidationError(f"Not an IP address: {text!r}", field=param.name, value=text)
        elif param.kind in (ParamKind.ENUM, ParamKind.INTERFACE):
            value = text.lower()
        else:
            value = text
        self.check_param(param, value)
        return value

    def check_param(self, param: Parameter, value: Any) -> None:
        """Validate a canonical value against the parameter's range/enum.

        Raises:
            ValidationError: If out of range or not an allowed value
        """
        if value is None:
            return
        if isinstance(value, list):
            for item in value:
                self.check_param(param, item)
            return
        if param.range is not None and isinstance(value, int) and not isinstance(value, bool):
            low, high = param.range
            if not low <= value <= high:
                raise ValidationError(
                    f"{param.name}={value} out of range [{low}, {high}]",
                    field=param.name, value=value,
                )
        if param.values and not param.equivalence and isinstance(value, str):
            if value.lower() not in {v.lower() for v in param.values}:
                raise ValidationError(
                    f"{param.name}={value!r} not one of {', '.join(param.values)}",
                    field=param.name, value=value,
                )

    def spell_param(self, param: Parameter, value: Any) -> Optional[str]:
        """Device spelling of a parameter value; None leaves it unset."""
        if value is None:
            return None
        if isinstance(value, DerivableField):
            if not value.is_known:
                raise ValidationError(
                    f"Cannot synthesize {param.name} from a {value.state.value} value",
                    field=param.name,
                )
            value = value.value
        if param.flag:
            return param.flag if value else None
        if isinstance(value, (list, tuple)):
            if not value:
                return None
            sep = param.separator or " "
            return sep.join(self._spell_token(param, v) for v in value)
        return self._spell_token(param, value)

    def _spell_token(self, param: Parameter, value: Any) -> str:
        eq = self.param_class(param)
        if eq:
            return self.spell(eq, value)
        return str(value)

    def is_default(self, param: Parameter, value: Any) -> bool:
        if param.default is None:
            return False
        return self.equivalent(self.param_class(param), value, param.default)
