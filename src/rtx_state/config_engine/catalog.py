"""Pattern catalog loading.

The catalog is a versioned YAML file describing every supported command:
syntax template, parameters, no-form, alias spellings and examples. It is
loaded once into immutable CommandPattern values shared by the matcher,
record builders and command synthesizer.
"""
import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import CatalogError, ValidationError
from .normalizer import EquivalenceNormalizer
from .schema import CommandPattern, ContextRole, Parameter, ParamKind, PatternForm
from .template import Template

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).with_name("catalog.yaml")
CATALOG_ENV = "RTX_STATE_CATALOG"
SUPPORTED_VERSIONS = (1,)

KIND_REGEX = {
    ParamKind.INT: r"\d+",
    ParamKind.BOOL: r"on|off",
    ParamKind.IPV4: r"\d{1,3}(?:\.\d{1,3}){3}",
    ParamKind.IPV6: r"[0-9a-fA-F]*:[0-9a-fA-F:.]*",
    ParamKind.ENUM: r"\S+",
    ParamKind.INTERFACE: r"(?:lan|bridge|pp|tunnel|vlan|loopback|wan)\d+(?:[./]\d+)*",
    ParamKind.STRING: r"\S+",
}


def _alternation(words: list[str]) -> str:
    ordered = sorted(set(words), key=len, reverse=True)
    return "|".join(re.escape(w) for w in ordered)


class Catalog:
    """Immutable set of command patterns plus their equivalence table.

    Usage:
        catalog = Catalog.load()
        pattern = catalog.get("dns_service")
    """

    def __init__(
        self,
        patterns: list[CommandPattern],
        normalizer: EquivalenceNormalizer,
        version: int = 1,
    ):
        self.version = version
        self.normalizer = normalizer
        self._patterns: tuple[CommandPattern, ...] = tuple(patterns)
        self._by_name = {p.name: p for p in self._patterns}
        if len(self._by_name) != len(self._patterns):
            raise CatalogError("Duplicate pattern names in catalog")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Catalog":
        """Load a catalog file.

        Args:
            path: Catalog YAML path. Defaults to $RTX_STATE_CATALOG, then
                the bundled catalog.

        Raises:
            CatalogError: If the file is invalid
        """
        catalog_path = Path(path or os.environ.get(CATALOG_ENV) or DEFAULT_CATALOG_PATH)
        with open(catalog_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        catalog = cls.from_dict(data)
        problems = catalog.validate()
        if problems:
            raise CatalogError(
                f"Invalid catalog {catalog_path}:\n" + "\n".join(f"  - {p}" for p in problems)
            )
        logger.debug(f"Loaded catalog v{catalog.version} with {len(catalog)} patterns from {catalog_path}")
        return catalog

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Catalog":
        """Build a catalog from already-parsed YAML data.

        Raises:
            CatalogError: If the structure is invalid
        """
        if not isinstance(data, dict):
            raise CatalogError("Catalog must be a mapping")
        version = data.get("version", 1)
        if version not in SUPPORTED_VERSIONS:
            raise CatalogError(f"Unsupported catalog version: {version}")

        normalizer = EquivalenceNormalizer.from_table(data.get("equivalences", {}))
        patterns = [cls._parse_pattern(entry, normalizer) for entry in data.get("patterns", [])]
        return cls(patterns, normalizer, version)

    @classmethod
    def _parse_pattern(cls, entry: dict, normalizer: EquivalenceNormalizer) -> CommandPattern:
        try:
            name = entry["name"]
            family = entry["family"]
            syntax = " ".join(str(entry["syntax"]).split())
        except KeyError as e:
            raise CatalogError(f"Catalog entry missing required key {e}: {entry!r}")

        try:
            form = PatternForm(entry.get("form", "positional"))
            context = ContextRole(entry.get("context", "none"))
        except ValueError as e:
            raise CatalogError(f"Pattern {name}: {e}")

        keyvalue = form == PatternForm.KEYVALUE
        template = Template(syntax, keyvalue=keyvalue)
        multiple = {ph.name for ph in template.placeholders if ph.multiple}

        parameters = tuple(
            cls._parse_parameter(name, p, p.get("name") in multiple)
            for p in entry.get("parameters", [])
        )
        regexes = {p.name: cls._param_regex(p, normalizer) for p in parameters}

        template.compile(regexes)
        no_form = entry.get("no_form")
        no_form_template = None
        if no_form:
            no_form_template = Template(no_form)
            no_form_template.compile(regexes)
        aliases = tuple(" ".join(str(a).split()) for a in entry.get("aliases", []))
        alias_templates = []
        for alias in aliases:
            alias_template = Template(alias, keyvalue=keyvalue)
            alias_template.compile(regexes)
            alias_templates.append(alias_template)

        examples = []
        for example in entry.get("examples", []):
            if isinstance(example, str):
                example = {"input": example, "source": ""}
            examples.append(dict(example))

        return CommandPattern(
            name=name,
            family=family,
            syntax=syntax,
            parameters=parameters,
            no_form=no_form,
            aliases=aliases,
            examples=tuple(examples),
            form=form,
            clear_before_set=bool(entry.get("clear_before_set", False)),
            context=context,
            fragment=bool(entry.get("fragment", False)),
            malformed_prefix=entry.get("malformed_prefix"),
            template=template,
            no_form_template=no_form_template,
            alias_templates=tuple(alias_templates),
        )

    @staticmethod
    def _parse_parameter(pattern_name: str, spec: dict, multiple: bool) -> Parameter:
        try:
            kind = ParamKind(spec.get("type", "string"))
        except ValueError:
            raise CatalogError(f"Pattern {pattern_name}: unknown parameter type {spec.get('type')!r}")
        if "name" not in spec:
            raise CatalogError(f"Pattern {pattern_name}: parameter without a name")
        value_range = spec.get("range")
        if value_range is not None:
            if len(value_range) != 2 or value_range[0] > value_range[1]:
                raise CatalogError(f"Pattern {pattern_name}: bad range for {spec['name']}")
            value_range = (int(value_range[0]), int(value_range[1]))
        return Parameter(
            name=spec["name"],
            kind=kind,
            required=bool(spec.get("required", True)),
            range=value_range,
            values=tuple(str(v) for v in spec.get("values", [])),
            default=spec.get("default"),
            pattern=spec.get("pattern"),
            equivalence=spec.get("equivalence"),
            flag=spec.get("flag"),
            multiple=multiple,
            separator=spec.get("separator"),
        )

    @staticmethod
    def _param_regex(param: Parameter, normalizer: EquivalenceNormalizer) -> str:
        if param.pattern:
            return param.pattern
        if param.flag:
            return re.escape(param.flag)
        eq = normalizer.param_class(param)
        if eq and not normalizer.has_class(eq):
            raise CatalogError(f"Parameter {param.name}: unknown equivalence class {eq}")
        if eq and normalizer.is_closed(eq):
            return _alternation(normalizer.spellings(eq))
        if param.kind == ParamKind.ENUM and param.values:
            return _alternation(list(param.values))
        return KIND_REGEX[param.kind]

    # --- Lookups ---

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self):
        return iter(self._patterns)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    @property
    def patterns(self) -> tuple[CommandPattern, ...]:
        return self._patterns

    def get(self, name: str) -> CommandPattern:
        """Get a pattern by name.

        Raises:
            KeyError: If no pattern has that name
        """
        if name not in self._by_name:
            raise KeyError(f"Unknown pattern: {name}")
        return self._by_name[name]

    def line_patterns(self) -> list[CommandPattern]:
        """Patterns that match whole lines (fragments excluded)."""
        return [p for p in self._patterns if not p.fragment]

    def by_family(self, family: str) -> list[CommandPattern]:
        """Patterns of a family, in catalog order."""
        return [p for p in self._patterns if p.family == family]

    @property
    def families(self) -> list[str]:
        seen: list[str] = []
        for p in self._patterns:
            if p.family not in seen:
                seen.append(p.family)
        return seen

    def max_sequence(self, family: str, param: str = "number") -> Optional[int]:
        """Upper bound of a family's numbering space, if declared."""
        for p in self.by_family(family):
            try:
                declared = p.parameter(param)
            except KeyError:
                continue
            if declared.range:
                return declared.range[1]
        return None

    def validate(self) -> list[str]:
        """Check the catalog for internal consistency.

        Returns:
            List of problems (empty when valid)
        """
        problems = []
        for p in self._patterns:
            declared = {param.name for param in p.parameters}
            used = {ph.name for ph in p.template.placeholders}
            for alias in p.alias_templates:
                used |= {ph.name for ph in alias.placeholders}
            for name in sorted(declared - used):
                problems.append(f"{p.name}: parameter '{name}' is not used by the syntax")
            optional = p.template.optional_names()
            for param in p.parameters:
                if param.required and param.name in optional:
                    problems.append(f"{p.name}: '{param.name}' is optional in the syntax but marked required")
                if param.default is not None:
                    try:
                        self.normalizer.check_param(
                            param, self.normalizer.canonicalize(self.normalizer.param_class(param), param.default)
                        )
                    except (ValidationError, CatalogError) as e:
                        problems.append(f"{p.name}: default for '{param.name}' is invalid: {e}")
            for example in p.examples:
                text = example.get("input", "")
                templates = [p.template, *p.alias_templates]
                if p.no_form_template is not None:
                    templates.append(p.no_form_template)
                if not any(t.match(text) is not None for t in templates):
                    problems.append(f"{p.name}: example does not match: {text!r}")
        return problems

