"""Syntax templates shared by the matcher and the command synthesizer.

Template language:
    word            literal keyword
    {name}          one token bound to parameter ``name``
    {name...}       one or more whitespace-separated tokens
    key={name}      literal text and a placeholder inside one token
    [ ... ]         optional group (may nest)

A template compiles to one anchored regex for matching and renders back
to text by walking the same tree, so both directions share one definition.
"""
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import CatalogError, ValidationError

_PLACEHOLDER = re.compile(r"\{(\w+)(\.\.\.)?\}")
_KV_PLACEHOLDER = re.compile(r"^([\w-]+)=\{(\w+)\}$")


@dataclass
class Placeholder:
    name: str
    multiple: bool = False


@dataclass
class Word:
    """A single template token: literals mixed with placeholders."""
    parts: list[Union[str, Placeholder]]

    @property
    def placeholders(self) -> list[Placeholder]:
        return [p for p in self.parts if isinstance(p, Placeholder)]

    @property
    def kv_key(self) -> Optional[str]:
        """Key of a ``key={name}`` token, or None."""
        if len(self.parts) == 2 and isinstance(self.parts[0], str) \
                and self.parts[0].endswith("=") and isinstance(self.parts[1], Placeholder):
            return self.parts[0][:-1]
        return None


@dataclass
class Group:
    """An optional group."""
    children: list[Union[Word, "Group"]] = field(default_factory=list)


Node = Union[Word, Group]


def _tokenize(text: str) -> list[str]:
    tokens = []
    current = ""
    for ch in text:
        if ch in "[]":
            if current:
                tokens.append(current)
                current = ""
            tokens.append(ch)
        elif ch.isspace():
            if current:
                tokens.append(current)
                current = ""
        else:
            current += ch
    if current:
        tokens.append(current)
    return tokens


def _parse_word(token: str) -> Word:
    parts: list[Union[str, Placeholder]] = []
    pos = 0
    for m in _PLACEHOLDER.finditer(token):
        if m.start() > pos:
            parts.append(token[pos:m.start()])
        parts.append(Placeholder(m.group(1), bool(m.group(2))))
        pos = m.end()
    if pos < len(token):
        parts.append(token[pos:])
    if any(isinstance(p, str) and ("{" in p or "}" in p) for p in parts):
        raise CatalogError(f"Malformed placeholder in template token: {token!r}")
    return Word(parts)


def _parse(tokens: list[str], pos: int, depth: int) -> tuple[list[Node], int]:
    nodes: list[Node] = []
    while pos < len(tokens):
        tok = tokens[pos]
        if tok == "[":
            children, pos = _parse(tokens, pos + 1, depth + 1)
            if not children:
                raise CatalogError("Empty optional group in template")
            nodes.append(Group(children))
        elif tok == "]":
            if depth == 0:
                raise CatalogError("Unbalanced ']' in template")
            return nodes, pos + 1
        else:
            nodes.append(_parse_word(tok))
            pos += 1
    if depth != 0:
        raise CatalogError("Unbalanced '[' in template")
    return nodes, pos


def _walk_placeholders(nodes: list[Node], optional: bool = False):
    for node in nodes:
        if isinstance(node, Group):
            yield from _walk_placeholders(node.children, True)
        else:
            for ph in node.placeholders:
                yield ph, optional


class Template:
    """A parsed syntax template.

    Args:
        text: Template source
        keyvalue: Treat ``key={name}`` tokens as order-independent segments
    """

    def __init__(self, text: str, keyvalue: bool = False):
        self.text = text
        self.keyvalue = keyvalue
        self.nodes, _ = _parse(_tokenize(text), 0, 0)
        if not self.nodes or not isinstance(self.nodes[0], Word):
            raise CatalogError(f"Template must start with a keyword: {text!r}")
        self._regex: Optional[re.Pattern] = None
        self._kv: dict[str, tuple[str, bool]] = {}
        self._param_regexes: dict[str, str] = {}

    @property
    def placeholders(self) -> list[Placeholder]:
        return [ph for ph, _ in _walk_placeholders(self.nodes)]

    def optional_names(self) -> set[str]:
        return {ph.name for ph, optional in _walk_placeholders(self.nodes) if optional}

    def compile(self, param_regexes: dict[str, str]) -> None:
        """Build the match regex from per-parameter token regexes."""
        missing = [ph.name for ph in self.placeholders if ph.name not in param_regexes]
        if missing:
            raise CatalogError(
                f"Template {self.text!r} uses undeclared parameters: {', '.join(missing)}"
            )
        self._param_regexes = dict(param_regexes)
        nodes = self.nodes
        tail = ""
        if self.keyvalue:
            nodes = self._split_keyvalue(self.nodes)
            tail = r"(?P<_kv>(?:\s+\S+)*)"
        body = self._compile_seq(nodes, leading=False)
        self._regex = re.compile(rf"^\s*{body}{tail}\s*$", re.IGNORECASE)

    def _split_keyvalue(self, nodes: list[Node]) -> list[Node]:
        head: list[Node] = []
        for node in nodes:
            if isinstance(node, Word) and node.kv_key:
                self._kv[node.kv_key] = (node.parts[1].name, True)
            elif isinstance(node, Group) and len(node.children) == 1 \
                    and isinstance(node.children[0], Word) and node.children[0].kv_key:
                word = node.children[0]
                self._kv[word.kv_key] = (word.parts[1].name, False)
            else:
                head.append(node)
        return head

    def _token_regex(self, ph: Placeholder) -> str:
        base = self._param_regexes[ph.name]
        if ph.multiple:
            return rf"(?P<{ph.name}>(?:{base})(?:\s+(?:{base}))*)"
        return rf"(?P<{ph.name}>{base})"

    def _compile_seq(self, nodes: list[Node], leading: bool) -> str:
        out = []
        for i, node in enumerate(nodes):
            sep = r"\s+" if (i > 0 or leading) else ""
            if isinstance(node, Group):
                if i == 0 and not leading:
                    raise CatalogError(f"Template cannot start with an optional group: {self.text!r}")
                out.append(f"(?:{self._compile_seq(node.children, leading=True)})?")
            else:
                pieces = []
                for part in node.parts:
                    if isinstance(part, Placeholder):
                        pieces.append(self._token_regex(part))
                    else:
                        pieces.append(re.escape(part))
                out.append(sep + "".join(pieces) + r"(?!\S)")
        return "".join(out)

    def match(self, line: str) -> Optional[dict[str, str]]:
        """Match a line, returning raw parameter text by name."""
        if self._regex is None:
            raise CatalogError(f"Template {self.text!r} was not compiled")
        m = self._regex.match(line)
        if not m:
            return None
        raw = {k: v for k, v in m.groupdict().items() if v is not None and k != "_kv"}
        if self.keyvalue:
            kv = self._match_keyvalue(m.group("_kv") or "")
            if kv is None:
                return None
            raw.update(kv)
        return raw

    def _match_keyvalue(self, tail: str) -> Optional[dict[str, str]]:
        found: dict[str, str] = {}
        for token in tail.split():
            key, sep, value = token.partition("=")
            if not sep or key not in self._kv:
                return None
            name, _ = self._kv[key]
            if name in found:
                return None
            if not re.fullmatch(self._param_regexes[name], value, re.IGNORECASE):
                return None
            found[name] = value
        for name, required in self._kv.values():
            if required and name not in found:
                return None
        return found

    def render(self, values: dict[str, Optional[str]], defaulted: frozenset = frozenset()) -> str:
        """Render the template with device-spelled values.

        Args:
            values: Spelled text per parameter; None means unset
            defaulted: Parameters holding their declared default, which
                optional groups may leave out

        Raises:
            ValidationError: If a mandatory placeholder has no value
        """
        text = self._render_seq(self.nodes, values, defaulted, optional=False)
        return " ".join(text.split())

    def _render_seq(self, nodes: list[Node], values: dict, defaulted: frozenset,
                    optional: bool) -> Optional[str]:
        out = []
        for node in nodes:
            if isinstance(node, Group):
                if not self._needed(node, values, defaulted):
                    continue
                inner = self._render_seq(node.children, values, defaulted, optional=True)
                if inner is not None:
                    out.append(inner)
                continue
            pieces = []
            for part in node.parts:
                if isinstance(part, Placeholder):
                    value = values.get(part.name)
                    if value is None:
                        if optional:
                            return None
                        raise ValidationError(
                            f"Missing value for '{part.name}' in {self.text!r}",
                            field=part.name,
                        )
                    pieces.append(str(value))
                else:
                    pieces.append(part)
            out.append("".join(pieces))
        return " ".join(out)

    def _needed(self, group: Group, values: dict, defaulted: frozenset) -> bool:
        for ph, _ in _walk_placeholders(group.children):
            if values.get(ph.name) is not None and ph.name not in defaulted:
                return True
        return False
