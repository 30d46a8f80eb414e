"""Line preprocessor for wrapped device output.

RTX consoles wrap long lines at a fixed column, which can split a single
numeric token across two lines:

    ip lan2 secure filter in 200020 20010
    0 200102

must be read back as ``... 200020 200100 200102``. Reconstruction happens
on raw text before any pattern matching, since the split can land in the
middle of a digit run.

Continuation rules:
- Next line starts with a digit, previous ends with a digit, no leading
  whitespace: a split number, joined with no separator.
- Next line starts with ``=``: a split ``key=value`` token, joined with no
  separator.
- Next line starts (after whitespace) with a digit: joined with a single
  space.
- Next line is indented and no context block (`pp select 1`,
  `tunnel select 2`) is open: joined with a single space. Inside a block,
  indentation marks block content and never a continuation.

Merges that cannot be decided safely (a chain of bare digit fragments, or a
merged number longer than any identifier) are not performed; the logical
line is dropped and reported as MalformedInput.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .errors import MalformedInput
from .schema import Diagnostic

logger = logging.getLogger(__name__)

# Longest numeric token the device prints (2147483647)
MAX_TOKEN_DIGITS = 10

# "pp select 1", "tunnel select 2": indented lines after it are block content
BLOCK_OPENER = re.compile(r"^\S+ select (?!none\b)\S+", re.IGNORECASE)


@dataclass
class ReconstructedLine:
    """A logical line and the physical line it started on."""
    text: str
    line_number: int
    fragments: list[str] = field(default_factory=list)


@dataclass
class _Pending:
    text: str
    line_number: int
    fragments: list[str]
    bare_digit_split: bool = False
    malformed: Optional[str] = None


class LinePreprocessor:
    """Rebuild logical lines from wrapped console output.

    Args:
        max_token_digits: Longest digit run a merge may produce.
    """

    def __init__(self, max_token_digits: int = MAX_TOKEN_DIGITS):
        self.max_token_digits = max_token_digits

    def reconstruct(self, raw: str) -> str:
        """Return the reconstructed text, one logical line per line."""
        lines, _ = self.reconstruct_lines(raw)
        return "\n".join(line.text for line in lines)

    def reconstruct_lines(self, raw: str) -> tuple[list[ReconstructedLine], list[Diagnostic]]:
        """Reconstruct logical lines and report undecidable merges.

        Returns:
            Tuple of (lines, diagnostics)
        """
        physical = raw.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        lines: list[ReconstructedLine] = []
        diagnostics: list[Diagnostic] = []
        pending: Optional[_Pending] = None
        in_block = False

        def flush() -> None:
            if pending is None:
                return
            if pending.malformed:
                error = MalformedInput(
                    pending.malformed,
                    line=" | ".join(pending.fragments),
                    line_number=pending.line_number,
                )
                logger.warning(f"Line {pending.line_number}: {error}")
                diagnostics.append(Diagnostic.from_error(error))
                return
            lines.append(ReconstructedLine(pending.text, pending.line_number, pending.fragments))

        for number, line in enumerate(physical, start=1):
            line = line.rstrip()
            if pending is not None and line.strip():
                if self._join(pending, line, in_block):
                    continue
            flush()
            pending = _Pending(line, number, [line]) if line.strip() else None
            if line[:1].strip():
                in_block = bool(BLOCK_OPENER.match(line))
        flush()
        return lines, diagnostics

    def _join(self, pending: _Pending, line: str, in_block: bool = False) -> bool:
        """Try to merge ``line`` into ``pending``; False starts a new line."""
        prev = pending.text
        stripped = line.lstrip()
        indented = stripped != line

        if not indented and line[0].isdigit() and prev[-1:].isdigit():
            head = line.split()[0]
            if pending.bare_digit_split:
                pending.malformed = "Chained digit fragments cannot be merged unambiguously"
            else:
                run = _trailing_digits(prev) + _leading_digits(line)
                if len(run) > self.max_token_digits:
                    pending.malformed = (
                        f"Merged number {run} exceeds {self.max_token_digits} digits"
                    )
            pending.bare_digit_split = head == line.strip() and head.isdigit()
            pending.text = prev + line
            pending.fragments.append(line)
            return True

        if stripped.startswith("="):
            pending.text = prev + stripped
            pending.fragments.append(line)
            return True

        if stripped[0].isdigit() or (indented and not in_block):
            pending.text = f"{prev} {stripped}"
            pending.fragments.append(line)
            pending.bare_digit_split = False
            return True

        return False


def _trailing_digits(text: str) -> str:
    i = len(text)
    while i > 0 and text[i - 1].isdigit():
        i -= 1
    return text[i:]


def _leading_digits(text: str) -> str:
    i = 0
    while i < len(text) and text[i].isdigit():
        i += 1
    return text[:i]


def reconstruct(raw: str) -> str:
    """Reconstruct wrapped device output (convenience wrapper)."""
    return LinePreprocessor().reconstruct(raw)
