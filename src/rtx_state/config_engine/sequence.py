"""Sequence allocation for ordered rule lists.

A list is either fully automatic (ids computed from start + i * step) or
fully manual (every entry carries its own id). Mixed lists are rejected;
there is no partial state.
"""
import dataclasses
import logging
from typing import Any, Iterable, Optional

from .errors import DuplicateSequence, SequenceOverflow, ValidationError
from .schema import SequenceMode, SequencePolicy

logger = logging.getLogger(__name__)

MIN_SEQUENCE = 1
MAX_SEQUENCE = 65535
DEFAULT_START = 10
DEFAULT_STEP = 10

# Round starting points tried before falling back past the highest used id
START_CANDIDATES = (10, 100, 1000, 10000)


class SequenceAllocator:
    """Compute or validate ordinal ids within one numbering space.

    Args:
        maximum: Largest id the family accepts
    """

    def __init__(self, maximum: int = MAX_SEQUENCE):
        self.maximum = maximum

    def allocate(self, policy: SequencePolicy, count: int) -> list[int]:
        """Ids for ``count`` entries under an automatic policy.

        Raises:
            ValidationError: If the policy is not automatic or malformed
            SequenceOverflow: If the last id exceeds the maximum
        """
        if policy.mode != SequenceMode.AUTO:
            raise ValidationError("Only automatic policies allocate ids", field="policy")
        if policy.start < MIN_SEQUENCE or policy.step < 1:
            raise ValidationError(
                f"Invalid policy start={policy.start} step={policy.step}", field="policy"
            )
        ids = [policy.start + i * policy.step for i in range(count)]
        if ids and ids[-1] > self.maximum:
            raise SequenceOverflow(ids[-1], self.maximum)
        return ids

    def validate(
        self,
        ids: list[Optional[int]],
        policy: Optional[SequencePolicy] = None,
        record: Any = None,
    ) -> None:
        """Check a list's ids against its policy.

        With no policy every id must be given, as in manual mode.

        Raises:
            ValidationError: Explicit ids under an auto policy, missing ids
                otherwise, or a non-positive id
            SequenceOverflow: An id above the maximum
            DuplicateSequence: The same id twice
        """
        present = [i for i in ids if i is not None]
        auto = policy is not None and policy.mode == SequenceMode.AUTO

        if auto and present:
            raise ValidationError(
                f"Explicit sequence {present[0]} not allowed with an automatic policy",
                field="sequence", record=record, value=present[0],
            )
        if not auto and len(present) != len(ids):
            raise ValidationError(
                f"{len(ids) - len(present)} entries have no sequence and no automatic policy applies",
                field="sequence", record=record,
            )

        seen = set()
        for i in present:
            if i < MIN_SEQUENCE:
                raise ValidationError(f"Sequence {i} must be positive",
                                      field="sequence", record=record, value=i)
            if i > self.maximum:
                raise SequenceOverflow(i, self.maximum, record)
            if i in seen:
                raise DuplicateSequence(i, record)
            seen.add(i)

    def assign(
        self,
        entries: list[Any],
        policy: Optional[SequencePolicy] = None,
        record: Any = None,
        key: str = "number",
    ) -> list[Any]:
        """Entries with their ids populated.

        Entries are dataclasses; automatic ids are set with
        ``dataclasses.replace`` so the caller's objects are left untouched.
        """
        ids = [getattr(e, key) for e in entries]
        self.validate(ids, policy, record)
        if policy is not None and policy.mode == SequenceMode.AUTO:
            allocated = self.allocate(policy, len(entries))
            return [dataclasses.replace(e, **{key: i}) for e, i in zip(entries, allocated)]
        return list(entries)

    def next_available_start(
        self,
        used: Iterable[int],
        count: int,
        step: int = DEFAULT_STEP,
    ) -> int:
        """First start whose ``count`` ids do not touch any used id.

        Raises:
            SequenceOverflow: If no such start fits below the maximum
        """
        used = sorted(set(used))
        span = max(count - 1, 0) * step

        def free(start: int) -> bool:
            return not any(start <= u <= start + span for u in used)

        for candidate in START_CANDIDATES:
            if candidate + span <= self.maximum and free(candidate):
                return candidate

        start = (used[-1] // 100 + 1) * 100 if used else START_CANDIDATES[0]
        if start + span > self.maximum:
            raise SequenceOverflow(start + span, self.maximum)
        logger.debug(f"No round start free, using {start} above highest used id")
        return start
