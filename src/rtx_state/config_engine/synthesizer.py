"""Command synthesizer: the inverse of the record builder.

For each slot of a family, in catalog-declared order, the desired and
previous records are laid out as keyed parameter dicts and compared under
the equivalence normalizer:

- key only in previous: emit the no-form
- key only in desired: emit the command unless every configurable
  parameter is at its default
- key in both and semantically changed: emit the no-form first when the
  pattern clears before set, then the command

Commands always use the canonical spelling. A record compared with itself
yields no commands.
"""
import logging
from typing import Any, Optional

from .catalog import Catalog
from .errors import ValidationError
from .families import Family, FamilyRegistry, Slot
from .schema import CommandPattern, ContextRole, DerivableField, DerivableState

logger = logging.getLogger(__name__)


def _unset(value: Any) -> bool:
    return value is None or (isinstance(value, (list, tuple)) and not value)


def _not_derivable(value: Any) -> bool:
    return isinstance(value, DerivableField) and value.state == DerivableState.NOT_DERIVABLE


class CommandSynthesizer:
    """Emit the ordered command list moving a device to a desired record."""

    def __init__(self, catalog: Catalog, registry: FamilyRegistry):
        self.catalog = catalog
        self.registry = registry
        self.normalizer = catalog.normalizer

    def synthesize(self, desired: Any, previous: Optional[Any] = None) -> list[str]:
        """Commands moving ``previous`` (None on creation) to ``desired``.

        Raises:
            ValidationError: If the records are of different types or
                identities, or a value cannot be expressed
        """
        family = self.registry.family_for(desired)
        if previous is not None:
            if type(previous) is not type(desired):
                raise ValidationError(
                    f"Cannot diff {type(desired).__name__} against {type(previous).__name__}"
                )
            if family.identity(previous) != family.identity(desired):
                raise ValidationError(
                    "Previous record has a different identity",
                    record=family.identity(desired),
                )

        pairs = family.expand(desired, previous)
        if pairs is not None:
            commands = []
            for new, old in pairs:
                if new is None:
                    commands.extend(self.delete(old))
                else:
                    commands.extend(self.synthesize(new, old))
            return commands

        body = []
        for slot in family.slots():
            body.extend(self._slot_commands(family, slot, desired, previous))
        return self._wrap(family, desired, body)

    def delete(self, record: Any) -> list[str]:
        """No-form commands removing ``record`` from the device.

        Lines scoped to a context block go away with the block, so only the
        block's own no-form is emitted for them.
        """
        family = self.registry.family_for(record)
        pairs = family.expand(None, record)
        if pairs is not None:
            commands = []
            for _, old in pairs:
                commands.extend(self.delete(old))
            return commands

        commands = []
        for slot in reversed(family.slots()):
            pattern = self.catalog.get(slot.pattern)
            if pattern.context == ContextRole.SCOPED:
                continue
            for params in slot.items(record).values():
                commands.extend(self._no_form(family, pattern, params))
        context_delete = family.context_delete(record)
        if context_delete:
            commands.append(context_delete)
        return commands

    # --- Internals ---

    def _slot_commands(self, family: Family, slot: Slot, desired: Any, previous: Optional[Any]) -> list[str]:
        pattern = self.catalog.get(slot.pattern)
        new_items = slot.items(desired)
        old_items = slot.items(previous) if previous is not None else {}

        removals: list[str] = []
        for key, old in old_items.items():
            if key not in new_items:
                removals.extend(self._no_form(family, pattern, old))

        updates: list[str] = []
        for key, new in new_items.items():
            old = old_items.get(key)
            if old is None:
                if self._all_default(pattern, slot, new):
                    continue
                if any(_not_derivable(v) for v in new.values()):
                    logger.debug(f"Skipping {pattern.name} {key}: value cannot be derived")
                    continue
                updates.append(self._render(family, pattern, new, creating=True))
            elif self._changed(pattern, new, old):
                if pattern.clear_before_set:
                    updates.extend(self._no_form(family, pattern, old))
                updates.append(self._render(family, pattern, new, creating=False))
        return removals + updates

    def _all_default(self, pattern: CommandPattern, slot: Slot, params: dict) -> bool:
        for param in pattern.parameters:
            if param.name in slot.keys:
                continue
            value = params.get(param.name)
            if _unset(value) or (isinstance(value, DerivableField) and value.is_absent):
                continue
            if not self.normalizer.is_default(param, value):
                return False
        return True

    def _changed(self, pattern: CommandPattern, new: dict, old: dict) -> bool:
        for param in pattern.parameters:
            a = new.get(param.name)
            b = old.get(param.name)
            if _not_derivable(a) or _not_derivable(b):
                # Cannot confirm: keep whatever was declared
                return False
        for param in pattern.parameters:
            a = new.get(param.name)
            b = old.get(param.name)
            if _unset(a):
                a = param.default
            if _unset(b):
                b = param.default
            if _unset(a) and _unset(b):
                continue
            if _unset(a) or _unset(b):
                return True
            if not self.normalizer.equivalent(self.normalizer.param_class(param), a, b):
                return True
        return False

    def _render(self, family: Family, pattern: CommandPattern, params: dict, creating: bool) -> str:
        spelled = family.spell(pattern, params)
        defaulted = frozenset()
        if creating:
            defaulted = frozenset(
                p.name for p in pattern.parameters
                if not _unset(params.get(p.name)) and self.normalizer.is_default(p, params.get(p.name))
            )
        return pattern.template.render(spelled, defaulted)

    def _no_form(self, family: Family, pattern: CommandPattern, params: dict) -> list[str]:
        if pattern.no_form_template is None:
            logger.debug(f"{pattern.name} has no no-form, leaving it in place")
            return []
        names = {ph.name for ph in pattern.no_form_template.placeholders}
        return [pattern.no_form_template.render(family.spell(pattern, params, names))]

    def _wrap(self, family: Family, record: Any, body: list[str]) -> list[str]:
        if not body:
            return []
        context = family.context_commands(record)
        if context is None:
            return body
        enter, leave = context
        return [enter, *body, leave]
