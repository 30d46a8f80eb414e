"""Executor for applying synthesized commands to a router.

Apply flow:
1. Synthesize the commands (and, for access lists, check the declared
   siblings for sequence collisions)
2. Read ``show config`` once and check the live numbering space
3. Execute the commands in order
4. Re-read and re-parse, then confirm the record round-tripped
5. Write an audit record

The executor never serializes callers itself: two applies against the
same router must not overlap, and keeping them apart is the caller's job.
"""
import logging
from typing import Any, Iterable, Optional

from ..devices.base import RouterDevice
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed_section
from .collision import SiblingEntry, ranges_from_records
from .diff import summarize_diff
from .engine import ConfigEngine
from .errors import RTXStateError
from .records import AccessList, DynamicFilter, EthernetFilter, IPFilter
from .schema import ExecuteResult, ParseResult

logger = logging.getLogger(__name__)

FILTER_TYPES = (IPFilter, DynamicFilter, EthernetFilter)


class ConfigExecutor:
    """
    Apply desired records to a router and confirm them by reading back.

    Usage:
        executor = ConfigExecutor(ConfigEngine())
        result = await executor.apply(device, desired, previous, dry_run=True)
    """

    def __init__(self, engine: Optional[ConfigEngine] = None, stop_on_error: bool = True):
        self.engine = engine or ConfigEngine()
        self.stop_on_error = stop_on_error

    async def apply(
        self,
        device: RouterDevice,
        desired: Any,
        previous: Optional[Any] = None,
        dry_run: bool = False,
        siblings: Iterable[SiblingEntry] = (),
    ) -> ExecuteResult:
        """
        Move the router from ``previous`` to ``desired``.

        Args:
            device: Router handler (connected for the duration of the call)
            desired: Desired record
            previous: Record as last observed, None on creation
            dry_run: Only report the commands
            siblings: Other declared access lists sharing the numbering space

        Returns:
            ExecuteResult; planning errors and collisions are reported in
            ``error`` rather than raised
        """
        result = ExecuteResult(dry_run=dry_run)
        identity = _identity(desired)

        try:
            result.commands = self.engine.synthesize(desired, previous)
            if isinstance(desired, AccessList):
                candidate = self.engine.sequence_range(desired)
                if candidate is not None:
                    replacing = None
                    if isinstance(previous, AccessList):
                        replacing = self.engine.sequence_range(previous)
                    self.engine.check_collision(candidate, siblings, replacing=replacing)
        except RTXStateError as e:
            logger.error(f"Planning {identity} failed: {e}")
            result.error = str(e)
            result.error_context = type(e).__name__
            self._audit(device, "apply", identity, result)
            return result

        if result.no_change:
            logger.info(f"{identity} already matches {device.device_id}, nothing to apply")
            result.success = True
            result.confirmed = True
            return result

        if dry_run:
            logger.info(f"[DRY-RUN] {len(result.commands)} commands for {identity}")
            result.success = True
            self._audit(device, "apply", identity, result)
            return result

        try:
            async with device:
                async with timed_section("apply", device_id=device.device_id,
                                         commands=len(result.commands)):
                    await self._apply(device, desired, previous, result)
        except RTXStateError as e:
            logger.error(f"Apply of {identity} to {device.device_id} refused: {e}")
            result.success = False
            result.error = str(e)
            result.error_context = type(e).__name__
        except Exception as e:
            logger.exception(f"Execution failed: {e}")
            result.success = False
            result.error = str(e)
        finally:
            self._audit(device, "apply", identity, result)

        return result

    async def remove(self, device: RouterDevice, record: Any, dry_run: bool = False) -> ExecuteResult:
        """Delete ``record`` from the router and confirm it is gone."""
        result = ExecuteResult(dry_run=dry_run)
        identity = _identity(record)
        try:
            result.commands = self.engine.delete(record)
        except RTXStateError as e:
            result.error = str(e)
            result.error_context = type(e).__name__
            return result

        if dry_run or result.no_change:
            result.success = True
            self._audit(device, "delete", identity, result)
            return result

        try:
            async with device:
                async with timed_section("delete", device_id=device.device_id,
                                         commands=len(result.commands)):
                    if await self._execute(device, result.commands, result):
                        observed = self.engine.parse(await device.get_running_config())
                        leftovers = [r for r in self._members(record, applied=True)
                                     if self._find(observed, r) is not None]
                        result.confirmed = not leftovers
                        if leftovers:
                            result.warnings.append(
                                f"Still present after delete: {', '.join(_identity(r) for r in leftovers)}"
                            )
        except Exception as e:
            logger.exception(f"Delete failed: {e}")
            result.success = False
            result.error = str(e)
        finally:
            self._audit(device, "delete", identity, result)
        return result

    # --- Internals ---

    async def _apply(self, device: RouterDevice, desired: Any,
                     previous: Optional[Any], result: ExecuteResult) -> None:
        current = self.engine.parse(await device.get_running_config())

        if isinstance(desired, AccessList):
            candidate = self.engine.sequence_range(desired)
            if candidate is not None:
                owned = []
                if previous is not None:
                    owned = [e.number for e in self._members(previous, applied=True)]
                live = ranges_from_records(
                    r for r in current.records if isinstance(r, FILTER_TYPES)
                )
                self.engine.check_collision(candidate, device_query=lambda: live, exclude=owned)

        if not await self._execute(device, result.commands, result):
            return

        observed = self.engine.parse(await device.get_running_config())
        diffs = []
        for member in self._members(desired):
            found = self._find(observed, member)
            if found is None:
                result.warnings.append(f"{_identity(member)} not found after apply")
                continue
            diffs.append(self.engine.compare(member, found))
        drift = [d for d in diffs if d.has_changes]
        if drift:
            result.warnings.append(summarize_diff(drift))
        result.confirmed = not drift and len(diffs) == len(self._members(desired))
        logger.info(
            f"Applied {len(result.commands_executed)} commands to {device.device_id} "
            f"(confirmed={result.confirmed})"
        )

    async def _execute(self, device: RouterDevice, commands: list[str], result: ExecuteResult) -> bool:
        outcomes = await device.execute_batch(commands, stop_on_error=self.stop_on_error)
        result.commands_executed = [o.command for o in outcomes if o.success]
        failed = [o for o in outcomes if not o.success]
        if failed:
            result.success = False
            result.error = f"Command failed: {failed[0].command}"
            result.error_context = failed[0].output
            return False
        result.success = True
        return True

    def _members(self, record: Any, applied: bool = False) -> list[Any]:
        """Device-level records a declared record stands for."""
        if isinstance(record, AccessList):
            family = self.engine.registry.get("access_list")
            if applied:
                return family.applied_entries(record)
            return family.numbered_entries(record)
        return [record]

    def _find(self, parsed: ParseResult, record: Any) -> Optional[Any]:
        family = self.engine.registry.family_for(record)
        wanted = family.identity(record)
        for candidate in parsed.of_type(type(record)):
            if family.identity(candidate) == wanted:
                return candidate
        return None

    def _audit(self, device: RouterDevice, operation: str, identity: str, result: ExecuteResult) -> None:
        ChangeTracker(device.device_id).log_change(
            operation=operation,
            record=identity,
            commands=result.commands,
            success=result.success,
            dry_run=result.dry_run,
            confirmed=result.confirmed,
            output=result.error_context or "",
            error=result.error,
        )


def _identity(record: Any) -> str:
    identity = getattr(record, "identity", None)
    return str(identity) if identity is not None else type(record).__name__
