"""
Allocation Studio - Auto-Fix Engine

Maps fixable Finding categories to deterministic corrective transformations:

- Duplicate ID        -> rename every repeat to <id>_<position> (1-based)
- Out-of-range Value  -> clamp to bounds, fallback default when unparsable
- Broken JSON         -> reset to "{}"
- Unknown Reference   -> remove every dangling TaskID from that client

Fixes are pure: they return a new EntityStore and never touch the Findings.
Callers re-validate to observe the new state. Two fixes applied against the
same stale snapshot are resolved last-snapshot-wins; callers serialize.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple

from .config import ValidationConfig, default_config
from .models import CLIENTS, RECORD_TYPES, EntityStore, Finding, FindingCategory, is_valid_json, parse_int
from .validation import range_specs, value_in_range


class FixNotApplicableError(ValueError):
    """Raised when a caller asks to fix a finding that has no automatic fix."""


@dataclass(frozen=True)
class FixReport:
    """Outcome of a bulk fix: final snapshot, applied ids, per-finding failures"""
    store: EntityStore
    applied: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()
    failures: Tuple[Tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures


class AutoFixer:
    """
    Deterministic corrective transformations for validation findings.

    Every fix targets the row the finding was raised on plus any other row
    that still carries the finding's entity id, so that re-validating the
    result no longer reports the same (category, entityId, field) key.
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or default_config().validation
        self.ranges = range_specs(self.config)
        self._handlers: Dict[str, Callable[[EntityStore, Finding], EntityStore]] = {
            FindingCategory.DUPLICATE_ID: self._rename_duplicates,
            FindingCategory.OUT_OF_RANGE: self._clamp_value,
            FindingCategory.BROKEN_JSON: self._reset_json,
            FindingCategory.UNKNOWN_REFERENCE: self._remove_references,
        }

    def apply_fix(self, store: EntityStore, finding: Finding) -> EntityStore:
        """Return a new store with the finding's fix applied."""
        if not finding.auto_fixable:
            raise FixNotApplicableError(f"Finding {finding.id} ({finding.category}) is not auto-fixable")
        handler = self._handlers.get(finding.category)
        if handler is None:
            raise FixNotApplicableError(f"No automatic fix for category {finding.category!r}")
        return handler(store, finding)

    def fix_all(self, store: EntityStore, findings: List[Finding]) -> FixReport:
        """
        Apply every fixable finding in the order given.

        Each fix is atomic: a failure is recorded and the batch continues
        from the last good snapshot. Non-fixable findings are skipped.
        """
        applied, skipped, failures = [], [], []
        for finding in findings:
            if not finding.auto_fixable:
                skipped.append(finding.id)
                continue
            try:
                store = self.apply_fix(store, finding)
            except Exception as e:
                failures.append((finding.id, f"{type(e).__name__}: {e}"))
            else:
                applied.append(finding.id)
        return FixReport(store=store, applied=tuple(applied),
                         skipped=tuple(skipped), failures=tuple(failures))

    def remove_invalid_references(self, store: EntityStore, client_id: str,
                                  row_index: Optional[int] = None) -> EntityStore:
        """Drop every RequestedTaskID that doesn't resolve, for client X."""
        task_ids = store.task_ids()
        clients = list(store.clients)
        for index in self._target_rows(store, CLIENTS, client_id, row_index):
            client = clients[index]
            kept = tuple(t for t in client.requested_task_ids if t in task_ids)
            if kept != client.requested_task_ids:
                clients[index] = client.with_field('RequestedTaskIDs', kept)
        return store.with_records(CLIENTS, clients)

    def _rename_duplicates(self, store: EntityStore, finding: Finding) -> EntityStore:
        """Keep the first occurrence, suffix the rest with their position"""
        entity_type = finding.entity_type
        id_field = RECORD_TYPES[entity_type].ID_FIELD
        records = list(store.records(entity_type))
        taken: Set[str] = {r.record_id for r in records}

        seen_first = False
        for index, record in enumerate(records):
            if record.record_id != finding.entity_id:
                continue
            if not seen_first:
                seen_first = True
                continue
            new_id = self._unique_id(f"{finding.entity_id}_{index + 1}", taken)
            taken.add(new_id)
            records[index] = record.with_field(id_field, new_id)

        return store.with_records(entity_type, records)

    @staticmethod
    def _unique_id(candidate: str, taken: Set[str]) -> str:
        if candidate not in taken:
            return candidate
        counter = 2
        while f"{candidate}_{counter}" in taken:
            counter += 1
        return f"{candidate}_{counter}"

    def _clamp_value(self, store: EntityStore, finding: Finding) -> EntityStore:
        """Clamp to [min, max]; unparsable values take the field default"""
        bounds = self.ranges.get(finding.entity_type, {}).get(finding.field)
        if bounds is None:
            raise FixNotApplicableError(f"No range defined for {finding.entity_type}.{finding.field}")
        low, high, fallback = bounds

        records = list(store.records(finding.entity_type))
        for index in self._target_rows(store, finding.entity_type, finding.entity_id, finding.row_index):
            record = records[index]
            value = record.get(finding.field)
            if value_in_range(value, bounds):
                continue
            number = parse_int(value)
            if number is None:
                fixed = fallback
            else:
                fixed = max(low, number)
                if high is not None:
                    fixed = min(high, fixed)
            records[index] = record.with_field(finding.field, fixed)
        return store.with_records(finding.entity_type, records)

    def _reset_json(self, store: EntityStore, finding: Finding) -> EntityStore:
        records = list(store.records(finding.entity_type))
        for index in self._target_rows(store, finding.entity_type, finding.entity_id, finding.row_index):
            if not is_valid_json(records[index].attributes_json):
                records[index] = records[index].with_field('AttributesJSON', '{}')
        return store.with_records(finding.entity_type, records)

    def _remove_references(self, store: EntityStore, finding: Finding) -> EntityStore:
        return self.remove_invalid_references(store, finding.entity_id, finding.row_index)

    @staticmethod
    def _target_rows(store: EntityStore, entity_type: str, entity_id: str,
                     row_index: Optional[int]) -> List[int]:
        """Rows a finding refers to: its own row plus any row sharing its id"""
        records = store.records(entity_type)
        rows = [i for i, r in enumerate(records) if entity_id and r.record_id == entity_id]
        # Fixes never reorder rows, so the recorded index stays valid across a batch
        if row_index is not None and 0 <= row_index < len(records) and row_index not in rows:
            rows.append(row_index)
        return sorted(rows)


# Tool wrapper functions

def apply_fix(store: EntityStore, finding: Finding, config: Optional[ValidationConfig] = None) -> EntityStore:
    """Tool wrapper: Apply a single auto-fix."""
    return AutoFixer(config).apply_fix(store, finding)


def fix_all(store: EntityStore, findings: List[Finding], config: Optional[ValidationConfig] = None) -> FixReport:
    """Tool wrapper: Apply every fixable finding, accumulating failures."""
    return AutoFixer(config).fix_all(store, findings)


def remove_invalid_references(store: EntityStore, client_id: str) -> EntityStore:
    """Tool wrapper: Remove dangling task references for one client."""
    return AutoFixer().remove_invalid_references(store, client_id)
