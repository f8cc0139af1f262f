"""
Allocation Studio - Validation Engine

Runs an ordered battery of independent checks over an EntityStore and
returns a flat list of Findings:

1. Schema        - required columns present (ERROR, structural, never fixed)
2. Uniqueness    - duplicate primary keys (ERROR, auto-fixable)
3. Range/type    - PriorityLevel 1-5, Duration >= 1, MaxLoadPerPhase >= 1 (ERROR, auto-fixable)
4. JSON          - AttributesJSON must parse (ERROR, auto-fixable)
5. References    - RequestedTaskIDs must resolve (ERROR, auto-fixable by removal)
6. Skill coverage- every required skill held by some worker (WARNING)
7. Insights      - ratio-based observations about the data (INFO)

Checks never depend on each other's output, so any of them can be re-run
after a fix. Malformed rows become Findings; validation never raises.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .config import ValidationConfig, default_config
from .models import (
    CLIENTS, ENTITY_TYPES, ERROR, INFO, SEVERITIES, TASKS, WARNING, WORKERS,
    RECORD_TYPES, EntityStore, Finding, FindingCategory, is_valid_json, parse_int,
)

REQUIRED_FIELDS = {
    CLIENTS: ('ClientID', 'ClientName', 'PriorityLevel'),
    WORKERS: ('WorkerID', 'WorkerName', 'Skills', 'AvailableSlots'),
    TASKS: ('TaskID', 'TaskName', 'Duration', 'RequiredSkills'),
}


def range_specs(config: Optional[ValidationConfig] = None) -> Dict[str, Dict[str, Tuple[int, Optional[int], int]]]:
    """(min, max, fallback) per numeric field, keyed by entity type."""
    config = config or ValidationConfig()
    return {
        CLIENTS: {'PriorityLevel': (config.min_priority_level, config.max_priority_level,
                                    config.default_priority_level)},
        TASKS: {'Duration': (config.min_duration, None, config.default_duration)},
        WORKERS: {'MaxLoadPerPhase': (config.min_max_load, None, config.default_max_load)},
    }


def value_in_range(value, bounds: Tuple[int, Optional[int], int]) -> bool:
    number = parse_int(value)
    low, high, _ = bounds
    if number is None or number < low:
        return False
    return high is None or number <= high


def row_label(record, index: int) -> str:
    return record.record_id or f"row-{index}"


class DataValidator:
    """
    Data-quality validation with severity classification.

    ERROR findings (structural, integrity, range, format) block a clean
    export; the integrity/range/format ones carry auto_fixable=True.
    WARNING and INFO findings are advisory and need human judgment.
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or default_config().validation
        self.ranges = range_specs(self.config)

    def validate(self, store: EntityStore) -> List[Finding]:
        """Run every check in its fixed order and concatenate the results."""
        findings: List[Finding] = []

        for entity_type in ENTITY_TYPES:
            findings.extend(self._check_required_fields(store, entity_type))
        for entity_type in ENTITY_TYPES:
            findings.extend(self._check_duplicate_ids(store, entity_type))
        for entity_type in ENTITY_TYPES:
            findings.extend(self._check_ranges(store, entity_type))
        for entity_type in ENTITY_TYPES:
            findings.extend(self._check_json_fields(store, entity_type))
        findings.extend(self._check_references(store))
        findings.extend(self._check_skill_coverage(store))
        findings.extend(self._generate_insights(store))

        return findings

    def _check_required_fields(self, store: EntityStore, entity_type: str) -> List[Finding]:
        """Missing columns, judged on the collection's header set"""
        if not store.records(entity_type):
            return []

        columns = store.columns(entity_type)
        findings = []
        for field in REQUIRED_FIELDS[entity_type]:
            if field in columns:
                continue
            findings.append(Finding(
                id=f"missing-{entity_type}-{field}",
                severity=ERROR,
                category=FindingCategory.MISSING_COLUMN,
                message=f"Missing required column: {field}",
                details=f"The {entity_type} data is missing the required {field} column.",
                entity_type=entity_type,
                entity_id='structure',
                field=field,
                suggestion=f"Add a {field} column to your {entity_type} data",
                auto_fixable=False,
            ))
        return findings

    def _check_duplicate_ids(self, store: EntityStore, entity_type: str) -> List[Finding]:
        """One finding per primary key shared by two or more records"""
        id_field = RECORD_TYPES[entity_type].ID_FIELD
        positions: Dict[str, List[int]] = defaultdict(list)
        for index, record in enumerate(store.records(entity_type)):
            if record.record_id:
                positions[record.record_id].append(index)

        findings = []
        for record_id, indices in positions.items():
            if len(indices) < 2:
                continue
            findings.append(Finding(
                id=f"duplicate-{entity_type}-{record_id}",
                severity=ERROR,
                category=FindingCategory.DUPLICATE_ID,
                message=f"Duplicate {id_field}: {record_id}",
                details=f"Found {len(indices)} records with the same {id_field}: {record_id}",
                entity_type=entity_type,
                entity_id=record_id,
                field=id_field,
                suggestion=f"Ensure each {id_field} is unique across all {entity_type}",
                auto_fixable=True,
                row_index=indices[1],
            ))
        return findings

    def _check_ranges(self, store: EntityStore, entity_type: str) -> List[Finding]:
        """Numeric fields that are unparsable or outside their bounds"""
        findings = []
        columns = store.columns(entity_type)
        for field, bounds in self.ranges.get(entity_type, {}).items():
            # A missing column is a schema finding, not a range one
            if field not in columns:
                continue
            low, high, _ = bounds
            expected = f"a number between {low} and {high}" if high is not None else f"a number >= {low}"
            for index, record in enumerate(store.records(entity_type)):
                value = record.get(field)
                if value_in_range(value, bounds):
                    continue
                findings.append(Finding(
                    id=f"invalid-{field.lower()}-{entity_type}-{index}",
                    severity=ERROR,
                    category=FindingCategory.OUT_OF_RANGE,
                    message=f"Invalid {field}: {value}",
                    details=f"{field} must be {expected}",
                    entity_type=entity_type,
                    entity_id=row_label(record, index),
                    field=field,
                    suggestion=f"Set {field} to {expected}",
                    auto_fixable=True,
                    row_index=index,
                ))
        return findings

    def _check_json_fields(self, store: EntityStore, entity_type: str) -> List[Finding]:
        """AttributesJSON must be empty or well-formed JSON"""
        findings = []
        for index, record in enumerate(store.records(entity_type)):
            if is_valid_json(record.attributes_json):
                continue
            findings.append(Finding(
                id=f"invalid-json-{entity_type}-{index}",
                severity=ERROR,
                category=FindingCategory.BROKEN_JSON,
                message="Invalid JSON in AttributesJSON",
                details="The AttributesJSON field contains malformed JSON",
                entity_type=entity_type,
                entity_id=row_label(record, index),
                field='AttributesJSON',
                suggestion='Fix the JSON syntax or clear the field',
                auto_fixable=True,
                row_index=index,
            ))
        return findings

    def _check_references(self, store: EntityStore) -> List[Finding]:
        """Every requested TaskID must exist in the task collection"""
        task_ids = store.task_ids()
        findings = []
        for index, client in enumerate(store.clients):
            reported = set()
            for task_id in client.requested_task_ids:
                if task_id in task_ids or task_id in reported:
                    continue
                reported.add(task_id)
                client_label = row_label(client, index)
                findings.append(Finding(
                    id=f"invalid-task-ref-{client_label}-{task_id}",
                    severity=ERROR,
                    category=FindingCategory.UNKNOWN_REFERENCE,
                    message=f"Unknown TaskID: {task_id}",
                    details=f"Client {client.client_name or client_label} requests TaskID {task_id} which doesn't exist",
                    entity_type=CLIENTS,
                    entity_id=client_label,
                    field='RequestedTaskIDs',
                    suggestion=f"Remove {task_id} or add a task with this ID",
                    auto_fixable=True,
                    row_index=index,
                ))
        return findings

    def _check_skill_coverage(self, store: EntityStore) -> List[Finding]:
        """Required skills nobody on the roster holds"""
        worker_skills = set()
        for worker in store.workers:
            worker_skills.update(worker.skill_set)

        findings = []
        for index, task in enumerate(store.tasks):
            label = row_label(task, index)
            for skill in task.required_skills:
                if skill in worker_skills:
                    continue
                findings.append(Finding(
                    id=f"uncovered-skill-{label}-{skill}",
                    severity=WARNING,
                    category=FindingCategory.SKILL_COVERAGE,
                    message=f"No worker has skill: {skill}",
                    details=f"Task {task.task_name or label} requires {skill} but no worker has this skill",
                    entity_type=TASKS,
                    entity_id=label,
                    field='RequiredSkills',
                    suggestion=f"Add a worker with {skill} skill or modify task requirements",
                    auto_fixable=False,
                    row_index=index,
                ))
        return findings

    def _generate_insights(self, store: EntityStore) -> List[Finding]:
        """Ratio-based observations; informational only"""
        findings = []
        worker_count = len(store.workers)

        high_priority = [c for c in store.clients
                         if (c.priority or 0) >= self.config.high_priority_level]
        if high_priority and len(high_priority) > worker_count * self.config.high_priority_worker_ratio:
            findings.append(Finding(
                id='insight-high-priority-ratio',
                severity=INFO,
                category=FindingCategory.DATA_INSIGHT,
                message='High ratio of high-priority clients',
                details=(f"{len(high_priority)} clients have priority "
                         f"{self.config.high_priority_level}+, but only {worker_count} workers available"),
                entity_type=CLIENTS,
                entity_id='analysis',
                suggestion='Consider balancing priority levels or adding more workers',
                auto_fixable=False,
            ))

        low_skill = [w for w in store.workers if len(w.skill_set) <= self.config.low_skill_count]
        if low_skill and len(low_skill) > worker_count * self.config.low_skill_worker_ratio:
            findings.append(Finding(
                id='insight-skill-diversity',
                severity=INFO,
                category=FindingCategory.DATA_INSIGHT,
                message='Low skill diversity among workers',
                details=f"{len(low_skill)} workers have limited skills (<={self.config.low_skill_count})",
                entity_type=WORKERS,
                entity_id='analysis',
                suggestion='Consider cross-training workers to increase skill coverage',
                auto_fixable=False,
            ))

        return findings


def summarize_findings(findings: List[Finding], validated_at: Optional[datetime] = None) -> Dict:
    """
    Counts by severity plus the run timestamp (used by the export contract).

    validated_at is the time the findings were produced; None means no
    validation has run, and last_validated stays None.
    """
    counts = {severity: 0 for severity in SEVERITIES}
    fixable = 0
    for finding in findings:
        counts[finding.severity] = counts.get(finding.severity, 0) + 1
        if finding.auto_fixable:
            fixable += 1
    return {
        'total': len(findings),
        'errors': counts[ERROR],
        'warnings': counts[WARNING],
        'infos': counts[INFO],
        'auto_fixable': fixable,
        'last_validated': validated_at.isoformat() if validated_at else None,
    }


# Tool wrapper function

def validate_data(store: EntityStore, config: Optional[ValidationConfig] = None) -> Dict:
    """Tool wrapper: Validate the entity store and summarize the findings."""
    validator = DataValidator(config)
    validated_at = datetime.now(timezone.utc)
    findings = validator.validate(store)
    return {
        'valid': not any(f.severity == ERROR for f in findings),
        'findings': findings,
        'summary': summarize_findings(findings, validated_at),
    }
