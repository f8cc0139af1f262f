"""
Allocation Studio - Entity Store and Data Contracts

Normalized in-memory representation of the three record collections
(clients, workers, tasks) plus the derived structures the rest of the
package produces:

1. Client / Worker / Task - immutable records with canonical field names
2. EntityStore - snapshot of all three collections (replaced, never mutated)
3. Finding - single validation result with severity and auto-fix eligibility
4. AllocationResult - per-worker outcome of a simulation pass

Raw values are kept exactly as ingested so that validation can report bad
data; typed accessors parse defensively and never raise.
"""

import json
import math
import re
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

Phase = Union[int, str]

CLIENTS = 'clients'
WORKERS = 'workers'
TASKS = 'tasks'
ENTITY_TYPES = (CLIENTS, WORKERS, TASKS)

# Finding severities
ERROR = 'error'
WARNING = 'warning'
INFO = 'info'
SEVERITIES = (ERROR, WARNING, INFO)

# Stress labels
STRESS_LOW = 'low'
STRESS_MEDIUM = 'medium'
STRESS_HIGH = 'high'

_RANGE_TOKEN = re.compile(r'^(\d+)\s*-\s*(\d+)$')


# ---- Parsing helpers ------------------------------------------------------

def parse_int(value: Any) -> Optional[int]:
    """Parse an integer the lenient way spreadsheets need ("3", 3.0, " 4 ")."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def split_list(value: Any) -> Tuple[str, ...]:
    """Split a comma-joined string (or list) into stripped, non-empty items."""
    if value is None:
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [str(v).strip() for v in value]
    else:
        text = str(value).strip()
        if text.startswith('[') and text.endswith(']'):
            text = text[1:-1]
        items = [part.strip().strip('"\'') for part in text.split(',')]
    return tuple(item for item in items if item)


def parse_skills(value: Any) -> Tuple[str, ...]:
    """Lower-cased, de-duplicated capability tags in their original order."""
    seen = []
    for skill in split_list(value):
        tag = skill.lower()
        if tag not in seen:
            seen.append(tag)
    return tuple(seen)


def parse_phases(value: Any) -> Tuple[Phase, ...]:
    """
    Parse phase identifiers from a list, "1,2,3", "[1,2]" or "1-3" form.

    Numeric phases become ints so that worker slots and task preferences
    compare equal regardless of how they were typed in the source sheet.
    """
    phases: List[Phase] = []
    tokens: Iterable[Any]
    if isinstance(value, (list, tuple, set, frozenset)):
        tokens = value
    else:
        tokens = split_list(value)

    for token in tokens:
        if isinstance(token, bool):
            continue
        if isinstance(token, int):
            candidates: List[Phase] = [token]
        else:
            text = str(token).strip()
            match = _RANGE_TOKEN.match(text)
            if match:
                start, end = int(match.group(1)), int(match.group(2))
                if start > end:
                    start, end = end, start
                candidates = list(range(start, end + 1))
            elif text.isdigit():
                candidates = [int(text)]
            elif text:
                candidates = [text]
            else:
                candidates = []
        for phase in candidates:
            if phase not in phases:
                phases.append(phase)
    return tuple(phases)


def _join(values: Iterable[Any]) -> str:
    return ','.join(str(v) for v in values)


# ---- Records ---------------------------------------------------------------

class _Record:
    """Shared accessors for the three record types."""

    ENTITY_TYPE: ClassVar[str] = ''
    ID_FIELD: ClassVar[str] = ''
    FIELDS: ClassVar[Dict[str, str]] = {}
    LIST_FIELDS: ClassVar[FrozenSet[str]] = frozenset()

    @property
    def record_id(self) -> str:
        return getattr(self, self.FIELDS[self.ID_FIELD])

    def get(self, field_name: str) -> Any:
        """Value of a canonical field (e.g. 'PriorityLevel')."""
        return getattr(self, self.FIELDS[field_name])

    def with_field(self, field_name: str, value: Any):
        """Return a copy with one canonical field replaced."""
        return replace(self, **{self.FIELDS[field_name]: value})

    def to_record(self) -> Dict[str, Any]:
        """Exchange shape: canonical keys, list fields comma-joined."""
        record = {}
        for canonical, attr in self.FIELDS.items():
            value = getattr(self, attr)
            if canonical in self.LIST_FIELDS:
                value = _join(value)
            record[canonical] = value
        return record


@dataclass(frozen=True)
class Client(_Record):
    """A requester of tasks, ranked by PriorityLevel (1-5)."""
    client_id: str
    client_name: str = ''
    priority_level: Any = None
    requested_task_ids: Tuple[str, ...] = ()
    group_tag: Optional[str] = None
    attributes_json: Any = None

    ENTITY_TYPE: ClassVar[str] = CLIENTS
    ID_FIELD: ClassVar[str] = 'ClientID'
    FIELDS: ClassVar[Dict[str, str]] = {
        'ClientID': 'client_id',
        'ClientName': 'client_name',
        'PriorityLevel': 'priority_level',
        'RequestedTaskIDs': 'requested_task_ids',
        'GroupTag': 'group_tag',
        'AttributesJSON': 'attributes_json',
    }
    LIST_FIELDS: ClassVar[FrozenSet[str]] = frozenset({'RequestedTaskIDs'})

    @property
    def priority(self) -> Optional[int]:
        return parse_int(self.priority_level)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Client':
        return cls(
            client_id=_text(record.get('ClientID')),
            client_name=_text(record.get('ClientName')),
            priority_level=record.get('PriorityLevel'),
            requested_task_ids=split_list(record.get('RequestedTaskIDs')),
            group_tag=record.get('GroupTag'),
            attributes_json=record.get('AttributesJSON'),
        )


@dataclass(frozen=True)
class Worker(_Record):
    """A resource with skills, available phases and a per-phase load cap."""
    worker_id: str
    worker_name: str = ''
    skills: Tuple[str, ...] = ()
    available_slots: Tuple[Phase, ...] = ()
    max_load_per_phase: Any = None
    worker_group: Optional[str] = None
    qualification_level: Any = None
    attributes_json: Any = None

    ENTITY_TYPE: ClassVar[str] = WORKERS
    ID_FIELD: ClassVar[str] = 'WorkerID'
    FIELDS: ClassVar[Dict[str, str]] = {
        'WorkerID': 'worker_id',
        'WorkerName': 'worker_name',
        'Skills': 'skills',
        'AvailableSlots': 'available_slots',
        'MaxLoadPerPhase': 'max_load_per_phase',
        'WorkerGroup': 'worker_group',
        'QualificationLevel': 'qualification_level',
        'AttributesJSON': 'attributes_json',
    }
    LIST_FIELDS: ClassVar[FrozenSet[str]] = frozenset({'Skills', 'AvailableSlots'})

    @property
    def skill_set(self) -> FrozenSet[str]:
        return frozenset(s.lower() for s in self.skills)

    @property
    def max_load(self) -> Optional[int]:
        return parse_int(self.max_load_per_phase)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Worker':
        return cls(
            worker_id=_text(record.get('WorkerID')),
            worker_name=_text(record.get('WorkerName')),
            skills=parse_skills(record.get('Skills')),
            available_slots=parse_phases(record.get('AvailableSlots')),
            max_load_per_phase=record.get('MaxLoadPerPhase'),
            worker_group=record.get('WorkerGroup'),
            qualification_level=record.get('QualificationLevel'),
            attributes_json=record.get('AttributesJSON'),
        )


@dataclass(frozen=True)
class Task(_Record):
    """A unit of work requiring a set of skills for a number of phases."""
    task_id: str
    task_name: str = ''
    required_skills: Tuple[str, ...] = ()
    duration: Any = None
    preferred_phases: Tuple[Phase, ...] = ()
    category: Optional[str] = None
    max_concurrent: Any = None
    attributes_json: Any = None

    ENTITY_TYPE: ClassVar[str] = TASKS
    ID_FIELD: ClassVar[str] = 'TaskID'
    FIELDS: ClassVar[Dict[str, str]] = {
        'TaskID': 'task_id',
        'TaskName': 'task_name',
        'RequiredSkills': 'required_skills',
        'Duration': 'duration',
        'PreferredPhases': 'preferred_phases',
        'Category': 'category',
        'MaxConcurrent': 'max_concurrent',
        'AttributesJSON': 'attributes_json',
    }
    LIST_FIELDS: ClassVar[FrozenSet[str]] = frozenset({'RequiredSkills', 'PreferredPhases'})

    @property
    def skill_set(self) -> FrozenSet[str]:
        return frozenset(s.lower() for s in self.required_skills)

    @property
    def duration_value(self) -> Optional[int]:
        return parse_int(self.duration)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Task':
        return cls(
            task_id=_text(record.get('TaskID')),
            task_name=_text(record.get('TaskName')),
            required_skills=parse_skills(record.get('RequiredSkills')),
            duration=record.get('Duration'),
            preferred_phases=parse_phases(record.get('PreferredPhases')),
            category=record.get('Category'),
            max_concurrent=parse_int(record.get('MaxConcurrent')),
            attributes_json=record.get('AttributesJSON'),
        )


def _text(value: Any) -> str:
    return '' if value is None else str(value).strip()


RECORD_TYPES = {CLIENTS: Client, WORKERS: Worker, TASKS: Task}


# ---- Entity Store ----------------------------------------------------------

@dataclass(frozen=True)
class EntityStore:
    """
    Immutable snapshot of the three collections.

    Every edit returns a new store; previous snapshots stay valid, so a
    validation pass is always computed against a stable view. The column
    sets record which canonical fields the source sheet actually had
    (judged on its first row, the way spreadsheet headers work).
    """
    clients: Tuple[Client, ...] = ()
    workers: Tuple[Worker, ...] = ()
    tasks: Tuple[Task, ...] = ()
    client_columns: FrozenSet[str] = frozenset(Client.FIELDS)
    worker_columns: FrozenSet[str] = frozenset(Worker.FIELDS)
    task_columns: FrozenSet[str] = frozenset(Task.FIELDS)

    @classmethod
    def from_records(cls, clients: Optional[List[Dict]] = None,
                     workers: Optional[List[Dict]] = None,
                     tasks: Optional[List[Dict]] = None) -> 'EntityStore':
        """Build a store from canonical-name dictionaries (the ingestion contract)."""
        clients = clients or []
        workers = workers or []
        tasks = tasks or []
        return cls(
            clients=tuple(Client.from_record(r) for r in clients),
            workers=tuple(Worker.from_record(r) for r in workers),
            tasks=tuple(Task.from_record(r) for r in tasks),
            client_columns=_columns(clients, Client),
            worker_columns=_columns(workers, Worker),
            task_columns=_columns(tasks, Task),
        )

    def records(self, entity_type: str) -> Tuple[Any, ...]:
        return getattr(self, _check_type(entity_type))

    def columns(self, entity_type: str) -> FrozenSet[str]:
        return getattr(self, f"{_check_type(entity_type)[:-1]}_columns")

    def with_records(self, entity_type: str, records: Iterable[Any]) -> 'EntityStore':
        return replace(self, **{_check_type(entity_type): tuple(records)})

    def replace_record(self, entity_type: str, index: int, record: Any) -> 'EntityStore':
        items = list(self.records(entity_type))
        items[index] = record
        return self.with_records(entity_type, items)

    def task_ids(self) -> FrozenSet[str]:
        return frozenset(t.task_id for t in self.tasks if t.task_id)

    def task_index(self) -> Dict[str, Task]:
        """First task per TaskID."""
        index: Dict[str, Task] = {}
        for task in self.tasks:
            if task.task_id and task.task_id not in index:
                index[task.task_id] = task
        return index

    def counts(self) -> Dict[str, int]:
        return {name: len(self.records(name)) for name in ENTITY_TYPES}

    def to_records(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: [r.to_record() for r in self.records(name)] for name in ENTITY_TYPES}


def _check_type(entity_type: str) -> str:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type: {entity_type!r}. Choose from {ENTITY_TYPES}")
    return entity_type


def _columns(records: List[Dict], record_type) -> FrozenSet[str]:
    if not records:
        return frozenset(record_type.FIELDS)
    return frozenset(records[0].keys())


# ---- Findings ----------------------------------------------------------------

# Error taxonomy per finding category
STRUCTURAL = 'structural'
INTEGRITY = 'integrity'
RANGE = 'range'
FORMAT = 'format'
ADVISORY = 'advisory'


class FindingCategory:
    MISSING_COLUMN = 'Missing Required Column'
    DUPLICATE_ID = 'Duplicate ID'
    OUT_OF_RANGE = 'Out-of-range Value'
    BROKEN_JSON = 'Broken JSON'
    UNKNOWN_REFERENCE = 'Unknown Reference'
    SKILL_COVERAGE = 'Skill Coverage'
    DATA_INSIGHT = 'Data Insight'


ERROR_CLASSES = {
    FindingCategory.MISSING_COLUMN: STRUCTURAL,
    FindingCategory.DUPLICATE_ID: INTEGRITY,
    FindingCategory.UNKNOWN_REFERENCE: INTEGRITY,
    FindingCategory.OUT_OF_RANGE: RANGE,
    FindingCategory.BROKEN_JSON: FORMAT,
    FindingCategory.SKILL_COVERAGE: ADVISORY,
    FindingCategory.DATA_INSIGHT: ADVISORY,
}


@dataclass(frozen=True)
class Finding:
    """Single validation result. Derived data: recomputed, never edited."""
    id: str
    severity: str
    category: str
    message: str
    details: str
    entity_type: str
    entity_id: str
    field: Optional[str] = None
    suggestion: Optional[str] = None
    auto_fixable: bool = False
    row_index: Optional[int] = None

    @property
    def key(self) -> Tuple[str, str, Optional[str]]:
        return (self.category, self.entity_id, self.field)

    @property
    def error_class(self) -> str:
        return ERROR_CLASSES.get(self.category, ADVISORY)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'severity': self.severity,
            'category': self.category,
            'message': self.message,
            'details': self.details,
            'entityType': self.entity_type,
            'entityId': self.entity_id,
            'autoFixable': self.auto_fixable,
        }
        if self.field is not None:
            data['field'] = self.field
        if self.suggestion is not None:
            data['suggestion'] = self.suggestion
        return data


# ---- Allocation results ----------------------------------------------------

@dataclass(frozen=True)
class AllocationResult:
    """Per-worker outcome of a simulation pass."""
    worker_id: str
    worker_name: str
    assigned_tasks: Tuple[str, ...] = ()
    workload: int = 0
    efficiency: float = 0.0
    stress: str = STRESS_LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            'workerId': self.worker_id,
            'workerName': self.worker_name,
            'assignedTasks': list(self.assigned_tasks),
            'workload': self.workload,
            'efficiency': self.efficiency,
            'stress': self.stress,
        }


def is_valid_json(value: Any) -> bool:
    """True when an AttributesJSON value is empty, already parsed, or parses."""
    if value is None or isinstance(value, (dict, list)):
        return True
    text = str(value).strip()
    if not text:
        return True
    try:
        json.loads(text)
    except ValueError:
        return False
    return True
