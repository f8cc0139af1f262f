"""
Allocation Simulator - deterministic rule-aware task assignment

For every worker, in store order:

1. Capacity from MaxLoadPerPhase (unparsable -> configured default, floor 0)
2. Candidate tasks: RequiredSkills must be a subset of the worker's skills
3. Rules applied by ascending priority (loadLimit caps capacity; phaseWindow,
   slotRestriction, patternMatch and coRun filter candidates)
4. Candidates ranked by a weighted score built from PriorityWeights, then
   selected greedily up to capacity (co-run groups all-or-nothing)
5. Workload, efficiency and stress derived from the selection

Workers are simulated independently; one task may be proposed to several
workers. Invalid rules never abort a run: they are skipped and reported.
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import SimulationConfig, default_config
from .models import (
    STRESS_HIGH, STRESS_LOW, STRESS_MEDIUM, AllocationResult, EntityStore, Task, Worker,
    parse_int, parse_phases, split_list,
)
from .priorities import PriorityWeights
from .rules import Rule, RuleKind, order_rules

ALL_GROUPS = 'all'
PATTERN_ACTIONS = ('include', 'exclude')


@dataclass(frozen=True)
class SkippedRule:
    """A rule the simulator ignored, with the reason"""
    rule_id: str
    kind: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {'ruleId': self.rule_id, 'kind': self.kind, 'reason': self.reason}


@dataclass(frozen=True)
class SimulationReport:
    results: Tuple[AllocationResult, ...] = ()
    skipped_rules: Tuple[SkippedRule, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'results': [r.to_dict() for r in self.results],
            'skippedRules': [s.to_dict() for s in self.skipped_rules],
        }


def classify_stress(workload: int, capacity: int,
                    config: Optional[SimulationConfig] = None) -> str:
    """high above 80% of capacity, medium above 60%, otherwise low"""
    config = config or SimulationConfig()
    if capacity <= 0:
        return STRESS_LOW
    if workload > config.stress_high_threshold * capacity:
        return STRESS_HIGH
    if workload > config.stress_medium_threshold * capacity:
        return STRESS_MEDIUM
    return STRESS_LOW


def efficiency_percent(workload: int, capacity: int) -> float:
    if capacity <= 0:
        return 0.0
    return round(min(100.0, max(0.0, workload / capacity * 100)), 2)


def worker_capacity(worker: Worker, config: Optional[SimulationConfig] = None) -> int:
    config = config or SimulationConfig()
    max_load = worker.max_load
    if max_load is None:
        return config.default_max_load
    return max(0, max_load)


def _in_group(worker: Worker, group: Optional[str]) -> bool:
    if group is None or str(group).lower() == ALL_GROUPS:
        return True
    return str(worker.worker_group or '') == str(group)


class AllocationSimulator:
    """
    Rule-aware, weight-ranked allocation preview.

    Scoring for a candidate task (each term multiplied by the criterion's
    normalized weight and its rank factor):

    - priority_level: highest PriorityLevel among requesting clients / 5
    - task_fulfillment: 1 if any client requests the task
    - skill_matching: share of the worker's skills the task uses
    - phase_efficiency: share of preferred phases the worker has
    - deadline_compliance: available phases / Duration, capped at 1
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or default_config().simulation

    def simulate(self, store: EntityStore, rules: Iterable[Rule] = (),
                 weights: Optional[PriorityWeights] = None) -> List[AllocationResult]:
        return list(self.simulate_report(store, rules, weights).results)

    def simulate_report(self, store: EntityStore, rules: Iterable[Rule] = (),
                        weights: Optional[PriorityWeights] = None) -> SimulationReport:
        weights = weights or PriorityWeights.defaults()
        active, skipped = self._prepare_rules(store, rules)
        requests = self._request_index(store)
        tasks = list(store.task_index().values())

        results = [self._simulate_worker(worker, tasks, active, requests, weights)
                   for worker in store.workers]
        return SimulationReport(results=tuple(results), skipped_rules=tuple(skipped))

    # ---- Rule preparation --------------------------------------------------

    def _prepare_rules(self, store: EntityStore,
                       rules: Iterable[Rule]) -> Tuple[List[Tuple[Rule, Dict[str, Any]]], List[SkippedRule]]:
        """Validate rule parameters once per run; invalid rules are reported, not applied."""
        task_ids = store.task_ids()
        groups = {str(w.worker_group) for w in store.workers if w.worker_group not in (None, '')}
        active, skipped = [], []

        for rule in order_rules(rules):
            try:
                params = self._parse_rule(rule, task_ids, groups)
            except (ValueError, TypeError) as e:
                skipped.append(SkippedRule(rule_id=rule.id, kind=rule.kind, reason=str(e)))
                continue
            active.append((rule, params))
        return active, skipped

    def _parse_rule(self, rule: Rule, task_ids: Set[str], groups: Set[str]) -> Dict[str, Any]:
        kind = rule.kind

        if kind == RuleKind.LOAD_LIMIT:
            group = rule.param('workerGroup', 'group')
            limit = parse_int(rule.param('maxSlotsPerPhase', 'maxLoad'))
            if group is None:
                raise ValueError("loadLimit needs a workerGroup")
            if limit is None or limit < 0:
                raise ValueError("loadLimit needs a non-negative maxSlotsPerPhase")
            self._check_group(group, groups)
            return {'group': group, 'limit': limit}

        if kind == RuleKind.PHASE_WINDOW:
            task_id = rule.param('taskId', 'task')
            allowed = parse_phases(rule.param('allowedPhases', 'phases', default=()))
            if not task_id:
                raise ValueError("phaseWindow needs a taskId")
            if str(task_id) not in task_ids:
                raise ValueError(f"phaseWindow references unknown task {task_id}")
            if not allowed:
                raise ValueError("phaseWindow needs allowedPhases")
            return {'task_id': str(task_id), 'allowed': set(allowed)}

        if kind == RuleKind.SLOT_RESTRICTION:
            minimum = parse_int(rule.param('minCommonSlots'))
            group = rule.param('workerGroup', 'group')
            if minimum is None or minimum < 0:
                raise ValueError("slotRestriction needs a non-negative minCommonSlots")
            if group is not None:
                self._check_group(group, groups)
            return {'group': group, 'minimum': minimum}

        if kind == RuleKind.PATTERN_MATCH:
            field_name = rule.param('field', default='TaskName')
            pattern = rule.param('pattern', 'regex')
            action = str(rule.param('action', default='exclude')).lower()
            if not isinstance(field_name, str) or field_name not in Task.FIELDS:
                raise ValueError(f"patternMatch field {field_name!r} is not a task field")
            if pattern is None:
                raise ValueError("patternMatch needs a pattern")
            if action not in PATTERN_ACTIONS:
                raise ValueError(f"patternMatch action must be one of {PATTERN_ACTIONS}")
            try:
                regex = re.compile(str(pattern))
            except re.error as e:
                raise ValueError(f"Invalid pattern {pattern!r}: {e}") from e
            return {'field': field_name, 'regex': regex, 'action': action}

        if kind == RuleKind.CO_RUN:
            members = split_list(rule.param('tasks', 'taskIds', default=()))
            if not members:
                raise ValueError("coRun needs a list of tasks")
            unknown = [t for t in members if t not in task_ids]
            if unknown:
                raise ValueError(f"coRun references unknown tasks {unknown}")
            return {'tasks': tuple(dict.fromkeys(members))}

        if kind in (RuleKind.PRECEDENCE_OVERRIDE, RuleKind.CUSTOM):
            return {}

        raise ValueError(f"Unknown rule kind {kind!r}")

    @staticmethod
    def _check_group(group: Any, groups: Set[str]):
        if str(group).lower() != ALL_GROUPS and str(group) not in groups:
            raise ValueError(f"Unknown worker group {group!r}")

    # ---- Per-worker simulation ---------------------------------------------

    def _simulate_worker(self, worker: Worker, tasks: Sequence[Task],
                         active: List[Tuple[Rule, Dict[str, Any]]],
                         requests: Dict[str, int], weights: PriorityWeights) -> AllocationResult:
        capacity = worker_capacity(worker, self.config)
        slots = set(worker.available_slots)
        skills = worker.skill_set
        candidates = {t.task_id: t for t in tasks if t.skill_set <= skills}

        co_run_groups = []
        for rule, params in active:
            kind = rule.kind
            if kind == RuleKind.LOAD_LIMIT:
                if _in_group(worker, params['group']):
                    capacity = min(capacity, params['limit'])
            elif kind == RuleKind.PHASE_WINDOW:
                task = candidates.get(params['task_id'])
                if task is not None and not params['allowed'] & slots:
                    del candidates[task.task_id]
            elif kind == RuleKind.SLOT_RESTRICTION:
                if _in_group(worker, params['group']):
                    for task_id, task in list(candidates.items()):
                        preferred = set(task.preferred_phases)
                        if preferred and len(preferred & slots) < params['minimum']:
                            del candidates[task_id]
            elif kind == RuleKind.PATTERN_MATCH:
                self._apply_pattern(candidates, params)
            elif kind == RuleKind.CO_RUN:
                co_run_groups.append(params['tasks'])
                self._apply_co_run(candidates, params['tasks'])

        # A later filter may have removed a member of an earlier co-run group
        changed = True
        while changed:
            changed = False
            for members in co_run_groups:
                changed = self._apply_co_run(candidates, members) or changed

        if capacity <= 0 or not candidates:
            return AllocationResult(worker_id=worker.worker_id, worker_name=worker.worker_name,
                                    assigned_tasks=(), workload=0, efficiency=0.0, stress=STRESS_LOW)

        scores = {task_id: self.score_task(task, worker, requests, weights)
                  for task_id, task in candidates.items()}
        assigned = self._select(scores, self._merge_groups(co_run_groups, candidates), capacity)

        workload = len(assigned)
        return AllocationResult(
            worker_id=worker.worker_id,
            worker_name=worker.worker_name,
            assigned_tasks=tuple(assigned),
            workload=workload,
            efficiency=efficiency_percent(workload, capacity),
            stress=classify_stress(workload, capacity, self.config),
        )

    @staticmethod
    def _apply_pattern(candidates: Dict[str, Task], params: Dict[str, Any]):
        for task_id, task in list(candidates.items()):
            value = task.get(params['field'])
            if isinstance(value, tuple):
                value = ','.join(str(v) for v in value)
            matched = params['regex'].search('' if value is None else str(value)) is not None
            if matched != (params['action'] == 'include'):
                del candidates[task_id]

    @staticmethod
    def _apply_co_run(candidates: Dict[str, Task], members: Sequence[str]) -> bool:
        """Drop every member unless all are still candidates. True if anything was dropped."""
        present = [t for t in members if t in candidates]
        if not present or len(present) == len(members):
            return False
        for task_id in present:
            del candidates[task_id]
        return True

    @staticmethod
    def _merge_groups(groups: List[Tuple[str, ...]], candidates: Dict[str, Task]) -> List[Set[str]]:
        """Overlapping co-run groups must be selected together, so union them."""
        merged: List[Set[str]] = []
        for members in groups:
            group = {t for t in members if t in candidates}
            if not group:
                continue
            overlapping = [g for g in merged if g & group]
            for g in overlapping:
                group |= g
                merged.remove(g)
            merged.append(group)
        return merged

    @staticmethod
    def _select(scores: Dict[str, float], groups: List[Set[str]], capacity: int) -> List[str]:
        """Greedy fill by score; a unit that doesn't fit is passed over whole."""
        def rank(task_id):
            return (-scores[task_id], task_id)

        grouped = {task_id for group in groups for task_id in group}
        units = [sorted(group, key=rank) for group in groups]
        units.extend([task_id] for task_id in scores if task_id not in grouped)
        units.sort(key=lambda unit: rank(unit[0]))

        assigned: List[str] = []
        for unit in units:
            if len(assigned) + len(unit) <= capacity:
                assigned.extend(unit)
            if len(assigned) >= capacity:
                break
        return assigned

    def score_task(self, task: Task, worker: Worker, requests: Dict[str, int],
                   weights: PriorityWeights) -> float:
        neutral = self.config.neutral_fit_score
        slots = set(worker.available_slots)

        priority = min(max(requests.get(task.task_id, 0), 0), 5) / 5.0
        fulfillment = 1.0 if task.task_id in requests else 0.0

        if task.skill_set and worker.skill_set:
            skill_fit = len(task.skill_set & worker.skill_set) / len(worker.skill_set)
        else:
            skill_fit = neutral

        preferred = set(task.preferred_phases)
        phase_fit = len(preferred & slots) / len(preferred) if preferred else neutral

        duration = task.duration_value
        duration_fit = min(1.0, len(slots) / duration) if duration and duration > 0 else neutral

        return round(
            weights.effective('priority_level') * priority
            + weights.effective('task_fulfillment') * fulfillment
            + weights.effective('skill_matching') * skill_fit
            + weights.effective('phase_efficiency') * phase_fit
            + weights.effective('deadline_compliance') * duration_fit,
            6,
        )

    @staticmethod
    def _request_index(store: EntityStore) -> Dict[str, int]:
        """TaskID -> highest PriorityLevel among the clients requesting it"""
        requests: Dict[str, int] = defaultdict(int)
        for client in store.clients:
            level = client.priority or 0
            for task_id in client.requested_task_ids:
                requests[task_id] = max(requests[task_id], level)
        return dict(requests)


# Tool wrapper function

def simulate_allocation(store: EntityStore, rules: Iterable[Rule] = (),
                        weights: Optional[PriorityWeights] = None,
                        config: Optional[SimulationConfig] = None) -> SimulationReport:
    """Tool wrapper: Simulate allocation and report skipped rules."""
    return AllocationSimulator(config).simulate_report(store, rules, weights)
