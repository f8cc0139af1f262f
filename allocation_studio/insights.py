"""
Data Insights - heuristic observations and co-run rule suggestions

Complements the validation insights with session-level advice:
limited worker availability, skills nobody holds, an over-weighted client
priority distribution, and task pairs that clients keep requesting
together (candidates for coRun rules).
"""

from collections import Counter
from dataclasses import dataclass
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import ValidationConfig, default_config
from .models import EntityStore
from .rules import Rule, RuleKind, make_rule

MIN_AVERAGE_SLOTS = 3
HIGH_PRIORITY_SHARE = 0.7
MIN_PAIR_REQUESTS = 2


@dataclass(frozen=True)
class RuleSuggestion:
    kind: str
    tasks: Tuple[str, ...]
    reason: str
    confidence: float

    def to_rule(self, existing: Iterable[Rule] = ()) -> Rule:
        """Turn the suggestion into a rule appended after the existing ones."""
        return make_rule(self.kind, {'tasks': list(self.tasks)}, existing=existing,
                         description=self.reason)

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'tasks': list(self.tasks),
                'reason': self.reason, 'confidence': self.confidence}


@dataclass(frozen=True)
class DataInsights:
    insights: Tuple[str, ...] = ()
    recommendations: Tuple[Dict[str, str], ...] = ()
    optimizations: Tuple[Dict[str, str], ...] = ()
    rule_suggestions: Tuple[RuleSuggestion, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'insights': list(self.insights),
            'recommendations': [dict(r) for r in self.recommendations],
            'optimizations': [dict(o) for o in self.optimizations],
            'ruleSuggestions': [s.to_dict() for s in self.rule_suggestions],
        }


def uncovered_skills(store: EntityStore) -> List[str]:
    """Required skills no worker holds, in first-seen order"""
    available = set()
    for worker in store.workers:
        available.update(worker.skill_set)
    missing = []
    for task in store.tasks:
        for skill in task.required_skills:
            if skill not in available and skill not in missing:
                missing.append(skill)
    return missing


def suggest_co_run_rules(store: EntityStore, min_requests: int = MIN_PAIR_REQUESTS) -> List[RuleSuggestion]:
    """Task pairs requested together by at least `min_requests` clients"""
    pairs: Counter = Counter()
    for client in store.clients:
        requested = sorted(dict.fromkeys(client.requested_task_ids))
        pairs.update(combinations(requested, 2))

    suggestions = []
    for (first, second), count in sorted(pairs.items()):
        if count < min_requests:
            continue
        suggestions.append(RuleSuggestion(
            kind=RuleKind.CO_RUN,
            tasks=(first, second),
            reason=f"Tasks {first} and {second} are frequently requested together ({count} times)",
            confidence=round(min(0.95, 0.5 + count * 0.15), 2),
        ))
    return suggestions


def analyze_data_patterns(store: EntityStore, config: Optional[ValidationConfig] = None) -> DataInsights:
    config = config or default_config().validation
    insights, recommendations, optimizations = [], [], []

    if store.workers:
        average_slots = sum(len(w.available_slots) for w in store.workers) / len(store.workers)
        if average_slots < MIN_AVERAGE_SLOTS:
            insights.append("Workers have limited availability - consider flexible scheduling")
            recommendations.append({
                'type': 'workload',
                'message': 'Add more available slots for workers to increase capacity',
                'severity': 'medium',
            })

    if store.tasks and store.workers:
        missing = uncovered_skills(store)
        if missing:
            insights.append(f"{len(missing)} skills have no qualified workers")
            optimizations.append({
                'type': 'skill_training',
                'message': 'Train workers in missing skills: ' + ', '.join(missing),
                'impact': 'high',
            })

    if store.clients:
        high = sum(1 for c in store.clients if (c.priority or 0) >= config.high_priority_level)
        if high / len(store.clients) > HIGH_PRIORITY_SHARE:
            insights.append("Too many high-priority clients - consider priority rebalancing")
            recommendations.append({
                'type': 'priority',
                'message': 'Review client priorities to ensure realistic allocation',
                'severity': 'high',
            })

    return DataInsights(
        insights=tuple(insights),
        recommendations=tuple(recommendations),
        optimizations=tuple(optimizations),
        rule_suggestions=tuple(suggest_co_run_rules(store)),
    )
