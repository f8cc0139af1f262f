"""
Allocation Studio - Rule Model

Typed business rules consumed by the allocation simulator. Rules are plain
data: references to tasks or worker groups are not checked when a rule is
created; the simulator skips and reports rules whose references dangle.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple


class RuleKind:
    CO_RUN = 'coRun'
    SLOT_RESTRICTION = 'slotRestriction'
    LOAD_LIMIT = 'loadLimit'
    PHASE_WINDOW = 'phaseWindow'
    PATTERN_MATCH = 'patternMatch'
    PRECEDENCE_OVERRIDE = 'precedenceOverride'
    CUSTOM = 'custom'

    ALL = (CO_RUN, SLOT_RESTRICTION, LOAD_LIMIT, PHASE_WINDOW,
           PATTERN_MATCH, PRECEDENCE_OVERRIDE, CUSTOM)


RULE_DESCRIPTIONS = {
    RuleKind.CO_RUN: 'Tasks that must run together',
    RuleKind.SLOT_RESTRICTION: 'Minimum common slots for groups',
    RuleKind.LOAD_LIMIT: 'Maximum load per phase for workers',
    RuleKind.PHASE_WINDOW: 'Allowed phases for specific tasks',
    RuleKind.PATTERN_MATCH: 'Regex-based rule matching',
    RuleKind.PRECEDENCE_OVERRIDE: 'Priority ordering for rules',
    RuleKind.CUSTOM: 'Free-form rule kept for reference',
}


@dataclass(frozen=True)
class Rule:
    """A business rule. Lower priority values are applied first."""
    id: str
    kind: str
    name: str
    description: str = ''
    parameters: Dict[str, Any] = field(default_factory=dict)
    priority: int = 0

    def param(self, *names: str, default: Any = None) -> Any:
        """First parameter present among several accepted spellings."""
        for name in names:
            if name in self.parameters and self.parameters[name] not in (None, ''):
                return self.parameters[name]
        return default

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind,
            'name': self.name,
            'description': self.description,
            'parameters': dict(self.parameters),
            'priority': self.priority,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Rule':
        # Older configuration files call the discriminator "type"
        kind = data.get('kind', data.get('type', RuleKind.CUSTOM))
        return cls(
            id=str(data['id']),
            kind=kind,
            name=data.get('name') or f"{kind} rule",
            description=data.get('description', ''),
            parameters=dict(data.get('parameters') or {}),
            priority=int(data.get('priority', 0)),
        )


def order_rules(rules: Iterable[Rule]) -> List[Rule]:
    """Rules sorted by ascending priority; ties keep their given order."""
    return sorted(rules, key=lambda rule: rule.priority)


def make_rule(kind: str, parameters: Optional[Dict[str, Any]] = None,
              existing: Iterable[Rule] = (), name: Optional[str] = None,
              description: str = '', priority: Optional[int] = None) -> Rule:
    """
    Build a new rule appended after the existing ones.

    Ids are sequential (rule_1, rule_2, ...) and priority defaults to
    len(existing) + 1, so new rules apply after the ones already defined.
    """
    if kind not in RuleKind.ALL:
        raise ValueError(f"Unknown rule kind: {kind!r}. Choose from {RuleKind.ALL}")
    existing = list(existing)
    used = {rule.id for rule in existing}
    number = len(existing) + 1
    while f"rule_{number}" in used:
        number += 1
    return Rule(
        id=f"rule_{number}",
        kind=kind,
        name=name or f"{kind} Rule {len(existing) + 1}",
        description=description or RULE_DESCRIPTIONS[kind],
        parameters=dict(parameters or {}),
        priority=priority if priority is not None else len(existing) + 1,
    )


def add_rule(rules: Iterable[Rule], rule: Rule) -> Tuple[Rule, ...]:
    return tuple(rules) + (rule,)


def remove_rule(rules: Iterable[Rule], rule_id: str) -> Tuple[Rule, ...]:
    return tuple(rule for rule in rules if rule.id != rule_id)


def update_rule(rules: Iterable[Rule], rule_id: str, **updates: Any) -> Tuple[Rule, ...]:
    return tuple(replace(rule, **updates) if rule.id == rule_id else rule for rule in rules)
