"""
Allocation Studio - Priority Model

Eight fixed allocation criteria, each weighted 0-100, plus the user's
ranking of those criteria and the name of the preset they started from.
A malformed weight vector or ordering is a caller programming error and
raises PriorityConfigError; it is never reported as a data Finding.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

CRITERIA = (
    'priority_level',
    'task_fulfillment',
    'worker_fairness',
    'skill_matching',
    'phase_efficiency',
    'resource_utilization',
    'deadline_compliance',
    'cost_optimization',
)

CRITERIA_DESCRIPTIONS = {
    'priority_level': 'Weight given to client priority ratings (1-5)',
    'task_fulfillment': 'Importance of completing requested tasks',
    'worker_fairness': 'Ensuring even distribution of work',
    'skill_matching': 'Quality of worker-task skill alignment',
    'phase_efficiency': 'Optimal use of available time phases',
    'resource_utilization': 'Maximum use of available worker capacity',
    'deadline_compliance': 'Meeting task completion deadlines',
    'cost_optimization': 'Minimizing operational costs',
}

DEFAULT_WEIGHT = 50
CUSTOM_PRESET = 'custom'

PRESETS = {
    'maximize_fulfillment': {
        'priority_level': 95, 'task_fulfillment': 100, 'worker_fairness': 60, 'skill_matching': 80,
        'phase_efficiency': 70, 'resource_utilization': 85, 'deadline_compliance': 90, 'cost_optimization': 50,
    },
    'fair_distribution': {
        'priority_level': 70, 'task_fulfillment': 75, 'worker_fairness': 100, 'skill_matching': 85,
        'phase_efficiency': 80, 'resource_utilization': 75, 'deadline_compliance': 80, 'cost_optimization': 60,
    },
    'minimize_workload': {
        'priority_level': 80, 'task_fulfillment': 70, 'worker_fairness': 90, 'skill_matching': 75,
        'phase_efficiency': 85, 'resource_utilization': 60, 'deadline_compliance': 85, 'cost_optimization': 100,
    },
    'quality_focused': {
        'priority_level': 85, 'task_fulfillment': 80, 'worker_fairness': 70, 'skill_matching': 100,
        'phase_efficiency': 75, 'resource_utilization': 70, 'deadline_compliance': 95, 'cost_optimization': 55,
    },
}


class PriorityConfigError(ValueError):
    """Invalid weights, criteria order or preset name."""


def _default_weights() -> Mapping[str, int]:
    return MappingProxyType({key: DEFAULT_WEIGHT for key in CRITERIA})


@dataclass(frozen=True)
class PriorityWeights:
    """Weighted-criteria vector with ordering and preset name"""
    weights: Mapping[str, int] = field(default_factory=_default_weights)
    criteria_order: Tuple[str, ...] = CRITERIA
    active_preset: str = CUSTOM_PRESET

    def __post_init__(self):
        weights = dict(self.weights)
        if set(weights) != set(CRITERIA):
            missing = sorted(set(CRITERIA) - set(weights))
            unknown = sorted(set(weights) - set(CRITERIA))
            raise PriorityConfigError(f"Weights must cover exactly the 8 criteria (missing={missing}, unknown={unknown})")
        for key, value in weights.items():
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                raise PriorityConfigError(f"Weight for {key} must be an integer 0-100, got {value!r}")

        order = tuple(self.criteria_order)
        if len(order) != len(CRITERIA) or set(order) != set(CRITERIA):
            raise PriorityConfigError(f"criteria_order must be a permutation of {CRITERIA}, got {order}")

        if self.active_preset != CUSTOM_PRESET and self.active_preset not in PRESETS:
            raise PriorityConfigError(f"Unknown preset: {self.active_preset!r}")

        object.__setattr__(self, 'weights', MappingProxyType(weights))
        object.__setattr__(self, 'criteria_order', order)

    @classmethod
    def defaults(cls) -> 'PriorityWeights':
        return cls()

    @classmethod
    def from_preset(cls, name: str, criteria_order: Sequence[str] = CRITERIA) -> 'PriorityWeights':
        if name not in PRESETS:
            raise PriorityConfigError(f"Unknown preset: {name!r}. Choose from {tuple(PRESETS)}")
        return cls(weights=dict(PRESETS[name]), criteria_order=tuple(criteria_order), active_preset=name)

    def with_weight(self, key: str, value: int) -> 'PriorityWeights':
        """Manual edit: drops the preset label"""
        if key not in CRITERIA:
            raise PriorityConfigError(f"Unknown criterion: {key!r}")
        weights = dict(self.weights)
        weights[key] = value
        return PriorityWeights(weights=weights, criteria_order=self.criteria_order, active_preset=CUSTOM_PRESET)

    def with_order(self, criteria_order: Sequence[str]) -> 'PriorityWeights':
        return PriorityWeights(weights=dict(self.weights), criteria_order=tuple(criteria_order),
                               active_preset=self.active_preset)

    def normalized(self) -> Dict[str, float]:
        return {key: self.weights[key] / 100.0 for key in CRITERIA}

    def rank_factor(self, key: str) -> float:
        """1.5 for the top-ranked criterion down to 1.0 for the last."""
        rank = self.criteria_order.index(key)
        return 1.0 + (len(CRITERIA) - 1 - rank) / (2.0 * (len(CRITERIA) - 1))

    def effective(self, key: str) -> float:
        """Normalized weight scaled by the criterion's rank"""
        return self.weights[key] / 100.0 * self.rank_factor(key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weights': dict(self.weights),
            'criteriaOrder': list(self.criteria_order),
            'activePreset': self.active_preset,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PriorityWeights':
        """Accept both the nested export shape and the flat UI shape."""
        if not data:
            return cls()
        weights = data.get('weights')
        if weights is None:
            weights = {key: data[key] for key in CRITERIA if key in data}
            weights = {**{key: DEFAULT_WEIGHT for key in CRITERIA}, **weights}
        preset = data.get('activePreset') or CUSTOM_PRESET
        return cls(weights=dict(weights),
                   criteria_order=tuple(data.get('criteriaOrder') or CRITERIA),
                   active_preset=preset)
