"""
Allocation Optimizer - objective-driven adjustment of a baseline simulation

An illustrative heuristic, not a solver. The baseline is a rule-free
simulation with default weights; each objective keyword found in the
request (case-insensitive) transforms that baseline:

- cost      -> workloads shrink to 80% (min 1 while any work), efficiency +10%
- fair      -> every workload set to the rounded mean, efficiency recomputed
- priority  -> +15% efficiency for workers serving high-priority clients

Improvements are reported from the measured difference between the two
result sets, never asserted.
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import OptimizerConfig, SimulationConfig, default_config
from .models import STRESS_HIGH, AllocationResult, EntityStore
from .simulator import AllocationSimulator, classify_stress, efficiency_percent, worker_capacity

OBJECTIVES = ('cost', 'fair', 'priority')


@dataclass(frozen=True)
class OptimizationResult:
    objective: str
    before: Tuple[AllocationResult, ...]
    after: Tuple[AllocationResult, ...]
    improvements: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'objective': self.objective,
            'before': [r.to_dict() for r in self.before],
            'after': [r.to_dict() for r in self.after],
            'improvements': list(self.improvements),
            'metrics': {
                'before': comparison_metrics(self.before),
                'after': comparison_metrics(self.after),
            },
        }


def comparison_metrics(results: Sequence[AllocationResult]) -> Dict[str, float]:
    """Average efficiency and workload, high-stress count and workload variance"""
    if not results:
        return {'average_efficiency': 0.0, 'average_workload': 0.0,
                'high_stress_count': 0, 'workload_variance': 0.0}
    count = len(results)
    workloads = [r.workload for r in results]
    mean = sum(workloads) / count
    return {
        'average_efficiency': round(sum(r.efficiency for r in results) / count, 2),
        'average_workload': round(mean, 2),
        'high_stress_count': sum(1 for r in results if r.stress == STRESS_HIGH),
        'workload_variance': round(sum((w - mean) ** 2 for w in workloads) / count, 4),
    }


def matched_objectives(objective: str) -> List[str]:
    text = (objective or '').lower()
    return [name for name in OBJECTIVES if name in text]


class AllocationOptimizer:
    """Applies objective transformations to a baseline simulation"""

    def __init__(self, config: Optional[OptimizerConfig] = None,
                 simulation_config: Optional[SimulationConfig] = None):
        defaults = default_config()
        self.config = config or defaults.optimizer
        self.simulation_config = simulation_config or defaults.simulation
        self.simulator = AllocationSimulator(self.simulation_config)

    def optimize(self, store: EntityStore, objective: str) -> OptimizationResult:
        before = self.simulator.simulate(store)
        after = list(before)

        for name in matched_objectives(objective):
            if name == 'cost':
                after = self._reduce_cost(after)
            elif name == 'fair':
                after = self._balance(after, store)
            elif name == 'priority':
                after = self._boost_priority(after, store)

        after = self._restress(after, store)
        return OptimizationResult(
            objective=objective,
            before=tuple(before),
            after=tuple(after),
            improvements=tuple(self._describe(before, after, objective)),
        )

    def _reduce_cost(self, results: List[AllocationResult]) -> List[AllocationResult]:
        adjusted = []
        for result in results:
            workload = result.workload
            if workload > 0:
                workload = max(1, math.floor(workload * self.config.cost_workload_factor))
            adjusted.append(replace(
                result,
                assigned_tasks=result.assigned_tasks[:workload],
                workload=workload,
                efficiency=round(min(100.0, result.efficiency * self.config.cost_efficiency_boost), 2),
            ))
        return adjusted

    def _balance(self, results: List[AllocationResult], store: EntityStore) -> List[AllocationResult]:
        """Rounded mean workload for everyone; task lists are trimmed, never padded"""
        if not results:
            return results
        mean = sum(r.workload for r in results) / len(results)
        target = math.floor(mean + 0.5)
        capacities = self._capacities(store)

        adjusted = []
        for result in results:
            capacity = capacities.get(result.worker_id, 0)
            adjusted.append(replace(
                result,
                assigned_tasks=result.assigned_tasks[:target],
                workload=target,
                efficiency=efficiency_percent(target, capacity),
            ))
        return adjusted

    def _boost_priority(self, results: List[AllocationResult], store: EntityStore) -> List[AllocationResult]:
        urgent = set()
        for client in store.clients:
            if (client.priority or 0) >= self.config.high_priority_level:
                urgent.update(client.requested_task_ids)

        adjusted = []
        for result in results:
            if urgent.intersection(result.assigned_tasks):
                result = replace(result, efficiency=round(
                    min(100.0, result.efficiency * self.config.priority_efficiency_boost), 2))
            adjusted.append(result)
        return adjusted

    def _restress(self, results: List[AllocationResult], store: EntityStore) -> List[AllocationResult]:
        capacities = self._capacities(store)
        return [replace(r, stress=classify_stress(r.workload, capacities.get(r.worker_id, 0),
                                                  self.simulation_config))
                for r in results]

    def _capacities(self, store: EntityStore) -> Dict[str, int]:
        capacities: Dict[str, int] = {}
        for worker in store.workers:
            capacities.setdefault(worker.worker_id, worker_capacity(worker, self.simulation_config))
        return capacities

    @staticmethod
    def _describe(before: Sequence[AllocationResult], after: Sequence[AllocationResult],
                  objective: str) -> List[str]:
        old, new = comparison_metrics(before), comparison_metrics(after)
        lines = []

        stress_delta = old['high_stress_count'] - new['high_stress_count']
        if stress_delta > 0:
            lines.append(f"Reduced high-stress workers by {stress_delta} "
                         f"({old['high_stress_count']} -> {new['high_stress_count']})")
        elif stress_delta < 0:
            lines.append(f"High-stress workers increased by {-stress_delta}")

        efficiency_delta = round(new['average_efficiency'] - old['average_efficiency'], 2)
        if efficiency_delta:
            direction = 'Improved' if efficiency_delta > 0 else 'Lowered'
            lines.append(f"{direction} average efficiency by {abs(efficiency_delta):.2f} points "
                         f"({old['average_efficiency']:.2f}% -> {new['average_efficiency']:.2f}%)")

        variance_delta = round(old['workload_variance'] - new['workload_variance'], 4)
        if variance_delta > 0:
            lines.append(f"Reduced workload variance from {old['workload_variance']} "
                         f"to {new['workload_variance']}")
        elif variance_delta < 0:
            lines.append(f"Workload variance increased from {old['workload_variance']} "
                         f"to {new['workload_variance']}")

        workload_delta = round(new['average_workload'] - old['average_workload'], 2)
        if workload_delta:
            direction = 'Reduced' if workload_delta < 0 else 'Increased'
            lines.append(f"{direction} average workload by {abs(workload_delta):.2f} tasks")

        if not lines:
            lines.append(f"No measurable change for objective '{objective}'")
        return lines


# Tool wrapper function

def optimize_allocation(store: EntityStore, objective: str,
                        config: Optional[OptimizerConfig] = None) -> OptimizationResult:
    """Tool wrapper: Optimize the baseline allocation for an objective."""
    return AllocationOptimizer(config).optimize(store, objective)
