"""
Allocation Studio

Validation, auto-fix and allocation-simulation core for client/worker/task
data, with a LangChain assistant agent (allocation_studio.agent).
"""

__version__ = "1.0.0"

from .models import AllocationResult, Client, EntityStore, Finding, FindingCategory, Task, Worker
from .validation import DataValidator, validate_data
from .fixes import AutoFixer, FixNotApplicableError, FixReport, apply_fix, fix_all, remove_invalid_references
from .rules import Rule, RuleKind, make_rule, order_rules
from .priorities import CRITERIA, PRESETS, PriorityConfigError, PriorityWeights
from .simulator import AllocationSimulator, SimulationReport, simulate_allocation
from .optimizer import AllocationOptimizer, OptimizationResult, comparison_metrics, optimize_allocation
from .export import ExportConfig, build_export_config, export_cleaned_records
from .insights import analyze_data_patterns

__all__ = [
    "AllocationResult",
    "Client",
    "EntityStore",
    "Finding",
    "FindingCategory",
    "Task",
    "Worker",
    "DataValidator",
    "validate_data",
    "AutoFixer",
    "FixNotApplicableError",
    "FixReport",
    "apply_fix",
    "fix_all",
    "remove_invalid_references",
    "Rule",
    "RuleKind",
    "make_rule",
    "order_rules",
    "CRITERIA",
    "PRESETS",
    "PriorityConfigError",
    "PriorityWeights",
    "AllocationSimulator",
    "SimulationReport",
    "simulate_allocation",
    "AllocationOptimizer",
    "OptimizationResult",
    "comparison_metrics",
    "optimize_allocation",
    "ExportConfig",
    "build_export_config",
    "export_cleaned_records",
    "analyze_data_patterns",
]
