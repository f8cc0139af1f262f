"""
Export - versioned configuration document and cleaned record collections

The configuration document bundles rules, priority weights, the latest
validation summary and data statistics. Field names serialize in camelCase
for consumers of the exported JSON. Writing files is left to the caller.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import EntityStore, Finding
from .priorities import PriorityWeights
from .rules import Rule, order_rules
from .validation import summarize_findings

EXPORT_VERSION = "1.0"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PrioritiesSection(_CamelModel):
    weights: Dict[str, int]
    criteria_order: List[str]
    active_preset: str


class ValidationSection(_CamelModel):
    total_issues: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    last_validated: Optional[str] = None


class DataStats(_CamelModel):
    clients: int = 0
    workers: int = 0
    tasks: int = 0


class ExportMetadata(_CamelModel):
    generated_at: str
    data_stats: DataStats
    total_rules: int = 0


class ExportConfig(_CamelModel):
    """The exported configuration document"""
    version: str = EXPORT_VERSION
    rules: List[Dict[str, Any]] = Field(default_factory=list)
    priorities: PrioritiesSection
    validation: ValidationSection
    metadata: ExportMetadata

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def build_export_config(store: EntityStore, rules: Iterable[Rule],
                        weights: Optional[PriorityWeights], findings: List[Finding],
                        validated_at: Optional[datetime] = None) -> ExportConfig:
    """Assemble the export document from the current session state."""
    rules = order_rules(rules)
    weights = weights or PriorityWeights.defaults()
    summary = summarize_findings(findings, validated_at)
    counts = store.counts()

    return ExportConfig(
        version=EXPORT_VERSION,
        rules=[rule.to_dict() for rule in rules],
        priorities=PrioritiesSection(
            weights=dict(weights.weights),
            criteria_order=list(weights.criteria_order),
            active_preset=weights.active_preset,
        ),
        validation=ValidationSection(
            total_issues=summary['total'],
            errors=summary['errors'],
            warnings=summary['warnings'],
            infos=summary['infos'],
            last_validated=summary['last_validated'],
        ),
        metadata=ExportMetadata(
            generated_at=datetime.now(timezone.utc).isoformat(),
            data_stats=DataStats(**counts),
            total_rules=len(rules),
        ),
    )


def export_cleaned_records(store: EntityStore) -> Dict[str, List[Dict[str, Any]]]:
    """Clients, workers and tasks in the exchange shape (list fields comma-joined)."""
    return store.to_records()
