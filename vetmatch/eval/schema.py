from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vetmatch.schema import EntityKind

ENTITY_TYPES = [kind.value for kind in EntityKind]


@dataclass
class EvalEntity:
    """Gold (or predicted) entity: type + surface name."""
    type: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"type": self.type, "name": self.name}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> EvalEntity:
        """Create from dictionary."""
        return cls(type=d["type"], name=d["name"])


@dataclass
class PredictedEntity(EvalEntity):
    """Predicted entity with its master-matching status, if any."""
    status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        if self.status:
            d["status"] = self.status
        return d


@dataclass
class EvalCase:
    """One gold-labeled case: extraction output plus the expected entities."""
    id: str
    input_extracted_json: Dict[str, Any]
    gold_entities: List[EvalEntity] = field(default_factory=list)
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSONL output."""
        d = {
            "id": self.id,
            "input_extracted_json": self.input_extracted_json,
            "gold_entities": [e.to_dict() for e in self.gold_entities],
        }
        if self.note:
            d["note"] = self.note
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> EvalCase:
        """Create from dictionary (JSONL input)."""
        return cls(
            id=d["id"],
            note=d.get("note"),
            input_extracted_json=d["input_extracted_json"],
            gold_entities=[EvalEntity.from_dict(e) for e in d["gold_entities"]],
        )


@dataclass
class EntityMetrics:
    """Entity-level precision/recall/F1 (ratios rounded to 4 decimals)."""
    tp: int
    fp: int
    fn: int
    precision: float
    recall: float
    f1: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tp": self.tp,
            "fp": self.fp,
            "fn": self.fn,
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
        }


@dataclass
class ConfirmedErrorMetrics:
    """How often auto-accepted (confirmed) predictions miss the gold entities."""
    confirmed_total: int
    confirmed_correct: int
    confirmed_errors: int
    confirmed_error_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confirmed_total": self.confirmed_total,
            "confirmed_correct": self.confirmed_correct,
            "confirmed_errors": self.confirmed_errors,
            "confirmed_error_rate": self.confirmed_error_rate,
        }


@dataclass
class EntityMetricsByType:
    overall: EntityMetrics
    by_type: Dict[str, EntityMetrics]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall.to_dict(),
            "by_type": {entity_type: m.to_dict() for entity_type, m in self.by_type.items()},
        }


@dataclass
class CaseEvaluation:
    id: str
    entity_metrics: EntityMetricsByType
    confirmed: ConfirmedErrorMetrics
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"id": self.id}
        if self.note:
            d["note"] = self.note
        d["entity_metrics"] = self.entity_metrics.to_dict()
        d["confirmed"] = self.confirmed.to_dict()
        return d


@dataclass
class EvaluationReport:
    """Pooled metrics over all cases plus the per-case breakdown."""
    generated_at: str
    case_count: int
    entity_metrics: EntityMetricsByType
    confirmed: ConfirmedErrorMetrics
    per_case: List[CaseEvaluation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "case_count": self.case_count,
            "entity_metrics": self.entity_metrics.to_dict(),
            "confirmed": self.confirmed.to_dict(),
            "per_case": [c.to_dict() for c in self.per_case],
        }
