"""
Entity-level metrics for master-matching evaluation.

Entities are compared as multisets keyed by ``type:normalized_name``.
"""
from __future__ import annotations
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from vetmatch.eval.schema import (
    ENTITY_TYPES,
    ConfirmedErrorMetrics,
    EntityMetrics,
    EntityMetricsByType,
    EvalEntity,
    PredictedEntity,
)
from vetmatch.preprocess import normalize_entity_name
from vetmatch.scoring import round_half_up

RATIO_DIGITS = 4


def round_ratio(value: float) -> float:
    return round_half_up(value, RATIO_DIGITS)


def entity_key(entity_type: str, name: str) -> Optional[str]:
    """``type:normalized_name``, or None for unknown types and empty names."""
    if entity_type not in ENTITY_TYPES:
        return None
    normalized = normalize_entity_name(name)
    if not normalized:
        return None
    return f"{entity_type}:{normalized}"


def to_count_map(entities: Iterable[EvalEntity]) -> Counter:
    counts: Counter = Counter()
    for entity in entities:
        key = entity_key(entity.type, entity.name)
        if key:
            counts[key] += 1
    return counts


def compute_entity_metrics(
    predicted: Sequence[EvalEntity],
    gold: Sequence[EvalEntity],
) -> EntityMetrics:
    """
    Compute multiset precision/recall/F1.

    tp = sum over keys of min(predicted count, gold count). With no
    predictions and no gold both precision and recall are 1.
    """
    predicted_counts = to_count_map(predicted)
    gold_counts = to_count_map(gold)
    predicted_total = sum(predicted_counts.values())
    gold_total = sum(gold_counts.values())

    tp = sum(min(count, gold_counts[key]) for key, count in predicted_counts.items())
    fp = predicted_total - tp
    fn = gold_total - tp

    if predicted_total == 0:
        precision = 1.0 if gold_total == 0 else 0.0
    else:
        precision = tp / predicted_total
    if gold_total == 0:
        recall = 1.0 if predicted_total == 0 else 0.0
    else:
        recall = tp / gold_total
    f1 = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0

    return EntityMetrics(
        tp=tp,
        fp=fp,
        fn=fn,
        precision=round_ratio(precision),
        recall=round_ratio(recall),
        f1=round_ratio(f1),
    )


def compute_metrics_by_type(
    predicted: Sequence[EvalEntity],
    gold: Sequence[EvalEntity],
) -> EntityMetricsByType:
    """Overall metrics plus one entry per entity type."""
    by_type: Dict[str, EntityMetrics] = {}
    for entity_type in ENTITY_TYPES:
        by_type[entity_type] = compute_entity_metrics(
            [e for e in predicted if e.type == entity_type],
            [e for e in gold if e.type == entity_type],
        )
    return EntityMetricsByType(
        overall=compute_entity_metrics(predicted, gold),
        by_type=by_type,
    )


def compute_confirmed_error_rate(
    predicted: Sequence[PredictedEntity],
    gold: Sequence[EvalEntity],
) -> ConfirmedErrorMetrics:
    """
    Share of confirmed predictions that match no gold entity.

    Each confirmed prediction consumes one unit of its key from the gold
    multiset; a prediction whose key is exhausted counts as an error.
    """
    remaining = to_count_map(gold)
    confirmed_total = 0
    confirmed_correct = 0

    for entity in predicted:
        if entity.status != "confirmed":
            continue
        confirmed_total += 1
        key = entity_key(entity.type, entity.name)
        if key and remaining[key] > 0:
            remaining[key] -= 1
            confirmed_correct += 1

    confirmed_errors = confirmed_total - confirmed_correct
    return ConfirmedErrorMetrics(
        confirmed_total=confirmed_total,
        confirmed_correct=confirmed_correct,
        confirmed_errors=confirmed_errors,
        confirmed_error_rate=round_ratio(
            confirmed_errors / confirmed_total if confirmed_total else 0.0
        ),
    )


def combine_confirmed(parts: Iterable[ConfirmedErrorMetrics]) -> ConfirmedErrorMetrics:
    """Pool per-case confirmed counts; the rate is recomputed from the sums."""
    confirmed_total = 0
    confirmed_correct = 0
    for part in parts:
        confirmed_total += part.confirmed_total
        confirmed_correct += part.confirmed_correct
    confirmed_errors = confirmed_total - confirmed_correct
    return ConfirmedErrorMetrics(
        confirmed_total=confirmed_total,
        confirmed_correct=confirmed_correct,
        confirmed_errors=confirmed_errors,
        confirmed_error_rate=round_ratio(
            confirmed_errors / confirmed_total if confirmed_total else 0.0
        ),
    )


def extract_predicted_entities(enriched: Dict[str, Any]) -> List[PredictedEntity]:
    """
    Flatten an enriched Extracted JSON into predicted entities.

    Assessment items are diseases, plan items keep their ``type``. The
    canonical name is preferred over the extracted one; empty names are dropped.
    """
    entities: List[PredictedEntity] = []
    for item in enriched.get("a") or []:
        entities.append(PredictedEntity(
            type="disease",
            name=item.get("canonical_name") or item.get("name") or "",
            status=item.get("status"),
        ))
    for item in enriched.get("p") or []:
        entities.append(PredictedEntity(
            type=item.get("type") or "",
            name=item.get("canonical_name") or item.get("name") or "",
            status=item.get("status"),
        ))
    return [e for e in entities if normalize_entity_name(e.name)]
