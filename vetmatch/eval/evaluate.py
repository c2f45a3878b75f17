"""
Evaluate master matching against a gold dataset.

Usage:
    vetmatch-evaluate --dataset gold.jsonl --out-dir tmp/eval

    # Or as a module:
    python -m vetmatch.eval.evaluate --dataset gold.jsonl --out-dir tmp/eval

Writes ``latest.json`` ({dataset_path, report}) and ``latest.md`` to the output directory.
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from vetmatch.enrich import apply_master_matching
from vetmatch.eval.metrics import (
    combine_confirmed,
    compute_confirmed_error_rate,
    compute_metrics_by_type,
    extract_predicted_entities,
)
from vetmatch.eval.report import to_markdown
from vetmatch.eval.schema import (
    ENTITY_TYPES,
    CaseEvaluation,
    EvalCase,
    EvalEntity,
    EvaluationReport,
    PredictedEntity,
)
from vetmatch.extracted import validate_extracted
from vetmatch.matcher import MasterMatcher, default_matcher

LOG = logging.getLogger(__name__)

DEFAULT_DATASET_PATH = Path(__file__).resolve().parents[1] / "data" / "eval" / "gold.sample.jsonl"
DEFAULT_OUTPUT_DIR = Path("tmp") / "eval"


class DatasetError(ValueError):
    """Invalid evaluation dataset line (1-based ``line_no``)."""

    def __init__(self, line_no: int, message: str):
        super().__init__(f"Invalid dataset line {line_no}: {message}")
        self.line_no = line_no


class EvaluationCancelled(RuntimeError):
    def __init__(self, completed_cases: int):
        super().__init__(f"Evaluation cancelled after {completed_cases} case(s)")
        self.completed_cases = completed_cases


class CancelEvent(Protocol):
    def is_set(self) -> bool: ...


def validate_case(case: Any) -> None:
    if not isinstance(case, dict):
        raise ValueError("must be a JSON object")
    if not isinstance(case.get("id"), str) or not case["id"]:
        raise ValueError("must include string field 'id'")
    if not isinstance(case.get("input_extracted_json"), dict):
        raise ValueError("must include object field 'input_extracted_json'")
    errors = validate_extracted(case["input_extracted_json"])
    if errors:
        raise ValueError(f"input_extracted_json: {'; '.join(errors)}")
    if not isinstance(case.get("gold_entities"), list):
        raise ValueError("must include array field 'gold_entities'")
    for i, entity in enumerate(case["gold_entities"]):
        if not isinstance(entity, dict):
            raise ValueError(f"gold_entities[{i}] must be an object")
        if entity.get("type") not in ENTITY_TYPES:
            raise ValueError(f"gold_entities[{i}].type must be one of {', '.join(ENTITY_TYPES)}")
        if not isinstance(entity.get("name"), str):
            raise ValueError(f"gold_entities[{i}].name must be a string")
    if case.get("note") is not None and not isinstance(case["note"], str):
        raise ValueError("field 'note' must be a string")


def parse_dataset(text: str) -> List[EvalCase]:
    """
    Parse newline-delimited JSON cases.

    Blank lines and lines starting with '#' are skipped. The first invalid
    line raises DatasetError with its 1-based line number.
    """
    cases: List[EvalCase] = []
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            case_dict = json.loads(line)
            validate_case(case_dict)
        except ValueError as exc:
            raise DatasetError(line_no, str(exc)) from exc
        cases.append(EvalCase.from_dict(case_dict))
    return cases


def load_dataset(dataset_path: Path | str) -> List[EvalCase]:
    """Load gold cases from a JSONL file."""
    with open(dataset_path, "r", encoding="utf-8") as f:
        return parse_dataset(f.read())


def evaluate_case(case: EvalCase, matcher: MasterMatcher) -> Tuple[CaseEvaluation, List[PredictedEntity]]:
    """
    Run master matching for one case and score it against its gold entities.

    Returns:
        Tuple of (CaseEvaluation, predicted entities)
    """
    enriched = apply_master_matching(case.input_extracted_json, matcher)
    predicted = extract_predicted_entities(enriched)
    evaluation = CaseEvaluation(
        id=case.id,
        note=case.note,
        entity_metrics=compute_metrics_by_type(predicted, case.gold_entities),
        confirmed=compute_confirmed_error_rate(predicted, case.gold_entities),
    )
    return evaluation, predicted


def evaluate_cases(
    cases: Sequence[EvalCase],
    matcher: Optional[MasterMatcher] = None,
    cancel_event: Optional[CancelEvent] = None,
) -> EvaluationReport:
    """
    Evaluate all cases.

    Aggregate metrics pool every case's entities together (they are not an
    average of per-case metrics). ``cancel_event`` is checked between cases.
    """
    if matcher is None:
        matcher = default_matcher()

    per_case: List[CaseEvaluation] = []
    predicted_all: List[EvalEntity] = []
    gold_all: List[EvalEntity] = []

    for case in cases:
        if cancel_event is not None and cancel_event.is_set():
            raise EvaluationCancelled(len(per_case))

        evaluation, predicted = evaluate_case(case, matcher)
        per_case.append(evaluation)
        predicted_all.extend(predicted)
        gold_all.extend(case.gold_entities)

    return EvaluationReport(
        generated_at=datetime.now(timezone.utc).isoformat(),
        case_count=len(cases),
        entity_metrics=compute_metrics_by_type(predicted_all, gold_all),
        confirmed=combine_confirmed(c.confirmed for c in per_case),
        per_case=per_case,
    )


def write_outputs(dataset_path: str, report: EvaluationReport, output_dir: Path) -> Dict[str, Path]:
    """Write latest.json and latest.md; returns their paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / "latest.json"
    markdown_path = output_dir / "latest.md"

    payload = {"dataset_path": dataset_path, "report": report.to_dict()}
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")
    with open(markdown_path, "w", encoding="utf-8") as f:
        f.write(to_markdown(dataset_path, report))

    return {"json": json_path, "markdown": markdown_path}


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    parser = argparse.ArgumentParser(description="Evaluate master matching against gold entities")
    parser.add_argument(
        "--dataset",
        type=str,
        default=str(DEFAULT_DATASET_PATH),
        help="Path to gold dataset JSONL file"
    )
    parser.add_argument(
        "--out-dir",
        type=str,
        default=str(DEFAULT_OUTPUT_DIR),
        help="Directory for latest.json and latest.md (default: tmp/eval)"
    )
    args = parser.parse_args(argv)

    try:
        cases = load_dataset(args.dataset)
    except (OSError, DatasetError) as exc:
        LOG.error("Evaluation failed: %s", exc)
        return 1

    report = evaluate_cases(cases)
    paths = write_outputs(args.dataset, report, Path(args.out_dir))

    overall = report.entity_metrics.overall
    confirmed = report.confirmed
    LOG.info("Evaluation complete: %d case(s)", len(cases))
    LOG.info("Dataset: %s", args.dataset)
    LOG.info("Overall F1: %.4f", overall.f1)
    LOG.info(
        "Confirmed error rate: %.4f (%d/%d)",
        confirmed.confirmed_error_rate, confirmed.confirmed_errors, confirmed.confirmed_total,
    )
    LOG.info("Saved: %s", paths["json"])
    LOG.info("Saved: %s", paths["markdown"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
