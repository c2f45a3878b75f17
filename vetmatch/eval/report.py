"""
Render evaluation reports.

Usage:
    vetmatch-report --report tmp/eval/latest.json

    # Or as a module:
    python -m vetmatch.eval.report --report tmp/eval/latest.json
"""
from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from vetmatch.eval.schema import ENTITY_TYPES, EntityMetrics, EvaluationReport


def escape_cell(value: str) -> str:
    """Escape a Markdown table cell."""
    return value.replace("|", "\\|").replace("\n", " ")


def _metric_row(label: str, metrics: EntityMetrics) -> str:
    return (
        f"| {label} | {metrics.precision:.4f} | {metrics.recall:.4f} | {metrics.f1:.4f} "
        f"| {metrics.tp} | {metrics.fp} | {metrics.fn} |"
    )


def to_markdown(dataset_path: str, report: EvaluationReport) -> str:
    """Markdown companion of an evaluation report."""
    metric_rows = [_metric_row("overall", report.entity_metrics.overall)]
    for entity_type in ENTITY_TYPES:
        metric_rows.append(_metric_row(entity_type, report.entity_metrics.by_type[entity_type]))

    case_rows = [
        f"| {escape_cell(c.id)} | {escape_cell(c.note or '')} "
        f"| {c.entity_metrics.overall.f1:.4f} | {c.confirmed.confirmed_error_rate:.4f} |"
        for c in report.per_case
    ]
    confirmed = report.confirmed

    lines: List[str] = [
        "# Evaluation Report",
        "",
        f"- generated_at: {report.generated_at}",
        f"- dataset: {dataset_path}",
        f"- case_count: {report.case_count}",
        "",
        "## Entity Metrics",
        "",
        "| type | precision | recall | f1 | tp | fp | fn |",
        "| --- | ---: | ---: | ---: | ---: | ---: | ---: |",
        *metric_rows,
        "",
        "## Confirmed Error Rate",
        "",
        f"- confirmed_total: {confirmed.confirmed_total}",
        f"- confirmed_correct: {confirmed.confirmed_correct}",
        f"- confirmed_errors: {confirmed.confirmed_errors}",
        f"- confirmed_error_rate: {confirmed.confirmed_error_rate:.4f}",
        "",
        "## Per Case",
        "",
        "| case_id | note | f1 | confirmed_error_rate |",
        "| --- | --- | ---: | ---: |",
        *(case_rows or ["| - | - | - | - |"]),
        "",
    ]
    return "\n".join(lines)


def print_entity_summary(report: Dict[str, Any]):
    """Print entity metrics summary."""
    entity_metrics = report["entity_metrics"]
    overall = entity_metrics["overall"]

    print("\n" + "=" * 70)
    print("ENTITY MATCHING SUMMARY")
    print("=" * 70)
    print(f"\nOverall Metrics:")
    print(f"  Precision: {overall['precision']:.4f}")
    print(f"  Recall:    {overall['recall']:.4f}")
    print(f"  F1 Score:  {overall['f1']:.4f}")
    print(f"\nCounts:")
    print(f"  True Positives:  {overall['tp']}")
    print(f"  False Positives: {overall['fp']}")
    print(f"  False Negatives: {overall['fn']}")

    by_type = entity_metrics.get("by_type", {})
    if by_type:
        print(f"\nPer-Type Metrics:")
        print(f"  {'Type':<12} {'Precision':<12} {'Recall':<12} {'F1':<12} {'TP':<6} {'FP':<6} {'FN':<6}")
        print(f"  {'-' * 12} {'-' * 12} {'-' * 12} {'-' * 12} {'-' * 6} {'-' * 6} {'-' * 6}")
        for entity_type, metrics in by_type.items():
            print(f"  {entity_type:<12} {metrics['precision']:>11.4f} {metrics['recall']:>11.4f} "
                  f"{metrics['f1']:>11.4f} {metrics['tp']:>5} {metrics['fp']:>5} {metrics['fn']:>5}")


def print_confirmed_summary(report: Dict[str, Any]):
    """Print confirmed error summary."""
    confirmed = report["confirmed"]

    print("\n" + "=" * 70)
    print("CONFIRMED ERROR RATE")
    print("=" * 70)
    print(f"\n  Confirmed:  {confirmed['confirmed_total']}")
    print(f"  Correct:    {confirmed['confirmed_correct']}")
    print(f"  Errors:     {confirmed['confirmed_errors']}")
    print(f"  Error rate: {confirmed['confirmed_error_rate']:.4f}")


def print_case_summary(report: Dict[str, Any], limit: int = 20):
    """Print per-case F1, worst cases first."""
    per_case = report.get("per_case", [])
    if not per_case:
        return

    print("\n" + "=" * 70)
    print(f"PER-CASE (worst {min(limit, len(per_case))})")
    print("=" * 70)
    ranked = sorted(per_case, key=lambda c: c["entity_metrics"]["overall"]["f1"])
    for case in ranked[:limit]:
        f1 = case["entity_metrics"]["overall"]["f1"]
        error_rate = case["confirmed"]["confirmed_error_rate"]
        note = case.get("note") or ""
        if len(note) > 40:
            note = note[:37] + "..."
        print(f"  {case['id']:<20} f1={f1:.4f} confirmed_error_rate={error_rate:.4f} {note}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Print evaluation report summary")
    parser.add_argument(
        "--report",
        type=str,
        required=True,
        help="Path to latest.json written by vetmatch-evaluate"
    )
    parser.add_argument(
        "--cases",
        type=int,
        default=20,
        help="Number of per-case rows to print (default: 20)"
    )
    args = parser.parse_args(argv)

    report_path = Path(args.report)
    if not report_path.exists():
        print(f"Error: Report file not found: {report_path}", file=sys.stderr)
        return 1

    with open(report_path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    report = payload.get("report", payload)

    print(f"\nDataset: {payload.get('dataset_path', '-')}")
    print(f"Generated at: {report.get('generated_at', '-')}")
    print(f"Cases: {report.get('case_count', 0)}")

    print_entity_summary(report)
    print_confirmed_summary(report)
    print_case_summary(report, limit=args.cases)

    print("\n" + "=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
