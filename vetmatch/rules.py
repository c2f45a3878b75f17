"""
Data-driven normalization rules for drug names.

normalization_rules.json holds:
- drug_query_rules: regex rewrites applied to a drug query before matching,
  e.g. dictated "50%ブドウ糖液" -> "50%ブドウ糖注射液"
- drug_canonical_overrides: rules that force ``canonical_name`` and
  ``master_code`` of a drug item when its source text contains a trigger

The bundled rules are loaded once; ``reset_rules()`` clears them for tests.
"""
from __future__ import annotations
import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

LOG = logging.getLogger(__name__)

RULES_PATH = Path(__file__).resolve().parent / "data" / "normalization_rules.json"


@dataclass(frozen=True)
class RegexRule:
    pattern: re.Pattern
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


@dataclass(frozen=True)
class DrugCanonicalOverride:
    trigger: str
    canonical_name: str
    master_code: str
    if_canonical_in: Tuple[str, ...] = ()
    if_master_code_in: Tuple[str, ...] = ()

    def applies_to(self, item: Dict[str, Any]) -> bool:
        """
        True when the item passes the filters.

        Without filters every item passes; with both, either one matching is enough.
        """
        if not self.if_canonical_in and not self.if_master_code_in:
            return True
        return (
            item.get("canonical_name") in self.if_canonical_in
            or item.get("master_code") in self.if_master_code_in
        )


@dataclass(frozen=True)
class NormalizationRules:
    drug_query_rules: Tuple[RegexRule, ...] = ()
    drug_canonical_overrides: Tuple[DrugCanonicalOverride, ...] = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> NormalizationRules:
        query_rules = []
        for i, rule in enumerate(d.get("drug_query_rules") or []):
            if not rule.get("pattern"):
                continue
            try:
                pattern = re.compile(rule["pattern"])
            except re.error as exc:
                raise ValueError(f"drug_query_rules[{i}]: invalid pattern: {exc}") from exc
            query_rules.append(RegexRule(pattern=pattern, replacement=rule.get("replacement", "")))

        overrides = [
            DrugCanonicalOverride(
                trigger=rule["trigger"],
                canonical_name=rule["canonical_name"],
                master_code=rule["master_code"],
                if_canonical_in=tuple(rule.get("if_canonical_in") or ()),
                if_master_code_in=tuple(rule.get("if_master_code_in") or ()),
            )
            for rule in d.get("drug_canonical_overrides") or []
            if rule.get("trigger")
        ]
        return cls(drug_query_rules=tuple(query_rules), drug_canonical_overrides=tuple(overrides))


def load_rules(filepath: Path | str) -> NormalizationRules:
    """Load normalization rules from a JSON file."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Normalization rules not found: {filepath}")
    with open(filepath, "r", encoding="utf-8") as f:
        rules = NormalizationRules.from_dict(json.load(f))
    LOG.info(
        "Loaded %d drug query rules, %d drug overrides",
        len(rules.drug_query_rules), len(rules.drug_canonical_overrides),
    )
    return rules


@lru_cache(maxsize=1)
def bundled_rules() -> NormalizationRules:
    return load_rules(RULES_PATH)


def reset_rules() -> None:
    bundled_rules.cache_clear()


def apply_regex_rules(text: str, rules: Sequence[RegexRule]) -> str:
    for rule in rules:
        text = rule.apply(text)
    return text


def normalize_drug_query_by_rules(text: str, rules: Optional[NormalizationRules] = None) -> str:
    if not text:
        return text
    if rules is None:
        rules = bundled_rules()
    return apply_regex_rules(text, rules.drug_query_rules)


def apply_drug_canonical_overrides(
    item: Dict[str, Any],
    source_text: str,
    rules: Optional[NormalizationRules] = None,
) -> Dict[str, Any]:
    """
    Copy of a drug ``item`` with the first matching override applied.

    Non-drug items, and items no rule fires for, are returned as is.
    """
    if not source_text or item.get("type") != "drug":
        return item
    if rules is None:
        rules = bundled_rules()

    for override in rules.drug_canonical_overrides:
        if override.trigger not in source_text or not override.applies_to(item):
            continue
        return {**item, "canonical_name": override.canonical_name, "master_code": override.master_code}
    return item
