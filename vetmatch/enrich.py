"""
Master matching over an Extracted JSON document.

Each assessment item is matched as a disease, each plan item as a procedure
or drug according to its ``type``. Items get ``confidence``, ``master_code``
and ``status``; ``canonical_name`` is only attached to confirmed matches.
Drug items may then be rewritten by the canonical overrides in ``vetmatch.rules``.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from vetmatch.matcher import MasterMatcher, default_matcher
from vetmatch.rules import NormalizationRules, apply_drug_canonical_overrides
from vetmatch.schema import EntityKind, MatchResult

CONFIRMED = "confirmed"
UNCONFIRMED = "unconfirmed"


def _plan_kind(item: Dict[str, Any]) -> Optional[EntityKind]:
    item_type = item.get("type")
    if item_type == EntityKind.PROCEDURE.value:
        return EntityKind.PROCEDURE
    if item_type == EntityKind.DRUG.value:
        return EntityKind.DRUG
    return None


def enrich_item(item: Dict[str, Any], result: MatchResult) -> Dict[str, Any]:
    """Copy of ``item`` annotated with the top candidate, or ``item`` itself when there is none."""
    top = result.top
    if top is None or top.confidence <= 0:
        return item

    enriched = dict(item)
    if result.top_confirmed:
        enriched["canonical_name"] = top.name
    enriched["confidence"] = top.confidence
    enriched["master_code"] = top.code
    enriched["status"] = CONFIRMED if result.top_confirmed else UNCONFIRMED
    return enriched


def apply_master_matching(
    extracted: Dict[str, Any],
    matcher: Optional[MasterMatcher] = None,
    rules: Optional[NormalizationRules] = None,
) -> Dict[str, Any]:
    """
    Return a new document with ``a`` and ``p`` items matched against the masters.

    Drug canonical overrides run after matching, against the item's name
    followed by its dosage. The input document is not modified.
    """
    if matcher is None:
        matcher = default_matcher()

    enriched_a = [
        enrich_item(item, matcher.match_disease(item.get("name") or ""))
        for item in extracted.get("a") or []
    ]

    enriched_p = []
    for item in extracted.get("p") or []:
        kind = _plan_kind(item)
        if kind is not None:
            item = enrich_item(item, matcher.match(item.get("name") or "", kind))
        source_text = f"{item.get('name') or ''}{item.get('dosage') or ''}"
        enriched_p.append(apply_drug_canonical_overrides(item, source_text, rules))

    return {**extracted, "a": enriched_a, "p": enriched_p}


def count_unconfirmed(extracted: Dict[str, Any]) -> int:
    items: List[Dict[str, Any]] = [*(extracted.get("a") or []), *(extracted.get("p") or [])]
    return sum(1 for item in items if item.get("status") == UNCONFIRMED)


def canonical_preferred_view(extracted: Dict[str, Any]) -> Dict[str, Any]:
    """Document where every item name is replaced by its canonical name when one is known."""
    def prefer(item: Dict[str, Any]) -> Dict[str, Any]:
        return {**item, "name": item.get("canonical_name") or item.get("name")}

    return {
        **extracted,
        "a": [prefer(item) for item in extracted.get("a") or []],
        "p": [prefer(item) for item in extracted.get("p") or []],
    }
