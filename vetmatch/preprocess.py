from __future__ import annotations
import re
import unicodedata
from typing import Callable, Dict, Tuple

from vetmatch.rules import normalize_drug_query_by_rules
from vetmatch.schema import EntityKind

_RE_WHITESPACE = re.compile(r"[　\s]+")
_RE_PUNCT = re.compile(r"[()（）\[\]［］「」『』、。・,:;'\"`]")
_RE_TRAILING_QUESTION = re.compile(r"[?？]+$")

# Hedging suffixes, outermost clause first so that compound forms such as
# "肺炎の可能性があると思います" reduce all the way down to "肺炎".
_HEDGING_SUFFIXES: Tuple[re.Pattern, ...] = (
    # "I think"
    re.compile(r"(?:ではないか|じゃないか|かな|か|だ)?と(?:思われます|思われる|思います|思う|考えます|考えられる)$"),
    # "maybe"
    re.compile(r"(?:かもしれません|かもしれない|かも|かな)$"),
    # "probably"
    re.compile(r"(?:でしょうか|でしょう|だろう|らしい|っぽい)$"),
    # "possibility of"
    re.compile(r"(?:の)?可能性(?:が)?(?:高い|ある|あり)?$"),
)

_DISEASE_SUFFIXES: Tuple[re.Pattern, ...] = (
    re.compile(r"(?:の)?疑いあり$"),
    re.compile(r"(?:の)?疑い$"),
    re.compile(r"疑$"),
    re.compile(r"未確認$"),
)

_DRUG_SUFFIXES: Tuple[re.Pattern, ...] = (
    re.compile(r"(?:を)?(?:投与|注射|注入)(?:しました|した|済み|済)$"),
    re.compile(r"(?:を)?投与$"),
)


def normalize_entity_name(text: str) -> str:
    """NFKC, trim, drop whitespace and bracket/punctuation characters."""
    text = unicodedata.normalize("NFKC", text or "").strip()
    text = _RE_WHITESPACE.sub("", text)
    return _RE_PUNCT.sub("", text)


def normalize_match_text(text: str) -> str:
    """Canonical form used when comparing a query with master names."""
    return _RE_TRAILING_QUESTION.sub("", normalize_entity_name(text))


def _strip_suffixes(text: str, patterns: Tuple[re.Pattern, ...]) -> str:
    for pattern in patterns:
        text = pattern.sub("", text)
    return text


def strip_hedging(text: str) -> str:
    """Remove speculative endings ("I think", "maybe", ...) from a normalized query."""
    return _strip_suffixes(text, _HEDGING_SUFFIXES)


def normalize_procedure_query(text: str) -> str:
    return strip_hedging(normalize_match_text(text))


def normalize_disease_query(text: str) -> str:
    # 肺炎の疑いあり -> 肺炎, 乳房炎未確認 -> 乳房炎
    return _strip_suffixes(normalize_procedure_query(text), _DISEASE_SUFFIXES)


def normalize_drug_query(text: str) -> str:
    # 50%ブドウ糖液 -> 50%ブドウ糖注射液, セファゾリンを投与 -> セファゾリン
    text = normalize_drug_query_by_rules(normalize_match_text(text))
    return _strip_suffixes(strip_hedging(text), _DRUG_SUFFIXES)


_QUERY_NORMALIZERS: Dict[EntityKind, Callable[[str], str]] = {
    EntityKind.DISEASE: normalize_disease_query,
    EntityKind.PROCEDURE: normalize_procedure_query,
    EntityKind.DRUG: normalize_drug_query,
}


def normalize_query(text: str, kind: EntityKind) -> str:
    """Apply the kind-specific query pipeline; the caller keeps the verbatim text."""
    return _QUERY_NORMALIZERS[EntityKind(kind)](text)
