"""
Fuzzy matching of clinical terms against the master tables.

Every entry of the kind's master table is scored against the normalized
query, the top MAX_CANDIDATES are returned, and the top candidate is
"confirmed" when its confidence reaches the kind threshold.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from vetmatch.master_data import MasterDataCache
from vetmatch.preprocess import normalize_query
from vetmatch.schema import (
    DiseaseDetails,
    DiseaseEntry,
    DrugDetails,
    DrugEntry,
    EntityKind,
    MasterEntry,
    MasterSource,
    MatchCandidate,
    MatchResult,
    ProcedureDetails,
    ProcedureEntry,
)
from vetmatch.scoring import round_half_up, score

LOG = logging.getLogger(__name__)

# Short procedure names like "注射" must not confirm against longer entries.
DISEASE_CONFIDENCE_THRESHOLD = 0.65
PROCEDURE_CONFIDENCE_THRESHOLD = 0.85
DRUG_CONFIDENCE_THRESHOLD = 0.8

DEFAULT_THRESHOLDS: Dict[EntityKind, float] = {
    EntityKind.DISEASE: DISEASE_CONFIDENCE_THRESHOLD,
    EntityKind.PROCEDURE: PROCEDURE_CONFIDENCE_THRESHOLD,
    EntityKind.DRUG: DRUG_CONFIDENCE_THRESHOLD,
}

MAX_CANDIDATES = 3
CONFIDENCE_DIGITS = 3

AliasAccessor = Callable[[MasterEntry], Iterable[str]]
CandidateBuilder = Callable[[MasterEntry, float], MatchCandidate]


def _disease_candidate(entry: DiseaseEntry, confidence: float) -> MatchCandidate:
    return MatchCandidate(
        name=entry.name,
        code=entry.code,
        confidence=confidence,
        master_source=MasterSource.BYOUMEI,
        details=DiseaseDetails(
            major_code=entry.major_code,
            major_name=entry.major_name,
            middle_code=entry.middle_code,
            middle_name=entry.middle_name,
            minor_code=entry.minor_code,
            minor_name=entry.minor_name,
            note=entry.note,
        ),
    )


def _procedure_candidate(entry: ProcedureEntry, confidence: float) -> MatchCandidate:
    return MatchCandidate(
        name=entry.name,
        code=entry.code,
        confidence=confidence,
        master_source=MasterSource.SHINRYO_TENSU,
        details=ProcedureDetails(
            section_id=entry.section_id,
            section_title=entry.section_title,
            item_no=entry.item_no,
            points_b=entry.points_b,
            points_a=entry.points_a,
        ),
    )


def _drug_candidate(entry: DrugEntry, confidence: float) -> MatchCandidate:
    return MatchCandidate(
        name=entry.generic_name,
        code=entry.code,
        confidence=confidence,
        master_source=MasterSource.DRUG_REFERENCE,
        details=DrugDetails(
            generic_name=entry.generic_name,
            alias_count=len(entry.aliases),
        ),
    )


@dataclass(frozen=True)
class KindSpec:
    """What differs between kinds: which names to score and how to build candidates."""
    alias_accessor: AliasAccessor
    build_candidate: CandidateBuilder


KIND_SPECS: Dict[EntityKind, KindSpec] = {
    EntityKind.DISEASE: KindSpec(lambda entry: (entry.name,), _disease_candidate),
    EntityKind.PROCEDURE: KindSpec(lambda entry: (entry.name,), _procedure_candidate),
    EntityKind.DRUG: KindSpec(lambda entry: entry.aliases, _drug_candidate),
}


def rank_entries(
    query: str,
    entries: Sequence[MasterEntry],
    alias_accessor: AliasAccessor,
    build_candidate: CandidateBuilder,
    max_candidates: int = MAX_CANDIDATES,
) -> List[MatchCandidate]:
    """
    Score every entry against an already normalized query and keep the best.

    An entry scores as its best alias. Ties keep load order (stable sort).
    """
    scored: List[Tuple[float, MasterEntry]] = []
    for entry in entries:
        best = max((score(query, alias) for alias in alias_accessor(entry)), default=0.0)
        scored.append((best, entry))

    scored.sort(key=lambda item: item[0], reverse=True)

    return [
        build_candidate(entry, round_half_up(entry_score, CONFIDENCE_DIGITS))
        for entry_score, entry in scored[:max_candidates]
    ]


class MasterMatcher:
    """
    Matches free-text names against the disease, procedure and drug masters.

    The matcher owns its ``MasterDataCache``; pass a cache built from custom
    ``MasterSources`` to match against other tables.
    """

    def __init__(
        self,
        cache: Optional[MasterDataCache] = None,
        thresholds: Optional[Dict[EntityKind, float]] = None,
    ):
        self.cache = cache if cache is not None else MasterDataCache()
        self.thresholds = dict(DEFAULT_THRESHOLDS)
        for kind, value in (thresholds or {}).items():
            self.thresholds[EntityKind(kind)] = value

    def threshold(self, kind: EntityKind) -> float:
        return self.thresholds[EntityKind(kind)]

    def match(self, name: str, kind: EntityKind) -> MatchResult:
        """Rank master entries of ``kind`` for ``name``; ``query`` echoes ``name``."""
        kind = EntityKind(kind)
        threshold = self.threshold(kind)
        query = normalize_query(name, kind)

        if not query:
            LOG.debug("Empty %s query after normalization: %r", kind.value, name)
            return MatchResult(query=name, candidates=(), threshold=threshold)

        spec = KIND_SPECS[kind]
        candidates = rank_entries(
            query,
            self.cache.get_or_load(kind),
            spec.alias_accessor,
            spec.build_candidate,
        )
        return MatchResult(query=name, candidates=tuple(candidates), threshold=threshold)

    def match_disease(self, name: str) -> MatchResult:
        return self.match(name, EntityKind.DISEASE)

    def match_procedure(self, name: str) -> MatchResult:
        return self.match(name, EntityKind.PROCEDURE)

    def match_drug(self, name: str) -> MatchResult:
        return self.match(name, EntityKind.DRUG)


@lru_cache(maxsize=1)
def default_matcher() -> MasterMatcher:
    """Shared matcher over the bundled master tables."""
    return MasterMatcher()


reset_default_matcher = default_matcher.cache_clear


def match_disease(name: str) -> MatchResult:
    return default_matcher().match_disease(name)


def match_procedure(name: str) -> MatchResult:
    return default_matcher().match_procedure(name)


def match_drug(name: str) -> MatchResult:
    return default_matcher().match_drug(name)
