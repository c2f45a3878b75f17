from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class EntityKind(str, Enum):
    """Kind of clinical entity resolved against a master table."""
    DISEASE = "disease"
    PROCEDURE = "procedure"
    DRUG = "drug"


class MasterSource(str, Enum):
    BYOUMEI = "byoumei"
    SHINRYO_TENSU = "shinryo_tensu"
    DRUG_REFERENCE = "drug_reference"


@dataclass(frozen=True)
class DiseaseEntry:
    """One node of the disease taxonomy (middle level, or middle + minor)."""
    name: str
    code: str
    major_code: str
    major_name: str
    middle_code: str
    middle_name: str
    minor_code: Optional[str] = None
    minor_name: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class ProcedureEntry:
    name: str
    code: str
    section_id: str
    section_title: str
    item_no: int
    points_b: float
    points_a: float


@dataclass(frozen=True)
class DrugEntry:
    """All spellings of one generic drug, grouped from the reference table."""
    generic_name: str
    code: str
    aliases: Tuple[str, ...]


MasterEntry = Union[DiseaseEntry, ProcedureEntry, DrugEntry]


@dataclass(frozen=True)
class DiseaseDetails:
    major_code: str
    major_name: str
    middle_code: str
    middle_name: str
    minor_code: Optional[str] = None
    minor_name: Optional[str] = None
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "major_code": self.major_code,
            "major_name": self.major_name,
            "middle_code": self.middle_code,
            "middle_name": self.middle_name,
        }
        if self.minor_code:
            d["minor_code"] = self.minor_code
        if self.minor_name:
            d["minor_name"] = self.minor_name
        if self.note:
            d["note"] = self.note
        return d


@dataclass(frozen=True)
class ProcedureDetails:
    section_id: str
    section_title: str
    item_no: int
    points_b: float
    points_a: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_id": self.section_id,
            "section_title": self.section_title,
            "item_no": self.item_no,
            "points_b": self.points_b,
            "points_a": self.points_a,
        }


@dataclass(frozen=True)
class DrugDetails:
    generic_name: str
    alias_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generic_name": self.generic_name,
            "alias_count": self.alias_count,
        }


CandidateDetails = Union[DiseaseDetails, ProcedureDetails, DrugDetails]


@dataclass(frozen=True)
class MatchCandidate:
    name: str
    code: str
    confidence: float  # 0.0 - 1.0, rounded to 3 decimals
    master_source: MasterSource
    details: CandidateDetails

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "code": self.code,
            "confidence": self.confidence,
            "master_source": self.master_source.value,
            "details": self.details.to_dict(),
        }


@dataclass(frozen=True)
class MatchResult:
    """
    Ranked candidates for one query.

    ``query`` is the caller's text exactly as given. ``top_confirmed`` is
    derived from the candidates and the kind threshold and cannot be set.
    """
    query: str
    candidates: Tuple[MatchCandidate, ...] = ()
    threshold: float = 1.0

    @property
    def top(self) -> Optional[MatchCandidate]:
        return self.candidates[0] if self.candidates else None

    @property
    def top_confirmed(self) -> bool:
        return bool(self.candidates) and self.candidates[0].confidence >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "candidates": [c.to_dict() for c in self.candidates],
            "top_confirmed": self.top_confirmed,
        }
