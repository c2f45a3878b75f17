"""
Master data loading for the matcher.

Three flat reference tables are parsed into typed entries:
- byoumei.csv: disease taxonomy (major / middle / minor + note)
- shinryo_tensu_master_flat.csv: procedure fee schedule
- drug_reference.csv: drug reference with product names and aliases

Parsing is a pure function of the CSV text. ``MasterDataCache`` memoizes the
parsed entries per kind and can be reset for test isolation.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from vetmatch.preprocess import normalize_match_text
from vetmatch.schema import DiseaseEntry, DrugEntry, EntityKind, MasterEntry, ProcedureEntry

LOG = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"

# Master file names: entity kind -> filename
MASTER_FILES = {
    EntityKind.DISEASE: "byoumei.csv",
    EntityKind.PROCEDURE: "shinryo_tensu_master_flat.csv",
    EntityKind.DRUG: "drug_reference.csv",
}

_RE_MAJOR = re.compile(r"^(\d+)[　\s]+(.+)$")
_RE_LEVEL = re.compile(r"^(\d+)\s+(.+)$")
_RE_WHITESPACE = re.compile(r"\s+")
_RE_NOTE_SEPARATORS = re.compile(r"[,，、/／]")
_RE_NOTE_LABEL = re.compile(r"^(?:別名|略称|商品名|旧名)\s*[:：]\s*")


@dataclass
class LoadResult:
    """Parsed entries plus the number of source rows that were skipped."""
    entries: Sequence[MasterEntry] = field(default_factory=list)
    skipped_rows: int = 0


def split_csv_line(line: str) -> List[str]:
    """
    Split one CSV line on commas.

    Every double quote toggles quoted mode wherever it appears in a field and
    is dropped; commas inside quotes do not split.
    """
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            cells.append("".join(current))
            current = []
        else:
            current.append(ch)
    cells.append("".join(current))
    return cells


def split_csv_rows(text: str) -> List[List[str]]:
    """Split CSV text into rows, skipping the header and blank lines."""
    return [split_csv_line(line) for line in text.splitlines()[1:] if line.strip()]


def parse_diseases(text: str) -> LoadResult:
    """
    Parse byoumei.csv rows: ``major, middle, minor, note``.

    Major cells look like "01\\u3000循環器病", middle/minor cells like "01 心のう炎".
    One entry is emitted per middle node, so broad queries like "肺炎" resolve
    even when the node has many minor rows, plus one entry per minor node.
    """
    result = LoadResult()
    seen_middle_codes = set()

    for row in split_csv_rows(text):
        if len(row) < 2:
            result.skipped_rows += 1
            continue

        major_raw, middle_raw = row[0], row[1]
        minor_raw = row[2] if len(row) > 2 else ""
        note = (row[3].strip() if len(row) > 3 else "") or None

        major_match = _RE_MAJOR.match(major_raw.strip())
        middle_match = _RE_LEVEL.match(middle_raw.strip())
        if not major_match or not middle_match:
            LOG.debug("Skipping malformed disease row: %r", row)
            result.skipped_rows += 1
            continue

        major_code, major_name = major_match.group(1), major_match.group(2).strip()
        middle_code, middle_name = middle_match.group(1), middle_match.group(2).strip()
        middle_master_code = f"{major_code}-{middle_code}"

        if middle_master_code not in seen_middle_codes:
            seen_middle_codes.add(middle_master_code)
            result.entries.append(DiseaseEntry(
                name=middle_name,
                code=middle_master_code,
                major_code=major_code,
                major_name=major_name,
                middle_code=middle_code,
                middle_name=middle_name,
                note=note,
            ))

        minor_match = _RE_LEVEL.match(minor_raw.strip()) if minor_raw.strip() else None
        if not minor_match:
            continue

        minor_code, minor_name = minor_match.group(1), minor_match.group(2).strip()
        result.entries.append(DiseaseEntry(
            name=f"{middle_name}{minor_name}",
            code=f"{middle_master_code}-{minor_code}",
            major_code=major_code,
            major_name=major_name,
            middle_code=middle_code,
            middle_name=middle_name,
            minor_code=minor_code,
            minor_name=minor_name,
            note=note,
        ))

    return result


def _parse_points(value: str) -> float:
    try:
        points = float(value.strip())
    except ValueError:
        return 0.0
    # NaN parses but is not a usable point value
    return points if points == points else 0.0


def parse_procedures(text: str) -> LoadResult:
    """
    Parse shinryo_tensu_master_flat.csv rows:
    ``section_id, section_title, item_no, item_name, points_B, points_A, ...``.

    Several rows can share one item number (the extra rows are notes);
    the first row for each ``section_id-item_no`` wins.
    """
    result = LoadResult()
    seen = set()

    for row in split_csv_rows(text):
        if len(row) < 6:
            result.skipped_rows += 1
            continue

        section_id, section_title, item_no_raw, item_name, points_b, points_a = (
            cell.strip() for cell in row[:6]
        )

        dedupe_key = f"{section_id}-{item_no_raw}"
        if dedupe_key in seen:
            continue
        seen.add(dedupe_key)

        try:
            item_no = int(item_no_raw)
        except ValueError:
            LOG.debug("Skipping procedure row with invalid item_no: %r", row)
            result.skipped_rows += 1
            continue

        result.entries.append(ProcedureEntry(
            # "初 診" -> "初診"
            name=_RE_WHITESPACE.sub("", item_name),
            code=f"{section_id}-{item_no}",
            section_id=section_id,
            section_title=section_title,
            item_no=item_no,
            points_b=_parse_points(points_b),
            points_a=_parse_points(points_a),
        ))

    return result


def extract_note_aliases(note: str) -> List[str]:
    """Split a notes cell on comma/slash separators into alias tokens."""
    aliases = []
    for token in _RE_NOTE_SEPARATORS.split(note or ""):
        token = _RE_NOTE_LABEL.sub("", token.strip()).strip()
        if token:
            aliases.append(token)
    return aliases


def parse_drugs(text: str) -> LoadResult:
    """
    Parse drug_reference.csv rows:
    ``display_name, generic_name, product_name, manufacturer, spec_unit, price_yen, notes, ...``.

    Rows are grouped by normalized generic name (display name when the generic
    name is blank). Every name variant and note alias of a group becomes an
    alias of one entry.
    """
    result = LoadResult()
    groups: Dict[str, Tuple[str, List[str], set]] = {}

    for row in split_csv_rows(text):
        if len(row) < 2:
            result.skipped_rows += 1
            continue

        display_name = row[0].strip()
        generic_name = row[1].strip() or display_name
        product_name = row[2].strip() if len(row) > 2 else ""
        notes = row[6] if len(row) > 6 else ""

        group_key = normalize_match_text(generic_name)
        if not group_key:
            LOG.debug("Skipping drug row without a usable name: %r", row)
            result.skipped_rows += 1
            continue

        if group_key not in groups:
            groups[group_key] = (generic_name, [], set())
        _, aliases, seen_aliases = groups[group_key]

        for alias in [generic_name, display_name, product_name, *extract_note_aliases(notes)]:
            alias_key = normalize_match_text(alias)
            if alias_key and alias_key not in seen_aliases:
                seen_aliases.add(alias_key)
                aliases.append(alias)

    for generic_name, aliases, _ in groups.values():
        result.entries.append(DrugEntry(
            generic_name=generic_name,
            code=f"DRUG:{generic_name}",
            aliases=tuple(aliases),
        ))

    return result


PARSERS: Dict[EntityKind, Callable[[str], LoadResult]] = {
    EntityKind.DISEASE: parse_diseases,
    EntityKind.PROCEDURE: parse_procedures,
    EntityKind.DRUG: parse_drugs,
}


@dataclass(frozen=True)
class MasterSources:
    """Raw CSV text of the three master tables."""
    disease_csv: str
    procedure_csv: str
    drug_csv: str

    def text_for(self, kind: EntityKind) -> str:
        return {
            EntityKind.DISEASE: self.disease_csv,
            EntityKind.PROCEDURE: self.procedure_csv,
            EntityKind.DRUG: self.drug_csv,
        }[EntityKind(kind)]

    @classmethod
    def from_directory(cls, master_dir: Path | str) -> MasterSources:
        """Read the three master files from ``master_dir``."""
        master_dir = Path(master_dir)
        texts = {}
        for kind, filename in MASTER_FILES.items():
            filepath = master_dir / filename
            if not filepath.exists():
                raise FileNotFoundError(f"Master file not found: {filepath}")
            texts[kind] = filepath.read_text(encoding="utf-8-sig")
        return cls(
            disease_csv=texts[EntityKind.DISEASE],
            procedure_csv=texts[EntityKind.PROCEDURE],
            drug_csv=texts[EntityKind.DRUG],
        )

    @classmethod
    def bundled(cls) -> MasterSources:
        """Master tables shipped inside the package."""
        return cls.from_directory(DATA_DIR)


class MasterDataCache:
    """
    Parsed master entries, loaded once per kind.

    Owned by a matcher; tests build their own instances instead of sharing one.
    ``reset()`` must not race with lookups, callers serialize it.
    """

    def __init__(self, sources: Optional[MasterSources] = None):
        self._sources = sources
        self._loaded: Dict[EntityKind, LoadResult] = {}

    @property
    def sources(self) -> MasterSources:
        if self._sources is None:
            self._sources = MasterSources.bundled()
        return self._sources

    def _load(self, kind: EntityKind) -> LoadResult:
        kind = EntityKind(kind)
        loaded = self._loaded.get(kind)
        if loaded is None:
            loaded = PARSERS[kind](self.sources.text_for(kind))
            loaded.entries = tuple(loaded.entries)
            self._loaded[kind] = loaded
            LOG.info(
                "Loaded %d %s entries (%d rows skipped)",
                len(loaded.entries), kind.value, loaded.skipped_rows,
            )
        return loaded

    def get_or_load(self, kind: EntityKind) -> Sequence[MasterEntry]:
        return self._load(kind).entries

    def skipped_rows(self, kind: EntityKind) -> int:
        return self._load(kind).skipped_rows

    def diseases(self) -> Sequence[DiseaseEntry]:
        return self.get_or_load(EntityKind.DISEASE)

    def procedures(self) -> Sequence[ProcedureEntry]:
        return self.get_or_load(EntityKind.PROCEDURE)

    def drugs(self) -> Sequence[DrugEntry]:
        return self.get_or_load(EntityKind.DRUG)

    def is_loaded(self, kind: EntityKind) -> bool:
        return EntityKind(kind) in self._loaded

    def reset(self) -> None:
        self._loaded.clear()
