"""
QRRPA spreadsheet parser.

Reads the fixed-layout Quarterly Report of Real Property Assessment into a
ParsedDocument:
  • metadata through per-field fallback chains (fixed cell → keyword scan → default)
  • the row 11-26 summary block for taxable land, RPU, Market Value and Assessed Value
  • the taxable and idle property lists, grouped by barangay

Business data problems are left for the validator; only an undecodable
file raises (ParseError, from qrrpalib.io).
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from .grid import CellGrid
from .io import read_grid
from .models import (
    CLASSIFICATION_KEYS, TOTAL_ROW, Breakdown, ComponentMatrix, DocumentMeta,
    LevyRates, ParsedDocument, PropertyRecord, TaxSplit, ValueSplit, class_row,
)
from .textutils import cell_text, contains_keyword, parse_number

logger = logging.getLogger(__name__)

KEYWORD_SCAN_ROWS = 30
SECTION_START_ROW = 10  # row 11
PROVINCE_HINTS = ("AGUSAN", "SURIGAO", "DINAGAT")

_DATA_ROW = re.compile(r"^\d+(\.\d+)?")
_PROVINCE_PREFIX = re.compile(r"Province of", re.I)
_PROVINCE_WORD = re.compile(r"Province", re.I)


# ---------- metadata resolution strategies ----------
class FixedCell:
    """Value at a known address, skipped when empty or still holding its label."""

    def __init__(self, address: str, label: Optional[str] = None):
        self.address = address
        self.label = label

    def __call__(self, grid: CellGrid) -> str:
        val = grid.text_at(self.address)
        if self.label and contains_keyword(val, self.label):
            return ""
        return val


class KeywordScan:
    """
    First row (of the top 30) whose column A mentions the keyword; returns
    the first non-empty, non-colon cell from `start_col` onwards.
    """

    def __init__(self, keyword: str, start_col: int = 1):
        self.keyword = keyword
        self.start_col = start_col

    def __call__(self, grid: CellGrid) -> str:
        for i in range(min(grid.n_rows, KEYWORD_SCAN_ROWS)):
            if not contains_keyword(grid.text(i, 0), self.keyword):
                continue
            row = grid.row(i)
            for j in range(self.start_col, len(row)):
                val = cell_text(row[j])
                if val and val != ":":
                    return val
        return ""


class PeriodCellProvince:
    """Province named in the period cell (C4), used when no label row exists."""

    def __init__(self, address: str = "C4", hints: Sequence[str] = PROVINCE_HINTS):
        self.address = address
        self.hints = hints

    def __call__(self, grid: CellGrid) -> str:
        val = grid.text_at(self.address)
        upper = val.upper()
        return val if any(h in upper for h in self.hints) else ""


class Literal:
    def __init__(self, value: str):
        self.value = value

    def __call__(self, grid: CellGrid) -> str:
        return self.value


FIELD_STRATEGIES = {
    "lgu_name": [FixedCell("C3", label="LGU"), KeywordScan("LGU", 1), Literal("Unknown LGU")],
    "period": [FixedCell("C4", label="Period"), KeywordScan("Period", 1), Literal("Unknown Period")],
    "barangay": [FixedCell("M3"), KeywordScan("Barangay", 1)],
    "assessor": [FixedCell("AB106"), KeywordScan("Assessor", 20)],
    "prepared_by": [FixedCell("V106"), KeywordScan("Prepared", 15)],
    "ordinance": [FixedCell("L114"), KeywordScan("Ordinance", 5)],
    "province": [KeywordScan("Province", 1), PeriodCellProvince("C4")],
}


def resolve_field(grid: CellGrid, strategies) -> str:
    for strategy in strategies:
        val = strategy(grid)
        if val:
            return val
    return ""


def clean_province(value: str) -> str:
    value = _PROVINCE_PREFIX.sub("", value, count=1)
    value = _PROVINCE_WORD.sub("", value, count=1)
    return value.strip()


def extract_metadata(grid: CellGrid) -> Dict[str, str]:
    meta = {name: resolve_field(grid, chain) for name, chain in FIELD_STRATEGIES.items()}
    meta["province"] = clean_province(meta["province"])
    return meta


# ---------- fixed-cell summary block ----------
def extract_column(grid: CellGrid, col: str, fallback: Optional[str] = None) -> Breakdown:
    """Rows 11-26 of one column; with `fallback`, empty/zero cells read the fallback column."""
    out: Breakdown = {}
    for key in CLASSIFICATION_KEYS + ("total",):
        row = class_row(key)
        val = parse_number(grid.get_by_address(f"{col}{row}"))
        if not val and fallback:
            val = parse_number(grid.get_by_address(f"{fallback}{row}"))
        out[key] = val
    return out


def extract_building_mv(grid: CellGrid) -> Breakdown:
    """
    Building market value: residential improvements span the two columns N
    and O, every other class uses P alone. The total adds all three.
    """
    num = lambda addr: parse_number(grid.get_by_address(addr))
    out: Breakdown = {}
    for key in CLASSIFICATION_KEYS:
        row = class_row(key)
        out[key] = num(f"N{row}") + num(f"O{row}") if key == "residential" else num(f"P{row}")
    out["total"] = num(f"N{TOTAL_ROW}") + num(f"O{TOTAL_ROW}") + num(f"P{TOTAL_ROW}")
    return out


def extract_summary(grid: CellGrid) -> Dict[str, object]:
    rpu = ComponentMatrix(
        land=extract_column(grid, "E"),
        building=extract_column(grid, "F"),
        machinery=extract_column(grid, "G"),
        other=extract_column(grid, "H"),
        other_imp=extract_column(grid, "I"),
        row_total=extract_column(grid, "K"),
    )
    market_value = ComponentMatrix(
        land=extract_column(grid, "L"),
        building=extract_building_mv(grid),
        machinery=extract_column(grid, "Q"),
        other_imp=extract_column(grid, "R"),
        row_total=extract_column(grid, "S"),
    )
    assessed_value = ComponentMatrix(
        land=extract_column(grid, "T", fallback="W"),
        building=extract_column(grid, "U"),
        machinery=extract_column(grid, "V"),
        other_imp=extract_column(grid, "W"),
        row_total=extract_column(grid, "X"),
    )
    return {
        "taxable_land": extract_column(grid, "C"),
        "rpu": rpu,
        "market_value": market_value,
        "assessed_value": assessed_value,
    }


# ---------- property lists ----------
def is_data_row(text: str) -> bool:
    return bool(_DATA_ROW.match(text))


def section_for_header(text: str) -> Optional[str]:
    """
    Section switch for a leading cell: 'taxable', 'idle', '' (suspend
    capture) or None when the row is not a section header.
    """
    upper = text.upper()
    if upper.startswith("TAXABLE"):
        return "taxable"
    if upper.startswith("EXEMPT"):
        return ""
    if "RESTRICTIONS" in upper:
        return ""
    if "IDLE" in upper:
        return "idle"
    if "Grand Total" in text or "Note:" in text:
        return ""
    return None


def parse_record(row: List, classification: str, barangay: str, sheet_row: int) -> PropertyRecord:
    num = lambda i: parse_number(row[i]) if i < len(row) else 0.0
    txt = lambda i: cell_text(row[i]) if i < len(row) else ""

    # layout variant with an empty column A; only land area and RPU shift
    offset = 1 if not txt(0) else 0

    return PropertyRecord(
        barangay=barangay,
        classification=classification,
        land_area=num(1 + offset),
        rpu=ValueSplit(
            land=num(2 + offset),
            building=num(3 + offset),
            machinery=num(4 + offset),
            other=num(5 + offset),
            total=num(9 + offset),
        ),
        market_value=ValueSplit(
            land=num(11),
            # N+O (residential pair) plus P (everything else) covers both conventions
            building=num(13) + num(14) + num(15),
            machinery=num(16),
            other=num(17),
            total=num(18),
        ),
        assessed_value=ValueSplit(
            land=num(19),
            building=num(20),
            machinery=num(21),
            other=num(22),
            total=num(23),
        ),
        tax=TaxSplit(basic=num(27), sef=num(28), total=num(29)),
        rates=LevyRates(basic=txt(24), sef=txt(25), idle=txt(26)),
        sheet_row=sheet_row,
    )


def extract_sections(grid: CellGrid, header_barangay: str = "") -> Dict[str, List[PropertyRecord]]:
    sections: Dict[str, List[PropertyRecord]] = {"taxable": [], "idle": []}
    current = None
    barangay = None

    for i in range(SECTION_START_ROW, grid.n_rows):
        lead = grid.text(i, 0) or grid.text(i, 1)

        switch = section_for_header(lead)
        if switch is not None:
            current = switch or None
            continue

        if not current:
            continue

        if is_data_row(lead):
            sections[current].append(
                parse_record(grid.row(i), lead, barangay or header_barangay or "Unknown", i + 1)
            )
        elif len(lead) > 2 and "Total" not in lead:
            barangay = lead

    return sections


# ---------- entry points ----------
def parse_grid(grid: CellGrid, source_name: str = "") -> ParsedDocument:
    fields = extract_metadata(grid)
    summary = extract_summary(grid)
    meta = DocumentMeta(**fields, **summary)
    sections = extract_sections(grid, fields["barangay"])
    logger.debug(
        "Parsed %s: LGU=%r province=%r taxable=%d idle=%d",
        source_name or "<grid>", meta.lgu_name, meta.province,
        len(sections["taxable"]), len(sections["idle"]),
    )
    return ParsedDocument(meta=meta, sections=sections, source_name=source_name)


def parse(raw: bytes, filename: Optional[str] = None) -> ParsedDocument:
    """Decode and parse an uploaded QRRPA file. Raises ParseError if undecodable."""
    return parse_grid(read_grid(raw, filename), source_name=filename or "")
