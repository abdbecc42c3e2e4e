"""
Data models for parsed QRRPA documents and their validation results.
"""

from dataclasses import dataclass, field
from typing import Dict, List

# Rows 11-25 of the summary block, in sheet order; row 26 holds `total`.
CLASSIFICATION_KEYS = (
    "residential", "agricultural", "commercial", "industrial", "mineral", "timberland", "special",
    "special_machineries", "special_cultural", "special_scientific", "special_hospital",
    "special_lvua", "special_gocc", "special_recreation", "special_others",
)
FIRST_CLASS_ROW = 11
TOTAL_ROW = 26

Breakdown = Dict[str, float]


def empty_breakdown() -> Breakdown:
    out = {key: 0.0 for key in CLASSIFICATION_KEYS}
    out["total"] = 0.0
    return out


def class_row(key: str) -> int:
    """Spreadsheet row (1-based) of a classification key; 26 for 'total'."""
    if key == "total":
        return TOTAL_ROW
    return FIRST_CLASS_ROW + CLASSIFICATION_KEYS.index(key)


@dataclass(frozen=True)
class ComponentMatrix:
    """One value family (RPU, MV or AV) broken down by component column."""
    land: Breakdown = field(default_factory=empty_breakdown)
    building: Breakdown = field(default_factory=empty_breakdown)
    machinery: Breakdown = field(default_factory=empty_breakdown)
    other: Breakdown = field(default_factory=empty_breakdown)
    other_imp: Breakdown = field(default_factory=empty_breakdown)
    row_total: Breakdown = field(default_factory=empty_breakdown)


@dataclass(frozen=True)
class ValueSplit:
    land: float = 0.0
    building: float = 0.0
    machinery: float = 0.0
    other: float = 0.0
    total: float = 0.0

    def component_sum(self) -> float:
        return self.land + self.building + self.machinery + self.other


@dataclass(frozen=True)
class TaxSplit:
    basic: float = 0.0
    sef: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class LevyRates:
    """Free-text levy rate annotations (columns Y, Z, AA)."""
    basic: str = ""
    sef: str = ""
    idle: str = ""


@dataclass(frozen=True)
class PropertyRecord:
    """One per-barangay, per-classification row of the taxable or idle list"""
    barangay: str
    classification: str
    land_area: float = 0.0
    rpu: ValueSplit = field(default_factory=ValueSplit)
    market_value: ValueSplit = field(default_factory=ValueSplit)
    assessed_value: ValueSplit = field(default_factory=ValueSplit)
    tax: TaxSplit = field(default_factory=TaxSplit)
    rates: LevyRates = field(default_factory=LevyRates)
    sheet_row: int = 0


@dataclass(frozen=True)
class DocumentMeta:
    lgu_name: str = "Unknown LGU"
    province: str = ""
    period: str = "Unknown Period"
    barangay: str = ""
    prepared_by: str = ""
    assessor: str = ""
    ordinance: str = ""
    taxable_land: Breakdown = field(default_factory=empty_breakdown)
    rpu: ComponentMatrix = field(default_factory=ComponentMatrix)
    market_value: ComponentMatrix = field(default_factory=ComponentMatrix)
    assessed_value: ComponentMatrix = field(default_factory=ComponentMatrix)

    @property
    def assessed_value_total(self) -> float:
        return self.assessed_value.row_total["total"]


@dataclass(frozen=True)
class ParsedDocument:
    """Structured QRRPA document produced by the parser"""
    meta: DocumentMeta
    sections: Dict[str, List[PropertyRecord]]
    source_name: str = ""

    @property
    def data(self) -> Dict[str, List[PropertyRecord]]:
        return self.sections

    def barangays(self) -> List[str]:
        seen: List[str] = []
        for records in self.sections.values():
            for rec in records:
                if rec.barangay not in seen:
                    seen.append(rec.barangay)
        return seen


@dataclass
class ValidationResult:
    score: int
    findings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
