"""
QRRPA validation rules.

validate() runs every rule against a ParsedDocument and returns a
ValidationResult. Rules append to two lists:
  • errors   – arithmetic/structural mismatches and assessment level violations
  • findings – softer anomalies that need a human look

Score = 100 - 5 per error - 1 per finding, floored at 0.
"""

from typing import Dict, List, Optional

from .models import (
    CLASSIFICATION_KEYS, Breakdown, ComponentMatrix, ParsedDocument, PropertyRecord, ValidationResult,
    class_row,
)
from .ordinances import OrdinanceConfig, allowed_band, canonical_class, expected_rate, match_classification

ERROR_WEIGHT = 5
FINDING_WEIGHT = 1
SUM_TOLERANCE = 0.05
MV_RECORD_TOLERANCE = 1.0
RATE_VARIANCE = 5.0

COMPONENT_LABELS = {
    "land": "Land",
    "building": "Building",
    "machinery": "Machinery",
    "other_imp": "Other Improvements",
}
RECORD_KIND = {"land": "Land", "building": "Building", "machinery": "Machinery", "other": "Other"}
SECTION_ORDER = ("taxable", "exempt", "privatelyOwned", "idle")


# ---------- helpers ----------
def _off(diff: float, tolerance: float) -> bool:
    # rounded so that a difference of exactly the tolerance never trips
    return round(abs(diff), 6) > tolerance


def _money(x: float) -> str:
    return f"₱{x:,.2f}"


def _num(x: float) -> str:
    return f"{x:g}"


def _column_sum(breakdown: Breakdown) -> float:
    return sum(breakdown.get(key, 0.0) for key in CLASSIFICATION_KEYS)


class _Report:
    def __init__(self):
        self.findings: List[str] = []
        self.errors: List[str] = []

    def result(self) -> ValidationResult:
        score = max(0, 100 - ERROR_WEIGHT * len(self.errors) - FINDING_WEIGHT * len(self.findings))
        return ValidationResult(score=score, findings=list(self.findings), errors=list(self.errors))


# ---------- rule 1: taxable land ----------
def check_taxable_land(tl: Breakdown, report: _Report) -> None:
    computed = _column_sum(tl)
    if _off(computed - tl["total"], SUM_TOLERANCE):
        report.errors.append(
            f"[Taxable Land Area] SUM MISMATCH: sum of classes ({computed:,.2f}) "
            f"does not match Total in C26 ({tl['total']:,.2f})."
        )
    elif tl["total"] == 0:
        report.findings.append("[Taxable Land Area] Total in C26 is 0 or missing.")


# ---------- rules 2-3, 5, 7: vertical / horizontal sums ----------
def check_vertical(matrix: ComponentMatrix, family: str, tolerance: float, report: _Report,
                   include_row_total: bool = False) -> None:
    columns = dict(COMPONENT_LABELS)
    if include_row_total:
        columns["row_total"] = "Grand Total"
    mismatches = []
    for attr, label in columns.items():
        data = getattr(matrix, attr)
        diff = _column_sum(data) - data["total"]
        if _off(diff, tolerance):
            mismatches.append(f"{label} (Diff: {diff:,.2f})" if tolerance else f"{label} (Diff: {_num(diff)})")
    if mismatches:
        report.errors.append(
            f"VERTICAL SUM MISMATCH in {family} (Calculated vs Row 26 Total): {', '.join(mismatches)}"
        )


def check_horizontal(matrix: ComponentMatrix, family: str, total_col: str, tolerance: float,
                     report: _Report, include_other: bool = False) -> None:
    fmt = _money if tolerance else _num
    parts = ["land", "building", "machinery"] + (["other"] if include_other else []) + ["other_imp"]

    for key in CLASSIFICATION_KEYS + ("total",):
        row_sum = sum(getattr(matrix, p)[key] for p in parts)
        declared = matrix.row_total[key]
        if not _off(row_sum - declared, tolerance):
            continue
        if key == "total":
            report.errors.append(
                f"[{family} Grand Total] HORIZONTAL SUM MISMATCH: sum of row {class_row(key)} totals "
                f"({fmt(row_sum)}) does not match {total_col}{class_row(key)} ({fmt(declared)})."
            )
        else:
            report.errors.append(
                f"[{family} {key}] HORIZONTAL SUM MISMATCH: row {class_row(key)} components "
                f"({fmt(row_sum)}) do not match Total in Col {total_col} ({fmt(declared)})."
            )


# ---------- rules 6-7: value without unit count ----------
def check_unit_consistency(matrix: ComponentMatrix, rpu: ComponentMatrix, family: str, report: _Report) -> None:
    for key in CLASSIFICATION_KEYS + ("total",):
        where = "Total" if key == "total" else key
        suffix = " Total" if key == "total" else ""
        for attr, label in COMPONENT_LABELS.items():
            value = getattr(matrix, attr)[key]
            units = getattr(rpu, attr).get(key, 0)
            if value > 0 and not units:
                report.findings.append(
                    f"[{where}] Has {family} for {label}{suffix} ({_money(value)}) but RPU count is 0."
                )


# ---------- rules 8-9: fixed-cell assessment levels ----------
def check_fixed_levels(mv: Breakdown, av: Breakdown, kind: str, av_col: str, mv_col: str,
                       config: Optional[OrdinanceConfig], scope: str, report: _Report) -> None:
    for key in CLASSIFICATION_KEYS:
        mv_val, av_val = mv.get(key, 0), av.get(key, 0)
        if not (mv_val > 0 and av_val > 0):
            continue
        cls = canonical_class(key)
        row = class_row(key)
        cell = f"[Cell {av_col}{row}/{mv_col}{row}]"
        expected = expected_rate(config, scope, kind, cls)
        if expected is None:
            report.errors.append(
                f"{cell} ASSESSMENT LEVEL CHECK FAILED: Configuration missing for {scope} {cls} {kind}. "
                f"Cannot validate Assessment Level. Please check Ordinance Settings."
            )
            continue
        actual = av_val / mv_val * 100
        lo, hi = allowed_band(expected, RATE_VARIANCE)
        if actual < lo or actual > hi:
            report.errors.append(
                f"{cell} The Effective Assessment Level of {cls} {kind} is at {actual:.2f}%. "
                f"(should be {_num(expected['min'])}% - {_num(expected['max'])}% "
                f"with +/-5% variance: {_num(lo)}-{_num(hi)}%)"
            )


# ---------- rules 4 and 10: per-record assessment levels ----------
def check_record_levels(record: PropertyRecord, prefix: str, components, config: Optional[OrdinanceConfig],
                        scope: str, report: _Report) -> None:
    cls = match_classification(record.classification)
    if cls is None:
        return
    for comp in components:
        kind = RECORD_KIND[comp]
        mv = getattr(record.market_value, comp)
        av = getattr(record.assessed_value, comp)
        if not (mv > 0 and av > 0):
            continue
        expected = expected_rate(config, scope, kind, cls)
        if expected is None:
            report.errors.append(
                f"{prefix} ASSESSMENT LEVEL CHECK FAILED: Configuration missing for {scope} {cls} {kind}. "
                f"Cannot validate Assessment Level. Please check Ordinance Settings."
            )
            continue
        actual = av / mv * 100
        lo, hi = allowed_band(expected, RATE_VARIANCE)
        if actual < lo or actual > hi:
            report.errors.append(
                f"{prefix} The Effective Assessment Level of {cls} {kind} is at {actual:.2f}%. "
                f"(should be {_num(expected['min'])}% - {_num(expected['max'])}% "
                f"with +/-5% variance: {_num(lo)}-{_num(hi)}%)"
            )
        if cls == "Timberland":
            report.findings.append(
                f"{prefix} [Logic Check] Timberland {kind}: MV={mv:,.2f} | AV={av:,.2f} | "
                f"Rate={actual:.4f}% (Target: {_num(expected['min'])}-{_num(expected['max'])}% "
                f"-> Allowed: {_num(lo)}-{_num(hi)}%)"
            )


# Building and Other are checked by both per-record passes; Machinery only
# through the fixed-cell rule.
ROW_LEVEL_COMPONENTS = ("building", "other")
GENERIC_LEVEL_COMPONENTS = ("land", "building", "other")


# ---------- rule 11: structural record checks ----------
def _has_levy_code(val: str) -> bool:
    return "1" in val or "2" in val


def check_record(record: PropertyRecord, prefix: str, report: _Report) -> None:
    cell = lambda col: f"[Cell {col}{record.sheet_row}]"

    rpu_sum = record.rpu.component_sum()
    if _off(record.rpu.total - rpu_sum, 0):
        report.errors.append(
            f"{prefix} {cell('J')} RPU Total mismatch: Analyzed {_num(rpu_sum)} vs Reported {_num(record.rpu.total)}"
        )

    mv_sum = record.market_value.component_sum()
    if _off(record.market_value.total - mv_sum, MV_RECORD_TOLERANCE):
        report.errors.append(
            f"{prefix} {cell('S')} Market Value Total mismatch: "
            f"Analyzed {mv_sum:,.2f} vs Reported {record.market_value.total:,.2f}"
        )

    for comp, col, label in (("land", "L", "Land"), ("building", "O", "Building"),
                             ("machinery", "Q", "Machinery"), ("other", "R", "Other Imp.")):
        units = getattr(record.rpu, comp)
        if units > 0 and getattr(record.market_value, comp) == 0:
            report.findings.append(f"{prefix} {cell(col)} {label} RPU exists ({_num(units)}) but Market Value is 0.")

    tax_sum = record.tax.basic + record.tax.sef
    if _off(record.tax.total - tax_sum, SUM_TOLERANCE):
        report.errors.append(
            f"{prefix} {cell('AD')} Tax Total mismatch: Basic({record.tax.basic:,.2f}) + "
            f"SEF({record.tax.sef:,.2f}) != Total({record.tax.total:,.2f})"
        )

    if record.land_area < 0:
        report.errors.append(f"{prefix} {cell('C')} Negative Land Area detected.")
    if record.market_value.total < 0:
        report.errors.append(f"{prefix} {cell('S')} Negative Market Value detected.")

    if record.assessed_value.total > 0:
        if not _has_levy_code(record.rates.basic):
            report.errors.append(
                f"{prefix} {cell('Y')} Basic Levy Rate (Col Y) is missing/invalid (should be 1 or 2), "
                f"but Assessed Value exists."
            )
        if not _has_levy_code(record.rates.sef):
            report.errors.append(
                f"{prefix} {cell('Z')} SEF Levy Rate (Col Z) is missing/invalid (should be 1 or 2), "
                f"but Assessed Value exists."
            )
        if any(ch in "123456789" for ch in record.rates.idle):
            report.findings.append(
                f'{prefix} {cell("AA")} Idle/Special Levy Rate (Col AA) detected: "{record.rates.idle}". '
                f"Please verify if this property is truly Idle."
            )


# ---------- entry point ----------
def validate(doc: Optional[ParsedDocument], config: Optional[OrdinanceConfig], scope: str) -> ValidationResult:
    """Run every rule; never raises for business data problems."""
    sections: Optional[Dict[str, List[PropertyRecord]]] = getattr(doc, "data", None)
    if doc is None or sections is None:
        return ValidationResult(score=0, findings=[], errors=["Invalid data structure"])

    report = _Report()
    meta = doc.meta
    rpu, mv, av = meta.rpu, meta.market_value, meta.assessed_value
    taxable = sections.get("taxable", [])

    # 1
    check_taxable_land(meta.taxable_land, report)

    # 2-3
    check_vertical(rpu, "RPU", 0, report)
    check_horizontal(rpu, "RPU", "K", 0, report, include_other=True)

    # 4
    for index, record in enumerate(taxable):
        check_record_levels(record, f"[TAXABLE Row {index + 1}]", ROW_LEVEL_COMPONENTS, config, scope, report)

    # 5-6
    check_vertical(mv, "MARKET VALUE", SUM_TOLERANCE, report, include_row_total=True)
    check_horizontal(mv, "Market Value", "S", SUM_TOLERANCE, report)
    check_unit_consistency(mv, rpu, "Market Value", report)

    # 7
    check_vertical(av, "ASSESSED VALUE", SUM_TOLERANCE, report, include_row_total=True)
    check_horizontal(av, "Assessed Value", "X", SUM_TOLERANCE, report)
    check_unit_consistency(av, rpu, "Assessed Value", report)

    # 8-9
    check_fixed_levels(mv.land, av.land, "Land", "T", "L", config, scope, report)
    check_fixed_levels(mv.machinery, av.machinery, "Machinery", "V", "Q", config, scope, report)

    # 10-11
    for section in SECTION_ORDER:
        for index, record in enumerate(sections.get(section) or []):
            prefix = f"[{section.upper()} Row {index + 1}]"
            if section == "taxable":
                check_record_levels(record, prefix, GENERIC_LEVEL_COMPONENTS, config, scope, report)
            check_record(record, prefix, report)

    return report.result()
