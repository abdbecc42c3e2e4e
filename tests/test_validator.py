import pytest
from conftest import bd, make_doc, record

from qrrpalib.models import ComponentMatrix, DocumentMeta, LevyRates, TaxSplit, ValueSplit
from qrrpalib.ordinances import allowed_band
from qrrpalib.parser import parse_grid
from qrrpalib.validator import validate

OK_RATES = LevyRates(basic="1", sef="1")


def _has(messages, text):
    return any(text in m for m in messages)


def test_invalid_structure(config):
    res = validate(None, config, "Butuan City")
    assert res.score == 0
    assert res.errors == ["Invalid data structure"]
    assert res.findings == []


def test_clean_sheet_scores_100(sheet, config):
    doc = parse_grid(sheet.grid(), "clean.csv")
    res = validate(doc, config, "Butuan City")
    assert res.errors == []
    assert res.findings == []
    assert res.score == 100
    assert not _has(res.errors, "SUM MISMATCH")


def test_validation_is_repeatable(sheet, config):
    doc = parse_grid(sheet.grid())
    assert validate(doc, config, "Butuan City") == validate(doc, config, "Butuan City")


def test_score_weights(config):
    idle = record(
        land_area=-5,
        rpu=ValueSplit(machinery=1, total=1),
        av=ValueSplit(land=10, total=10),
        tax=TaxSplit(basic=10, sef=10, total=25),
        rates=LevyRates(basic="1", sef="1", idle="1"),
    )
    res = validate(make_doc(idle=[idle]), config, "Butuan City")

    assert len(res.findings) == 3
    assert _has(res.findings, "[Taxable Land Area] Total in C26 is 0")
    assert _has(res.findings, "[IDLE Row 1] [Cell Q40] Machinery RPU exists (1) but Market Value is 0.")
    assert _has(res.findings, "[IDLE Row 1] [Cell AA40] Idle/Special Levy Rate")

    assert len(res.errors) == 2
    assert _has(res.errors, "[IDLE Row 1] [Cell AD40] Tax Total mismatch")
    assert _has(res.errors, "[IDLE Row 1] [Cell C40] Negative Land Area detected.")

    assert res.score == 87


def test_score_floor(config):
    rec = record(land_area=-1, tax=TaxSplit(total=5), av=ValueSplit(total=1))
    res = validate(make_doc(taxable=[rec] * 10), config, "Butuan City")
    assert len(res.errors) > 20
    assert res.score == 0


# ---------- sums ----------
def _mv_doc(residential, total):
    mv = ComponentMatrix(land=bd(residential=residential, total=total),
                         row_total=bd(residential=residential, total=total))
    return make_doc(DocumentMeta(market_value=mv))


def test_market_value_vertical_tolerance(config):
    ok = validate(_mv_doc(100.0, 100.05), config, "Butuan City")
    assert not _has(ok.errors, "VERTICAL SUM MISMATCH in MARKET VALUE")

    bad = validate(_mv_doc(100.0, 100.06), config, "Butuan City")
    assert _has(bad.errors, "VERTICAL SUM MISMATCH in MARKET VALUE")


def test_rpu_vertical_is_exact(config):
    rpu = ComponentMatrix(land=bd(residential=1, total=1.01), row_total=bd(residential=1, total=1.01))
    res = validate(make_doc(DocumentMeta(rpu=rpu)), config, "Butuan City")
    assert _has(res.errors, "VERTICAL SUM MISMATCH in RPU")


def test_taxable_land_mismatch(config):
    meta = DocumentMeta(taxable_land=bd(residential=10, agricultural=5, total=20))
    res = validate(make_doc(meta), config, "Butuan City")
    assert _has(res.errors, "[Taxable Land Area] SUM MISMATCH")
    assert not _has(res.findings, "Taxable Land Area")


def test_horizontal_mismatch_per_classification(config):
    mv = ComponentMatrix(land=bd(residential=100, total=100), row_total=bd(residential=90, total=100))
    res = validate(make_doc(DocumentMeta(market_value=mv)), config, "Butuan City")
    assert _has(res.errors, "[Market Value residential] HORIZONTAL SUM MISMATCH")


def test_rpu_horizontal_per_classification(config):
    rpu = ComponentMatrix(
        land=bd(residential=2, total=2), building=bd(residential=1, total=1),
        row_total=bd(residential=2, total=3),
    )
    res = validate(make_doc(DocumentMeta(rpu=rpu)), config, "Butuan City")
    assert _has(res.errors, "[RPU residential] HORIZONTAL SUM MISMATCH")
    assert not _has(res.errors, "[RPU Grand Total]")


def test_rpu_horizontal_grand_total(config):
    rpu = ComponentMatrix(
        land=bd(residential=2, total=2), building=bd(residential=1, total=1),
        row_total=bd(residential=3, total=4),
    )
    res = validate(make_doc(DocumentMeta(rpu=rpu)), config, "Butuan City")
    assert _has(res.errors, "[RPU Grand Total] HORIZONTAL SUM MISMATCH")
    assert not _has(res.errors, "[RPU residential]")


def test_rpu_horizontal_counts_column_h(config):
    rpu = ComponentMatrix(
        land=bd(residential=1, total=1), other=bd(residential=1, total=1),
        row_total=bd(residential=2, total=2),
    )
    res = validate(make_doc(DocumentMeta(rpu=rpu)), config, "Butuan City")
    assert not _has(res.errors, "SUM MISMATCH")


@pytest.mark.parametrize("declared, flagged", [(100.05, False), (100.06, True)])
def test_market_value_horizontal_tolerance(config, declared, flagged):
    mv = ComponentMatrix(land=bd(residential=100, total=100), row_total=bd(residential=declared, total=100))
    res = validate(make_doc(DocumentMeta(market_value=mv)), config, "Butuan City")
    assert _has(res.errors, "[Market Value residential] HORIZONTAL SUM MISMATCH") is flagged


def test_horizontal_mismatch_grand_total(config):
    av = ComponentMatrix(land=bd(residential=100, total=100), row_total=bd(residential=100, total=100.5))
    res = validate(make_doc(DocumentMeta(assessed_value=av)), config, "Butuan City")
    assert _has(res.errors, "[Assessed Value Grand Total] HORIZONTAL SUM MISMATCH")


def test_value_without_rpu_is_a_finding(config):
    av = ComponentMatrix(land=bd(residential=500, total=500), row_total=bd(residential=500, total=500))
    res = validate(make_doc(DocumentMeta(assessed_value=av)), config, "Butuan City")
    assert "[residential] Has Assessed Value for Land (₱500.00) but RPU count is 0." in res.findings
    assert "[Total] Has Assessed Value for Land Total (₱500.00) but RPU count is 0." in res.findings


# ---------- assessment levels ----------
BAND_CONFIG = {"Test": {"Land": {"Residential": {"min": 20.0, "max": 20.0}}}}


def _level_doc(mv, av):
    meta = DocumentMeta(
        market_value=ComponentMatrix(land=bd(residential=mv, total=mv)),
        assessed_value=ComponentMatrix(land=bd(residential=av, total=av)),
    )
    return make_doc(meta)


@pytest.mark.parametrize("av, flagged", [(249, False), (150, False), (251, True), (149, True)])
def test_fixed_cell_level_band(av, flagged):
    res = validate(_level_doc(1000, av), BAND_CONFIG, "Test")
    assert _has(res.errors, "[Cell T11/L11] The Effective Assessment Level of Residential Land") is flagged


def test_level_message_shows_band():
    res = validate(_level_doc(1000, 251), BAND_CONFIG, "Test")
    msg = next(e for e in res.errors if "Effective Assessment Level" in e)
    assert "is at 25.10%" in msg
    assert "15-25%" in msg


@pytest.mark.parametrize("av, flagged", [(500, False), (900, True)])
def test_fixed_cell_machinery_level(config, av, flagged):
    meta = DocumentMeta(
        market_value=ComponentMatrix(machinery=bd(residential=1000, total=1000)),
        assessed_value=ComponentMatrix(machinery=bd(residential=av, total=av)),
    )
    res = validate(make_doc(meta), config, "Butuan City")
    hit = "[Cell V11/Q11] The Effective Assessment Level of Residential Machinery is at 90.00%"
    assert _has(res.errors, hit) is flagged


def test_missing_configuration_is_an_error():
    res = validate(_level_doc(1000, 200), {}, "Nowhere")
    assert _has(res.errors, "ASSESSMENT LEVEL CHECK FAILED: Configuration missing for Nowhere Residential Land")


def test_band_floor_at_zero():
    assert allowed_band({"min": 2, "max": 10}) == (0.0, 15)


def test_record_building_level(config):
    rec = record(
        rpu=ValueSplit(building=1, total=1),
        mv=ValueSplit(building=1000, total=1000),
        av=ValueSplit(building=900, total=900),
        rates=OK_RATES,
    )
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert _has(res.errors, "[TAXABLE Row 1] The Effective Assessment Level of Residential Building is at 90.00%")


def test_record_machinery_is_left_to_summary_check(config):
    rec = record(
        rpu=ValueSplit(machinery=1, total=1),
        mv=ValueSplit(machinery=1000, total=1000),
        av=ValueSplit(machinery=999, total=999),
        rates=OK_RATES,
    )
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert not _has(res.errors, "Effective Assessment Level")


LEVEL_RECORDS = {
    # Land is only checked by the generic per-record pass
    "Land": (ValueSplit(land=1, total=1), ValueSplit(land=1000, total=1000), ValueSplit(land=900, total=900), 1),
    "Building": (ValueSplit(building=1, total=1), ValueSplit(building=1000, total=1000),
                 ValueSplit(building=900, total=900), 2),
    "Other": (ValueSplit(other=1, total=1), ValueSplit(other=1000, total=1000), ValueSplit(other=900, total=900), 2),
}


@pytest.mark.parametrize("kind", list(LEVEL_RECORDS))
def test_record_level_reported_by_each_pass(config, kind):
    rpu, mv, av, expected = LEVEL_RECORDS[kind]
    rec = record(rpu=rpu, mv=mv, av=av, rates=OK_RATES)
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    hits = [e for e in res.errors if f"Residential {kind} is at 90.00%" in e]
    assert len(hits) == expected
    assert all(h.startswith("[TAXABLE Row 1]") for h in hits)
    assert res.score == 100 - 5 * expected - 1


def test_idle_records_skip_level_checks(config):
    rec = record(
        rpu=ValueSplit(land=1, total=1),
        mv=ValueSplit(land=1000, total=1000),
        av=ValueSplit(land=900, total=900),
        rates=OK_RATES,
    )
    res = validate(make_doc(idle=[rec]), config, "Butuan City")
    assert not _has(res.errors, "Effective Assessment Level")


def test_timberland_logic_finding(config):
    rec = record(
        classification="6. Timber Land",
        rpu=ValueSplit(land=1, total=1),
        mv=ValueSplit(land=1000, total=1000),
        av=ValueSplit(land=200, total=200),
        rates=OK_RATES,
    )
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert not _has(res.errors, "Effective Assessment Level")
    assert _has(res.findings, "[TAXABLE Row 1] [Logic Check] Timberland Land")


def test_unrecognised_classification_skips_levels(config):
    rec = record(
        classification="9. Unclassified",
        rpu=ValueSplit(land=1, total=1),
        mv=ValueSplit(land=1000, total=1000),
        av=ValueSplit(land=999, total=999),
        rates=OK_RATES,
    )
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert not _has(res.errors, "Effective Assessment Level")


# ---------- record structure ----------
def test_missing_levy_codes(config):
    rec = record(
        rpu=ValueSplit(land=1, total=1),
        mv=ValueSplit(land=1000, total=1000),
        av=ValueSplit(land=200, total=200),
        rates=LevyRates(basic="", sef="2"),
    )
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert _has(res.errors, "[TAXABLE Row 1] [Cell Y40] Basic Levy Rate (Col Y) is missing/invalid")
    assert not _has(res.errors, "SEF Levy Rate")


def test_record_totals(config):
    rec = record(
        rpu=ValueSplit(land=1, building=1, total=3),
        mv=ValueSplit(land=100, building=50, total=152),
    )
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert _has(res.errors, "[Cell J40] RPU Total mismatch: Analyzed 2 vs Reported 3")
    assert _has(res.errors, "[Cell S40] Market Value Total mismatch")


def test_record_market_value_tolerance_is_one_peso(config):
    rec = record(rpu=ValueSplit(land=1, total=1), mv=ValueSplit(land=100, total=101))
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert not _has(res.errors, "Market Value Total mismatch")


def test_negative_market_value(config):
    rec = record(mv=ValueSplit(land=-10, total=-10))
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert _has(res.errors, "[Cell S40] Negative Market Value detected.")


@pytest.mark.parametrize("total, flagged", [(20.05, False), (20.06, True)])
def test_tax_total_tolerance(config, total, flagged):
    rec = record(tax=TaxSplit(basic=10, sef=10, total=total))
    res = validate(make_doc(taxable=[rec]), config, "Butuan City")
    assert _has(res.errors, "[Cell AD40] Tax Total mismatch") is flagged
