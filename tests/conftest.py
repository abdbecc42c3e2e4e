import csv
import io

import pytest
from openpyxl import Workbook

from qrrpalib.grid import CellGrid, address_to_index
from qrrpalib.models import (
    DocumentMeta, LevyRates, ParsedDocument, PropertyRecord, TaxSplit, ValueSplit,
    empty_breakdown,
)
from qrrpalib.ordinances import default_ordinances


class Sheet:
    """Blank QRRPA-sized sheet filled cell by cell."""

    def __init__(self, n_rows=120, n_cols=30):
        self.rows = [["" for _ in range(n_cols)] for _ in range(n_rows)]

    def set(self, address, value):
        r, c = address_to_index(address)
        self.rows[r][c] = value
        return self

    def put(self, row_number, values):
        """Write {col_index: value} into a 1-based sheet row."""
        for col, value in values.items():
            self.rows[row_number - 1][col] = value
        return self

    def grid(self):
        return CellGrid(self.rows)

    def csv_bytes(self):
        buf = io.StringIO()
        csv.writer(buf).writerows(self.rows)
        return buf.getvalue().encode("utf-8")

    def xlsx_bytes(self):
        wb = Workbook()
        ws = wb.active
        for r, row in enumerate(self.rows, start=1):
            for c, value in enumerate(row, start=1):
                if value != "":
                    ws.cell(row=r, column=c, value=value)
        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()


def bd(**values):
    out = empty_breakdown()
    out.update(values)
    return out


def residential_row(label="1. Residential", land_area=100, rpu_land=1, mv_land=500000, av_land=100000,
                    basic="1", sef="1", idle=""):
    return {
        0: label, 1: land_area, 2: rpu_land, 9: rpu_land,
        11: mv_land, 18: mv_land,
        19: av_land, 23: av_land,
        24: basic, 25: sef, 26: idle,
    }


def clean_sheet():
    """One barangay, one residential taxable row, every total consistent."""
    s = Sheet()
    s.set("A3", "LGU").set("C3", "Butuan City")
    s.set("A4", "Period").set("C4", "1st Quarter 2025")
    s.set("M3", "Poblacion")
    s.set("C11", 100).set("C26", 100)
    s.set("E11", 1).set("E26", 1).set("K11", 1).set("K26", 1)
    s.set("L11", 500000).set("L26", 500000).set("S11", 500000).set("S26", 500000)
    s.set("T11", 100000).set("T26", 100000).set("X11", 100000).set("X26", 100000)
    s.put(30, {0: "TAXABLE PROPERTIES"})
    s.put(31, {0: "Barangay Poblacion"})
    s.put(32, residential_row())
    return s


def make_doc(meta=None, taxable=(), idle=()):
    return ParsedDocument(
        meta=meta or DocumentMeta(),
        sections={"taxable": list(taxable), "idle": list(idle)},
        source_name="test.csv",
    )


def record(classification="1. Residential", barangay="Poblacion", land_area=0.0, rpu=None, mv=None, av=None,
           tax=None, rates=None, sheet_row=40):
    return PropertyRecord(
        barangay=barangay,
        classification=classification,
        land_area=land_area,
        rpu=rpu or ValueSplit(),
        market_value=mv or ValueSplit(),
        assessed_value=av or ValueSplit(),
        tax=tax or TaxSplit(),
        rates=rates or LevyRates(),
        sheet_row=sheet_row,
    )


@pytest.fixture
def config():
    return default_ordinances()


@pytest.fixture
def sheet():
    return clean_sheet()


