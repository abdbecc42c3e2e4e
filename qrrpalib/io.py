from pathlib import Path
from typing import Optional
import io, csv, logging
import pandas as pd
from openpyxl import load_workbook

from .exceptions import ParseError
from .grid import CellGrid

logger = logging.getLogger(__name__)

COMMON_ENCODINGS = ["utf-8-sig", "utf-8", "latin-1", "cp1252"]
COMMON_SEPS = [",", ";", "\t", "|"]
XLSX_EXTS = {".xlsx", ".xlsm"}
XLS_EXTS = {".xls"}
CSV_EXTS = {".csv", ".txt"}
ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

def _sniff_sep(sample: str) -> str:
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters="".join(COMMON_SEPS))
        return dialect.delimiter
    except csv.Error:
        counts = {sep: sample.count(sep) for sep in COMMON_SEPS}
        return max(counts, key=counts.get) if any(counts.values()) else ","

def detect_format(raw: bytes, filename: Optional[str] = None) -> str:
    ext = Path(filename).suffix.lower() if filename else ""
    if ext in XLSX_EXTS:
        return "xlsx"
    if ext in XLS_EXTS:
        return "xls"
    if ext in CSV_EXTS:
        return "csv"
    if raw.startswith(ZIP_MAGIC):
        return "xlsx"
    if raw.startswith(OLE_MAGIC):
        return "xls"
    return "csv"

def _read_csv_grid(raw: bytes) -> CellGrid:
    """
    Robust CSV loader:
      • Tries multiple encodings
      • Sniffs delimiter
      • Keeps blank lines and ragged rows so row numbers match the sheet
    """
    head_text = raw[:32768].decode("utf-8", errors="ignore")
    sep = _sniff_sep(head_text)

    last_err = None
    for enc in COMMON_ENCODINGS:
        try:
            text = raw.decode(enc)
        except UnicodeDecodeError as e:
            last_err = e
            continue
        # widest row first; pandas otherwise drops cells past the first line's width
        width = max((len(r) for r in csv.reader(io.StringIO(text), delimiter=sep)), default=0)
        if width == 0:
            return CellGrid([])
        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=sep,
                header=None,
                names=list(range(width)),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
                engine="python",
            )
        except (ValueError, csv.Error, pd.errors.ParserError) as e:
            last_err = e
            continue
        return CellGrid(df.values.tolist())

    raise ValueError(f"Unable to parse CSV; unknown format/encoding ({last_err}).")

def _read_xlsx_grid(raw: bytes) -> CellGrid:
    wb = load_workbook(io.BytesIO(raw), data_only=True)
    try:
        ws = wb.worksheets[0]
        # anchored at A1 so addresses like C3 stay valid even with empty leading rows
        rows = ws.iter_rows(
            min_row=1, min_col=1,
            max_row=ws.max_row, max_col=ws.max_column,
            values_only=True,
        )
        return CellGrid([list(r) for r in rows])
    finally:
        wb.close()

def _read_xls_grid(raw: bytes) -> CellGrid:
    df = pd.read_excel(io.BytesIO(raw), header=None, sheet_name=0, dtype=object)
    return CellGrid(df.values.tolist())

def read_grid(raw: bytes, filename: Optional[str] = None) -> CellGrid:
    """Decode uploaded bytes into a CellGrid; ParseError when that is impossible."""
    name = filename or "<upload>"
    if not raw:
        raise ParseError(f"{name} is missing or empty.", filename=name)

    fmt = detect_format(raw, filename)
    readers = {"csv": _read_csv_grid, "xlsx": _read_xlsx_grid, "xls": _read_xls_grid}
    try:
        grid = readers[fmt](raw)
    except ParseError:
        raise
    except Exception as e:
        raise ParseError(f"Could not read {name} as {fmt.upper()}: {e}", filename=name) from e

    logger.debug("Decoded %s as %s: %d rows x %d cols", name, fmt, grid.n_rows, grid.n_cols)
    return grid

def read_grid_from_path(path: Path) -> CellGrid:
    path = Path(path)
    if not path.exists():
        raise ParseError(f"{path} is missing or empty.", filename=path.name)
    return read_grid(path.read_bytes(), path.name)

def save_csv_bytes(df: pd.DataFrame) -> bytes:
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    return buf.getvalue().encode("utf-8")

def save_xlsx_bytes(df: pd.DataFrame, sheet_name: str = "Compilation") -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    return buf.getvalue()
