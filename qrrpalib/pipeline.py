"""
Batch review of QRRPA uploads.

Each file is parsed, assigned a province/city scope, validated against the
ordinance table and summarised as one row of a compilation table. Files are
processed one after another with a short pause in between so a host UI
can repaint; a file that cannot be decoded is recorded and skipped.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple

import pandas as pd
from rapidfuzz import fuzz as rf_fuzz, process as rf_process

from .exceptions import ParseError
from .io import save_csv_bytes, save_xlsx_bytes
from .models import ParsedDocument, ValidationResult
from .ordinances import DEFAULT_SCOPE, MUNICIPALITY_TO_PROVINCE, OrdinanceConfig
from .parser import parse
from .textutils import norm_text, token_set
from .validator import validate

logger = logging.getLogger(__name__)

SCOPE_MATCH_CUTOFF = 90
COMPILATION_COLUMNS = [
    "File Name", "LGU", "Period", "Barangay", "Ordinance", "Assessor", "Prepared By",
    "Scope", "Barangay Count", "Score", "Findings Count", "Errors Count", "Findings", "Errors",
]

# municipalities with the most tokens first so "Del Carmen" wins over "Carmen"
_MUNICIPALITY_TOKENS = sorted(
    ((token_set(name), name) for name in MUNICIPALITY_TO_PROVINCE),
    key=lambda t: (-len(t[0]), t[1]),
)


@dataclass
class FileReview:
    index: int
    file_name: str
    document: ParsedDocument
    scope: str
    scope_source: str
    result: ValidationResult

    def as_row(self) -> dict:
        meta = self.document.meta
        return {
            "File Name": self.file_name,
            "LGU": meta.lgu_name,
            "Period": meta.period,
            "Barangay": meta.barangay,
            "Ordinance": meta.ordinance,
            "Assessor": meta.assessor,
            "Prepared By": meta.prepared_by,
            "Scope": self.scope,
            "Barangay Count": len(self.document.barangays()),
            "Score": self.result.score,
            "Findings Count": len(self.result.findings),
            "Errors Count": len(self.result.errors),
            "Findings": "; ".join(self.result.findings),
            "Errors": "; ".join(self.result.errors),
        }


@dataclass
class FileError:
    index: int
    file_name: str
    message: str


@dataclass
class BatchResult:
    reviews: List[FileReview] = field(default_factory=list)
    errors: List[FileError] = field(default_factory=list)
    cancelled: bool = False

    def table(self) -> pd.DataFrame:
        return compilation_table(self.reviews)


# ---------- scope detection ----------
def _match_config_key(name: str, config: OrdinanceConfig) -> Optional[str]:
    if not name or not config:
        return None
    wanted = norm_text(name)
    for key in config:
        if norm_text(key) == wanted:
            return key
    hit = rf_process.extractOne(
        wanted, list(config), scorer=rf_fuzz.ratio,
        processor=norm_text, score_cutoff=SCOPE_MATCH_CUTOFF,
    )
    return hit[0] if hit else None


def _province_of_municipality(lgu_name: str) -> Optional[str]:
    tokens = token_set(lgu_name)
    if not tokens:
        return None
    for muni_tokens, name in _MUNICIPALITY_TOKENS:
        if muni_tokens and muni_tokens <= tokens:
            return MUNICIPALITY_TO_PROVINCE[name]
    return None


def _lgu_as_scope(lgu_name: str, config: OrdinanceConfig) -> Optional[str]:
    wanted = norm_text(lgu_name)
    if not wanted:
        return None
    for key in config:
        if norm_text(key) == wanted:
            return key
    # "CITY OF BUTUAN" style names
    for key in config:
        if token_set(key) == token_set(lgu_name):
            return key
    return None


def resolve_scope(doc: ParsedDocument, config: OrdinanceConfig, forced: Optional[str] = None,
                  default: str = DEFAULT_SCOPE) -> Tuple[str, str]:
    """
    (scope, source) for a parsed file. Order: forced override, parsed
    province, municipality → province, LGU name as a scope key, default.
    """
    if forced:
        return forced, "forced"

    meta = doc.meta
    scope = _match_config_key(meta.province, config)
    if scope:
        return scope, "province"

    province = _province_of_municipality(meta.lgu_name)
    if province:
        return (_match_config_key(province, config) or province), "municipality"

    scope = _lgu_as_scope(meta.lgu_name, config or {})
    if scope:
        return scope, "lgu"

    return default, "default"


# ---------- batch ----------
def review_file(index: int, file_name: str, raw: bytes, config: OrdinanceConfig,
                forced_scope: Optional[str] = None, default_scope: str = DEFAULT_SCOPE) -> FileReview:
    doc = parse(raw, file_name)
    scope, source = resolve_scope(doc, config, forced_scope, default_scope)
    result = validate(doc, config, scope)
    logger.info(
        "%s: LGU=%s scope=%s (%s) score=%d errors=%d findings=%d",
        file_name, doc.meta.lgu_name, scope, source, result.score, len(result.errors), len(result.findings),
    )
    return FileReview(index, file_name, doc, scope, source, result)


def review_batch(
    files: Iterable[Tuple[str, bytes]],
    config: OrdinanceConfig,
    forced_scope: Optional[str] = None,
    default_scope: str = DEFAULT_SCOPE,
    on_progress: Optional[Callable[[dict], None]] = None,
    pause: float = 0.01,
    should_stop: Optional[Callable[[], bool]] = None,
) -> BatchResult:
    """
    Review (file name, bytes) pairs in order.
      • ParseError is recorded per file and the batch continues
      • `should_stop` is polled before each file; reviews already done are kept
    """
    files = list(files)
    out = BatchResult()
    total = len(files)

    for i, (name, raw) in enumerate(files):
        if should_stop and should_stop():
            logger.info("Batch cancelled after %d of %d files", i, total)
            out.cancelled = True
            break
        if on_progress:
            on_progress({"current": i + 1, "total": total, "fileName": name, "message": f"Processing {name}..."})
        try:
            out.reviews.append(review_file(i, name, raw, config, forced_scope, default_scope))
        except ParseError as e:
            logger.warning("Failed to parse %s: %s", name, e)
            out.errors.append(FileError(i, name, str(e)))
        if pause and i < total - 1:
            time.sleep(pause)

    return out


# ---------- compilation / export ----------
def compilation_table(reviews: Iterable[FileReview]) -> pd.DataFrame:
    rows = [r.as_row() for r in sorted(reviews, key=lambda r: r.index)]
    return pd.DataFrame(rows, columns=COMPILATION_COLUMNS)


def errors_table(errors: Iterable[FileError]) -> pd.DataFrame:
    rows = [{"File Name": e.file_name, "Error": e.message} for e in sorted(errors, key=lambda e: e.index)]
    return pd.DataFrame(rows, columns=["File Name", "Error"])


def export_compilation(reviews: Iterable[FileReview], fmt: str = "xlsx") -> bytes:
    df = compilation_table(reviews)
    if fmt == "csv":
        return save_csv_bytes(df)
    if fmt == "xlsx":
        return save_xlsx_bytes(df, sheet_name="Compilation")
    raise ValueError(f"Unsupported export format: {fmt}")
