import re
import numpy as np

_FLOAT_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
STOPWORDS = {"of","the","and","for","to","in","a","an"}

def norm_text(s) -> str:
    if s is None:
        return ""
    s = str(s).lower().strip()
    s = re.sub(r"[^a-z0-9\s\-/,_()&.]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s

def token_set(s) -> set[str]:
    return {t for t in re.split(r"[\s\-/,_()&.]+", norm_text(s)) if t and t not in STOPWORDS}

def is_blank(val) -> bool:
    if val is None:
        return True
    if isinstance(val, float) and np.isnan(val):
        return True
    return isinstance(val, str) and not val.strip()

def cell_text(val) -> str:
    """String form of a cell; integral floats lose their trailing '.0'."""
    if is_blank(val):
        return ""
    if isinstance(val, (bool, np.bool_)):
        return str(val).upper()
    if isinstance(val, (float, np.floating)) and float(val).is_integer():
        return str(int(val))
    return str(val).strip()

def parse_number(val) -> float:
    """
    Strict numeric read used for every amount in the sheet:
      • blanks, '-', and unparseable text → 0
      • thousands separators stripped
      • otherwise the leading float prefix ('12%' → 12, like parseFloat)
    """
    if is_blank(val):
        return 0.0
    if isinstance(val, (bool, np.bool_)):
        return float(val)
    if isinstance(val, (int, float, np.number)):
        return float(val)
    s = str(val).replace(",", "").strip()
    if s in ("", "-"):
        return 0.0
    m = _FLOAT_PREFIX.match(s)
    return float(m.group(0)) if m else 0.0

def contains_keyword(text, keyword: str) -> bool:
    return keyword.lower() in str(text or "").lower()
