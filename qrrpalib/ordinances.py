"""
Assessment level (ordinance) configuration for Region XIII (Caraga).

The table is keyed scope -> property kind -> classification -> {min, max},
in percent. Defaults follow the maximum levels of the Local Government
Code (RA 7160, Sec. 218); operators edit them per province or city to
match the local assessment ordinance.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .exceptions import ConfigError
from .textutils import parse_number

logger = logging.getLogger(__name__)

CONFIG_NAME = "qrrpa_ordinance_config"

PROPERTY_CLASSIFICATIONS = [
    "Residential",
    "Agricultural",
    "Commercial",
    "Industrial",
    "Mineral",
    "Timberland",
    "Special",
]

PROPERTY_KINDS = ["Land", "Building", "Machinery", "Other"]

PROVINCES_AND_CITIES = [
    "Agusan del Norte",
    "Agusan del Sur",
    "Surigao del Norte",
    "Surigao del Sur",
    "Dinagat Islands",
    "Butuan City",
    "Cabadbaran City",
    "Bayugan City",
    "Bislig City",
    "Tandag City",
    "Surigao City",
]

DEFAULT_SCOPE = PROVINCES_AND_CITIES[0]

OrdinanceConfig = Dict[str, Dict[str, Dict[str, Dict[str, float]]]]

# Free-text classification labels, first match wins. Timber variants fold
# into Timberland for lookups.
CLASS_LABELS = [
    "Residential", "Agricultural", "Commercial", "Industrial", "Mineral",
    "Timberland", "Timber Land", "Timber", "Special",
]
_TIMBER_ALIASES = {"TIMBER LAND", "TIMBER"}

_KEY_TO_CLASS = {
    "residential": "Residential",
    "agricultural": "Agricultural",
    "commercial": "Commercial",
    "industrial": "Industrial",
    "mineral": "Mineral",
    "timberland": "Timberland",
}


def _flat(rates: Dict[str, tuple]) -> Dict[str, Dict[str, float]]:
    return {cls: {"min": float(lo), "max": float(hi)} for cls, (lo, hi) in rates.items()}


_LGC_DEFAULTS = {
    "Land": {
        "Residential": (20, 20), "Agricultural": (40, 40), "Commercial": (50, 50),
        "Industrial": (50, 50), "Mineral": (50, 50), "Timberland": (20, 20),
        "Special": (10, 15),
    },
    # building levels vary by FMV bracket; operators narrow these per ordinance
    "Building": {
        "Residential": (0, 60), "Agricultural": (0, 60), "Commercial": (0, 80),
        "Industrial": (0, 80), "Mineral": (0, 0), "Timberland": (0, 0),
        "Special": (0, 0),
    },
    "Machinery": {
        "Residential": (50, 50), "Agricultural": (40, 40), "Commercial": (80, 80),
        "Industrial": (80, 80), "Mineral": (0, 0), "Timberland": (0, 0),
        "Special": (10, 15),
    },
    "Other": {
        "Residential": (50, 50), "Agricultural": (40, 40), "Commercial": (80, 80),
        "Industrial": (80, 80), "Mineral": (0, 0), "Timberland": (0, 0),
        "Special": (10, 15),
    },
}

_SCOPE_OVERRIDES = {
    ("Agusan del Sur", "Land"): {
        "Residential": (0, 12), "Agricultural": (0, 12), "Commercial": (0, 12),
        "Industrial": (0, 12), "Mineral": (0, 12), "Timberland": (10, 10),
        "Special": (0, 12),
    },
    # fixed levels, not ranges
    ("Agusan del Sur", "Machinery"): {
        "Residential": (40, 40), "Agricultural": (50, 50), "Commercial": (80, 80),
        "Industrial": (80, 80), "Mineral": (0, 0), "Timberland": (0, 0),
        "Special": (10, 15),
    },
}


def default_rates(kind: str, scope: str) -> Dict[str, Dict[str, float]]:
    rates = _SCOPE_OVERRIDES.get((scope, kind)) or _LGC_DEFAULTS.get(kind)
    return _flat(rates) if rates else {}


def default_ordinances() -> OrdinanceConfig:
    """Full default table for every province and city in the region."""
    return {
        scope: {kind: default_rates(kind, scope) for kind in PROPERTY_KINDS}
        for scope in PROVINCES_AND_CITIES
    }


# Used to auto-detect a file's scope from its LGU name.
MUNICIPALITY_TO_PROVINCE = {
    # Agusan del Norte
    "Buenavista": "Agusan del Norte", "Jabonga": "Agusan del Norte",
    "Kitcharao": "Agusan del Norte", "Las Nieves": "Agusan del Norte", "Magallanes": "Agusan del Norte",
    "Nasipit": "Agusan del Norte", "Remedios T. Romualdez": "Agusan del Norte", "Santiago": "Agusan del Norte",
    "Tubay": "Agusan del Norte",

    # Agusan del Sur
    "Bunawan": "Agusan del Sur", "Esperanza": "Agusan del Sur", "La Paz": "Agusan del Sur",
    "Loreto": "Agusan del Sur", "Prosperidad": "Agusan del Sur", "Rosario": "Agusan del Sur",
    "San Francisco": "Agusan del Sur", "San Luis": "Agusan del Sur", "Santa Josefa": "Agusan del Sur",
    "Sibagat": "Agusan del Sur", "Talacogon": "Agusan del Sur", "Trento": "Agusan del Sur",
    "Veruela": "Agusan del Sur",

    # Surigao del Norte
    "Alegria": "Surigao del Norte", "Bacuag": "Surigao del Norte", "Burgos": "Surigao del Norte",
    "Claver": "Surigao del Norte", "Dapa": "Surigao del Norte", "Del Carmen": "Surigao del Norte",
    "General Luna": "Surigao del Norte", "Gigaquit": "Surigao del Norte", "Mainit": "Surigao del Norte",
    "Malimono": "Surigao del Norte", "Pilar": "Surigao del Norte", "Placer": "Surigao del Norte",
    "San Benito": "Surigao del Norte", "San Francisco (Anao-Aon)": "Surigao del Norte",
    "San Isidro": "Surigao del Norte", "Santa Monica": "Surigao del Norte", "Sison": "Surigao del Norte",
    "Socorro": "Surigao del Norte", "Tagana-an": "Surigao del Norte", "Tubod": "Surigao del Norte",

    # Surigao del Sur
    # Carmen also exists in Agusan del Norte; the Surigao del Sur entry has always won
    "Barobo": "Surigao del Sur", "Bayabas": "Surigao del Sur", "Cagwait": "Surigao del Sur",
    "Cantilan": "Surigao del Sur", "Carmen": "Surigao del Sur", "Carrascal": "Surigao del Sur",
    "Cortes": "Surigao del Sur", "Hinatuan": "Surigao del Sur", "Lanuza": "Surigao del Sur",
    "Lianga": "Surigao del Sur", "Lingig": "Surigao del Sur", "Madrid": "Surigao del Sur",
    "Marihatag": "Surigao del Sur", "San Agustin": "Surigao del Sur", "San Miguel": "Surigao del Sur",
    "Tagbina": "Surigao del Sur", "Tago": "Surigao del Sur",

    # Dinagat Islands
    "Basilisa": "Dinagat Islands", "Cagdianao": "Dinagat Islands", "Dinagat": "Dinagat Islands",
    "Libjo": "Dinagat Islands", "San Jose": "Dinagat Islands",
    "Tubajon": "Dinagat Islands",
}


# ---------- lookups ----------
def canonical_class(key: str) -> str:
    """Breakdown key -> canonical class; every special_* subtype is Special."""
    return _KEY_TO_CLASS.get(key, "Special")


def match_classification(text) -> Optional[str]:
    """Resolve a free-text classification label, or None if unrecognised."""
    upper = str(text or "").upper()
    for label in CLASS_LABELS:
        if label.upper() in upper:
            return "Timberland" if label.upper() in _TIMBER_ALIASES else label
    return None


def expected_rate(config: Optional[OrdinanceConfig], scope: str, kind: str, cls: str) -> Optional[Dict[str, float]]:
    if not config or not scope:
        return None
    entry = config.get(scope, {}).get(kind, {}).get(cls)
    if not isinstance(entry, dict) or "min" not in entry or "max" not in entry:
        return None
    return entry


def allowed_band(expected: Dict[str, float], variance: float = 5.0) -> tuple:
    """Ordinance band widened by the variance, floored at zero."""
    return max(0.0, expected["min"] - variance), expected["max"] + variance


def coerce_config(raw) -> OrdinanceConfig:
    """
    Normalise an operator-edited table: rates become floats (blank -> 0),
    entries that are not {min, max} mappings are dropped.
    """
    out: OrdinanceConfig = {}
    if not isinstance(raw, dict):
        return out
    for scope, kinds in raw.items():
        if not isinstance(kinds, dict):
            continue
        out[scope] = {}
        for kind, classes in kinds.items():
            if not isinstance(classes, dict):
                continue
            out[scope][kind] = {}
            for cls, rate in classes.items():
                if not isinstance(rate, dict):
                    continue
                out[scope][kind][cls] = {
                    "min": parse_number(rate.get("min")),
                    "max": parse_number(rate.get("max")),
                }
    return out


# ---------- persistence ----------
class OrdinanceStore:
    """JSON document store for the ordinance table, one file per config name."""

    def __init__(self, directory, name: str = CONFIG_NAME):
        self.directory = Path(directory).expanduser()
        self.name = name

    @property
    def path(self) -> Path:
        return self.directory / f"{self.name}.json"

    def load(self) -> OrdinanceConfig:
        if not self.path.exists():
            return default_ordinances()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read saved ordinance config %s: %s", self.path, e)
            return default_ordinances()
        config = coerce_config(data)
        if not config:
            logger.error("Saved ordinance config %s is empty or malformed; using defaults", self.path)
            return default_ordinances()
        return config

    def save(self, config: OrdinanceConfig) -> OrdinanceConfig:
        cleaned = coerce_config(copy.deepcopy(config))
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(cleaned, f, indent=2, sort_keys=True)
        except OSError as e:
            raise ConfigError(f"Could not save ordinance config to {self.path}: {e}") from e
        logger.info("Saved ordinance config for %d scopes to %s", len(cleaned), self.path)
        return cleaned

    def reset(self) -> OrdinanceConfig:
        if self.path.exists():
            self.path.unlink()
        return default_ordinances()
