# qrrpalib/__init__.py
from .exceptions import QrrpaError, ParseError, ConfigError
from .grid import CellGrid
from .models import ParsedDocument, PropertyRecord, ValidationResult
from .ordinances import OrdinanceStore, default_ordinances
from .parser import parse, parse_grid
from .validator import validate
from .pipeline import review_batch, resolve_scope, compilation_table, export_compilation

__version__ = "0.1.0"
