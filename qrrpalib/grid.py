"""
Row-major cell grid with A1-style address lookups.
"""

from typing import Any, List, Sequence

from openpyxl.utils.cell import column_index_from_string, coordinate_from_string
from openpyxl.utils.exceptions import CellCoordinatesException

from .textutils import cell_text, is_blank


class CellGrid:
    """Decoded worksheet: 0-indexed rows and columns, ragged rows allowed."""

    def __init__(self, rows: Sequence[Sequence[Any]]):
        self._rows: List[List[Any]] = [list(r) for r in rows]

    @property
    def n_rows(self) -> int:
        return len(self._rows)

    @property
    def n_cols(self) -> int:
        return max((len(r) for r in self._rows), default=0)

    def row(self, i: int) -> List[Any]:
        if 0 <= i < len(self._rows):
            return self._rows[i]
        return []

    def get(self, row: int, col: int, default: Any = "") -> Any:
        if row < 0 or col < 0 or row >= len(self._rows):
            return default
        r = self._rows[row]
        if col >= len(r) or is_blank(r[col]):
            return default
        return r[col]

    def text(self, row: int, col: int) -> str:
        return cell_text(self.get(row, col))

    def get_by_address(self, address: str, default: Any = "") -> Any:
        row, col = address_to_index(address)
        return self.get(row, col, default)

    def text_at(self, address: str) -> str:
        return cell_text(self.get_by_address(address))

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        return f"CellGrid({self.n_rows}x{self.n_cols})"


def address_to_index(address: str) -> tuple[int, int]:
    """'C3' -> (2, 2). Raises ValueError on a malformed address."""
    try:
        col_letters, row = coordinate_from_string(address.strip().upper())
    except CellCoordinatesException as e:
        raise ValueError(f"Invalid cell address: {address!r}") from e
    return row - 1, column_index_from_string(col_letters) - 1
