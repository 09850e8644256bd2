"""
Board representation and four-in-a-row rules.

The board is a pure value: no I/O and no locking. Serialising access
is the job of the Match that owns it.
"""
from dataclasses import dataclass, field

from shared.constants import ROWS, COLS, CONNECT, WIN_DIRECTIONS
from shared.enums import Cell


@dataclass(frozen=True)
class CellPosition:
    """A (row, col) coordinate on the board."""
    row: int
    col: int

    def to_dict(self) -> dict:
        return {"row": self.row, "col": self.col}


@dataclass
class WinResult:
    """A completed line of four."""
    player: int
    cells: list[CellPosition]


@dataclass
class Board:
    """
    The 6x7 grid.

    Row 0 is the top row. Pieces always rest on the lowest empty row of
    their column, so a cell is occupied only if every cell below it is.
    """

    grid: list[list[int]] = field(
        default_factory=lambda: [[Cell.EMPTY] * COLS for _ in range(ROWS)]
    )

    @staticmethod
    def is_valid_column(column: int) -> bool:
        """Check if a column index is on the board."""
        return 0 <= column < COLS

    def get(self, row: int, column: int) -> int:
        return self.grid[row][column]

    def lowest_empty_row(self, column: int) -> int | None:
        """
        Find where a piece dropped into a column would land.

        Returns:
            The row index, or None if the column is full
        """
        for row in range(ROWS - 1, -1, -1):
            if self.grid[row][column] == Cell.EMPTY:
                return row
        return None

    def place(self, row: int, column: int, player: int) -> None:
        """
        Write a piece into a cell.

        The row must come from lowest_empty_row() for the same column
        within the same turn.
        """
        self.grid[row][column] = player

    def drop(self, column: int, player: int) -> int | None:
        """Drop a piece and return its row, or None if the column is full."""
        row = self.lowest_empty_row(column)
        if row is not None:
            self.place(row, column, player)
        return row

    def check_win(self, last_row: int, last_col: int, player: int) -> WinResult | None:
        """
        Check for a line of four through the last placed piece.

        Directions are scanned in WIN_DIRECTIONS order. In each direction
        up to three cells are collected forwards, then up to three
        backwards. The first direction with four or more collected cells
        wins, and exactly four are reported: the placed piece, the forward
        cells, then the nearest backward cells. The reported cells are
        ordered from the far forward end back along the line.
        """
        for d_row, d_col in WIN_DIRECTIONS:
            offsets = [0]

            for step in range(1, CONNECT):
                if not self._owned_by(last_row + d_row * step, last_col + d_col * step, player):
                    break
                offsets.append(step)

            for step in range(1, CONNECT):
                if not self._owned_by(last_row - d_row * step, last_col - d_col * step, player):
                    break
                offsets.append(-step)

            if len(offsets) >= CONNECT:
                chosen = sorted(offsets[:CONNECT], reverse=True)
                return WinResult(
                    player=player,
                    cells=[
                        CellPosition(last_row + d_row * offset, last_col + d_col * offset)
                        for offset in chosen
                    ],
                )

        return None

    def check_draw(self) -> bool:
        """The board is full once the top row has no empty cell."""
        return all(cell != Cell.EMPTY for cell in self.grid[0])

    def available_columns(self) -> list[int]:
        """Columns that can still take a piece, left to right."""
        return [col for col in range(COLS) if self.grid[0][col] == Cell.EMPTY]

    def piece_count(self) -> int:
        return sum(1 for row in self.grid for cell in row if cell != Cell.EMPTY)

    def copy(self) -> "Board":
        return Board(grid=[list(row) for row in self.grid])

    def reset(self) -> None:
        self.grid = [[Cell.EMPTY] * COLS for _ in range(ROWS)]

    def to_list(self) -> list[list[int]]:
        """Plain nested lists of 0/1/2 for serialisation."""
        return [[int(cell) for cell in row] for row in self.grid]

    def _owned_by(self, row: int, column: int, player: int) -> bool:
        return 0 <= row < ROWS and 0 <= column < COLS and self.get(row, column) == player
