"""Board geometry: squares, moves, castling and pixel coordinates.

Everything in this module is pure.  The browser interface and the game
session both go through CoordinateTranslator so the mapping between
algebraic squares and the rendered board lives in exactly one place.
"""
import re
from dataclasses import dataclass

FILES = 'abcdefgh'
RANKS = '12345678'

_SQUARE_RE = re.compile(r'^([a-h])([1-8])$')

# Rook-destination castling encodings (as reported by some boards when the
# king is dropped onto its own rook) → king-destination encodings.
_CASTLING_MAP = {
    'e1h1': 'e1g1',
    'e1a1': 'e1c1',
    'e8h8': 'e8g8',
    'e8a8': 'e8c8',
}


@dataclass(frozen=True)
class Square:
    """A single board square, e.g. Square('e', 4)."""

    file: str
    rank: int

    def __post_init__(self):
        if self.file not in FILES or not 1 <= self.rank <= 8:
            raise ValueError(f"Square out of range: {self.file!r}{self.rank!r}")

    @classmethod
    def parse(cls, text):
        """Build a Square from algebraic text such as 'e4'."""
        match = _SQUARE_RE.match(text.strip().lower())
        if not match:
            raise ValueError(f"Not an algebraic square: {text!r}")
        return cls(match.group(1), int(match.group(2)))

    @property
    def file_index(self):
        """0 for the a-file, 7 for the h-file."""
        return FILES.index(self.file)

    @property
    def rank_index(self):
        """0 for rank 1, 7 for rank 8."""
        return self.rank - 1

    def __str__(self):
        return f"{self.file}{self.rank}"


@dataclass(frozen=True)
class Move:
    """An ordered (source, destination) pair; str() gives e.g. 'e2e4'."""

    source: Square
    destination: Square

    @classmethod
    def parse(cls, text):
        """Build a Move from four-character text such as 'e2e4'.

        A trailing promotion letter ('e7e8q') is accepted and ignored: the
        board highlights only ever carry the two squares.
        """
        text = text.strip().lower()
        if len(text) not in (4, 5):
            raise ValueError(f"Not a coordinate move: {text!r}")
        return cls(Square.parse(text[:2]), Square.parse(text[2:4]))

    def __str__(self):
        return f"{self.source}{self.destination}"


def canonicalize_castling(move):
    """Rewrite a rook-destination castling move to king-destination style.

    Accepts either a Move or its text form and returns the same type.
    Non-castling moves are returned unchanged, so the function is
    idempotent.
    """
    if isinstance(move, Move):
        return Move.parse(canonicalize_castling(str(move)))
    return _CASTLING_MAP.get(move, move)


def is_our_turn(we_are_white, history_length):
    """Return True when the next move belongs to us.

    White moves on even history lengths, Black on odd ones.
    """
    if we_are_white:
        return history_length % 2 == 0
    return history_length % 2 == 1


class CoordinateTranslator:
    """Maps squares to the top-left pixel offset of their cell and back.

    The renderer always draws the local player's home rank at the bottom
    with (0, 0) at the top-left corner of the board:

      we are White: (0, 0) is a8, (7*cell, 7*cell) is h1
      we are Black: (0, 0) is h1, (7*cell, 7*cell) is a8
    """

    def __init__(self, square_size=64):
        """
        Args:
            square_size: Edge length of one board cell in pixels.
        """
        if square_size <= 0:
            raise ValueError("square_size must be positive")
        self.square_size = square_size

    def square_to_coordinate(self, square, we_are_white):
        """Return the (x, y) offset of *square*'s cell.

        Args:
            square:       Square (or algebraic text).
            we_are_white: Board orientation for the current game.

        Returns:
            tuple: (x, y) in pixels.
        """
        if not isinstance(square, Square):
            square = Square.parse(square)
        if we_are_white:
            col = square.file_index
            row = 7 - square.rank_index
        else:
            col = 7 - square.file_index
            row = square.rank_index
        return col * self.square_size, row * self.square_size

    def coordinate_to_square(self, x, y, we_are_white):
        """Return the Square whose cell contains pixel offset (x, y).

        Raises:
            ValueError: if the point lies outside the board.
        """
        col = int(x // self.square_size)
        row = int(y // self.square_size)
        if not (0 <= col < 8 and 0 <= row < 8):
            raise ValueError(f"Point ({x}, {y}) is outside the board")
        if we_are_white:
            return Square(FILES[col], 8 - row)
        return Square(FILES[7 - col], row + 1)

    def move_to_coordinates(self, move, we_are_white):
        """Return ((src_x, src_y), (dst_x, dst_y)) for a Move."""
        return (
            self.square_to_coordinate(move.source, we_are_white),
            self.square_to_coordinate(move.destination, we_are_white),
        )
