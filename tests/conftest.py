"""
Shared fixtures: scripted stand-ins for the browser board, the engine and
the lobby so sessions and match loops run deterministically and instantly.
"""

import random

import pytest

from board_geometry import Move
from bot_config import SessionConfig
from engine_manager import SearchResult
from errors import ActionRejected
from game_session import GameReport


class FakeBoard:
    """Observer and action channel in one, driven by a script.

    Every get_result_text() call consumes one script frame:
      None             nothing happens on the board
      'e7e5'           the opponent plays that move (highlights change)
      ('result', txt)  the result banner appears
    Two successful clicks put our own move into the highlights, like the
    real board does, unless *echo_clicks* is off (a board that renders
    late).  Clicking the selected square again deselects it.  An exhausted
    script ends the game.
    """

    def __init__(self, we_are_white=True, script=(), reject=0, fen=None,
                 echo_clicks=True, reject_destination=0):
        self.we_are_white = we_are_white
        self.script = list(script)
        self.reject = reject
        self.reject_destination = reject_destination
        self.fen = fen
        self.echo_clicks = echo_clicks
        self.last_move = None
        self.result = None
        self.clicks = []
        self.orientations = []
        self._pending_source = None

    def get_orientation(self):
        return self.we_are_white

    def get_result_text(self):
        if not self.script:
            return self.result or "script exhausted"
        frame = self.script.pop(0)
        if isinstance(frame, tuple) and frame[0] == 'result':
            self.result = frame[1]
        elif frame is not None:
            self.last_move = frame
        return self.result

    def get_last_move(self, we_are_white=None):
        self.orientations.append(we_are_white)
        return self.last_move

    def get_fen(self):
        return self.fen

    def click_square(self, square, point, require_piece=False):
        if self.reject:
            self.reject -= 1
            raise ActionRejected(f"no piece on {square}")
        if self._pending_source is not None and square != self._pending_source \
                and self.reject_destination:
            self.reject_destination -= 1
            raise ActionRejected(f"nothing to click on {square}")
        self.clicks.append((str(square), point, require_piece))
        if self._pending_source is None:
            self._pending_source = square
        elif square == self._pending_source:
            self._pending_source = None
        else:
            if self.echo_clicks:
                self.last_move = Move(self._pending_source, square)
            self._pending_source = None


class FakeEngine:
    """Engine protocol stand-in returning scripted search info.

    *results* is a list of info lists; each search() consumes one, the
    last one repeating once the list runs out.
    """

    def __init__(self, results):
        self.results = list(results)
        self.positions = []
        self.searches = []

    def set_position(self, fen=None, moves=None):
        self.positions.append((fen, tuple(moves or ())))

    def search(self, movetime_ms):
        self.searches.append(movetime_ms)
        info = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        best = info[0]['pv'][0] if info and info[0]['pv'] else None
        return SearchResult(info=list(info), bestmove=best)


class FakeLobby:
    def __init__(self, seeks=(), rematches=()):
        self.seeks = list(seeks)
        self.rematches = list(rematches)
        self.seek_calls = []
        self.rematch_calls = []

    def seek_opponent(self, timeout_s):
        self.seek_calls.append(timeout_s)
        return self.seeks.pop(0) if self.seeks else False

    def offer_rematch(self, timeout_s):
        self.rematch_calls.append(timeout_s)
        return self.rematches.pop(0) if self.rematches else False


class FakeSession:
    def __init__(self, report, error=None):
        self.report = report
        self.error = error

    def play(self):
        if self.error is not None:
            raise self.error
        return self.report


def info(*records):
    """info((8, 'e2e4 e7e5'), (9, 'd2d4')) → list of search-info dicts."""
    return [{'depth': depth, 'pv': pv.split()} for depth, pv in records]


@pytest.fixture
def config():
    return SessionConfig(engine_log_path=None)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def no_sleep():
    waits = []
    return waits.append


@pytest.fixture
def make_board():
    return FakeBoard


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def make_lobby():
    return FakeLobby


@pytest.fixture
def make_session_factory():
    """Build a session factory that hands out FakeSessions and counts them."""

    def build(reports=None, error=None):
        reports = reports or [GameReport(result="1-0")]
        created = []

        def factory():
            report = reports[min(len(created), len(reports) - 1)]
            session = FakeSession(report, error=error)
            created.append(session)
            return session

        factory.created = created
        return factory

    return build


@pytest.fixture
def search_info():
    return info
