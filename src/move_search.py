"""Candidate move search on top of the engine protocol.

EngineClient shapes one request per move (position + randomized think
time) and reduces the engine's search-progress records to a deduplicated
list of candidate moves.  CandidateSelector then picks one of them at
random rather than always the engine's single best line.
"""
import logging
import random
from dataclasses import dataclass

from uci_handler import UCIHandler

log = logging.getLogger("Engine")

DEFAULT_DEPTH_THRESHOLD = 6


@dataclass(frozen=True)
class Candidate:
    """A move proposed by the engine and the depth it was proposed at."""

    move: str
    depth: int


@dataclass(frozen=True)
class EnginePosition:
    """Either an explicit board encoding or a replay from the start position."""

    fen: str = None
    moves: tuple = ()

    @classmethod
    def startpos(cls, history):
        return cls(fen=None, moves=tuple(str(m) for m in history))

    @classmethod
    def from_fen(cls, fen):
        return cls(fen=fen, moves=())

    def describe(self):
        if self.fen:
            return f"fen {self.fen}"
        return f"startpos +{len(self.moves)} move(s)"


class EngineClient:
    """Turns a position into a set of candidate moves.

    Only one request is ever in flight: the engine is a serialized,
    single-consumer resource.
    """

    def __init__(self, engine, movetime=(100, 300),
                 depth_threshold=DEFAULT_DEPTH_THRESHOLD, rng=None):
        """
        Args:
            engine:          Object exposing set_position(fen, moves) and
                             search(movetime_ms) -> SearchResult.
            movetime:        Inclusive (min, max) think-time bounds in ms.
            depth_threshold: Records must report a depth strictly above this.
            rng:             random.Random used for the think-time draw.
        """
        self.engine = engine
        self.movetime = movetime
        self.depth_threshold = depth_threshold
        self.rng = rng or random.Random()

    def draw_time_budget(self):
        """Uniform integer in [min, max] milliseconds, bounds inclusive."""
        low, high = self.movetime
        return self.rng.randint(int(low), int(high))

    def suggest_move(self, position, time_budget_ms=None):
        """Search *position* and return its candidate moves.

        Args:
            position:       EnginePosition to search.
            time_budget_ms: Think time; drawn from the configured range
                            when None.

        Returns:
            list: Candidate objects, unique by move, in the order the
                  engine first reported them.  Empty when no record
                  passed the depth threshold.
        """
        if time_budget_ms is None:
            time_budget_ms = self.draw_time_budget()
        self.engine.set_position(fen=position.fen, moves=list(position.moves))
        log.info("Searching %s for %dms", position.describe(), time_budget_ms)
        result = self.engine.search(time_budget_ms)
        return self.extract_candidates(result.info)

    def extract_candidates(self, info):
        """Reduce search-progress records to unique first moves of their pv."""
        candidates = []
        seen = set()
        for record in info:
            if record.get('depth', 0) <= self.depth_threshold:
                continue
            pv = record.get('pv') or []
            if not pv:
                continue
            move = pv[0]
            if move in seen or not UCIHandler.validate_uci_move(move):
                continue
            seen.add(move)
            candidates.append(Candidate(move=move, depth=record['depth']))
        log.info("Candidate moves: %s", [c.move for c in candidates])
        return candidates


class CandidateSelector:
    """Picks one candidate uniformly at random."""

    def __init__(self, rng=None):
        self.rng = rng or random.Random()

    def select(self, candidates):
        """Return the move text of one candidate.

        Raises:
            ValueError: if *candidates* is empty; callers are expected to
                        handle the empty case before selecting.
        """
        candidates = list(candidates)
        if not candidates:
            raise ValueError("Cannot select from an empty candidate set")
        if len(candidates) == 1:
            return candidates[0].move
        return self.rng.choice(candidates).move
