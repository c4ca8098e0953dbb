"""Game session: drives exactly one game from orientation to result.

The session never looks at the page itself.  It talks to three
collaborators:

  observer  get_orientation() -> bool (True when we are White)
            get_last_move(we_are_white) -> Move, move text or None
            get_result_text() -> str or None
            get_fen()         -> str or None   (optional)
  actions   click_square(square, point, require_piece=False)
            raises ActionRejected when the click cannot be made
  engine    EngineClient.suggest_move(EnginePosition) -> [Candidate]

Everything runs on the caller's thread.  Between polls the session sleeps
for a jittered 40-60 ms through the injected ``sleep`` callable.
"""
import enum
import logging
import random
import time
from dataclasses import dataclass, field

from board_geometry import CoordinateTranslator, Move, canonicalize_castling, is_our_turn
from errors import ActionRejected, SearchStalled
from move_search import EnginePosition

log = logging.getLogger("Session")


class SessionState(enum.Enum):
    ORIENTING = 'orienting'
    OUR_TURN = 'our_turn'
    OPPONENT_TURN = 'opponent_turn'
    GAME_OVER = 'game_over'


@dataclass
class GameReport:
    """What a finished session hands back to the match loop."""

    result: str = None
    we_are_white: bool = None
    history: list = field(default_factory=list)
    stalled: bool = False


class GameSession:
    """State machine for a single game."""

    def __init__(self, config, engine_client, selector, observer, actions,
                 rng=None, sleep=time.sleep):
        """
        Args:
            config:        SessionConfig.
            engine_client: EngineClient used for our moves.
            selector:      CandidateSelector choosing among candidates.
            observer:      Board observer (see module docstring).
            actions:       UI action channel (see module docstring).
            rng:           random.Random for poll and click jitter.
            sleep:         Callable taking seconds; the only blocking wait.
        """
        self.config = config
        self.engine_client = engine_client
        self.selector = selector
        self.observer = observer
        self.actions = actions
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.translator = CoordinateTranslator(config.square_size_px)

        self.state = None
        self.we_are_white = None
        self.history = []
        self.result = None
        self.stalled = False

    # ── Public API ────────────────────────────────────────────────────────────

    def play(self):
        """Run the game to completion and return a GameReport."""
        self._enter(SessionState.ORIENTING)
        self.history = []
        self.we_are_white = bool(self.observer.get_orientation())
        log.info("We got the %s pieces", 'white' if self.we_are_white else 'black')
        self._enter(self._turn_state())

        try:
            while self.state is not SessionState.GAME_OVER:
                self.step()
        except SearchStalled as exc:
            self.stalled = True
            log.error("event=stall history=%s reason=%s", ' '.join(self.history), exc)
            self._enter(SessionState.GAME_OVER)

        return GameReport(
            result=self.result,
            we_are_white=self.we_are_white,
            history=list(self.history),
            stalled=self.stalled,
        )

    def step(self):
        """One polling cycle: result check, move observation, our move."""
        self._poll_wait()

        result = self.observer.get_result_text()
        if result:
            self.result = result.strip()
            log.info("event=game_over result=%r moves=%d",
                     self.result, len(self.history))
            self._enter(SessionState.GAME_OVER)
            return

        self._observe_last_move()

        if self.state is SessionState.OUR_TURN:
            self._play_our_move()

    @property
    def is_our_turn(self):
        return is_our_turn(self.we_are_white, len(self.history))

    # ── Opponent side ─────────────────────────────────────────────────────────

    def _observe_last_move(self):
        """Record the board's last move if it is new.

        A missing move is a transient observation miss.  A move whose
        squares match one of the last two recorded moves is stale: the
        same highlight seen twice, or the opponent's move still shown
        after ours was played.  Neither side can repeat the squares of its
        own previous move, so real repetitions still count.
        """
        observed = self.observer.get_last_move(self.we_are_white)
        if not observed:
            return
        if not isinstance(observed, Move):
            try:
                observed = Move.parse(observed)
            except ValueError:
                log.debug("Unparseable last move %r ignored", observed)
                return
        move = canonicalize_castling(observed)

        if any(self._same_squares(recorded, move) for recorded in self.history[-2:]):
            log.debug("event=stale_move move=%s", move)
            return

        self.history.append(str(move))
        log.info("event=opponent_move move=%s history=%s",
                 move, ' '.join(self.history))
        self._enter(self._turn_state())

    @staticmethod
    def _same_squares(recorded, move):
        return recorded[:4] == str(move)

    # ── Our side ──────────────────────────────────────────────────────────────

    def _play_our_move(self):
        """Search, pick, click.  The move is recorded only once both clicks land."""
        candidates = self._search_candidates()
        chosen = canonicalize_castling(self.selector.select(candidates))
        log.info("event=move_chosen move=%s from=%d candidate(s)",
                 chosen, len(candidates))

        move = Move.parse(chosen)
        src_point, dst_point = self.translator.move_to_coordinates(move, self.we_are_white)
        try:
            self.actions.click_square(move.source, src_point, require_piece=True)
        except ActionRejected as exc:
            log.warning("event=action_rejected move=%s reason=%s", chosen, exc)
            return

        self.sleep(self.rng.randint(*self.config.click_delay_ms) / 1000.0)
        try:
            self.actions.click_square(move.destination, dst_point)
        except ActionRejected as exc:
            log.warning("event=action_rejected move=%s reason=%s", chosen, exc)
            self._deselect(move.source, src_point)
            return

        self.history.append(chosen)
        log.info("event=move_played move=%s src=%s dst=%s",
                 chosen, src_point, dst_point)
        self._enter(self._turn_state())

    def _deselect(self, square, point):
        """Click the selected source again so the next attempt starts clean."""
        try:
            self.actions.click_square(square, point, require_piece=True)
        except ActionRejected as exc:
            log.warning("Could not deselect %s: %s", square, exc)

    def _search_candidates(self):
        """Ask the engine for candidates, retrying once on an empty set.

        Raises:
            SearchStalled: if both searches come back empty.
        """
        position = self._position()
        for attempt in (1, 2):
            candidates = self.engine_client.suggest_move(position)
            if candidates:
                return candidates
            log.warning("event=empty_candidates attempt=%d position=%s",
                        attempt, position.describe())
        raise SearchStalled(f"No candidate moves for {position.describe()}")

    def _position(self):
        if self.config.use_fen:
            get_fen = getattr(self.observer, 'get_fen', None)
            fen = get_fen() if get_fen else None
            if fen:
                return EnginePosition.from_fen(fen)
        return EnginePosition.startpos(self.history)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _turn_state(self):
        if self.is_our_turn:
            return SessionState.OUR_TURN
        return SessionState.OPPONENT_TURN

    def _enter(self, state):
        if state is self.state:
            return
        self.state = state
        log.info("event=state_entered state=%s", state.value)

    def _poll_wait(self):
        self.sleep(self.rng.randint(*self.config.poll_interval_ms) / 1000.0)
