"""Match loop: seek → play → rematch/seek, for up to max_games games."""
import enum
import logging
from dataclasses import dataclass, field

log = logging.getLogger("Match")


class MatchState(enum.Enum):
    SEEKING = 'seeking'
    PLAYING = 'playing'
    REMATCHING = 'rematching'
    DONE = 'done'


@dataclass
class MatchSummary:
    reports: list = field(default_factory=list)
    stop_reason: str = None

    @property
    def games_played(self):
        return len(self.reports)


class MatchLoop:
    """Plays a bounded sequence of games.

    The lobby collaborator exposes:
        seek_opponent(timeout_s) -> bool   True once a game has started
        offer_rematch(timeout_s) -> bool   True once the rematch started

    A seek timeout ends the whole run; a rematch timeout falls back to
    seeking a fresh opponent.  Engine failures (EngineError) are not
    caught here and reach the caller.
    """

    def __init__(self, config, lobby, session_factory):
        """
        Args:
            config:          SessionConfig.
            lobby:           Matchmaking collaborator (see class docstring).
            session_factory: Callable returning a fresh GameSession.
        """
        self.config = config
        self.lobby = lobby
        self.session_factory = session_factory
        self.state = None

    def run(self):
        """Play games until max_games is reached or seeking times out.

        Returns:
            MatchSummary: one GameReport per game played and why the loop
                          stopped ('max_games' or 'seek_timeout').
        """
        summary = MatchSummary()
        self._enter(MatchState.SEEKING)

        while summary.games_played < self.config.max_games:
            if self.state is MatchState.SEEKING:
                if not self.lobby.seek_opponent(self.config.seek_timeout_s):
                    log.warning("event=seek_timeout waited=%ss "
                                "- no one wants to play, stopping",
                                self.config.seek_timeout_s)
                    summary.stop_reason = 'seek_timeout'
                    break
                log.info("event=game_started game=%d", summary.games_played + 1)
                self._enter(MatchState.PLAYING)

            report = self.session_factory().play()
            summary.reports.append(report)
            self._log_report(summary.games_played, report)

            if summary.games_played >= self.config.max_games:
                break

            if self.config.only_one_game_per_opponent:
                log.info("One game per opponent - seeking a new game")
                self._enter(MatchState.SEEKING)
                continue

            self._enter(MatchState.REMATCHING)
            if self.lobby.offer_rematch(self.config.rematch_timeout_s):
                log.info("event=game_started game=%d rematch=true",
                         summary.games_played + 1)
                self._enter(MatchState.PLAYING)
            else:
                log.warning("event=rematch_timeout waited=%ss "
                            "- opponent had enough, seeking a new game",
                            self.config.rematch_timeout_s)
                self._enter(MatchState.SEEKING)

        if summary.stop_reason is None:
            summary.stop_reason = 'max_games'
        self._enter(MatchState.DONE)
        log.info("Match finished: %d game(s) played (%s)",
                 summary.games_played, summary.stop_reason)
        return summary

    def _enter(self, state):
        if state is self.state:
            return
        self.state = state
        log.info("event=state_entered state=%s", state.value)

    @staticmethod
    def _log_report(number, report):
        if report.stalled:
            log.warning("Game %d abandoned: engine stalled after %d move(s)",
                        number, len(report.history))
        else:
            log.info("Game %d finished: %s", number, report.result or 'unknown result')
