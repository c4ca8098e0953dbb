"""Main bot client: wires engine, browser and match loop together."""
import argparse
import logging
import random
import sys

from selenium.common.exceptions import WebDriverException

from board_geometry import CoordinateTranslator
from bot_config import load_config, load_credentials
from browser_launcher import BrowserLauncher
from engine_manager import EngineManager
from errors import BotError, ConfigError, EngineError
from game_session import GameSession
from lichess_interface import LichessInterface
from match_loop import MatchLoop
from move_search import CandidateSelector, EngineClient

log = logging.getLogger("Client")

LOG_FORMAT = '%(asctime)s [%(name)s] %(message)s'


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt='%H:%M:%S',
    )
    # selenium and urllib3 are chatty at DEBUG
    logging.getLogger('selenium').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


class BotClient:
    """Owns the engine process and the browser for one run."""

    def __init__(self, config, credentials, browser='chrome', seed=None):
        self.config = config
        self.credentials = credentials
        self.rng = random.Random(seed)
        self.engine = EngineManager(config.engine_path, log_path=config.engine_log_path)
        self.browser_launcher = BrowserLauncher(browser=browser, headless=config.headless)
        self.interface = None
        self.engine_client = None
        self.selector = None

    def start_engine(self):
        log.info("Starting engine %s...", self.config.engine_path)
        self.engine.initialize()
        for name, value in self.config.engine_options.items():
            self.engine.set_option(name, value)
        self.engine.wait_until_ready()
        self.engine_client = EngineClient(
            self.engine,
            movetime=self.config.movetime,
            depth_threshold=self.config.depth_threshold,
            rng=self.rng,
        )
        self.selector = CandidateSelector(self.rng)

    def start_browser(self):
        driver = self.browser_launcher.launch()
        translator = CoordinateTranslator(self.config.square_size_px)
        self.interface = LichessInterface(driver, translator, self.config.lobby_url)
        self.interface.login(self.credentials)

    def new_session(self):
        """Fresh GameSession for the next game."""
        self.engine.new_game()
        return GameSession(
            self.config,
            self.engine_client,
            self.selector,
            observer=self.interface,
            actions=self.interface,
            rng=self.rng,
        )

    def run(self):
        """Start everything, play the match and return its summary."""
        self.start_engine()
        self.start_browser()
        loop = MatchLoop(self.config, self.interface, self.new_session)
        return loop.run()

    def cleanup(self):
        """Clean up resources."""
        log.info("Cleaning up...")
        self.browser_launcher.close()
        self.engine.quit()


def build_parser():
    ap = argparse.ArgumentParser(
        description='Play games on lichess with a UCI engine.'
    )
    ap.add_argument('--config', help='JSON config file')
    ap.add_argument('--engine', dest='engine_path', help='Path to the UCI engine binary')
    ap.add_argument('--movetime', nargs=2, type=int, metavar=('MIN', 'MAX'),
                    help='Per-move think time bounds in ms')
    ap.add_argument('--max-games', dest='max_games', type=int,
                    help='Maximum number of games to play')
    ap.add_argument('--one-game-per-opponent', dest='only_one_game_per_opponent',
                    action='store_true', default=None,
                    help='Seek a new opponent after every game instead of offering a rematch')
    ap.add_argument('--headless', action='store_true', default=None)
    ap.add_argument('--browser', choices=('chrome', 'edge'), default='chrome')
    ap.add_argument('--seed', type=int, help='Seed for move and timing randomization')
    ap.add_argument('-v', '--verbose', action='store_true')
    return ap


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(
            args.config,
            engine_path=args.engine_path,
            movetime=tuple(args.movetime) if args.movetime else None,
            max_games=args.max_games,
            only_one_game_per_opponent=args.only_one_game_per_opponent,
            headless=args.headless,
        )
        credentials = load_credentials()
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return 1

    client = BotClient(config, credentials, browser=args.browser, seed=args.seed)
    try:
        summary = client.run()
        for number, report in enumerate(summary.reports, 1):
            log.info("Game %d: %s", number,
                     'stalled' if report.stalled else (report.result or 'unknown'))
        return 0
    except EngineError as e:
        log.error("Engine failure: %s", e)
        return 2
    except BotError as e:
        log.error("Error: %s", e)
        return 1
    except WebDriverException as e:
        log.error("Browser error: %s", e)
        return 1
    except KeyboardInterrupt:
        log.info("Shutting down...")
        return 130
    finally:
        client.cleanup()


if __name__ == "__main__":
    sys.exit(main())
