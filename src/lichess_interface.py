"""Lichess interface for observing and interacting with the game board.

This is the only module that knows lichess' markup.  lichess positions
board elements with an inline style, e.g.

    <square class="last-move" style="transform: translate(320px, 128px);">

where (0px, 0px) is the top-left corner of the board.  Those offsets are
converted to squares (and back) through CoordinateTranslator.
"""
import logging
import re
import time

from selenium.common.exceptions import (
    NoSuchElementException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from board_geometry import Move
from errors import ActionRejected

log = logging.getLogger("Lichess")

LOGIN_URL = 'https://lichess.org/login?referrer=/login'

_TRANSLATE_RE = re.compile(r'translate\(\s*([0-9.]+)px\s*,\s*([0-9.]+)px\s*\)', re.I)
_FEN_RE = re.compile(r'"fen":"([^"]+)"')

# Returns the style attribute of every last-move highlight.  lichess lists
# the destination first and the source second.
_LAST_MOVE_JS = """
const squares = document.querySelectorAll('square.last-move');
return Array.from(squares).map(sq => sq.getAttribute('style') || '');
"""


def translate_style(point):
    """Inline style lichess uses for the element at *point* (x, y)."""
    x, y = point
    return f"transform: translate({int(x)}px, {int(y)}px);"


def parse_translate(style):
    """Return the (x, y) offset in a 'transform: translate(...)' style, or None."""
    match = _TRANSLATE_RE.search(style or '')
    if not match:
        return None
    return float(match.group(1)), float(match.group(2))


class LichessInterface:
    """Handles interaction with the lichess game interface."""

    def __init__(self, driver, translator, lobby_url, wait_timeout=10, sleep=time.sleep):
        """
        Initialize the lichess interface.

        Args:
            driver:       Selenium WebDriver instance
            translator:   CoordinateTranslator for the rendered board
            lobby_url:    Page with the quick-pairing buttons
            wait_timeout: Seconds to wait for ordinary page elements
        """
        self.driver = driver
        self.translator = translator
        self.lobby_url = lobby_url
        self.wait = WebDriverWait(driver, wait_timeout)
        self.sleep = sleep

    # ── Session establishment ─────────────────────────────────────────────────

    def login(self, credentials):
        """Log in with *credentials* and wait for the user tag to appear.

        Raises:
            TimeoutException: if the login form or user tag never appears.
        """
        log.info("Logging in as %s...", credentials.username)
        self.driver.get(LOGIN_URL)
        self.wait.until(EC.presence_of_element_located((By.ID, 'form3-username')))
        self.driver.find_element(By.ID, 'form3-username').send_keys(credentials.username)
        self.driver.find_element(By.ID, 'form3-password').send_keys(credentials.password)
        self.driver.find_element(By.CSS_SELECTOR, 'button.submit').click()
        self.wait.until(EC.presence_of_element_located((By.ID, 'user_tag')))
        log.info("✓ Logged in")

    # ── Board observation ─────────────────────────────────────────────────────

    def get_orientation(self):
        """Return True when the board is drawn from White's side."""
        return bool(self.driver.find_elements(By.CSS_SELECTOR, '.orientation-white'))

    def get_last_move(self, we_are_white=None):
        """
        Detect the last completed move from the board highlights.

        Args:
            we_are_white: Orientation fixed for the current game; read from
                          the board when None

        Returns:
            Move: the last move as drawn on the board, or None when there
                  are not exactly two highlights or they cannot be read.
        """
        try:
            styles = self.driver.execute_script(_LAST_MOVE_JS) or []
            if we_are_white is None and len(styles) == 2:
                we_are_white = self.get_orientation()
        except WebDriverException as e:
            log.debug("Could not read last move: %s", e)
            return None
        if len(styles) != 2:
            return None

        dst_point = parse_translate(styles[0])
        src_point = parse_translate(styles[1])
        if src_point is None or dst_point is None:
            return None

        try:
            return Move(
                self.translator.coordinate_to_square(*src_point, we_are_white),
                self.translator.coordinate_to_square(*dst_point, we_are_white),
            )
        except ValueError:
            return None

    def get_result_text(self):
        """Return the result banner text, or None while the game is running."""
        try:
            elements = self.driver.find_elements(By.CSS_SELECTOR, '.result_wrap')
            if not elements:
                return None
            text = elements[0].text.strip()
        except WebDriverException:
            return None
        return text or None

    def get_fen(self):
        """
        Extract the board encoding from the page state.

        Reads the first "fen" field embedded in the page source.

        Returns:
            str: FEN string, or None if no field is present.
        """
        try:
            match = _FEN_RE.search(self.driver.page_source)
        except WebDriverException:
            return None
        return match.group(1) if match else None

    # ── Board actions ─────────────────────────────────────────────────────────

    def click_square(self, square, point, require_piece=False):
        """
        Click the board element drawn at *point*.

        Args:
            square:        Square being clicked (for messages only)
            point:         (x, y) offset from CoordinateTranslator
            require_piece: Only accept a piece element (used for the source
                           square of a move)

        Raises:
            ActionRejected: if no matching element exists or the click fails
        """
        style = translate_style(point)
        selectors = [f'piece[style="{style}"]']
        if not require_piece:
            selectors.append(f'[style="{style}"]')

        for selector in selectors:
            try:
                self.driver.find_element(By.CSS_SELECTOR, selector).click()
                return
            except NoSuchElementException:
                continue
            except WebDriverException as e:
                raise ActionRejected(f"Click on {square} failed: {e}") from e

        what = "piece" if require_piece else "element"
        raise ActionRejected(f"No {what} on {square} ({style}) - is someone interfering?")

    # ── Lobby ─────────────────────────────────────────────────────────────────

    def seek_opponent(self, timeout_s):
        """
        Open the lobby, press the random-colour button and wait for a game.

        Returns:
            bool: True once a game page with a board has loaded, False if
                  nobody accepted within *timeout_s*.
        """
        log.info("Seeking a new game...")
        try:
            self.driver.get(self.lobby_url)
            button = self.wait.until(
                EC.element_to_be_clickable((By.CSS_SELECTOR, 'button.random'))
            )
            self.sleep(0.5)
            url_before = self.driver.current_url
            button.click()
        except (TimeoutException, WebDriverException) as e:
            log.warning("Could not start seeking: %s", e)
            return False
        return self._wait_for_game(url_before, timeout_s)

    def offer_rematch(self, timeout_s):
        """
        Click the rematch button and wait for the opponent to accept.

        Returns:
            bool: True once the rematch game has loaded, False otherwise.
        """
        log.info("Challenging for a new game...")
        self.sleep(1.0)
        try:
            url_before = self.driver.current_url
            self.driver.find_element(By.CSS_SELECTOR, '.follow_up button.rematch').click()
        except WebDriverException as e:
            log.warning("Rematch button not available: %s", e)
            return False
        return self._wait_for_game(url_before, timeout_s)

    def _wait_for_game(self, url_before, timeout_s):
        """Wait for navigation away from *url_before* and for the board to render."""
        try:
            WebDriverWait(self.driver, timeout_s).until(EC.url_changes(url_before))
            self.wait.until(EC.presence_of_element_located((By.CSS_SELECTOR, '.cg-board')))
        except TimeoutException:
            return False
        self.sleep(0.25)
        return True
