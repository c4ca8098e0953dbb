"""Browser launcher module for Chrome (or Edge) driven by Selenium."""
import logging
import re

from selenium import webdriver
from selenium.common.exceptions import WebDriverException

log = logging.getLogger("Browser")

_WEBDRIVER_NOISE_RE = re.compile(
    r'\s*\n\s*from unknown error:.*'
    r'|\s*\n\s*\(Session info:.*'
    r'|\s*Stacktrace:\s*\n.*',
    re.DOTALL,
)

# Keep the page's timers running when the window is hidden or covered;
# the move poll runs every ~50 ms and must not be throttled.
_VISIBILITY_OVERRIDE_JS = (
    'Object.defineProperty(document,"visibilityState",'
    '{get:()=>"visible",configurable:true});'
    'Object.defineProperty(document,"hidden",'
    '{get:()=>false,configurable:true});'
)


def _short_err(exc):
    """Return a concise one-liner from a (possibly verbose) exception."""
    msg = _WEBDRIVER_NOISE_RE.sub('', str(exc)).strip()
    if msg.startswith('Message: '):
        msg = msg[len('Message: '):]
    return msg


class BrowserLauncher:
    """Handles launching and closing the browser session."""

    def __init__(self, browser='chrome', headless=False, window_size=(1920, 1080)):
        """
        Initialize the browser launcher.

        Args:
            browser:     'chrome' or 'edge'
            headless:    Run without a visible window
            window_size: (width, height) of the browser window
        """
        if browser not in ('chrome', 'edge'):
            raise ValueError(f"Unsupported browser: {browser}")
        self.browser = browser
        self.headless = headless
        self.window_size = window_size
        self.driver = None

    def _options(self):
        if self.browser == 'edge':
            options = webdriver.EdgeOptions()
        else:
            options = webdriver.ChromeOptions()
        width, height = self.window_size
        options.add_argument(f"--window-size={width},{height}")
        options.add_argument("--disable-background-timer-throttling")
        options.add_argument("--disable-backgrounding-occluded-windows")
        options.add_argument("--disable-renderer-backgrounding")
        if self.headless:
            options.add_argument("--headless=new")
        return options

    def launch(self):
        """Start the browser and return the WebDriver instance."""
        log.info("Launching %s%s...", self.browser, " (headless)" if self.headless else "")
        try:
            if self.browser == 'edge':
                self.driver = webdriver.Edge(options=self._options())
            else:
                self.driver = webdriver.Chrome(options=self._options())
        except WebDriverException as e:
            log.error("Failed to launch %s: %s", self.browser, _short_err(e))
            raise

        try:
            self.driver.execute_cdp_cmd(
                'Page.addScriptToEvaluateOnNewDocument',
                {'source': _VISIBILITY_OVERRIDE_JS},
            )
        except WebDriverException as e:
            log.debug("Visibility override unavailable: %s", _short_err(e))

        log.info("Browser ready")
        return self.driver

    def is_session_alive(self):
        """Return True if the WebDriver session is still responsive."""
        if not self.driver:
            return False
        try:
            self.driver.title  # lightweight round-trip
            return True
        except WebDriverException:
            return False

    def close(self):
        """Close the browser."""
        if self.driver:
            log.info("Closing browser...")
            try:
                self.driver.quit()
            except WebDriverException as e:
                log.warning("Error closing driver: %s", _short_err(e))
            self.driver = None
