"""Browser automation engine built on Playwright.

A ``BrowserSession`` owns one Chromium process for the lifetime of a worker.
Every application attempt gets its own isolated context through
``BrowserSession.new_page()``, which always closes the context on exit.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from config.settings import BROWSER_HEADLESS, NAVIGATION_TIMEOUT_MS, SETTLE_DELAY_MS
from src.errors import AutomationError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_DESCRIBE_TEXTAREAS_JS = """
() => Array.from(document.querySelectorAll('textarea')).map((el, index) => {
  let label = '';
  if (el.id) {
    const forLabel = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
    if (forLabel) label = forLabel.textContent;
  }
  if (!label) label = el.getAttribute('aria-label') || '';
  if (!label && el.closest('label')) label = el.closest('label').textContent;
  if (!label) label = el.getAttribute('placeholder') || '';
  let selector = `textarea >> nth=${index}`;
  if (el.id) selector = `#${CSS.escape(el.id)}`;
  else if (el.name) selector = `textarea[name="${el.name}"]`;
  return { selector, label: (label || '').trim(), name: el.name || '', value: el.value || '' };
})
"""


class BrowserPage:
    """Automation primitives over one Playwright page."""

    def __init__(self, page, navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS) -> None:
        self._page = page
        self.navigation_timeout_ms = navigation_timeout_ms

    def navigate(self, url: str) -> None:
        try:
            self._page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
        except PlaywrightError as error:
            raise AutomationError(f"Navigation to {url} failed: {_first_line(error)}") from error
        try:
            self._page.wait_for_load_state("networkidle", timeout=self.navigation_timeout_ms)
        except PlaywrightError:
            logger.debug("Page %s never went network-idle; continuing", url)
        self.wait(SETTLE_DELAY_MS)

    def fill(self, selector: str, value: str) -> None:
        try:
            self._page.locator(selector).first.fill(value)
        except PlaywrightError as error:
            raise AutomationError(f"Could not fill {selector}: {_first_line(error)}") from error

    def upload_file(self, selector: str, path: str) -> None:
        if not path or not Path(path).exists():
            raise AutomationError(f"Resume file not found: {path}")
        try:
            self._page.locator(selector).first.set_input_files(path)
        except PlaywrightError as error:
            raise AutomationError(f"Could not upload to {selector}: {_first_line(error)}") from error

    def click(self, selector: str) -> None:
        try:
            self._page.locator(selector).first.click()
        except PlaywrightError as error:
            raise AutomationError(f"Could not click {selector}: {_first_line(error)}") from error

    def exists(self, selector: str) -> bool:
        try:
            return self._page.locator(selector).count() > 0
        except PlaywrightError:
            return False

    def screenshot(self, path: str) -> str:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._page.screenshot(path=path, full_page=True)
        except PlaywrightError as error:
            raise AutomationError(f"Screenshot failed: {_first_line(error)}") from error
        return path

    def read_html(self) -> str:
        return self._page.content()

    def current_url(self) -> str:
        return self._page.url

    def describe_textareas(self) -> List[Dict[str, str]]:
        """Selector and visible label for every textarea on the page."""
        try:
            return list(self._page.evaluate(_DESCRIBE_TEXTAREAS_JS))
        except PlaywrightError as error:
            logger.warning("Could not enumerate textareas: %s", _first_line(error))
            return []

    def wait(self, milliseconds: int) -> None:
        if milliseconds > 0:
            self._page.wait_for_timeout(milliseconds)


class BrowserSession:
    """Long-lived browser handle owned by a worker process."""

    def __init__(self, headless: bool = BROWSER_HEADLESS) -> None:
        self.headless = headless
        self._playwright = None
        self._browser = None

    def start(self) -> "BrowserSession":
        if self._browser is None:
            logger.info("Launching Chromium (headless=%s)", self.headless)
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"],
            )
        return self

    @contextmanager
    def new_page(self) -> Iterator[BrowserPage]:
        """Open an isolated context for one attempt and always close it."""
        self.start()
        context = self._browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=USER_AGENT,
            locale="en-US",
        )
        try:
            page = context.new_page()
            page.set_default_timeout(NAVIGATION_TIMEOUT_MS)
            yield BrowserPage(page)
        finally:
            try:
                context.close()
            except PlaywrightError as error:
                logger.warning("Error closing browser context: %s", _first_line(error))

    def close(self) -> None:
        if self._browser is not None:
            try:
                self._browser.close()
            except PlaywrightError as error:
                logger.warning("Error closing browser: %s", _first_line(error))
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
            logger.info("Browser session closed")

    def __enter__(self) -> "BrowserSession":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()


def _first_line(error: BaseException, limit: int = 200) -> str:
    return str(error).split("\n")[0][:limit]
