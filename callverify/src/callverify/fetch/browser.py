"""
Browser sessions used by the fetcher.

The fetcher only talks to the BrowserSession protocol; PlaywrightBrowser is
the real implementation and tests pass a fake.
"""
import logging
from typing import Any, Dict, List, Protocol

from ..config import ScraperConfig
from ..errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}


class BrowserSession(Protocol):
    def launch(self) -> None: ...

    def navigate(self, url: str, timeout_ms: int) -> str:
        """Load url and return the final URL after redirects."""
        ...

    def content(self) -> str: ...

    def get_cookies(self) -> List[Dict[str, Any]]: ...

    def set_cookies(self, cookies: List[Dict[str, Any]]) -> None: ...

    def close(self) -> None: ...


class PlaywrightBrowser:
    """Headless Chromium through playwright's sync API.

    Playwright errors from any call are re-raised as FetchError so the
    fetcher's retry loop sees one error type.
    """

    def __init__(self, config: ScraperConfig):
        self.config = config
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def launch(self):
        try:
            from playwright.sync_api import sync_playwright  # type: ignore
        except ImportError:
            raise FetchError("Playwright not installed; run `playwright install chromium`.")

        logger.info("Launching browser...")
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.config.headless,
                args=["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
            )
            self._context = self._browser.new_context(user_agent=USER_AGENT, viewport=VIEWPORT)
            self._page = self._context.new_page()
        except Exception as e:
            logger.error(f"Browser launch failed: {e}")
            self._shutdown()
            raise FetchError(f"Browser launch failed: {e}") from e

    def navigate(self, url: str, timeout_ms: int) -> str:
        if self._page is None:
            raise FetchError("Browser not launched")

        try:
            response = self._page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except Exception as e:
            raise FetchError(f"Navigation failed for {url}: {e}", details={"url": url}) from e

        if response is not None and response.status >= 400:
            raise FetchError(f"HTTP {response.status} for {url}", details={"status": response.status})
        return self._page.url

    def content(self) -> str:
        if self._page is None:
            raise FetchError("Browser not launched")
        try:
            return self._page.content()
        except Exception as e:
            raise FetchError(f"Could not read page content: {e}") from e

    def get_cookies(self) -> List[Dict[str, Any]]:
        if self._context is None:
            return []
        try:
            return list(self._context.cookies())
        except Exception as e:
            raise FetchError(f"Could not read cookies: {e}") from e

    def set_cookies(self, cookies: List[Dict[str, Any]]):
        if self._context is None or not cookies:
            return
        try:
            self._context.add_cookies(cookies)
        except Exception as e:
            raise FetchError(f"Could not set cookies: {e}") from e

    def close(self):
        self._shutdown()

    def _shutdown(self):
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            try:
                if self._playwright is not None:
                    self._playwright.stop()
            finally:
                self._playwright = self._browser = self._context = self._page = None


def default_browser_factory(config: ScraperConfig) -> BrowserSession:
    return PlaywrightBrowser(config)
