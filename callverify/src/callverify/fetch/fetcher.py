"""
Rate-limited, retrying page fetcher.

fetch_page() never raises for expected failures (bad domain, daily cap,
paywall, exhausted retries, unparseable page). It returns a ScrapeResult
with success=False and a failure_type instead, so the caller can still
write an audit entry. Anything unexpected from the browser is reported as
a network failure and the session is discarded.
"""
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional
from urllib.parse import urlparse

from ..config import ScraperConfig
from ..errors import FetchError, PaywallError, RateLimitError
from ..models.transcript import ScrapeResult, ScrapeTiming
from ..parser import (
    detect_paywall,
    extract_transcript_links,
    is_transcript_page,
    parse_transcript_html,
)
from ..utils.hashing import generate_raw_html_hash
from .browser import BrowserSession, default_browser_factory
from .rate_limiter import RateLimiter
from .raw_store import RawHtmlStore

logger = logging.getLogger(__name__)

MAX_REDIRECT_HOPS = 1


def build_transcript_url(ticker: str, slug: Optional[str] = None) -> str:
    """Article URL when a slug is known, else the ticker's transcript listing."""
    if slug:
        return f"https://seekingalpha.com/article/{slug}"
    return f"https://seekingalpha.com/symbol/{ticker.upper()}/earnings/transcripts"


class TranscriptFetcher:
    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        browser_factory: Callable[[ScraperConfig], BrowserSession] = default_browser_factory,
        rate_limiter: Optional[RateLimiter] = None,
        raw_store: Optional[RawHtmlStore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or ScraperConfig()
        self._browser_factory = browser_factory
        self.rate_limiter = rate_limiter or RateLimiter(
            self.config.requests_per_minute, self.config.max_daily_requests
        )
        if raw_store is None and self.config.store_raw_html and self.config.raw_html_path:
            raw_store = RawHtmlStore(self.config.raw_html_path)
        self.raw_store = raw_store
        self._sleep = sleep

        self._browser: Optional[BrowserSession] = None
        self._session_requests = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Session

    def _launch(self):
        browser = self._browser_factory(self.config)
        browser.launch()
        self._browser = browser
        self._session_requests = 0
        self._load_cookies()

    def _ensure_browser(self):
        if self._browser is None:
            self._launch()
        elif self._session_requests >= self.config.max_requests_per_session:
            logger.info("Session request limit reached, restarting browser...")
            self.close()
            self._launch()

    def _load_cookies(self):
        if not self.config.cookies_path or self._browser is None:
            return
        path = Path(self.config.cookies_path)
        if not path.exists():
            logger.info("No saved cookies found")
            return
        try:
            cookies = json.loads(path.read_text())
            self._browser.set_cookies(cookies)
            logger.info(f"Loaded {len(cookies)} cookies from {path}")
        except Exception as e:
            logger.warning(f"Failed to load cookies from {path}: {e}")

    def save_cookies(self):
        if not self.config.cookies_path or self._browser is None:
            return
        path = Path(self.config.cookies_path)
        try:
            cookies = self._browser.get_cookies()
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(cookies, indent=2))
            logger.debug(f"Saved {len(cookies)} cookies to {path}")
        except Exception as e:
            logger.warning(f"Failed to save cookies to {path}: {e}")

    def _discard_browser(self):
        # A browser that raised mid-request may be unusable; the next fetch relaunches
        browser, self._browser = self._browser, None
        if browser is None:
            return
        try:
            browser.close()
        except Exception as e:
            logger.warning(f"Failed to close browser: {e}")

    def close(self):
        if self._browser is None:
            return
        self.save_cookies()
        try:
            self._browser.close()
        finally:
            self._browser = None

    def stats(self) -> dict:
        return {**self.rate_limiter.stats(), "session_count": self._session_requests}

    # Fetching

    def is_allowed_url(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        domain = self.config.source_domain.lower()
        return host == domain or host.endswith("." + domain)

    def fetch_page(self, url: str) -> ScrapeResult:
        started_at = datetime.now(timezone.utc)
        try:
            return self._fetch(url, hop=0, started_at=started_at, carried_warnings=[])
        except Exception as e:
            logger.exception(f"Unexpected error fetching {url}")
            self._discard_browser()
            return self._result(
                started_at,
                success=False,
                errors=[f"{type(e).__name__}: {e}"],
                failure_type="network",
            )

    def _result(self, started_at: datetime, **kwargs) -> ScrapeResult:
        completed_at = datetime.now(timezone.utc)
        timing = ScrapeTiming(
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=int((completed_at - started_at).total_seconds() * 1000),
        )
        return ScrapeResult(timing=timing, **kwargs)

    def _follow(self, link: str, hop: int, started_at: datetime, warnings: List[str]) -> ScrapeResult:
        logger.info(f"Following transcript link: {link}")
        return self._fetch(link, hop=hop + 1, started_at=started_at, carried_warnings=warnings)

    def _fetch(self, url: str, hop: int, started_at: datetime, carried_warnings: List[str]) -> ScrapeResult:
        warnings = list(carried_warnings)

        if not self.is_allowed_url(url):
            return self._result(
                started_at,
                success=False,
                errors=[f"URL is not from {self.config.source_name} ({self.config.source_domain}): {url}"],
                warnings=warnings,
                failure_type="invalid_url",
                redirect_count=hop,
            )

        try:
            self.rate_limiter.wait_for_slot()
        except RateLimitError as e:
            logger.error(e.message)
            return self._result(
                started_at,
                success=False,
                errors=[e.message],
                warnings=warnings,
                failure_type="rate_limit",
                redirect_count=hop,
            )

        attempts = self.config.max_retries + 1
        retry_count = 0
        raw_html: Optional[str] = None
        final_url: Optional[str] = None
        last_error: Optional[Exception] = None

        while retry_count <= self.config.max_retries:
            try:
                self._ensure_browser()
                logger.info(f"Fetching: {url} (attempt {retry_count + 1}/{attempts})")
                final_url = self._browser.navigate(url, self.config.timeout_ms)
                html = self._browser.content()
                self._session_requests += 1

                if detect_paywall(html):
                    raise PaywallError("Content is behind a paywall. Login may be required.")

                check = is_transcript_page(html, (self.config.source_domain, self.config.source_name))
                if not check.is_transcript:
                    links = extract_transcript_links(html, final_url or url)
                    if links and hop < MAX_REDIRECT_HOPS:
                        warnings.append(
                            f"Detected transcript listing page; following first transcript link ({links[0]})"
                        )
                        return self._follow(links[0], hop, started_at, warnings)
                    warnings.append(f"Low confidence this is a transcript page ({check.confidence}%)")
                    warnings.extend(check.reasons)

                raw_html = html
                break
            except PaywallError as e:
                logger.error(f"{e.message} ({url})")
                return self._result(
                    started_at,
                    success=False,
                    errors=[e.message],
                    warnings=warnings,
                    retry_count=retry_count,
                    failure_type="paywall",
                    final_url=final_url,
                    redirect_count=hop,
                )
            except FetchError as e:
                last_error = e
                retry_count += 1
                if retry_count <= self.config.max_retries:
                    logger.warning(
                        f"Retry {retry_count}/{self.config.max_retries} after error: {e.message}"
                    )
                    self._sleep(self.config.retry_delay)

        if raw_html is None:
            message = str(last_error) if last_error else "Failed to fetch page"
            logger.error(f"Giving up on {url}: {message}")
            return self._result(
                started_at,
                success=False,
                errors=[message],
                warnings=warnings,
                retry_count=retry_count,
                failure_type="network",
                final_url=final_url,
                redirect_count=hop,
            )

        raw_html_hash = generate_raw_html_hash(raw_html)
        raw_html_path = None
        if self.raw_store is not None:
            raw_html_path = self.raw_store.save(raw_html, raw_html_hash)

        parsed = parse_transcript_html(raw_html, url)
        if not parsed.success:
            links = extract_transcript_links(raw_html, final_url or url)
            if links and hop < MAX_REDIRECT_HOPS:
                warnings.append(f"Parsing failed on listing page; retrying first transcript link ({links[0]})")
                return self._follow(links[0], hop, started_at, warnings)

        warnings.extend(parsed.warnings)
        self.save_cookies()

        return self._result(
            started_at,
            success=parsed.success,
            data=parsed.data,
            raw_html=raw_html,
            raw_html_hash=raw_html_hash,
            errors=list(parsed.errors),
            warnings=warnings,
            retry_count=retry_count,
            failure_type=None if parsed.success else "parse",
            final_url=final_url,
            redirect_count=hop,
            raw_html_path=raw_html_path,
        )
