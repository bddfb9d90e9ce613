import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class RawHtmlStore:
    """Content-addressed storage of fetched pages: <dir>/<sha256>.html, written once."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def path_for(self, raw_html_hash: str) -> Path:
        return self.directory / f"{raw_html_hash}.html"

    def save(self, html: str, raw_html_hash: str) -> str:
        path = self.path_for(raw_html_hash)
        if not path.exists():
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
            logger.debug(f"Stored raw HTML at {path}")
        return str(path)

    def load(self, raw_html_hash: str) -> Optional[str]:
        path = self.path_for(raw_html_hash)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")
