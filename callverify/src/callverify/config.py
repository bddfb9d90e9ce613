import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .errors import InputError

logger = logging.getLogger(__name__)

SCRAPING_VERSION = "1.0.0"
VALIDATOR_VERSION = "1.0.0"
DEFAULT_CONFIG_PATH = "callverify.yaml"


def load_env_file(path: str = ".env"):
    """
    Load environment variables from a .env file into os.environ.
    Does not override existing strings.
    """
    p = Path(path)
    if not p.exists():
        return

    try:
        with open(p) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    key, val = line.split('=', 1)
                    key = key.strip()
                    val = val.strip()
                    if key not in os.environ:
                        os.environ[key] = val
    except Exception as e:
        logger.warning(f"Failed to load .env: {e}")


class ScraperConfig(BaseModel):
    source_name: str = "Seeking Alpha"
    source_domain: str = "seekingalpha.com"

    requests_per_minute: int = Field(2, ge=1)
    max_daily_requests: int = Field(100, ge=1)
    max_retries: int = Field(3, ge=0)
    retry_delay: float = Field(60.0, ge=0)  # seconds, fixed between attempts

    cookies_path: Optional[str] = "./scraper-cookies.json"
    max_requests_per_session: int = Field(50, ge=1)

    headless: bool = True
    timeout_ms: int = Field(60000, ge=1)

    store_raw_html: bool = True
    raw_html_path: Optional[str] = "./raw-html"


class ExtractionConfig(BaseModel):
    min_word_count: int = 1000
    min_year: int = 2015
    max_year: int = Field(default_factory=lambda: datetime.now().year + 1)
    require_participants: bool = True


class SemanticConfig(BaseModel):
    fuzzy_match_threshold: float = Field(0.7, ge=0, le=1)
    require_keywords: bool = True
    strict_date_check: bool = False


class CrossReferenceConfig(BaseModel):
    date_tolerance_hours: float = 24
    near_duplicate_threshold: float = Field(0.8, ge=0, le=1)
    require_date_match: bool = False
    allowed_domains: List[str] = Field(
        default_factory=lambda: ["seekingalpha.com", "www.seekingalpha.com"]
    )


class AuditConfig(BaseModel):
    console: bool = True
    file: bool = True
    file_path: Optional[str] = "./audit-logs"
    verbose: bool = False
    max_entries_in_memory: int = Field(1000, ge=1)


class StoreConfig(BaseModel):
    db_path: str = "callverify.db"


class Settings(BaseModel):
    scraper: ScraperConfig = Field(default_factory=ScraperConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    semantic: SemanticConfig = Field(default_factory=SemanticConfig)
    cross_reference: CrossReferenceConfig = Field(default_factory=CrossReferenceConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    skip_cross_reference_if_empty: bool = True
    environment: str = "development"


_SECTIONS = ("scraper", "extraction", "semantic", "cross_reference", "audit", "store")

_ENV_OVERRIDES = {
    "CALLVERIFY_COOKIES_PATH": ("scraper", "cookies_path"),
    "CALLVERIFY_RAW_HTML_DIR": ("scraper", "raw_html_path"),
    "CALLVERIFY_AUDIT_DIR": ("audit", "file_path"),
    "CALLVERIFY_DB_PATH": ("store", "db_path"),
}


def _normalize_sections(data: Dict[str, Any]) -> Dict[str, Any]:
    # An empty section ("scraper:") loads as None and means defaults
    for section in _SECTIONS:
        if section in data and data[section] is None:
            data[section] = {}
        elif section in data and not isinstance(data[section], dict):
            raise InputError(f"Config section '{section}' must be a mapping.")
    return data


def _apply_env(data: Dict[str, Any]) -> Dict[str, Any]:
    for var, (section, key) in _ENV_OVERRIDES.items():
        val = os.environ.get(var)
        if val:
            data.setdefault(section, {})[key] = val
    env = os.environ.get("CALLVERIFY_ENV")
    if env:
        data["environment"] = env
    return data


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Build Settings from an optional YAML file plus environment overrides.

    Expected shape:
      scraper:
        requests_per_minute: 2
      audit:
        file_path: ./audit-logs

    A missing default file means "all defaults"; an explicitly named file
    that does not exist is an error.
    """
    explicit = path is not None
    p = Path(path or DEFAULT_CONFIG_PATH)

    data: Dict[str, Any] = {}
    if p.exists():
        try:
            data = yaml.safe_load(p.read_text()) or {}
        except Exception as e:
            raise InputError(f"Invalid config YAML: {e}")
        if not isinstance(data, dict):
            raise InputError("Config file must contain a mapping at the top level.")
    elif explicit:
        raise InputError(f"Config file not found: {path}")

    try:
        return Settings(**_apply_env(_normalize_sections(data)))
    except PydanticValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise InputError("Invalid configuration", details={"errors": problems})
