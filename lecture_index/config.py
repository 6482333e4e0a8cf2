"""Runtime settings for the lecture index crawler.

Configuration via environment variables (or a .env file at the project root):

- LECTURE_INDEX_SECTIONS_URL (index page; section XML documents live beneath it)
- LECTURE_INDEX_SECTION_SUFFIX (default: /section.xml)
- LECTURE_INDEX_HANDBOOK_URL (base of the per-subject handbook links in the report)
- LECTURE_INDEX_CATALOG_PATH / LECTURE_INDEX_REPORT_PATH
- LECTURE_INDEX_TIMEOUT (seconds per request, default: 15)
- LECTURE_INDEX_USER_AGENT
- LECTURE_INDEX_LOG_LEVEL (default: INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

DEFAULT_SECTIONS_URL = "http://download.lecture.unimelb.edu.au/echo360/sections/"
DEFAULT_SECTION_SUFFIX = "/section.xml"
DEFAULT_HANDBOOK_URL = "https://handbook.unimelb.edu.au/view/2014/"
DEFAULT_USER_AGENT = "LectureIndex-Crawler/0.1"


@dataclass
class Settings:
    sections_url: str = DEFAULT_SECTIONS_URL
    section_suffix: str = DEFAULT_SECTION_SUFFIX
    handbook_url: str = DEFAULT_HANDBOOK_URL
    catalog_path: str = os.path.join("data", "recordings.json")
    report_path: str = os.path.join("data", "recordings.htm")
    timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"


def _load_env_from_file(env_path: Optional[str] = None) -> None:
    """Apply LECTURE_INDEX_* assignments from a .env file without overriding set variables."""
    env_path = env_path or os.path.join(ROOT_DIR, ".env")
    try:
        with open(env_path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError:
        # A missing or unreadable .env leaves the environment as is
        return
    for line in lines:
        key, sep, val = line.partition("=")
        key = key.strip()
        if not sep or not key.startswith("LECTURE_INDEX_"):
            continue
        if not os.environ.get(key):
            os.environ[key] = val.strip().strip("\"'")


def _parse_timeout(raw: Optional[str]) -> float:
    if not raw:
        return Settings.timeout
    try:
        value = float(raw)
    except ValueError:
        value = -1.0
    if value <= 0:
        raise RuntimeError(
            f"Invalid LECTURE_INDEX_TIMEOUT value {raw!r}. "
            "Set it to a positive number of seconds, e.g. LECTURE_INDEX_TIMEOUT=15"
        )
    return value


def get_settings(env_path: Optional[str] = None) -> Settings:
    """Build Settings from the environment, loading .env first and applying defaults."""
    _load_env_from_file(env_path)

    defaults = Settings()
    return Settings(
        sections_url=os.getenv("LECTURE_INDEX_SECTIONS_URL") or defaults.sections_url,
        section_suffix=os.getenv("LECTURE_INDEX_SECTION_SUFFIX") or defaults.section_suffix,
        handbook_url=os.getenv("LECTURE_INDEX_HANDBOOK_URL") or defaults.handbook_url,
        catalog_path=os.getenv("LECTURE_INDEX_CATALOG_PATH") or defaults.catalog_path,
        report_path=os.getenv("LECTURE_INDEX_REPORT_PATH") or defaults.report_path,
        timeout=_parse_timeout(os.getenv("LECTURE_INDEX_TIMEOUT")),
        user_agent=os.getenv("LECTURE_INDEX_USER_AGENT") or defaults.user_agent,
        log_level=(os.getenv("LECTURE_INDEX_LOG_LEVEL") or defaults.log_level).upper(),
    )
