"""Environment-driven settings and platform-aware data paths."""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from .segmenter import DANGLING_POLICIES, DANGLING_SPLIT

logger = logging.getLogger(__name__)

DEFAULT_GENERATOR_URL = "http://127.0.0.1:3000/api/generate"
DEFAULT_AUTOSAVE_SECONDS = 20.0
DEFAULT_GENERATION_TIMEOUT = 60.0


def get_data_dir() -> Path:
    """Return the directory where draftstream keeps its local database."""
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "draftstream"
    elif sys.platform == "win32":
        return Path(os.environ.get("APPDATA", "")) / "draftstream"
    else:  # Linux
        return Path.home() / ".local" / "share" / "draftstream"


def get_db_path() -> Path:
    """Return the path to the local SQLite database."""
    env = os.environ.get("DRAFTSTREAM_DB_PATH")
    if env:
        return Path(env)
    return get_data_dir() / "draftstream.db"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return default
    return value


@dataclass
class Settings:
    """Runtime settings for a draftstream process."""

    db_path: Path = field(default_factory=get_db_path)
    store_url: str | None = None
    generator_url: str = DEFAULT_GENERATOR_URL
    api_key: str | None = None
    autosave_seconds: float = DEFAULT_AUTOSAVE_SECONDS
    generation_timeout: float = DEFAULT_GENERATION_TIMEOUT
    dangling_open: str = DANGLING_SPLIT

    @classmethod
    def from_env(cls) -> "Settings":
        dangling = os.environ.get("DRAFTSTREAM_DANGLING_OPEN", DANGLING_SPLIT).lower()
        if dangling not in DANGLING_POLICIES:
            logger.warning("Ignoring DRAFTSTREAM_DANGLING_OPEN=%r", dangling)
            dangling = DANGLING_SPLIT
        return cls(
            db_path=get_db_path(),
            store_url=os.environ.get("DRAFTSTREAM_STORE_URL") or None,
            generator_url=os.environ.get("DRAFTSTREAM_GENERATOR_URL") or DEFAULT_GENERATOR_URL,
            api_key=os.environ.get("DRAFTSTREAM_API_KEY") or None,
            autosave_seconds=_env_float("DRAFTSTREAM_AUTOSAVE_SECONDS", DEFAULT_AUTOSAVE_SECONDS),
            generation_timeout=_env_float("DRAFTSTREAM_GENERATION_TIMEOUT", DEFAULT_GENERATION_TIMEOUT),
            dangling_open=dangling,
        )
