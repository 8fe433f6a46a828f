import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env once, globally
load_dotenv()

# Project root (independent of current working directory).
PROJECT_ROOT = Path(__file__).resolve().parents[3]

DEFAULT_MESSAGES_LIMIT = 20
DEFAULT_RETENTION = 100


@dataclass(frozen=True)
class PanelSettings:
    # Directory holding captured .eml files and the index.
    storage_dir: Path
    # How many messages the listing shows.
    messages_limit: int = DEFAULT_MESSAGES_LIMIT
    # Oldest messages beyond this count are evicted on capture.
    retention: int = DEFAULT_RETENTION
    # Panel routes answer 404 unless enabled.
    debug: bool = True


def resolve_dir(value: str) -> Path:
    """
    Relative paths are resolved against PROJECT_ROOT.
    """
    path = Path(value)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path


def env_flag(env_key: str, default: bool) -> bool:
    value = os.getenv(env_key)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def env_int(env_key: str, default: int) -> int:
    value = os.getenv(env_key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"{env_key} must be an integer, got {value!r}") from exc


def load_settings() -> PanelSettings:
    return PanelSettings(
        storage_dir=resolve_dir(os.getenv("MAIL_PANEL_STORAGE_DIR", ".mail-panel")),
        messages_limit=env_int("MAIL_PANEL_MESSAGES_LIMIT", DEFAULT_MESSAGES_LIMIT),
        retention=env_int("MAIL_PANEL_RETENTION", DEFAULT_RETENTION),
        debug=env_flag("MAIL_PANEL_DEBUG", True),
    )
