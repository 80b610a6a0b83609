"""
Central configuration for the AMG back-office service.

All paths and runtime settings are defined here.
Override via environment variables or by passing a Config instance directly.

Settings priority (highest wins):
  1. config/settings.json  (admin-editable, persisted)
  2. Environment variables
  3. Hardcoded defaults in this file
"""
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Project root (directory containing this file)
PROJECT_ROOT = Path(__file__).parent

# Default data locations (relative to project root)
DEFAULT_DATA_DIR    = PROJECT_ROOT / "data"
DEFAULT_DB_PATH     = DEFAULT_DATA_DIR / "amg.db"
DEFAULT_STORAGE_DIR = DEFAULT_DATA_DIR / "storage"
DEFAULT_CONFIG_DIR  = PROJECT_ROOT / "config"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in ("false", "0", "no")


@dataclass
class Config:
    # --- Backend ---
    db_path: Path = field(
        default_factory=lambda: Path(os.getenv("AMG_DB_PATH", str(DEFAULT_DB_PATH)))
    )
    db_timeout_seconds: float = 30.0   # how long a writer waits for the SQLite lock

    # --- Object storage ---
    storage_dir: Path = field(
        default_factory=lambda: Path(os.getenv("AMG_STORAGE_DIR", str(DEFAULT_STORAGE_DIR)))
    )
    public_base_url: str = field(
        default_factory=lambda: os.getenv("AMG_PUBLIC_URL", "http://localhost:8000")
    )

    # --- Templates and settings.json ---
    config_dir: Path = field(
        default_factory=lambda: Path(os.getenv("CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
    )

    # --- Orders ---
    order_number_prefix: str = "CMD"
    default_currency: str = field(
        default_factory=lambda: os.getenv("AMG_DEFAULT_CURRENCY", "EUR")
    )
    default_page_size: int = 10
    max_page_size: int = 200

    # --- Auth ---
    auth_required: bool = field(
        default_factory=lambda: _env_bool("AMG_AUTH_REQUIRED", "true")
    )
    session_ttl_hours: int = field(
        default_factory=lambda: int(os.getenv("AMG_SESSION_TTL_HOURS", "168"))
    )

    def __post_init__(self) -> None:
        """Overlay runtime-tunable settings from settings.json if present."""
        settings_file = self.config_dir / "settings.json"
        if not settings_file.exists():
            return
        _type_map: dict[str, type] = {
            "default_currency":   str,
            "default_page_size":  int,
            "max_page_size":      int,
            "auth_required":      bool,
            "session_ttl_hours":  int,
            "public_base_url":    str,
            "db_timeout_seconds": float,
        }
        try:
            with open(settings_file, encoding="utf-8") as f:
                overrides = {k: v for k, v in json.load(f).items() if not k.startswith("_")}
            for key, val in overrides.items():
                if key in _type_map and hasattr(self, key):
                    setattr(self, key, _type_map[key](val))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load settings.json: %s", exc)

    @property
    def document_template_path(self) -> Path:
        """Operator override for the printable purchase order template."""
        return self.config_dir / "purchase_order.html.j2"

    def ensure_data_dirs(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
