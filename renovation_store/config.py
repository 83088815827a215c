"""
Configuration for the renovation local store.

Configuration can be provided directly, from environment variables, or
from the ``storage`` section of a YAML settings file:

```yaml
storage:
  data_dir: ~/.renovation
  db_path: ~/.renovation/renovation.db
  flat_store_dir: ~/.renovation/local_storage
  mirror_writes: true
  log_level: INFO
  journal_enabled: true
  journal_max_entries: 1000
```

Environment Variables (override file values):
    RENOVATION_STORE_DATA_DIR: Base directory for all local data
    RENOVATION_STORE_DB_PATH: SQLite database path (":memory:" allowed)
    RENOVATION_STORE_FLAT_DIR: Directory of the flat JSON store
    RENOVATION_STORE_MIRROR_WRITES: "true" to mirror database writes
    RENOVATION_STORE_LOG_LEVEL: Logging level name
    RENOVATION_STORE_JOURNAL: "false" to disable the persisted log journal
    RENOVATION_STORE_JOURNAL_MAX: Maximum persisted log entries
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .exceptions import StorageIOError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".renovation"
DEFAULT_SETTINGS_PATH = DEFAULT_DATA_DIR / "settings.yaml"

_ENV_VARS = {
    "data_dir": "RENOVATION_STORE_DATA_DIR",
    "db_path": "RENOVATION_STORE_DB_PATH",
    "flat_store_dir": "RENOVATION_STORE_FLAT_DIR",
    "mirror_writes": "RENOVATION_STORE_MIRROR_WRITES",
    "log_level": "RENOVATION_STORE_LOG_LEVEL",
    "journal_enabled": "RENOVATION_STORE_JOURNAL",
    "journal_max_entries": "RENOVATION_STORE_JOURNAL_MAX",
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class StoreConfig:
    """Configuration for the local store.

    Attributes:
        data_dir: Base directory for local data
        db_path: SQLite database path, defaults to {data_dir}/renovation.db
        flat_store_dir: Flat store directory, defaults to {data_dir}/local_storage
        mirror_writes: Copy each collection to the flat store after database writes
        log_level: Logging level name
        journal_enabled: Persist log records into the flat store
        journal_max_entries: Number of log entries kept by the journal
        journal_key: Flat-store key holding the journal
    """

    data_dir: str | Path = DEFAULT_DATA_DIR
    db_path: str | Path | None = None
    flat_store_dir: str | Path | None = None
    mirror_writes: bool = False
    log_level: str = "INFO"
    journal_enabled: bool = True
    journal_max_entries: int = 1000
    journal_key: str = "app_logs"

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir).expanduser()
        if self.db_path is None:
            self.db_path = self.data_dir / "renovation.db"
        elif str(self.db_path) != ":memory:":
            self.db_path = Path(self.db_path).expanduser()
        if self.flat_store_dir is None:
            self.flat_store_dir = self.data_dir / "local_storage"
        else:
            self.flat_store_dir = Path(self.flat_store_dir).expanduser()
        self.mirror_writes = _as_bool(self.mirror_writes)
        self.journal_enabled = _as_bool(self.journal_enabled)
        self.journal_max_entries = int(self.journal_max_entries)
        self.log_level = str(self.log_level).upper()

    @classmethod
    def from_env(cls, base: dict[str, Any] | None = None) -> StoreConfig:
        """Create config from environment variables.

        Args:
            base: Values to start from (e.g. loaded from a settings file)

        Returns:
            StoreConfig with environment values taking precedence
        """
        values = dict(base or {})
        for name, env_var in _ENV_VARS.items():
            raw = os.environ.get(env_var)
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**values)

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> StoreConfig:
        """Create config from the ``storage`` section of a YAML file.

        A missing file yields the defaults. Environment variables
        override values read from the file.
        """
        config_path = Path(path) if path else DEFAULT_SETTINGS_PATH
        values: dict[str, Any] = {}

        if config_path.exists():
            try:
                content = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
            except (OSError, yaml.YAMLError) as e:
                raise StorageIOError("read_settings", str(config_path), e) from e

            if not isinstance(content, dict):
                raise StorageIOError(
                    "read_settings", str(config_path), TypeError("expected a mapping at top level")
                )

            section = content.get("storage", {}) or {}
            known = {f.name for f in fields(cls)}
            for key, value in section.items():
                if key in known:
                    values[key] = value
                else:
                    logger.warning(f"Ignoring unknown storage setting: {key}")
        else:
            logger.debug(f"No settings file at {config_path}, using defaults")

        return cls.from_env(values)
