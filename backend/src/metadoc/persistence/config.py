"""Database configuration and factory."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from metadoc.persistence.database import Database

DEFAULT_TENANT_SETTING = "app.tenant"

# Custom GUC names are "<prefix>.<name>"; the setting ends up inside policy DDL
_TENANT_SETTING_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*\.[a-z_][a-z0-9_]*$")


@dataclass
class DatabaseConfig:
    """Database connection configuration.

    Supports sqlite:/// and postgresql:// URL schemes.
    """

    url: str
    tenant_setting: str = DEFAULT_TENANT_SETTING
    echo: bool = False

    def __post_init__(self) -> None:
        if not _TENANT_SETTING_PATTERN.match(self.tenant_setting):
            raise ValueError(
                f"Invalid tenant setting '{self.tenant_setting}'. "
                "Expected '<prefix>.<name>' using lowercase letters, digits and underscores."
            )

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Create config from environment variables.

        Resolution order:
        1. DATABASE_URL env var (standard)
        2. METADOC_DB_PATH env var (converted to sqlite:/// URL)
        3. Default: sqlite:///{base_path}/data/metadoc.db
        """
        tenant_setting = os.environ.get("METADOC_TENANT_SETTING", DEFAULT_TENANT_SETTING)
        echo = os.environ.get("METADOC_SQL_ECHO", "").lower() in ("1", "true", "yes")

        url = os.environ.get("DATABASE_URL")
        if not url:
            db_path = os.environ.get("METADOC_DB_PATH")
            if db_path:
                url = f"sqlite:///{db_path}"
            elif base_path:
                url = f"sqlite:///{base_path / 'data' / 'metadoc.db'}"
            else:
                url = "sqlite:///metadoc.db"

        return cls(url=url, tenant_setting=tenant_setting, echo=echo)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.url.startswith("postgresql")

    @property
    def sqlalchemy_url(self) -> str:
        """URL suitable for SQLAlchemy engine creation.

        Ensures postgresql:// URLs use the psycopg (v3) driver since
        the project depends on psycopg[binary], not psycopg2.
        """
        if self.url.startswith("postgresql://"):
            return self.url.replace("postgresql://", "postgresql+psycopg://", 1)
        return self.url


def create_database(config: DatabaseConfig) -> Database:
    """Create a Database for the configured URL.

    Raises:
        ValueError: For unsupported URL schemes.
    """
    from metadoc.persistence.database import Database

    if not (config.is_sqlite or config.is_postgresql):
        raise ValueError(f"Unsupported database URL scheme: {config.url}")

    # Ensure parent directory exists for file-backed SQLite databases
    if config.url.startswith("sqlite:///"):
        sqlite_path = config.url[len("sqlite:///"):]
        if sqlite_path and sqlite_path != ":memory:":
            Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return Database(config)
