"""Configuration management for Feedback Collector."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_STATIC_PATH = str(Path(__file__).parent / "static")

# Hard upper bound for MAX_MESSAGE_LENGTH. The database has no limit on the
# message column, this just keeps submissions sensible.
MAX_MESSAGE_LENGTH_LIMIT = 10000


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # Required fields (no defaults) - must come first
    SECRET_KEY: str
    DATABASE_URL: str
    ASANA_TOKEN: str
    ASANA_WORKSPACE_GID: str
    ASANA_PROJECT_GID: str

    # Optional fields (with defaults)
    DEBUG: bool = False
    ASANA_BASE_URL: str = "https://app.asana.com/api/1.0"
    ASANA_TIMEOUT_SECONDS: float = 10.0
    ANALYSIS_TIMEOUT_SECONDS: float = 60.0  # Deadline for one aggregation run

    # Database engine settings
    DB_POOL_RECYCLE_SECONDS: int = 300
    DB_ECHO: bool = False

    # Web form settings
    MAX_MESSAGE_LENGTH: int = 5000
    STATIC_PATH: str = DEFAULT_STATIC_PATH

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            SECRET_KEY=os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod"),
            DEBUG=os.environ.get("DEBUG", "false").lower() == "true",
            DATABASE_URL=os.environ.get("DATABASE_URL", ""),
            ASANA_TOKEN=os.environ.get("ASANA_TOKEN", ""),
            ASANA_WORKSPACE_GID=os.environ.get("ASANA_WORKSPACE_GID", ""),
            ASANA_PROJECT_GID=os.environ.get("ASANA_PROJECT_GID", ""),
            ASANA_BASE_URL=os.environ.get(
                "ASANA_BASE_URL", "https://app.asana.com/api/1.0"
            ),
            ASANA_TIMEOUT_SECONDS=float(
                os.environ.get("ASANA_TIMEOUT_SECONDS", "10.0")
            ),
            ANALYSIS_TIMEOUT_SECONDS=float(
                os.environ.get("ANALYSIS_TIMEOUT_SECONDS", "60.0")
            ),
            DB_POOL_RECYCLE_SECONDS=int(
                os.environ.get("DB_POOL_RECYCLE_SECONDS", "300")
            ),
            DB_ECHO=os.environ.get("DB_ECHO", "false").lower() == "true",
            MAX_MESSAGE_LENGTH=int(os.environ.get("MAX_MESSAGE_LENGTH", "5000")),
            STATIC_PATH=os.environ.get("STATIC_PATH", DEFAULT_STATIC_PATH),
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of missing required fields."""
        missing = []
        if not self.DATABASE_URL:
            missing.append("DATABASE_URL")
        return missing

    def validate_analysis(self) -> list[str]:
        """Validate configuration needed by the analysis job."""
        missing = self.validate()
        if not self.ASANA_TOKEN:
            missing.append("ASANA_TOKEN")
        if not self.ASANA_WORKSPACE_GID:
            missing.append("ASANA_WORKSPACE_GID")
        if not self.ASANA_PROJECT_GID:
            missing.append("ASANA_PROJECT_GID")
        return missing

    def check_message_length(self) -> None:
        """Raise ValueError if MAX_MESSAGE_LENGTH is out of range."""
        if not 1 <= self.MAX_MESSAGE_LENGTH <= MAX_MESSAGE_LENGTH_LIMIT:
            raise ValueError(
                f"MAX_MESSAGE_LENGTH must be between 1 and {MAX_MESSAGE_LENGTH_LIMIT}, "
                f"got {self.MAX_MESSAGE_LENGTH}"
            )


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get application configuration (singleton)."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset config singleton (useful for testing)."""
    global _config
    _config = None
