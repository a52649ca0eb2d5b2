"""Configuration handling for grove"""

from dataclasses import dataclass

from grove.constants import (
    BARE_DIR_NAME,
    FETCH_RETRIES,
    LOCK_FILE_NAME,
    LOCK_MAX_AGE_SECONDS,
    MAX_LOCK_RETRIES,
    STALE_THRESHOLD,
)
from grove.utils.dates import parse_duration


@dataclass
class Config:
    """Configuration for grove with validation."""

    # Workspace layout
    bare_dir_name: str = BARE_DIR_NAME
    lock_file_name: str = LOCK_FILE_NAME

    # Workspace lock
    max_lock_retries: int = MAX_LOCK_RETRIES
    lock_max_age: int = LOCK_MAX_AGE_SECONDS  # seconds

    # Fetch
    fetch_retries: int = FETCH_RETRIES

    # Prune
    stale_threshold: str = STALE_THRESHOLD  # Default for a bare --stale

    # Execution modes
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_names()
        self._validate_max_lock_retries()
        self._validate_lock_max_age()
        self._validate_fetch_retries()
        self._validate_stale_threshold()

    def _validate_names(self):
        """Validate file names are plain, non-empty names."""
        for key in ("bare_dir_name", "lock_file_name"):
            value = getattr(self, key)
            if not value or not value.strip():
                raise ValueError(f"{key} cannot be empty")
            if "/" in value or "\\" in value:
                raise ValueError(f"{key} must be a plain file name, got '{value}'")

    def _validate_max_lock_retries(self):
        """Validate max_lock_retries is positive."""
        if self.max_lock_retries <= 0:
            raise ValueError(f"max_lock_retries must be positive, got {self.max_lock_retries}")

    def _validate_lock_max_age(self):
        """Validate lock_max_age is positive."""
        if self.lock_max_age <= 0:
            raise ValueError(f"lock_max_age must be positive, got {self.lock_max_age}")

    def _validate_fetch_retries(self):
        """Validate fetch_retries is not negative."""
        if self.fetch_retries < 0:
            raise ValueError(f"fetch_retries cannot be negative, got {self.fetch_retries}")

    def _validate_stale_threshold(self):
        """Validate stale_threshold is a duration like 30d, 2w or 1m."""
        try:
            parse_duration(self.stale_threshold)
        except ValueError as e:
            raise ValueError(f"stale_threshold is invalid: {e}") from e

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "bare_dir_name": self.bare_dir_name,
            "lock_file_name": self.lock_file_name,
            "max_lock_retries": self.max_lock_retries,
            "lock_max_age": self.lock_max_age,
            "fetch_retries": self.fetch_retries,
            "stale_threshold": self.stale_threshold,
            "verbose": self.verbose,
            "debug": self.debug,
        }

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        # Extract only known fields
        known_fields = {
            "bare_dir_name",
            "lock_file_name",
            "max_lock_retries",
            "lock_max_age",
            "fetch_retries",
            "stale_threshold",
            "verbose",
            "debug",
        }

        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)
