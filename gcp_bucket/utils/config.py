"""
Environment configuration loader for the bucket helper.

Loads bucket, encryption, and upload settings from a .env file or
environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CHUNK_SIZE = 1024
DEFAULT_UPLOAD_TIMEOUT_SECONDS = 5.0


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class BucketConfig:
    """Bucket helper environment configuration."""

    # Google Cloud Storage
    bucket_name: str
    project: Optional[str] = None

    # Customer-supplied encryption key applied to every read/write
    encrypt_key: Optional[str] = None

    # Google Cloud Authentication
    google_credentials_path: Optional[str] = None

    # Upload settings
    chunk_size: int = DEFAULT_CHUNK_SIZE
    upload_timeout_seconds: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.bucket_name:
            raise ValueError("bucket_name is required")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.upload_timeout_seconds <= 0:
            raise ValueError(
                f"upload_timeout_seconds must be positive, got {self.upload_timeout_seconds}"
            )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "BucketConfig":
        """
        Load configuration from environment variables.

        Loads the .env file (project root by default) if present, then reads
        from os.environ. Variables already set in the environment win.

        Returns:
            BucketConfig instance with loaded values

        Raises:
            ValueError: If GCS_BUCKET is missing or a value is malformed
        """
        env_path = env_file or Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        bucket_name = os.getenv("GCS_BUCKET")
        if not bucket_name:
            raise ValueError(
                "GCS_BUCKET environment variable is required. "
                "Set it in .env or export it."
            )

        return cls(
            bucket_name=bucket_name,
            project=os.getenv("GCS_PROJECT") or None,
            encrypt_key=os.getenv("GCS_ENCRYPT_KEY") or None,
            google_credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            chunk_size=_int_env("UPLOAD_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            upload_timeout_seconds=_float_env(
                "UPLOAD_TIMEOUT_SECONDS", DEFAULT_UPLOAD_TIMEOUT_SECONDS
            ),
        )


# Global config instance (lazy-loaded)
_config: Optional[BucketConfig] = None


def get_config() -> BucketConfig:
    """
    Get or create bucket configuration singleton.

    Example:
        >>> config = get_config()
        >>> print(config.bucket_name)
        my-app-media
    """
    global _config
    if _config is None:
        _config = BucketConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
