"""Configuration module for espressomcp.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _parse_number(name: str, default: str, cast=int):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"Invalid {name} value '{raw}': {e}") from e


@dataclass
class Config:
    """Application configuration."""

    espresso_home: Path
    cache_path: Path
    settings_path: Path
    port: int
    auth_token: str | None
    read_only: bool
    sync_interval: int
    max_file_size_mb: float
    org_directories: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, read_only_override: bool | None = None) -> "Config":
        """Load configuration from environment variables.

        Args:
            read_only_override: If provided, overrides the ESPRESSO_READ_ONLY env var.
        """
        default_home = str(Path.home() / ".espresso")
        espresso_home = Path(os.getenv("ESPRESSO_HOME", default_home)).expanduser()

        cache_path = Path(
            os.getenv("ESPRESSO_CACHE", str(espresso_home / "org-file-cache.json"))
        ).expanduser()
        settings_path = Path(
            os.getenv("ESPRESSO_SETTINGS", str(espresso_home / "settings.yaml"))
        ).expanduser()

        port = _parse_number("ESPRESSO_PORT", "8080")
        if not 1 <= port <= 65535:
            raise ValueError(
                f"Invalid ESPRESSO_PORT value '{port}': Port must be between 1 and 65535"
            )

        # Auth token - must be at least 32 bytes if set
        auth_token = os.getenv("ESPRESSO_AUTH_TOKEN")
        if auth_token is not None and len(auth_token) < 32:
            raise ValueError(
                "ESPRESSO_AUTH_TOKEN must be at least 32 characters for security"
            )

        # Read-only mode - CLI flag takes precedence over env var
        if read_only_override is not None:
            read_only = read_only_override
        else:
            read_only = os.getenv("ESPRESSO_READ_ONLY", "").lower() in ("1", "true", "yes")

        # 0 disables background scanning
        sync_interval = _parse_number("ESPRESSO_SYNC_INTERVAL", "30")
        if sync_interval < 0:
            raise ValueError(
                f"Invalid ESPRESSO_SYNC_INTERVAL value '{sync_interval}': must be >= 0"
            )

        max_file_size_mb = _parse_number("ESPRESSO_MAX_FILE_SIZE_MB", "10", float)
        if max_file_size_mb <= 0:
            raise ValueError(
                f"Invalid ESPRESSO_MAX_FILE_SIZE_MB value '{max_file_size_mb}': must be > 0"
            )

        org_dirs = os.getenv("ESPRESSO_ORG_DIRS", "")
        org_directories = [
            str(Path(d).expanduser()) for d in org_dirs.split(os.pathsep) if d.strip()
        ]

        return cls(
            espresso_home=espresso_home,
            cache_path=cache_path,
            settings_path=settings_path,
            port=port,
            auth_token=auth_token,
            read_only=read_only,
            sync_interval=sync_interval,
            max_file_size_mb=max_file_size_mb,
            org_directories=org_directories,
        )


# Global config instance (lazy loaded)
_config: Config | None = None
_read_only_override: bool | None = None


def set_read_only_override(read_only: bool | None) -> None:
    """Set the read-only override from CLI.

    Args:
        read_only: If True, forces read-only mode. If None, uses env var.
    """
    global _read_only_override
    _read_only_override = read_only


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env(read_only_override=_read_only_override)
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config, _read_only_override
    _config = None
    _read_only_override = None
