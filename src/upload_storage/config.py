"""Configuration management for upload-storage.

Handles loading, saving, and validating TOML configuration stored in:
- macOS: ~/.config/upload-storage/config.toml
- Linux: ~/.config/upload-storage/config.toml (XDG_CONFIG_HOME)
- Windows: %APPDATA%\\upload-storage\\config.toml

Secrets (Dropbox app key/secret and tokens) are never written to the file;
they are read from UPLOAD_* environment variables.
"""

import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import tomllib
import tomli_w


@dataclass
class StorageConfig:
    """Configuration for upload-storage.

    Attributes:
        backend: Storage backend ("dropbox" or "local")
        dropbox_access_policy: URL policy for Dropbox files ("private" or "public_read")
        dropbox_root: Dropbox folder prefixed to every stored path
        dropbox_timeout: Network timeout in seconds for Dropbox calls
        local_root: Directory for the local backend
        local_base_url: URL prefix for files served from the local backend
    """

    backend: str = "dropbox"

    # Dropbox
    dropbox_access_policy: str = "private"
    dropbox_root: str = ""
    dropbox_timeout: float = 100.0

    # Local filesystem
    local_root: Path = field(default_factory=lambda: get_default_local_root())
    local_base_url: str = ""

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "StorageConfig":
        """Load configuration from TOML file.

        Args:
            path: Path to config file (defaults to standard location)

        Returns:
            StorageConfig instance with loaded values

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        if path is None:
            path = get_config_path()

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        config = cls()

        if "storage" in data:
            config.backend = data["storage"].get("backend", config.backend)

        if "dropbox" in data:
            dbx = data["dropbox"]
            config.dropbox_access_policy = dbx.get("access_policy", config.dropbox_access_policy)
            config.dropbox_root = dbx.get("root", config.dropbox_root)
            config.dropbox_timeout = float(dbx.get("timeout", config.dropbox_timeout))

        if "local" in data:
            local = data["local"]
            root = local.get("root")
            if root:
                config.local_root = Path(root)
            config.local_base_url = local.get("base_url", config.local_base_url)

        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override values from environment variables (take precedence over the file)."""
        env_backend = os.environ.get("UPLOAD_STORAGE_BACKEND")
        if env_backend:
            self.backend = env_backend

        env_policy = os.environ.get("UPLOAD_DROPBOX_ACCESS_POLICY")
        if env_policy:
            self.dropbox_access_policy = env_policy

        env_root = os.environ.get("UPLOAD_DROPBOX_ROOT")
        if env_root:
            self.dropbox_root = env_root

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        Args:
            path: Path to save config (defaults to standard location)
        """
        if path is None:
            path = get_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "storage": {"backend": self.backend},
            "dropbox": {
                "access_policy": self.dropbox_access_policy,
                "root": self.dropbox_root,
                "timeout": self.dropbox_timeout,
            },
            "local": {
                "root": str(self.local_root),
                "base_url": self.local_base_url,
            },
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a configuration value by key.

        Accepts dot notation matching the TOML sections (e.g., "dropbox.root").

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        attr = _attr_name(key)
        if attr not in _field_names(self):
            return default

        value = getattr(self, attr)
        if isinstance(value, Path):
            return str(value)
        return value

    def set(self, key: str, value: str) -> None:
        """Set a configuration value by key.

        Args:
            key: Configuration key (e.g., "dropbox.access_policy")
            value: Configuration value

        Raises:
            ValueError: If the key is unknown
        """
        attr = _attr_name(key)
        if attr not in _field_names(self):
            raise ValueError(f"Invalid config key: {key}")

        # Try to preserve type
        current = getattr(self, attr)
        if isinstance(current, float):
            new_value = float(value)
        elif isinstance(current, Path):
            new_value = Path(value)
        else:
            new_value = value

        setattr(self, attr, new_value)


def _field_names(config: "StorageConfig") -> set[str]:
    return {f.name for f in fields(config)}


def _attr_name(key: str) -> str:
    section, _, name = key.partition(".")
    if section == "storage":
        return name
    return key.replace(".", "_")


def get_config_dir() -> Path:
    """Get the platform-specific config directory.

    Returns:
        Path to the config directory for upload-storage.
    """
    if sys.platform == "darwin" or sys.platform == "linux":
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / "upload-storage"
        return Path.home() / ".config" / "upload-storage"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "upload-storage"
        return Path.home() / "AppData" / "Roaming" / "upload-storage"
    else:
        return Path.home() / ".config" / "upload-storage"


def get_config_path() -> Path:
    """Get the path to the config.toml file."""
    return get_config_dir() / "config.toml"


def get_default_local_root() -> Path:
    """Get the default directory for the local backend."""
    return get_config_dir() / "files"


def get_log_dir() -> Path:
    """Get the directory for CLI log files."""
    return get_config_dir() / "logs"


def ensure_config_exists() -> StorageConfig:
    """Ensure config file exists, creating default if needed.

    Returns:
        StorageConfig instance
    """
    config_path = get_config_path()

    if config_path.exists():
        return StorageConfig.load(config_path)

    config = StorageConfig()
    config.save(config_path)
    config.apply_env()
    return config


def get_env_var_name(key: str) -> str:
    """Get the environment variable name for a config key.

    Args:
        key: Configuration key (e.g., "dropbox.app_key")

    Returns:
        Environment variable name (e.g., "UPLOAD_DROPBOX_APP_KEY")
    """
    return f"UPLOAD_{key.upper().replace('.', '_')}"


def get_secret(key: str) -> Optional[str]:
    """Get a secret value from environment variable.

    Args:
        key: Secret key (e.g., "dropbox.refresh_token")

    Returns:
        Secret value or None
    """
    return os.environ.get(get_env_var_name(key))
