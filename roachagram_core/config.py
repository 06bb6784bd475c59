"""
Roachagram Configuration System
===============================

Loads and manages configuration from roachagram.yaml with environment
variable overrides. The backend base URL is required: without it the client
cannot start.

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import os
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "roachagram.yaml"
DEFAULT_HOME = Path.home() / ".roachagram"

_TRUE_VALUES = ("true", "1", "yes", "on")


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class ApiConfig:
    """Backend access configuration."""
    base_url: Optional[str] = None
    timeout: float = 30.0
    max_attempts: int = 4
    base_delay: float = 2.0


@dataclass
class DocumentConfig:
    """Rendering configuration for generated documents."""
    theme: str = "light"  # light | dark
    progressive: bool = False
    show_caption: bool = False
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    reveal_speed_ms: int = 30
    font_family: Optional[str] = None


@dataclass
class StorageConfig:
    """Device storage configuration."""
    vault_type: str = "encrypted"  # encrypted | memory
    vault_path: str = str(DEFAULT_HOME / "vault.json")
    key_path: str = str(DEFAULT_HOME / "vault.key")


@dataclass
class TelemetryConfig:
    """Remote telemetry configuration."""
    enabled: bool = True
    timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "WARNING"


@dataclass
class RoachagramConfig:
    """Root configuration container."""
    api: ApiConfig = field(default_factory=ApiConfig)
    document: DocumentConfig = field(default_factory=DocumentConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find roachagram.yaml by searching upward from start_path.

    Search order:
    1. start_path / roachagram.yaml
    2. start_path / .roachagram / roachagram.yaml
    3. Parent directories (recursive)
    4. ~/.config/roachagram/roachagram.yaml

    Args:
        start_path: Starting directory (defaults to cwd)

    Returns:
        Path to config file or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = Path(start_path).resolve()
    for _ in range(10):  # Max 10 levels up
        for candidate in (current / CONFIG_FILENAME, current / ".roachagram" / CONFIG_FILENAME):
            if candidate.exists():
                return candidate

        parent = current.parent
        if parent == current:
            break
        current = parent

    user_config = Path.home() / ".config" / "roachagram" / CONFIG_FILENAME
    if user_config.exists():
        return user_config

    return None


def load_config(config_path: Optional[Path] = None, require_api: bool = True) -> RoachagramConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Environment variables override config file values:
    - ROACHAGRAM_API_BASE_URL -> api.base_url
    - ROACHAGRAM_THEME -> document.theme
    - ROACHAGRAM_PROGRESSIVE -> document.progressive
    - ROACHAGRAM_VAULT_PATH -> storage.vault_path
    - ROACHAGRAM_TELEMETRY -> telemetry.enabled
    - ROACHAGRAM_LOG_LEVEL -> logging.level

    Args:
        config_path: Path to config file (auto-detected if None)
        require_api: Fail when no base URL is configured

    Returns:
        RoachagramConfig instance

    Raises:
        ConfigurationError: If the file is unreadable or the base URL is missing
    """
    config = RoachagramConfig()

    if config_path is None:
        config_path = find_config_file()
    elif not Path(config_path).exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    if config_path:
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load config {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be a mapping: {config_path}")
        config = _parse_config_dict(data)
    else:
        logger.info("No config file found, using defaults")

    config = _apply_env_overrides(config)
    _validate_config(config, require_api=require_api)

    return config


def _parse_config_dict(data: Dict[str, Any]) -> RoachagramConfig:
    """Parse configuration dictionary into RoachagramConfig."""
    config = RoachagramConfig()

    if "api" in data:
        api = data["api"] or {}
        config.api = ApiConfig(
            base_url=api.get("base_url", config.api.base_url),
            timeout=float(api.get("timeout", config.api.timeout)),
            max_attempts=int(api.get("max_attempts", config.api.max_attempts)),
            base_delay=float(api.get("base_delay", config.api.base_delay)),
        )

    # appsettings-style alias
    if data.get("ApiBaseUrl"):
        config.api.base_url = data["ApiBaseUrl"]

    if "document" in data:
        doc = data["document"] or {}
        config.document = DocumentConfig(
            theme=doc.get("theme", config.document.theme),
            progressive=bool(doc.get("progressive", config.document.progressive)),
            show_caption=bool(doc.get("show_caption", config.document.show_caption)),
            background_color=doc.get("background_color"),
            text_color=doc.get("text_color"),
            reveal_speed_ms=int(doc.get("reveal_speed_ms", config.document.reveal_speed_ms)),
            font_family=doc.get("font_family"),
        )

    if "storage" in data:
        storage = data["storage"] or {}
        config.storage = StorageConfig(
            vault_type=storage.get("vault_type", config.storage.vault_type),
            vault_path=str(storage.get("vault_path", config.storage.vault_path)),
            key_path=str(storage.get("key_path", config.storage.key_path)),
        )

    if "telemetry" in data:
        telemetry = data["telemetry"] or {}
        config.telemetry = TelemetryConfig(
            enabled=bool(telemetry.get("enabled", config.telemetry.enabled)),
            timeout=float(telemetry.get("timeout", config.telemetry.timeout)),
        )

    if "logging" in data:
        log = data["logging"] or {}
        config.logging = LoggingConfig(level=str(log.get("level", config.logging.level)))

    return config


def _apply_env_overrides(config: RoachagramConfig) -> RoachagramConfig:
    """Apply environment variable overrides to config."""

    if os.environ.get("ROACHAGRAM_API_BASE_URL"):
        config.api.base_url = os.environ["ROACHAGRAM_API_BASE_URL"]

    if os.environ.get("ROACHAGRAM_THEME"):
        config.document.theme = os.environ["ROACHAGRAM_THEME"]

    if os.environ.get("ROACHAGRAM_PROGRESSIVE"):
        config.document.progressive = os.environ["ROACHAGRAM_PROGRESSIVE"].lower() in _TRUE_VALUES

    if os.environ.get("ROACHAGRAM_VAULT_PATH"):
        config.storage.vault_path = os.environ["ROACHAGRAM_VAULT_PATH"]

    if os.environ.get("ROACHAGRAM_TELEMETRY"):
        config.telemetry.enabled = os.environ["ROACHAGRAM_TELEMETRY"].lower() in _TRUE_VALUES

    if os.environ.get("ROACHAGRAM_LOG_LEVEL"):
        config.logging.level = os.environ["ROACHAGRAM_LOG_LEVEL"]

    return config


def _validate_config(config: RoachagramConfig, require_api: bool = True) -> None:
    """Validate configuration, fixing soft problems and failing on hard ones."""

    if config.api.base_url:
        # Endpoints are joined relative to the base, which needs a trailing slash
        if not config.api.base_url.endswith("/"):
            config.api.base_url += "/"
    elif require_api:
        raise ConfigurationError(
            "ApiBaseUrl configuration is missing. Set api.base_url in "
            f"{CONFIG_FILENAME} or ROACHAGRAM_API_BASE_URL."
        )

    if config.document.theme not in ("light", "dark"):
        logger.warning(f"Unknown theme '{config.document.theme}', defaulting to 'light'")
        config.document.theme = "light"

    if config.storage.vault_type not in ("encrypted", "memory"):
        logger.warning(f"Unknown vault type '{config.storage.vault_type}', defaulting to 'encrypted'")
        config.storage.vault_type = "encrypted"

    if config.api.max_attempts < 1:
        logger.warning(f"max_attempts must be >= 1, got {config.api.max_attempts}; using 1")
        config.api.max_attempts = 1


def save_config(config: RoachagramConfig, path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: RoachagramConfig instance
        path: Output path
    """
    data = {
        "api": {
            "base_url": config.api.base_url,
            "timeout": config.api.timeout,
            "max_attempts": config.api.max_attempts,
            "base_delay": config.api.base_delay,
        },
        "document": {
            "theme": config.document.theme,
            "progressive": config.document.progressive,
            "show_caption": config.document.show_caption,
            "background_color": config.document.background_color,
            "text_color": config.document.text_color,
            "reveal_speed_ms": config.document.reveal_speed_ms,
            "font_family": config.document.font_family,
        },
        "storage": {
            "vault_type": config.storage.vault_type,
            "vault_path": config.storage.vault_path,
            "key_path": config.storage.key_path,
        },
        "telemetry": {
            "enabled": config.telemetry.enabled,
            "timeout": config.telemetry.timeout,
        },
        "logging": {
            "level": config.logging.level,
        },
    }

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Configuration saved to: {path}")


# =============================================================================
# Global Config Instance
# =============================================================================

_global_config: Optional[RoachagramConfig] = None


def get_config() -> RoachagramConfig:
    """Get the global configuration instance (lazy-loaded)."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config
