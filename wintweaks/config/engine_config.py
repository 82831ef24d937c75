"""Engine configuration loader

Reads engine.yaml, by default the copy bundled next to this module. A
missing file means defaults; a bad value is logged and replaced by its
default, never fatal. Only unreadable YAML raises ConfigError.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "engine.yaml"
DEFAULT_SETTINGS_PATH = Path.home() / ".wintweaks" / "settings.json"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RateLimitConfig:
    window_ms: int = 60000
    max_requests: int = 30


@dataclass
class EngineConfig:
    cache_ttl_seconds: float = 30.0
    check_group_size: int = 5
    check_group_delay_ms: int = 100
    preset_item_delay_ms: int = 100
    command_timeout_seconds: float = 30.0
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    settings_path: Path = DEFAULT_SETTINGS_PATH
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EngineConfig":
        """Build a config from a parsed mapping, falling back per key"""
        config = cls()
        data = data or {}
        if not isinstance(data, dict):
            logging.warning("Engine config is not a mapping, using defaults")
            return config

        for f in fields(cls):
            if f.name in ("rate_limit", "settings_path", "log_level") or f.name not in data:
                continue
            default = getattr(config, f.name)
            setattr(config, f.name, _positive(f.name, data[f.name], default, allow_zero=f.name.endswith("_ms")))

        limits = data.get("rate_limit") or {}
        if isinstance(limits, dict):
            config.rate_limit = RateLimitConfig(
                window_ms=_positive("rate_limit.window_ms", limits.get("window_ms", 60000), 60000),
                max_requests=_positive("rate_limit.max_requests", limits.get("max_requests", 30), 30),
            )
        else:
            logging.warning("Invalid rate_limit section, using defaults")

        if data.get("settings_path"):
            config.settings_path = Path(str(data["settings_path"])).expanduser()

        level = str(data.get("log_level", config.log_level)).upper()
        if level in LOG_LEVELS:
            config.log_level = level
        else:
            logging.warning(f"Invalid log_level '{level}', defaulting to 'INFO'")

        return config


def _positive(name: str, value: Any, default, allow_zero: bool = False):
    """Coerce to the default's type; reject negatives (and zero unless allowed)"""
    try:
        coerced = type(default)(value)
    except (TypeError, ValueError):
        logging.warning(f"Invalid value for {name}: {value!r}, using {default}")
        return default

    if isinstance(value, bool) or coerced < 0 or (coerced == 0 and not allow_zero):
        logging.warning(f"Invalid value for {name}: {value!r}, using {default}")
        return default
    return coerced


def load_engine_config(path: Optional[Path] = None) -> EngineConfig:
    """Load engine settings from YAML

    Returns:
        EngineConfig with defaults for anything missing

    Raises:
        ConfigError: If the file exists but is not valid YAML
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logging.info(f"No engine config at {config_path}, using defaults")
        return EngineConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not load engine config {config_path}: {e}") from e

    config = EngineConfig.from_dict(data)
    logging.info(f"Engine config loaded from {config_path}")
    return config
