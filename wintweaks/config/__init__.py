from .engine_config import EngineConfig, RateLimitConfig, load_engine_config
from .settings_store import SettingsStore

__all__ = ["EngineConfig", "RateLimitConfig", "load_engine_config", "SettingsStore"]
