"""
PYXM Configuration Management
=============================

Layered configuration for the template engine with support for:
- Multiple configuration sources (defaults, files, env, runtime)
- Hierarchical configuration with dot notation
- Type-safe access with defaults

Configuration Loading Priority (highest to lowest):
1. Runtime overrides (Config.set)
2. Environment variables (PYXM_*)
3. Python config files (load_file)
4. Default values

Environment Variables:
    Nested keys are separated by a double underscore:
    PYXM_CACHE__MAX_SIZE=5 sets "cache.max_size".

Example:
    config = Config()
    config.get("lexer.trim_blocks")           # True
    config.set("compiler.autoescape", False)
    config.get_int("cache.max_size", 100)
"""

from __future__ import annotations

import copy
import importlib.util
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TypeVar, Union

import orjson

T = TypeVar("T")

ENV_PREFIX = "PYXM_"
ENV_SEPARATOR = "__"

DEFAULTS: Dict[str, Any] = {
    "templates": {
        "extension": ".pyxm",
        "auto_reload": False,
    },
    "cache": {
        "max_size": 100,
    },
    "lexer": {
        "trim_blocks": True,
    },
    "compiler": {
        "autoescape": True,
        "debug": False,
    },
    "logging": {
        "level": "INFO",
        "format": "text",
    },
}


@dataclass
class ConfigSource:
    """Represents a configuration source with priority."""
    name: str
    data: Dict[str, Any]
    priority: int = 0


class Config:
    """
    Engine configuration container.

    Provides hierarchical configuration access with type coercion
    and default values. Configuration values can be nested using
    dot notation.

    Example:
        config = Config({"cache": {"max_size": 10}})
        config.get("cache.max_size")             # 10
        config.get("templates.extension")        # ".pyxm"
        config.get("missing.key", "default")     # "default"
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        load_env: bool = True,
    ) -> None:
        self._sources: List[ConfigSource] = []
        self._cache: Dict[str, Any] = {}
        self._merged: Dict[str, Any] = {}
        self._dirty = True

        self.add_source("defaults", copy.deepcopy(DEFAULTS), priority=0)
        if data:
            self.add_source("init", dict(data), priority=10)
        if load_env:
            self.load_env_overrides()

    def load_file(self, path: Union[str, Path]) -> None:
        """
        Load configuration from a Python file.

        The file either defines a ``config`` dict or module-level
        variables, which are taken as top-level keys.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        spec = importlib.util.spec_from_file_location("pyxm_config", path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load config file: {path}")

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        if hasattr(module, "config"):
            data = module.config
        else:
            data = {
                key: value
                for key, value in vars(module).items()
                if not key.startswith("_")
            }
        self.add_source(f"file:{path}", data, priority=20)

    def load_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Load overrides from PYXM_* environment variables."""
        overrides: Dict[str, Any] = {}
        environ = os.environ if environ is None else environ

        for key, value in environ.items():
            if key.startswith(ENV_PREFIX):
                # PYXM_CACHE__MAX_SIZE -> cache.max_size
                config_key = key[len(ENV_PREFIX):].lower().replace(ENV_SEPARATOR, ".")
                overrides[config_key] = self._parse_env_value(value)

        if overrides:
            self._sources = [source for source in self._sources if source.name != "env_vars"]
            self.add_source("env_vars", self._unflatten(overrides), priority=100)

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        # Boolean
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        # Integer
        try:
            return int(value)
        except ValueError:
            pass

        # Float
        try:
            return float(value)
        except ValueError:
            pass

        # JSON (for complex values)
        if value.startswith(("{", "[")):
            try:
                return orjson.loads(value)
            except orjson.JSONDecodeError:
                pass

        return value

    def _unflatten(self, flat: Dict[str, Any]) -> Dict[str, Any]:
        """Convert flat dot-notation keys to nested dict."""
        result: Dict[str, Any] = {}

        for key, value in flat.items():
            parts = key.split(".")
            current = result

            for part in parts[:-1]:
                current = current.setdefault(part, {})

            current[parts[-1]] = value

        return result

    def add_source(
        self,
        name: str,
        data: Dict[str, Any],
        priority: int = 0,
    ) -> None:
        """Add a configuration source."""
        self._sources.append(ConfigSource(name=name, data=data, priority=priority))
        self._dirty = True
        self._cache.clear()

    def _merge(self) -> None:
        """Merge all sources into single configuration."""
        if not self._dirty:
            return

        # Sort by priority (lower first, so higher overrides)
        self._merged = {}
        for source in sorted(self._sources, key=lambda s: s.priority):
            self._deep_merge(self._merged, copy.deepcopy(source.data))

        self._dirty = False
        self._cache.clear()

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Deep merge override into base."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(
        self,
        key: str,
        default: T = None,
    ) -> Union[Any, T]:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "cache.max_size")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        self._merge()
        if key in self._cache:
            return self._cache[key]

        current: Any = self._merged
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]

        self._cache[key] = current
        return current

    def get_int(self, key: str, default: int = 0) -> int:
        """Get configuration value as integer."""
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get configuration value as boolean."""
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "yes", "on", "1")
        return bool(value)

    def get_str(self, key: str, default: str = "") -> str:
        """Get configuration value as string."""
        value = self.get(key, default)
        return default if value is None else str(value)

    def set(self, key: str, value: Any) -> None:
        """
        Set a runtime configuration value.

        Runtime values have the highest priority.
        """
        runtime_source = next((s for s in self._sources if s.name == "runtime"), None)
        if runtime_source is None:
            runtime_source = ConfigSource(name="runtime", data={}, priority=1000)
            self._sources.append(runtime_source)

        parts = key.split(".")
        current = runtime_source.data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

        self._dirty = True
        self._cache.clear()

    def has(self, key: str) -> bool:
        """Check if configuration key exists."""
        return self.get(key) is not None

    def all(self) -> Dict[str, Any]:
        """Get all configuration as dict."""
        self._merge()
        return copy.deepcopy(self._merged)

    def section(self, prefix: str) -> Dict[str, Any]:
        """Get all values under a prefix."""
        value = self.get(prefix)
        if isinstance(value, dict):
            return copy.deepcopy(value)
        return {}

    def __getitem__(self, key: str) -> Any:
        """Allow dict-like access."""
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any) -> None:
        """Allow dict-like setting."""
        self.set(key, value)

    def __contains__(self, key: str) -> bool:
        """Check if key exists."""
        return self.has(key)


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def config(key: str, default: Any = None) -> Any:
    """Shortcut function for configuration access."""
    return get_config().get(key, default)
