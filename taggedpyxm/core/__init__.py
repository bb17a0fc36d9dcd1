"""
PYXM Core Package
=================

Configuration shared by the engine and the CLI.
"""

from taggedpyxm.core.config import Config, ConfigSource, config, get_config

__all__ = ["Config", "ConfigSource", "config", "get_config"]
