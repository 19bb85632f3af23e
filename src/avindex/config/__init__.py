"""Configuration for avindex.

Layered from defaults, ~/.avindex/config.toml, AVINDEX_* environment
variables and CLI flags.
"""

from avindex.config.builder import ConfigBuilder, ConfigSource
from avindex.config.env import EnvReader
from avindex.config.loader import (
    TomlParseError,
    get_config,
    get_default_config_path,
    load_config_file,
)
from avindex.config.models import (
    AvIndexConfig,
    IngestConfig,
    LoggingConfig,
    ScorerConfig,
    ServerConfig,
)

__all__ = [
    "AvIndexConfig",
    "ConfigBuilder",
    "ConfigSource",
    "EnvReader",
    "IngestConfig",
    "LoggingConfig",
    "ScorerConfig",
    "ServerConfig",
    "TomlParseError",
    "get_config",
    "get_default_config_path",
    "load_config_file",
]
