"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (AVINDEX_*)
3. Config file (~/.avindex/config.toml)
4. Default values

Environment variables:
- AVINDEX_CONFIG_PATH: Path to config file (overrides default location)
- AVINDEX_MEDIA_PATH: Directory tree to index
- AVINDEX_DATABASE_PATH: Catalogue database file
- AVINDEX_WORKERS: Probe workers per dispatcher
- AVINDEX_PROBE_MIN / AVINDEX_PROBE_MAX: Improvement probe budget
- AVINDEX_SCAN_INTERVAL: Seconds between background ingest passes
- AVINDEX_DETECT_MODEL / AVINDEX_ASSESS_MODEL: ONNX face models
- AVINDEX_SCORER_THREADS: Inference threads
- AVINDEX_SERVER_BIND / AVINDEX_SERVER_PORT: HTTP listener
- AVINDEX_LOG_LEVEL / AVINDEX_LOG_FILE / AVINDEX_LOG_FORMAT: Logging
- AVINDEX_LOG_STDERR: Also log to stderr when logging to a file

None of them is required.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from avindex.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from avindex.config.env import EnvReader
from avindex.config.models import AvIndexConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".avindex"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"


class TomlParseError(Exception):
    """Raised when a config file exists but is not valid TOML."""

    def __init__(self, path: Path, cause: Exception) -> None:
        self.path = path
        super().__init__(f"Failed to parse {path}: {cause}")


def get_default_config_path() -> Path:
    """Get the config file path, honouring AVINDEX_CONFIG_PATH."""
    env_path = os.environ.get("AVINDEX_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_FILE


def load_config_file(path: Path | None = None, *, strict: bool = False) -> dict:
    """Load configuration from a TOML file.

    Args:
        path: Path to config file. If None, uses the default location.
        strict: If True, raise TomlParseError on parse failures.
            If False (default), log a warning and return an empty dict.

    Returns:
        Parsed configuration dict. Empty dict if the file doesn't exist.

    Raises:
        TomlParseError: When strict=True and the file cannot be parsed.
    """
    if path is None:
        path = get_default_config_path()

    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    try:
        with path.open("rb") as f:
            config: dict[str, Any] = tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as e:
        if strict:
            raise TomlParseError(path, e) from e
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}

    logger.debug("Loaded config from %s", path)
    return config


def get_config(
    config_path: Path | None = None,
    # CLI overrides (highest precedence)
    media_path: Path | None = None,
    database_path: Path | None = None,
    workers: int | None = None,
    server_bind: str | None = None,
    server_port: int | None = None,
    scorer_threads: int | None = None,
    # Optional dependency injection for testing
    env_reader: EnvReader | None = None,
    *,
    strict: bool = False,
) -> AvIndexConfig:
    """Get avindex configuration with full precedence handling.

    Args:
        config_path: Path to config file (overrides AVINDEX_CONFIG_PATH).
        media_path: CLI override for the media root (--path).
        database_path: CLI override for the database file (--db).
        workers: CLI override for probe workers (--conc).
        server_bind: CLI override for the bind address.
        server_port: CLI override for the HTTP port (--port).
        scorer_threads: CLI override for inference threads.
        env_reader: Optional EnvReader for testing (uses os.environ if None).
        strict: If True, raise TomlParseError on config file parse failures.

    Returns:
        AvIndexConfig with merged configuration.

    Raises:
        TomlParseError: When strict=True and the config file cannot be parsed.
        ValueError: When a merged value fails validation.
    """
    reader = env_reader or EnvReader()

    file_config = load_config_file(config_path, strict=strict)

    cli_source = ConfigSource(
        media_path=media_path,
        database_path=database_path,
        ingest_workers=workers,
        server_bind=server_bind,
        server_port=server_port,
        scorer_threads=scorer_threads,
    )

    # Build with precedence: file < env < cli
    builder = ConfigBuilder()
    builder.apply(source_from_file(file_config), source_name="file")
    builder.apply(source_from_env(reader), source_name="env")
    builder.apply(cli_source, source_name="cli")

    return builder.build()
