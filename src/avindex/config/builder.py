"""Layered configuration.

Each origin (config file, environment, CLI flags) is captured as a
ConfigSource. ConfigBuilder stacks them, the last one applied winning for
every value it sets, and fills whatever is left from the model defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from avindex.config.env import EnvReader
from avindex.config.models import (
    AvIndexConfig,
    IngestConfig,
    LoggingConfig,
    ScorerConfig,
    ServerConfig,
)

logger = logging.getLogger(__name__)

# ConfigSource field prefix -> section model. "ingest_workers" becomes
# IngestConfig.workers and is read from [ingest] workers in the file.
SECTIONS: dict[str, type] = {
    "ingest": IngestConfig,
    "scorer": ScorerConfig,
    "server": ServerConfig,
    "logging": LoggingConfig,
}

_PATH_FIELDS = frozenset(
    {
        "media_path",
        "database_path",
        "scorer_detect_model",
        "scorer_assess_model",
        "logging_file",
    }
)


@dataclass
class ConfigSource:
    """Values one origin specifies. None leaves the value to other origins."""

    media_path: Path | None = None
    database_path: Path | None = None

    ingest_workers: int | None = None
    ingest_probe_min: int | None = None
    ingest_probe_max: int | None = None
    ingest_thumbnails_per_file: int | None = None
    ingest_scan_interval_seconds: float | None = None
    ingest_idle_max_seconds: float | None = None
    ingest_locked_retry_max_seconds: float | None = None

    scorer_detect_model: Path | None = None
    scorer_assess_model: Path | None = None
    scorer_threads: int | None = None

    server_bind: str | None = None
    server_port: int | None = None
    server_shutdown_timeout: float | None = None

    logging_level: str | None = None
    logging_file: Path | None = None
    logging_format: str | None = None
    logging_include_stderr: bool | None = None
    logging_max_bytes: int | None = None
    logging_backup_count: int | None = None


class ConfigBuilder:
    """Stacks ConfigSources and builds the final AvIndexConfig.

    Example:
        builder = ConfigBuilder()
        builder.apply(source_from_file(file_config), source_name="file")
        builder.apply(source_from_env(reader), source_name="env")
        builder.apply(cli_source, source_name="cli")
        config = builder.build()
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._origins: dict[str, str] = {}

    def apply(self, source: ConfigSource, source_name: str = "unknown") -> None:
        """Layer a source over everything applied so far.

        Args:
            source: Values from one origin.
            source_name: Recorded as the origin of each value the source sets.
        """
        for item in fields(source):
            value = getattr(source, item.name)
            if value is None:
                continue
            self._values[item.name] = value
            self._origins[item.name] = source_name

    def origin(self, key: str) -> str:
        """Name of the source that set a value, or "default"."""
        return self._origins.get(key, "default")

    def _section_values(self, prefix: str) -> dict[str, Any]:
        start = len(prefix) + 1
        return {
            name[start:]: value
            for name, value in self._values.items()
            if name.startswith(prefix + "_")
        }

    def build(self) -> AvIndexConfig:
        """Resolve every value and construct the config models.

        Raises:
            ValueError: A section model rejected the combined values.
        """
        sections = {
            prefix: model(**self._section_values(prefix))
            for prefix, model in SECTIONS.items()
        }
        logger.debug(
            "Configuration sources: %s",
            {key: self.origin(key) for key in sorted(self._values)},
        )

        top_level: dict[str, Any] = {
            key: self._values[key]
            for key in ("media_path", "database_path")
            if key in self._values
        }
        return AvIndexConfig(**top_level, **sections)


def _to_path(value: Any) -> Path | None:
    return Path(value).expanduser() if value else None


def source_from_file(file_config: dict[str, Any]) -> ConfigSource:
    """Map a parsed TOML document onto a ConfigSource.

    Top-level keys fill media_path and database_path; the [ingest],
    [scorer], [server] and [logging] tables fill the prefixed fields.
    Unknown keys are ignored.
    """
    values: dict[str, Any] = {}
    for item in fields(ConfigSource):
        section, _, key = item.name.partition("_")
        if section in SECTIONS:
            table = file_config.get(section)
            raw = table.get(key) if isinstance(table, dict) else None
        else:
            raw = file_config.get(item.name)
        if item.name in _PATH_FIELDS:
            raw = _to_path(raw)
        values[item.name] = raw
    return ConfigSource(**values)


def source_from_env(reader: EnvReader) -> ConfigSource:
    """Read the AVINDEX_* environment variables into a ConfigSource.

    Model paths that do not exist are dropped with a warning by the reader.
    """
    return ConfigSource(
        media_path=reader.get_path("AVINDEX_MEDIA_PATH"),
        database_path=reader.get_path("AVINDEX_DATABASE_PATH"),
        ingest_workers=reader.get_int("AVINDEX_WORKERS"),
        ingest_probe_min=reader.get_int("AVINDEX_PROBE_MIN"),
        ingest_probe_max=reader.get_int("AVINDEX_PROBE_MAX"),
        ingest_scan_interval_seconds=reader.get_float("AVINDEX_SCAN_INTERVAL"),
        scorer_detect_model=reader.get_path("AVINDEX_DETECT_MODEL", must_exist=True),
        scorer_assess_model=reader.get_path("AVINDEX_ASSESS_MODEL", must_exist=True),
        scorer_threads=reader.get_int("AVINDEX_SCORER_THREADS"),
        server_bind=reader.get_str("AVINDEX_SERVER_BIND"),
        server_port=reader.get_int("AVINDEX_SERVER_PORT"),
        logging_level=reader.get_str("AVINDEX_LOG_LEVEL"),
        logging_file=reader.get_path("AVINDEX_LOG_FILE"),
        logging_format=reader.get_str("AVINDEX_LOG_FORMAT"),
        logging_include_stderr=reader.get_bool("AVINDEX_LOG_STDERR"),
    )
