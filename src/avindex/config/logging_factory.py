"""Merge --log-* flags into the configured LoggingConfig."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from avindex.config.models import LoggingConfig


def build_logging_config(
    base: LoggingConfig,
    *,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> LoggingConfig:
    """Return base with every non-None override applied.

    The result is a new LoggingConfig, so __post_init__ validation runs
    again and a bad override raises ValueError.
    """
    overrides = {
        "level": level,
        "file": file,
        "format": format,
        "include_stderr": include_stderr,
    }
    return replace(base, **{k: v for k, v in overrides.items() if v is not None})


def configure_logging_from_cli(
    *,
    config_path: Path | None = None,
    level: str | None = None,
    file: Path | None = None,
    format: str | None = None,
    include_stderr: bool | None = None,
) -> None:
    """Configure logging from the config file, environment and CLI flags.

    Args:
        config_path: Config file given with --config, or None for the default.
        level: --log-level value.
        file: --log-file value.
        format: "json" when --log-json is given.
        include_stderr: Keep logging to stderr alongside a file.
    """
    from avindex.config import get_config
    from avindex.logging import configure_logging

    configure_logging(
        build_logging_config(
            get_config(config_path=config_path).logging,
            level=level,
            file=file,
            format=format,
            include_stderr=include_stderr,
        )
    )
