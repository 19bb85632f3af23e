"""AVINDEX_* environment variables, parsed with a fallback on bad values.

EnvReader takes the mapping to read from, so tests hand it a plain dict
instead of patching os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})


class EnvReader:
    """Typed access to environment variables.

    A value that does not parse is logged and the default returned, so a
    typo in a service unit never stops avindex from starting.

    Example:
        reader = EnvReader(env={"AVINDEX_WORKERS": "4"})
        reader.get_int("AVINDEX_WORKERS", 2)  # 4
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def _parse(
        self, var: str, default: T | None, parse: Callable[[str], T], kind: str
    ) -> T | None:
        raw = self._env.get(var)
        if raw is None:
            return default
        try:
            return parse(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid %s", var, raw, kind)
            return default

    def get_str(self, var: str, default: str | None = None) -> str | None:
        return self._env.get(var, default)

    def get_int(self, var: str, default: int | None = None) -> int | None:
        return self._parse(var, default, int, "integer")

    def get_float(self, var: str, default: float | None = None) -> float | None:
        return self._parse(var, default, float, "number")

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Read a flag; true, 1, yes and on (any case) are true."""
        return self._parse(var, default, lambda raw: raw.casefold() in _TRUE_WORDS, "flag")

    def get_path(
        self, var: str, must_exist: bool = False, default: Path | None = None
    ) -> Path | None:
        """Read a path with ~ expanded.

        With must_exist, a path that is not on disk is logged and the
        default returned instead; used for the model files.
        """
        path = self._parse(var, None, lambda raw: Path(raw).expanduser(), "path")
        if path is None:
            return default
        if must_exist and not path.exists():
            logger.warning("%s points to a missing path: %s", var, path)
            return default
        return path
