"""Configuration models, validated when constructed."""

from dataclasses import dataclass, field
from pathlib import Path

LOG_LEVELS = frozenset({"debug", "info", "warning", "error"})
LOG_FORMATS = frozenset({"text", "json"})


@dataclass
class LoggingConfig:
    """Where avindex logs go and how they look.

    Without a file, records go to stderr. With one, the file rotates at
    max_bytes and keeps backup_count old copies; include_stderr mirrors
    records to stderr as well.
    """

    level: str = "info"
    file: Path | None = None
    format: str = "text"
    include_stderr: bool = False
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5

    def __post_init__(self) -> None:
        if self.level.lower() not in LOG_LEVELS:
            raise ValueError(
                f"level must be one of {sorted(LOG_LEVELS)}, got {self.level}"
            )
        if self.format.lower() not in LOG_FORMATS:
            raise ValueError(
                f"format must be one of {sorted(LOG_FORMATS)}, got {self.format}"
            )


@dataclass
class IngestConfig:
    """Configuration for the ingest and improvement pipeline."""

    workers: int = 2
    """Number of probe workers per dispatcher."""

    probe_min: int = 10
    """Files below this probe count are always revisited while their score is low."""

    probe_max: int = 30
    """Hard cap on probes per file."""

    thumbnails_per_file: int = 4
    """Thumbnails kept per file after an overflow cull."""

    scan_interval_seconds: float = 600.0
    """Pause between ingest passes of the background scanner."""

    idle_max_seconds: float = 60.0
    """Upper bound of the random pause between improvement rounds."""

    locked_retry_max_seconds: float = 30.0
    """Upper bound of the random pause after a locked database."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.probe_min < 1:
            raise ValueError(f"probe_min must be at least 1, got {self.probe_min}")
        if self.probe_max < self.probe_min:
            raise ValueError(
                f"probe_max must be >= probe_min ({self.probe_min}), "
                f"got {self.probe_max}"
            )
        if self.thumbnails_per_file < 1:
            raise ValueError(
                "thumbnails_per_file must be at least 1, "
                f"got {self.thumbnails_per_file}"
            )
        for name in (
            "scan_interval_seconds",
            "idle_max_seconds",
            "locked_retry_max_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")


@dataclass
class ScorerConfig:
    """Configuration for the face scorer.

    Both model paths are optional. Without them the evaluate and improve
    loop is disabled and thumbnails are never face-checked.
    """

    detect_model: Path | None = None
    """YOLOv8 face detector in ONNX format."""

    assess_model: Path | None = None
    """Face quality assessment model in ONNX format."""

    threads: int = 2
    """Threads used for model inference."""

    confidence_threshold: float = 0.60
    nms_threshold: float = 0.5

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.threads < 1:
            raise ValueError(f"threads must be at least 1, got {self.threads}")
        for name in ("confidence_threshold", "nms_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")

    @property
    def enabled(self) -> bool:
        """True when both face models are configured."""
        return self.detect_model is not None and self.assess_model is not None


@dataclass
class ServerConfig:
    """HTTP listener of `avindex serve` and its shutdown grace period."""

    bind: str = "0.0.0.0"
    port: int = 8080
    shutdown_timeout: float = 30.0

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive, got {self.shutdown_timeout}"
            )


@dataclass
class AvIndexConfig:
    """Everything avindex reads from file, environment and flags."""

    media_path: Path = field(default_factory=lambda: Path("."))
    database_path: Path = field(default_factory=lambda: Path("info.db"))
    ingest: IngestConfig = field(default_factory=IngestConfig)
    scorer: ScorerConfig = field(default_factory=ScorerConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def resolved_database_path(self) -> Path:
        """Database path, relative paths taken from the media root."""
        if self.database_path.is_absolute():
            return self.database_path
        return self.media_path / self.database_path
