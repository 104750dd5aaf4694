"""Configuration loading and typed config dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

OUTPUT_FORMATS = ("table", "json")


@dataclass
class SummarySettings:
    budgets_path: str | None = None
    entities_path: str | None = None
    output_format: str = "table"


@dataclass
class LoggingSettings:
    level: str = "INFO"
    quiet_loggers: list[str] = field(default_factory=lambda: ["asyncio", "tldextract", "filelock"])


@dataclass
class AppConfig:
    project_root: Path = field(default_factory=lambda: Path.cwd())
    summary: SummarySettings = field(default_factory=SummarySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def resolve_path(self, relative_path: str) -> Path:
        """Resolve a relative path against the project root."""
        p = Path(relative_path)
        if p.is_absolute():
            return p
        return self.project_root / p


def _build_nested(cls, data: dict | None):
    """Build a dataclass from a dict, ignoring unknown keys."""
    if data is None:
        return cls()
    fieldnames = {f.name for f in cls.__dataclass_fields__.values()}
    return cls(**{key: val for key, val in data.items() if key in fieldnames})


def load_config(path: str | Path) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config_path = Path(path)
    project_root = config_path.parent

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        raw = {}

    config = AppConfig(
        project_root=project_root,
        summary=_build_nested(SummarySettings, raw.get("summary")),
        logging=_build_nested(LoggingSettings, raw.get("logging")),
    )
    if config.summary.output_format not in OUTPUT_FORMATS:
        raise ValueError(
            f"Unknown output_format {config.summary.output_format!r}, expected one of {OUTPUT_FORMATS}"
        )
    return config
