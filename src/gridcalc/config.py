"""Engine configuration with defaults, loaded from ``gridcalc.yaml``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from gridcalc.logging.events import EventType, emit_info

CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG = {
    "max_range_cells": 1_000_000,
    "max_rows": None,
    "max_cols": None,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
    "log_dir": None,
}


class EngineConfig(BaseModel):
    """Validated engine settings.

    ``max_rows`` / ``max_cols`` bound the grid for ``SheetStore``; reads
    outside the bounds yield ``#REF!``.  ``log_dir`` enables the NDJSON
    event log when set.
    """

    max_range_cells: int = Field(default=DEFAULT_CONFIG["max_range_cells"], gt=0)
    max_rows: int | None = Field(default=None, gt=0)
    max_cols: int | None = Field(default=None, gt=0)
    logging_fsync: bool = False
    logging_tail_bytes: int = Field(default=DEFAULT_CONFIG["logging_tail_bytes"], gt=0)
    log_dir: str | None = None


def load_engine_config(path: str | Path | None = None) -> EngineConfig:
    """Load engine configuration from a YAML file, with defaults.

    Args:
        path: A YAML file, or a directory containing ``gridcalc.yaml``.
            None or a missing file yields the defaults.

    Returns:
        The merged, validated configuration.

    Raises:
        ValueError: If the file is not a mapping or names unknown keys.
        pydantic.ValidationError: If a value has the wrong type or range.
    """
    config: dict[str, Any] = dict(DEFAULT_CONFIG)
    config_path: Path | None = None
    if path is not None:
        config_path = Path(path)
        if config_path.is_dir():
            config_path = config_path / CONFIG_FILENAME

    if config_path is not None and config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path}: expected a mapping, got {type(user_config).__name__}")
        unknown = sorted(set(user_config) - set(DEFAULT_CONFIG))
        if unknown:
            raise ValueError(f"{config_path}: unknown config keys: {', '.join(unknown)}")
        config.update(user_config)
        emit_info(
            EventType.config_loaded,
            f"Loaded configuration from {config_path}",
            {"path": str(config_path), "keys": sorted(user_config)},
        )

    return EngineConfig(**config)
