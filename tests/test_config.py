"""Tests for engine configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from gridcalc.config import CONFIG_FILENAME, DEFAULT_CONFIG, EngineConfig, load_engine_config
from gridcalc.engine import FormulaEngine
from gridcalc.store import SheetStore


def _write(path: Path, data) -> Path:
    path.write_text(yaml.dump(data))
    return path


class TestDefaults:
    def test_default_config_keys(self) -> None:
        assert DEFAULT_CONFIG["max_range_cells"] == 1_000_000
        assert DEFAULT_CONFIG["max_rows"] is None
        assert DEFAULT_CONFIG["max_cols"] is None
        assert DEFAULT_CONFIG["logging_fsync"] is False
        assert DEFAULT_CONFIG["logging_tail_bytes"] == 2 * 1024 * 1024
        assert DEFAULT_CONFIG["log_dir"] is None

    def test_no_path(self) -> None:
        assert load_engine_config() == EngineConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_engine_config(tmp_path / "nope.yaml") == EngineConfig()


class TestLoad:
    def test_merges_over_defaults(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "custom.yaml", {"max_rows": 100, "max_range_cells": 500})
        config = load_engine_config(path)
        assert config.max_rows == 100
        assert config.max_range_cells == 500
        assert config.max_cols is None

    def test_directory_uses_default_filename(self, tmp_path: Path) -> None:
        _write(tmp_path / CONFIG_FILENAME, {"max_cols": 26})
        assert load_engine_config(tmp_path).max_cols == 26

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("")
        assert load_engine_config(path) == EngineConfig()

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = _write(tmp_path / CONFIG_FILENAME, {"max_rows": 10, "colour": "red"})
        with pytest.raises(ValueError, match="unknown config keys: colour"):
            load_engine_config(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = _write(tmp_path / CONFIG_FILENAME, [1, 2, 3])
        with pytest.raises(ValueError, match="expected a mapping"):
            load_engine_config(path)

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = _write(tmp_path / CONFIG_FILENAME, {"max_range_cells": 0})
        with pytest.raises(ValidationError):
            load_engine_config(path)


class TestEngineUsesConfig:
    def test_default_store_is_bounded(self) -> None:
        engine = FormulaEngine(config=EngineConfig(max_rows=5, max_cols=3))
        assert isinstance(engine.store, SheetStore)
        assert engine.store.in_bounds(2, 4)
        assert not engine.store.in_bounds(3, 0)

    def test_bounds_checked_on_edit(self) -> None:
        engine = FormulaEngine(config=EngineConfig(max_rows=5))
        with pytest.raises(IndexError):
            engine.set_cell(0, 5, "1")

    def test_insert_drops_cells_pushed_off_grid(self) -> None:
        engine = FormulaEngine(config=EngineConfig(max_rows=3))
        engine.set_cell(0, 2, "last")
        engine.insert_rows(0)
        assert engine.get_value(0, 2) is None
        assert len(engine.store) == 0
