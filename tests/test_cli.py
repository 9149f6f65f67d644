"""CLI tests via click's CliRunner."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

import gridcalc.logging.events as events_mod
from gridcalc import __version__
from gridcalc.cli import main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def sheet_file(tmp_path: Path) -> Path:
    path = tmp_path / "sheet.yaml"
    path.write_text(
        yaml.dump(
            {
                "A1": 100,
                "B1": 200,
                "C1": "=(A1+B1)/2",
                "A2": "=C1*2",
                "B2": "=SUM(A1:B1)",
            }
        )
    )
    return path


@pytest.fixture
def reset_sink():
    old_sink = events_mod._sink
    yield
    events_mod._sink = old_sink


class TestBasics:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_functions_lists_builtins(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["functions"])
        assert result.exit_code == 0
        names = result.output.split()
        assert "SUM" in names
        assert "VLOOKUP" in names
        assert names == sorted(names)


class TestEval:
    def test_arithmetic(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "=1+2*3"])
        assert result.exit_code == 0
        assert result.output.strip() == "7"

    def test_equals_sign_optional(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", 'UPPER("abc")'])
        assert result.output.strip() == "ABC"

    def test_error_value_printed(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "=1/0"])
        assert result.exit_code == 0
        assert result.output.strip() == "#DIV/0!"

    def test_syntax_error_fails(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["eval", "=1+"])
        assert result.exit_code != 0
        assert "Formula parse error" in result.output


class TestCalc:
    def test_all_cells_row_major(self, runner: CliRunner, sheet_file: Path) -> None:
        result = runner.invoke(main, ["calc", str(sheet_file)])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "A1\t100",
            "B1\t200",
            "C1\t150",
            "A2\t300",
            "B2\t300",
        ]

    def test_selected_cells(self, runner: CliRunner, sheet_file: Path) -> None:
        result = runner.invoke(main, ["calc", str(sheet_file), "--cell", "A2", "--cell", "c1"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["A2\t300", "C1\t150"]

    def test_invalid_cell_option(self, runner: CliRunner, sheet_file: Path) -> None:
        result = runner.invoke(main, ["calc", str(sheet_file), "--cell", "1A"])
        assert result.exit_code != 0
        assert "Invalid cell address" in result.output

    def test_invalid_address_in_sheet(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"nope": 1}))
        result = runner.invoke(main, ["calc", str(path)])
        assert result.exit_code != 0
        assert "invalid cell address" in result.output

    def test_sheet_not_a_mapping(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text(yaml.dump([1, 2]))
        result = runner.invoke(main, ["calc", str(path)])
        assert result.exit_code != 0

    def test_config_bounds(self, runner: CliRunner, sheet_file: Path, tmp_path: Path) -> None:
        config = tmp_path / "gridcalc.yaml"
        config.write_text(yaml.dump({"max_cols": 2}))
        result = runner.invoke(main, ["calc", str(sheet_file), "--config", str(config)])
        assert result.exit_code != 0
        assert "outside the grid" in result.output

    def test_bad_config(self, runner: CliRunner, sheet_file: Path, tmp_path: Path) -> None:
        config = tmp_path / "gridcalc.yaml"
        config.write_text(yaml.dump({"bogus": 1}))
        result = runner.invoke(main, ["calc", str(sheet_file), "--config", str(config)])
        assert result.exit_code != 0
        assert "unknown config keys" in result.output

    def test_circular_sheet(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "loop.yaml"
        path.write_text(yaml.dump({"A1": "=B1", "B1": "=A1"}))
        result = runner.invoke(main, ["calc", str(path)])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["A1\t#CIRC!", "B1\t#CIRC!"]


class TestEvents:
    def test_no_events(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["events", str(tmp_path)])
        assert result.exit_code == 0
        assert "No events found" in result.output

    def test_events_from_calc(
        self, runner: CliRunner, tmp_path: Path, sheet_file: Path, reset_sink
    ) -> None:
        log_dir = tmp_path / "logs"
        config = tmp_path / "gridcalc.yaml"
        config.write_text(yaml.dump({"log_dir": str(log_dir)}))
        bad = tmp_path / "bad.yaml"
        bad.write_text(yaml.dump({"A1": "=1+"}))
        assert runner.invoke(main, ["calc", str(bad), "--config", str(config)]).exit_code == 0

        result = runner.invoke(main, ["events", str(log_dir)])
        assert result.exit_code == 0
        assert "formulas_initialized" in result.output
        assert "formula_parse_error" in result.output

        result = runner.invoke(main, ["events", str(log_dir), "--level", "warning"])
        assert "WARNING" in result.output
        assert "(formula_syntax)" in result.output
        assert "INFO" not in result.output
