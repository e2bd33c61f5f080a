from __future__ import annotations

import json
from pathlib import Path

import duckdb
from typer.testing import CliRunner

from enrollment_dagster.cli import app

EXAMPLE_SNAPSHOT = str(Path(__file__).resolve().parents[1] / "enrollment_dagster" / "configs" / "snapshot_example.yaml")

runner = CliRunner()


def test_evaluate_prints_decision() -> None:
    result = runner.invoke(
        app,
        ["evaluate", "--snapshot", EXAMPLE_SNAPSHOT, "--person-id", "P002", "--change-trigger", "sep", "--as-of", "2024-10-10"],
    )

    assert result.exit_code == 0, result.output
    decision = json.loads(result.stdout)
    assert decision["market_kind"] == "individual"
    assert decision["effective_on"] == "2024-10-03"
    assert decision["disabled_market_kind"] == "shop"
    assert decision["benefit_package_id"] == "BP-2024-H"
    assert decision["coverage_kind"] == "health"
    assert decision["effective_on_options"] == ["10/03/2024", "11/01/2024"]


def test_evaluate_unknown_person_exits_nonzero() -> None:
    result = runner.invoke(app, ["evaluate", "--snapshot", EXAMPLE_SNAPSHOT, "--person-id", "NOPE"])

    assert result.exit_code == 1


def test_shop_monthly_lists_enrollments() -> None:
    result = runner.invoke(
        app,
        ["shop-monthly", "--snapshot", EXAMPLE_SNAPSHOT, "--effective-on", "2024-01-01", "--fein", "123456789"],
    )

    assert result.exit_code == 0, result.output
    assert "enrollment\tHBX-1001" in result.stdout


def test_db_bootstrap_creates_tables(tmp_path: Path) -> None:
    db_path = tmp_path / "warehouse.duckdb"

    result = runner.invoke(app, ["db-bootstrap", "--duckdb-path", str(db_path)])

    assert result.exit_code == 0, result.output
    con = duckdb.connect(str(db_path))
    try:
        tables = {
            row[0]
            for row in con.execute(
                "SELECT table_schema || '.' || table_name FROM information_schema.tables"
            ).fetchall()
        }
    finally:
        con.close()
    assert "main_runs.group_selection_decisions" in tables
    assert "main_intermediate.int_group_selection_requests" in tables
