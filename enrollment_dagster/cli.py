from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Optional

import typer

from enrollment_dagster.db.bootstrap import ensure_selection_warehouse
from enrollment_dagster.resources.duckdb_resource import DuckDBResource
from enrollment_rules.group_selection import GroupSelection, GroupSelectionRequest
from enrollment_rules.group_selection.errors import GroupSelectionError
from enrollment_rules.group_selection.models import ChangeTrigger, CoverageKind, MarketKind
from enrollment_rules.group_selection.policy import load_policy
from enrollment_rules.group_selection.policy_queries import shop_monthly_enrollments, shop_monthly_terminations
from enrollment_rules.group_selection.snapshot_loader import load_snapshot

app = typer.Typer(no_args_is_help=True, help="Group selection CLI - evaluation and warehouse utilities")

DEFAULT_DUCKDB_PATH = str(
    (Path(__file__).resolve().parents[1] / "group_selection.duckdb").resolve()
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command(name="db-bootstrap")
def db_bootstrap(
    duckdb_path: str = typer.Option(DEFAULT_DUCKDB_PATH, "--duckdb-path"),
) -> None:
    """Create the group selection schemas + tables in DuckDB.

    Creates: `main_intermediate`, `main_runs`.
    """

    res = DuckDBResource(path=duckdb_path)
    con = res.get_connection().connect()
    try:
        ensure_selection_warehouse(con)
    finally:
        con.close()

    typer.echo(f"Bootstrapped warehouse at {Path(duckdb_path).resolve()}")


@app.command()
def evaluate(
    snapshot: Path = typer.Option(..., "--snapshot", exists=True, dir_okay=False),
    person_id: str = typer.Option(..., "--person-id"),
    enrollment_id: Optional[str] = typer.Option(None, "--enrollment-id"),
    market_kind: Optional[MarketKind] = typer.Option(None, "--market-kind"),
    employee_role_id: Optional[str] = typer.Option(None, "--employee-role-id"),
    change_trigger: ChangeTrigger = typer.Option(ChangeTrigger.open_enrollment, "--change-trigger"),
    coverage_kind: Optional[CoverageKind] = typer.Option(None, "--coverage-kind", help="Default: policy setting"),
    effective_on: Optional[str] = typer.Option(None, "--effective-on", help="Selected option, MM/DD/YYYY"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Date of record, YYYY-MM-DD"),
    policy: Optional[Path] = typer.Option(None, "--policy", exists=True, dir_okay=False),
) -> None:
    """Evaluate one selection request and print the decision as JSON."""

    engine = GroupSelection(load_snapshot(snapshot), load_policy(policy))
    request = GroupSelectionRequest(
        person_id=person_id,
        enrollment_id=enrollment_id,
        market_kind=market_kind,
        employee_role_id=employee_role_id,
        change_trigger=change_trigger,
        coverage_kind=coverage_kind,
        effective_on_option_selected=effective_on,
        as_of=date.fromisoformat(as_of) if as_of else None,
    )

    try:
        result = engine.evaluate(request)
    except GroupSelectionError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(result.model_dump_json(indent=2))


@app.command(name="shop-monthly")
def shop_monthly(
    snapshot: Path = typer.Option(..., "--snapshot", exists=True, dir_okay=False),
    effective_on: str = typer.Option(..., "--effective-on", help="Plan year start, YYYY-MM-DD"),
    fein: list[str] = typer.Option(..., "--fein", help="Employer FEIN; repeat for several"),
) -> None:
    """List shop enrollments and terminations effective on a plan year start."""

    data = load_snapshot(snapshot)
    start_on = date.fromisoformat(effective_on)

    for enrollment_id in shop_monthly_enrollments(data, fein, start_on):
        typer.echo(f"enrollment\t{enrollment_id}")
    for enrollment_id in shop_monthly_terminations(data, fein, start_on):
        typer.echo(f"termination\t{enrollment_id}")


if __name__ == "__main__":
    app()
