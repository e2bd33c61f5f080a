from __future__ import annotations

from typing import Any

import polars as pl
from dagster import asset
from pydantic import BaseModel

from enrollment_dagster.db.bootstrap import ensure_selection_warehouse, now_utc
from enrollment_dagster.db.run_registry import (
    RunRecord,
    generate_run_timestamp,
    insert_run,
    json_dumps,
    update_run_status,
)
from enrollment_dagster.resources.duckdb_resource import DuckDBResource
from enrollment_rules.group_selection import GroupSelection
from enrollment_rules.group_selection.errors import GroupSelectionError
from enrollment_rules.group_selection.policy import load_policy
from enrollment_rules.group_selection.snapshot_loader import REQUEST_COLUMNS, load_snapshot, rows_to_requests

# Columns must match main_runs.group_selection_decisions definition order
DECISION_SCHEMA = {
    "run_id": pl.Utf8,
    "request_id": pl.Utf8,
    "person_id": pl.Utf8,
    "market_kind": pl.Utf8,
    "coverage_kind": pl.Utf8,
    "role_kind": pl.Utf8,
    "role_id": pl.Utf8,
    "effective_on": pl.Date,
    "prior_enrollment_id": pl.Utf8,
    "benefit_group_id": pl.Utf8,
    "benefit_group_assignment_id": pl.Utf8,
    "benefit_package_id": pl.Utf8,
    "disabled_market_kind": pl.Utf8,
    "cobra_member_ids": pl.Utf8,
    "waivable": pl.Boolean,
    "error": pl.Utf8,
    "details": pl.Utf8,
    "created_at": pl.Datetime,
}


class SelectionRunConfig(BaseModel):
    snapshot_path: str
    policy_path: str | None = None
    run_description: str = "Group selection run"
    trigger_source: str = "dagster"
    on_error: str = "skip"
    schema_name: str = "main_intermediate"
    table: str = "int_group_selection_requests"
    batch_size: int = 10000


def _empty_decision(run_id: str, request_id: str, person_id: str, created_at: Any) -> dict[str, Any]:
    row: dict[str, Any] = {column: None for column in DECISION_SCHEMA}
    row.update(run_id=run_id, request_id=request_id, person_id=person_id, waivable=False, created_at=created_at)
    return row


@asset
def evaluate_group_selections(context, duckdb: DuckDBResource) -> None:
    """Evaluate every pending selection request and write main_runs.group_selection_decisions.

    Reads `main_intermediate.int_group_selection_requests`, evaluates each
    request against the configured marketplace snapshot and records one
    decision row per request. Requests that fail evaluation are written with
    their error when `on_error` is `skip`.
    """

    config = SelectionRunConfig.model_validate(context.op_config or {})

    context.log.info(f"Connecting to DuckDB at: {duckdb.path}")
    con = duckdb.get_connection().connect()

    ensure_selection_warehouse(con)

    run_id = context.run_id
    record = RunRecord(
        run_id=run_id,
        run_timestamp=generate_run_timestamp(),
        run_description=config.run_description,
        analysis_type="group_selection",
        engine="group_selection",
        snapshot_path=config.snapshot_path,
        run_config=config.model_dump(),
        status="started",
        trigger_source=config.trigger_source,
        created_at=now_utc(),
        updated_at=now_utc(),
    )
    insert_run(con, record)

    try:
        engine = GroupSelection(load_snapshot(config.snapshot_path), load_policy(config.policy_path))

        rows = con.execute(
            f"SELECT {', '.join(REQUEST_COLUMNS)} FROM {config.schema_name}.{config.table} ORDER BY request_id"
        ).fetchall()
        requests, stats = rows_to_requests(rows, on_error=config.on_error)

        if stats["skipped"] > 0:
            context.log.warning(f"Skipped {stats['skipped']} invalid request rows: {stats['invalid_request_ids']}")

        context.log.info(f"Evaluating {len(requests)} selection requests...")

        out_rows: list[dict[str, Any]] = []
        created_at = now_utc()
        total_written = 0
        failed = 0

        def flush_batch(rows: list[dict[str, Any]]) -> None:
            if not rows:
                return
            df = pl.DataFrame(rows, schema=DECISION_SCHEMA)
            con.execute("INSERT OR REPLACE INTO main_runs.group_selection_decisions SELECT * FROM df")

        for request_id, request in requests:
            row = _empty_decision(run_id, request_id, request.person_id, created_at)
            try:
                result = engine.evaluate(request)
            except GroupSelectionError as exc:
                if config.on_error == "raise":
                    raise
                failed += 1
                row["error"] = f"{type(exc).__name__}: {exc}"
                row["details"] = json_dumps(exc.context)
            else:
                row.update(
                    role_id=result.role_id,
                    role_kind=result.role_kind,
                    market_kind=result.market_kind.value,
                    coverage_kind=result.coverage_kind.value,
                    effective_on=result.effective_on,
                    prior_enrollment_id=result.prior_enrollment_id,
                    benefit_group_id=result.benefit_group_id,
                    benefit_group_assignment_id=result.benefit_group_assignment_id,
                    benefit_package_id=result.benefit_package_id,
                    disabled_market_kind=(
                        result.disabled_market_kind.value if result.disabled_market_kind else None
                    ),
                    cobra_member_ids=(
                        json_dumps(result.cobra_member_ids) if result.cobra_member_ids is not None else None
                    ),
                    waivable=result.waivable,
                    details=json_dumps({**result.details, "effective_on_options": result.effective_on_options}),
                )
            out_rows.append(row)

            if len(out_rows) >= config.batch_size:
                flush_batch(out_rows)
                total_written += len(out_rows)
                out_rows = []
                context.log.info(f"Evaluated and wrote {total_written}/{len(requests)} requests")

        flush_batch(out_rows)
        total_written += len(out_rows)

        if failed:
            context.log.warning(f"{failed}/{len(requests)} requests failed evaluation")

        update_run_status(con, run_id=run_id, status="success", request_count=total_written, failed_count=failed)
        context.log.info(f"Wrote {total_written} rows to main_runs.group_selection_decisions for run_id={run_id}")

    except Exception:
        update_run_status(con, run_id=run_id, status="failed")
        raise

    finally:
        con.close()
