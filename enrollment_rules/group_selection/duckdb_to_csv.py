from __future__ import annotations

import argparse
import csv
import json
import logging
import os
from datetime import datetime
from pathlib import Path

import duckdb
import yaml

from enrollment_rules.group_selection.errors import GroupSelectionError
from enrollment_rules.group_selection.evaluator import GroupSelection
from enrollment_rules.group_selection.policy import load_policy
from enrollment_rules.group_selection.snapshot_loader import REQUEST_COLUMNS, load_snapshot, rows_to_requests

logger = logging.getLogger(__name__)

CSV_FIELDNAMES = [
    "request_id",
    "person_id",
    "market_kind",
    "coverage_kind",
    "role_kind",
    "effective_on",
    "prior_enrollment_id",
    "benefit_group_id",
    "benefit_group_assignment_id",
    "benefit_package_id",
    "disabled_market_kind",
    "cobra_member_ids",
    "waivable",
    "error",
]


def _get_repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _default_duckdb_path() -> str:
    env_path = os.environ.get("DUCKDB_PATH")
    if env_path:
        return env_path
    return str((_get_repo_root() / "group_selection.duckdb").resolve())


def evaluate_from_duckdb_to_csv(
    *,
    duckdb_path: str,
    snapshot_path: str,
    output_csv_path: str,
    schema: str = "main_intermediate",
    table: str = "int_group_selection_requests",
    limit: int | None = None,
    on_error: str = "skip",
    policy_path: str | None = None,
    detail_exports: int = 20,
) -> int:
    """Read selection requests from DuckDB and write decisions to CSV.

    Returns number of decisions written (failed requests are written with an
    `error` column when `on_error="skip"`, and not counted).

    Expected input relation: `{schema}.{table}` with the columns in
    `REQUEST_COLUMNS`.
    """
    snapshot = load_snapshot(snapshot_path)
    engine = GroupSelection(snapshot, load_policy(policy_path))

    con = duckdb.connect(str(Path(duckdb_path).expanduser().resolve()))
    try:
        sql = f"SELECT {', '.join(REQUEST_COLUMNS)} FROM {schema}.{table} ORDER BY request_id"
        if limit is not None:
            sql += f"\nLIMIT {int(limit)}"
        rows = con.execute(sql).fetchall()
    finally:
        con.close()

    requests, stats = rows_to_requests(rows, on_error=on_error)
    if stats["skipped"]:
        logger.warning("Skipped %s invalid request rows: %s", stats["skipped"], stats["invalid_request_ids"])

    output_path = Path(output_csv_path).expanduser().resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    yaml_dir = output_path.parent / "yaml_details"
    if detail_exports:
        yaml_dir.mkdir(parents=True, exist_ok=True)

    written = 0
    failed = 0
    with output_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
        writer.writeheader()

        for request_id, request in requests:
            try:
                result = engine.evaluate(request)
            except GroupSelectionError as exc:
                if on_error == "raise":
                    raise
                failed += 1
                logger.warning("Request %s failed: %s", request_id, exc)
                writer.writerow(
                    {
                        "request_id": request_id,
                        "person_id": request.person_id,
                        "error": f"{type(exc).__name__}: {exc}",
                    }
                )
                continue

            if written < detail_exports:
                with (yaml_dir / f"{request_id}.yml").open("w", encoding="utf-8") as yf:
                    yaml.dump({"request_id": request_id, **result.model_dump(mode="json")}, yf, sort_keys=False)

            writer.writerow(
                {
                    "request_id": request_id,
                    "person_id": result.person_id,
                    "market_kind": result.market_kind.value,
                    "coverage_kind": result.coverage_kind.value,
                    "role_kind": result.role_kind,
                    "effective_on": result.effective_on.isoformat(),
                    "prior_enrollment_id": result.prior_enrollment_id,
                    "benefit_group_id": result.benefit_group_id,
                    "benefit_group_assignment_id": result.benefit_group_assignment_id,
                    "benefit_package_id": result.benefit_package_id,
                    "disabled_market_kind": (
                        result.disabled_market_kind.value if result.disabled_market_kind else None
                    ),
                    "cobra_member_ids": (
                        json.dumps(result.cobra_member_ids) if result.cobra_member_ids is not None else None
                    ),
                    "waivable": result.waivable,
                    "error": None,
                }
            )
            written += 1

    if failed:
        logger.warning("%s/%s requests failed evaluation", failed, len(requests))
    return written


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="enrollment_rules.group_selection.duckdb_to_csv",
        description=(
            "Read main_intermediate.int_group_selection_requests from DuckDB, evaluate "
            "each request against a marketplace snapshot and write decisions to CSV."
        ),
    )
    p.add_argument(
        "--duckdb-path",
        default=_default_duckdb_path(),
        help="Path to DuckDB file (default: DUCKDB_PATH env var or repo group_selection.duckdb)",
    )
    p.add_argument("--snapshot", required=True, help="Marketplace snapshot (YAML or JSON)")
    p.add_argument(
        "--output-csv",
        required=False,
        help="Output CSV path. Defaults to tmp_exports/YYYYMMDD_HHMMSSffffff_group_selections.csv",
    )
    p.add_argument("--policy", default=None, help="Optional selection policy YAML")
    p.add_argument("--schema", default="main_intermediate", help="DuckDB schema containing the requests")
    p.add_argument("--table", default="int_group_selection_requests", help="DuckDB table/view with the requests")
    p.add_argument("--limit", type=int, default=None, help="Optional row limit for quick smoke tests")
    p.add_argument(
        "--on-error",
        choices=["skip", "raise"],
        default="skip",
        help="What to do if a request is invalid or fails evaluation",
    )
    return p


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = _build_arg_parser().parse_args(argv)

    output_csv = args.output_csv
    if not output_csv:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S%f")
        output_csv = str(Path(__file__).parent / "tmp_exports" / f"{timestamp}_group_selections.csv")

    count = evaluate_from_duckdb_to_csv(
        duckdb_path=args.duckdb_path,
        snapshot_path=args.snapshot,
        output_csv_path=output_csv,
        schema=str(args.schema),
        table=str(args.table),
        limit=args.limit,
        on_error=str(args.on_error),
        policy_path=args.policy,
    )

    print(f"Wrote {count} decisions to {Path(output_csv).expanduser().resolve()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
