from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import duckdb

from enrollment_dagster.db.bootstrap import now_utc


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), default=str)


def generate_run_timestamp(now: datetime | None = None) -> str:
    """Return YYYYMMDDHHMMSSUUUU, UUUU being tenths of a millisecond."""
    now = now or now_utc()
    return now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 100:04d}"


@dataclass(frozen=True)
class RunRecord:
    run_id: str
    run_timestamp: str
    run_description: str | None
    analysis_type: str
    engine: str
    snapshot_path: str | None
    run_config: dict[str, Any]
    status: str
    trigger_source: str | None
    created_at: datetime
    updated_at: datetime


def insert_run(con: duckdb.DuckDBPyConnection, record: RunRecord) -> None:
    con.execute(
        """
        INSERT INTO main_runs.run_registry (
            run_id,
            run_timestamp,
            run_description,
            analysis_type,
            engine,
            snapshot_path,
            run_config,
            status,
            trigger_source,
            created_at,
            updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            record.run_id,
            record.run_timestamp,
            record.run_description,
            record.analysis_type,
            record.engine,
            record.snapshot_path,
            json_dumps(record.run_config),
            record.status,
            record.trigger_source,
            record.created_at,
            record.updated_at,
        ],
    )


def update_run_status(
    con: duckdb.DuckDBPyConnection,
    *,
    run_id: str,
    status: str,
    request_count: int | None = None,
    failed_count: int | None = None,
) -> None:
    con.execute(
        """
        UPDATE main_runs.run_registry
        SET status = ?,
            request_count = COALESCE(?, request_count),
            failed_count = COALESCE(?, failed_count),
            updated_at = ?
        WHERE run_id = ?
        """,
        [status, request_count, failed_count, now_utc(), run_id],
    )
