from __future__ import annotations

from datetime import UTC, datetime

import duckdb


def ensure_core_schemas(con: duckdb.DuckDBPyConnection) -> None:
    con.execute("CREATE SCHEMA IF NOT EXISTS main_intermediate")
    con.execute("CREATE SCHEMA IF NOT EXISTS main_runs")


def ensure_request_table(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_intermediate.int_group_selection_requests (
            request_id VARCHAR PRIMARY KEY,
            person_id VARCHAR,
            enrollment_id VARCHAR,
            market_kind VARCHAR,
            employee_role_id VARCHAR,
            change_trigger VARCHAR,
            coverage_kind VARCHAR,
            effective_on_option_selected VARCHAR,
            as_of DATE
        )
        """
    )


def ensure_run_registry(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_runs.run_registry (
            run_id VARCHAR PRIMARY KEY,
            run_timestamp VARCHAR,
            run_description VARCHAR,
            analysis_type VARCHAR,
            engine VARCHAR,
            snapshot_path VARCHAR,
            run_config VARCHAR,
            status VARCHAR,
            trigger_source VARCHAR,
            request_count INTEGER,
            failed_count INTEGER,
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
        """
    )

    # Not unique: sub-second runs can share a timestamp.
    con.execute(
        "CREATE INDEX IF NOT EXISTS idx_run_registry_timestamp ON main_runs.run_registry (run_timestamp)"
    )


def ensure_decision_tables(con: duckdb.DuckDBPyConnection) -> None:
    con.execute(
        """
        CREATE TABLE IF NOT EXISTS main_runs.group_selection_decisions (
            run_id VARCHAR,
            request_id VARCHAR,
            person_id VARCHAR,
            market_kind VARCHAR,
            coverage_kind VARCHAR,
            role_kind VARCHAR,
            role_id VARCHAR,
            effective_on DATE,
            prior_enrollment_id VARCHAR,
            benefit_group_id VARCHAR,
            benefit_group_assignment_id VARCHAR,
            benefit_package_id VARCHAR,
            disabled_market_kind VARCHAR,
            cobra_member_ids JSON,
            waivable BOOLEAN,
            error VARCHAR,
            details JSON,
            created_at TIMESTAMP,
            PRIMARY KEY (run_id, request_id)
        )
        """
    )


def ensure_selection_warehouse(con: duckdb.DuckDBPyConnection) -> None:
    ensure_core_schemas(con)
    ensure_request_table(con)
    ensure_run_registry(con)
    ensure_decision_tables(con)


def now_utc() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)
