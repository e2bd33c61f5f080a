"""Load marketplace snapshots and selection requests.

Snapshots are YAML or JSON documents with top-level `persons`, `families`,
`employers`, `enrollments` and `benefit_sponsorship` keys. Requests come from
DuckDB rows in the column order of `REQUEST_COLUMNS`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError

from enrollment_rules.group_selection.directory import MarketplaceSnapshot
from enrollment_rules.group_selection.models import GroupSelectionRequest

REQUEST_COLUMNS = [
    "request_id",
    "person_id",
    "enrollment_id",
    "market_kind",
    "employee_role_id",
    "change_trigger",
    "coverage_kind",
    "effective_on_option_selected",
    "as_of",
]

# Cache loaded snapshots
_CACHE: dict[str, MarketplaceSnapshot] = {}


def load_snapshot(path: str | Path, *, use_cache: bool = False) -> MarketplaceSnapshot:
    """Load a snapshot document from YAML (.yml/.yaml) or JSON.

    Args:
        path: Snapshot file path
        use_cache: Reuse a previously loaded snapshot for the same resolved path

    Returns:
        Validated MarketplaceSnapshot
    """
    resolved = Path(path).expanduser().resolve()
    cache_key = str(resolved)
    if use_cache and cache_key in _CACHE:
        return _CACHE[cache_key]

    if not resolved.exists():
        raise FileNotFoundError(f"Snapshot not found: {resolved}")

    with resolved.open(encoding="utf-8") as f:
        if resolved.suffix.lower() in {".yml", ".yaml"}:
            raw = yaml.safe_load(f) or {}
        else:
            raw = json.load(f)

    snapshot = MarketplaceSnapshot.model_validate(raw)
    if use_cache:
        _CACHE[cache_key] = snapshot
    return snapshot


def _blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def rows_to_requests(
    rows: Iterable[tuple[Any, ...]],
    *,
    on_error: str = "skip",
) -> tuple[list[tuple[str, GroupSelectionRequest]], dict[str, Any]]:
    """
    Convert raw database rows into (request_id, GroupSelectionRequest) pairs.

    Expected row format: see `REQUEST_COLUMNS`.
    """
    if on_error not in {"skip", "raise"}:
        raise ValueError("on_error must be one of: skip, raise")

    requests: list[tuple[str, GroupSelectionRequest]] = []
    skipped = 0
    invalid_request_ids: list[str] = []

    for row in rows:
        values = dict(zip(REQUEST_COLUMNS, row))
        request_id = str(values.pop("request_id"))

        fields = {k: v for k, v in ((k, _blank_to_none(v)) for k, v in values.items()) if v is not None}

        try:
            request = GroupSelectionRequest.model_validate(fields)
        except ValidationError:
            if on_error == "raise":
                raise
            skipped += 1
            invalid_request_ids.append(request_id)
            continue

        requests.append((request_id, request))

    return requests, {"skipped": skipped, "invalid_request_ids": invalid_request_ids}
