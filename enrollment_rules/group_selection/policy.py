"""Selection policy settings.

Defaults match the exchange's published enrollment rules; deployments override
them from YAML (see `enrollment_dagster/configs/selection_policy.yaml`).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from enrollment_rules.group_selection.models import CoverageKind


class MarketPolicy(str, Enum):
    """What to do when no market kind is given explicitly.

    employee_first: shop, then individual, then coverall, by active role.
    require_explicit: same order, but a person holding both an active employee
        role and an active consumer role must pick one.
    """

    employee_first = "employee_first"
    require_explicit = "require_explicit"


class SelectionPolicy(BaseModel):
    market_policy: MarketPolicy = MarketPolicy.employee_first
    # Individual applications received on or before this day start next month.
    individual_enrollment_due_day: int = Field(default=15, ge=1, le=28)
    sep_window_days: int = Field(default=60, ge=1)
    default_coverage_kind: CoverageKind = CoverageKind.health
    individual_benefit_package_title: str = "individual_{coverage_kind}_benefits_{year}"


def load_policy(path: str | Path | None = None) -> SelectionPolicy:
    """Load a `SelectionPolicy` from YAML, or defaults when no path is given."""
    if path is None:
        return SelectionPolicy()

    with open(Path(path).expanduser()) as f:
        raw = yaml.safe_load(f) or {}
    return SelectionPolicy.model_validate(raw.get("selection_policy", raw))
