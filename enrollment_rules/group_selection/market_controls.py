"""Build the market/employer/coverage-kind controls for the shopping form."""

from __future__ import annotations

from enrollment_rules.group_selection.models import (
    ChangeTrigger,
    CoverageKind,
    Enrollment,
    MarketControls,
    MarketKind,
)


def build_market_controls(
    *,
    market_kind: MarketKind,
    coverage_kind: CoverageKind,
    change_trigger: ChangeTrigger,
    employee_role_id: str | None = None,
    existing_enrollment: Enrollment | None = None,
    disabled_market_kind: MarketKind | None = None,
) -> MarketControls:
    """Controls for one shopping session.

    "Make changes" on an existing enrollment pins the form to that enrollment's
    market, coverage kind and employer. A QLE/SEP change only disables the
    other market.
    """
    controls = MarketControls(
        disabled_market_kind=disabled_market_kind,
        selected_market_kind=market_kind,
        selected_coverage_kind=coverage_kind,
        selected_employee_role_id=employee_role_id,
    )

    if change_trigger == ChangeTrigger.make_changes and existing_enrollment is not None:
        controls.mc_market_kind = existing_enrollment.market_kind
        controls.mc_coverage_kind = existing_enrollment.coverage_kind
        controls.mc_employee_role_id = existing_enrollment.employee_role_id

    return controls
