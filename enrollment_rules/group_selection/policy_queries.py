"""Month-to-month shop reporting queries.

Carriers receive, for each employer plan year starting on a given date, the
enrollments that take effect and the enrollments that end because the
employee waived renewal coverage.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from enrollment_rules.group_selection.directory import MarketplaceSnapshot
from enrollment_rules.group_selection.models import (
    ENROLLED_AND_RENEWING_STATES,
    ENROLLED_STATES,
    Enrollment,
    MarketKind,
    PlanYear,
)


def _plan_years_starting(snapshot: MarketplaceSnapshot, feins: Iterable[str], effective_on: date) -> list[PlanYear]:
    return [
        plan_year
        for employer in snapshot.employers_by_fein(feins)
        for plan_year in employer.plan_years
        if plan_year.start_on == effective_on and plan_year.is_published
    ]


def _benefit_group_ids(plan_years: Iterable[PlanYear]) -> set[str]:
    return {bg_id for plan_year in plan_years for bg_id in plan_year.benefit_group_ids}


def shop_monthly_enrollments(
    snapshot: MarketplaceSnapshot,
    feins: Iterable[str],
    effective_on: date,
) -> list[str]:
    """Enrollment ids taking effect on `effective_on` for the given employers.

    Special enrollments are excluded. When a family has more than one
    enrollment for the same coverage kind (a passive renewal and an active one),
    the most recently submitted wins.
    """
    benefit_group_ids = _benefit_group_ids(_plan_years_starting(snapshot, feins, effective_on))

    latest: dict[tuple[str, str], Enrollment] = {}
    for enrollment in snapshot.enrollments_effective_on(effective_on):
        if enrollment.market_kind != MarketKind.shop:
            continue
        if enrollment.benefit_group_id not in benefit_group_ids:
            continue
        if enrollment.is_special_enrollment or enrollment.state not in ENROLLED_AND_RENEWING_STATES:
            continue

        key = (enrollment.family_id, enrollment.coverage_kind.value)
        current = latest.get(key)
        if current is None or (enrollment.submitted_on or date.min) > (current.submitted_on or date.min):
            latest[key] = enrollment

    return [enrollment.id for enrollment in latest.values()]


def shop_monthly_terminations(
    snapshot: MarketplaceSnapshot,
    feins: Iterable[str],
    effective_on: date,
) -> list[str]:
    """Prior-year enrollment ids ended by renewal waivers effective on `effective_on`.

    A waiver recorded on a renewing plan year terminates the family's coverage
    from the plan year before it; that earlier enrollment is reported, not the
    waiver.
    """
    renewing = [py for py in _plan_years_starting(snapshot, feins, effective_on) if py.is_renewing]
    renewal_group_ids = _benefit_group_ids(renewing)

    terminated: list[str] = []
    for waiver in snapshot.enrollments_effective_on(effective_on):
        if not waiver.is_shop or not waiver.is_waived:
            continue
        if waiver.benefit_group_id not in renewal_group_ids:
            continue

        prior = next(
            (
                enrollment
                for enrollment in snapshot.enrollments_for(
                    waiver.family_id,
                    market_kind=MarketKind.shop,
                    states=ENROLLED_STATES,
                )
                if enrollment.effective_on < effective_on
                and enrollment.coverage_kind == waiver.coverage_kind
                and enrollment.employee_role_id == waiver.employee_role_id
            ),
            None,
        )
        if prior is not None and prior.id not in terminated:
            terminated.append(prior.id)

    return terminated
