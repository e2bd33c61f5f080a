"""Coverage effective date rules.

Three sources, in precedence order:

1. A date the user picked from the offered options (MM/DD/YYYY).
2. The family's current special enrollment period, when the change is a QLE.
3. The standard calendar: the employer plan year for shop, the exchange's
   benefit coverage periods for individual and coverall.
"""

from __future__ import annotations

import logging
from datetime import date

from pydantic import BaseModel

from enrollment_rules.group_selection.date_utils import (
    first_of_month_after_next,
    first_of_next_month,
    format_selected_date,
    parse_selected_date,
)
from enrollment_rules.group_selection.errors import CoveragePeriodNotFoundError, EffectiveDateParseError
from enrollment_rules.group_selection.models import (
    BenefitGroup,
    BenefitSponsorship,
    EffectiveOnKind,
    EmployeeRole,
    Family,
    MarketKind,
    PlanYear,
    SpecialEnrollmentPeriod,
)
from enrollment_rules.group_selection.policy import SelectionPolicy

logger = logging.getLogger(__name__)


class EffectiveDate(BaseModel):
    effective_on: date
    source: str


def sep_effective_on(
    sep: SpecialEnrollmentPeriod,
    market_kind: MarketKind,
    due_day: int = 15,
) -> date:
    """Coverage start for a special enrollment period.

    Args:
        sep: The special enrollment period
        market_kind: Market the change applies to
        due_day: Individual-market day of month after which coverage slips a month

    Returns:
        The SEP's stored effective date when set, else the date its
        `effective_on_kind` rule produces.
    """
    if sep.effective_on is not None:
        return sep.effective_on

    reference_on = max(sep.qle_on, sep.submitted_on or sep.qle_on)
    kind = sep.effective_on_kind

    if kind in (EffectiveOnKind.date_of_event, EffectiveOnKind.exact_date):
        return sep.qle_on
    if kind == EffectiveOnKind.fixed_first_of_next_month:
        return first_of_next_month(sep.qle_on)
    if kind == EffectiveOnKind.first_of_next_month:
        return first_of_next_month(reference_on)

    # first_of_month
    if market_kind == MarketKind.shop or reference_on.day <= due_day:
        return first_of_next_month(reference_on)
    return first_of_month_after_next(reference_on)


def effective_on_options(sep: SpecialEnrollmentPeriod) -> list[str]:
    """Date options offered to the user for this SEP, as MM/DD/YYYY strings."""
    return [format_selected_date(day) for day in sorted(sep.optional_effective_on)]


def parse_effective_on_option(text: str) -> date:
    try:
        return parse_selected_date(text)
    except ValueError as exc:
        raise EffectiveDateParseError("Selected effective date must be MM/DD/YYYY", value=text) from exc


def shop_effective_on(
    employee_role: EmployeeRole,
    benefit_group: BenefitGroup,
    plan_year: PlanYear,
) -> date:
    """Later of the plan year start and the employee's new-hire eligibility date."""
    return max(plan_year.start_on, benefit_group.effective_on_for(employee_role.hired_on))


def individual_effective_on(
    sponsorship: BenefitSponsorship,
    as_of: date,
    due_day: int = 15,
) -> date:
    """Earliest individual-market coverage start for an application made on `as_of`.

    During open enrollment for an upcoming coverage period, coverage starts with
    that period. Otherwise applications received by `due_day` start on the first
    of next month and later ones a month after that, kept inside the current
    coverage period.
    """
    upcoming = sponsorship.open_enrollment_period(as_of)
    if upcoming is not None:
        return upcoming.start_on

    current = sponsorship.period_containing(as_of)
    if current is None:
        raise CoveragePeriodNotFoundError("No benefit coverage period contains date", as_of=as_of.isoformat())

    if as_of.day <= due_day:
        earliest = first_of_next_month(as_of)
    else:
        earliest = first_of_month_after_next(as_of)
    return min(max(earliest, current.start_on), current.end_on)


class EffectiveDateCalculator:
    """Compute the coverage effective date for a selection."""

    def __init__(self, policy: SelectionPolicy | None = None):
        self.policy = policy or SelectionPolicy()

    def effective_on_options(self, family: Family, as_of: date) -> list[str]:
        """Dates the family's current SEP lets the user pick, or none outside any SEP window."""
        sep = family.current_sep(as_of, self.policy.sep_window_days)
        return effective_on_options(sep) if sep is not None else []

    def qle_effective_on(self, family: Family, market_kind: MarketKind, as_of: date) -> date | None:
        """Effective date of the family's current SEP, or None outside any SEP window."""
        sep = family.current_sep(as_of, self.policy.sep_window_days)
        if sep is None:
            return None
        return sep_effective_on(sep, market_kind, self.policy.individual_enrollment_due_day)

    def compute(
        self,
        market_kind: MarketKind,
        qle: bool,
        family: Family,
        *,
        employee_role: EmployeeRole | None = None,
        benefit_group: BenefitGroup | None = None,
        plan_year: PlanYear | None = None,
        sponsorship: BenefitSponsorship | None = None,
        as_of: date,
    ) -> EffectiveDate:
        if qle:
            effective_on = self.qle_effective_on(family, market_kind, as_of)
            if effective_on is not None:
                return EffectiveDate(effective_on=effective_on, source="special_enrollment_period")
            logger.info("Family %s has no current SEP on %s; using the standard calendar", family.id, as_of)

        if market_kind == MarketKind.shop:
            if employee_role is not None and benefit_group is not None and plan_year is not None:
                effective_on = shop_effective_on(employee_role, benefit_group, plan_year)
                return EffectiveDate(effective_on=effective_on, source="plan_year")
            logger.warning("No benefit group for shop selection; falling back to the individual calendar")

        effective_on = individual_effective_on(
            sponsorship or BenefitSponsorship(),
            as_of,
            self.policy.individual_enrollment_due_day,
        )
        return EffectiveDate(effective_on=effective_on, source="benefit_coverage_period")

    def apply_selected_option(self, computed: EffectiveDate, selected: str | None) -> EffectiveDate:
        """A date the user picked from the offered options replaces the computed one."""
        if not selected:
            return computed
        return EffectiveDate(effective_on=parse_effective_on_option(selected), source="selected_option")
