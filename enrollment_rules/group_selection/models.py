"""Data models for group selection.

Every record here is a read-only snapshot handed in by the surrounding
marketplace; nothing in this package writes them back.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

from enrollment_rules.group_selection.date_utils import first_of_next_month


class MarketKind(str, Enum):
    shop = "shop"
    individual = "individual"
    coverall = "coverall"


class CoverageKind(str, Enum):
    health = "health"
    dental = "dental"


class EnrollmentKind(str, Enum):
    open_enrollment = "open_enrollment"
    special_enrollment = "special_enrollment"


class ChangeTrigger(str, Enum):
    """Why the person reached the plan-shopping step."""

    open_enrollment = "open_enrollment"
    make_changes = "make_changes"
    change_by_qle = "change_by_qle"
    sep = "sep"

    @property
    def is_qle(self) -> bool:
        return self in (ChangeTrigger.change_by_qle, ChangeTrigger.sep)


class EnrollmentState(str, Enum):
    shopping = "shopping"
    coverage_selected = "coverage_selected"
    transmitted_to_carrier = "transmitted_to_carrier"
    coverage_enrolled = "coverage_enrolled"
    coverage_termination_pending = "coverage_termination_pending"
    unverified = "unverified"
    auto_renewing = "auto_renewing"
    renewing_coverage_selected = "renewing_coverage_selected"
    renewing_coverage_enrolled = "renewing_coverage_enrolled"
    coverage_terminated = "coverage_terminated"
    coverage_canceled = "coverage_canceled"
    coverage_expired = "coverage_expired"
    inactive = "inactive"
    renewing_waived = "renewing_waived"


ENROLLED_STATES = frozenset(
    {
        EnrollmentState.coverage_selected,
        EnrollmentState.transmitted_to_carrier,
        EnrollmentState.coverage_enrolled,
        EnrollmentState.coverage_termination_pending,
        EnrollmentState.unverified,
    }
)
RENEWING_STATES = frozenset(
    {
        EnrollmentState.auto_renewing,
        EnrollmentState.renewing_coverage_selected,
        EnrollmentState.renewing_coverage_enrolled,
    }
)
ENROLLED_AND_RENEWING_STATES = ENROLLED_STATES | RENEWING_STATES
TERMINATED_STATES = frozenset(
    {
        EnrollmentState.coverage_terminated,
        EnrollmentState.coverage_canceled,
        EnrollmentState.coverage_expired,
    }
)
WAIVED_STATES = frozenset({EnrollmentState.inactive, EnrollmentState.renewing_waived})
TERMINABLE_STATES = ENROLLED_AND_RENEWING_STATES - {EnrollmentState.coverage_termination_pending}
# Nothing has been transmitted to a carrier yet, so no claim or payment locks these.
COMPLETABLE_STATES = frozenset(
    {
        EnrollmentState.shopping,
        EnrollmentState.coverage_selected,
        EnrollmentState.auto_renewing,
        EnrollmentState.renewing_coverage_selected,
    }
)


class PlanYearState(str, Enum):
    draft = "draft"
    published = "published"
    enrolling = "enrolling"
    enrolled = "enrolled"
    active = "active"
    renewing_draft = "renewing_draft"
    renewing_published = "renewing_published"
    renewing_enrolling = "renewing_enrolling"
    renewing_enrolled = "renewing_enrolled"
    expired = "expired"
    terminated = "terminated"
    canceled = "canceled"


INITIAL_PLAN_YEAR_STATES = frozenset({PlanYearState.enrolling, PlanYearState.enrolled})
RENEWING_PLAN_YEAR_STATES = frozenset(
    {
        PlanYearState.renewing_draft,
        PlanYearState.renewing_published,
        PlanYearState.renewing_enrolling,
        PlanYearState.renewing_enrolled,
    }
)
# Renewal benefit groups are offered to employees once renewal enrollment opens.
RENEWAL_SHOPPING_STATES = frozenset({PlanYearState.renewing_enrolling, PlanYearState.renewing_enrolled})
PUBLISHED_PLAN_YEAR_STATES = frozenset(
    {
        PlanYearState.enrolled,
        PlanYearState.active,
        PlanYearState.renewing_enrolled,
    }
)


class BenefitGroupEffectiveOnKind(str, Enum):
    first_of_month = "first_of_month"
    date_of_hire = "date_of_hire"


class EffectiveOnKind(str, Enum):
    """How a special enrollment period's coverage start is derived."""

    date_of_event = "date_of_event"
    exact_date = "exact_date"
    first_of_month = "first_of_month"
    first_of_next_month = "first_of_next_month"
    fixed_first_of_next_month = "fixed_first_of_next_month"


class RelationshipBenefit(BaseModel):
    """Contribution terms for one relationship within a benefit group."""

    relationship: str
    premium_pct: float = 0.0
    employer_max_amt: float | None = None
    offered: bool = True

    @field_validator("premium_pct", mode="before")
    @classmethod
    def default_premium_pct(cls, value: Any) -> Any:
        return 0.0 if value is None else value


class BenefitGroup(BaseModel):
    """Pricing/benefits tier offered under one employer plan year."""

    id: str
    title: str = ""
    effective_on_kind: BenefitGroupEffectiveOnKind = BenefitGroupEffectiveOnKind.first_of_month
    effective_on_offset: int = Field(default=0, ge=0)
    relationship_benefits: list[RelationshipBenefit] = Field(default_factory=list)
    dental_relationship_benefits: list[RelationshipBenefit] = Field(default_factory=list)

    def effective_on_for(self, date_of_hire: date) -> date:
        """Earliest coverage start for an employee hired on `date_of_hire`."""
        if self.effective_on_kind == BenefitGroupEffectiveOnKind.date_of_hire:
            return date_of_hire

        eligible_on = date_of_hire + timedelta(days=self.effective_on_offset)
        if eligible_on.day == 1:
            return eligible_on
        return first_of_next_month(eligible_on)


class PlanYear(BaseModel):
    id: str
    start_on: date
    end_on: date
    open_enrollment_start_on: date | None = None
    open_enrollment_end_on: date | None = None
    state: PlanYearState
    benefit_groups: list[BenefitGroup] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.state == PlanYearState.active

    @property
    def is_initial_enrollment(self) -> bool:
        return self.state in INITIAL_PLAN_YEAR_STATES

    @property
    def is_renewing(self) -> bool:
        return self.state in RENEWING_PLAN_YEAR_STATES

    @property
    def is_expired(self) -> bool:
        return self.state == PlanYearState.expired

    @property
    def is_published(self) -> bool:
        return self.state in PUBLISHED_PLAN_YEAR_STATES

    @property
    def benefit_group_ids(self) -> set[str]:
        return {bg.id for bg in self.benefit_groups}

    def contains(self, day: date) -> bool:
        return self.start_on <= day <= self.end_on


class Employer(BaseModel):
    id: str
    fein: str
    legal_name: str = ""
    plan_years: list[PlanYear] = Field(default_factory=list)

    @property
    def active_plan_year(self) -> PlanYear | None:
        return next((py for py in self.plan_years if py.is_active), None)

    @property
    def current_plan_year(self) -> PlanYear | None:
        """Active plan year, or the first-year plan year still in initial enrollment."""
        return self.active_plan_year or next((py for py in self.plan_years if py.is_initial_enrollment), None)

    @property
    def renewing_plan_year(self) -> PlanYear | None:
        return next((py for py in self.plan_years if py.is_renewing), None)

    def plan_year_for_benefit_group(self, benefit_group_id: str) -> PlanYear | None:
        return next((py for py in self.plan_years if benefit_group_id in py.benefit_group_ids), None)

    def find_benefit_group(self, benefit_group_id: str) -> BenefitGroup | None:
        for plan_year in self.plan_years:
            for benefit_group in plan_year.benefit_groups:
                if benefit_group.id == benefit_group_id:
                    return benefit_group
        return None

    def plan_year_covering(self, day: date) -> PlanYear | None:
        """Plan year whose period contains `day`, skipping canceled ones."""
        for plan_year in self.plan_years:
            if plan_year.state == PlanYearState.canceled:
                continue
            if plan_year.contains(day):
                return plan_year
        return None


class BenefitGroupAssignment(BaseModel):
    """Binds one census employee to one benefit group for one plan year."""

    id: str
    benefit_group_id: str
    start_on: date | None = None
    end_on: date | None = None


class EmployeeRole(BaseModel):
    kind: Literal["employee"] = "employee"
    id: str
    person_id: str
    employer_id: str
    hired_on: date
    is_active: bool = True
    is_cobra: bool = False
    benefit_group_assignments: list[BenefitGroupAssignment] = Field(default_factory=list)

    def assignment_for_plan_year(self, plan_year: PlanYear | None) -> BenefitGroupAssignment | None:
        if plan_year is None:
            return None
        group_ids = plan_year.benefit_group_ids
        return next(
            (bga for bga in self.benefit_group_assignments if bga.benefit_group_id in group_ids),
            None,
        )


class ConsumerRole(BaseModel):
    kind: Literal["consumer"] = "consumer"
    id: str
    person_id: str
    is_active: bool = True


class ResidentRole(BaseModel):
    kind: Literal["resident"] = "resident"
    id: str
    person_id: str
    is_active: bool = True


Role = Annotated[Union[EmployeeRole, ConsumerRole, ResidentRole], Field(discriminator="kind")]


class Person(BaseModel):
    id: str
    first_name: str = ""
    last_name: str = ""
    employee_roles: list[EmployeeRole] = Field(default_factory=list)
    consumer_role: ConsumerRole | None = None
    resident_role: ResidentRole | None = None

    @property
    def active_employee_roles(self) -> list[EmployeeRole]:
        return [role for role in self.employee_roles if role.is_active]

    @property
    def has_active_employee_role(self) -> bool:
        return bool(self.active_employee_roles)

    @property
    def has_active_consumer_role(self) -> bool:
        return self.consumer_role is not None and self.consumer_role.is_active

    @property
    def has_active_resident_role(self) -> bool:
        return self.resident_role is not None and self.resident_role.is_active

    @property
    def has_employer_benefits(self) -> bool:
        return any(role.benefit_group_assignments for role in self.active_employee_roles)


class SpecialEnrollmentPeriod(BaseModel):
    """A qualifying life event and the window it opens."""

    id: str
    qle_title: str = ""
    market_kind: MarketKind = MarketKind.individual
    qle_on: date
    effective_on_kind: EffectiveOnKind = EffectiveOnKind.first_of_next_month
    submitted_on: date | None = None
    start_on: date | None = None
    end_on: date | None = None
    effective_on: date | None = None
    optional_effective_on: list[date] = Field(default_factory=list)

    def window(self, length_days: int = 60) -> tuple[date, date]:
        start_on = self.start_on or self.qle_on
        end_on = self.end_on or (self.qle_on + timedelta(days=length_days))
        return start_on, end_on

    def is_active(self, as_of: date, length_days: int = 60) -> bool:
        start_on, end_on = self.window(length_days)
        return start_on <= as_of <= end_on


class Family(BaseModel):
    id: str
    primary_person_id: str
    family_member_ids: list[str] = Field(default_factory=list)
    special_enrollment_periods: list[SpecialEnrollmentPeriod] = Field(default_factory=list)

    def current_sep(self, as_of: date, length_days: int = 60) -> SpecialEnrollmentPeriod | None:
        """Most recently reported SEP whose window contains `as_of`."""
        active = [sep for sep in self.special_enrollment_periods if sep.is_active(as_of, length_days)]
        if not active:
            return None
        return max(active, key=lambda sep: (sep.submitted_on or sep.qle_on, sep.qle_on))


class Enrollment(BaseModel):
    id: str
    family_id: str
    employee_role_id: str | None = None
    benefit_group_id: str | None = None
    benefit_group_assignment_id: str | None = None
    market_kind: MarketKind
    coverage_kind: CoverageKind = CoverageKind.health
    enrollment_kind: EnrollmentKind = EnrollmentKind.open_enrollment
    state: EnrollmentState
    effective_on: date
    submitted_on: date | None = None
    member_ids: list[str] = Field(default_factory=list)

    @property
    def is_shop(self) -> bool:
        return self.market_kind == MarketKind.shop

    @property
    def is_special_enrollment(self) -> bool:
        return self.enrollment_kind == EnrollmentKind.special_enrollment

    @property
    def is_enrolled_or_renewing(self) -> bool:
        return self.state in ENROLLED_AND_RENEWING_STATES

    @property
    def is_waived(self) -> bool:
        return self.state in WAIVED_STATES

    @property
    def may_terminate_coverage(self) -> bool:
        return self.state in TERMINABLE_STATES

    @property
    def can_complete_shopping(self) -> bool:
        return self.state in COMPLETABLE_STATES


class BenefitPackage(BaseModel):
    id: str
    title: str


class BenefitCoveragePeriod(BaseModel):
    title: str = ""
    start_on: date
    end_on: date
    open_enrollment_start_on: date | None = None
    open_enrollment_end_on: date | None = None
    benefit_packages: list[BenefitPackage] = Field(default_factory=list)

    def contains(self, day: date) -> bool:
        return self.start_on <= day <= self.end_on

    def is_open_enrollment(self, day: date) -> bool:
        if self.open_enrollment_start_on is None or self.open_enrollment_end_on is None:
            return False
        return self.open_enrollment_start_on <= day <= self.open_enrollment_end_on

    def package_titled(self, title: str) -> BenefitPackage | None:
        return next((bp for bp in self.benefit_packages if bp.title == title), None)


class BenefitSponsorship(BaseModel):
    """The exchange's individual-market coverage calendar."""

    benefit_coverage_periods: list[BenefitCoveragePeriod] = Field(default_factory=list)

    def period_containing(self, day: date) -> BenefitCoveragePeriod | None:
        return next((bcp for bcp in self.benefit_coverage_periods if bcp.contains(day)), None)

    def open_enrollment_period(self, day: date) -> BenefitCoveragePeriod | None:
        """Upcoming coverage period whose open enrollment is running on `day`."""
        return next(
            (
                bcp
                for bcp in self.benefit_coverage_periods
                if bcp.is_open_enrollment(day) and bcp.start_on > day
            ),
            None,
        )


class GroupSelectionRequest(BaseModel):
    """Input for a single group selection evaluation.

    Attributes:
        person_id: Person shopping for coverage
        enrollment_id: Enrollment the person clicked "make changes" on, if any
        market_kind: Explicit market choice; overrides the market policy
        employee_role_id: Employer to shop under when the person has several
        change_trigger: Open enrollment, make changes, QLE or SEP
        coverage_kind: health or dental; the policy default when unset
        effective_on_option_selected: User-chosen effective date (MM/DD/YYYY)
        as_of: Date of record; defaults to today
    """

    person_id: str
    enrollment_id: str | None = None
    market_kind: MarketKind | None = None
    employee_role_id: str | None = None
    change_trigger: ChangeTrigger = ChangeTrigger.open_enrollment
    coverage_kind: CoverageKind | None = None
    effective_on_option_selected: str | None = None
    as_of: date | None = None


class MarketControls(BaseModel):
    """Which market, employer and coverage options the shopping form locks.

    `mc_*` fields record the enrollment the person clicked "make changes" on;
    `disabled_market_kind` is set by a QLE/SEP change.
    """

    mc_market_kind: MarketKind | None = None
    mc_coverage_kind: CoverageKind | None = None
    mc_employee_role_id: str | None = None
    disabled_market_kind: MarketKind | None = None
    selected_market_kind: MarketKind | None = None
    selected_coverage_kind: CoverageKind = CoverageKind.health
    selected_employee_role_id: str | None = None

    def is_market_kind_disabled(self, market_kind: MarketKind | str) -> bool:
        market_kind = MarketKind(market_kind)
        if self.mc_market_kind is not None:
            return market_kind != self.mc_market_kind
        if self.disabled_market_kind is not None:
            return market_kind == self.disabled_market_kind
        return False

    def is_market_kind_checked(self, market_kind: MarketKind | str) -> bool:
        market_kind = MarketKind(market_kind)
        if self.mc_market_kind is not None:
            return market_kind == self.mc_market_kind
        return market_kind == self.selected_market_kind

    def is_employer_disabled(self, employee_role_id: str) -> bool:
        if self.mc_market_kind is None:
            return False
        if self.mc_market_kind != MarketKind.shop:
            return True
        return employee_role_id != self.mc_employee_role_id

    def is_employer_checked(self, employee_role_id: str) -> bool:
        if self.mc_market_kind is None:
            return employee_role_id == self.selected_employee_role_id
        if self.mc_market_kind != MarketKind.shop:
            return False
        return employee_role_id == self.mc_employee_role_id

    def is_coverage_kind_disabled(self, coverage_kind: CoverageKind | str) -> bool:
        if self.mc_coverage_kind is None:
            return False
        return CoverageKind(coverage_kind) != self.mc_coverage_kind

    def is_coverage_kind_checked(self, coverage_kind: CoverageKind | str) -> bool:
        checked = self.mc_coverage_kind or self.selected_coverage_kind
        return CoverageKind(coverage_kind) == checked


class SelectionResult(BaseModel):
    """Decision handed back to the plan-shopping UI."""

    person_id: str
    market_kind: MarketKind
    coverage_kind: CoverageKind
    role_kind: str
    role_id: str
    effective_on: date
    effective_on_options: list[str] = Field(default_factory=list)
    prior_enrollment_id: str | None = None
    benefit_group_id: str | None = None
    benefit_group_assignment_id: str | None = None
    benefit_package_id: str | None = None
    disabled_market_kind: MarketKind | None = None
    cobra_member_ids: list[str] | None = None
    waivable: bool = False
    can_shop_both_markets: bool = False
    offered_relationships: list[str] = Field(default_factory=list)
    controls: MarketControls = Field(default_factory=MarketControls)
    details: dict[str, Any] = Field(default_factory=dict)
