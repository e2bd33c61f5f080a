"""Prior enrollment and benefit group selection.

Given the resolved role, the change trigger and the family's enrollment
history, this module finds:

1. The prior shop enrollment a QLE/SEP change replaces
2. The benefit group and benefit group assignment that price the new selection
3. The market kind the UI must disable during a QLE/SEP change
4. The members a COBRA enrollee's new enrollment is seeded with
5. Whether the prior enrollment can still be waived
"""

from __future__ import annotations

import logging
from datetime import date

from pydantic import BaseModel

from enrollment_rules.group_selection.directory import MarketplaceSnapshot
from enrollment_rules.group_selection.errors import NoMatchingAssignmentError
from enrollment_rules.group_selection.models import (
    ENROLLED_AND_RENEWING_STATES,
    RENEWAL_SHOPPING_STATES,
    BenefitGroup,
    BenefitGroupAssignment,
    ChangeTrigger,
    CoverageKind,
    EmployeeRole,
    Employer,
    Enrollment,
    Family,
    MarketKind,
    PlanYear,
)
from enrollment_rules.group_selection.roles import RoleResolution

logger = logging.getLogger(__name__)


class EnrollmentSelection(BaseModel):
    change_trigger: ChangeTrigger
    prior_enrollment: Enrollment | None = None
    benefit_group: BenefitGroup | None = None
    benefit_group_assignment: BenefitGroupAssignment | None = None
    plan_year: PlanYear | None = None
    disabled_market_kind: MarketKind | None = None
    cobra_member_ids: list[str] | None = None
    waivable: bool = False


def latest_terminable_shop_enrollment(snapshot: MarketplaceSnapshot, family: Family) -> Enrollment | None:
    """Most recent enrolled or renewing shop enrollment that can still be terminated."""
    candidates = snapshot.enrollments_for(
        family.id,
        market_kind=MarketKind.shop,
        states=ENROLLED_AND_RENEWING_STATES,
    )
    return next((enrollment for enrollment in candidates if enrollment.may_terminate_coverage), None)


def benefit_group_assignment_by_plan_year(
    employee_role: EmployeeRole,
    benefit_group: BenefitGroup,
    employer: Employer,
    change_trigger: ChangeTrigger,
    qle_effective_on: date | None = None,
) -> BenefitGroupAssignment:
    """Assignment binding the employee to `benefit_group`'s plan year.

    Active (or initial enrollment) plan year -> the active assignment.
    Renewing plan year -> the renewal assignment.
    Expired plan year -> that year's assignment, only for a QLE/SEP change whose
    effective date falls inside the expired period.

    Raises:
        NoMatchingAssignmentError: if none of the above applies
    """
    plan_year = employer.plan_year_for_benefit_group(benefit_group.id)
    assignment = None

    if plan_year is None:
        pass
    elif plan_year.is_active or plan_year.is_initial_enrollment or plan_year.is_renewing:
        assignment = employee_role.assignment_for_plan_year(plan_year)
    elif plan_year.is_expired:
        if change_trigger.is_qle and qle_effective_on is not None and plan_year.contains(qle_effective_on):
            assignment = employee_role.assignment_for_plan_year(plan_year)

    if assignment is None:
        raise NoMatchingAssignmentError(
            "No benefit group assignment for benefit group",
            employee_role_id=employee_role.id,
            benefit_group_id=benefit_group.id,
            plan_year_id=plan_year.id if plan_year else None,
            plan_year_state=plan_year.state.value if plan_year else None,
            change_trigger=change_trigger.value,
        )
    return assignment


def selected_enrollment(
    snapshot: MarketplaceSnapshot,
    family: Family,
    employee_role: EmployeeRole,
    effective_on: date,
) -> Enrollment | None:
    """Shop enrollment a QLE change effective on `effective_on` applies to.

    The plan year containing the effective date picks the employee's
    assignment; the enrollment must belong to that assignment's benefit group.
    """
    employer = snapshot.find_employer(employee_role.employer_id)
    assignment = employee_role.assignment_for_plan_year(employer.plan_year_covering(effective_on))
    if assignment is None:
        return None

    candidates = snapshot.enrollments_for(
        family.id,
        market_kind=MarketKind.shop,
        states=ENROLLED_AND_RENEWING_STATES,
    )
    for enrollment in candidates:
        if enrollment.employee_role_id == employee_role.id and enrollment.benefit_group_id == assignment.benefit_group_id:
            return enrollment
    return None


def offered_relationships(benefit_group: BenefitGroup, coverage_kind: CoverageKind = CoverageKind.health) -> list[str]:
    """Relationships the benefit group offers coverage to, in plan order."""
    if coverage_kind == CoverageKind.dental:
        benefits = benefit_group.dental_relationship_benefits
    else:
        benefits = benefit_group.relationship_benefits
    return [benefit.relationship for benefit in benefits if benefit.offered]


class EnrollmentSelector:
    """Select the prior enrollment and benefit group for a shopping session."""

    def select(
        self,
        snapshot: MarketplaceSnapshot,
        resolution: RoleResolution,
        family: Family,
        change_trigger: ChangeTrigger,
        existing_enrollment: Enrollment | None = None,
        qle_effective_on: date | None = None,
    ) -> EnrollmentSelection:
        market_kind = resolution.market_kind
        employee_role = resolution.employee_role

        # Changing a special enrollment is itself a QLE change.
        if existing_enrollment is not None and existing_enrollment.is_special_enrollment:
            change_trigger = ChangeTrigger.change_by_qle

        prior = existing_enrollment
        if prior is None and market_kind == MarketKind.shop and change_trigger.is_qle:
            prior = latest_terminable_shop_enrollment(snapshot, family)
            if prior is not None:
                logger.debug("QLE change for family %s replaces enrollment %s", family.id, prior.id)

        selection = EnrollmentSelection(change_trigger=change_trigger, prior_enrollment=prior)

        if market_kind == MarketKind.shop and employee_role is not None:
            employer = snapshot.find_employer(employee_role.employer_id)
            benefit_group = self._target_benefit_group(employee_role, employer, change_trigger, prior, qle_effective_on)
            if benefit_group is not None:
                selection.benefit_group = benefit_group
                selection.benefit_group_assignment = benefit_group_assignment_by_plan_year(
                    employee_role, benefit_group, employer, change_trigger, qle_effective_on
                )
                selection.plan_year = employer.plan_year_for_benefit_group(benefit_group.id)

        if change_trigger.is_qle:
            selection.disabled_market_kind = MarketKind.individual if market_kind == MarketKind.shop else MarketKind.shop

        if market_kind == MarketKind.shop and not change_trigger.is_qle and employee_role is not None and employee_role.is_cobra:
            cobra_source = latest_terminable_shop_enrollment(snapshot, family)
            if cobra_source is not None:
                selection.cobra_member_ids = list(cobra_source.member_ids)

        if prior is not None:
            selection.waivable = prior.can_complete_shopping

        return selection

    def _target_benefit_group(
        self,
        employee_role: EmployeeRole,
        employer: Employer,
        change_trigger: ChangeTrigger,
        prior: Enrollment | None,
        qle_effective_on: date | None,
    ) -> BenefitGroup | None:
        if prior is not None and prior.employee_role_id == employee_role.id and prior.benefit_group_id:
            benefit_group = employer.find_benefit_group(prior.benefit_group_id)
            if benefit_group is not None:
                return benefit_group

        if change_trigger.is_qle and qle_effective_on is not None:
            plan_year = employer.plan_year_covering(qle_effective_on)
        else:
            plan_year = employer.current_plan_year
            renewing = employer.renewing_plan_year
            if (
                renewing is not None
                and renewing.state in RENEWAL_SHOPPING_STATES
                and employee_role.assignment_for_plan_year(renewing) is not None
            ):
                plan_year = renewing

        assignment = employee_role.assignment_for_plan_year(plan_year)
        if assignment is None:
            return None
        return employer.find_benefit_group(assignment.benefit_group_id)
