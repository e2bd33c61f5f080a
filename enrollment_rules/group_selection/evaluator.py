"""Group selection evaluation.

This module implements the single operation exposed to the plan-shopping UI:

1. Look up the person, their primary family and any enrollment being changed
2. Resolve the market and role (RoleResolver)
3. Select the prior enrollment and benefit group (EnrollmentSelector)
4. Compute the coverage effective date (EffectiveDateCalculator)
5. Apply a user-selected effective date option, when given

Every step reads from the snapshot only, so evaluating the same request twice
against the same snapshot gives the same result.
"""

from __future__ import annotations

import logging
from datetime import date

from enrollment_rules.group_selection.directory import MarketplaceSnapshot
from enrollment_rules.group_selection.effective_dates import EffectiveDateCalculator
from enrollment_rules.group_selection.enrollment_selector import EnrollmentSelector, offered_relationships
from enrollment_rules.group_selection.errors import NotFoundError
from enrollment_rules.group_selection.market_controls import build_market_controls
from enrollment_rules.group_selection.models import (
    BenefitPackage,
    ChangeTrigger,
    CoverageKind,
    GroupSelectionRequest,
    MarketKind,
    SelectionResult,
)
from enrollment_rules.group_selection.policy import SelectionPolicy
from enrollment_rules.group_selection.roles import RoleResolver

logger = logging.getLogger(__name__)


class GroupSelection:
    """Evaluate group selection requests against a marketplace snapshot.

    Example:
        >>> from datetime import date
        >>> engine = GroupSelection(snapshot)
        >>> result = engine.evaluate(
        ...     GroupSelectionRequest(
        ...         person_id="P001",
        ...         change_trigger="change_by_qle",
        ...         as_of=date(2024, 3, 10),
        ...     )
        ... )
        >>> print(result.market_kind, result.effective_on)
    """

    def __init__(self, snapshot: MarketplaceSnapshot, policy: SelectionPolicy | None = None):
        self.snapshot = snapshot
        self.policy = policy or SelectionPolicy()

        self.role_resolver = RoleResolver(self.policy.market_policy)
        self.selector = EnrollmentSelector()
        self.calculator = EffectiveDateCalculator(self.policy)

    def evaluate(self, request: GroupSelectionRequest) -> SelectionResult:
        as_of = request.as_of or date.today()

        person = self.snapshot.find_person(request.person_id)
        family = self.snapshot.primary_family(person)
        existing = self.snapshot.find_enrollment(request.enrollment_id) if request.enrollment_id else None
        if existing is not None and existing.family_id != family.id:
            raise NotFoundError(
                "Enrollment not found for family",
                enrollment_id=existing.id,
                family_id=family.id,
            )
        coverage_kind = request.coverage_kind or self.policy.default_coverage_kind

        resolution = self.role_resolver.resolve(person, request.market_kind, request.employee_role_id)
        market_kind = resolution.market_kind

        change_trigger = request.change_trigger
        if existing is not None and existing.is_special_enrollment:
            change_trigger = ChangeTrigger.change_by_qle

        qle_effective_on = None
        if change_trigger.is_qle:
            qle_effective_on = self.calculator.qle_effective_on(family, market_kind, as_of)

        selection = self.selector.select(
            self.snapshot,
            resolution,
            family,
            change_trigger,
            existing_enrollment=existing,
            qle_effective_on=qle_effective_on,
        )

        computed = self.calculator.compute(
            market_kind,
            selection.change_trigger.is_qle,
            family,
            employee_role=resolution.employee_role,
            benefit_group=selection.benefit_group,
            plan_year=selection.plan_year,
            sponsorship=self.snapshot.benefit_sponsorship,
            as_of=as_of,
        )
        effective = self.calculator.apply_selected_option(computed, request.effective_on_option_selected)
        options: list[str] = []
        if selection.change_trigger.is_qle:
            options = self.calculator.effective_on_options(family, as_of)

        benefit_package = None
        # Dual-role persons may still switch to individual from the shop page.
        if market_kind != MarketKind.shop or resolution.can_shop_both_markets:
            benefit_package = self._benefit_package(effective.effective_on, coverage_kind)

        relationships: list[str] = []
        if selection.benefit_group is not None:
            relationships = offered_relationships(selection.benefit_group, coverage_kind)

        controls = build_market_controls(
            market_kind=market_kind,
            coverage_kind=coverage_kind,
            change_trigger=selection.change_trigger,
            employee_role_id=resolution.employee_role.id if resolution.employee_role else None,
            existing_enrollment=existing,
            disabled_market_kind=selection.disabled_market_kind,
        )

        result = SelectionResult(
            person_id=person.id,
            market_kind=market_kind,
            coverage_kind=coverage_kind,
            role_kind=resolution.role.kind,
            role_id=resolution.role.id,
            effective_on=effective.effective_on,
            effective_on_options=options,
            prior_enrollment_id=selection.prior_enrollment.id if selection.prior_enrollment else None,
            benefit_group_id=selection.benefit_group.id if selection.benefit_group else None,
            benefit_group_assignment_id=(
                selection.benefit_group_assignment.id if selection.benefit_group_assignment else None
            ),
            benefit_package_id=benefit_package.id if benefit_package else None,
            disabled_market_kind=selection.disabled_market_kind,
            cobra_member_ids=selection.cobra_member_ids,
            waivable=selection.waivable,
            can_shop_both_markets=resolution.can_shop_both_markets,
            offered_relationships=relationships,
            controls=controls,
            details={
                "as_of": as_of.isoformat(),
                "change_trigger": selection.change_trigger.value,
                "effective_on_source": effective.source,
                "computed_effective_on": computed.effective_on.isoformat(),
                "qle_effective_on": qle_effective_on.isoformat() if qle_effective_on else None,
                "plan_year_id": selection.plan_year.id if selection.plan_year else None,
            },
        )

        logger.info(
            "Evaluated person %s: market=%s effective_on=%s prior_enrollment=%s",
            person.id,
            market_kind.value,
            result.effective_on,
            result.prior_enrollment_id,
        )
        return result

    def evaluate_batch(self, requests: list[GroupSelectionRequest]) -> list[SelectionResult]:
        """Evaluate multiple requests."""
        return [self.evaluate(request) for request in requests]

    def _benefit_package(self, effective_on: date, coverage_kind: CoverageKind) -> BenefitPackage | None:
        period = self.snapshot.benefit_sponsorship.period_containing(effective_on)
        if period is None:
            logger.warning("No benefit coverage period contains %s; no benefit package selected", effective_on)
            return None

        title = self.policy.individual_benefit_package_title.format(
            coverage_kind=coverage_kind.value,
            year=effective_on.year,
        )
        return period.package_titled(title)
