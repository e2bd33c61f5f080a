"""Shared marketplace fixtures.

Dates are pinned to a date of record of 2024-10-10 so every rule is
deterministic.
"""

from __future__ import annotations

from datetime import date

import pytest

from enrollment_rules.group_selection import MarketplaceSnapshot
from enrollment_rules.group_selection.models import (
    BenefitCoveragePeriod,
    BenefitGroup,
    BenefitGroupAssignment,
    BenefitPackage,
    BenefitSponsorship,
    ConsumerRole,
    EmployeeRole,
    Employer,
    Enrollment,
    Family,
    PlanYear,
    RelationshipBenefit,
    ResidentRole,
    Person,
)

AS_OF = date(2024, 10, 10)


def health_benefits() -> list[RelationshipBenefit]:
    return [
        RelationshipBenefit(relationship="employee", premium_pct=100),
        RelationshipBenefit(relationship="spouse", premium_pct=75),
        RelationshipBenefit(relationship="child_under_26", premium_pct=50),
        RelationshipBenefit(relationship="domestic_partner", premium_pct=0, offered=False),
    ]


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def renewing_employer() -> Employer:
    """Employer with an active 2024 plan year and a 2025 renewal in open enrollment."""
    return Employer(
        id="EMP-R",
        fein="111111111",
        legal_name="Renewing Co",
        plan_years=[
            PlanYear(
                id="PY-A",
                start_on=date(2024, 1, 1),
                end_on=date(2024, 12, 31),
                state="active",
                benefit_groups=[
                    BenefitGroup(
                        id="BG-A",
                        title="Active 2024",
                        relationship_benefits=health_benefits(),
                        dental_relationship_benefits=[
                            RelationshipBenefit(relationship="employee", premium_pct=100),
                        ],
                    )
                ],
            ),
            PlanYear(
                id="PY-R",
                start_on=date(2025, 1, 1),
                end_on=date(2025, 12, 31),
                open_enrollment_start_on=date(2024, 10, 1),
                open_enrollment_end_on=date(2024, 12, 10),
                state="renewing_enrolling",
                benefit_groups=[BenefitGroup(id="BG-R", title="Renewal 2025")],
            ),
        ],
    )


@pytest.fixture
def expired_employer() -> Employer:
    """Employer whose 2023 plan year has expired and 2024 plan year is active."""
    return Employer(
        id="EMP-X",
        fein="222222222",
        legal_name="Expired Co",
        plan_years=[
            PlanYear(
                id="PY-X",
                start_on=date(2023, 1, 1),
                end_on=date(2023, 12, 31),
                state="expired",
                benefit_groups=[BenefitGroup(id="BG-X", title="Expired 2023")],
            ),
            PlanYear(
                id="PY-A2",
                start_on=date(2024, 1, 1),
                end_on=date(2024, 12, 31),
                state="active",
                benefit_groups=[BenefitGroup(id="BG-A2", title="Active 2024")],
            ),
        ],
    )


@pytest.fixture
def employee_role() -> EmployeeRole:
    return EmployeeRole(
        id="ER1",
        person_id="P-EMP",
        employer_id="EMP-R",
        hired_on=date(2020, 3, 10),
        benefit_group_assignments=[
            BenefitGroupAssignment(id="BGA-A", benefit_group_id="BG-A"),
            BenefitGroupAssignment(id="BGA-R", benefit_group_id="BG-R"),
        ],
    )


@pytest.fixture
def expired_employee_role() -> EmployeeRole:
    return EmployeeRole(
        id="ER2",
        person_id="P-X",
        employer_id="EMP-X",
        hired_on=date(2021, 6, 1),
        benefit_group_assignments=[
            BenefitGroupAssignment(id="BGA-X", benefit_group_id="BG-X"),
            BenefitGroupAssignment(id="BGA-A2", benefit_group_id="BG-A2"),
        ],
    )


@pytest.fixture
def sponsorship() -> BenefitSponsorship:
    return BenefitSponsorship(
        benefit_coverage_periods=[
            BenefitCoveragePeriod(
                title="IVL 2024",
                start_on=date(2024, 1, 1),
                end_on=date(2024, 12, 31),
                open_enrollment_start_on=date(2023, 11, 1),
                open_enrollment_end_on=date(2024, 1, 31),
                benefit_packages=[
                    BenefitPackage(id="BP-2024-H", title="individual_health_benefits_2024"),
                    BenefitPackage(id="BP-2024-D", title="individual_dental_benefits_2024"),
                ],
            ),
            BenefitCoveragePeriod(
                title="IVL 2025",
                start_on=date(2025, 1, 1),
                end_on=date(2025, 12, 31),
                open_enrollment_start_on=date(2024, 11, 1),
                open_enrollment_end_on=date(2025, 1, 31),
                benefit_packages=[
                    BenefitPackage(id="BP-2025-H", title="individual_health_benefits_2025"),
                ],
            ),
        ]
    )


@pytest.fixture
def snapshot(
    renewing_employer: Employer,
    expired_employer: Employer,
    employee_role: EmployeeRole,
    expired_employee_role: EmployeeRole,
    sponsorship: BenefitSponsorship,
) -> MarketplaceSnapshot:
    persons = [
        Person(id="P-EMP", first_name="Dana", employee_roles=[employee_role]),
        Person(id="P-X", first_name="Lee", employee_roles=[expired_employee_role]),
        Person(id="P-CON", first_name="Sam", consumer_role=ConsumerRole(id="CR1", person_id="P-CON")),
        Person(id="P-RES", first_name="Ari", resident_role=ResidentRole(id="RR1", person_id="P-RES")),
        Person(
            id="P-COBRA",
            first_name="Jo",
            employee_roles=[
                EmployeeRole(
                    id="ER4",
                    person_id="P-COBRA",
                    employer_id="EMP-R",
                    hired_on=date(2018, 1, 1),
                    is_cobra=True,
                    benefit_group_assignments=[BenefitGroupAssignment(id="BGA4-A", benefit_group_id="BG-A")],
                )
            ],
        ),
    ]
    families = [
        Family(id="F-EMP", primary_person_id="P-EMP", family_member_ids=["FM1", "FM2"]),
        Family(id="F-X", primary_person_id="P-X", family_member_ids=["FM3"]),
        Family(id="F-CON", primary_person_id="P-CON", family_member_ids=["FM4"]),
        Family(id="F-RES", primary_person_id="P-RES", family_member_ids=["FM5"]),
        Family(id="F-COBRA", primary_person_id="P-COBRA", family_member_ids=["FM6", "FM7", "FM8"]),
    ]
    enrollments = [
        Enrollment(
            id="E-ACTIVE",
            family_id="F-EMP",
            employee_role_id="ER1",
            benefit_group_id="BG-A",
            benefit_group_assignment_id="BGA-A",
            market_kind="shop",
            state="coverage_enrolled",
            effective_on=date(2024, 1, 1),
            submitted_on=date(2023, 12, 1),
            member_ids=["FM1", "FM2"],
        ),
        Enrollment(
            id="E-COBRA",
            family_id="F-COBRA",
            employee_role_id="ER4",
            benefit_group_id="BG-A",
            benefit_group_assignment_id="BGA4-A",
            market_kind="shop",
            state="coverage_enrolled",
            effective_on=date(2024, 1, 1),
            member_ids=["FM6", "FM7"],
        ),
    ]
    return MarketplaceSnapshot(
        persons=persons,
        families=families,
        employers=[renewing_employer, expired_employer],
        enrollments=enrollments,
        benefit_sponsorship=sponsorship,
    )
