"""Read-only snapshot of the marketplace records a selection reads.

The surrounding application owns persistence; it loads the slice of people,
families, employers and enrollments a request touches and hands it over as a
`MarketplaceSnapshot`.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, Field

from enrollment_rules.group_selection.errors import NotFoundError
from enrollment_rules.group_selection.models import (
    BenefitSponsorship,
    Employer,
    Enrollment,
    EnrollmentState,
    Family,
    MarketKind,
    Person,
)


class MarketplaceSnapshot(BaseModel):
    persons: list[Person] = Field(default_factory=list)
    families: list[Family] = Field(default_factory=list)
    employers: list[Employer] = Field(default_factory=list)
    enrollments: list[Enrollment] = Field(default_factory=list)
    benefit_sponsorship: BenefitSponsorship = Field(default_factory=BenefitSponsorship)

    def find_person(self, person_id: str) -> Person:
        for person in self.persons:
            if person.id == person_id:
                return person
        raise NotFoundError("Person not found", person_id=person_id)

    def primary_family(self, person: Person) -> Family:
        for family in self.families:
            if family.primary_person_id == person.id:
                return family
        raise NotFoundError("Person has no primary family", person_id=person.id)

    def find_employer(self, employer_id: str) -> Employer:
        for employer in self.employers:
            if employer.id == employer_id:
                return employer
        raise NotFoundError("Employer not found", employer_id=employer_id)

    def employers_by_fein(self, feins: Iterable[str]) -> list[Employer]:
        wanted = set(feins)
        return [employer for employer in self.employers if employer.fein in wanted]

    def find_enrollment(self, enrollment_id: str) -> Enrollment:
        for enrollment in self.enrollments:
            if enrollment.id == enrollment_id:
                return enrollment
        raise NotFoundError("Enrollment not found", enrollment_id=enrollment_id)

    def enrollments_for(
        self,
        family_id: str,
        *,
        market_kind: MarketKind | None = None,
        states: Iterable[EnrollmentState] | None = None,
    ) -> list[Enrollment]:
        """Family enrollments, most recent effective date first."""
        wanted_states = set(states) if states is not None else None
        matches = [
            enrollment
            for enrollment in self.enrollments
            if enrollment.family_id == family_id
            and (market_kind is None or enrollment.market_kind == market_kind)
            and (wanted_states is None or enrollment.state in wanted_states)
        ]
        # Stable sort keeps store order for equal effective dates.
        return sorted(matches, key=lambda enrollment: enrollment.effective_on, reverse=True)

    def enrollments_effective_on(self, effective_on: date) -> list[Enrollment]:
        return [enrollment for enrollment in self.enrollments if enrollment.effective_on == effective_on]
