"""Role and market resolution.

Decides which participation role a person shops under and which market that
role reaches:

    employee role  -> shop
    consumer role  -> individual
    resident role  -> coverall

An explicit market kind always wins. Without one, the configured
`MarketPolicy` picks, and a person who can shop both the shop and individual
markets is flagged so the caller can offer the choice.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel

from enrollment_rules.group_selection.errors import AmbiguousMarketError, NoEligibleRoleError
from enrollment_rules.group_selection.models import (
    ConsumerRole,
    EmployeeRole,
    MarketKind,
    Person,
    ResidentRole,
    Role,
)
from enrollment_rules.group_selection.policy import MarketPolicy

logger = logging.getLogger(__name__)


class RoleResolution(BaseModel):
    market_kind: MarketKind
    role: Role
    can_shop_both_markets: bool = False

    @property
    def employee_role(self) -> EmployeeRole | None:
        return self.role if isinstance(self.role, EmployeeRole) else None


def can_shop_shop(person: Person) -> bool:
    return person.has_active_employee_role and person.has_employer_benefits


def can_shop_individual(person: Person) -> bool:
    return person.has_active_consumer_role


def can_shop_resident(person: Person) -> bool:
    return person.has_active_resident_role


def can_shop_both_markets(person: Person) -> bool:
    return can_shop_individual(person) and can_shop_shop(person)


def select_employee_role(person: Person, employee_role_id: str | None = None) -> EmployeeRole | None:
    """Employee role named by id, else the person's first active one."""
    if employee_role_id:
        for role in person.employee_roles:
            if role.id == employee_role_id:
                return role
        return None
    active = person.active_employee_roles
    return active[0] if active else None


class RoleResolver:
    """Resolve the market and role a person shops under.

    Example:
        >>> resolver = RoleResolver()
        >>> resolution = resolver.resolve(person)
        >>> resolution.market_kind
        <MarketKind.individual: 'individual'>
    """

    def __init__(self, market_policy: MarketPolicy = MarketPolicy.employee_first):
        self.market_policy = market_policy

    def resolve(
        self,
        person: Person,
        market_kind: MarketKind | None = None,
        employee_role_id: str | None = None,
    ) -> RoleResolution:
        both = can_shop_both_markets(person)

        if market_kind is None:
            market_kind = self._default_market(person)

        role = self._role_for_market(person, market_kind, employee_role_id)
        if role is None:
            raise NoEligibleRoleError(
                "Person has no role for market",
                person_id=person.id,
                market_kind=market_kind.value,
                employee_role_id=employee_role_id,
            )

        logger.debug("Resolved person %s to %s market via %s role %s", person.id, market_kind.value, role.kind, role.id)
        return RoleResolution(market_kind=market_kind, role=role, can_shop_both_markets=both)

    def _default_market(self, person: Person) -> MarketKind:
        # Role pair only: employer benefits are not required to be ambiguous.
        dual_role = person.has_active_employee_role and person.has_active_consumer_role
        if dual_role and self.market_policy == MarketPolicy.require_explicit:
            raise AmbiguousMarketError(
                "Person can shop both shop and individual markets; market kind required",
                person_id=person.id,
            )

        if person.has_active_employee_role:
            return MarketKind.shop
        if person.has_active_consumer_role:
            return MarketKind.individual
        if person.has_active_resident_role:
            return MarketKind.coverall
        raise NoEligibleRoleError("Person has no active employee, consumer or resident role", person_id=person.id)

    def _role_for_market(
        self,
        person: Person,
        market_kind: MarketKind,
        employee_role_id: str | None,
    ) -> EmployeeRole | ConsumerRole | ResidentRole | None:
        if market_kind == MarketKind.shop:
            return select_employee_role(person, employee_role_id)
        if market_kind == MarketKind.individual:
            return person.consumer_role if person.has_active_consumer_role else None
        return person.resident_role if person.has_active_resident_role else None
