"""End-to-end tests for GroupSelection.evaluate."""

from datetime import date

import pytest

from enrollment_rules.group_selection import GroupSelection, GroupSelectionRequest
from enrollment_rules.group_selection.errors import (
    AmbiguousMarketError,
    CoveragePeriodNotFoundError,
    EffectiveDateParseError,
    NotFoundError,
)
from enrollment_rules.group_selection.models import (
    BenefitSponsorship,
    ConsumerRole,
    CoverageKind,
    MarketKind,
    SpecialEnrollmentPeriod,
)
from enrollment_rules.group_selection.policy import MarketPolicy, SelectionPolicy


def with_sep(snapshot, family_id: str, sep: SpecialEnrollmentPeriod):
    families = [
        family.model_copy(update={"special_enrollment_periods": [sep]}) if family.id == family_id else family
        for family in snapshot.families
    ]
    return snapshot.model_copy(update={"families": families})


@pytest.fixture
def engine(snapshot):
    return GroupSelection(snapshot)


class TestIndividualMarket:
    def test_open_enrollment_uses_calendar(self, engine, as_of):
        result = engine.evaluate(GroupSelectionRequest(person_id="P-CON", as_of=as_of))
        assert result.market_kind == MarketKind.individual
        assert result.role_kind == "consumer"
        assert result.role_id == "CR1"
        assert result.effective_on == date(2024, 11, 1)
        assert result.benefit_package_id == "BP-2024-H"
        assert result.benefit_group_id is None
        assert result.disabled_market_kind is None
        assert result.effective_on_options == []
        assert result.details["effective_on_source"] == "benefit_coverage_period"

    def test_sep_date_of_event(self, snapshot, as_of):
        sep = SpecialEnrollmentPeriod(
            id="SEP-C",
            qle_on=date(2024, 10, 3),
            effective_on_kind="date_of_event",
            optional_effective_on=[date(2024, 11, 1), date(2024, 10, 3)],
        )
        engine = GroupSelection(with_sep(snapshot, "F-CON", sep))
        result = engine.evaluate(GroupSelectionRequest(person_id="P-CON", change_trigger="sep", as_of=as_of))
        assert result.effective_on == date(2024, 10, 3)
        assert result.disabled_market_kind == MarketKind.shop
        assert result.controls.is_market_kind_disabled("shop")
        assert result.details["effective_on_source"] == "special_enrollment_period"
        assert result.details["qle_effective_on"] == "2024-10-03"
        assert result.effective_on_options == ["10/03/2024", "11/01/2024"]

    def test_selected_option_overrides_computed(self, engine, as_of):
        result = engine.evaluate(
            GroupSelectionRequest(person_id="P-CON", effective_on_option_selected="12/01/2024", as_of=as_of)
        )
        assert result.effective_on == date(2024, 12, 1)
        assert result.details["effective_on_source"] == "selected_option"
        assert result.details["computed_effective_on"] == "2024-11-01"

    def test_benefit_package_follows_effective_year(self, engine, as_of):
        result = engine.evaluate(
            GroupSelectionRequest(person_id="P-CON", effective_on_option_selected="02/01/2025", as_of=as_of)
        )
        assert result.benefit_package_id == "BP-2025-H"

    def test_dental_benefit_package(self, engine, as_of):
        result = engine.evaluate(GroupSelectionRequest(person_id="P-CON", coverage_kind="dental", as_of=as_of))
        assert result.coverage_kind == CoverageKind.dental
        assert result.benefit_package_id == "BP-2024-D"

    def test_policy_default_coverage_kind(self, snapshot, as_of):
        engine = GroupSelection(snapshot, SelectionPolicy(default_coverage_kind="dental"))
        result = engine.evaluate(GroupSelectionRequest(person_id="P-CON", as_of=as_of))
        assert result.coverage_kind == CoverageKind.dental
        assert result.benefit_package_id == "BP-2024-D"
        assert result.controls.selected_coverage_kind == CoverageKind.dental

    def test_request_coverage_kind_beats_policy_default(self, snapshot, as_of):
        engine = GroupSelection(snapshot, SelectionPolicy(default_coverage_kind="dental"))
        result = engine.evaluate(GroupSelectionRequest(person_id="P-CON", coverage_kind="health", as_of=as_of))
        assert result.coverage_kind == CoverageKind.health
        assert result.benefit_package_id == "BP-2024-H"

    def test_missing_benefit_package_is_none(self, engine, as_of):
        result = engine.evaluate(
            GroupSelectionRequest(
                person_id="P-CON",
                coverage_kind="dental",
                effective_on_option_selected="02/01/2025",
                as_of=as_of,
            )
        )
        assert result.benefit_package_id is None

    def test_resident_shops_coverall(self, engine, as_of):
        result = engine.evaluate(GroupSelectionRequest(person_id="P-RES", as_of=as_of))
        assert result.market_kind == MarketKind.coverall
        assert result.role_kind == "resident"
        assert result.benefit_package_id == "BP-2024-H"

    def test_no_coverage_period(self, snapshot, as_of):
        engine = GroupSelection(snapshot.model_copy(update={"benefit_sponsorship": BenefitSponsorship()}))
        with pytest.raises(CoveragePeriodNotFoundError):
            engine.evaluate(GroupSelectionRequest(person_id="P-CON", as_of=as_of))


class TestShopMarket:
    def test_open_enrollment_during_renewal(self, engine, as_of):
        result = engine.evaluate(GroupSelectionRequest(person_id="P-EMP", as_of=as_of))
        assert result.market_kind == MarketKind.shop
        assert result.role_id == "ER1"
        assert result.benefit_group_id == "BG-R"
        assert result.benefit_group_assignment_id == "BGA-R"
        assert result.effective_on == date(2025, 1, 1)
        assert result.benefit_package_id is None
        assert result.details["plan_year_id"] == "PY-R"
        assert result.details["effective_on_source"] == "plan_year"

    def test_qle_replaces_enrolled_coverage(self, snapshot, as_of):
        sep = SpecialEnrollmentPeriod(
            id="SEP-E", market_kind="shop", qle_on=date(2024, 10, 1), effective_on_kind="date_of_event"
        )
        engine = GroupSelection(with_sep(snapshot, "F-EMP", sep))
        result = engine.evaluate(GroupSelectionRequest(person_id="P-EMP", change_trigger="change_by_qle", as_of=as_of))
        assert result.prior_enrollment_id == "E-ACTIVE"
        assert result.benefit_group_id == "BG-A"
        assert result.benefit_group_assignment_id == "BGA-A"
        assert result.effective_on == date(2024, 10, 1)
        assert result.disabled_market_kind == MarketKind.individual
        assert result.waivable is False
        assert result.offered_relationships == ["employee", "spouse", "child_under_26"]
        assert result.effective_on_options == []

    def test_qle_without_current_sep_uses_plan_year(self, engine, as_of):
        result = engine.evaluate(GroupSelectionRequest(person_id="P-EMP", change_trigger="sep", as_of=as_of))
        assert result.prior_enrollment_id == "E-ACTIVE"
        assert result.effective_on == date(2024, 1, 1)
        assert result.details["qle_effective_on"] is None
        assert result.details["effective_on_source"] == "plan_year"

    def test_qle_inside_expired_plan_year(self, snapshot):
        sep = SpecialEnrollmentPeriod(
            id="SEP-X", market_kind="shop", qle_on=date(2023, 12, 15), effective_on_kind="date_of_event"
        )
        engine = GroupSelection(with_sep(snapshot, "F-X", sep))
        result = engine.evaluate(
            GroupSelectionRequest(person_id="P-X", change_trigger="sep", as_of=date(2024, 1, 20))
        )
        assert result.benefit_group_id == "BG-X"
        assert result.benefit_group_assignment_id == "BGA-X"
        assert result.effective_on == date(2023, 12, 15)

    def test_make_changes_pins_controls(self, engine, as_of):
        result = engine.evaluate(
            GroupSelectionRequest(
                person_id="P-EMP", enrollment_id="E-ACTIVE", change_trigger="make_changes", as_of=as_of
            )
        )
        assert result.prior_enrollment_id == "E-ACTIVE"
        assert result.benefit_group_id == "BG-A"
        assert result.controls.mc_market_kind == MarketKind.shop
        assert result.controls.is_market_kind_disabled("individual")
        assert result.controls.is_employer_checked("ER1")
        assert result.details["change_trigger"] == "make_changes"

    def test_cobra_member_ids(self, engine, as_of):
        result = engine.evaluate(GroupSelectionRequest(person_id="P-COBRA", as_of=as_of))
        assert result.cobra_member_ids == ["FM6", "FM7"]


class TestMarketPolicy:
    @pytest.fixture
    def dual_snapshot(self, snapshot):
        persons = [
            person.model_copy(update={"consumer_role": ConsumerRole(id="CR9", person_id=person.id)})
            if person.id == "P-EMP"
            else person
            for person in snapshot.persons
        ]
        return snapshot.model_copy(update={"persons": persons})

    def test_employee_first_reports_both_markets(self, dual_snapshot, as_of):
        result = GroupSelection(dual_snapshot).evaluate(GroupSelectionRequest(person_id="P-EMP", as_of=as_of))
        assert result.market_kind == MarketKind.shop
        assert result.can_shop_both_markets is True

    def test_dual_role_shop_result_carries_individual_package(self, dual_snapshot, as_of):
        result = GroupSelection(dual_snapshot).evaluate(GroupSelectionRequest(person_id="P-EMP", as_of=as_of))
        assert result.market_kind == MarketKind.shop
        assert result.benefit_group_id == "BG-R"
        assert result.effective_on == date(2025, 1, 1)
        assert result.benefit_package_id == "BP-2025-H"

    def test_require_explicit_raises(self, dual_snapshot, as_of):
        engine = GroupSelection(dual_snapshot, SelectionPolicy(market_policy=MarketPolicy.require_explicit))
        with pytest.raises(AmbiguousMarketError):
            engine.evaluate(GroupSelectionRequest(person_id="P-EMP", as_of=as_of))

    def test_explicit_individual_market(self, dual_snapshot, as_of):
        engine = GroupSelection(dual_snapshot, SelectionPolicy(market_policy=MarketPolicy.require_explicit))
        result = engine.evaluate(GroupSelectionRequest(person_id="P-EMP", market_kind="individual", as_of=as_of))
        assert result.role_id == "CR9"
        assert result.benefit_package_id == "BP-2024-H"


class TestErrors:
    def test_unknown_person(self, engine, as_of):
        with pytest.raises(NotFoundError) as excinfo:
            engine.evaluate(GroupSelectionRequest(person_id="NOPE", as_of=as_of))
        assert "person_id=NOPE" in str(excinfo.value)

    def test_unknown_enrollment(self, engine, as_of):
        with pytest.raises(NotFoundError):
            engine.evaluate(GroupSelectionRequest(person_id="P-EMP", enrollment_id="E-NOPE", as_of=as_of))

    def test_enrollment_of_another_family(self, engine, as_of):
        with pytest.raises(NotFoundError) as excinfo:
            engine.evaluate(GroupSelectionRequest(person_id="P-CON", enrollment_id="E-ACTIVE", as_of=as_of))
        assert excinfo.value.context["family_id"] == "F-CON"
        assert excinfo.value.context["enrollment_id"] == "E-ACTIVE"

    def test_bad_selected_option(self, engine, as_of):
        with pytest.raises(EffectiveDateParseError):
            engine.evaluate(
                GroupSelectionRequest(person_id="P-CON", effective_on_option_selected="2024-12-01", as_of=as_of)
            )

    def test_invalid_change_trigger(self):
        with pytest.raises(ValueError):
            GroupSelectionRequest(person_id="P-CON", change_trigger="birthday")


class TestDeterminism:
    def test_same_request_same_result(self, snapshot, engine, as_of):
        before = snapshot.model_dump()
        request = GroupSelectionRequest(person_id="P-EMP", change_trigger="sep", as_of=as_of)
        assert engine.evaluate(request) == engine.evaluate(request)
        assert snapshot.model_dump() == before

    def test_evaluate_batch(self, engine, as_of):
        requests = [
            GroupSelectionRequest(person_id="P-CON", as_of=as_of),
            GroupSelectionRequest(person_id="P-EMP", as_of=as_of),
        ]
        results = engine.evaluate_batch(requests)
        assert [result.market_kind for result in results] == [MarketKind.individual, MarketKind.shop]
