"""
Unit Tests for the Allocation Validator

Covers the reconciliation rules applied when a grantee splits the funds
received for a period across project and non-project allocations:
- Negative amounts are rejected in every category
- Indirect costs capped at 20% and assessments at 15% of the project total
- Grand total must match funds received to within one cent
- Required descriptive fields on each project allocation

Usage:
    cd backend && pytest tests/test_allocation_validator.py -v
"""

import os
import sys
from decimal import Decimal

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from portal.services.allocation_validator import (
    MAX_AMOUNT,
    NON_PROJECT_CATEGORIES,
    format_usd,
    validate_allocations,
    validate_project_allocation_fields,
)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def make_allocation(
    language_name: str = "Kalamsé",
    ethnologue_code: str = "knz",
    country: str = "Burkina Faso",
    partners=None,
    amount_allocated: float = 1000.0,
) -> dict:
    """Factory function to create a project allocation dict."""
    return {
        "language_name": language_name,
        "ethnologue_code": ethnologue_code,
        "country": country,
        "partners": ["Partner Org"] if partners is None else partners,
        "amount_allocated": amount_allocated,
    }


# ============================================================================
# PERCENTAGE CAPS
# ============================================================================

class TestPercentageCaps:
    """Indirect costs and assessments are capped relative to project total."""

    def test_indirect_costs_exactly_at_cap_is_valid(self):
        summary = validate_allocations([1000], {"indirect_costs": 200})
        assert summary.is_valid
        assert summary.errors == []

    def test_indirect_costs_one_cent_over_cap_is_invalid(self):
        summary = validate_allocations([1000], {"indirect_costs": "200.01"})
        assert not summary.is_valid
        assert len(summary.errors) == 1
        assert "Indirect Costs" in summary.errors[0]
        assert "20%" in summary.errors[0]

    def test_assessments_exactly_at_cap_is_valid(self):
        summary = validate_allocations([1000], {"assessments": 150})
        assert summary.is_valid

    def test_assessments_over_cap_is_invalid(self):
        summary = validate_allocations([1000], {"assessments": 150.5})
        assert not summary.is_valid
        assert "Assessments" in summary.errors[0]
        assert "15%" in summary.errors[0]

    def test_both_caps_exceeded_reports_two_errors(self):
        summary = validate_allocations(
            [1000], {"indirect_costs": 300, "assessments": 200}
        )
        assert len(summary.errors) == 2

    def test_cap_uses_sum_of_project_allocations(self):
        summary = validate_allocations([400, 600], {"indirect_costs": 200})
        assert summary.project_total == Decimal("1000")
        assert summary.is_valid

    def test_caps_and_percentages_reported(self):
        summary = validate_allocations([1000], {"indirect_costs": 100})
        assert summary.caps["indirect_costs"] == Decimal("200")
        assert summary.caps["assessments"] == Decimal("150")
        assert summary.percentages["indirect_costs"] == Decimal("10")
        assert summary.caps_enforced

    def test_uncapped_categories_have_no_limit(self):
        summary = validate_allocations([100], {"unused_funds": 5000, "other": 5000})
        assert summary.is_valid


class TestZeroProjectTotal:
    """Zero project total suppresses the caps with a notice, not an error."""

    def test_no_project_allocations_is_not_an_error(self):
        summary = validate_allocations([], {"indirect_costs": 500})
        assert summary.is_valid
        assert not summary.caps_enforced
        assert summary.notices

    def test_zero_project_total_leaves_percentages_unset(self):
        summary = validate_allocations([0, 0], {"assessments": 10})
        assert summary.percentages["assessments"] is None
        assert summary.caps["assessments"] is None

    def test_zero_project_total_still_balances(self):
        summary = validate_allocations([], {"unused_funds": 500}, funds_received=500)
        assert summary.is_valid
        assert summary.is_balanced


# ============================================================================
# BALANCE
# ============================================================================

class TestBalance:
    """Grand total must match funds received within one cent."""

    def test_within_tolerance_is_balanced(self):
        summary = validate_allocations(
            ["999.995"], {}, funds_received=1000
        )
        assert summary.is_balanced
        assert summary.is_valid

    def test_outside_tolerance_is_not_balanced(self):
        summary = validate_allocations(["998.98"], {}, funds_received=1000)
        assert summary.is_balanced is False
        assert not summary.is_valid
        assert "under" in summary.errors[0]

    def test_exactly_one_cent_off_is_not_balanced(self):
        summary = validate_allocations(["999.99"], {}, funds_received=1000)
        assert summary.is_balanced is False

    def test_over_allocated_reports_over(self):
        summary = validate_allocations([1200], {}, funds_received=1000)
        assert summary.variance == Decimal("-200")
        assert "over" in summary.errors[0]

    def test_variance_is_received_minus_grand_total(self):
        summary = validate_allocations(
            [800], {"indirect_costs": 100, "other": 50}, funds_received=1000
        )
        assert summary.grand_total == Decimal("950")
        assert summary.variance == Decimal("50")

    def test_missing_funds_received_skips_balance(self):
        summary = validate_allocations([800], {})
        assert summary.is_balanced is None
        assert summary.variance is None
        assert summary.is_valid
        assert any("balance check skipped" in n for n in summary.notices)

    def test_float_inputs_do_not_drift(self):
        summary = validate_allocations([0.1, 0.2], {}, funds_received=0.3)
        assert summary.is_balanced


# ============================================================================
# NEGATIVE AND MALFORMED AMOUNTS
# ============================================================================

class TestNegativeAmounts:
    """A negative amount is invalid regardless of totals."""

    def test_negative_project_amount(self):
        summary = validate_allocations([1100, -100], {}, funds_received=1000)
        assert not summary.is_valid
        assert any("cannot be negative" in e for e in summary.errors)

    @pytest.mark.parametrize("category", NON_PROJECT_CATEGORIES)
    def test_negative_non_project_amount(self, category):
        summary = validate_allocations([1000], {category: -1})
        assert not summary.is_valid
        assert any("cannot be negative" in e for e in summary.errors)

    def test_negative_even_when_balanced(self):
        summary = validate_allocations(
            [1050], {"unused_funds": -50}, funds_received=1000
        )
        assert summary.is_balanced
        assert not summary.is_valid


class TestMalformedInput:
    """The validator reports bad input instead of raising."""

    def test_non_numeric_project_amount(self):
        summary = validate_allocations(["abc"], {})
        assert "Project allocation 1 amount is not a number" in summary.errors

    def test_unknown_category(self):
        summary = validate_allocations([100], {"travel": 10})
        assert any("Unknown non-project allocation type 'travel'" in e for e in summary.errors)

    def test_blank_and_none_count_as_zero(self):
        summary = validate_allocations(["", None], {"other": ""})
        assert summary.grand_total == Decimal("0")
        assert summary.is_valid

    def test_thousands_separators_accepted(self):
        summary = validate_allocations(["1,000.00"], {}, funds_received="1,000")
        assert summary.is_balanced

    def test_infinite_amount_rejected(self):
        summary = validate_allocations([float("inf")], {})
        assert not summary.is_valid

    def test_bad_funds_received(self):
        summary = validate_allocations([100], {}, funds_received="lots")
        assert "Funds received is not a number" in summary.errors


class TestOversizedAmounts:
    """Amounts beyond what a report can store are errors, not crashes."""

    def test_huge_project_amount(self):
        summary = validate_allocations([Decimal("1e30")], {}, 0)
        assert not summary.is_valid
        assert any("Project allocation 1 amount exceeds the maximum" in e for e in summary.errors)
        assert summary.to_dict()["is_valid"] is False

    def test_huge_float_serializes(self):
        data = validate_allocations([1e30], {}, None).to_dict()
        assert data["is_valid"] is False
        assert data["project_total"] == 0.0

    def test_huge_non_project_amount(self):
        summary = validate_allocations([100], {"other": "1e20"}, 100)
        assert any("exceeds the maximum" in e for e in summary.errors)
        assert summary.category_amounts["other"] == Decimal("0")

    def test_huge_funds_received(self):
        summary = validate_allocations([100], {}, funds_received=-1e25)
        assert any(e.startswith("Funds received exceeds the maximum") for e in summary.errors)
        summary.to_dict()

    def test_largest_storable_amount_accepted(self):
        summary = validate_allocations([MAX_AMOUNT], {}, funds_received=MAX_AMOUNT)
        assert summary.is_balanced
        assert summary.is_valid


# ============================================================================
# SUMMARY SERIALIZATION
# ============================================================================

class TestSummaryToDict:

    def test_money_is_rounded_to_cents(self):
        summary = validate_allocations(["100.005"], {}, funds_received=100)
        data = summary.to_dict()
        assert data["project_total"] == 100.01
        assert data["is_valid"] is True

    def test_missing_values_serialize_as_none(self):
        data = validate_allocations([], {}).to_dict()
        assert data["variance"] is None
        assert data["percentages"]["indirect_costs"] is None
        assert set(data["category_amounts"]) == set(NON_PROJECT_CATEGORIES)


class TestFormatUsd:

    def test_positive(self):
        assert format_usd(Decimal("1234.5")) == "$1,234.50"

    def test_negative(self):
        assert format_usd(Decimal("-3")) == "-$3.00"


# ============================================================================
# PROJECT ALLOCATION FIELDS
# ============================================================================

class TestProjectAllocationFields:
    """Each project allocation needs a language, code, country and partner."""

    def test_complete_allocation_passes(self):
        assert validate_project_allocation_fields([make_allocation()]) == []

    def test_each_missing_field_reported(self):
        errors = validate_project_allocation_fields(
            [make_allocation(language_name="", ethnologue_code=" ", country="", partners=[])]
        )
        assert len(errors) == 4
        assert "Project allocation 1 is missing a language name" in errors

    def test_label_includes_language_name(self):
        errors = validate_project_allocation_fields(
            [make_allocation(), make_allocation(language_name="Bissa", country="")]
        )
        assert errors == ["Project allocation 2 (Bissa) is missing a country"]

    def test_blank_partner_names_do_not_count(self):
        errors = validate_project_allocation_fields([make_allocation(partners=["  ", ""])])
        assert errors == [
            "Project allocation 1 (Kalamsé) needs at least one partner organization"
        ]

    def test_partner_dicts_accepted(self):
        allocation = make_allocation(
            partners=[{"partner_organization_name": "SIL Burkina"}]
        )
        assert validate_project_allocation_fields([allocation]) == []
