"""Reconciliation checks for project and non-project allocations.

A grantee splits the funds received for a period between language project
allocations and a fixed set of non-project categories.  This module checks
the split:

- no amount may be negative;
- indirect costs may not exceed 20% of the project allocation total and
  assessments may not exceed 15% of it (caps apply once the project total
  is above zero);
- project plus non-project allocations must match the funds received to
  within one cent.

Everything here is pure computation over the supplied values.  Problems are
returned as display strings on the summary; nothing is raised for bad input.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

# Grand total and funds received count as reconciled when they differ by
# strictly less than this.
BALANCE_TOLERANCE = Decimal("0.01")

# Largest magnitude a stored amount can hold (NUMERIC(14, 2))
MAX_AMOUNT = Decimal("999999999999.99")

# Non-project categories in display order
NON_PROJECT_CATEGORIES = ("indirect_costs", "assessments", "unused_funds", "other")

CATEGORY_LABELS: Dict[str, str] = {
    "indirect_costs": "Indirect Costs",
    "assessments": "Assessments",
    "unused_funds": "Unused Funds",
    "other": "Other",
}

# Ceiling as a fraction of the project allocation total
PERCENTAGE_CAPS: Dict[str, Decimal] = {
    "indirect_costs": Decimal("0.20"),
    "assessments": Decimal("0.15"),
}

REQUIRED_PROJECT_FIELDS = (
    ("language_name", "language name"),
    ("ethnologue_code", "language code"),
    ("country", "country"),
)


def format_usd(value: Decimal) -> str:
    """Format a Decimal as US currency, e.g. ``$1,234.50`` or ``-$3.00``."""
    quantized = value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
    if quantized < 0:
        return f"-${-quantized:,.2f}"
    return f"${quantized:,.2f}"


def _parse_amount(value: Any) -> Optional[Decimal]:
    """Convert *value* to Decimal; ``None`` and blanks count as zero.

    Returns ``None`` when the value cannot be read as a finite number.
    """
    if value is None:
        return _ZERO
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return _ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def _read_amount(raw: Any, label: str, errors: List[str]) -> Optional[Decimal]:
    """Parse *raw*, recording an error under *label* when it is unusable."""
    amount = _parse_amount(raw)
    if amount is None:
        errors.append(f"{label} is not a number")
        return None
    if abs(amount) > MAX_AMOUNT:
        errors.append(f"{label} exceeds the maximum of {format_usd(MAX_AMOUNT)}")
        return None
    return amount


@dataclass
class AllocationSummary:
    """Totals and validation outcome for one allocation split."""

    project_total: Decimal = _ZERO
    non_project_total: Decimal = _ZERO
    grand_total: Decimal = _ZERO
    funds_received: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    category_amounts: Dict[str, Decimal] = field(default_factory=dict)
    percentages: Dict[str, Optional[Decimal]] = field(default_factory=dict)
    caps: Dict[str, Optional[Decimal]] = field(default_factory=dict)
    is_balanced: Optional[bool] = None
    caps_enforced: bool = False
    errors: List[str] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view with money as floats rounded to cents."""

        def money(value: Optional[Decimal]) -> Optional[float]:
            if value is None:
                return None
            return float(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))

        return {
            "project_total": money(self.project_total),
            "non_project_total": money(self.non_project_total),
            "grand_total": money(self.grand_total),
            "funds_received": money(self.funds_received),
            "variance": money(self.variance),
            "category_amounts": {
                k: money(v) for k, v in self.category_amounts.items()
            },
            "percentages": {k: money(v) for k, v in self.percentages.items()},
            "caps": {k: money(v) for k, v in self.caps.items()},
            "is_balanced": self.is_balanced,
            "caps_enforced": self.caps_enforced,
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "notices": list(self.notices),
        }


def validate_allocations(
    project_amounts: Iterable[Any],
    non_project_amounts: Optional[Mapping[str, Any]] = None,
    funds_received: Any = None,
) -> AllocationSummary:
    """Reconcile an allocation split against the funds received.

    Args:
        project_amounts: One amount per project allocation.
        non_project_amounts: Amount per non-project category.  Missing
            categories count as zero.
        funds_received: Funds received for the period.  ``None`` skips the
            balance check and leaves ``is_balanced`` as ``None``.

    Returns:
        An AllocationSummary.  ``is_valid`` is true when no blocking
        error was found.
    """
    summary = AllocationSummary()
    non_project_amounts = non_project_amounts or {}

    # -- Project allocations --
    project_total = _ZERO
    for index, raw in enumerate(project_amounts, start=1):
        amount = _read_amount(raw, f"Project allocation {index} amount", summary.errors)
        if amount is None:
            continue
        if amount < 0:
            summary.errors.append(
                f"Project allocation {index} amount cannot be negative"
            )
        project_total += amount

    # -- Non-project allocations --
    for category in non_project_amounts:
        if category not in CATEGORY_LABELS:
            summary.errors.append(f"Unknown non-project allocation type '{category}'")

    non_project_total = _ZERO
    for category in NON_PROJECT_CATEGORIES:
        label = CATEGORY_LABELS[category]
        amount = _read_amount(
            non_project_amounts.get(category), f"{label} amount", summary.errors
        )
        if amount is None:
            amount = _ZERO
        elif amount < 0:
            summary.errors.append(f"{label} amount cannot be negative")
        summary.category_amounts[category] = amount
        non_project_total += amount

    summary.project_total = project_total
    summary.non_project_total = non_project_total
    summary.grand_total = project_total + non_project_total

    # -- Percentage caps --
    summary.caps_enforced = project_total > 0
    for category, rate in PERCENTAGE_CAPS.items():
        amount = summary.category_amounts[category]
        if not summary.caps_enforced:
            summary.percentages[category] = None
            summary.caps[category] = None
            continue

        max_allowed = project_total * rate
        summary.caps[category] = max_allowed
        summary.percentages[category] = amount / project_total * _HUNDRED
        if amount > max_allowed:
            label = CATEGORY_LABELS[category]
            summary.errors.append(
                f"{label} ({format_usd(amount)}) exceeds maximum allowed "
                f"{rate * _HUNDRED:.0f}% of project allocations "
                f"({format_usd(max_allowed)})"
            )

    if not summary.caps_enforced:
        summary.notices.append(
            "Add project allocations to enable percentage-based validation "
            "for indirect costs and assessments."
        )

    # -- Balance against funds received --
    if funds_received is None:
        summary.notices.append(
            "Funds received have not been recorded; balance check skipped."
        )
    else:
        received = _read_amount(funds_received, "Funds received", summary.errors)
        if received is not None:
            summary.funds_received = received
            summary.variance = received - summary.grand_total
            summary.is_balanced = abs(summary.variance) < BALANCE_TOLERANCE
            if not summary.is_balanced:
                direction = "under" if summary.variance > 0 else "over"
                summary.errors.append(
                    f"Allocations total {format_usd(summary.grand_total)}, which is "
                    f"{format_usd(abs(summary.variance))} {direction} the funds "
                    f"received ({format_usd(received)})"
                )

    logger.debug(
        "Allocation check: project=%s non_project=%s variance=%s errors=%d",
        summary.project_total,
        summary.non_project_total,
        summary.variance,
        len(summary.errors),
    )
    return summary


def validate_project_allocation_fields(
    allocations: Sequence[Mapping[str, Any]],
) -> List[str]:
    """Check the descriptive fields each project allocation must carry.

    Every allocation needs a language name, a language code, a country,
    and at least one non-blank partner organization name.  ``partners`` may
    hold plain strings or dicts with ``partner_organization_name``.
    """
    errors: List[str] = []
    for index, allocation in enumerate(allocations, start=1):
        name = (allocation.get("language_name") or "").strip()
        label = f"Project allocation {index}" + (f" ({name})" if name else "")

        for key, description in REQUIRED_PROJECT_FIELDS:
            if not (allocation.get(key) or "").strip():
                errors.append(f"{label} is missing a {description}")

        partner_names = []
        for partner in allocation.get("partners") or []:
            if isinstance(partner, Mapping):
                partner = partner.get("partner_organization_name")
            if partner and str(partner).strip():
                partner_names.append(partner)
        if not partner_names:
            errors.append(f"{label} needs at least one partner organization")

    return errors
