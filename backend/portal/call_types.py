"""Call types and the report template each one files against."""

from typing import Optional

from portal.errors import PortalError

INVESTMENT_TEMPLATE = "investment_reporting"
TOOL_CAPACITY_TEMPLATE = "tool_capacity_reporting"

# Call types accepted on new applications
CALL_TYPES = (
    "Translation Investment",
    "illumiNations Undesignated",
    "Translation Tools",
    "Capacity Building - Quality Assurance",
)

# Legacy names still present on imported applications map to the same
# templates as their current equivalents.
_TEMPLATE_BY_CALL_TYPE: dict[str, str] = {
    "Translation Investment": INVESTMENT_TEMPLATE,
    "illumiNations Undesignated": INVESTMENT_TEMPLATE,
    "Translation Tools": TOOL_CAPACITY_TEMPLATE,
    "Translation Tool": TOOL_CAPACITY_TEMPLATE,
    "Capacity Building - Quality Assurance": TOOL_CAPACITY_TEMPLATE,
    "Quality Assurance": TOOL_CAPACITY_TEMPLATE,
    "Organizational Development": TOOL_CAPACITY_TEMPLATE,
}

FUNDING_STREAMS = (
    "ETEN Translation Project",
    "illumiNations Undesignated",
)


def template_for_call_type(call_type: Optional[str]) -> Optional[str]:
    """Return the report template for *call_type*, or ``None`` if unknown."""
    if not call_type:
        return None
    return _TEMPLATE_BY_CALL_TYPE.get(call_type.strip())


def uses_allocations(call_type: Optional[str]) -> bool:
    """True when reports for *call_type* carry project/non-project allocations."""
    return template_for_call_type(call_type) == INVESTMENT_TEMPLATE


def require_known_call_type(call_type: Optional[str]) -> None:
    """Raise PortalError when a call type filter names no known call type."""
    if call_type and template_for_call_type(call_type) is None:
        raise PortalError(
            f"Invalid call type '{call_type}'. Must be one of: {', '.join(CALL_TYPES)}"
        )


def require_known_funding_stream(funding_stream: Optional[str]) -> None:
    if funding_stream and funding_stream not in FUNDING_STREAMS:
        raise PortalError(
            f"Invalid funding stream '{funding_stream}'. "
            f"Must be one of: {', '.join(FUNDING_STREAMS)}"
        )
