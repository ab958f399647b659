"""Half-year reporting periods and report due dates.

Reports are filed per application against a fixed half-year window:
H1 runs January 1 to June 30 and H2 runs July 1 to December 31.  A report
is due ``REPORT_DUE_DAYS`` after its period closes.

The active period defaults to the most recently closed half-year and can be
pinned with ``REPORTING_PERIOD_START`` / ``REPORTING_PERIOD_END`` (ISO dates)
while a reporting cycle is open past its nominal window.
"""

import logging
import os
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

REPORT_DUE_DAYS = int(os.getenv("REPORT_DUE_DAYS", "31"))


@dataclass(frozen=True)
class ReportingPeriod:
    """An inclusive ``[start, end]`` reporting window."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(
                f"Reporting period end {self.end} is before start {self.start}"
            )

    @property
    def label(self) -> str:
        half = "H1" if self.start.month <= 6 else "H2"
        return f"{self.start.year} {half}"

    def due_date(self) -> date:
        return self.end + timedelta(days=REPORT_DUE_DAYS)


def period_for(day: date) -> ReportingPeriod:
    """Return the half-year period containing *day*."""
    if day.month <= 6:
        return ReportingPeriod(date(day.year, 1, 1), date(day.year, 6, 30))
    return ReportingPeriod(date(day.year, 7, 1), date(day.year, 12, 31))


def previous_period(period: ReportingPeriod) -> ReportingPeriod:
    return period_for(period.start - timedelta(days=1))


def _configured_period() -> Optional[ReportingPeriod]:
    start = os.getenv("REPORTING_PERIOD_START")
    end = os.getenv("REPORTING_PERIOD_END")
    if not start or not end:
        return None
    try:
        return ReportingPeriod(date.fromisoformat(start), date.fromisoformat(end))
    except ValueError as exc:
        logger.warning("Ignoring invalid reporting period override: %s", exc)
        return None


def current_period(today: Optional[date] = None) -> ReportingPeriod:
    """Return the period reports are currently being filed for."""
    configured = _configured_period()
    if configured is not None:
        return configured
    today = today or date.today()
    return previous_period(period_for(today))


def is_overdue(status: Optional[str], period: ReportingPeriod, today: date) -> bool:
    """A report is overdue once past its due date without being submitted."""
    if status == "submitted":
        return False
    return today > period.due_date()


def days_until_due(period: ReportingPeriod, today: date) -> int:
    """Days until the due date; negative once overdue."""
    return (period.due_date() - today).days
