"""
Unit Tests for the funding-stream CSV export

Usage:
    cd backend && pytest tests/test_export_service.py -v
"""

import asyncio
import csv
import io
import os
import sys
import uuid
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from portal.errors import PortalError
from portal.reporting_periods import ReportingPeriod
from portal.services.export_service import (
    CSV_COLUMNS,
    ExportService,
    write_funding_stream_csv,
)

PERIOD = ReportingPeriod(date(2026, 1, 1), date(2026, 6, 30))


def make_report(**overrides) -> dict:
    """Factory function to create one export report dict."""
    report = {
        "organization": "Partner Org",
        "application": "Kalamsé New Testament",
        "call_type": "Translation Investment",
        "period": "2026 H1",
        "project_allocations": [
            {
                "language_name": "Kalamsé",
                "ethnologue_code": "knz",
                "country": "Burkina Faso",
                "partners": ["SIL Burkina", "ANTBA"],
                "amount": Decimal("800"),
            }
        ],
        "non_project_allocations": {
            "other": Decimal("25.5"),
            "indirect_costs": Decimal("150"),
        },
    }
    report.update(overrides)
    return report


def parse(text: str) -> list:
    return list(csv.reader(io.StringIO(text)))


class TestWriteFundingStreamCsv:

    def test_header_row(self):
        rows = parse(write_funding_stream_csv([]))
        assert rows[0] == CSV_COLUMNS

    def test_empty_export_has_zero_grand_total(self):
        rows = parse(write_funding_stream_csv([]))
        assert rows[-1][0] == "Grand Total"
        assert rows[-1][-1] == "0.00"

    def test_project_row(self):
        rows = parse(write_funding_stream_csv([make_report()]))
        project = rows[1]
        assert project[4] == "Project"
        assert project[5:9] == ["Kalamsé", "knz", "Burkina Faso", "SIL Burkina; ANTBA"]
        assert project[9] == "800.00"

    def test_non_project_rows_in_category_order(self):
        rows = parse(write_funding_stream_csv([make_report()]))
        non_project = [r for r in rows if len(r) > 4 and r[4] == "Non-project"]
        assert [r[5] for r in non_project] == ["Indirect Costs", "Other"]
        assert non_project[1][9] == "25.50"

    def test_subtotal_and_grand_total(self):
        rows = parse(
            write_funding_stream_csv(
                [make_report(), make_report(non_project_allocations={})]
            )
        )
        subtotals = [r[9] for r in rows if r[4:5] == ["Subtotal"]]
        assert subtotals == ["975.50", "800.00"]
        assert rows[-1][9] == "1775.50"

    def test_report_prefix_repeated_on_every_row(self):
        rows = parse(write_funding_stream_csv([make_report()]))
        for row in rows[1:-1]:
            assert row[:4] == [
                "Partner Org",
                "Kalamsé New Testament",
                "Translation Investment",
                "2026 H1",
            ]


def make_result(rows=None, scalars=None):
    result = MagicMock()
    result.all.return_value = rows or []
    result.scalars.return_value.all.return_value = scalars or []
    return result


class TestExportServiceQuery:

    def test_only_investment_reports_exported(self):
        investment = SimpleNamespace(title="A", call_type="Translation Investment")
        tools = SimpleNamespace(title="B", call_type="Translation Tools")
        report = SimpleNamespace(id=uuid.uuid4())
        allocation = SimpleNamespace(
            id=uuid.uuid4(),
            report_id=report.id,
            language_name="Bissa",
            ethnologue_code="bib",
            country="Burkina Faso",
            amount_allocated=Decimal("100"),
        )
        partner = SimpleNamespace(
            project_allocation_id=allocation.id, partner_organization_name="SIL"
        )
        other = SimpleNamespace(
            report_id=report.id, allocation_type="other", amount=Decimal("5")
        )

        db = MagicMock()
        db.execute = AsyncMock(
            side_effect=[
                make_result(
                    rows=[
                        (report, investment, "Org A"),
                        (SimpleNamespace(id=uuid.uuid4()), tools, "Org B"),
                    ]
                ),
                make_result(scalars=[allocation]),
                make_result(scalars=[partner]),
                make_result(scalars=[other]),
            ]
        )

        text = asyncio.run(ExportService.funding_stream_csv(db, PERIOD))
        rows = parse(text)

        assert {r[0] for r in rows[1:-1]} == {"Org A"}
        assert rows[1][8] == "SIL"
        assert rows[-1][9] == "105.00"

    def test_no_reports_skips_allocation_queries(self):
        db = MagicMock()
        db.execute = AsyncMock(return_value=make_result())

        text = asyncio.run(ExportService.funding_stream_csv(db, PERIOD))

        assert db.execute.await_count == 1
        assert parse(text)[-1][9] == "0.00"

    def test_unknown_funding_stream_rejected(self):
        db = MagicMock()
        db.execute = AsyncMock()

        with pytest.raises(PortalError, match="Invalid funding stream"):
            asyncio.run(
                ExportService.funding_stream_csv(db, PERIOD, funding_stream="General Fund")
            )
        db.execute.assert_not_awaited()
