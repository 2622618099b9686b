"""Mini-README: Tests for the pure aggregation helpers behind dashboards and insights.

Inputs are plain dataclasses standing in for ORM rows, mirroring how the
helpers only read attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

import pytest

from sideledger.models import AttendanceStatus, ExpenseCategory, InvoiceStatus
from sideledger.services_analytics import (
    cost_breakdown,
    dashboard_stats,
    estimated_wages,
    lifetime_totals,
    monthly_totals,
    per_project_profitability,
    per_project_worker_leaves,
    start_of_month,
    top_absentees,
    worker_leave_count,
)


@dataclass
class FakeWorker:
    id: int
    name: str
    daily_rate: float | None = None


@dataclass
class FakeAttendance:
    worker_id: int
    status: AttendanceStatus


@dataclass
class FakeProject:
    id: int
    name: str
    workers: list = field(default_factory=list)
    created_at: datetime = datetime(2024, 1, 1)


@dataclass
class FakeExpense:
    total_amount: float
    invoice_date: date | None = None
    project_id: int | None = None
    category: ExpenseCategory = ExpenseCategory.MATERIALS


@dataclass
class FakeInvoice:
    total_amount: float
    date: date | None = None
    status: InvoiceStatus = InvoiceStatus.SENT
    project_id: int | None = None


def _marks(worker_id: int, *statuses: AttendanceStatus) -> list[FakeAttendance]:
    return [FakeAttendance(worker_id=worker_id, status=status) for status in statuses]


def test_amit_wages_count_present_days_only() -> None:
    amit = FakeWorker(id=1, name="Amit", daily_rate=500)
    records = _marks(1, AttendanceStatus.PRESENT, AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.PRESENT)

    wages = estimated_wages(amit, records)

    assert wages.days_present == 3
    assert wages.days_absent == 1
    assert wages.estimated_wages == 1500


def test_half_day_earns_nothing() -> None:
    """Half-days are not pro-rated; this is the documented wage rule."""
    amit = FakeWorker(id=1, name="Amit", daily_rate=500)

    wages = estimated_wages(amit, _marks(1, AttendanceStatus.HALF_DAY, AttendanceStatus.HALF_DAY))

    assert wages.estimated_wages == 0


def test_wages_ignore_other_workers_records() -> None:
    amit = FakeWorker(id=1, name="Amit", daily_rate=500)

    wages = estimated_wages(amit, _marks(2, AttendanceStatus.PRESENT) + _marks(1, AttendanceStatus.PRESENT))

    assert wages.days_present == 1


def test_leave_count_excludes_half_day_and_pending() -> None:
    worker = FakeWorker(id=1, name="Rahul")
    records = _marks(
        1,
        AttendanceStatus.ABSENT,
        AttendanceStatus.ABSENT,
        AttendanceStatus.ABSENT,
        AttendanceStatus.LEAVE,
        AttendanceStatus.HALF_DAY,
        AttendanceStatus.HALF_DAY,
        AttendanceStatus.PENDING,
    )

    assert worker_leave_count(worker, records) == 4


def test_project_profitability_scenario() -> None:
    project = FakeProject(id=10, name="Tower A")

    [row] = per_project_profitability(
        [project],
        expenses=[FakeExpense(total_amount=4000, project_id=10)],
        invoices=[FakeInvoice(total_amount=10000, status=InvoiceStatus.SENT, project_id=10)],
    )

    assert (row.revenue, row.cost, row.profit, row.margin) == (10000, 4000, 6000, 60.0)


def test_zero_revenue_margin_is_zero_not_nan() -> None:
    project = FakeProject(id=10, name="Tower A")

    [row] = per_project_profitability([project], [FakeExpense(total_amount=2500, project_id=10)], [])

    assert row.margin == 0
    assert row.profit == pytest.approx(row.revenue - row.cost, abs=1e-6)


def test_project_profitability_orders_by_revenue_descending() -> None:
    projects = [FakeProject(id=1, name="Small"), FakeProject(id=2, name="Large"), FakeProject(id=3, name="Idle")]
    invoices = [
        FakeInvoice(total_amount=100, project_id=1),
        FakeInvoice(total_amount=900, project_id=2),
        FakeInvoice(total_amount=50, project_id=2, status=InvoiceStatus.DRAFT),
    ]

    rows = per_project_profitability(projects, [], invoices)

    assert [row.name for row in rows] == ["Large", "Small", "Idle"]
    assert rows[0].revenue == 950


def test_top_absentees_breaks_ties_by_lower_worker_id() -> None:
    """Counts [7,3,3,0,5] with n=3 yield [7,5,3]; of the two tied at 3, worker 2 wins over worker 3."""
    workers = [FakeWorker(id=index, name=f"W{index}") for index in range(1, 6)]
    records = (
        _marks(1, *[AttendanceStatus.ABSENT] * 7)
        + _marks(3, *[AttendanceStatus.LEAVE] * 3)
        + _marks(2, *[AttendanceStatus.ABSENT] * 3)
        + _marks(5, *[AttendanceStatus.LEAVE] * 5)
    )

    ranking = top_absentees(list(reversed(workers)), records, n=3)

    assert [row.leaves for row in ranking] == [7, 5, 3]
    assert [row.worker_id for row in ranking] == [1, 5, 2]


def test_per_project_worker_leaves_lists_assigned_workers_with_leave() -> None:
    amit, rahul, vikram = FakeWorker(1, "Amit"), FakeWorker(2, "Rahul"), FakeWorker(3, "Vikram")
    project = FakeProject(id=10, name="Tower A", workers=[amit, rahul])
    records = _marks(1, AttendanceStatus.LEAVE) + _marks(2, AttendanceStatus.PRESENT) + _marks(3, AttendanceStatus.ABSENT)

    breakdown = per_project_worker_leaves(project, [amit, rahul, vikram], records)

    assert [(row.worker_id, row.leaves) for row in breakdown] == [(1, 1)]


def test_monthly_totals_use_inclusive_month_start_and_no_upper_bound() -> None:
    reference = datetime(2024, 3, 17, 15, 30)
    expenses = [
        FakeExpense(total_amount=100, invoice_date=date(2024, 3, 1)),
        FakeExpense(total_amount=40, invoice_date=date(2024, 2, 29)),
        FakeExpense(total_amount=7, invoice_date=None),
    ]
    invoices = [
        FakeInvoice(total_amount=500, date=date(2024, 3, 10)),
        FakeInvoice(total_amount=250, date=date(2024, 4, 2), status=InvoiceStatus.DRAFT),
        FakeInvoice(total_amount=999, date=None),
    ]

    totals = monthly_totals(expenses, invoices, reference)

    assert start_of_month(reference) == date(2024, 3, 1)
    assert (totals.revenue, totals.expense, totals.profit) == (750, 100, 650)


def test_lifetime_revenue_excludes_draft_invoices() -> None:
    invoices = [
        FakeInvoice(total_amount=1000, status=InvoiceStatus.PAID),
        FakeInvoice(total_amount=300, status=InvoiceStatus.SENT),
        FakeInvoice(total_amount=5000, status=InvoiceStatus.DRAFT),
    ]

    totals = lifetime_totals([FakeExpense(total_amount=200), FakeExpense(total_amount=100)], invoices)

    assert (totals.revenue, totals.expense, totals.profit) == (1300, 300, 1000)


def test_cost_breakdown_groups_by_category() -> None:
    expenses = [
        FakeExpense(total_amount=100, category=ExpenseCategory.MATERIALS),
        FakeExpense(total_amount=50, category=ExpenseCategory.LABOR),
        FakeExpense(total_amount=25, category=ExpenseCategory.MATERIALS),
    ]

    assert cost_breakdown(expenses) == {"materials": 125, "labor": 50}


def test_dashboard_stats_reports_three_newest_projects() -> None:
    projects = [FakeProject(id=index, name=f"P{index}", created_at=datetime(2024, 1, index)) for index in range(1, 6)]
    expenses = [FakeExpense(total_amount=80, invoice_date=date(2024, 3, 2)), FakeExpense(total_amount=20, invoice_date=date(2024, 1, 2))]

    stats = dashboard_stats(projects, active_worker_count=4, expenses=expenses, reference_date=date(2024, 3, 20))

    assert stats.total_projects == 5
    assert stats.active_workers == 4
    assert stats.monthly_expenses == 80
    assert [project.id for project in stats.recent_projects] == [5, 4, 3]
