"""Aggregation helpers.

Pure, read-only reductions over already-fetched ledgers. Inputs only need the
attributes the ORM models expose (`total_amount`, `invoice_date`, `status`,
`worker_id`, ...), so tests can pass plain dataclasses.

Rules worth knowing:
- monthly totals use an inclusive lower bound at 00:00 on the first day of the
  reference month and no upper bound ("this month so far")
- lifetime revenue counts only `sent` and `paid` invoices
- per-project revenue counts every invoice tagged to the project
- leave means `leave` or `absent`; `half-day` and `pending` never count
- wages pay `present` days only; `half-day` earns nothing
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from sideledger.models import AttendanceStatus, InvoiceStatus

LEAVE_STATUSES = frozenset({AttendanceStatus.LEAVE, AttendanceStatus.ABSENT})
REALISED_INVOICE_STATUSES = frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID})


@dataclass(frozen=True)
class PeriodTotals:
    revenue: float
    expense: float
    profit: float


@dataclass(frozen=True)
class ProjectProfit:
    project_id: int
    name: str
    revenue: float
    cost: float
    profit: float
    margin: float


@dataclass(frozen=True)
class WorkerLeaves:
    worker_id: int
    name: str
    leaves: int


@dataclass(frozen=True)
class WageEstimate:
    days_present: int
    days_absent: int
    daily_rate: float
    estimated_wages: float


@dataclass(frozen=True)
class DashboardStats:
    total_projects: int
    active_workers: int
    monthly_expenses: float
    recent_projects: list = field(default_factory=list)


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_month(reference: date | datetime) -> date:
    return _as_date(reference).replace(day=1)


def _sum_amounts(records: Iterable) -> float:
    return sum((record.total_amount or 0.0) for record in records)


def _in_period(value: date | datetime | None, month_start: date) -> bool:
    day = _as_date(value)
    return day is not None and day >= month_start


def monthly_totals(expenses: Iterable, invoices: Iterable, reference_date: date | datetime) -> PeriodTotals:
    """Revenue, expense and profit from the first of the reference month onwards."""
    month_start = start_of_month(reference_date)
    revenue = _sum_amounts(invoice for invoice in invoices if _in_period(invoice.date, month_start))
    expense = _sum_amounts(item for item in expenses if _in_period(item.invoice_date, month_start))
    return PeriodTotals(revenue=revenue, expense=expense, profit=revenue - expense)


def lifetime_totals(expenses: Iterable, invoices: Iterable) -> PeriodTotals:
    expense = _sum_amounts(expenses)
    revenue = _sum_amounts(invoice for invoice in invoices if invoice.status in REALISED_INVOICE_STATUSES)
    return PeriodTotals(revenue=revenue, expense=expense, profit=revenue - expense)


def profit_margin(revenue: float, profit: float) -> float:
    """Profit as a percentage of revenue; 0 when there is no revenue."""
    if revenue <= 0:
        return 0.0
    return profit / revenue * 100


def per_project_profitability(projects: Iterable, expenses: Sequence, invoices: Sequence) -> list[ProjectProfit]:
    rows = []
    for project in projects:
        revenue = _sum_amounts(invoice for invoice in invoices if invoice.project_id == project.id)
        cost = _sum_amounts(expense for expense in expenses if expense.project_id == project.id)
        profit = revenue - cost
        rows.append(
            ProjectProfit(
                project_id=project.id,
                name=project.name,
                revenue=revenue,
                cost=cost,
                profit=profit,
                margin=profit_margin(revenue, profit),
            )
        )
    # sorted() is stable, so equal revenues keep project input order.
    return sorted(rows, key=lambda row: row.revenue, reverse=True)


def worker_leave_count(worker, attendance_records: Iterable) -> int:
    return sum(
        1
        for record in attendance_records
        if record.worker_id == worker.id and record.status in LEAVE_STATUSES
    )


def top_absentees(workers: Iterable, attendance_records: Sequence, n: int = 5) -> list[WorkerLeaves]:
    """Workers with the most leave/absent days; ties go to the lower worker id."""
    counts = [
        WorkerLeaves(worker_id=worker.id, name=worker.name, leaves=worker_leave_count(worker, attendance_records))
        for worker in workers
    ]
    counts.sort(key=lambda row: (-row.leaves, row.worker_id))
    return counts[:n]


def per_project_worker_leaves(project, workers: Iterable, attendance_records: Sequence) -> list[WorkerLeaves]:
    assigned = {member.id for member in project.workers}
    breakdown = []
    for worker in workers:
        if worker.id not in assigned:
            continue
        leaves = worker_leave_count(worker, attendance_records)
        if leaves > 0:
            breakdown.append(WorkerLeaves(worker_id=worker.id, name=worker.name, leaves=leaves))
    return breakdown


def estimated_wages(worker, attendance_records: Iterable) -> WageEstimate:
    own = [record for record in attendance_records if record.worker_id == worker.id]
    days_present = sum(1 for record in own if record.status == AttendanceStatus.PRESENT)
    days_absent = sum(1 for record in own if record.status in LEAVE_STATUSES)
    daily_rate = worker.daily_rate or 0.0
    return WageEstimate(
        days_present=days_present,
        days_absent=days_absent,
        daily_rate=daily_rate,
        estimated_wages=days_present * daily_rate,
    )


def cost_breakdown(expenses: Iterable) -> dict[str, float]:
    """Expense totals grouped by category."""
    totals: dict[str, float] = {}
    for expense in expenses:
        category = getattr(expense.category, "value", expense.category)
        totals[category] = totals.get(category, 0.0) + (expense.total_amount or 0.0)
    return totals


def dashboard_stats(
    projects: Sequence,
    active_worker_count: int,
    expenses: Iterable,
    reference_date: date | datetime,
    recent: int = 3,
) -> DashboardStats:
    month_start = start_of_month(reference_date)
    monthly = _sum_amounts(expense for expense in expenses if _in_period(expense.invoice_date, month_start))
    newest_first = sorted(projects, key=lambda project: (project.created_at, project.id), reverse=True)
    return DashboardStats(
        total_projects=len(projects),
        active_workers=active_worker_count,
        monthly_expenses=monthly,
        recent_projects=newest_first[:recent],
    )
