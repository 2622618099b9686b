"""Insight bundle assembly.

Reads the ledgers once and reduces them with `services_analytics` into the
role-tagged bundle that the dashboard returns and the narrative generator
summarises: `AdminInsightInput` for admins, `WorkerInsightInput` for workers.
Collections are read independently, not inside one transaction.
"""

from __future__ import annotations

from datetime import date
from typing import Union

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from sideledger import services_analytics as analytics
from sideledger.models import Attendance, Expense, Invoice, Project, Role, User
from sideledger.schemas import (
    AdminInsightInput,
    PeriodTotalsOut,
    ProjectStatOut,
    WorkerInsightInput,
    WorkerLeavesOut,
)
from sideledger.services_scoping import visible_projects, visible_workers


def build_admin_insight(db: Session, actor: User, reference_date: date) -> AdminInsightInput:
    projects = visible_projects(db, actor)
    workers = visible_workers(db, actor)
    expenses = db.scalars(select(Expense)).all()
    invoices = db.scalars(select(Invoice)).all()
    attendance = db.scalars(select(Attendance)).all()

    by_project = {project.id: project for project in projects}
    project_stats = []
    for row in analytics.per_project_profitability(projects, expenses, invoices):
        project = by_project[row.project_id]
        assigned = {member.id for member in project.workers}
        project_stats.append(
            ProjectStatOut(
                project_id=row.project_id,
                name=row.name,
                worker_count=sum(1 for worker in workers if worker.id in assigned),
                revenue=row.revenue,
                expense=row.cost,
                profit=row.profit,
                margin=row.margin,
                worker_leaves=[
                    WorkerLeavesOut.model_validate(entry)
                    for entry in analytics.per_project_worker_leaves(project, workers, attendance)
                ],
            )
        )

    return AdminInsightInput(
        total_projects=len(projects),
        total_workers=len(workers),
        monthly_stats=PeriodTotalsOut.model_validate(analytics.monthly_totals(expenses, invoices, reference_date)),
        lifetime_stats=PeriodTotalsOut.model_validate(analytics.lifetime_totals(expenses, invoices)),
        project_stats=project_stats,
        global_leaves=[WorkerLeavesOut.model_validate(entry) for entry in analytics.top_absentees(workers, attendance)],
    )


def build_worker_insight(db: Session, worker: User) -> WorkerInsightInput:
    projects = visible_projects(db, worker)
    own_attendance = db.scalars(select(Attendance).where(Attendance.worker_id == worker.id)).all()
    wages = analytics.estimated_wages(worker, own_attendance)
    return WorkerInsightInput(
        worker_name=worker.name,
        projects_involved=[project.name for project in projects],
        days_present=wages.days_present,
        days_absent=wages.days_absent,
        daily_rate=wages.daily_rate,
        estimated_wages=wages.estimated_wages,
    )


def build_insight_input(
    db: Session, actor: User, reference_date: date
) -> Union[AdminInsightInput, WorkerInsightInput]:
    if actor.role == Role.ADMIN:
        return build_admin_insight(db, actor, reference_date)
    return build_worker_insight(db, actor)


def load_dashboard_stats(db: Session, actor: User, reference_date: date) -> analytics.DashboardStats:
    projects = db.scalars(select(Project).options(selectinload(Project.workers))).all()
    expenses = db.scalars(select(Expense)).all()
    return analytics.dashboard_stats(
        projects,
        active_worker_count=len(visible_workers(db, actor)),
        expenses=expenses,
        reference_date=reference_date,
    )
