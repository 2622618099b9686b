"""Visibility scoping.

Single home for "who can see what". Every listing endpoint goes through these
functions so the admin-versus-worker rules cannot drift between routes:

- admins see every active worker, every project and every attendance record
- workers see teammates sharing at least one project (nobody when they are on
  no project), only the projects they are assigned to, and only their own
  attendance
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, selectinload

from sideledger.errors import NotFoundError
from sideledger.models import Attendance, Project, Role, User, WorkerStatus, project_workers
from sideledger.services_attendance import normalize_attendance_date


def _active_workers() -> Select:
    return select(User).where(User.role == Role.WORKER, User.status == WorkerStatus.ACTIVE)


def visible_workers_query(actor: User) -> Select:
    if actor.role == Role.ADMIN:
        return _active_workers().order_by(User.name.asc(), User.id.asc())

    my_projects = select(project_workers.c.project_id).where(project_workers.c.user_id == actor.id)
    teammates = select(project_workers.c.user_id).where(project_workers.c.project_id.in_(my_projects))
    return _active_workers().where(User.id.in_(teammates)).order_by(User.name.asc(), User.id.asc())


def visible_workers(db: Session, actor: User) -> list[User]:
    return list(db.scalars(visible_workers_query(actor)).all())


def visible_projects_query(actor: User) -> Select:
    query = select(Project).options(selectinload(Project.workers)).order_by(Project.created_at.desc(), Project.id.desc())
    if actor.role == Role.ADMIN:
        return query
    return query.where(Project.workers.any(User.id == actor.id))


def visible_projects(db: Session, actor: User) -> list[Project]:
    return list(db.scalars(visible_projects_query(actor)).all())


def get_visible_project(db: Session, actor: User, project_id: int) -> Project:
    """Load one project, reporting invisible projects exactly like missing ones."""
    project = db.scalar(visible_projects_query(actor).where(Project.id == project_id))
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def visible_attendance_query(
    actor: User,
    *,
    worker_id: int | None = None,
    on: date | datetime | str | None = None,
) -> Select:
    query = select(Attendance).options(selectinload(Attendance.worker)).order_by(
        Attendance.date.desc(), Attendance.worker_id.asc()
    )
    if actor.role == Role.WORKER:
        # Query-supplied worker ids are ignored for workers.
        query = query.where(Attendance.worker_id == actor.id)
    elif worker_id is not None:
        query = query.where(Attendance.worker_id == worker_id)
    if on is not None and on != "":
        query = query.where(Attendance.date == normalize_attendance_date(on))
    return query


def visible_attendance(
    db: Session,
    actor: User,
    *,
    worker_id: int | None = None,
    on: date | datetime | str | None = None,
) -> list[Attendance]:
    return list(db.scalars(visible_attendance_query(actor, worker_id=worker_id, on=on)).all())
