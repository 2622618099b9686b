"""Application entrypoint.

This file wires the JSON API routes, RBAC enforcement, CSRF and access-log
middleware, error rendering and startup actions for the SideLedger
construction-management service.
"""

import logging
from datetime import date

import uvicorn
from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sideledger import services_analytics as analytics
from sideledger.bootstrap_admin import ensure_bootstrap_admin
from sideledger.config import settings
from sideledger.csrf import (
    CSRF_COOKIE_NAME,
    CSRF_HEADER_NAME,
    build_csrf_token,
    is_allowed_origin,
    is_csrf_token_valid,
    should_enforce_csrf,
)
from sideledger.database import engine, get_db, run_migrations
from sideledger.dependencies import SESSION_COOKIE_NAME, get_current_user, require_admin, require_roles
from sideledger.errors import AuthenticationError, ConflictError, NotFoundError, SideLedgerError, ValidationError
from sideledger.llm import NarrativeGenerator
from sideledger.models import Expense, ExpenseCategory, Invoice, Project, Role, User, WorkerStatus
from sideledger.ocr import parse_invoice
from sideledger.schemas import (
    AttendanceMark,
    AttendanceRead,
    AuthResponse,
    CostBreakdownRow,
    CsrfResponse,
    DashboardStatsOut,
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
    InsightsResponse,
    InvoiceCreate,
    InvoiceRead,
    InvoiceUpdate,
    LoginRequest,
    MessageResponse,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    ScannedInvoice,
    ScanRequest,
    UserCreate,
    UserRead,
    WorkerInsightInput,
    WorkerRegister,
    WorkerUpdate,
)
from sideledger.security import create_session_token, ensure_password_backend, hash_password, verify_password
from sideledger.services_attendance import mark_attendance
from sideledger.services_insights import build_insight_input, build_worker_insight, load_dashboard_stats
from sideledger.services_ledger import (
    apply_expense_totals,
    apply_invoice_totals,
    build_expense_items,
    build_invoice_items,
    detach_project_records,
    ensure_items_present,
    ensure_project_exists,
)
from sideledger.services_scoping import get_visible_project, visible_attendance, visible_projects, visible_workers

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, debug=settings.debug)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", CSRF_HEADER_NAME],
)


@app.exception_handler(SideLedgerError)
async def ledger_error_handler(request: Request, exc: SideLedgerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.middleware("http")
async def csrf_protection(request: Request, call_next):
    if should_enforce_csrf(request):
        if not is_allowed_origin(request):
            logger.warning("Blocked cross-site %s %s from origin %s", request.method, request.url.path, request.headers.get("origin"))
            return JSONResponse(status_code=403, content={"detail": "Cross-site request blocked by origin check"})
        if not is_csrf_token_valid(request, request.headers.get(CSRF_HEADER_NAME)):
            logger.warning("Rejected %s %s: missing or invalid CSRF token", request.method, request.url.path)
            return JSONResponse(status_code=403, content={"detail": "CSRF token missing or invalid"})
    return await call_next(request)


@app.middleware("http")
async def access_log(request: Request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


@app.on_event("startup")
def startup() -> None:
    logging.basicConfig(level=settings.log_level)
    run_migrations()
    ensure_password_backend()
    ensure_bootstrap_admin(engine=engine)


def get_narrative_generator() -> NarrativeGenerator:
    return NarrativeGenerator.from_settings()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        max_age=settings.session_hours * 3600,
    )


def _auth_response(user: User, response: Response) -> AuthResponse:
    token = create_session_token(user.id, user.role.value)
    _set_session_cookie(response, token)
    return AuthResponse(token=token, user=UserRead.model_validate(user))


def _ensure_email_free(db: Session, email: str) -> None:
    if db.scalar(select(func.count(User.id)).where(func.lower(User.email) == email.lower())):
        raise ConflictError("Email already registered")


def _get_worker(db: Session, worker_id: int) -> User:
    worker = db.get(User, worker_id)
    if not worker or worker.role != Role.WORKER:
        raise NotFoundError("Worker", worker_id)
    return worker


def _resolve_project_workers(db: Session, worker_ids: list[int]) -> list[User]:
    """Load project members, enforcing that every member is a worker."""
    unique_ids = list(dict.fromkeys(worker_ids))
    if not unique_ids:
        return []
    found = {user.id: user for user in db.scalars(select(User).where(User.id.in_(unique_ids))).all()}
    members = []
    for worker_id in unique_ids:
        user = found.get(worker_id)
        if user is None:
            raise NotFoundError("Worker", worker_id)
        if user.role != Role.WORKER:
            raise ValidationError(f"User {worker_id} is not a worker and cannot be assigned to a project.")
        members.append(user)
    return members


# --- auth ---------------------------------------------------------------------


@app.get("/api/auth/csrf", response_model=CsrfResponse)
def issue_csrf_token(request: Request, response: Response):
    token = build_csrf_token(request)
    response.set_cookie(CSRF_COOKIE_NAME, token, httponly=False, secure=settings.secure_cookies, samesite="lax")
    return CsrfResponse(csrf_token=token)


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.scalar(select(User).where(func.lower(User.email) == email))
    if not user or user.status != WorkerStatus.ACTIVE or not verify_password(payload.password, user.hashed_password):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials")
    return _auth_response(user, response)


@app.post("/api/auth/logout", response_model=MessageResponse)
def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME)
    response.delete_cookie(CSRF_COOKIE_NAME)
    return MessageResponse(message="Logged out")


@app.get("/api/auth/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@app.post("/api/worker-auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_worker(payload: WorkerRegister, response: Response, db: Session = Depends(get_db)):
    _ensure_email_free(db, payload.email)
    user = User(
        name=payload.name,
        email=payload.email.strip().lower(),
        hashed_password=hash_password(payload.password),
        role=Role.WORKER,
        status=WorkerStatus.ACTIVE,
        phone=payload.phone,
        worker_role=payload.worker_role,
        specialty=payload.specialty,
        daily_rate=payload.daily_rate,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Worker self-registered user_id=%s", user.id)
    return _auth_response(user, response)


# --- users --------------------------------------------------------------------


@app.post("/api/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    _ensure_email_free(db, payload.email)
    user = User(
        **payload.model_dump(exclude={"password", "email"}),
        email=payload.email.strip().lower(),
        hashed_password=hash_password(payload.password),
        status=WorkerStatus.ACTIVE,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s created user_id=%s role=%s", actor.id, user.id, user.role.value)
    return user


@app.get("/api/users/workers", response_model=list[UserRead])
def list_workers(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return visible_workers(db, current_user)


@app.get("/api/users/workers/{worker_id}", response_model=UserRead)
def get_worker(worker_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _get_worker(db, worker_id)


@app.put("/api/users/workers/{worker_id}", response_model=UserRead)
def update_worker(worker_id: int, payload: WorkerUpdate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    worker = _get_worker(db, worker_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in {"name", "daily_rate"}:
            raise ValidationError(f"{field} cannot be cleared for a worker.")
        setattr(worker, field, value)
    db.commit()
    db.refresh(worker)
    return worker


@app.delete("/api/users/workers/{worker_id}", response_model=MessageResponse)
def delete_worker(worker_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    worker = _get_worker(db, worker_id)
    # Soft delete: attendance and project history keep referencing the worker.
    worker.status = WorkerStatus.INACTIVE
    db.commit()
    logger.info("Worker user_id=%s deactivated by user_id=%s", worker.id, actor.id)
    return MessageResponse(message="Worker deleted successfully")


# --- projects -----------------------------------------------------------------


@app.get("/api/projects", response_model=list[ProjectRead])
def list_projects(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return visible_projects(db, current_user)


@app.post("/api/projects", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    members = _resolve_project_workers(db, payload.worker_ids)
    project = Project(**payload.model_dump(exclude={"worker_ids"}), workers=members)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@app.get("/api/projects/{project_id}", response_model=ProjectRead)
def get_project(project_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_visible_project(db, current_user, project_id)


@app.put("/api/projects/{project_id}", response_model=ProjectRead)
def update_project(project_id: int, payload: ProjectUpdate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    project = db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", project_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"worker_ids"})
    for field in ("name", "client", "location", "budget", "start_date", "status"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be cleared.")
    for field, value in changes.items():
        setattr(project, field, value)
    if project.end_date is not None and project.end_date < project.start_date:
        raise ValidationError("end_date must not be before start_date")
    if payload.worker_ids is not None:
        project.workers = _resolve_project_workers(db, payload.worker_ids)
    db.commit()
    db.refresh(project)
    return project


@app.delete("/api/projects/{project_id}", response_model=MessageResponse)
def delete_project(project_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    project = db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project", project_id)
    detach_project_records(db, project.id)
    db.delete(project)
    db.commit()
    logger.info("Project %s deleted by user_id=%s", project_id, actor.id)
    return MessageResponse(message="Project deleted")


# --- attendance ---------------------------------------------------------------


@app.post("/api/attendance", response_model=AttendanceRead)
def mark_attendance_route(
    payload: AttendanceMark,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = mark_attendance(
        db,
        current_user,
        worker_id=payload.worker_id,
        on=payload.date,
        status=payload.status,
        time_in=payload.time_in,
        time_out=payload.time_out,
        notes=payload.notes,
    )
    response.status_code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    return result.record


@app.get("/api/attendance", response_model=list[AttendanceRead])
def list_attendance(
    worker_id: int | None = None,
    date: str | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return visible_attendance(db, current_user, worker_id=worker_id, on=date)


# --- expenses -----------------------------------------------------------------


@app.post("/api/expenses/scan", response_model=ScannedInvoice)
def scan_invoice(payload: ScanRequest, actor: User = Depends(require_admin)):
    return parse_invoice(payload.image_url)


@app.post("/api/expenses", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def create_expense(payload: ExpenseCreate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    ensure_project_exists(db, payload.project_id)
    expense = Expense(**payload.model_dump(exclude={"items"}), items=build_expense_items(payload.items))
    apply_expense_totals(expense)
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


@app.get("/api/expenses", response_model=list[ExpenseRead])
def list_expenses(
    project_id: int | None = None,
    category: ExpenseCategory | None = None,
    start: date | None = None,
    end: date | None = None,
    actor: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = select(Expense)
    if project_id is not None:
        query = query.where(Expense.project_id == project_id)
    if category is not None:
        query = query.where(Expense.category == category)
    if start is not None:
        query = query.where(Expense.invoice_date >= start)
    if end is not None:
        query = query.where(Expense.invoice_date <= end)
    return db.scalars(query.order_by(Expense.invoice_date.desc(), Expense.id.desc())).all()


def _get_expense(db: Session, expense_id: int) -> Expense:
    expense = db.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense", expense_id)
    return expense


@app.get("/api/expenses/{expense_id}", response_model=ExpenseRead)
def get_expense(expense_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _get_expense(db, expense_id)


@app.put("/api/expenses/{expense_id}", response_model=ExpenseRead)
def update_expense(expense_id: int, payload: ExpenseUpdate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    expense = _get_expense(db, expense_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"items"})
    if "project_id" in changes:
        ensure_project_exists(db, changes["project_id"])
    for field, value in changes.items():
        if value is None and field in {"vendor", "category", "invoice_date", "status"}:
            raise ValidationError(f"{field} cannot be cleared.")
        setattr(expense, field, value)
    if payload.items is not None:
        ensure_items_present(payload.items)
        expense.items = build_expense_items(payload.items)
    apply_expense_totals(expense)
    db.commit()
    db.refresh(expense)
    return expense


@app.delete("/api/expenses/{expense_id}", response_model=MessageResponse)
def delete_expense(expense_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    db.delete(_get_expense(db, expense_id))
    db.commit()
    return MessageResponse(message="Deleted")


# --- invoices -----------------------------------------------------------------


@app.post("/api/invoices", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(payload: InvoiceCreate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    ensure_project_exists(db, payload.project_id)
    invoice = Invoice(**payload.model_dump(exclude={"items"}), items=build_invoice_items(payload.items))
    apply_invoice_totals(invoice)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


@app.get("/api/invoices", response_model=list[InvoiceRead])
def list_invoices(actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    return db.scalars(select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc())).all()


def _get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice", invoice_id)
    return invoice


@app.get("/api/invoices/{invoice_id}", response_model=InvoiceRead)
def get_invoice(invoice_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    return _get_invoice(db, invoice_id)


@app.put("/api/invoices/{invoice_id}", response_model=InvoiceRead)
def update_invoice(invoice_id: int, payload: InvoiceUpdate, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    invoice = _get_invoice(db, invoice_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"items"})
    if "project_id" in changes:
        ensure_project_exists(db, changes["project_id"])
    for field, value in changes.items():
        if value is None and field in {"invoice_number", "date", "company_name", "client_name", "status"}:
            raise ValidationError(f"{field} cannot be cleared.")
        setattr(invoice, field, value)
    if payload.items is not None:
        ensure_items_present(payload.items)
        invoice.items = build_invoice_items(payload.items)
    apply_invoice_totals(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


@app.delete("/api/invoices/{invoice_id}", response_model=MessageResponse)
def delete_invoice(invoice_id: int, actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    db.delete(_get_invoice(db, invoice_id))
    db.commit()
    return MessageResponse(message="Invoice deleted successfully")


# --- analytics & insights -----------------------------------------------------


@app.get("/api/analytics/stats", response_model=DashboardStatsOut)
def dashboard(actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    stats = load_dashboard_stats(db, actor, date.today())
    return DashboardStatsOut(
        total_projects=stats.total_projects,
        active_workers=stats.active_workers,
        monthly_expenses=stats.monthly_expenses,
        recent_projects=[ProjectRead.model_validate(project) for project in stats.recent_projects],
    )


@app.get("/api/analytics/costs", response_model=list[CostBreakdownRow])
def cost_breakdown(actor: User = Depends(require_admin), db: Session = Depends(get_db)):
    totals = analytics.cost_breakdown(db.scalars(select(Expense)).all())
    return [CostBreakdownRow(category=category, total=total) for category, total in totals.items()]


@app.get("/api/analytics/my-summary", response_model=WorkerInsightInput)
def my_summary(worker: User = Depends(require_roles(Role.WORKER)), db: Session = Depends(get_db)):
    return build_worker_insight(db, worker)


@app.get("/api/ai/insights", response_model=InsightsResponse)
def insights(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    generator: NarrativeGenerator = Depends(get_narrative_generator),
):
    bundle = build_insight_input(db, current_user, date.today())
    return InsightsResponse(insights=generator.generate(bundle), data=bundle)


@app.get("/health")
def healthcheck():
    return {"status": "ok", "date": date.today().isoformat()}


def run() -> None:
    """Console entrypoint: serve the API with the configured host and port."""
    uvicorn.run("sideledger.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
