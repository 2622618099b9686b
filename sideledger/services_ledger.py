"""Ledger domain helpers.

Expense and invoice totals are always re-derived from their line items on
save: `amount = quantity * unit_price` per item and `total_amount` is the sum
of item amounts. Client-supplied amounts and totals are never trusted.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from sideledger.errors import NotFoundError, ValidationError
from sideledger.models import Expense, ExpenseItem, Invoice, InvoiceItem, Project
from sideledger.schemas import ExpenseItemIn, InvoiceItemIn


def line_amount(quantity: float, unit_price: float) -> float:
    return quantity * unit_price


def build_expense_items(items: Sequence[ExpenseItemIn]) -> list[ExpenseItem]:
    return [
        ExpenseItem(
            position=position,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            gst_rate=item.gst_rate,
            amount=line_amount(item.quantity, item.unit_price),
        )
        for position, item in enumerate(items)
    ]


def build_invoice_items(items: Sequence[InvoiceItemIn]) -> list[InvoiceItem]:
    return [
        InvoiceItem(
            position=position,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=line_amount(item.quantity, item.unit_price),
        )
        for position, item in enumerate(items)
    ]


def apply_expense_totals(expense: Expense) -> None:
    """Recompute item amounts, total_amount and total_gst in place."""
    for item in expense.items:
        item.amount = line_amount(item.quantity, item.unit_price)
    expense.total_amount = sum(item.amount for item in expense.items)
    expense.total_gst = sum(item.amount * (item.gst_rate or 0.0) / 100 for item in expense.items)


def apply_invoice_totals(invoice: Invoice) -> None:
    for item in invoice.items:
        item.amount = line_amount(item.quantity, item.unit_price)
    invoice.total_amount = sum(item.amount for item in invoice.items)


def ensure_project_exists(db: Session, project_id: int | None) -> None:
    if project_id is None:
        return
    if db.get(Project, project_id) is None:
        raise NotFoundError("Project", project_id)


def ensure_items_present(items: Sequence) -> None:
    if not items:
        raise ValidationError("At least one line item is required.")


def detach_project_records(db: Session, project_id: int) -> None:
    """Untag expenses and invoices from a project that is about to be deleted.

    SQLite ignores `ON DELETE SET NULL` unless foreign keys are switched on.
    """
    db.execute(update(Expense).where(Expense.project_id == project_id).values(project_id=None))
    db.execute(update(Invoice).where(Invoice.project_id == project_id).values(project_id=None))
