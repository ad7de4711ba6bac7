"""Expense service - Business logic for business expenses and their categories"""

import logging
import math
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import BusinessExpense, ExpenseCategory, FinancialMovement, User
from ...shared.state_machine import InvalidTransition
from ...utils.sanitization import clean_text, sanitize_string
from .repository import ExpenseRepository
from .schemas import CategoryCreate, CategoryUpdate, ExpenseCreate, ExpenseUpdate, MarkPaidRequest
from .states import (
    DEFAULT_CATEGORIES,
    EXPENSE_WORKFLOW,
    ExpenseStatus,
    MovementStatus,
    MovementType,
)

logger = logging.getLogger(__name__)


class ExpenseService:
    """Service layer for expenses"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ExpenseRepository()

    # ========================================================================
    # Categories
    # ========================================================================

    def ensure_default_categories(self, business_id: str) -> None:
        """Seed the default categories the first time a business looks at expenses"""
        if self.repo.count_categories(self.db, business_id):
            return

        for category in DEFAULT_CATEGORIES:
            self.db.add(ExpenseCategory(business_id=business_id, is_default=True, **category))
        self.db.commit()
        logger.info(f"✅ Seeded {len(DEFAULT_CATEGORIES)} default expense categories for business {business_id}")

    def list_categories(self, business_id: str, include_inactive: bool = False) -> list[ExpenseCategory]:
        self.ensure_default_categories(business_id)
        return self.repo.get_categories(self.db, business_id, include_inactive)

    def _get_category(self, business_id: str, category_id: str) -> ExpenseCategory:
        category = self.repo.get_category(self.db, business_id, category_id)
        if not category:
            raise HTTPException(status_code=404, detail="Expense category not found")
        return category

    def create_category(self, business_id: str, data: CategoryCreate) -> ExpenseCategory:
        name = clean_text(data.name, 100)
        if self.repo.get_category_by_name(self.db, business_id, name):
            raise HTTPException(status_code=409, detail="A category with this name already exists")

        category = ExpenseCategory(
            business_id=business_id,
            name=name,
            description=sanitize_string(data.description),
            color=data.color,
            icon=clean_text(data.icon, 50),
        )
        return self.repo.add(self.db, category)

    def update_category(self, business_id: str, category_id: str, data: CategoryUpdate) -> ExpenseCategory:
        category = self._get_category(business_id, category_id)

        if data.name is not None:
            name = clean_text(data.name, 100)
            if not name:
                raise HTTPException(status_code=400, detail="Category name cannot be empty")
            if self.repo.get_category_by_name(self.db, business_id, name, exclude_id=category_id):
                raise HTTPException(status_code=409, detail="A category with this name already exists")
            category.name = name
        if data.description is not None:
            category.description = sanitize_string(data.description)
        if data.color is not None:
            category.color = data.color
        if data.icon is not None:
            category.icon = clean_text(data.icon, 50)
        if data.isActive is not None:
            category.is_active = data.isActive

        return self.repo.save(self.db, category)

    def delete_category(self, business_id: str, category_id: str) -> dict:
        """Categories with expenses are deactivated so history keeps its labels"""
        category = self._get_category(business_id, category_id)

        if self.repo.count_category_expenses(self.db, category_id):
            category.is_active = False
            self.repo.save(self.db, category)
            logger.info(f"⚠️ Category {category_id} has expenses; deactivated instead of deleted")
            return {"message": "Category deactivated", "deactivated": True}

        self.repo.delete(self.db, category)
        return {"message": "Category deleted", "deactivated": False}

    # ========================================================================
    # Expenses
    # ========================================================================

    def list_expenses(
        self,
        business_id: str,
        status: Optional[str] = None,
        category_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        if status:
            try:
                status = EXPENSE_WORKFLOW.coerce(status).value
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e)) from e

        query = self.repo.filtered_query(self.db, business_id, status, category_id, start_date, end_date)
        expenses, total = self.repo.paginate(query, page, limit)
        return {
            "expenses": expenses,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    def get_expense(self, business_id: str, expense_id: str) -> BusinessExpense:
        expense = self.repo.get_expense(self.db, business_id, expense_id)
        if not expense:
            raise HTTPException(status_code=404, detail="Expense not found")
        return expense

    def create_expense(self, business_id: str, data: ExpenseCreate, user: User) -> BusinessExpense:
        category = self._get_category(business_id, data.categoryId)
        if not category.is_active:
            raise HTTPException(status_code=400, detail="The selected category is inactive")

        description = sanitize_string(data.description)
        if not description:
            raise HTTPException(status_code=400, detail="Description is required")

        expense = BusinessExpense(
            business_id=business_id,
            category_id=category.id,
            description=description,
            amount=data.amount,
            expense_date=data.expenseDate or date.today(),
            due_date=data.dueDate,
            vendor=clean_text(data.vendor, 255),
            invoice_number=clean_text(data.invoiceNumber, 100),
            notes=sanitize_string(data.notes),
            receipt_url=data.receiptUrl,
            payment_method=clean_text(data.paymentMethod, 30),
            status=ExpenseStatus.PENDING.value,
            created_by=user.id,
        )
        expense = self.repo.add(self.db, expense)
        logger.info(f"🧾 Expense {expense.id} created for business {business_id}: {expense.amount}")
        return expense

    def _ensure_editable(self, expense: BusinessExpense) -> None:
        if expense.status == ExpenseStatus.PAID.value:
            raise HTTPException(status_code=400, detail="Paid expenses cannot be modified")

    def update_expense(self, business_id: str, expense_id: str, data: ExpenseUpdate) -> BusinessExpense:
        expense = self.get_expense(business_id, expense_id)
        self._ensure_editable(expense)

        if data.categoryId is not None:
            expense.category_id = self._get_category(business_id, data.categoryId).id
        if data.description is not None:
            expense.description = sanitize_string(data.description)
        if data.amount is not None:
            expense.amount = data.amount
        if data.expenseDate is not None:
            expense.expense_date = data.expenseDate
        if data.dueDate is not None:
            expense.due_date = data.dueDate
        if data.vendor is not None:
            expense.vendor = clean_text(data.vendor, 255)
        if data.invoiceNumber is not None:
            expense.invoice_number = clean_text(data.invoiceNumber, 100)
        if data.notes is not None:
            expense.notes = sanitize_string(data.notes)
        if data.receiptUrl is not None:
            expense.receipt_url = data.receiptUrl

        return self.repo.save(self.db, expense)

    def delete_expense(self, business_id: str, expense_id: str) -> dict:
        expense = self.get_expense(business_id, expense_id)
        self._ensure_editable(expense)
        self.repo.delete(self.db, expense)
        logger.info(f"🗑️ Expense {expense_id} deleted")
        return {"message": "Expense deleted"}

    def _transition(self, expense: BusinessExpense, target: ExpenseStatus) -> None:
        try:
            EXPENSE_WORKFLOW.validate(expense.status, target)
        except InvalidTransition as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        logger.info(f"🔄 Expense {expense.id}: {expense.status} -> {target.value}")
        expense.status = target.value

    def approve_expense(self, business_id: str, expense_id: str, user: User) -> BusinessExpense:
        expense = self.get_expense(business_id, expense_id)
        self._transition(expense, ExpenseStatus.APPROVED)
        expense.approved_by = user.id
        expense.approved_at = datetime.utcnow()
        return self.repo.save(self.db, expense)

    def mark_as_paid(self, business_id: str, expense_id: str, data: MarkPaidRequest, user: User) -> BusinessExpense:
        """Pay an approved expense and record the outgoing money movement"""
        expense = self.get_expense(business_id, expense_id)
        self._transition(expense, ExpenseStatus.PAID)
        expense.paid_at = data.paidAt or datetime.utcnow()
        if data.paymentMethod:
            expense.payment_method = clean_text(data.paymentMethod, 30)

        movement = self.repo.get_movement_for_expense(self.db, expense.id)
        if movement is None:
            movement = FinancialMovement(
                business_id=business_id,
                type=MovementType.EXPENSE.value,
                reference_type="BUSINESS_EXPENSE",
                reference_id=expense.id,
                created_by=user.id,
            )
            self.db.add(movement)
        movement.category = expense.category.name if expense.category else None
        movement.amount = expense.amount
        movement.description = expense.description
        movement.status = MovementStatus.COMPLETED.value
        movement.payment_method = expense.payment_method

        return self.repo.save(self.db, expense)

    def cancel_expense(self, business_id: str, expense_id: str) -> BusinessExpense:
        expense = self.get_expense(business_id, expense_id)
        self._transition(expense, ExpenseStatus.CANCELLED)
        return self.repo.save(self.db, expense)

    def get_expense_stats(
        self,
        business_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[str] = None,
    ) -> dict:
        query = self.repo.filtered_query(
            self.db, business_id, category_id=category_id, start_date=start_date, end_date=end_date
        )
        count, total, average = self.repo.totals(query)
        return {
            "general": {
                "totalExpenses": count or 0,
                "totalAmount": round(float(total or 0), 2),
                "averageAmount": round(float(average or 0), 2),
            },
            "byStatus": [
                {"status": status, "count": n, "total": round(float(amount or 0), 2)}
                for status, n, amount in self.repo.stats_by_status(query)
            ],
            "byCategory": [
                {
                    "categoryId": cat_id,
                    "name": name,
                    "color": color,
                    "count": n,
                    "total": round(float(amount or 0), 2),
                }
                for cat_id, name, color, n, amount in self.repo.stats_by_category(query)
            ],
        }
