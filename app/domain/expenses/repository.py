"""Expense repository - Data access layer"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from ...models import BusinessExpense, ExpenseCategory, FinancialMovement


class ExpenseRepository:
    """Repository for expense data access"""

    # ========================================================================
    # Categories
    # ========================================================================

    @staticmethod
    def get_categories(db: Session, business_id: str, include_inactive: bool = False) -> list[ExpenseCategory]:
        query = db.query(ExpenseCategory).filter(ExpenseCategory.business_id == business_id)
        if not include_inactive:
            query = query.filter(ExpenseCategory.is_active.is_(True))
        return query.order_by(ExpenseCategory.created_at, ExpenseCategory.name).all()

    @staticmethod
    def count_categories(db: Session, business_id: str) -> int:
        return (
            db.query(func.count(ExpenseCategory.id))
            .filter(ExpenseCategory.business_id == business_id)
            .scalar()
        )

    @staticmethod
    def get_category(db: Session, business_id: str, category_id: str) -> Optional[ExpenseCategory]:
        return (
            db.query(ExpenseCategory)
            .filter(ExpenseCategory.id == category_id, ExpenseCategory.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_category_by_name(
        db: Session, business_id: str, name: str, exclude_id: Optional[str] = None
    ) -> Optional[ExpenseCategory]:
        query = db.query(ExpenseCategory).filter(
            ExpenseCategory.business_id == business_id,
            func.lower(ExpenseCategory.name) == name.lower(),
        )
        if exclude_id:
            query = query.filter(ExpenseCategory.id != exclude_id)
        return query.first()

    @staticmethod
    def count_category_expenses(db: Session, category_id: str) -> int:
        return (
            db.query(func.count(BusinessExpense.id))
            .filter(BusinessExpense.category_id == category_id)
            .scalar()
        )

    # ========================================================================
    # Expenses
    # ========================================================================

    @staticmethod
    def filtered_query(
        db: Session,
        business_id: str,
        status: Optional[str] = None,
        category_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Query:
        query = db.query(BusinessExpense).filter(BusinessExpense.business_id == business_id)
        if status:
            query = query.filter(BusinessExpense.status == status)
        if category_id:
            query = query.filter(BusinessExpense.category_id == category_id)
        if start_date:
            query = query.filter(BusinessExpense.expense_date >= start_date)
        if end_date:
            query = query.filter(BusinessExpense.expense_date <= end_date)
        return query

    @staticmethod
    def paginate(query: Query, page: int, limit: int) -> tuple[list[BusinessExpense], int]:
        total = query.count()
        expenses = (
            query.options(joinedload(BusinessExpense.category))
            .order_by(BusinessExpense.expense_date.desc(), BusinessExpense.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return expenses, total

    @staticmethod
    def get_expense(db: Session, business_id: str, expense_id: str) -> Optional[BusinessExpense]:
        return (
            db.query(BusinessExpense)
            .options(joinedload(BusinessExpense.category))
            .filter(BusinessExpense.id == expense_id, BusinessExpense.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_movement_for_expense(db: Session, expense_id: str) -> Optional[FinancialMovement]:
        return (
            db.query(FinancialMovement)
            .filter(
                FinancialMovement.reference_type == "BUSINESS_EXPENSE",
                FinancialMovement.reference_id == expense_id,
            )
            .first()
        )

    @staticmethod
    def stats_by_status(query: Query) -> list[tuple]:
        return (
            query.with_entities(
                BusinessExpense.status, func.count(BusinessExpense.id), func.sum(BusinessExpense.amount)
            )
            .group_by(BusinessExpense.status)
            .all()
        )

    @staticmethod
    def stats_by_category(query: Query) -> list[tuple]:
        return (
            query.join(ExpenseCategory, BusinessExpense.category_id == ExpenseCategory.id)
            .with_entities(
                ExpenseCategory.id,
                ExpenseCategory.name,
                ExpenseCategory.color,
                func.count(BusinessExpense.id),
                func.sum(BusinessExpense.amount),
            )
            .group_by(ExpenseCategory.id, ExpenseCategory.name, ExpenseCategory.color)
            .all()
        )

    @staticmethod
    def totals(query: Query) -> tuple:
        return query.with_entities(
            func.count(BusinessExpense.id), func.sum(BusinessExpense.amount), func.avg(BusinessExpense.amount)
        ).one()

    @staticmethod
    def add(db: Session, obj):
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def save(db: Session, obj):
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def delete(db: Session, obj) -> None:
        db.delete(obj)
        db.commit()
