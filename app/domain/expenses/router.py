"""Expense router - FastAPI endpoints for business expenses"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_business_access, require_business_admin
from ...database import get_db
from ...models import User
from .schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseUpdate,
    MarkPaidRequest,
)
from .service import ExpenseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business/{business_id}/expenses", tags=["Expenses"])


def get_expense_service(db: Session = Depends(get_db)) -> ExpenseService:
    """Dependency injection for ExpenseService"""
    return ExpenseService(db)


# ============================================================================
# CATEGORIES
# ============================================================================


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    business_id: str,
    includeInactive: bool = Query(False),
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_access(business_id, current_user)
    return service.list_categories(business_id, includeInactive)


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(
    business_id: str,
    data: CategoryCreate,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.create_category(business_id, data)


@router.put("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    business_id: str,
    category_id: str,
    data: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.update_category(business_id, category_id, data)


@router.delete("/categories/{category_id}")
async def delete_category(
    business_id: str,
    category_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.delete_category(business_id, category_id)


# ============================================================================
# EXPENSES
# ============================================================================


@router.get("/stats")
async def get_expense_stats(
    business_id: str,
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    categoryId: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.get_expense_stats(business_id, startDate, endDate, categoryId)


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    business_id: str,
    status: Optional[str] = Query(None),
    categoryId: Optional[str] = Query(None),
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_access(business_id, current_user)
    return service.list_expenses(business_id, status, categoryId, startDate, endDate, page, limit)


@router.post("", response_model=ExpenseResponse, status_code=201)
async def create_expense(
    business_id: str,
    data: ExpenseCreate,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_access(business_id, current_user)
    return service.create_expense(business_id, data, current_user)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(
    business_id: str,
    expense_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_access(business_id, current_user)
    return service.get_expense(business_id, expense_id)


@router.put("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    business_id: str,
    expense_id: str,
    data: ExpenseUpdate,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.update_expense(business_id, expense_id, data)


@router.delete("/{expense_id}")
async def delete_expense(
    business_id: str,
    expense_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.delete_expense(business_id, expense_id)


@router.post("/{expense_id}/approve", response_model=ExpenseResponse)
async def approve_expense(
    business_id: str,
    expense_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.approve_expense(business_id, expense_id, current_user)


@router.post("/{expense_id}/pay", response_model=ExpenseResponse)
async def mark_expense_paid(
    business_id: str,
    expense_id: str,
    data: MarkPaidRequest,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.mark_as_paid(business_id, expense_id, data, current_user)


@router.post("/{expense_id}/cancel", response_model=ExpenseResponse)
async def cancel_expense(
    business_id: str,
    expense_id: str,
    current_user: User = Depends(get_current_user),
    service: ExpenseService = Depends(get_expense_service),
):
    require_business_admin(business_id, current_user)
    return service.cancel_expense(business_id, expense_id)
