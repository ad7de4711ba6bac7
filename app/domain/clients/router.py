"""Client router - FastAPI endpoints for client operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_business_access, require_business_admin
from ...database import get_db
from ...models import User
from .schemas import (
    ClientCreate,
    ClientListItem,
    ClientResponse,
    ClientSearchResult,
    ClientStatusUpdate,
    ClientUpdate,
)
from .service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/business/{business_id}/clients", tags=["Clients"])


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


@router.get("/search", response_model=list[ClientSearchResult])
async def search_clients(
    business_id: str,
    q: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    """Active clients matching name, phone or email (at least 2 characters)"""
    require_business_access(business_id, current_user)
    return service.search_clients(business_id, q)


@router.get("", response_model=list[ClientListItem])
async def list_clients(
    business_id: str,
    status: str = Query("all"),
    search: Optional[str] = Query(None),
    sortBy: str = Query("recent"),
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    require_business_access(business_id, current_user)
    return service.list_clients(business_id, status, search, sortBy)


@router.post("", response_model=ClientResponse, status_code=201)
async def create_client(
    business_id: str,
    data: ClientCreate,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    require_business_access(business_id, current_user)
    return service.create_client(business_id, data)


@router.get("/{client_id}")
async def get_client_details(
    business_id: str,
    client_id: str,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    require_business_access(business_id, current_user)
    details = service.get_client_details(business_id, client_id)
    return {
        "client": ClientResponse.model_validate(details["client"]).model_dump(),
        "stats": details["stats"],
    }


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    business_id: str,
    client_id: str,
    data: ClientUpdate,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    require_business_access(business_id, current_user)
    return service.update_client(business_id, client_id, data)


@router.patch("/{client_id}/status", response_model=ClientResponse)
async def toggle_client_status(
    business_id: str,
    client_id: str,
    data: ClientStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    require_business_admin(business_id, current_user)
    return service.toggle_client_status(business_id, client_id, data.status, data.reason, current_user)


@router.get("/{client_id}/history")
async def get_client_history(
    business_id: str,
    client_id: str,
    current_user: User = Depends(get_current_user),
    service: ClientService = Depends(get_client_service),
):
    require_business_access(business_id, current_user)
    return service.get_client_history(business_id, client_id)
