"""Client repository - Database operations for clients"""

from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, Client, ConsentSignature, CustomerBookingBlock, Voucher
from ..vouchers.states import BlockStatus, VoucherStatus
from .states import AppointmentStatus, ClientStatus

SORT_ORDERS = {
    "recent": (Client.created_at.desc(),),
    "name_asc": (Client.first_name.asc(), Client.last_name.asc()),
    "name_desc": (Client.first_name.desc(), Client.last_name.desc()),
    "email_asc": (Client.email.asc(),),
    "email_desc": (Client.email.desc(),),
}


def _search_filter(term: str):
    pattern = f"%{term}%"
    return or_(
        Client.first_name.ilike(pattern),
        Client.last_name.ilike(pattern),
        Client.email.ilike(pattern),
        Client.phone.ilike(pattern),
    )


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def search_clients(db: Session, business_id: str, term: str, limit: int = 10) -> list[Client]:
        return (
            db.query(Client)
            .filter(
                Client.business_id == business_id,
                Client.status == ClientStatus.ACTIVE.value,
                _search_filter(term),
            )
            .order_by(Client.first_name, Client.last_name)
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_clients(
        db: Session,
        business_id: str,
        status: Optional[ClientStatus] = None,
        search: Optional[str] = None,
        sort_by: str = "recent",
    ) -> list[Client]:
        query = db.query(Client).filter(Client.business_id == business_id)
        if status:
            query = query.filter(Client.status == status.value)
        if search:
            query = query.filter(_search_filter(search))
        return query.order_by(*SORT_ORDERS.get(sort_by, SORT_ORDERS["recent"])).all()

    @staticmethod
    def get_client_by_id(db: Session, business_id: str, client_id: str) -> Optional[Client]:
        return (
            db.query(Client)
            .filter(Client.id == client_id, Client.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_client_by_email(
        db: Session, business_id: str, email: str, exclude_id: Optional[str] = None
    ) -> Optional[Client]:
        query = db.query(Client).filter(
            Client.business_id == business_id, func.lower(Client.email) == email.lower()
        )
        if exclude_id:
            query = query.filter(Client.id != exclude_id)
        return query.first()

    @staticmethod
    def create_client(db: Session, business_id: str, **client_data) -> Client:
        client = Client(business_id=business_id, **client_data)
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def update_client(db: Session, client: Client, **updates) -> Client:
        """Update a client with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(client, key):
                setattr(client, key, value)

        db.commit()
        db.refresh(client)
        return client

    # ========================================================================
    # Aggregates for the client list
    # ========================================================================

    @staticmethod
    def appointment_counts(db: Session, business_id: str, client_ids: list[str]) -> dict:
        """client_id -> (total, completed, cancelled)"""
        if not client_ids:
            return {}
        rows = (
            db.query(
                Appointment.client_id,
                func.count(Appointment.id),
                func.sum(case((Appointment.status == AppointmentStatus.COMPLETED.value, 1), else_=0)),
                func.sum(case((Appointment.status == AppointmentStatus.CANCELED.value, 1), else_=0)),
            )
            .filter(Appointment.business_id == business_id, Appointment.client_id.in_(client_ids))
            .group_by(Appointment.client_id)
            .all()
        )
        return {row[0]: (row[1], int(row[2] or 0), int(row[3] or 0)) for row in rows}

    @staticmethod
    def voucher_balances(db: Session, business_id: str, client_ids: list[str], now: datetime) -> dict:
        """client_id -> (active voucher count, active voucher balance)"""
        if not client_ids:
            return {}
        rows = (
            db.query(Voucher.customer_id, func.count(Voucher.id), func.sum(Voucher.amount))
            .filter(
                Voucher.business_id == business_id,
                Voucher.customer_id.in_(client_ids),
                Voucher.status == VoucherStatus.ACTIVE.value,
                Voucher.expires_at > now,
            )
            .group_by(Voucher.customer_id)
            .all()
        )
        return {row[0]: (row[1], float(row[2] or 0)) for row in rows}

    @staticmethod
    def blocked_client_ids(db: Session, business_id: str, client_ids: list[str], now: datetime) -> set:
        if not client_ids:
            return set()
        rows = (
            db.query(CustomerBookingBlock.customer_id)
            .filter(
                CustomerBookingBlock.business_id == business_id,
                CustomerBookingBlock.customer_id.in_(client_ids),
                CustomerBookingBlock.status == BlockStatus.ACTIVE.value,
                CustomerBookingBlock.expires_at > now,
            )
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    # ========================================================================
    # History
    # ========================================================================

    @staticmethod
    def get_appointments(db: Session, business_id: str, client_id: str, limit: int = 50) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.specialist))
            .filter(Appointment.business_id == business_id, Appointment.client_id == client_id)
            .order_by(Appointment.start_time.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_vouchers(db: Session, business_id: str, client_id: str) -> list[Voucher]:
        return (
            db.query(Voucher)
            .filter(Voucher.business_id == business_id, Voucher.customer_id == client_id)
            .order_by(Voucher.issued_at.desc())
            .all()
        )

    @staticmethod
    def get_blocks(db: Session, business_id: str, client_id: str) -> list[CustomerBookingBlock]:
        return (
            db.query(CustomerBookingBlock)
            .filter(
                CustomerBookingBlock.business_id == business_id,
                CustomerBookingBlock.customer_id == client_id,
            )
            .order_by(CustomerBookingBlock.blocked_at.desc())
            .all()
        )

    @staticmethod
    def get_signatures(db: Session, business_id: str, client_id: str) -> list[ConsentSignature]:
        return (
            db.query(ConsentSignature)
            .options(joinedload(ConsentSignature.template))
            .filter(ConsentSignature.business_id == business_id, ConsentSignature.customer_id == client_id)
            .order_by(ConsentSignature.signed_at.desc())
            .all()
        )
