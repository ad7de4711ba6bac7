"""Client service - Business logic for client operations"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Client, User
from ...utils.sanitization import clean_text, sanitize_string
from ..vouchers.service import VoucherService
from .repository import SORT_ORDERS, ClientRepository
from .schemas import ClientCreate, ClientUpdate
from .states import STATUS_FILTERS, ClientStatus

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
MANUAL_BLOCK_DAYS = 30


class ClientService:
    """Service layer for client business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()

    def search_clients(self, business_id: str, q: Optional[str]) -> list[dict]:
        """Quick lookup for booking forms"""
        term = (q or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []

        return [
            {"id": c.id, "name": c.full_name, "phone": c.phone, "email": c.email}
            for c in self.repo.search_clients(self.db, business_id, term)
        ]

    def list_clients(
        self,
        business_id: str,
        status: str = "all",
        search: Optional[str] = None,
        sort_by: str = "recent",
    ) -> list[dict]:
        if status not in STATUS_FILTERS:
            raise HTTPException(status_code=400, detail=f"Invalid status filter: {status}")
        if sort_by not in SORT_ORDERS:
            raise HTTPException(status_code=400, detail=f"Invalid sort option: {sort_by}")

        clients = self.repo.list_clients(
            self.db, business_id, STATUS_FILTERS[status], (search or "").strip() or None, sort_by
        )
        ids = [c.id for c in clients]
        now = datetime.utcnow()
        counts = self.repo.appointment_counts(self.db, business_id, ids)
        vouchers = self.repo.voucher_balances(self.db, business_id, ids, now)
        blocked = self.repo.blocked_client_ids(self.db, business_id, ids, now)

        result = []
        for client in clients:
            total, completed, cancelled = counts.get(client.id, (0, 0, 0))
            voucher_count, voucher_balance = vouchers.get(client.id, (0, 0.0))
            result.append(
                {
                    "id": client.id,
                    "name": client.full_name,
                    "email": client.email,
                    "phone": client.phone,
                    "avatar": client.avatar,
                    "status": client.status,
                    "totalAppointments": total,
                    "completedAppointments": completed,
                    "cancellationsCount": cancelled,
                    "activeVouchersCount": voucher_count,
                    "voucherBalance": round(voucher_balance, 2),
                    "isBlocked": client.id in blocked or client.status == ClientStatus.BLOCKED.value,
                    "lastAppointment": client.last_appointment,
                    "createdAt": client.created_at,
                }
            )
        return result

    def get_client(self, business_id: str, client_id: str) -> Client:
        client = self.repo.get_client_by_id(self.db, business_id, client_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def get_client_details(self, business_id: str, client_id: str) -> dict:
        client = self.get_client(business_id, client_id)
        now = datetime.utcnow()
        total, completed, cancelled = self.repo.appointment_counts(self.db, business_id, [client.id]).get(
            client.id, (0, 0, 0)
        )
        voucher_count, voucher_balance = self.repo.voucher_balances(
            self.db, business_id, [client.id], now
        ).get(client.id, (0, 0.0))
        blocked = client.id in self.repo.blocked_client_ids(self.db, business_id, [client.id], now)

        return {
            "client": client,
            "stats": {
                "totalAppointments": total,
                "completedAppointments": completed,
                "cancellationsCount": cancelled,
                "activeVouchersCount": voucher_count,
                "voucherBalance": round(voucher_balance, 2),
                "isBlocked": blocked or client.status == ClientStatus.BLOCKED.value,
            },
        }

    def create_client(self, business_id: str, data: ClientCreate) -> Client:
        """Create a new client with validation"""
        logger.info(f"📥 Creating client for business_id: {business_id}")

        if data.email and self.repo.get_client_by_email(self.db, business_id, data.email):
            raise HTTPException(status_code=409, detail="A client with this email already exists in this business")

        client_data = {
            "first_name": clean_text(data.firstName, 100),
            "last_name": clean_text(data.lastName, 100),
            "email": data.email,
            "phone": data.phone,
            "document_number": clean_text(data.documentNumber, 50),
            "birth_date": data.birthDate,
            "avatar": data.avatar,
            "notes": sanitize_string(data.notes),
            "status": ClientStatus.ACTIVE.value,
        }

        client = self.repo.create_client(self.db, business_id, **client_data)
        logger.info(f"✅ Client {client.id} created")
        return client

    def update_client(self, business_id: str, client_id: str, data: ClientUpdate) -> Client:
        client = self.get_client(business_id, client_id)

        if data.email and self.repo.get_client_by_email(self.db, business_id, data.email, exclude_id=client_id):
            raise HTTPException(status_code=409, detail="A client with this email already exists in this business")

        updates = {
            "first_name": clean_text(data.firstName, 100),
            "last_name": clean_text(data.lastName, 100),
            "email": data.email,
            "phone": data.phone,
            "document_number": clean_text(data.documentNumber, 50),
            "birth_date": data.birthDate,
            "avatar": data.avatar,
            "notes": sanitize_string(data.notes),
        }

        return self.repo.update_client(self.db, client, **updates)

    def toggle_client_status(
        self, business_id: str, client_id: str, status: ClientStatus, reason: Optional[str], user: User
    ) -> Client:
        """Blocking also stops online bookings for 30 days; activating lifts every block"""
        client = self.get_client(business_id, client_id)
        vouchers = VoucherService(self.db)

        if status == ClientStatus.BLOCKED:
            vouchers.block_customer(
                business_id,
                client_id,
                duration_days=MANUAL_BLOCK_DAYS,
                notes=reason or "Blocked manually",
                commit=False,
            )
        else:
            vouchers.lift_customer_blocks(business_id, client_id, user, notes=reason, commit=False)

        client.status = status.value
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"🔄 Client {client_id} status set to {status.value} by {user.id}")
        return client

    def get_client_history(self, business_id: str, client_id: str) -> dict:
        client = self.get_client(business_id, client_id)

        appointments = [
            {
                "id": a.id,
                "startTime": a.start_time,
                "status": a.status,
                "totalAmount": a.total_amount,
                "service": {"id": a.service.id, "name": a.service.name} if a.service else None,
                "specialist": {"id": a.specialist.id, "name": a.specialist.full_name} if a.specialist else None,
            }
            for a in self.repo.get_appointments(self.db, business_id, client_id)
        ]
        vouchers = [
            {
                "id": v.id,
                "code": v.code,
                "amount": v.amount,
                "status": v.status,
                "issuedAt": v.issued_at,
                "expiresAt": v.expires_at,
                "usedAt": v.used_at,
            }
            for v in self.repo.get_vouchers(self.db, business_id, client_id)
        ]
        blocks = [
            {
                "id": b.id,
                "status": b.status,
                "reason": b.reason,
                "blockedAt": b.blocked_at,
                "expiresAt": b.expires_at,
                "liftedAt": b.lifted_at,
                "notes": b.notes,
            }
            for b in self.repo.get_blocks(self.db, business_id, client_id)
        ]
        signatures = [
            {
                "id": s.id,
                "templateName": s.template.name if s.template else None,
                "templateVersion": s.template_version,
                "status": s.status,
                "signedAt": s.signed_at,
                "pdfStatus": s.pdf_status,
                "pdfUrl": s.pdf_url,
            }
            for s in self.repo.get_signatures(self.db, business_id, client_id)
        ]

        return {
            "client": {"id": client.id, "name": client.full_name, "email": client.email, "phone": client.phone},
            "appointments": appointments,
            "vouchers": vouchers,
            "blocks": blocks,
            "consentSignatures": signatures,
        }
