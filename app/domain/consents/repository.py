"""Consent domain repository - Data access layer"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ...models import ConsentSignature, ConsentTemplate


class ConsentRepository:
    """Repository for consent template and signature data access"""

    # ========================================================================
    # Templates
    # ========================================================================

    @staticmethod
    def get_templates(
        db: Session,
        business_id: str,
        category: Optional[str] = None,
        active_only: bool = True,
        search: Optional[str] = None,
    ) -> list[ConsentTemplate]:
        query = db.query(ConsentTemplate).filter(ConsentTemplate.business_id == business_id)
        if category:
            query = query.filter(ConsentTemplate.category == category)
        if active_only:
            query = query.filter(ConsentTemplate.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(ConsentTemplate.name.ilike(pattern), ConsentTemplate.code.ilike(pattern))
            )
        return query.order_by(ConsentTemplate.name.asc()).all()

    @staticmethod
    def get_template(db: Session, business_id: str, template_id: str) -> Optional[ConsentTemplate]:
        return (
            db.query(ConsentTemplate)
            .filter(ConsentTemplate.id == template_id, ConsentTemplate.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_template_by_code(
        db: Session, business_id: str, code: str, exclude_id: Optional[str] = None
    ) -> Optional[ConsentTemplate]:
        query = db.query(ConsentTemplate).filter(
            ConsentTemplate.business_id == business_id, ConsentTemplate.code == code
        )
        if exclude_id:
            query = query.filter(ConsentTemplate.id != exclude_id)
        return query.first()

    @staticmethod
    def create_template(db: Session, template_data: dict) -> ConsentTemplate:
        template = ConsentTemplate(**template_data)
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def update_template(db: Session, template: ConsentTemplate, update_data: dict) -> ConsentTemplate:
        for key, value in update_data.items():
            setattr(template, key, value)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def delete_template(db: Session, template: ConsentTemplate) -> None:
        db.delete(template)
        db.commit()

    @staticmethod
    def count_template_signatures(db: Session, template_id: str) -> int:
        return (
            db.query(func.count(ConsentSignature.id))
            .filter(ConsentSignature.template_id == template_id)
            .scalar()
            or 0
        )

    # ========================================================================
    # Signatures
    # ========================================================================

    @staticmethod
    def create_signature(db: Session, signature_data: dict) -> ConsentSignature:
        signature = ConsentSignature(**signature_data)
        db.add(signature)
        db.commit()
        db.refresh(signature)
        return signature

    @staticmethod
    def get_signature(db: Session, business_id: str, signature_id: str) -> Optional[ConsentSignature]:
        return (
            db.query(ConsentSignature)
            .options(joinedload(ConsentSignature.template))
            .filter(ConsentSignature.id == signature_id, ConsentSignature.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_signature_for_rendering(db: Session, signature_id: str) -> Optional[ConsentSignature]:
        """Signature with everything the PDF needs loaded"""
        return (
            db.query(ConsentSignature)
            .options(
                joinedload(ConsentSignature.template),
                joinedload(ConsentSignature.business),
                joinedload(ConsentSignature.customer),
                joinedload(ConsentSignature.service),
            )
            .filter(ConsentSignature.id == signature_id)
            .first()
        )

    @staticmethod
    def get_customer_signatures(
        db: Session, business_id: str, customer_id: str, status: Optional[str] = None
    ) -> list[ConsentSignature]:
        query = db.query(ConsentSignature).filter(
            ConsentSignature.business_id == business_id,
            ConsentSignature.customer_id == customer_id,
        )
        if status:
            query = query.filter(ConsentSignature.status == status)
        return query.order_by(ConsentSignature.signed_at.desc()).all()

    @staticmethod
    def get_legacy_pdf_signatures(db: Session, prefix: str = "/uploads/") -> list[ConsentSignature]:
        return db.query(ConsentSignature).filter(ConsentSignature.pdf_url.like(f"{prefix}%")).all()

    @staticmethod
    def save(db: Session, signature: ConsentSignature) -> ConsentSignature:
        db.commit()
        db.refresh(signature)
        return signature
