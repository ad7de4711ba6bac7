import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_business_access, require_business_admin
from ..config import MEDIA_ROOT_FOLDER
from ..database import get_db
from ..models import Appointment, Business, Service, User, UserRole
from ..services.media_gateway import EVIDENCE_PHASES, MediaGateway, get_media_gateway
from ..services.media_storage import PRESIGNED_URL_EXPIRATION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])

MAX_EVIDENCE_FILES = 10
RESOURCE_TYPES = ("image", "video", "raw")


def _get_business(db: Session, business_id: str) -> Business:
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business


def _authorize_key(db: Session, key: str, user: User) -> None:
    """Users may only touch objects under their own business, user or appointment folders"""
    if ".." in key or not key.startswith(f"{MEDIA_ROOT_FOLDER}/"):
        raise HTTPException(status_code=400, detail="Invalid media key")
    if user.role == UserRole.OWNER:
        return

    parts = key[len(MEDIA_ROOT_FOLDER) + 1 :].split("/")
    if len(parts) >= 2:
        scope, owner_id = parts[0], parts[1]
        if scope == "businesses" and owner_id == user.business_id:
            return
        if scope == "users" and owner_id == user.id:
            return
        if scope == "appointments":
            appointment = db.query(Appointment).filter(Appointment.id == owner_id).first()
            if appointment and appointment.business_id == user.business_id:
                return

    logger.warning(f"⚠️ User {user.id} attempted to access media key {key}")
    raise HTTPException(status_code=403, detail="You do not have access to this file")


@router.post("/logo/{business_id}")
async def upload_logo(
    business_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Upload business logo; the previous logo is removed from the media host"""
    logger.info(f"📤 Uploading logo for business: {business_id}")
    require_business_admin(business_id, current_user)
    business = _get_business(db, business_id)

    staged = await gateway.stage_upload(file, "image")
    try:
        media = gateway.upload_logo(business_id, staged)
    finally:
        gateway.discard(staged)

    previous_key = business.logo_key
    business.logo_url = media.url
    business.logo_key = media.key
    db.commit()
    if previous_key:
        gateway.delete_image(previous_key)

    return media.to_dict()


@router.post("/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Upload the current user's avatar (400x400, cropped to fill)"""
    logger.info(f"📤 Uploading avatar for user: {current_user.id}")
    staged = await gateway.stage_upload(file, "image")
    try:
        media = gateway.upload_avatar(current_user.id, staged)
    finally:
        gateway.discard(staged)

    previous_key = current_user.avatar_key
    current_user.avatar_url = media.url
    current_user.avatar_key = media.key
    db.commit()
    if previous_key:
        gateway.delete_image(previous_key)

    return media.to_dict()


@router.post("/evidence/{appointment_id}")
async def upload_evidence(
    appointment_id: str,
    files: list[UploadFile] = File(...),
    phase: str = Query("before"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Before/after/during photos and videos of an appointment"""
    if phase not in EVIDENCE_PHASES:
        raise HTTPException(status_code=400, detail=f"Invalid evidence phase: {phase}")
    if len(files) > MAX_EVIDENCE_FILES:
        raise HTTPException(status_code=400, detail=f"At most {MAX_EVIDENCE_FILES} files per upload")

    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")
    require_business_access(appointment.business_id, current_user)

    staged_files = []
    try:
        for upload in files:
            staged_files.append(await gateway.stage_upload(upload, "multi"))
        return gateway.upload_multiple_evidence(appointment_id, staged_files, phase)
    finally:
        for staged in staged_files:
            gateway.discard(staged)


@router.post("/service-image/{business_id}/{service_id}")
async def upload_service_image(
    business_id: str,
    service_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    require_business_admin(business_id, current_user)
    service = (
        db.query(Service)
        .filter(Service.id == service_id, Service.business_id == business_id)
        .first()
    )
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    staged = await gateway.stage_upload(file, "image")
    try:
        media = gateway.upload_service_image(business_id, service_id, staged)
    finally:
        gateway.discard(staged)

    previous_key = service.image_key
    service.image_url = media.url
    service.image_key = media.key
    db.commit()
    if previous_key:
        gateway.delete_image(previous_key)

    return media.to_dict()


@router.post("/product-image/{business_id}/{product_id}")
async def upload_product_image(
    business_id: str,
    product_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Product images are stored only; the inventory module keeps the returned key"""
    require_business_admin(business_id, current_user)
    staged = await gateway.stage_upload(file, "image")
    try:
        return gateway.upload_product_image(business_id, product_id, staged).to_dict()
    finally:
        gateway.discard(staged)


@router.delete("/media")
async def delete_media(
    key: str = Query(...),
    resourceType: str = Query("image"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    if resourceType not in RESOURCE_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid resource type: {resourceType}")
    _authorize_key(db, key, current_user)

    if not gateway.delete(key, resourceType):
        raise HTTPException(status_code=502, detail="The media host could not delete the file")
    return {"deleted": True, "key": key}


@router.get("/presigned")
async def get_presigned_url(
    key: str = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: MediaGateway = Depends(get_media_gateway),
):
    """Short-lived URL for a private object"""
    _authorize_key(db, key, current_user)
    return {"url": gateway.storage.presigned_url(key), "expiresIn": PRESIGNED_URL_EXPIRATION}
