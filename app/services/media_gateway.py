"""
Media upload gateway

Typed upload presets on top of MediaStorage: incoming files are staged in a
temp directory, images are compressed/resized with Pillow, and every object
lands in a predictable folder on the media host.
"""

import logging
import os
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, Request, UploadFile

from ..config import (
    MAX_EVIDENCE_SIZE,
    MAX_IMAGE_SIZE,
    MAX_PDF_SIZE,
    MAX_VIDEO_SIZE,
    MEDIA_ROOT_FOLDER,
    TEMP_FILE_MAX_AGE_SECONDS,
    TEMP_UPLOAD_DIR,
)
from ..security_utils import sanitize_filename
from .image_processing import InvalidImageError, compress_image, fill_image, fit_image
from .media_storage import MediaStorage

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi"}
DOCUMENT_EXTENSIONS = {".pdf", ".doc", ".docx"}
EVIDENCE_PHASES = ("before", "after", "during")

VIDEO_CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
}
DOCUMENT_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Responsive image sizes
MAIN_IMAGE_SIZE = (1920, 1080)
THUMBNAIL_SIZE = (400, 300)
AVATAR_SIZE = (400, 400)
RECEIPT_IMAGE_SIZE = (1200, 1600)


@dataclass(frozen=True)
class MediaKind:
    name: str
    max_size: int
    content_types: tuple = ()
    content_type_prefixes: tuple = ()

    def accepts(self, content_type: Optional[str]) -> bool:
        if not content_type:
            return False
        content_type = content_type.lower()
        return content_type in self.content_types or content_type.startswith(self.content_type_prefixes)


MEDIA_KINDS = {
    "image": MediaKind("image", MAX_IMAGE_SIZE, content_type_prefixes=("image/",)),
    "video": MediaKind("video", MAX_VIDEO_SIZE, content_type_prefixes=("video/",)),
    "pdf": MediaKind("pdf", MAX_PDF_SIZE, content_types=("application/pdf",)),
    "multi": MediaKind(
        "multi",
        MAX_EVIDENCE_SIZE,
        content_types=(
            "image/jpeg",
            "image/jpg",
            "image/png",
            "image/webp",
            "video/mp4",
            "video/mov",
            "video/avi",
            "video/quicktime",
            "application/pdf",
        ),
    ),
    "receipt": MediaKind(
        "receipt",
        MAX_PDF_SIZE,
        content_types=(
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ),
        content_type_prefixes=("image/",),
    ),
}


@dataclass
class StagedFile:
    """An upload written to the temp directory, waiting to be pushed"""

    path: Path
    original_name: str
    content_type: str
    size: int

    @property
    def extension(self) -> str:
        return os.path.splitext(self.original_name)[1].lower()

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class UploadedMedia:
    url: str
    key: str
    resource_type: str  # image, video, raw
    content_type: str
    size: int
    original_name: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    thumbnail_url: Optional[str] = None
    thumbnail_key: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("extra")
        data.update(self.extra)
        return data


class MediaGateway:
    def __init__(
        self,
        storage: MediaStorage,
        temp_dir: str = TEMP_UPLOAD_DIR,
        root_folder: str = MEDIA_ROOT_FOLDER,
    ):
        self.storage = storage
        self.temp_dir = Path(temp_dir)
        self.root_folder = root_folder.strip("/")

    # ========================================================================
    # Staging
    # ========================================================================

    async def stage_upload(self, upload: UploadFile, kind: str = "image") -> StagedFile:
        """Stream an incoming file to disk, enforcing type and size limits"""
        media_kind = MEDIA_KINDS[kind]
        if not media_kind.accepts(upload.content_type):
            raise HTTPException(
                status_code=400,
                detail=f"File type {upload.content_type} is not allowed for {kind} uploads",
            )

        original_name = sanitize_filename(upload.filename or "upload")
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        path = self.temp_dir / f"{int(time.time() * 1000)}-{uuid.uuid4().hex}{os.path.splitext(original_name)[1].lower()}"

        size = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > media_kind.max_size:
                        raise HTTPException(
                            status_code=413,
                            detail=f"File too large. Maximum size is {media_kind.max_size // (1024 * 1024)}MB",
                        )
                    out.write(chunk)
        except HTTPException:
            path.unlink(missing_ok=True)
            raise

        if size == 0:
            path.unlink(missing_ok=True)
            raise HTTPException(status_code=400, detail="Uploaded file is empty")

        logger.info(f"📥 Staged upload {original_name} ({size} bytes) at {path.name}")
        return StagedFile(path=path, original_name=original_name, content_type=upload.content_type, size=size)

    def discard(self, staged: Optional[StagedFile]) -> None:
        if staged is not None:
            staged.path.unlink(missing_ok=True)

    def cleanup_temp_files(self, max_age: int = TEMP_FILE_MAX_AGE_SECONDS) -> int:
        """Remove staged files older than max_age seconds"""
        if not self.temp_dir.exists():
            return 0

        cutoff = time.time() - max_age
        removed = 0
        for entry in self.temp_dir.iterdir():
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                entry.unlink(missing_ok=True)
                removed += 1

        if removed:
            logger.info(f"🧹 Removed {removed} stale temp upload(s)")
        return removed

    # ========================================================================
    # Building blocks
    # ========================================================================

    def _folder(self, *parts: str) -> str:
        return "/".join([self.root_folder, *[str(p).strip("/") for p in parts]])

    def _upload_responsive_image(
        self,
        staged: StagedFile,
        folder: str,
        main_size: tuple = MAIN_IMAGE_SIZE,
        fill_main: bool = False,
        with_thumbnail: bool = True,
    ) -> UploadedMedia:
        """Main image under {folder}/main and a thumbnail under {folder}/thumbs"""
        try:
            data = compress_image(staged.read_bytes())
            main = fill_image(data, main_size) if fill_main else fit_image(data, main_size)
            thumb = fill_image(data, THUMBNAIL_SIZE) if with_thumbnail else None
        except InvalidImageError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        name = uuid.uuid4().hex
        key = f"{folder}/main/{name}.{main.extension}"
        url = self.storage.put(key, main.data, main.content_type)

        media = UploadedMedia(
            url=url,
            key=key,
            resource_type="image",
            content_type=main.content_type,
            size=len(main.data),
            original_name=staged.original_name,
            width=main.width,
            height=main.height,
            format=main.extension,
        )
        if thumb is not None:
            media.thumbnail_key = f"{folder}/thumbs/{name}.{thumb.extension}"
            media.thumbnail_url = self.storage.put(media.thumbnail_key, thumb.data, thumb.content_type)
        return media

    def _upload_video(self, staged: StagedFile, folder: str) -> UploadedMedia:
        key = f"{folder}/{uuid.uuid4().hex}{staged.extension}"
        content_type = VIDEO_CONTENT_TYPES.get(staged.extension, staged.content_type)
        url = self.storage.put(key, staged.read_bytes(), content_type)
        return UploadedMedia(
            url=url,
            key=key,
            resource_type="video",
            content_type=content_type,
            size=staged.size,
            original_name=staged.original_name,
            format=staged.extension.lstrip("."),
        )

    def _upload_document(self, data: bytes, key: str, content_type: str, original_name: Optional[str] = None) -> UploadedMedia:
        url = self.storage.put(key, data, content_type)
        return UploadedMedia(
            url=url,
            key=key,
            resource_type="raw",
            content_type=content_type,
            size=len(data),
            original_name=original_name,
            format=os.path.splitext(key)[1].lstrip(".") or None,
        )

    # ========================================================================
    # Presets
    # ========================================================================

    def upload_logo(self, business_id: str, staged: StagedFile) -> UploadedMedia:
        return self._upload_responsive_image(staged, self._folder("businesses", business_id, "logos"))

    def upload_avatar(self, user_id: str, staged: StagedFile) -> UploadedMedia:
        return self._upload_responsive_image(
            staged,
            self._folder("users", user_id, "avatars"),
            main_size=AVATAR_SIZE,
            fill_main=True,
            with_thumbnail=False,
        )

    def upload_service_image(self, business_id: str, service_id: str, staged: StagedFile) -> UploadedMedia:
        return self._upload_responsive_image(
            staged, self._folder("businesses", business_id, "services", service_id)
        )

    def upload_product_image(self, business_id: str, product_id: str, staged: StagedFile) -> UploadedMedia:
        return self._upload_responsive_image(
            staged, self._folder("businesses", business_id, "products", product_id)
        )

    def upload_evidence(self, appointment_id: str, staged: StagedFile, phase: str = "before") -> UploadedMedia:
        """Before/after/during photos and videos for an appointment"""
        if phase not in EVIDENCE_PHASES:
            raise HTTPException(status_code=400, detail=f"Invalid evidence phase: {phase}")

        folder = self._folder("appointments", appointment_id, "evidence", phase)
        if staged.extension in IMAGE_EXTENSIONS:
            return self._upload_responsive_image(staged, folder)
        if staged.extension in VIDEO_EXTENSIONS:
            return self._upload_video(staged, f"{folder}/videos")
        raise HTTPException(status_code=400, detail=f"Unsupported evidence file type: {staged.extension or 'unknown'}")

    def upload_multiple_evidence(self, appointment_id: str, staged_files: list, phase: str = "before") -> dict:
        """Upload a batch; failures are reported per file and don't abort the rest"""
        uploaded, failed = [], []
        for staged in staged_files:
            try:
                uploaded.append(self.upload_evidence(appointment_id, staged, phase).to_dict())
            except HTTPException as e:
                failed.append({"file": staged.original_name, "error": e.detail})
            except Exception as e:
                logger.error(f"❌ Evidence upload failed for {staged.original_name}: {e}")
                failed.append({"file": staged.original_name, "error": str(e)})

        logger.info(f"📸 Evidence batch for appointment {appointment_id}: {len(uploaded)} ok, {len(failed)} failed")
        return {"uploaded": uploaded, "failed": failed, "total": len(staged_files)}

    def upload_consent_document(self, business_id: str, signature_id: str, data: bytes) -> UploadedMedia:
        key = f"{self._folder('businesses', business_id, 'consents')}/{signature_id}.pdf"
        return self._upload_document(data, key, "application/pdf", f"consent-{signature_id}.pdf")

    def upload_payment_receipt(self, payment_id: str, staged: StagedFile) -> UploadedMedia:
        return self._upload_receipt(self._folder("owner", "payment-receipts", payment_id), staged)

    def upload_commission_receipt(self, business_id: str, request_id: str, staged: StagedFile) -> UploadedMedia:
        return self._upload_receipt(
            self._folder("businesses", business_id, "commission-receipts", request_id), staged
        )

    def _upload_receipt(self, folder: str, staged: StagedFile) -> UploadedMedia:
        """Images are resized to fit 1200x1600; PDF/Word documents are stored as-is"""
        if staged.extension in DOCUMENT_EXTENSIONS:
            key = f"{folder}/{uuid.uuid4().hex}{staged.extension}"
            return self._upload_document(
                staged.read_bytes(), key, DOCUMENT_CONTENT_TYPES[staged.extension], staged.original_name
            )

        if staged.extension not in IMAGE_EXTENSIONS:
            raise HTTPException(status_code=400, detail="Receipts must be an image, PDF or Word document")

        try:
            image = fit_image(compress_image(staged.read_bytes()), RECEIPT_IMAGE_SIZE, fmt="JPEG")
        except InvalidImageError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        key = f"{folder}/{uuid.uuid4().hex}.{image.extension}"
        url = self.storage.put(key, image.data, image.content_type)
        return UploadedMedia(
            url=url,
            key=key,
            resource_type="image",
            content_type=image.content_type,
            size=len(image.data),
            original_name=staged.original_name,
            width=image.width,
            height=image.height,
            format=image.extension,
        )

    # ========================================================================
    # Deletion
    # ========================================================================

    def delete_image(self, key: str) -> bool:
        """Delete a responsive image and its thumbnail"""
        deleted = self.storage.delete(key)
        if "/main/" in key:
            self.storage.delete(key.replace("/main/", "/thumbs/", 1))
        return deleted

    def delete_video(self, key: str) -> bool:
        return self.storage.delete(key)

    def delete_document(self, key: str) -> bool:
        return self.storage.delete(key)

    def delete(self, key: str, resource_type: str = "image") -> bool:
        if resource_type == "video":
            return self.delete_video(key)
        if resource_type == "raw":
            return self.delete_document(key)
        return self.delete_image(key)


def get_media_gateway(request: Request) -> MediaGateway:
    """Dependency: the gateway built around the storage created at start-up"""
    storage = getattr(request.app.state, "media_storage", None)
    if storage is None:
        raise HTTPException(status_code=503, detail="Media storage is not configured")
    return MediaGateway(storage)
