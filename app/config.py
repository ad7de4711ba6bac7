import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./beautycontrol.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

# Cloudflare R2 Configuration (media host)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "beautycontrol")
# Public bucket domain; when unset, objects are served through presigned URLs
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL")
MEDIA_ROOT_FOLDER = os.getenv("MEDIA_ROOT_FOLDER", "beauty-control")

# Temporary staging directory for incoming uploads
TEMP_UPLOAD_DIR = os.getenv("TEMP_UPLOAD_DIR", "uploads/temp")
TEMP_FILE_MAX_AGE_SECONDS = int(os.getenv("TEMP_FILE_MAX_AGE_SECONDS", "3600"))

# Upload size limits (bytes)
MAX_IMAGE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", str(20 * 1024 * 1024)))
MAX_VIDEO_SIZE = int(os.getenv("MAX_VIDEO_SIZE", str(100 * 1024 * 1024)))
MAX_PDF_SIZE = int(os.getenv("MAX_PDF_SIZE", str(20 * 1024 * 1024)))
MAX_EVIDENCE_SIZE = int(os.getenv("MAX_EVIDENCE_SIZE", str(100 * 1024 * 1024)))
# Images above this size are downscaled before upload
IMAGE_COMPRESSION_THRESHOLD = int(os.getenv("IMAGE_COMPRESSION_THRESHOLD", str(8 * 1024 * 1024)))

# Redis / ARQ
REDIS_URL = os.getenv("REDIS_URL")

# Payments
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "COP")

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
