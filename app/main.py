import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - registers every table with Base
from .config import ALLOWED_ORIGINS, R2_ACCOUNT_ID
from .database import Base, engine
from .domain.clients.router import router as clients_router
from .domain.commissions.router import router as commissions_router
from .domain.consents.router import router as consents_router
from .domain.expenses.router import router as expenses_router
from .domain.payments.router import router as payments_router
from .domain.vouchers.router import router as vouchers_router
from .routes.jobs import router as jobs_router
from .routes.upload import router as upload_router
from .services.media_storage import MediaStorage, MediaUploadError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("botocore").setLevel(logging.WARNING)
logging.getLogger("PIL").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    if R2_ACCOUNT_ID:
        app.state.media_storage = MediaStorage.from_settings()
    else:
        app.state.media_storage = None
        logger.warning("R2 is not configured - media uploads will return 503")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="BeautyControl API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raised ValueError itself
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(MediaUploadError)
async def media_upload_exception_handler(request: Request, exc: MediaUploadError):
    logger.error(f"❌ Media host error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": "The media host rejected the request"})


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(consents_router)
app.include_router(payments_router)
app.include_router(commissions_router)
app.include_router(expenses_router)
app.include_router(clients_router)
app.include_router(vouchers_router)
app.include_router(upload_router)
app.include_router(jobs_router)


@app.get("/")
def root():
    return {"message": "BeautyControl API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
