import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, LOG_LEVEL, SCHEDULING_LOCK_BACKEND
from .database import Base, engine
from .domain.catalog import router as catalog_router
from .domain.scheduling.router import activity_router, queue_router
from .domain.scheduling.router import router as appointments_router
from .domain.staff import router as staff_router
from .errors import SchedulingError

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Another worker may have created the tables first
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if SCHEDULING_LOCK_BACKEND == "redis":
        from .locks import get_redis_client

        try:
            get_redis_client().ping()
            logger.info("Redis connection established for scheduling locks")
        except Exception as e:
            logger.warning(f"Redis connection failed - scheduling requests will return 503: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Appointment Manager API", version="1.0.0", lifespan=lifespan)


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
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header.",
                    "error": "unauthorized",
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "error": "invalid_input"},
    )


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} - {exc.kind}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.kind}: {exc.detail}")

    content = {"detail": exc.detail, "error": exc.kind}
    existing_id = getattr(exc, "existing_appointment_id", None)
    if existing_id is not None:
        content["existing_appointment_id"] = existing_id
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"❌ Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Server error", "error": "internal_error"},
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(appointments_router)
app.include_router(queue_router)
app.include_router(catalog_router)
app.include_router(staff_router)
app.include_router(activity_router)


@app.get("/")
def root():
    return {"message": "Appointment Manager API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
