import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .cache import Cache, create_redis_client
from .database import Base, engine
from .domain.accounts.router import router as accounts_router
from .domain.appointments.router import router as appointments_router
from .domain.availability.router import router as availability_router
from .domain.ledger.router import router as ledger_router
from .domain.payouts.router import router as payouts_router
from .domain.video.session_issuer import SessionIssuer
from .errors import TelecareError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
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
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if getattr(app.state, "cache", None) is None:
        app.state.cache = Cache(create_redis_client())
    if getattr(app.state, "session_issuer", None) is None:
        app.state.session_issuer = SessionIssuer()

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Telecare API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(TelecareError)
async def telecare_error_handler(request: Request, exc: TelecareError):
    """Domain errors carry their own status code and a machine-readable code"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_errors(exc), "error": "validation_error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # Pydantic puts the raised exception object in ctx, which is not JSON serializable
    return [
        {key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()
    ]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(accounts_router)
app.include_router(availability_router)
app.include_router(appointments_router)
app.include_router(ledger_router)
app.include_router(payouts_router)


@app.get("/")
def root():
    return {"message": "Telecare API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
