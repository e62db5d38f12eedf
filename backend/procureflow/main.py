"""
ProcureFlow: FastAPI ASGI entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from procureflow.api.v1.router import api_router
from procureflow.config import get_settings
from procureflow.core.auth_middleware import JWTAuthMiddleware
from procureflow.core.exceptions import ProcurementError, ServerError, ValidationError
from procureflow.core.redis import close_redis
from procureflow.core.responses import error_json

settings = get_settings()
logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: logging on startup, Redis pool closed on shutdown."""
    configure_logging()
    logger.info("ProcureFlow starting (%s)", settings.ENVIRONMENT)
    yield
    await close_redis()


app = FastAPI(
    title="ProcureFlow",
    description="Procurement negotiation and delivery tracking",
    version="0.1.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.exception_handler(ProcurementError)
async def procurement_error_handler(request: Request, exc: ProcurementError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_json(exc.status_code, exc.message, exc.code, exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return error_json(ValidationError.status_code, "Validation failed", ValidationError.code, errors)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_json(exc.status_code, str(exc.detail), "UNAUTHORIZED" if exc.status_code == 401 else "HTTP_ERROR")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    error = ServerError()
    return error_json(error.status_code, error.message, error.code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    error = ServerError()
    return error_json(error.status_code, error.message, error.code)


@app.get("/health")
async def health():
    """Health check for load balancers and Docker."""
    return {"status": "ok", "service": "procureflow"}
