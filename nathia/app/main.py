import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .core.circuit_breaker import CircuitState, circuit_stats
from .core.errors import (
    AIServiceError,
    CircuitOpenError,
    NathiaError,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
)
from .db.base import SessionLocal, engine, init_db

# Ensure logs directory exists
logs_dir = Path(__file__).parent.parent / "logs"
logs_dir.mkdir(exist_ok=True)

# Configure both file and console logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(logs_dir / "nathia.log", encoding="utf-8"),
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db()
    logger.info("startup", extra={"environment": settings.ENVIRONMENT, "version": settings.VERSION})
    try:
        yield
    finally:
        try:
            SessionLocal.remove()
        except Exception as e:
            logger.warning("SessionLocal.remove() failed: %s", e)
        try:
            engine.dispose()
        except Exception as e:
            logger.warning("engine.dispose() failed: %s", e)


settings = get_settings()

app = FastAPI(
    title="NAT-IA API",
    description="Risk triage, moderation and empathetic chat for the Nossa Maternidade app",
    version=settings.VERSION,
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get(f"{settings.API_PREFIX}/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "environment": get_settings().ENVIRONMENT,
    }


@app.get(f"{settings.API_PREFIX}/health/circuits")
async def circuits():
    stats = circuit_stats()
    degraded = sorted(name for name, s in stats.items() if s["state"] != CircuitState.CLOSED.value)
    return {"status": "degraded" if degraded else "healthy", "degraded": degraded, "circuits": stats}


# Import and include routers
from .api.v1.routers import chat, coaching, community, safety  # noqa: E402

app.include_router(chat.router, prefix=settings.API_PREFIX)
app.include_router(community.router, prefix=settings.API_PREFIX)
app.include_router(safety.router, prefix=settings.API_PREFIX)
app.include_router(coaching.router, prefix=settings.API_PREFIX)


def _error(status_code: int, exc: NathiaError, message: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message or exc.message, "code": exc.code},
    )


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    content = {"error": exc.message, "code": exc.code}
    # Moderation rejections carry a rationale and a rewrite the author can use
    if exc.details.get("rationale"):
        content["rationale"] = exc.details["rationale"]
        content["suggested_rewrite"] = exc.details.get("suggested_rewrite")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return _error(status.HTTP_429_TOO_MANY_REQUESTS, exc, "limit_exceeded")


@app.exception_handler(CircuitOpenError)
async def circuit_open_handler(request: Request, exc: CircuitOpenError):
    logger.warning("circuit_open_rejected", extra={"circuit": exc.circuit, "path": request.url.path})
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc, "Serviço temporariamente indisponível")


@app.exception_handler(AIServiceError)
async def ai_service_handler(request: Request, exc: AIServiceError):
    logger.error("ai_service_error", extra={"code": exc.code, "path": request.url.path})
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc, "Serviço de IA temporariamente indisponível")


@app.exception_handler(NathiaError)
async def nathia_error_handler(request: Request, exc: NathiaError):
    logger.error("nathia_error", extra={"code": exc.code, "details": exc.details}, exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc, "Erro interno. Tente novamente.")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
