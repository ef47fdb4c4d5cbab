# main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from api import crisis
from api.middleware import ObservabilityMiddleware
from api.rate_limiter import limiter, rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded


logging.basicConfig(level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))
logger = logging.getLogger("crisis-api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # O cliente Supabase é criado sob demanda; aqui só registramos a configuração
    anon_key = os.getenv("SUPABASE_ANON_KEY", "")
    logger.info(
        "Startup: SUPABASE_URL=%s ANON_PREFIX=%s",
        os.getenv("SUPABASE_URL", ""),
        anon_key[:16] if anon_key else "(not set)"
    )
    yield
    logger.info("Shutdown")


app = FastAPI(
    title="Crisis Risk Prediction API",
    description="Motor de avaliação de risco de crise a partir dos auto-relatos do paciente.",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return rate_limit_exceeded_handler(request, exc)


def format_validation_error(exc: RequestValidationError) -> str:
    """Short message for the first validation error, e.g. 'patient_id: Input should be a valid string'."""
    errors = exc.errors()
    if not errors:
        return "Requisição inválida"
    first = errors[0]
    loc = list(first.get("loc", ()))
    if len(loc) > 1 and loc[0] == "body":
        loc = loc[1:]
    location = ".".join(str(part) for part in loc)
    message = first.get("msg", "invalid value")
    return f"Requisição inválida: {location}: {message}" if location else f"Requisição inválida: {message}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = format_validation_error(exc)
    logger.warning("Invalid request %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception: %s %s",
        request.method,
        request.url,
        exc_info=True
    )
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


ALLOWED_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://localhost:5173",
]

cors_origins_env = os.getenv("CORS_ORIGINS")
if cors_origins_env:
    for origin in cors_origins_env.split(","):
        origin = origin.strip()
        if origin and origin not in ALLOWED_ORIGINS:
            ALLOWED_ORIGINS.append(origin)

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID", "apikey", "x-client-info"],
)

app.add_middleware(ObservabilityMiddleware)

app.include_router(crisis.router)


@app.get("/", tags=["Health Check"])
def read_root():
    return {"message": "Crisis Risk Prediction API v1.0 is running", "status": "healthy"}


@app.get("/health", tags=["Health Check"])
def health_check():
    return {"status": "healthy", "uptime": "ok", "version": "1.0.0"}
