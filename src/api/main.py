"""FastAPI application entry point."""

import os
import sys
import logging
import tomllib
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Must run before importing modules that read env vars at import time
load_dotenv()

# main.py is at <root>/src/api/main.py
_src_path = Path(__file__).parent.parent
sys.path.insert(0, str(_src_path))

from api.config import get_settings
from api.routes import auth, health, oauth
from utils.logging import setup_structured_logging
from adapter.mongodb.connection import get_database
from adapter.mongodb.indexes import ensure_all_indexes

setup_structured_logging()

logger = logging.getLogger(__name__)

with open(_src_path.parent / "pyproject.toml", "rb") as f:
    VERSION = tomllib.load(f)["project"]["version"]

SERVICE_NAME = "Authflow API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fail fast on bad configuration, then make sure the unique indexes exist."""
    get_settings()

    db = get_database()
    if db is None:
        logger.warning("MongoDB unavailable, skipping index creation")
    elif ensure_all_indexes(db):
        logger.info("MongoDB indexes verified/created successfully")
    else:
        logger.warning("Failed to create some MongoDB indexes")

    yield


def _cors_options() -> dict:
    """CORS settings from CORS_ORIGINS (comma separated, default '*')."""
    origins = os.getenv("CORS_ORIGINS", "*")
    if origins == "*":
        # Browsers reject credentials with a wildcard origin
        logger.warning("CORS configured with wildcard origin; set CORS_ORIGINS in production")
        return {"allow_origins": ["*"], "allow_credentials": False}

    allowed = [origin.strip() for origin in origins.split(",") if origin.strip()]
    logger.info("CORS configured", extra={"origins": allowed})
    return {"allow_origins": allowed, "allow_credentials": True}


app = FastAPI(
    title=SERVICE_NAME,
    description="Account registration, verification, login and password lifecycle",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allow_methods=["*"], allow_headers=["*"], **_cors_options())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400 with the same shape as service validation errors."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": {"error": "validation_error", "message": message}},
    )


app.include_router(auth.router)
app.include_router(oauth.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"service": SERVICE_NAME, "version": VERSION, "status": "running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)), access_log=False)
