"""Health check endpoint."""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from adapter.mongodb.connection import DATABASE_NAME, get_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health():
    """Report whether the user store is reachable. 503 when it is not."""
    db_ok = get_database() is not None
    body = {
        "status": "healthy" if db_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
        "services": {
            "mongodb": {
                "status": "healthy" if db_ok else "unhealthy",
                "database": DATABASE_NAME,
            },
        },
    }
    if db_ok:
        return body

    logger.warning("Health check: MongoDB unavailable")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
