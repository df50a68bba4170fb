"""
Health check router with database and Redis connectivity verification.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
import redis

from storefront.core.deps import get_refresh_store
from storefront.db.session import get_db
from storefront.services.refresh_tokens import RefreshTokenStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check - always returns OK."""
    return {"status": "ok"}


@router.get("/api/health")
def api_health_check(
    db: Session = Depends(get_db),
    store: RefreshTokenStore = Depends(get_refresh_store),
):
    """
    Comprehensive health check verifying:
    - Database connectivity
    - Refresh token store (Redis) connectivity

    Returns 200 if all critical services are healthy.
    Returns 503 if the database is down. Redis is reported but not fatal:
    without it users can still browse, only logins and refreshes fail.
    """
    health_status = {
        "status": "ok",
        "services": {}
    }
    is_healthy = True

    try:
        db.execute(text("SELECT 1"))
        health_status["services"]["database"] = {"status": "ok"}
    except Exception as e:
        health_status["services"]["database"] = {"status": "error", "message": str(e)}
        is_healthy = False

    ping = getattr(store, "ping", None)
    if ping is None:
        health_status["services"]["redis"] = {"status": "in_memory"}
    else:
        try:
            ping()
            health_status["services"]["redis"] = {"status": "ok"}
        except redis.ConnectionError:
            health_status["services"]["redis"] = {"status": "unavailable", "message": "Redis not connected"}
        except Exception as e:
            health_status["services"]["redis"] = {"status": "error", "message": str(e)}

    if not is_healthy:
        health_status["status"] = "unhealthy"
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=health_status
        )

    return health_status
