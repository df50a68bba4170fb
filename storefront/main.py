from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from storefront.core.config import get_settings
from storefront.core.errors import register_exception_handlers
from storefront.routers.auth import router as auth_router
from storefront.routers.health import router as health_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Storefront API - customer accounts, cookie-based sessions and access token refresh.",
    version="0.1.0",
)

register_exception_handlers(app)

# Configure CORS; cookie auth needs explicit origins with credentials
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(auth_router, prefix="/api")


@app.get("/")
def read_root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "docs": "/docs",
        "health": "/health"
    }
