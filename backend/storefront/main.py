"""
Storefront Platform - Backend API
Multi-tenant storefront, page builder and merchant dashboard
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from storefront.api import (  # noqa: E402
    bulk, collections, dashboard_layouts, discounts, media, orders, pages, products, store, sync, webhooks,
)
from storefront.core.config import settings  # noqa: E402
from storefront.core.database import get_db_connection_with_retry  # noqa: E402
from storefront.core.errors import AppError, app_error_handler  # noqa: E402
from storefront.core.rate_limit import RateLimitMiddleware  # noqa: E402

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    debug=settings.API_DEBUG,
)

app.add_middleware(RateLimitMiddleware)

# CORS is added last so it wraps the rate limiter and 429s keep their headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.add_exception_handler(AppError, app_error_handler)

# Dashboard routers
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(collections.router, prefix="/api/v1/collections", tags=["Collections"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(discounts.router, prefix="/api/v1/discounts", tags=["Discounts"])
app.include_router(dashboard_layouts.router, prefix="/api/v1/dashboard/layouts", tags=["Dashboard Layouts"])
app.include_router(pages.router, prefix="/api/v1/pages", tags=["Pages"])
app.include_router(bulk.router, prefix="/api/v1/bulk", tags=["Bulk Actions"])
app.include_router(sync.router, prefix="/api/v1/sync", tags=["Sync"])
app.include_router(media.router, prefix="/api/v1/media", tags=["Media"])

# Public routers
app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
app.include_router(store.router, prefix="/api/v1/store/{slug}", tags=["Storefront"])


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": settings.API_TITLE,
        "status": "online",
        "version": settings.API_VERSION,
        "description": settings.API_DESCRIPTION
    }


@app.get("/health")
async def health():
    """Health check endpoint for monitoring - tests database connectivity"""
    start_time = time.time()

    db_status = "unknown"
    db_latency_ms = None
    db_error = None

    try:
        # Minimal retry so the check stays fast
        conn = get_db_connection_with_retry(max_retries=1, retry_delay=0.5)
        cursor = conn.cursor()

        db_start = time.time()
        cursor.execute("SELECT 1")
        cursor.fetchone()
        db_latency_ms = round((time.time() - db_start) * 1000, 2)

        cursor.close()
        conn.close()
        db_status = "connected"
    except Exception as e:
        db_status = "disconnected"
        db_error = str(e)

    total_latency_ms = round((time.time() - start_time) * 1000, 2)

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "service": "storefront-api",
        "version": settings.API_VERSION,
        "database": {
            "status": db_status,
            "latency_ms": db_latency_ms,
            "error": db_error
        },
        "total_latency_ms": total_latency_ms
    }
