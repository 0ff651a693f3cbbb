"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes (public attribution endpoints, dashboard and management endpoints)
- Middleware (logging, CORS)
- Rate limiters (slowapi for utility endpoints, fixed-window for scans)
- Application metadata

Design Decisions:
- Clean separation: Routes, middleware, and app config are separate
- The scan limiter lives on app.state so tests and alternative stores can
  replace it
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shelfqr.api import dashboard, endpoints, manage
from shelfqr.core.rate_limit import FixedWindowRateLimiter, limiter
from shelfqr.core.setting import settings
from shelfqr.middleware.logging import add_logging_middleware

logger = logging.getLogger(__name__)

# Title and description are used in auto-generated API documentation
app = FastAPI(
    title="ShelfQR",
    description="QR codes for curated product collections, with scan and click attribution",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.state.scan_limiter = FixedWindowRateLimiter(
    window_seconds=settings.SCAN_RATE_LIMIT_WINDOW_SECONDS,
    max_requests=settings.SCAN_RATE_LIMIT_MAX_REQUESTS,
)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "ShelfQR",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


app.include_router(endpoints.router, tags=["Attribution"])
app.include_router(dashboard.router, tags=["Dashboard"])
app.include_router(manage.router, tags=["Management"])


@app.on_event("startup")
async def startup_event():
    if settings.uses_default_ip_hash_secret:
        logger.warning(
            "IP_HASH_SECRET is not set; visitor IP hashes use the built-in default secret"
        )
    app.state.scan_limiter.start_sweeper()


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.scan_limiter.stop_sweeper()
