from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import (
    admin,
    bookings,
    courts,
    dashboard,
    forum,
    jobs,
    partner_applications,
    payments,
    search,
    venues,
)
from app.config import get_settings
from app.errors import CourtEaseError
from app.payments.config import validate_midtrans_config

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting CourtEase API...")
    if not validate_midtrans_config():
        logger.warning("Midtrans is not configured; payments will be refused")
    yield
    # Shutdown
    logger.info("Shutting down CourtEase API...")


app = FastAPI(
    title="CourtEase API",
    description="Sports venue booking marketplace",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CourtEaseError)
async def courtease_error_handler(request: Request, exc: CourtEaseError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Routes
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(jobs.router)
app.include_router(courts.router)
app.include_router(venues.router)
app.include_router(search.router)
app.include_router(forum.router)
app.include_router(dashboard.router)
app.include_router(partner_applications.router)
app.include_router(admin.router)


@app.get("/")
async def root():
    return {"message": "CourtEase API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port, reload=settings.debug)
