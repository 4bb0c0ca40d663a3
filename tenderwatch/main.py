"""FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenderwatch.api.routes import alerts, health
from tenderwatch.core.config import settings
from tenderwatch.core.logging import setup_logging

# Setup logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: tables and scheduler management."""
    from tenderwatch.db.session import init_db
    from tenderwatch.services.scheduler import start_scheduler, stop_scheduler
    init_db()
    start_scheduler()
    yield
    stop_scheduler()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan,
)

_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
if "*" in settings.allowed_origins_list:
    _cors_origins_final = ["*"]
else:
    _cors_origins_final = _cors_origins + [
        o for o in settings.allowed_origins_list if o not in _cors_origins
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_final,
    allow_credentials="*" not in _cors_origins_final,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# Include API routers
app.include_router(health.router)
app.include_router(alerts.router, prefix="/api")


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"name": settings.app_name, "status": "running"}
