from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from .config import get_settings
from .database import Base, SessionLocal, engine
from .error_handlers import register_exception_handlers
from .logging_config import configure_logging
from .middleware import RequestLoggingMiddleware
from .rate_limit import limiter
from .routers import articles, auth, files, menus, reservations, rooms, users
from .services import users as user_service

settings = get_settings()
configure_logging(settings.log_level)
logger = structlog.get_logger(__name__)

# -----------------------------------------
# Create DB tables
# -----------------------------------------
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.bootstrap_admin_username and settings.bootstrap_admin_password:
        db = SessionLocal()
        try:
            user_service.ensure_bootstrap_admin(
                db,
                settings.bootstrap_admin_username,
                settings.bootstrap_admin_password,
                settings.bootstrap_admin_email or f"{settings.bootstrap_admin_username}@localhost",
            )
        finally:
            db.close()
    logger.info("application_started", environment=settings.environment)
    yield


app = FastAPI(
    title="Intranet Portal API",
    version="1.0.0",
    description="Users, meeting-room reservations, articles, menus and files.",
    lifespan=lifespan,
)

# -----------------------------------------
# Middleware: rate limiting, CORS, request logging
# -----------------------------------------
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.add_middleware(RequestLoggingMiddleware)

# -----------------------------------------
# Global exception handlers
# -----------------------------------------
register_exception_handlers(app)

# -----------------------------------------
# Routers (versioned under api_prefix)
# -----------------------------------------
for module in (auth, users, rooms, reservations, articles, menus, files):
    app.include_router(module.router, prefix=settings.api_prefix)


# -----------------------------------------
# Health check endpoint
# -----------------------------------------
@app.get("/health", tags=["health"])
def health_check():
    return {"status": "ok"}
