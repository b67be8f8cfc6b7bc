import logging
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.core.config import get_settings
from app.core.security import hash_password
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app import models  # noqa: F401 - ensure metadata is registered
from app.api.middleware import RouteAuthorizationMiddleware
from app.api.routes import (
    health,
    auth,
    users,
    projects,
    dashboard,
)
from app.models import User, UserRole
from app.services.rate_limit import build_rate_limiter
from app.services.users import build_auth_metadata

settings = get_settings()

# Basic structured logging to stdout for ops visibility
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = FastAPI(title=settings.app_name)
app.state.rate_limiter = build_rate_limiter(settings)

# Added first so CORS wraps the authorization redirects too
app.add_middleware(RouteAuthorizationMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Ensure media directory exists before mounting
Path(settings.media_root).mkdir(parents=True, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.media_root), name="media")

app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(users.router, prefix=settings.api_prefix)
app.include_router(projects.router, prefix=settings.api_prefix)
app.include_router(dashboard.router, prefix=settings.api_prefix)


def seed_defaults():
    """Create tables and the bootstrap admin so a fresh install can sign in."""
    Base.metadata.create_all(bind=engine)
    if not settings.admin_email or not settings.admin_password:
        return
    db = SessionLocal()
    try:
        if not db.query(User).filter(User.role == UserRole.ADMIN.value).first():
            admin = User(
                email=settings.admin_email.strip().lower(),
                name="Administrator",
                role=UserRole.ADMIN.value,
                is_active=True,
                must_change_password=True,
                password_hash=hash_password(settings.admin_password),
            )
            admin.auth_metadata = build_auth_metadata(admin)
            db.add(admin)
            db.commit()
    finally:
        db.close()


seed_defaults()
