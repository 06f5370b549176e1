"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.security import get_password_hash
from app.packages.drive.db import session as db_session
from app.packages.drive.models import (  # noqa: F401 - table registration
    Favorite,
    FavoriteFolder,
    FileNode,
    MaintenanceLog,
    ShareItem,
    ShareLink,
    User,
)
from app.packages.drive.models.base import Base

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist and seed the administrator."""
    Base.metadata.create_all(bind=db_session.engine)

    session = db_session.SessionLocal()
    try:
        _seed_admin(session)
        session.commit()
    except Exception:  # pragma: no cover - initialization failures are re-raised
        session.rollback()
        logger.exception("Failed to seed default data during database initialization")
        raise
    finally:
        session.close()


def _seed_admin(db: Session) -> None:
    """Ensure the configured administrator exists and carries the admin flag."""
    settings = get_settings()
    admin_user = (
        db.query(User)
        .filter(User.username == settings.admin_username, User.is_deleted.is_(False))
        .first()
    )
    if admin_user is None:
        admin_user = User(
            username=settings.admin_username,
            hashed_password=get_password_hash(settings.admin_password),
            is_active=True,
            is_admin=True,
            storage_used=0,
        )
        db.add(admin_user)
        db.flush()
        logger.info("Seeded administrator account '%s'", settings.admin_username)
        return

    admin_user.is_active = True
    admin_user.is_admin = True
    db.add(admin_user)
