#!/usr/bin/env python3
"""
Create the first organization and its admin account.

Usage: python scripts/create_admin.py admin@example.com "Acme Inc" [password]
The password falls back to ADMIN_PASSWORD from the environment.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func
from sqlalchemy.orm import Session
from app.core.database import engine, Base
from app.core.security import get_password_hash
from app.models.organization import Organization
from app.models.user import User, UserRole
from app import models  # noqa: F401
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_admin(db: Session, email: str, organization_name: str, password: str) -> User:
    """Create the organization and admin, or return the existing account for ``email``."""
    email = email.strip().lower()
    existing = db.query(User).filter(func.lower(User.email) == email).first()
    if existing:
        logger.info(f"✅ User already exists: {existing.email}")
        return existing

    try:
        organization = Organization(name=organization_name)
        db.add(organization)
        db.flush()

        admin = User(
            organization_id=organization.id,
            email=email,
            name="Administrator",
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN.value,
            is_active=True
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
    except Exception as e:
        logger.error(f"❌ Error creating admin: {e}")
        db.rollback()
        raise

    logger.info(f"✅ Admin {admin.email} created for organization '{organization.name}'")
    return admin


def main(argv):
    if len(argv) < 2:
        print(__doc__)
        return 1
    password = argv[2] if len(argv) > 2 else os.environ.get("ADMIN_PASSWORD")
    if not password:
        logger.error("❌ No password given and ADMIN_PASSWORD is not set")
        return 1

    Base.metadata.create_all(bind=engine)
    with Session(engine) as db:
        create_admin(db, argv[0], argv[1], password)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
