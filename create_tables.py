#!/usr/bin/env python3
"""
Creates the identity tables (users, user_roles, refresh_tokens) on DATABASE_URL.

Usage:
    python create_tables.py
"""

import logging
from app.db.database import Base, engine
from app.models import user  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_tables():
    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables created successfully: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    create_tables()
