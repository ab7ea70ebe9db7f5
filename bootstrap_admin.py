#!/usr/bin/env python3
"""
Admin Bootstrap Utility
=======================

Grants the Admin role to an existing account so the first administrator can
manage users and roles through the API. Register the account through
POST /auth/register first.

Usage:
    python bootstrap_admin.py --email admin@example.com
    ADMIN_EMAIL=admin@example.com python bootstrap_admin.py
"""

import argparse
import logging
import os
import sys

from app.db.database import SessionLocal
from app.models.user import User, UserRoleAssignment, Role
from app.services.auth_service import normalize_email

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def bootstrap_admin(email: str) -> dict:
    """
    Promote a user to Admin.

    Args:
        email: Email of the account to promote (case-insensitive)

    Returns:
        dict: user_id, email and status ('promoted', 'already_admin' or 'not_found')
    """
    with SessionLocal() as db:
        user = db.query(User).filter(User.normalized_email == normalize_email(email)).first()
        if not user:
            logger.error(f"No user registered with email {email}")
            return {"user_id": None, "email": email, "status": "not_found"}

        if Role.admin in user.roles:
            logger.info(f"User {email} is already an admin (id: {user.id})")
            return {"user_id": user.id, "email": email, "status": "already_admin"}

        user.role_assignments.append(UserRoleAssignment(role=Role.admin))
        db.commit()
        logger.info(f"Promoted {email} to admin (id: {user.id})")
        return {"user_id": user.id, "email": email, "status": "promoted"}


def main() -> int:
    parser = argparse.ArgumentParser(description="Grant the Admin role to an existing user")
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL"), help="Account email (or ADMIN_EMAIL)")
    args = parser.parse_args()

    if not args.email:
        parser.error("--email or ADMIN_EMAIL is required")

    result = bootstrap_admin(args.email)
    return 0 if result["status"] != "not_found" else 1


if __name__ == "__main__":
    sys.exit(main())
