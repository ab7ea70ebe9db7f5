# ------------------------------------------
# User administration service functions
# - list_users() / get_user()   : active accounts only
# - update_user()               : profile edit, email change for admins
# - deactivate_user()           : soft delete, users are never removed
# - assign_role() / remove_role(): role membership, effective on next token
# Raises ServiceError for expected failures; routes map it to a status code
# ------------------------------------------

import logging
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import AuthErrorKind, ServiceError
from app.models.user import User, UserRoleAssignment, Role
from app.services.auth_service import normalize_email

logger = logging.getLogger(__name__)


def _parse_role(role_name: str) -> Role:
    try:
        return Role(role_name)
    except ValueError:
        raise ServiceError(AuthErrorKind.validation, "Invalid role")


def list_users(db: Session) -> List[User]:
    return db.query(User).filter(User.is_active == True).order_by(User.created_at).all()  # noqa: E712


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise ServiceError(AuthErrorKind.not_found, "User not found")
    return user


def update_user(db: Session, user_id: str, first_name: str, last_name: str,
                email: Optional[str] = None, allow_email_change: bool = False) -> User:
    user = get_user(db, user_id)

    user.first_name = first_name.strip()
    user.last_name = last_name.strip()

    if allow_email_change and email and normalize_email(email) != user.normalized_email:
        normalized = normalize_email(email)
        taken = db.query(User).filter(User.normalized_email == normalized, User.id != user.id).first()
        if taken:
            db.rollback()
            raise ServiceError(AuthErrorKind.validation, "Failed to update user", ["Email is already registered"])
        user.email = email.strip()
        user.normalized_email = normalized

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ServiceError(AuthErrorKind.validation, "Failed to update user", ["Email is already registered"])
    db.refresh(user)
    return user


def deactivate_user(db: Session, user_id: str, acting_user_id: str) -> User:
    if user_id == acting_user_id:
        raise ServiceError(AuthErrorKind.validation, "You cannot deactivate your own account")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ServiceError(AuthErrorKind.not_found, "User not found")

    user.is_active = False
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} deactivated by {acting_user_id}")
    return user


def assign_role(db: Session, user_id: str, role_name: str) -> User:
    role = _parse_role(role_name)
    user = get_user(db, user_id)
    if role in user.roles:
        raise ServiceError(AuthErrorKind.validation, "Failed to assign role", [f"User already in role '{role.value}'."])

    user.role_assignments.append(UserRoleAssignment(role=role))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ServiceError(AuthErrorKind.validation, "Failed to assign role", [f"User already in role '{role.value}'."])
    db.refresh(user)
    logger.info(f"Role {role.value} assigned to user {user_id}")
    return user


def remove_role(db: Session, user_id: str, role_name: str) -> User:
    role = _parse_role(role_name)
    user = get_user(db, user_id)
    assignment = next((a for a in user.role_assignments if a.role == role), None)
    if assignment is None:
        raise ServiceError(AuthErrorKind.validation, "Failed to remove role", [f"User is not in role '{role.value}'."])

    user.role_assignments.remove(assignment)
    db.commit()
    db.refresh(user)
    logger.info(f"Role {role.value} removed from user {user_id}")
    return user
