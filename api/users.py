from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authorization import Permission
from app.core.security import get_current_claims, require_owner_or_admin, require_permission, require_roles
from app.core.tokens import AccessClaims
from app.db.database import get_db
from app.models.user import Role
from app.schemas.user import (
    AssignRoleRequest, MessageResponse, UpdateUserRequest,
    UserDataResponse, UserInfoResponse, UserListResponse,
)
from app.services import user_service
from app.services.auth_service import UserInfo

router = APIRouter(prefix="/api/users", tags=["Users"])


def _to_response(user) -> UserInfoResponse:
    return UserInfoResponse.from_info(UserInfo.from_user(user))


@router.get("", response_model=UserListResponse)
def list_users(
    db: Session = Depends(get_db),
    claims: AccessClaims = Depends(require_roles(Role.admin)),
):
    users = user_service.list_users(db)
    return UserListResponse(success=True, data=[_to_response(user) for user in users])


@router.get("/{user_id}", response_model=UserDataResponse, response_model_exclude_none=True)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    claims: AccessClaims = Depends(require_roles(Role.admin)),
):
    user = user_service.get_user(db, user_id)
    return UserDataResponse(success=True, data=_to_response(user))


@router.put("/{user_id}", response_model=UserDataResponse, response_model_exclude_none=True)
def update_user(
    user_id: str,
    payload: UpdateUserRequest,
    db: Session = Depends(get_db),
    claims: AccessClaims = Depends(get_current_claims),
):
    # users may edit themselves; admins may edit anyone, including email
    require_owner_or_admin(user_id, claims)
    is_admin = Role.admin.value in claims.roles

    user = user_service.update_user(
        db,
        user_id,
        first_name=payload.firstName,
        last_name=payload.lastName,
        email=payload.email,
        allow_email_change=is_admin,
    )
    return UserDataResponse(success=True, message="User updated successfully", data=_to_response(user))


@router.delete("/{user_id}", response_model=MessageResponse, response_model_exclude_none=True)
def deactivate_user(
    user_id: str,
    db: Session = Depends(get_db),
    claims: AccessClaims = Depends(require_roles(Role.admin)),
):
    user_service.deactivate_user(db, user_id, acting_user_id=claims.subject)
    return MessageResponse(success=True, message="User deactivated successfully")


@router.post("/{user_id}/roles", response_model=MessageResponse, response_model_exclude_none=True)
def assign_role(
    user_id: str,
    payload: AssignRoleRequest,
    db: Session = Depends(get_db),
    claims: AccessClaims = Depends(require_permission(Permission.manage_roles)),
):
    user_service.assign_role(db, user_id, payload.role)
    return MessageResponse(success=True, message=f"Role '{payload.role}' assigned successfully")


@router.delete("/{user_id}/roles/{role}", response_model=MessageResponse, response_model_exclude_none=True)
def remove_role(
    user_id: str,
    role: str,
    db: Session = Depends(get_db),
    claims: AccessClaims = Depends(require_permission(Permission.manage_roles)),
):
    user_service.remove_role(db, user_id, role)
    return MessageResponse(success=True, message=f"Role '{role}' removed successfully")
