from .user import User, UserRoleAssignment, RefreshToken, Role, DEFAULT_ROLE

__all__ = [
    "User", "UserRoleAssignment", "RefreshToken", "Role", "DEFAULT_ROLE",
]
