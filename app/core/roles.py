import enum


class Role(str, enum.Enum):
    admin = "Admin"
    user = "User"


DEFAULT_ROLE = Role.user
