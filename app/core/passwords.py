# ------------------------------------------
# Password hashing and password policy
# - PasswordHasher: bcrypt through passlib, verify never raises
# - check_password_policy(): rules applied at register / change time
# ------------------------------------------

import logging
import string
from functools import lru_cache
from typing import List
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def check_password_policy(password: str) -> List[str]:
    """Return the unmet password rules, empty when the password is acceptable."""
    if not isinstance(password, str):
        return ["Password is required."]

    errors = []
    # bcrypt rejects NUL bytes
    if "\x00" in password:
        errors.append("Passwords must not contain the NUL character.")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Passwords must be at least {MIN_PASSWORD_LENGTH} characters.")
    if not any(ch in string.digits for ch in password):
        errors.append("Passwords must have at least one digit ('0'-'9').")
    if not any(ch in string.ascii_lowercase for ch in password):
        errors.append("Passwords must have at least one lowercase ('a'-'z').")
    if not any(ch in string.ascii_uppercase for ch in password):
        errors.append("Passwords must have at least one uppercase ('A'-'Z').")
    if all(ch.isalnum() for ch in password):
        errors.append("Passwords must have at least one non alphanumeric character.")
    return errors


class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        self._dummy_hash = self.pwd_context.hash("dummy-password-for-timing")

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        if not isinstance(plain_password, str) or not isinstance(hashed_password, str) or not hashed_password:
            return False
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification failed on malformed hash: {type(e).__name__}")
            return False

    def dummy_verify(self, plain_password: str) -> None:
        """Spend one verification so unknown accounts cost the same as wrong passwords."""
        self.verify(plain_password or "", self._dummy_hash)


@lru_cache()
def get_password_hasher(rounds: int = 12) -> PasswordHasher:
    return PasswordHasher(rounds=rounds)
