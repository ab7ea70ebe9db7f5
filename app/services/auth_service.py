# ------------------------------------------
# Authentication service
# - register()        : creates a user with the default role and a token pair
# - login()           : verifies credentials with lockout, returns a token pair
# - refresh()         : rotates a refresh token, returns a new token pair
# - revoke() / logout(): refresh-token revocation
# - change_password() : verifies the current password, applies the policy
# Expected failures come back as AuthResult(success=False); only storage
# errors propagate to the caller.
# ------------------------------------------

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.config import Settings
from app.core.errors import AuthErrorKind
from app.core.passwords import PasswordHasher, check_password_policy, get_password_hasher
from app.core.tokens import TokenSigner
from app.models.user import User, UserRoleAssignment, DEFAULT_ROLE
from app.services.refresh_token_ledger import RefreshTokenLedger

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
ACCOUNT_LOCKED = "Account is locked out"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
EMAIL_TAKEN = "User with this email already exists"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


@dataclass
class UserInfo:
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    roles: List[str]

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            roles=sorted(role.value for role in user.roles),
        )


@dataclass
class AuthResult:
    success: bool
    message: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    refresh_expires_at: Optional[datetime] = None
    user: Optional[UserInfo] = None
    errors: List[str] = field(default_factory=list)
    error_kind: Optional[AuthErrorKind] = None

    @classmethod
    def failure(cls, kind: AuthErrorKind, message: str, *errors: str) -> "AuthResult":
        return cls(success=False, message=message, errors=list(errors), error_kind=kind)


class AuthService:
    """
    Orchestrates credential checks, token issuance and the refresh-token ledger.

    One instance per request: it shares the request's database session with
    its ledger so that each operation commits as a single unit.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings,
        hasher: Optional[PasswordHasher] = None,
        signer: Optional[TokenSigner] = None,
        ledger: Optional[RefreshTokenLedger] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.clock = clock
        self.hasher = hasher or get_password_hasher(settings.bcrypt_rounds)
        self.signer = signer or TokenSigner(settings, clock=clock)
        self.ledger = ledger or RefreshTokenLedger(db, settings, clock=clock)

    def _find_by_email(self, normalized_email: str) -> Optional[User]:
        if not normalized_email:
            return None
        return self.db.query(User).filter(User.normalized_email == normalized_email).first()

    def _get_user(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self.db.query(User).filter(User.id == user_id).first()

    def _success(self, message: str, user: User, refresh_token: Optional[str] = None,
                 refresh_expires_at: Optional[datetime] = None) -> AuthResult:
        access = self.signer.issue_access_token(user)
        return AuthResult(
            success=True,
            message=message,
            access_token=access.token,
            refresh_token=refresh_token,
            expires_at=access.expires_at,
            refresh_expires_at=refresh_expires_at,
            user=UserInfo.from_user(user),
        )

    def register(self, email: str, password: str, first_name: str, last_name: str,
                 ip: str = "Unknown") -> AuthResult:
        normalized = normalize_email(email)
        if not normalized:
            return AuthResult.failure(AuthErrorKind.validation, "Failed to create user", "Email is required")

        if self._find_by_email(normalized):
            return AuthResult.failure(AuthErrorKind.validation, EMAIL_TAKEN, "Email is already registered")

        policy_errors = check_password_policy(password)
        if policy_errors:
            return AuthResult.failure(AuthErrorKind.validation, "Failed to create user", *policy_errors)

        now = self.clock()
        user = User(
            id=str(uuid.uuid4()),
            email=email.strip(),
            normalized_email=normalized,
            password_hash=self.hasher.hash(password),
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            is_active=True,
            created_at=now,
            failed_access_count=0,
        )
        user.role_assignments.append(UserRoleAssignment(role=DEFAULT_ROLE))
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError:
            # concurrent registration won the unique index on normalized_email
            self.db.rollback()
            return AuthResult.failure(AuthErrorKind.validation, EMAIL_TAKEN, "Email is already registered")

        refresh = self.ledger.issue(user.id, ip, commit=False)
        self.db.commit()
        logger.info(f"User registered: {user.id}")
        return self._success("User registered successfully", user, refresh.token, refresh.expires_at)

    def login(self, email: str, password: str, ip: str = "Unknown") -> AuthResult:
        now = self.clock()
        user = self._find_by_email(normalize_email(email))
        if user is None or not user.is_active:
            self.hasher.dummy_verify(password)
            logger.warning("Login failed: unknown or inactive account")
            return AuthResult.failure(AuthErrorKind.authentication, INVALID_CREDENTIALS, "Authentication failed")

        if user.is_locked_out(now):
            logger.warning(f"Login rejected: user {user.id} is locked out")
            return AuthResult.failure(AuthErrorKind.account_locked, ACCOUNT_LOCKED, "Authentication failed")

        if not self.hasher.verify(password, user.password_hash):
            if self._record_failed_attempt(user.id, now):
                logger.warning(f"User {user.id} locked out after {self.settings.lockout_threshold} failed attempts")
                return AuthResult.failure(AuthErrorKind.account_locked, ACCOUNT_LOCKED, "Authentication failed")
            logger.warning(f"Login failed: invalid password for user {user.id}")
            return AuthResult.failure(AuthErrorKind.authentication, INVALID_CREDENTIALS, "Authentication failed")

        if not self._record_successful_login(user.id, now):
            # a concurrent failure locked the account after our lockout check
            self.db.rollback()
            return AuthResult.failure(AuthErrorKind.account_locked, ACCOUNT_LOCKED, "Authentication failed")

        self.ledger.revoke_stale_for_user(
            user.id, timedelta(days=self.settings.refresh_token_stale_days), commit=False
        )
        refresh = self.ledger.issue(user.id, ip, commit=False)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User logged in: {user.id}")
        return self._success("Login successful", user, refresh.token, refresh.expires_at)

    def _record_failed_attempt(self, user_id: str, now: datetime) -> bool:
        """Increment the failure counter; lock the account when it reaches the threshold.

        Returns:
            True if this attempt put the account into lockout
        """
        self.db.query(User).filter(User.id == user_id).update(
            {User.failed_access_count: User.failed_access_count + 1},
            synchronize_session=False,
        )
        locked = self.db.query(User).filter(
            User.id == user_id,
            User.failed_access_count >= self.settings.lockout_threshold,
        ).update(
            {
                User.lockout_ends_at: now + timedelta(minutes=self.settings.lockout_minutes),
                User.failed_access_count: 0,
            },
            synchronize_session=False,
        )
        self.db.commit()
        return locked == 1

    def _record_successful_login(self, user_id: str, now: datetime) -> bool:
        updated = self.db.query(User).filter(
            User.id == user_id,
            User.is_active == True,  # noqa: E712
            or_(User.lockout_ends_at == None, User.lockout_ends_at <= now),  # noqa: E711
        ).update(
            {
                User.failed_access_count: 0,
                User.lockout_ends_at: None,
                User.last_login_at: now,
            },
            synchronize_session=False,
        )
        return updated == 1

    def refresh(self, refresh_token: str, ip: str = "Unknown") -> AuthResult:
        now = self.clock()
        record = self.ledger.find(refresh_token)
        if record is None or not record.is_active(now):
            if record is not None and self.settings.revoke_family_on_reuse and self.ledger.was_rotated(record):
                logger.warning(f"Rotated refresh token reused for user {record.user_id}; revoking all sessions")
                self.ledger.revoke_all_for_user(record.user_id, ip)
            else:
                logger.info("Refresh rejected: token unknown or inactive")
            return AuthResult.failure(AuthErrorKind.token_invalid, INVALID_REFRESH_TOKEN, "Token validation failed")

        user = self._get_user(record.user_id)
        if user is None or not user.is_active:
            logger.warning(f"Refresh rejected: user {record.user_id} missing or inactive")
            return AuthResult.failure(AuthErrorKind.token_invalid, INVALID_REFRESH_TOKEN, "Token validation failed")

        rotated = self.ledger.rotate(refresh_token, ip)
        if rotated is None:
            return AuthResult.failure(AuthErrorKind.token_invalid, INVALID_REFRESH_TOKEN, "Token validation failed")

        self.db.refresh(user)
        return self._success("Token refreshed successfully", user, rotated.token, rotated.expires_at)

    def revoke(self, refresh_token: str, ip: str = "Unknown") -> bool:
        revoked = self.ledger.revoke(refresh_token, ip)
        if revoked:
            logger.info("Refresh token revoked by client request")
        return revoked

    def logout(self, user_id: str) -> bool:
        user = self._get_user(user_id)
        if user is None:
            return False
        self.ledger.revoke_all_for_user(user.id)
        logger.info(f"User logged out: {user.id}")
        return True

    def change_password(self, user_id: str, current_password: str, new_password: str) -> AuthResult:
        user = self._get_user(user_id)
        if user is None or not user.is_active:
            return AuthResult.failure(AuthErrorKind.not_found, "User not found")

        if not self.hasher.verify(current_password, user.password_hash):
            logger.warning(f"Password change rejected: wrong current password for user {user.id}")
            return AuthResult.failure(AuthErrorKind.authentication, "Failed to change password", "Incorrect password.")

        policy_errors = check_password_policy(new_password)
        if policy_errors:
            return AuthResult.failure(AuthErrorKind.validation, "Failed to change password", *policy_errors)

        updated = self.db.query(User).filter(
            User.id == user.id,
            User.password_hash == user.password_hash,
        ).update({User.password_hash: self.hasher.hash(new_password)}, synchronize_session=False)
        if updated != 1:
            self.db.rollback()
            return AuthResult.failure(AuthErrorKind.authentication, "Failed to change password",
                                      "Password was changed concurrently.")
        self.db.commit()
        logger.info(f"Password changed for user {user.id}")
        return AuthResult(success=True, message="Password changed successfully")

    def get_user_info(self, user_id: str) -> Optional[UserInfo]:
        user = self._get_user(user_id)
        if user is None:
            return None
        return UserInfo.from_user(user)

