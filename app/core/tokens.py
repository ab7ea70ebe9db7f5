"""
Access token signing and validation.

Issues compact HS256 JWTs carrying the subject, roles and permissions of a
user, and validates them back into a typed AccessClaims value. Every
validation failure collapses to None; the reason is only logged.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, FrozenSet, Optional

from jose import jwt, JWTError

from app.core.authorization import permissions_for_roles
from app.core.clock import Clock, utcnow
from app.core.config import ALGORITHM, Settings

logger = logging.getLogger(__name__)

# Registered claims owned by the signer; callers cannot override them
RESERVED_CLAIMS = ("sub", "iss", "aud", "iat", "exp")


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class AccessClaims:
    """
    Validated access token claims.

    Attributes:
        subject: User id (sub claim)
        email: User email at issuance time
        roles: Role names at issuance time
        permissions: Permission literals derived from the roles
        issued_at: iat claim
        expires_at: exp claim
        token_id: jti claim
    """
    subject: str
    email: str
    roles: FrozenSet[str]
    permissions: FrozenSet[str]
    issued_at: datetime
    expires_at: datetime
    token_id: str


class TokenSigner:
    def __init__(self, settings: Settings, clock: Clock = utcnow):
        self.settings = settings
        self.clock = clock

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.access_token_expire_minutes)

    def issue(self, subject: str, claims: Dict[str, Any], ttl: timedelta) -> IssuedToken:
        # JWT timestamps are whole seconds
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + ttl

        payload = {k: v for k, v in claims.items() if k not in RESERVED_CLAIMS}
        payload.update({
            "sub": subject,
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        })
        token = jwt.encode(payload, self.settings.secret_key, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at)

    def issue_access_token(self, user) -> IssuedToken:
        roles = sorted(role.value for role in user.roles)
        claims = {
            "email": user.email,
            "roles": roles,
            "permissions": sorted(permissions_for_roles(roles)),
            "jti": secrets.token_urlsafe(16),
        }
        issued = self.issue(user.id, claims, self.access_token_ttl)
        logger.debug(f"Access token issued for user {user.id}")
        return issued

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify signature, issuer, audience and expiry; return the raw payload."""
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[ALGORITHM],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                options={
                    # expiry is checked below against the injected clock, with no leeway
                    "verify_exp": False,
                    "require_iat": True,
                    "require_sub": True,
                    "require_aud": True,
                    "require_iss": True,
                },
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {type(e).__name__}")
            return None

        try:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError, OverflowError):
            logger.debug("Token rejected: missing or malformed exp claim")
            return None
        if self.clock() >= expires_at:
            logger.debug("Token rejected: expired")
            return None
        return payload

    def validate(self, token: str) -> Optional[AccessClaims]:
        payload = self.decode(token)
        if payload is None:
            return None
        try:
            roles = payload.get("roles", [])
            permissions = payload.get("permissions", [])
            if not isinstance(roles, list) or not isinstance(permissions, list):
                raise TypeError("roles and permissions must be lists")
            return AccessClaims(
                subject=str(payload["sub"]),
                email=str(payload.get("email", "")),
                roles=frozenset(str(r) for r in roles),
                permissions=frozenset(str(p) for p in permissions),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
                token_id=str(payload.get("jti", "")),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.debug(f"Token rejected: malformed claims ({type(e).__name__})")
            return None
