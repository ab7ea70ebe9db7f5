"""
Refresh Token Ledger
=====================================
Persisted refresh-token lifecycle: issue, rotate, revoke, sweep.

States per token:
- Active  -> Revoked (explicit revoke, logout, rotation, stale cleanup)
- Active  -> Expired (derived from expiry_date, never stored)
No state returns to Active.

Every transition is a conditional UPDATE keyed on the row still being
active, so concurrent callers racing on the same token get at most one
winner without in-process locks. Rotation revokes the old row and inserts
its successor inside one transaction: either both happen or neither does.

Only a SHA-256 hash of each token is stored; the plaintext is returned to
the caller once, at issuance.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.clock import Clock, as_utc, utcnow
from app.core.config import Settings
from app.models.user import RefreshToken

logger = logging.getLogger(__name__)

TOKEN_BYTES = 64


@dataclass(frozen=True)
class IssuedRefreshToken:
    token: str
    record: RefreshToken

    @property
    def expires_at(self) -> datetime:
        return as_utc(self.record.expiry_date)


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_refresh_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class RefreshTokenLedger:
    def __init__(self, db: Session, settings: Settings, clock: Clock = utcnow):
        self.db = db
        self.settings = settings
        self.clock = clock

    @property
    def lifetime(self) -> timedelta:
        return timedelta(days=self.settings.refresh_token_expire_days)

    def _active_filter(self, query, now: datetime):
        return query.filter(
            RefreshToken.is_revoked == False,  # noqa: E712
            RefreshToken.expiry_date > now,
        )

    def _new_record(self, user_id: str, ip: str, now: datetime) -> IssuedRefreshToken:
        token = generate_refresh_token()
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(token),
            created_at=now,
            created_by_ip=ip or "Unknown",
            expiry_date=now + self.lifetime,
            is_revoked=False,
        )
        self.db.add(record)
        return IssuedRefreshToken(token=token, record=record)

    def issue(self, user_id: str, ip: str, commit: bool = True) -> IssuedRefreshToken:
        issued = self._new_record(user_id, ip, self.clock())
        if commit:
            self.db.commit()
            self.db.refresh(issued.record)
        else:
            self.db.flush()
        return issued

    def find(self, token: str) -> Optional[RefreshToken]:
        if not token:
            return None
        return self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == hash_refresh_token(token)
        ).first()

    def rotate(self, old_token: str, ip: str) -> Optional[IssuedRefreshToken]:
        """Atomically revoke an active token and issue its successor.

        Returns:
            The new token, or None when the old token was not active at the
            moment of the conditional update (unknown, revoked, expired, or
            already consumed by a concurrent rotation).
        """
        if not old_token:
            return None

        now = self.clock()
        old_hash = hash_refresh_token(old_token)
        owner = self.db.query(RefreshToken.user_id).filter(RefreshToken.token_hash == old_hash).first()
        if owner is None:
            return None

        try:
            successor = generate_refresh_token()
            successor_hash = hash_refresh_token(successor)
            updated = self._active_filter(
                self.db.query(RefreshToken).filter(RefreshToken.token_hash == old_hash), now
            ).update(
                {
                    RefreshToken.is_revoked: True,
                    RefreshToken.revoked_at: now,
                    RefreshToken.revoked_by_ip: ip or "Unknown",
                    RefreshToken.replaced_by_token_hash: successor_hash,
                },
                synchronize_session=False,
            )
            if updated != 1:
                self.db.rollback()
                logger.info(f"Refresh token rotation lost or rejected for user {owner.user_id}")
                return None

            record = RefreshToken(
                user_id=owner.user_id,
                token_hash=successor_hash,
                created_at=now,
                created_by_ip=ip or "Unknown",
                expiry_date=now + self.lifetime,
                is_revoked=False,
            )
            self.db.add(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        logger.debug(f"Refresh token rotated for user {owner.user_id}")
        return IssuedRefreshToken(token=successor, record=record)

    def revoke(self, token: str, ip: Optional[str] = None) -> bool:
        """Revoke one active token. Unknown or already inactive tokens return False."""
        if not token:
            return False
        now = self.clock()
        updated = self._active_filter(
            self.db.query(RefreshToken).filter(RefreshToken.token_hash == hash_refresh_token(token)), now
        ).update(
            {
                RefreshToken.is_revoked: True,
                RefreshToken.revoked_at: now,
                RefreshToken.revoked_by_ip: ip,
            },
            synchronize_session=False,
        )
        self.db.commit()
        return updated == 1

    def revoke_all_for_user(self, user_id: str, ip: Optional[str] = None) -> int:
        now = self.clock()
        updated = self._active_filter(
            self.db.query(RefreshToken).filter(RefreshToken.user_id == user_id), now
        ).update(
            {
                RefreshToken.is_revoked: True,
                RefreshToken.revoked_at: now,
                RefreshToken.revoked_by_ip: ip,
            },
            synchronize_session=False,
        )
        self.db.commit()
        if updated:
            logger.info(f"Revoked {updated} refresh token(s) for user {user_id}")
        return updated

    def revoke_stale_for_user(self, user_id: str, older_than: timedelta, commit: bool = True) -> int:
        """Revoke active tokens created before now - older_than."""
        now = self.clock()
        cutoff = now - older_than
        updated = self._active_filter(
            self.db.query(RefreshToken).filter(
                RefreshToken.user_id == user_id,
                RefreshToken.created_at < cutoff,
            ),
            now,
        ).update(
            {RefreshToken.is_revoked: True, RefreshToken.revoked_at: now},
            synchronize_session=False,
        )
        if commit:
            self.db.commit()
        return updated

    def was_rotated(self, record: RefreshToken) -> bool:
        return bool(record.is_revoked and record.replaced_by_token_hash)

    def sweep_expired(self) -> int:
        """Delete rows past their expiry. Storage hygiene only."""
        now = self.clock()
        deleted = self.db.query(RefreshToken).filter(
            RefreshToken.expiry_date <= now
        ).delete(synchronize_session=False)
        self.db.commit()
        if deleted:
            logger.info(f"Swept {deleted} expired refresh token(s)")
        return deleted
