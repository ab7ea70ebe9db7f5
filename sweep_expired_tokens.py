#!/usr/bin/env python3
"""
Expired Refresh Token Sweep
===========================

Deletes refresh tokens whose expiry date has passed. Expired tokens are
already rejected on use, so this only keeps the refresh_tokens table small.
The API process runs the same sweep periodically when
TOKEN_SWEEP_INTERVAL_SECONDS is greater than zero; this script is for cron
or one-off maintenance.

Usage:
    python sweep_expired_tokens.py
"""

import logging
from app.core.config import get_settings
from app.db.database import SessionLocal
from app.services.refresh_token_ledger import RefreshTokenLedger

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def sweep_expired_tokens() -> int:
    with SessionLocal() as db:
        deleted = RefreshTokenLedger(db, get_settings()).sweep_expired()
    logger.info(f"Sweep finished: {deleted} expired refresh token(s) removed")
    return deleted


if __name__ == "__main__":
    sweep_expired_tokens()
