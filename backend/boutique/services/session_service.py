# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Bearer tokens for the back office. Tokens are random, hashed in the
database and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout from Config.SESSION_HOURS (default 24)
- Revocable on logout and on password change
- Tracks client IP and user agent
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, AdminAccount
from boutique.time_utils import utcnow


@dataclass
class SessionContext:
    """What validate_session hands to the request: the account and its session row."""
    account: AdminAccount
    session: SessionToken


def session_lifetime() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_HOURS", 24))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy, so a fast hash is sufficient.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    account_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for an account.

    Returns (session_record, plaintext_token).
    Raises ValueError if the account does not exist or is inactive.
    """
    account = db.session.get(AdminAccount, account_id)
    if not account or not account.is_active:
        raise ValueError("Account not found")

    plaintext_token = generate_token()

    now = utcnow()
    session = SessionToken(
        account_id=account_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + session_lifetime(),
        user_agent=user_agent[:512] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Return a SessionContext for a live token, or None if the token is
    unknown, revoked, expired, or belongs to a deactivated account.

    Updates last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    account = session.account
    if not account or not account.is_active:
        session.is_revoked = True
        session.revoked_at = now
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(account=account, session=session)


def revoke_session(token: str) -> bool:
    """Revoke one token. Returns False if it was not found or already revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def revoke_all_account_sessions(account_id: int, *, keep_session_id: int | None = None) -> int:
    """
    Revoke every active session of an account, optionally sparing one.

    Does not commit; the caller decides when the revocation lands.
    """
    now = utcnow()

    query = db.session.query(SessionToken).filter_by(account_id=account_id, is_revoked=False)
    if keep_session_id is not None:
        query = query.filter(SessionToken.id != keep_session_id)

    count = 0
    for session in query.all():
        session.is_revoked = True
        session.revoked_at = now
        count += 1
    return count


def cleanup_expired_sessions() -> int:
    """Delete expired or revoked sessions older than 30 days. Returns count deleted."""
    now = utcnow()
    cutoff = now - timedelta(days=30)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True)
        ),
        SessionToken.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
