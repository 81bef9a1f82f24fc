# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

The back office is gated by a single administrator login. Credential
checking sits behind the CredentialVerifier interface so a different
backend (an external identity provider, several staff accounts) can be
swapped in without touching the routes.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 6 characters
- Failed logins return the same generic error whatever the cause
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import AdminAccount
from boutique.time_utils import utcnow
from . import session_service


MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS = "Invalid credentials"


class PasswordValidationError(Exception):
    """Raised when a new password is rejected."""
    pass


class AuthenticationError(Exception):
    """Raised when credentials do not match. The message is always generic."""
    def __init__(self, message: str = INVALID_CREDENTIALS):
        super().__init__(message)


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """Validate then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


class CredentialVerifier(ABC):
    """Pluggable credential check used by the login route."""

    @abstractmethod
    def verify(self, email: str, password: str) -> AdminAccount | None:
        """Return the account when the credentials are valid, else None."""


class BcryptCredentialVerifier(CredentialVerifier):
    """Checks credentials against the admin_accounts table."""

    def verify(self, email: str, password: str) -> AdminAccount | None:
        if not email or not password:
            return None

        account = db.session.query(AdminAccount).filter(
            db.func.lower(AdminAccount.email) == email.strip().lower(),
            AdminAccount.is_active.is_(True),
        ).first()

        if not account:
            return None
        if not verify_password(password, account.password_hash):
            return None
        return account


def get_verifier() -> CredentialVerifier:
    return current_app.extensions.get("credential_verifier") or BcryptCredentialVerifier()


def login(
    email: str,
    password: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[AdminAccount, str]:
    """
    Verify credentials and open a session.

    Returns (account, plaintext_token). Raises AuthenticationError on any
    mismatch.
    """
    account = get_verifier().verify(email, password)
    if account is None:
        current_app.logger.warning("Failed login attempt", extra={"email": email, "ip_address": ip_address})
        raise AuthenticationError()

    account.last_login_at = utcnow()
    db.session.commit()

    _session, token = session_service.create_session(
        account.id, user_agent=user_agent, ip_address=ip_address
    )
    return account, token


def ensure_admin_account(email: str, password: str) -> tuple[AdminAccount, bool]:
    """
    Create the administrator account if none exists with this email.

    Returns (account, created). An existing account's password is left alone.
    """
    account = db.session.query(AdminAccount).filter(
        db.func.lower(AdminAccount.email) == email.strip().lower()
    ).first()
    if account:
        return account, False

    account = AdminAccount(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(account)
    db.session.commit()
    return account, True


def set_password(account: AdminAccount, new_password: str, *, keep_session_id: int | None = None) -> int:
    """
    Replace the password and revoke other sessions.

    Returns how many sessions were revoked.
    """
    account.password_hash = hash_password(new_password)
    account.password_changed_at = utcnow()
    revoked = session_service.revoke_all_account_sessions(account.id, keep_session_id=keep_session_id)
    db.session.commit()
    return revoked


def change_password(
    account: AdminAccount,
    current_password: str,
    new_password: str,
    *,
    keep_session_id: int | None = None,
) -> int:
    """
    Change the password of a logged-in account.

    Raises:
        AuthenticationError: current_password does not match
        PasswordValidationError: new_password is too short
    """
    if not verify_password(current_password or "", account.password_hash):
        raise AuthenticationError("Current password is incorrect")
    return set_password(account, new_password, keep_session_id=keep_session_id)
