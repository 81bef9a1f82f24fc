# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/boutique/routes/auth.py
"""
Authentication API routes

- Single administrator login behind auth_service.CredentialVerifier
- Bearer tokens, revoked on logout
- Failed logins always answer "Invalid credentials"
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthenticationError, PasswordValidationError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        account, token = auth_service.login(
            email,
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "account": account.to_dict(),
            "token": token,
            "message": "Login successful",
        }), 200

    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the session token in the Authorization header."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Return the logged-in account and session expiry."""
    return jsonify({
        "account": g.current_account.to_dict(),
        "session": g.session_token.to_dict(),
    }), 200


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Change the administrator password.

    Body: {"current_password": "...", "new_password": "..."}
    Other sessions of the account are revoked; the current one stays valid.
    """
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")

    if not current_password or not new_password:
        return jsonify({"error": "current_password and new_password required"}), 400

    try:
        revoked = auth_service.change_password(
            g.current_account,
            current_password,
            new_password,
            keep_session_id=g.session_token.id,
        )
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 400
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "Password updated successfully", "revoked_sessions": revoked}), 200
