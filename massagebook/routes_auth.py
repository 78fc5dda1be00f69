"""Account and session routes: register, login, me, logout, password reset."""
from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import (build_session_token, clear_session_cookie, find_account_by_reset_token,
                   issue_reset_token, login_required, set_session_cookie)
from .errors import InvalidToken, UpstreamUnavailable, ValidationFailed
from .extensions import db
from .mailer import send_email
from .models import AuthAccount, User, utc_now
from .payloads import json_body, string_field
from .policy import Role

bp_auth = Blueprint("auth", __name__, url_prefix="/auth")

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent"


def _session_response(user: User, status: int = 200):
    token = build_session_token(user)
    response = jsonify({"success": True, "token": token, "user": user.to_dict_basic()})
    response.status_code = status
    return set_session_cookie(response, token)


def _database_error(message: str, exc: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"success": False, "error": "database_error", "message": message}), 500


@bp_auth.post("/register")
def register_user():
    """Register a new account and sign it in.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            telephone:
              type: string
            email:
              type: string
            password:
              type: string
            role:
              type: string
              enum: [user, staff, admin]
          required:
            - name
            - telephone
            - email
            - password
    responses:
      200:
        description: Registered; returns a session token and sets the token cookie
      400:
        description: Missing fields, role not open for registration, or email already in use
      500:
        description: Server error
    """
    payload = json_body()

    name = string_field(payload, "name")
    telephone = string_field(payload, "telephone")
    email = string_field(payload, "email").lower()
    password = string_field(payload, "password", strip=False)
    role = string_field(payload, "role").lower() or Role.USER.value

    if not name or not telephone or not email or not password:
        raise ValidationFailed("Please provide name, telephone, email, and password")

    try:
        Role.parse(role)
    except ValueError:
        raise ValidationFailed(f"role must be one of: {', '.join(r.value for r in Role)}") from None
    if role not in current_app.config["REGISTRATION_ROLES"]:
        raise ValidationFailed(f"role '{role}' cannot be chosen at registration")

    if User.query.filter_by(email=email).first():
        raise ValidationFailed("email address is already in use")

    try:
        new_user = User(name=name, telephone=telephone, email=email, role=role)
        db.session.add(new_user)
        db.session.flush()  # user_id is needed for the AuthAccount

        db.session.add(AuthAccount(user_id=new_user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error("Failed to register new user", exc)

    return _session_response(new_user)


@bp_auth.post("/login")
def login():
    """Authenticate with email and password.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
          required:
            - email
            - password
    responses:
      200:
        description: Login successful, returns a session token and sets the token cookie
      400:
        description: Missing fields or invalid credentials
      500:
        description: Server error
    """
    payload = json_body()

    email = string_field(payload, "email").lower()
    password = string_field(payload, "password", strip=False)

    if not email or not password:
        raise ValidationFailed("Please provide an email and password")

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )

    # Same answer for unknown email and wrong password.
    if not record or not check_password_hash(record[1].password_hash, password):
        return jsonify({"success": False, "error": "invalid_credentials", "message": "Invalid credentials"}), 400

    user, auth_account = record
    auth_account.last_login_at = utc_now()

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error("Failed to update last login timestamp", exc)

    return _session_response(user)


@bp_auth.get("/me")
@login_required
def get_me():
    """Return the signed-in user.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Current user
      401:
        description: Not signed in
    """
    return jsonify({"success": True, "data": g.current_user.to_dict()}), 200


@bp_auth.get("/logout")
@login_required
def logout():
    """Clear the session cookie.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Signed out
    """
    response = jsonify({"success": True, "data": {}})
    return clear_session_cookie(response)


@bp_auth.post("/forgotpassword")
def forgot_password():
    """Email a single-use password reset link.

    The response is the same whether or not the email is registered.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
          required:
            - email
    responses:
      200:
        description: Generic confirmation
      400:
        description: Email missing
      500:
        description: Email could not be sent
    """
    payload = json_body()
    email = string_field(payload, "email").lower()
    if not email:
        raise ValidationFailed("Please provide an email")

    account = (
        AuthAccount.query.join(User, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )
    if account is None:
        current_app.logger.info("Password reset requested for unknown email")
        return jsonify({"success": True, "data": FORGOT_PASSWORD_MESSAGE}), 200

    raw_token = issue_reset_token(account)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error("Failed to store password reset token", exc)

    reset_url = f"{request.host_url}auth/resetpassword/{raw_token}"
    minutes = current_app.config["RESET_TOKEN_EXPIRE_MINUTES"]
    message = (
        "You are receiving this email because you (or someone else) requested a password reset.\n\n"
        f"Please make a PUT request to:\n\n{reset_url}\n\n"
        f"This link expires in {minutes} minutes."
    )

    try:
        send_email(to=email, subject="Password reset token", message=message)
    except UpstreamUnavailable:
        # Never leave a live token behind when the email did not go out.
        account.clear_reset_token()
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            return _database_error("Failed to clear password reset token", exc)
        raise

    current_app.logger.info("Password reset email sent for user %s", account.user_id)
    return jsonify({"success": True, "data": FORGOT_PASSWORD_MESSAGE}), 200


@bp_auth.put("/resetpassword/<token>")
def reset_password(token: str):
    """Set a new password with a reset token; the token is consumed.
    ---
    tags:
      - Authentication
    parameters:
      - name: token
        in: path
        type: string
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            password:
              type: string
          required:
            - password
    responses:
      200:
        description: Password changed; returns a fresh session
      400:
        description: Invalid or expired token, or password missing
    """
    payload = json_body()
    password = string_field(payload, "password", strip=False)
    if not password:
        raise ValidationFailed("Please provide a new password")

    account = find_account_by_reset_token(token)
    if account is None:
        raise InvalidToken("Invalid or expired token")

    account.password_hash = generate_password_hash(password)
    account.clear_reset_token()

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return _database_error("Failed to reset password", exc)

    current_app.logger.info("Password reset for user %s", account.user_id)
    return _session_response(account.user)
