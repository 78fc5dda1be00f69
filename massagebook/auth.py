"""Session tokens, request identity and password reset tokens."""
from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta
from functools import wraps

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import Unauthenticated
from .extensions import db
from .models import AuthAccount, User, utc_now

TOKEN_COOKIE = "token"
SECONDS_PER_DAY = 24 * 60 * 60


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")


def _build_token(payload: dict[str, object]) -> str:
    return _serializer().dumps(payload)


def build_session_token(user: User) -> str:
    return _build_token({"user_id": user.user_id, "role": user.role})


def _token_from_request() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    cookie = request.cookies.get(TOKEN_COOKIE)
    if cookie and cookie != "none":
        return cookie
    return None


def get_jwt_identity() -> int | None:
    """Return the user id carried by the request's session token, if any.

    Tokens come from ``Authorization: Bearer`` or the ``token`` cookie and
    expire after ``TOKEN_EXPIRE_DAYS``.
    """
    token = _token_from_request()
    if not token:
        return None

    max_age = current_app.config["TOKEN_EXPIRE_DAYS"] * SECONDS_PER_DAY
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Rejected expired session token")
        return None
    except BadSignature:
        return None

    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    return user_id if isinstance(user_id, int) else None


def get_current_user() -> User | None:
    user_id = get_jwt_identity()
    return db.session.get(User, user_id) if user_id is not None else None


def login_required(view):
    """Reject the request with 401 unless it carries a valid session.

    The signed-in user is available to the view as ``g.current_user``.
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        user = get_current_user()
        if user is None:
            raise Unauthenticated()
        g.current_user = user
        return view(*args, **kwargs)

    return wrapper


def set_session_cookie(response, token: str):
    days = current_app.config["COOKIE_EXPIRE_DAYS"]
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=days * SECONDS_PER_DAY,
        expires=utc_now() + timedelta(days=days),
        httponly=True,
        secure=current_app.config.get("APP_ENV") == "production",
    )
    return response


def clear_session_cookie(response):
    response.set_cookie(
        TOKEN_COOKIE,
        "none",
        max_age=10,
        expires=utc_now() + timedelta(seconds=10),
        httponly=True,
    )
    return response


# -- password reset ----------------------------------------------------


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def issue_reset_token(account: AuthAccount) -> str:
    """Store a hashed reset token on the account and return the raw token.

    The caller commits; the raw token is only ever sent out of band.
    """
    raw_token = secrets.token_hex(20)
    minutes = current_app.config["RESET_TOKEN_EXPIRE_MINUTES"]
    account.reset_token_hash = hash_reset_token(raw_token)
    account.reset_token_expires_at = utc_now() + timedelta(minutes=minutes)
    return raw_token


def find_account_by_reset_token(raw_token: str) -> AuthAccount | None:
    return (
        AuthAccount.query.filter(
            AuthAccount.reset_token_hash == hash_reset_token(raw_token),
            AuthAccount.reset_token_expires_at > utc_now(),
        )
        .first()
    )
