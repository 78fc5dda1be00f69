"""Database models for the massage reservation backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    telephone = db.Column(db.String(30), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "user",
            "admin",
            "staff",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="user",
        server_default="user",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    auth_account = db.relationship(
        "AuthAccount",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    shops = db.relationship("Shop", back_populates="owner", lazy="dynamic")
    appointments = db.relationship("Appointment", back_populates="user", lazy="dynamic")

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }

    def to_dict(self) -> dict[str, object]:
        data = self.to_dict_basic()
        data["telephone"] = self.telephone
        data["created_at"] = _isoformat(self.created_at)
        return data


class AuthAccount(db.Model):
    """Credentials and password reset state for a user; never serialized."""

    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    # SHA-256 hex digest of the emailed token
    reset_token_hash = db.Column(db.String(64), index=True)
    reset_token_expires_at = db.Column(db.DateTime)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")

    def clear_reset_token(self) -> None:
        self.reset_token_hash = None
        self.reset_token_expires_at = None


class Shop(db.Model):
    __tablename__ = "shops"

    shop_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    address = db.Column(db.String(255), nullable=False)
    telephone = db.Column(db.String(15), nullable=False)
    open_time = db.Column(db.String(5), nullable=False)
    close_time = db.Column(db.String(5), nullable=False)
    # Legacy shops may have no owner; only admins can change those.
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    owner = db.relationship("User", back_populates="shops")
    # Appointments are removed explicitly before the shop (see BookingService.delete_shop).
    appointments = db.relationship("Appointment", back_populates="shop", lazy="dynamic", passive_deletes=True)

    def to_dict(self, fields: tuple[str, ...] | None = None) -> dict[str, object]:
        data = {
            "id": self.shop_id,
            "name": self.name,
            "address": self.address,
            "telephone": self.telephone,
            "open_time": self.open_time,
            "close_time": self.close_time,
            "user_id": self.user_id,
            "created_at": _isoformat(self.created_at),
        }
        if fields:
            data = {key: value for key, value in data.items() if key == "id" or key in fields}
        return data

    def to_dict_summary(self) -> dict[str, object]:
        return {
            "id": self.shop_id,
            "name": self.name,
            "address": self.address,
            "telephone": self.telephone,
        }


class Appointment(db.Model):
    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.shop_id"), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False)
    status = db.Column(
        db.Enum(
            "booked",
            "completed",
            "cancelled",
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="booked",
        server_default="booked",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    user = db.relationship("User", back_populates="appointments")
    shop = db.relationship("Shop", back_populates="appointments")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "user_id": self.user_id,
            "shop_id": self.shop_id,
            "shop": self.shop.to_dict_summary() if self.shop else None,
            "date": _isoformat(self.date),
            "status": self.status,
            "created_at": _isoformat(self.created_at),
        }
