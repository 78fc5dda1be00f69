"""Booking rules and the appointment/shop state transitions.

``BookingService`` is built per request around an explicit SQLAlchemy session.
It raises the errors from :mod:`massagebook.errors`; SQLAlchemy failures roll
the session back and propagate so the route can report a database error.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import (CapExceeded, Forbidden, InvalidReference, NoOwnerAssigned,
                     NotFound, ValidationFailed)
from .models import Appointment, Shop, User, utc_now
from .policy import (Decision, Role, can_view_all_appointments, can_view_appointment,
                     decide_mutation, decide_shop_creation)

DEFAULT_BOOKING_CAP = 3
APPOINTMENT_STATUSES = ("booked", "completed", "cancelled")
SHOP_FIELDS = ("name", "address", "telephone", "open_time", "close_time")
SHOP_NAME_MAX_LENGTH = 50
TELEPHONE_PATTERN = re.compile(r"^[0-9]{9,15}$")

logger = logging.getLogger(__name__)


def parse_reference(value: Any, label: str = "id") -> int:
    """Turn a client supplied identifier into a primary key."""
    if isinstance(value, bool):
        raise InvalidReference(f"{label} must be a positive integer")
    if isinstance(value, int):
        ref = value
    elif isinstance(value, str) and value.strip().isdigit():
        ref = int(value.strip())
    else:
        raise InvalidReference(f"{label} must be a positive integer")
    if ref <= 0:
        raise InvalidReference(f"{label} must be a positive integer")
    return ref


def parse_appointment_date(value: Any) -> datetime:
    """Parse an ISO 8601 date into naive UTC."""
    if not value or not isinstance(value, str):
        raise ValidationFailed("Please provide an appointment date")
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationFailed("date must be a valid ISO format datetime") from None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def role_of(user: User) -> Role:
    return Role.parse(user.role)


def _enforce(decision: Decision, message: str) -> None:
    if decision is Decision.NO_OWNER:
        raise NoOwnerAssigned()
    if decision is Decision.DENY:
        raise Forbidden(message)


class BookingService:
    def __init__(self, session: Session, cap: int = DEFAULT_BOOKING_CAP) -> None:
        self.session = session
        self.cap = cap

    # -- lookups -------------------------------------------------------

    def get_shop(self, shop_id: int) -> Shop:
        shop = self.session.get(Shop, shop_id)
        if shop is None:
            raise NotFound(f"No massage shop found with the id of {shop_id}")
        return shop

    def _get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.session.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFound(f"No appointment found with the id of {appointment_id}")
        return appointment

    def _authorize_appointment(self, caller: User, appointment: Appointment, action: str) -> None:
        decision = decide_mutation(role_of(caller), appointment.user_id == caller.user_id)
        _enforce(decision, f"User {caller.user_id} is not authorized to {action} this appointment")

    def _authorize_shop(self, caller: User, shop: Shop, action: str) -> None:
        decision = decide_mutation(
            role_of(caller),
            is_owner=shop.user_id == caller.user_id,
            has_owner=shop.user_id is not None,
        )
        _enforce(decision, f"Not authorized to {action} this massage shop")

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    # -- appointments --------------------------------------------------

    def list_appointments(self, caller: User, shop_id: int | None = None) -> list[Appointment]:
        query = self.session.query(Appointment)
        if can_view_all_appointments(role_of(caller)):
            if shop_id is not None:
                query = query.filter(Appointment.shop_id == shop_id)
        else:
            query = query.filter(Appointment.user_id == caller.user_id)
        return query.order_by(Appointment.date.desc()).all()

    def get_appointment(self, caller: User, appointment_id: int) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        if not can_view_appointment(role_of(caller), appointment.user_id == caller.user_id):
            raise Forbidden(f"User {caller.user_id} is not authorized to view this appointment")
        return appointment

    def count_appointments(self, user_id: int) -> int:
        return (
            self.session.query(func.count(Appointment.appointment_id))
            .filter(Appointment.user_id == user_id)
            .scalar()
        )

    def create_appointment(self, caller: User, shop_reference: Any, date: Any) -> Appointment:
        shop = self.get_shop(parse_reference(shop_reference, "shop"))
        when = parse_appointment_date(date)
        if when <= utc_now():
            raise ValidationFailed("date must be in the future")

        try:
            # Row lock on the caller serializes concurrent bookings by the same user,
            # so the count below cannot go stale before the insert commits.
            self.session.query(User).filter(User.user_id == caller.user_id).with_for_update().one()

            # Every status counts toward the cap, cancelled and completed included.
            existing = self.count_appointments(caller.user_id)
            if existing >= self.cap and role_of(caller) is not Role.ADMIN:
                self.session.rollback()
                logger.info("Booking cap reached for user %s (%s appointments)", caller.user_id, existing)
                raise CapExceeded(
                    f"The user with ID {caller.user_id} has already made {self.cap} appointments"
                )

            appointment = Appointment(
                user_id=caller.user_id,
                shop_id=shop.shop_id,
                date=when,
                status="booked",
            )
            self.session.add(appointment)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        return appointment

    def update_appointment(self, caller: User, appointment_id: int, patch: Mapping[str, Any]) -> Appointment:
        appointment = self._get_appointment(appointment_id)
        self._authorize_appointment(caller, appointment, "update")

        # Validate the whole patch before touching the row.
        changes: dict[str, Any] = {}
        if "shop" in patch:
            changes["shop_id"] = self.get_shop(parse_reference(patch["shop"], "shop")).shop_id

        if "date" in patch:
            when = parse_appointment_date(patch["date"])
            if when != appointment.date and when <= utc_now():
                raise ValidationFailed("date must be in the future")
            changes["date"] = when

        if "status" in patch:
            if patch["status"] not in APPOINTMENT_STATUSES:
                raise ValidationFailed(f"status must be one of: {', '.join(APPOINTMENT_STATUSES)}")
            changes["status"] = patch["status"]

        for field, value in changes.items():
            setattr(appointment, field, value)

        self._commit()
        return appointment

    def delete_appointment(self, caller: User, appointment_id: int) -> None:
        appointment = self._get_appointment(appointment_id)
        self._authorize_appointment(caller, appointment, "delete")
        self.session.delete(appointment)
        self._commit()

    # -- shops ---------------------------------------------------------

    def _validate_shop_fields(self, values: Mapping[str, Any], partial: bool) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for field in SHOP_FIELDS:
            raw = values.get(field)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                if not partial:
                    raise ValidationFailed(f"Please add a {field.replace('_', ' ')}")
                continue
            if not isinstance(raw, str):
                raise ValidationFailed(f"{field} must be a string")
            cleaned[field] = raw.strip()

        if "name" in cleaned and len(cleaned["name"]) > SHOP_NAME_MAX_LENGTH:
            raise ValidationFailed(f"Name can not be more than {SHOP_NAME_MAX_LENGTH} characters")
        if "telephone" in cleaned and not TELEPHONE_PATTERN.match(cleaned["telephone"]):
            raise ValidationFailed("Please add a valid telephone number")
        return cleaned

    def _ensure_unique_name(self, name: str, shop_id: int | None = None) -> None:
        query = self.session.query(Shop).filter(Shop.name == name)
        if shop_id is not None:
            query = query.filter(Shop.shop_id != shop_id)
        if query.first() is not None:
            raise ValidationFailed(f"A massage shop named '{name}' already exists")

    def _commit_shop(self) -> None:
        try:
            self.session.commit()
        except IntegrityError:
            # Lost a race on the unique name.
            self.session.rollback()
            raise ValidationFailed("A massage shop with that name already exists") from None
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def create_shop(self, caller: User, payload: Mapping[str, Any], policy: str) -> Shop:
        _enforce(
            decide_shop_creation(role_of(caller), policy),
            f"User role {caller.role} is not authorized to create a massage shop",
        )
        values = self._validate_shop_fields(payload, partial=False)
        self._ensure_unique_name(values["name"])

        shop = Shop(user_id=caller.user_id, **values)
        self.session.add(shop)
        self._commit_shop()
        return shop

    def update_shop(self, caller: User, shop_id: int, patch: Mapping[str, Any]) -> Shop:
        shop = self.get_shop(shop_id)
        self._authorize_shop(caller, shop, "update")

        values = self._validate_shop_fields(patch, partial=True)
        if "name" in values:
            self._ensure_unique_name(values["name"], shop.shop_id)

        if "user_id" in patch:
            if role_of(caller) is not Role.ADMIN:
                raise Forbidden("Only an admin can reassign the owner of a massage shop")
            owner_ref = patch["user_id"]
            if owner_ref is None:
                shop.user_id = None
            else:
                owner = self.session.get(User, parse_reference(owner_ref, "user_id"))
                if owner is None:
                    raise NotFound(f"No user found with the id of {owner_ref}")
                shop.user_id = owner.user_id

        for field, value in values.items():
            setattr(shop, field, value)

        self._commit_shop()
        return shop

    def delete_shop(self, caller: User, shop_id: int) -> int:
        """Delete a shop and all of its appointments in one transaction.

        Returns the number of appointments removed with it.
        """
        shop = self.get_shop(shop_id)
        self._authorize_shop(caller, shop, "delete")

        try:
            removed = (
                self.session.query(Appointment)
                .filter(Appointment.shop_id == shop.shop_id)
                .delete(synchronize_session=False)
            )
            self.session.delete(shop)
            self.session.commit()
        except SQLAlchemyError:
            # Neither the appointments nor the shop are gone.
            self.session.rollback()
            raise
        return removed
