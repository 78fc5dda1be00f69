"""HTTP routes for massage shops and appointments."""
from __future__ import annotations

from flask import Blueprint, Flask, current_app, g, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required
from .booking import BookingService, parse_reference
from .errors import ValidationFailed
from .extensions import db
from .models import Shop
from .payloads import json_body
from .queries import build_shop_query
from .routes_auth import bp_auth

bp = Blueprint("api", __name__)


def _booking() -> BookingService:
    return BookingService(db.session, cap=current_app.config["BOOKING_CAP"])


def _database_error(message: str, exc: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception(message, exc_info=exc)
    return jsonify({"success": False, "error": "database_error", "message": message}), 500


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Massage shops ---


@bp.get("/shops")
def list_shops() -> tuple[dict[str, object], int]:
    """Return massage shops with filtering, projection, sorting and pagination.
    ---
    tags:
      - Shops
    parameters:
      - name: select
        in: query
        type: string
        description: Comma separated fields to return, e.g. name,address
      - name: sort
        in: query
        type: string
        default: -created_at
        description: Comma separated fields, prefix with - for descending
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 25
        maximum: 100
      - name: open_time[gte]
        in: query
        type: string
        description: Any filterable field accepts [gt], [gte], [lt], [lte] or [in]
    responses:
      200:
        description: List of massage shops with pagination descriptors
      400:
        description: Invalid parameters
      500:
        description: Database error
    """
    params = build_shop_query(request.args)

    try:
        shop_query = params.apply(Shop.query)
        total = shop_query.count()
        shops = shop_query.order_by(*params.order_by).offset(params.offset).limit(params.limit).all()
    except SQLAlchemyError as exc:
        return _database_error("Cannot fetch massage shops", exc)

    return jsonify({
        "success": True,
        "count": len(shops),
        "pagination": params.pagination(total),
        "data": [shop.to_dict(params.fields) for shop in shops],
    }), 200


@bp.get("/shops/<shop_id>")
def get_shop(shop_id: str) -> tuple[dict[str, object], int]:
    """Get a single massage shop.
    ---
    tags:
      - Shops
    parameters:
      - name: shop_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: The massage shop
      404:
        description: Massage shop not found
    """
    shop_id = parse_reference(shop_id, "shop")

    try:
        shop = _booking().get_shop(shop_id)
    except SQLAlchemyError as exc:
        return _database_error("Cannot fetch massage shop", exc)

    return jsonify({"success": True, "data": shop.to_dict()}), 200


@bp.post("/shops")
@login_required
def create_shop() -> tuple[dict[str, object], int]:
    """Create a massage shop owned by the caller.
    ---
    tags:
      - Shops
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
              example: Aroma Spa Bangkok
            address:
              type: string
              example: 123 Sukhumvit Road, Klongtoey, Bangkok
            telephone:
              type: string
              example: "0812345678"
            open_time:
              type: string
              example: "10:00"
            close_time:
              type: string
              example: "22:00"
          required:
            - name
            - address
            - telephone
            - open_time
            - close_time
    responses:
      201:
        description: Massage shop created
      400:
        description: Invalid payload
      401:
        description: Not signed in
      403:
        description: Role may not create shops
    """
    payload = json_body()
    policy = current_app.config["SHOP_CREATION_POLICY"]

    try:
        shop = _booking().create_shop(g.current_user, payload, policy)
    except SQLAlchemyError as exc:
        return _database_error("Cannot create massage shop", exc)

    return jsonify({"success": True, "data": shop.to_dict()}), 201


@bp.put("/shops/<shop_id>")
@login_required
def update_shop(shop_id: str) -> tuple[dict[str, object], int]:
    """Update the fields present in the body; omitted fields are kept.
    ---
    tags:
      - Shops
    parameters:
      - name: shop_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Massage shop updated
      400:
        description: Invalid payload, or the shop has no owner and the caller is not an admin
      403:
        description: Caller is neither the owner nor an admin
      404:
        description: Massage shop not found
    """
    shop_id = parse_reference(shop_id, "shop")
    payload = json_body()

    try:
        shop = _booking().update_shop(g.current_user, shop_id, payload)
    except SQLAlchemyError as exc:
        return _database_error("Cannot update massage shop", exc)

    return jsonify({"success": True, "data": shop.to_dict()}), 200


@bp.delete("/shops/<shop_id>")
@login_required
def delete_shop(shop_id: str) -> tuple[dict[str, object], int]:
    """Delete a massage shop together with all of its appointments.
    ---
    tags:
      - Shops
    parameters:
      - name: shop_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Massage shop and its appointments deleted
      403:
        description: Caller is neither the owner nor an admin
      404:
        description: Massage shop not found
    """
    shop_id = parse_reference(shop_id, "shop")
    caller = g.current_user

    try:
        removed = _booking().delete_shop(caller, shop_id)
    except SQLAlchemyError as exc:
        return _database_error("Cannot delete massage shop", exc)

    current_app.logger.info(
        "User %s deleted shop %s and %s appointment(s)", caller.user_id, shop_id, removed
    )
    return jsonify({"success": True, "data": {}}), 200


# --- Appointments ---


def _appointments_response(shop_id: int | None):
    try:
        appointments = _booking().list_appointments(g.current_user, shop_id)
    except SQLAlchemyError as exc:
        return _database_error("Cannot find appointments", exc)

    return jsonify({
        "success": True,
        "count": len(appointments),
        "data": [appointment.to_dict() for appointment in appointments],
    }), 200


def _create_appointment_response(shop_reference, date):
    caller = g.current_user
    try:
        appointment = _booking().create_appointment(caller, shop_reference, date)
    except SQLAlchemyError as exc:
        return _database_error("Cannot create appointment", exc)

    return jsonify({"success": True, "data": appointment.to_dict()}), 201


@bp.get("/appointments")
@login_required
def list_appointments() -> tuple[dict[str, object], int]:
    """List appointments visible to the caller.
    ---
    tags:
      - Appointments
    parameters:
      - name: shop
        in: query
        type: integer
        description: Restrict to one shop (admin and staff only)
    responses:
      200:
        description: Admin and staff see every appointment, other users only their own
      401:
        description: Not signed in
    """
    shop_param = request.args.get("shop")
    shop_id = parse_reference(shop_param, "shop") if shop_param else None
    return _appointments_response(shop_id)


@bp.get("/shops/<shop_id>/appointments")
@login_required
def list_shop_appointments(shop_id: str) -> tuple[dict[str, object], int]:
    """List appointments for one shop (filter applies to admin and staff).
    ---
    tags:
      - Appointments
    parameters:
      - name: shop_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: List of appointments
      401:
        description: Not signed in
    """
    return _appointments_response(parse_reference(shop_id, "shop"))


@bp.get("/appointments/<appointment_id>")
@login_required
def get_appointment(appointment_id: str) -> tuple[dict[str, object], int]:
    """Get one appointment with its shop.
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        required: true
        type: integer
    responses:
      200:
        description: The appointment
      403:
        description: Caller may not view this appointment
      404:
        description: Not found
    """
    appointment_id = parse_reference(appointment_id, "appointment")

    try:
        appointment = _booking().get_appointment(g.current_user, appointment_id)
    except SQLAlchemyError as exc:
        return _database_error("Cannot find appointment", exc)

    return jsonify({"success": True, "data": appointment.to_dict()}), 200


@bp.post("/appointments")
@login_required
def create_appointment() -> tuple[dict[str, object], int]:
    """Book an appointment for the caller.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            shop:
              type: integer
            date:
              type: string
              format: date-time
          required:
            - shop
            - date
    responses:
      201:
        description: Appointment created
      400:
        description: Invalid shop reference, invalid date or booking limit reached
      404:
        description: Massage shop not found
    """
    payload = json_body()
    if payload.get("shop") is None:
        raise ValidationFailed("Please provide a massage shop")
    return _create_appointment_response(payload["shop"], payload.get("date"))


@bp.post("/shops/<shop_id>/appointments")
@login_required
def create_shop_appointment(shop_id: str) -> tuple[dict[str, object], int]:
    """Book an appointment at the shop named in the path.
    ---
    tags:
      - Appointments
    parameters:
      - name: shop_id
        in: path
        type: integer
        required: true
    responses:
      201:
        description: Appointment created
      400:
        description: Invalid date or booking limit reached
      404:
        description: Massage shop not found
    """
    shop_id = parse_reference(shop_id, "shop")
    payload = json_body()
    return _create_appointment_response(shop_id, payload.get("date"))


@bp.put("/appointments/<appointment_id>")
@login_required
def update_appointment(appointment_id: str) -> tuple[dict[str, object], int]:
    """Update shop, date or status; omitted fields keep their values.
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        required: true
        type: integer
      - in: body
        name: body
        schema:
          type: object
          properties:
            shop:
              type: integer
            date:
              type: string
              format: date-time
            status:
              type: string
              enum: [booked, completed, cancelled]
    responses:
      200:
        description: Appointment updated
      400:
        description: Invalid input
      403:
        description: Caller is neither the owner nor an admin
      404:
        description: Appointment or shop not found
    """
    appointment_id = parse_reference(appointment_id, "appointment")
    payload = json_body()

    try:
        appointment = _booking().update_appointment(g.current_user, appointment_id, payload)
    except SQLAlchemyError as exc:
        return _database_error("Cannot update appointment", exc)

    return jsonify({"success": True, "data": appointment.to_dict()}), 200


@bp.delete("/appointments/<appointment_id>")
@login_required
def delete_appointment(appointment_id: str) -> tuple[dict[str, object], int]:
    """Delete an appointment.
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        required: true
        type: integer
    responses:
      200:
        description: Appointment deleted
      403:
        description: Caller is neither the owner nor an admin
      404:
        description: Appointment not found
    """
    appointment_id = parse_reference(appointment_id, "appointment")

    try:
        _booking().delete_appointment(g.current_user, appointment_id)
    except SQLAlchemyError as exc:
        return _database_error("Cannot delete appointment", exc)

    return jsonify({"success": True, "data": {}}), 200


def register_routes(app: Flask) -> None:
    app.register_blueprint(bp)
    app.register_blueprint(bp_auth)
