# padelbot/blueprints/bookings.py
"""
Superfície mínima de reservas usada pelo painel/admin.

Toda mutação termina chamando o Synchronizer para a reserva afetada; a
resposta inclui o SyncResult. Falha de sincronização -> 502 (a mutação
local já foi feita; o anúncio fica para a próxima reconciliação).
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from padelbot.blueprints.guards import json_body, require_int, require_internal_token
from padelbot.errors import NotFound, ValidationFailure
from padelbot.logging import get_logger
from padelbot.models import (
    add_registration,
    booking_exists,
    create_booking,
    create_location,
    ensure_user,
    remove_registration,
    set_booking_cancelled,
)

logger = get_logger(__name__)
bookings = Blueprint("bookings", __name__, url_prefix="/api/bookings")
bookings.before_request(require_internal_token)


def _sync(booking_id: int, status: int = 200, **extra):
    result = current_app.config["SYNCHRONIZER"].reconcile(booking_id)
    body = {"booking_id": booking_id, "sync": result.to_dict(), **extra}
    if not result.ok:
        logger.warning("bookings.sync_failed", extra=result.to_dict())
        return jsonify(body), 502
    return jsonify(body), status


def _db() -> str:
    return current_app.config["SQLITE_PATH"]


@bookings.post("")
def create():
    """
    Corpo:
    {
      "locationId": 1,                      # OU "location": {"name": "...", "url": "..."}
      "startTime": "2025-01-14T15:00:00Z",
      "endTime":   "2025-01-14T17:00:00Z",
      "price": 65, "courts": 2, "note": "..."
    }
    """
    data = json_body()
    (courts,) = require_int(data, "courts")
    if courts < 1:
        raise ValidationFailure("courts must be >= 1")

    start, end = data.get("startTime"), data.get("endTime")
    if not start or not end:
        raise ValidationFailure("startTime and endTime are required")
    try:
        price = float(data.get("price"))
    except (TypeError, ValueError):
        raise ValidationFailure("price is required")

    location_id = data.get("locationId")
    if location_id is None:
        loc = data.get("location") or {}
        if not isinstance(loc, dict) or not loc.get("name"):
            raise ValidationFailure("locationId or location.name is required")
        location_id = create_location(_db(), name=str(loc["name"]), url=loc.get("url"))

    try:
        booking_id = create_booking(
            _db(),
            location_id=int(location_id),
            start_time=str(start),
            end_time=str(end),
            price=price,
            courts=courts,
            note=data.get("note"),
        )
    except ValueError as e:
        raise ValidationFailure(f"invalid booking: {e}")

    logger.info("bookings.created", extra={"booking_id": booking_id})
    return _sync(booking_id, 201)


@bookings.post("/<int:booking_id>/cancel")
def cancel(booking_id: int):
    if not set_booking_cancelled(_db(), booking_id, True):
        raise NotFound("Booking not found")
    logger.info("bookings.cancelled", extra={"booking_id": booking_id})
    return _sync(booking_id)


@bookings.post("/<int:booking_id>/restore")
def restore(booking_id: int):
    if not set_booking_cancelled(_db(), booking_id, False):
        raise NotFound("Booking not found")
    logger.info("bookings.restored", extra={"booking_id": booking_id})
    return _sync(booking_id)


@bookings.post("/<int:booking_id>/registrations")
def register(booking_id: int):
    data = json_body()
    (user_id,) = require_int(data, "userId")
    if not booking_exists(_db(), booking_id):
        raise NotFound("Booking not found")

    ensure_user(
        _db(),
        id=user_id,
        first_name=str(data.get("firstName") or data.get("username") or "Unknown"),
        username=data.get("username"),
    )
    created = add_registration(_db(), booking_id, user_id)
    logger.info("bookings.registered", extra={"booking_id": booking_id, "user_id": user_id, "registered": created})
    return _sync(booking_id, registered=created)


@bookings.delete("/<int:booking_id>/registrations/<int:user_id>")
def unregister(booking_id: int, user_id: int):
    if not booking_exists(_db(), booking_id):
        raise NotFound("Booking not found")
    removed = remove_registration(_db(), booking_id, user_id)
    logger.info("bookings.unregistered", extra={"booking_id": booking_id, "user_id": user_id, "removed": removed})
    return _sync(booking_id, removed=removed)
