# padelbot/blueprints/messages.py
"""
Endpoints internos de manutenção das mensagens do chat.

- POST /api/telegram/update-message   {chatId, messageId} -> reconcilia a reserva dessa mensagem
- POST /api/telegram/update-messages  {bookingIds?}       -> reconcilia várias (padrão: todas publicadas)
- POST /api/telegram/post-booking     {bookingId}         -> publica (ou atualiza) o anúncio
- POST /api/telegram/delete-message   {messageId, chatId} -> apaga a mensagem e desfaz a associação
- POST /api/telegram/cleanup-messages  {}                  -> confere as mensagens vivas; sumidas viram absent
- POST /api/telegram/pin-message       {messageId, chatId, disableNotification?}
- POST /api/telegram/unpin-message     {chatId, messageId?}

Todos passam por require_internal_token. Qualquer outro método -> 405 JSON
(handler registrado em create_app).
"""

from __future__ import annotations

import sqlite3
from flask import Blueprint, current_app, jsonify

from padelbot.blueprints.guards import json_body, require_int, require_internal_token
from padelbot.errors import NotFound, ValidationFailure
from padelbot.logging import get_logger
from padelbot.models import POSTED, STALE, booking_exists
from padelbot.telegram import TelegramError

logger = get_logger(__name__)
messages = Blueprint("messages", __name__, url_prefix="/api/telegram")
messages.before_request(require_internal_token)


@messages.post("/update-message")
def update_message():
    chat_id, message_id = require_int(json_body(), "chatId", "messageId")
    store = current_app.config["MESSAGE_STORE"]
    sync = current_app.config["SYNCHRONIZER"]

    record = store.find_by_message(chat_id, message_id)
    if record is None:
        logger.warning("update_message.unknown", extra={"chat_id": chat_id, "message_id": message_id})
        return jsonify({"error": "Message not found"}), 500

    result = sync.reconcile(record.booking_id)
    logger.info("update_message.done", extra=result.to_dict())
    if not result.ok:
        return jsonify({"error": result.error or "sync failed", "result": result.to_dict()}), 500
    return jsonify({"success": True, "action": result.action, "booking_id": result.booking_id,
                    "message_id": result.message_id})


@messages.post("/update-messages")
def update_messages():
    data = json_body()
    store = current_app.config["MESSAGE_STORE"]
    sync = current_app.config["SYNCHRONIZER"]

    raw_ids = data.get("bookingIds")
    if raw_ids is None:
        booking_ids = [r.booking_id for r in store.list_by_status(POSTED, STALE)]
    else:
        if not isinstance(raw_ids, list):
            raise ValidationFailure("bookingIds must be a list")
        try:
            booking_ids = [int(b) for b in raw_ids]
        except (TypeError, ValueError):
            raise ValidationFailure("bookingIds must contain integers")

    results = [sync.reconcile(bid).to_dict() for bid in dict.fromkeys(booking_ids)]
    failed = sum(1 for r in results if not r["ok"])
    logger.info("update_messages.done", extra={"total": len(results), "failed": failed})
    return jsonify({"success": failed == 0, "total": len(results), "failed": failed, "results": results})


@messages.post("/post-booking")
def post_booking():
    (booking_id,) = require_int(json_body(), "bookingId")
    db_path = current_app.config["SQLITE_PATH"]
    if not booking_exists(db_path, booking_id):
        raise NotFound("Booking not found")

    result = current_app.config["SYNCHRONIZER"].reconcile(booking_id)
    logger.info("post_booking.done", extra=result.to_dict())
    if not result.ok:
        return jsonify({"error": result.error or "sync failed", "result": result.to_dict()}), 500
    return jsonify({"success": True, "action": result.action, "booking_id": booking_id,
                    "message_id": result.message_id})


@messages.post("/delete-message")
def delete_message():
    message_id, chat_id = require_int(json_body(), "messageId", "chatId")
    client = current_app.config["TELEGRAM_CLIENT"]
    store = current_app.config["MESSAGE_STORE"]

    try:
        client.delete_message(chat_id, message_id)
    except TelegramError as e:
        logger.warning(
            "delete_message.telegram_failed",
            extra={"chat_id": chat_id, "message_id": message_id, "kind": e.kind},
        )
        return jsonify({"error": e.description or e.kind}), 400

    # a mensagem já saiu do chat; falha local só vai pro log
    try:
        updated = store.mark_deleted_by_message(chat_id, message_id)
        logger.info("delete_message.done", extra={"chat_id": chat_id, "message_id": message_id,
                                                  "records": updated})
    except sqlite3.Error as e:
        logger.error(
            "delete_message.store_failed",
            extra={"chat_id": chat_id, "message_id": message_id, "err": str(e)},
        )
    return jsonify({"success": True})


@messages.post("/cleanup-messages")
def cleanup_messages():
    cfg = current_app.config
    try:
        counts = cfg["SYNCHRONIZER"].sweep(delay=float(cfg.get("CLEANUP_DELAY_SECONDS") or 0))
    except sqlite3.Error as e:
        logger.error("cleanup_messages.fetch_failed", extra={"err": str(e)})
        return jsonify({"error": "Failed to fetch messages"}), 500

    if counts["checked"] == 0:
        return jsonify({"success": True, "message": "No active messages to check", "checked": 0, "cleaned": 0})
    return jsonify(
        {
            "success": True,
            "message": f"Cleanup completed. Checked {counts['checked']} messages, "
                       f"cleaned {counts['cleaned']} deleted messages.",
            **counts,
        }
    )


@messages.post("/pin-message")
def pin_message():
    data = json_body()
    message_id, chat_id = require_int(data, "messageId", "chatId")
    client = current_app.config["TELEGRAM_CLIENT"]

    try:
        client.pin_chat_message(chat_id, message_id, disable_notification=bool(data.get("disableNotification")))
    except TelegramError as e:
        logger.warning("pin_message.telegram_failed", extra={"chat_id": chat_id, "message_id": message_id,
                                                            "kind": e.kind})
        return jsonify({"error": e.description or "Failed to pin message"}), 400

    # estado local é só informativo
    try:
        current_app.config["MESSAGE_STORE"].set_pinned(chat_id, message_id, True)
    except sqlite3.Error as e:
        logger.error("pin_message.store_failed", extra={"chat_id": chat_id, "message_id": message_id, "err": str(e)})
    logger.info("pin_message.done", extra={"chat_id": chat_id, "message_id": message_id})
    return jsonify({"success": True})


@messages.post("/unpin-message")
def unpin_message():
    data = json_body()
    (chat_id,) = require_int(data, "chatId")
    message_id = require_int(data, "messageId")[0] if data.get("messageId") is not None else None
    client = current_app.config["TELEGRAM_CLIENT"]
    store = current_app.config["MESSAGE_STORE"]

    try:
        client.unpin_chat_message(chat_id, message_id)
    except TelegramError as e:
        logger.warning("unpin_message.telegram_failed", extra={"chat_id": chat_id, "message_id": message_id,
                                                              "kind": e.kind})
        return jsonify({"error": e.description or "Failed to unpin message"}), 400

    try:
        if message_id is not None:
            store.set_pinned(chat_id, message_id, False)
        else:
            store.clear_latest_pin(chat_id)
    except sqlite3.Error as e:
        logger.error("unpin_message.store_failed", extra={"chat_id": chat_id, "message_id": message_id, "err": str(e)})
    logger.info("unpin_message.done", extra={"chat_id": chat_id, "message_id": message_id})
    return jsonify({"success": True})
