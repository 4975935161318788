# padelbot/blueprints/webhook.py
"""
Webhook do Telegram: POST /api/telegram/webhook

Ordem fixa:
1) autentica (header X-Telegram-Bot-Api-Secret-Token, fallback ?secret_token=)
   -> falhou: 405 {"ok": false, "error": "Not allowed"} sem tocar em nada
2) garante a inicialização do bot (getMe, uma vez por processo)
3) loga o update (só depois de autenticado)
4) decodifica para UM evento e despacha para UM handler

Depois de autenticado a resposta é sempre 200 {"ok": true}, mesmo com erro no
handler: o Telegram reenvia updates não confirmados indefinidamente.
"""

from __future__ import annotations

import hmac
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from flask import Blueprint, current_app, jsonify, request

from padelbot.booking.render import leave_notice, welcome_text
from padelbot.flows.router import (
    CALLBACK_MESSAGES,
    HANDLE_CALLBACK,
    HANDLE_IGNORE,
    HANDLE_JOKE,
    HANDLE_WELCOME,
    JOIN,
    LEAVE,
    clean_name,
    display_name,
    is_late_cancellation,
    joke_prompt,
    late_cancellation_warning,
    parse_callback_action,
    route,
)
from padelbot.flows.updates import decode_update
from padelbot.jokes import generate_joke
from padelbot.logging import get_logger
from padelbot.models import (
    add_registration,
    ensure_user,
    get_booking_snapshot,
    remove_registration,
)
from padelbot.telegram import TelegramError

logger = get_logger(__name__)
webhook = Blueprint("webhook", __name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


# -----------------------
# Autenticação
# -----------------------
def _provided_secrets() -> List[Tuple[str, str]]:
    """Credenciais enviadas, na ordem de preferência (header, depois query)."""
    provided = []
    header = request.headers.get(SECRET_HEADER)
    if header:
        provided.append(("header", header))
    query = request.args.get("secret_token")
    if query:
        provided.append(("query", query))
    return provided


def _authenticate(expected: Optional[str], provided: List[Tuple[str, str]]) -> Optional[str]:
    """Canal da primeira credencial que bate; None se nenhuma bater."""
    for channel, secret in provided:
        if _secret_ok(expected, secret):
            return channel
    return None


def _secret_ok(expected: Optional[str], provided: Optional[str]) -> bool:
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), str(expected).encode("utf-8"))


# -----------------------
# Handlers
# -----------------------
def _answer(client, callback_id: str, text: Optional[str] = None, *, alert: bool = False) -> None:
    try:
        client.answer_callback_query(callback_id, text, show_alert=alert)
    except TelegramError as e:
        logger.warning("callback.answer_failed", extra={"kind": e.kind, "error_code": e.error_code})


def _on_callback(event: Dict[str, Any], cfg) -> None:
    client = cfg["TELEGRAM_CLIENT"]
    store = cfg["MESSAGE_STORE"]
    db_path = cfg["SQLITE_PATH"]
    callback_id = event["callback_id"]
    sender = event["from"]

    action = parse_callback_action(event.get("data"))
    if action is None:
        logger.info("callback.unknown_data", extra={"data": event.get("data")})
        _answer(client, callback_id)
        return

    record = None
    if event.get("message_id") is not None:
        record = store.find_by_message(event["chat_id"], event["message_id"])
    snapshot = get_booking_snapshot(db_path, record.booking_id) if record else None
    if snapshot is None:
        logger.info(
            "callback.game_not_found",
            extra={"chat_id": event.get("chat_id"), "message_id": event.get("message_id")},
        )
        _answer(client, callback_id, CALLBACK_MESSAGES["game_not_found"], alert=True)
        return

    booking = snapshot.booking
    if booking.cancelled:
        _answer(client, callback_id, CALLBACK_MESSAGES["game_cancelled"], alert=True)
        return

    user_id = int(sender["id"])
    if action == LEAVE:
        if not snapshot.is_registered(user_id):
            _answer(client, callback_id, CALLBACK_MESSAGES["not_registered"])
            return
        limit = float(cfg.get("LATE_CANCEL_HOURS") or 24.0)
        late, remaining = is_late_cancellation(booking.start_time, datetime.now(timezone.utc), limit)
        if late:
            logger.info(
                "callback.late_cancellation",
                extra={"booking_id": booking.id, "user_id": user_id, "hours_remaining": round(remaining, 2)},
            )
            _answer(client, callback_id, late_cancellation_warning(remaining, limit), alert=True)
            return

    ensure_user(
        db_path,
        id=user_id,
        first_name=sender.get("first_name") or sender.get("username") or "Unknown",
        username=sender.get("username"),
    )

    if action == JOIN:
        changed = add_registration(db_path, booking.id, user_id)
        reply = CALLBACK_MESSAGES["joining"]
    else:
        changed = remove_registration(db_path, booking.id, user_id)
        reply = CALLBACK_MESSAGES["not_coming"]

    result = cfg["SYNCHRONIZER"].reconcile(booking.id)
    logger.info(
        "callback.done",
        extra={"button": action, "user_id": user_id, "changed": changed, **result.to_dict()},
    )
    # inscrição já gravada; repetir o clique só reconcilia de novo
    if result.ok:
        _answer(client, callback_id, reply)
    else:
        _answer(client, callback_id, CALLBACK_MESSAGES["error"], alert=True)

    if action == LEAVE and changed:
        try:
            client.send_message(event["chat_id"], leave_notice(clean_name(display_name(sender))))
        except TelegramError as e:
            logger.warning("callback.notice_failed", extra={"booking_id": booking.id, "kind": e.kind})


def _on_welcome(event: Dict[str, Any], cfg) -> None:
    client = cfg["TELEGRAM_CLIENT"]
    for member in event.get("members") or []:
        if member.get("is_bot"):
            continue
        try:
            client.send_message(event["chat_id"], welcome_text(member.get("first_name")))
            logger.info("welcome.sent", extra={"chat_id": event["chat_id"], "user_id": member.get("id")})
        except TelegramError as e:
            logger.warning("welcome.failed", extra={"user_id": member.get("id"), "kind": e.kind})


def _on_joke(event: Dict[str, Any], cfg) -> None:
    bot_state = cfg["BOT_STATE"]
    prompt = joke_prompt(event, bot_state.username)
    joke = generate_joke(prompt, cfg)
    cfg["TELEGRAM_CLIENT"].send_message(
        event["chat_id"],
        joke,
        reply_to_message_id=event["message_id"],
        parse_mode=None,
    )
    logger.info("joke.sent", extra={"chat_id": event["chat_id"], "reply_to": event["message_id"]})


def _on_ignore(event: Dict[str, Any], cfg) -> None:
    logger.debug("webhook.ignored", extra={"type": event.get("type"), "kind": event.get("kind")})


HANDLERS: Dict[str, Callable[[Dict[str, Any], Any], None]] = {
    HANDLE_CALLBACK: _on_callback,
    HANDLE_WELCOME: _on_welcome,
    HANDLE_JOKE: _on_joke,
    HANDLE_IGNORE: _on_ignore,
}


# -----------------------
# Rota
# -----------------------
@webhook.post("/api/telegram/webhook")
def receive():
    cfg = current_app.config

    provided = _provided_secrets()
    channel = _authenticate(cfg.get("TELEGRAM_WEBHOOK_SECRET"), provided)
    if channel is None:
        logger.warning(
            "webhook.unauthorized",
            extra={
                "channels": [c for c, _ in provided],
                "secret_configured": bool(cfg.get("TELEGRAM_WEBHOOK_SECRET")),
                "remote_addr": request.remote_addr,
            },
        )
        return jsonify({"ok": False, "error": "Not allowed"}), 405

    bot_state = cfg["BOT_STATE"]
    try:
        bot_state.ensure_initialized(cfg["TELEGRAM_CLIENT"])
    except Exception as e:
        # segue com BOT_USERNAME configurado; a próxima requisição tenta de novo
        logger.warning("bot.init_failed", extra={"error_type": type(e).__name__, "error_message": str(e)})

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        logger.warning("webhook.invalid_body", extra={"channel": channel, "content_length": request.content_length})
        return jsonify({"ok": True})

    try:
        raw_size = len(json.dumps(body, ensure_ascii=False).encode("utf-8"))
    except (TypeError, ValueError):
        raw_size = 0
    try:
        # update completo, só depois de autenticado
        logger.info(
            "webhook.incoming",
            extra={"update_id": body.get("update_id"), "channel": channel, "raw_size": raw_size, "body": body},
        )
    except Exception as e:
        logger.warning("webhook.log_failed", extra={"error_type": type(e).__name__})

    try:
        event = decode_update(body)
        handler = route(event, bot_state.username)
        logger.info("webhook.dispatch", extra={"type": event.get("type"), "handler": handler})
        HANDLERS[handler](event, cfg)
    except Exception as e:
        logger.exception("webhook.handler_error", extra={"error_message": str(e)})

    return jsonify({"ok": True})
