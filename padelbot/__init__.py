# padelbot/__init__.py
"""
Fábrica principal do Flask App.

- Cria e configura a instância do Flask.
- Carrega configurações do ambiente (via padelbot.settings).
- Inicializa logging.
- Garante SQLite pronto (data/padelbot.db).
- Monta os serviços (cliente Telegram, store, synchronizer, estado do bot)
  e guarda em app.config (testes podem trocar por fakes via `overrides`).
- Registra blueprints (webhook/messages/bookings/health).
"""

from __future__ import annotations

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, MethodNotAllowed

from padelbot.settings import load_settings
from padelbot.logging import configure_logging, get_logger
from padelbot.errors import PadelBotError
from padelbot.models import ensure_db, MessageStateStore
from padelbot.sync import Synchronizer
from padelbot.telegram import BotState, TelegramClient


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    app = Flask(__name__)

    # 1) Config
    settings = load_settings(config_name)
    app.config.update(settings)
    if overrides:
        app.config.update(overrides)

    # 2) Logging
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    log = get_logger(__name__)
    log.info("app.init", extra={"env": app.config.get("CONFIG_NAME", "dev"),
                                "dry_run": bool(app.config.get("DRY_RUN"))})

    # 3) SQLite (garante arquivo e tabelas)
    app.config.setdefault("SQLITE_PATH", "data/padelbot.db")
    db_path = app.config["SQLITE_PATH"]
    ensure_db(db_path)
    log.info("db.ready", extra={"path": db_path})

    # 4) Serviços
    cfg = app.config
    if cfg.get("TELEGRAM_CLIENT") is None:
        cfg["TELEGRAM_CLIENT"] = TelegramClient.from_config(cfg)
    if cfg.get("MESSAGE_STORE") is None:
        cfg["MESSAGE_STORE"] = MessageStateStore(db_path, lease_seconds=cfg.get("SYNC_LEASE_SECONDS") or 30)
    if cfg.get("SYNCHRONIZER") is None:
        cfg["SYNCHRONIZER"] = Synchronizer(
            db_path,
            cfg["TELEGRAM_CLIENT"],
            cfg["MESSAGE_STORE"],
            cfg.get("CHAT_ID"),
            tz=cfg.get("TIMEZONE") or "Asia/Dubai",
            settings_url=cfg.get("SETTINGS_URL") or "https://t.me/padel_dubai_bot?startapp",
        )
    if cfg.get("BOT_STATE") is None:
        cfg["BOT_STATE"] = BotState(cfg.get("BOT_USERNAME"))

    # 5) Erros -> JSON
    @app.errorhandler(PadelBotError)
    def _handle_padelbot_error(e: PadelBotError):
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(MethodNotAllowed)
    def _handle_method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(Exception)
    def _handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        log.exception("app.unhandled_error", extra={"error_message": str(e)})
        return jsonify({"error": "internal error"}), 500

    # 6) Blueprints
    from padelbot.blueprints.webhook import webhook
    from padelbot.blueprints.messages import messages
    from padelbot.blueprints.bookings import bookings
    from padelbot.blueprints.health import health

    app.register_blueprint(webhook)
    app.register_blueprint(messages)
    app.register_blueprint(bookings)
    app.register_blueprint(health)

    return app
