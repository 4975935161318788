# run.py
"""
Ponto de entrada simples para desenvolvimento.

- Cria o app via factory (create_app); o .env do ambiente é carregado em
  padelbot.settings.load_settings
- Lê configurações SOMENTE de app.config
- Faz um log de inicialização em JSON com informações úteis (sem segredos)
- Sobe o servidor embutido do Flask (para produção, use gunicorn apontando para 'run:app')
"""

from __future__ import annotations

import os
import sys

from padelbot import create_app
from padelbot.logging import get_logger

CONFIG_NAME = os.environ.get("CONFIG_NAME", "dev")

app = create_app(CONFIG_NAME)
logger = get_logger("padelbot.run")


def _redact(s: str | None) -> str | None:
    if not s:
        return s
    s = str(s)
    return s[:6] + "…redacted" if len(s) > 20 else s


if __name__ == "__main__":
    cfg = app.config
    port = int(cfg.get("PORT", 3000))

    logger.info(
        "server.start",
        extra={
            "env": CONFIG_NAME,
            "port": port,
            "python": sys.version.split()[0],
            "chat_id_set": cfg.get("CHAT_ID") is not None,
            "botToken_set": bool(cfg.get("TELEGRAM_BOT_TOKEN")),
            "webhookSecret_set": bool(cfg.get("TELEGRAM_WEBHOOK_SECRET")),
            "dry_run": bool(cfg.get("DRY_RUN", False)),
            "log_level": cfg.get("LOG_LEVEL", "INFO"),
        },
    )

    if not cfg.get("TELEGRAM_BOT_TOKEN") or not cfg.get("TELEGRAM_WEBHOOK_SECRET") or cfg.get("CHAT_ID") is None:
        logger.warning(
            "config.incomplete",
            extra={
                "hint": "Verifique TELEGRAM_BOT_TOKEN, TELEGRAM_WEBHOOK_SECRET e CHAT_ID no .env do ambiente.",
                "botToken_preview": _redact(cfg.get("TELEGRAM_BOT_TOKEN")),
            },
        )

    app.run(host="0.0.0.0", port=port)
