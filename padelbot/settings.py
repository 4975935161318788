# padelbot/settings.py
"""
Carrega e organiza todas as configurações do bot.

- Lê variáveis de ambiente (.env.<env>) usando dotenv
- Monta um dicionário simples com todas as chaves relevantes
- Define valores padrão quando necessário
- Evita múltiplos load_dotenv (feito apenas aqui)

Uso:
    from padelbot.settings import load_settings
    settings = load_settings("dev")
"""

from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv


def _int_env(name: str, default: int | None) -> int | None:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# -----------------------------------------------------------
# Função principal
# -----------------------------------------------------------
def load_settings(env_name: str | None = None) -> dict:
    """
    Carrega as variáveis de ambiente para o app Flask.
    Retorna um dicionário pronto para app.config.update().
    """
    config_name = env_name or os.getenv("CONFIG_NAME", "dev")
    env_file = Path(f".env.{config_name}")

    # Carrega o arquivo de ambiente (se existir)
    if env_file.exists():
        load_dotenv(env_file.as_posix(), override=True)
    else:
        # Fallback: tenta .env genérico se existir
        generic_env = Path(".env")
        if generic_env.exists():
            load_dotenv(generic_env.as_posix(), override=False)

    dry_run_flag = os.getenv("DRY_RUN", "0").strip() == "1"

    settings = {
        # Identificação
        "CONFIG_NAME": config_name,

        # Servidor
        "PORT": _int_env("PORT", 3000),
        "LOG_LEVEL": (os.getenv("LOG_LEVEL", "DEBUG" if dry_run_flag else "INFO")).upper(),

        # Telegram Bot API
        "TELEGRAM_BOT_TOKEN": os.getenv("TELEGRAM_BOT_TOKEN"),
        "TELEGRAM_API_BASE": os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org"),
        "TELEGRAM_WEBHOOK_SECRET": os.getenv("TELEGRAM_WEBHOOK_SECRET"),
        "TELEGRAM_TIMEOUT": _float_env("TELEGRAM_TIMEOUT", 10.0),
        "BOT_USERNAME": (os.getenv("BOT_USERNAME") or "").lstrip("@") or None,

        # Chat único onde os anúncios são publicados
        "CHAT_ID": _int_env("CHAT_ID", None),

        # Renderização
        "TIMEZONE": os.getenv("TIMEZONE", "Asia/Dubai"),
        "SETTINGS_URL": os.getenv("SETTINGS_URL", "https://t.me/padel_dubai_bot?startapp"),

        # Regras do clube
        "LATE_CANCEL_HOURS": _float_env("LATE_CANCEL_HOURS", 24.0),
        "CLEANUP_DELAY_SECONDS": _float_env("CLEANUP_DELAY_SECONDS", 0.1),

        # Sincronização
        "SYNC_LEASE_SECONDS": _int_env("SYNC_LEASE_SECONDS", 30),

        # Modo de execução
        "DRY_RUN": dry_run_flag,

        # Segurança dos endpoints internos (token opcional)
        "INTERNAL_API_TOKEN": os.getenv("INTERNAL_API_TOKEN"),

        # Piadas (OpenAI)
        "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY"),
        "OPENAI_MODEL": os.getenv("OPENAI_MODEL", "gpt-4.1-nano-2025-04-14"),
        "OPENAI_TIMEOUT": _float_env("OPENAI_TIMEOUT", 15.0),
    }

    settings["SQLITE_PATH"] = os.getenv("SQLITE_PATH", "data/padelbot.db")

    return settings
