# padelbot/blueprints/guards.py
"""
Checagens compartilhadas pelos blueprints internos.
"""

from __future__ import annotations

import hmac
from flask import current_app, request

from padelbot.errors import AuthFailure, ValidationFailure
from padelbot.logging import get_logger

logger = get_logger(__name__)


def require_internal_token() -> None:
    """
    Exige X-Internal-Token quando INTERNAL_API_TOKEN estiver configurado.
    Usado como before_request dos blueprints internos.
    """
    secret = current_app.config.get("INTERNAL_API_TOKEN")
    if not secret:
        return
    provided = request.headers.get("X-Internal-Token") or ""
    if not hmac.compare_digest(provided.encode("utf-8"), str(secret).encode("utf-8")):
        logger.warning(
            "internal.unauthorized",
            extra={"path": request.path, "has_token": bool(provided), "remote_addr": request.remote_addr},
        )
        raise AuthFailure("unauthorized")


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_int(data: dict, *fields: str) -> list[int]:
    """Lê campos inteiros obrigatórios; ausentes ou inválidos -> 400."""
    out = []
    missing = []
    for f in fields:
        raw = data.get(f)
        try:
            if raw is None or isinstance(raw, bool):
                raise ValueError
            out.append(int(raw))
        except (TypeError, ValueError):
            missing.append(f)
    if missing:
        raise ValidationFailure(f"missing or invalid: {', '.join(missing)}")
    return out
