# padelbot/blueprints/health.py
"""
Blueprint simples de healthcheck e status do ambiente.
"""

from flask import Blueprint, jsonify, current_app

health = Blueprint("health", __name__)


@health.get("/health")
def get_health():
    """
    - ok: True -> app está rodando
    - env: nome do ambiente (dev/hom/prod)
    - dry_run: indica se está em modo simulação
    - chat_id_set: se há chat configurado para os anúncios
    """
    cfg = current_app.config
    return jsonify(
        {
            "ok": True,
            "env": cfg.get("CONFIG_NAME", "dev"),
            "dry_run": bool(cfg.get("DRY_RUN", False)),
            "chat_id_set": cfg.get("CHAT_ID") is not None,
        }
    )
