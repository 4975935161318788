# padelbot/jokes.py
"""
Joke Responder: resposta curta e bem-humorada (em russo) para quem marca o bot.

Usa a API de chat completions via HttpClient (requests). Qualquer falha
(chave ausente, timeout, status != 200, corpo inesperado) vira o placeholder
fixo; este módulo nunca levanta exceção para o webhook.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
import requests

from padelbot.http import HttpClient
from padelbot.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER = "😅"
EMPTY_REPLY = "🤣"

OPENAI_BASE = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4.1-nano-2025-04-14"

SYSTEM_PROMPT = (
    "Ты весёлый бот падел-клуба. Отвечай на сообщения короткой шуткой "
    "или дружеской подколкой на русском языке."
)


def build_payload(text: str, model: str = DEFAULT_MODEL) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": text},
        ],
        "max_tokens": 60,
        "temperature": 0.9,
    }


def generate_joke(text: str, cfg: Dict[str, Any], http: Optional[HttpClient] = None) -> str:
    api_key = cfg.get("OPENAI_API_KEY")
    if not api_key:
        logger.error("joke.misconfig", extra={"have_api_key": False})
        return PLACEHOLDER

    client = http or HttpClient(
        base_url=OPENAI_BASE,
        timeout=float(cfg.get("OPENAI_TIMEOUT") or 15.0),
        max_retries=1,
        status_forcelist=(),
        retry_reads=False,
        log_name="joke.http",
    )
    payload = build_payload(text, cfg.get("OPENAI_MODEL") or DEFAULT_MODEL)

    try:
        resp = client.post_json(
            "chat/completions",
            payload,
            headers={"Authorization": f"Bearer {api_key}"},
        )
    except requests.RequestException as e:
        logger.warning("joke.error", extra={"error_type": type(e).__name__})
        return PLACEHOLDER

    if not resp.ok:
        logger.warning("joke.error", extra={"status": resp.status_code, "snippet": resp.text[:200]})
        return PLACEHOLDER

    try:
        data = resp.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        logger.warning("joke.bad_response", extra={"snippet": resp.text[:200]})
        return PLACEHOLDER

    return (content or "").strip() or EMPTY_REPLY
