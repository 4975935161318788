# padelbot/telegram/client.py
"""
Wrapper tipado da Telegram Bot API (sem regra de negócio).

Operações:
- send_message(chat_id, text, ...)          -> message_id
- edit_message_text(chat_id, message_id, ...) -> True (editou) / False ("not modified")
- edit_message_reply_markup(...)            -> True / False ("not modified")
- delete_message(chat_id, message_id)       -> True
- pin_chat_message(...), unpin_chat_message(...) -> True
- answer_callback_query(...), get_me()

Erros da plataforma viram TelegramError com `kind` em:
  not_found | rate_limited | forbidden | transient | unknown

`rate_limited` e `transient` podem ser repetidos pelo chamador (com backoff);
`not_found` e `forbidden` não. O transporte faz no máximo 1 retry automático e
só para falha de conexão (a requisição nem chegou ao Telegram).

Com DRY_RUN=1 nada sai para a rede: o cliente loga a chamada e inventa ids.
"""

from __future__ import annotations

import itertools
import time
from typing import Any, Dict, Optional
import requests

from padelbot.http import HttpClient
from padelbot.logging import get_logger

logger = get_logger(__name__)

NOT_FOUND = "not_found"
RATE_LIMITED = "rate_limited"
FORBIDDEN = "forbidden"
TRANSIENT = "transient"
UNKNOWN = "unknown"

RETRYABLE_KINDS = frozenset({RATE_LIMITED, TRANSIENT})

# trechos de `description` que o Telegram devolve com 400
_NOT_FOUND_HINTS = (
    "message to edit not found",
    "message to delete not found",
    "message not found",
    "message_id_invalid",
)
_FORBIDDEN_HINTS = (
    "message can't be deleted",
    "message can't be edited",
    "not enough rights",
    "chat not found",
)
_NOT_MODIFIED_HINT = "message is not modified"


class TelegramError(Exception):
    def __init__(
        self,
        kind: str,
        description: str = "",
        *,
        error_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        method: Optional[str] = None,
    ):
        super().__init__(f"[{kind}] {description}".strip())
        self.kind = kind
        self.description = description
        self.error_code = error_code
        self.retry_after = retry_after
        self.method = method

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def not_modified(self) -> bool:
        return _NOT_MODIFIED_HINT in self.description.lower()


def classify_error(error_code: Optional[int], description: str) -> str:
    """
    Mapeia (error_code, description) do Telegram para a taxonomia local.
    """
    desc = (description or "").lower()
    if error_code == 429 or "too many requests" in desc:
        return RATE_LIMITED
    if any(h in desc for h in _NOT_FOUND_HINTS):
        return NOT_FOUND
    if error_code == 403 or any(h in desc for h in _FORBIDDEN_HINTS):
        return FORBIDDEN
    if error_code is not None and error_code >= 500:
        return TRANSIENT
    return UNKNOWN


class TelegramClient:
    def __init__(
        self,
        token: Optional[str],
        *,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        dry_run: bool = False,
        http: Optional[HttpClient] = None,
    ):
        self.dry_run = dry_run
        self._token = token
        self.http = http or HttpClient(
            base_url=f"{api_base.rstrip('/')}/bot{token}",
            timeout=timeout,
            max_retries=1,
            backoff_factor=0,
            status_forcelist=(),
            retry_reads=False,
            log_name="tg.http",
        )
        self._fake_ids = itertools.count(int(time.time()) % 100000 * 10 + 1)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "TelegramClient":
        return cls(
            cfg.get("TELEGRAM_BOT_TOKEN"),
            api_base=cfg.get("TELEGRAM_API_BASE") or "https://api.telegram.org",
            timeout=float(cfg.get("TELEGRAM_TIMEOUT") or 10.0),
            dry_run=bool(cfg.get("DRY_RUN", False)),
        )

    # -----------------------------
    # Transporte
    # -----------------------------
    def call(self, method: str, payload: Dict[str, Any]) -> Any:
        """
        Chama um método da Bot API e devolve `result`.
        Levanta TelegramError já classificado.
        """
        if self.dry_run:
            return self._dry_run_result(method, payload)

        if not self._token:
            logger.error("tg.misconfig", extra={"method": method, "have_token": False})
            raise RuntimeError("Telegram API misconfigured: TELEGRAM_BOT_TOKEN ausente.")

        try:
            resp = self.http.post_json(method, payload)
        except requests.Timeout as e:
            raise TelegramError(TRANSIENT, f"timeout: {e}", method=method) from e
        except requests.RequestException as e:
            raise TelegramError(TRANSIENT, f"network: {type(e).__name__}", method=method) from e

        try:
            data = resp.json()
        except ValueError:
            data = {"ok": False, "error_code": resp.status_code, "description": resp.text[:200]}

        if resp.ok and data.get("ok"):
            return data.get("result")

        error_code = data.get("error_code") or resp.status_code
        description = str(data.get("description") or "")
        retry_after = (data.get("parameters") or {}).get("retry_after")
        kind = classify_error(error_code, description)
        logger.warning(
            "tg.error",
            extra={
                "method": method,
                "kind": kind,
                "error_code": error_code,
                "description": description,
                "retry_after": retry_after,
            },
        )
        raise TelegramError(
            kind,
            description,
            error_code=error_code,
            retry_after=float(retry_after) if retry_after is not None else None,
            method=method,
        )

    def _dry_run_result(self, method: str, payload: Dict[str, Any]) -> Any:
        logger.info(
            "tg.dry_run",
            extra={
                "method": method,
                "chat_id": payload.get("chat_id"),
                "payload_preview": str(payload)[:200],
            },
        )
        if method == "sendMessage":
            return {"message_id": next(self._fake_ids), "chat": {"id": payload.get("chat_id")}}
        if method == "getMe":
            return {"id": 0, "is_bot": True, "username": None}
        return True

    # -----------------------------
    # Operações
    # -----------------------------
    def send_message(
        self,
        chat_id: int | str,
        text: str,
        *,
        reply_markup: Optional[Dict[str, Any]] = None,
        reply_to_message_id: Optional[int] = None,
        parse_mode: Optional[str] = "HTML",
    ) -> int:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup:
            payload["reply_markup"] = reply_markup
        if reply_to_message_id:
            payload["reply_to_message_id"] = reply_to_message_id

        result = self.call("sendMessage", payload) or {}
        message_id = result.get("message_id") if isinstance(result, dict) else None
        if not message_id:
            raise TelegramError(UNKNOWN, "no message_id returned", method="sendMessage")
        return int(message_id)

    def edit_message_text(
        self,
        chat_id: int | str,
        message_id: int,
        text: str,
        *,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = "HTML",
    ) -> bool:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup:
            payload["reply_markup"] = reply_markup

        try:
            self.call("editMessageText", payload)
        except TelegramError as e:
            if e.not_modified:
                return False
            raise
        return True

    def edit_message_reply_markup(
        self,
        chat_id: int | str,
        message_id: int,
        *,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Sem reply_markup o teclado é removido."""
        payload: Dict[str, Any] = {"chat_id": chat_id, "message_id": message_id}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        try:
            self.call("editMessageReplyMarkup", payload)
        except TelegramError as e:
            if e.not_modified:
                return False
            raise
        return True

    def delete_message(self, chat_id: int | str, message_id: int) -> bool:
        self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
        return True

    def pin_chat_message(
        self,
        chat_id: int | str,
        message_id: int,
        *,
        disable_notification: bool = False,
    ) -> bool:
        self.call(
            "pinChatMessage",
            {"chat_id": chat_id, "message_id": message_id, "disable_notification": bool(disable_notification)},
        )
        return True

    def unpin_chat_message(self, chat_id: int | str, message_id: Optional[int] = None) -> bool:
        """Sem message_id o Telegram desafixa a mensagem fixada mais recente."""
        payload: Dict[str, Any] = {"chat_id": chat_id}
        if message_id:
            payload["message_id"] = message_id
        self.call("unpinChatMessage", payload)
        return True

    def answer_callback_query(
        self,
        callback_query_id: str,
        text: Optional[str] = None,
        *,
        show_alert: bool = False,
    ) -> bool:
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        if show_alert:
            payload["show_alert"] = True
        self.call("answerCallbackQuery", payload)
        return True

    def get_me(self) -> Dict[str, Any]:
        return self.call("getMe", {}) or {}
