# padelbot/telegram/bot.py
"""
Estado do bot por processo (identidade obtida via getMe).

A inicialização é preguiçosa e idempotente: a primeira requisição do webhook
chama ensure_initialized(); as seguintes reaproveitam o resultado. O lock
garante uma única chamada ao Telegram mesmo com várias threads chegando
juntas num worker recém-criado. Se a chamada falhar, nada é guardado e a
próxima requisição tenta de novo.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from padelbot.logging import get_logger

logger = get_logger(__name__)


class BotState:
    def __init__(self, configured_username: Optional[str] = None):
        self._lock = threading.Lock()
        self._info: Optional[Dict[str, Any]] = None
        self._configured_username = (configured_username or "").lstrip("@") or None
        self.init_calls = 0

    @property
    def initialized(self) -> bool:
        return self._info is not None

    @property
    def username(self) -> Optional[str]:
        info = self._info or {}
        return info.get("username") or self._configured_username

    def ensure_initialized(self, client) -> Dict[str, Any]:
        info = self._info
        if info is not None:
            return info

        with self._lock:
            if self._info is None:
                self.init_calls += 1
                me = client.get_me() or {}
                if not me.get("username") and self._configured_username:
                    me = {**me, "username": self._configured_username}
                self._info = me
                logger.info(
                    "bot.initialized",
                    extra={"bot_id": me.get("id"), "username": me.get("username")},
                )
            return self._info
