# tests/factories/update_factory.py
"""
Factories/helpers para montar Updates do Telegram (o corpo que o webhook recebe)
para uso nos testes (unitários e de integração).
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

CHAT_ID = -1001234567890
BOT_USERNAME = "padel_dubai_bot"

_update_ids = itertools.count(10_000)
_message_ids = itertools.count(500)


def now_unix() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def make_user(user_id: int = 111, first_name: str = "Ana", username: Optional[str] = "ana", is_bot: bool = False) -> Dict[str, Any]:
    u: Dict[str, Any] = {"id": user_id, "is_bot": is_bot, "first_name": first_name}
    if username:
        u["username"] = username
    return u


def make_chat(chat_id: int = CHAT_ID) -> Dict[str, Any]:
    return {"id": chat_id, "type": "supergroup", "title": "Padel Dubai"}


def make_message(
    text: Optional[str] = None,
    *,
    chat_id: int = CHAT_ID,
    message_id: Optional[int] = None,
    sender: Optional[Dict[str, Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    msg: Dict[str, Any] = {
        "message_id": message_id or next(_message_ids),
        "date": now_unix(),
        "chat": make_chat(chat_id),
        "from": sender or make_user(),
    }
    if text is not None:
        msg["text"] = text
    msg.update(extra)
    return msg


def make_update(**fields: Any) -> Dict[str, Any]:
    return {"update_id": next(_update_ids), **fields}


# -------------------------------------------------------------------
# Atalhos "prontos para uso"
# -------------------------------------------------------------------
def make_text_update(text: str, **kwargs: Any) -> Dict[str, Any]:
    return make_update(message=make_message(text, **kwargs))


def make_reply_update(text: str, reply_to: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
    return make_update(message=make_message(text, reply_to_message=reply_to, **kwargs))


def make_callback_update(
    data: str,
    *,
    message_id: int,
    chat_id: int = CHAT_ID,
    sender: Optional[Dict[str, Any]] = None,
    callback_id: str = "cbq-1",
) -> Dict[str, Any]:
    return make_update(
        callback_query={
            "id": callback_id,
            "from": sender or make_user(),
            "chat_instance": "42",
            "data": data,
            "message": {
                "message_id": message_id,
                "date": now_unix(),
                "chat": make_chat(chat_id),
                "text": "🎾 ...",
            },
        }
    )


def make_members_joined_update(members: List[Dict[str, Any]], chat_id: int = CHAT_ID) -> Dict[str, Any]:
    return make_update(
        message=make_message(None, chat_id=chat_id, new_chat_members=members)
    )


def make_pinned_update(chat_id: int = CHAT_ID) -> Dict[str, Any]:
    pinned = make_message("🎾 anúncio", chat_id=chat_id)
    return make_update(message=make_message(None, chat_id=chat_id, pinned_message=pinned))
