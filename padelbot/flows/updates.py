# padelbot/flows/updates.py
"""
Decodificação do Update do Telegram para UM evento simples e previsível.

Módulo **puro** (sem Flask/settings). O envelope do Telegram tem vários
campos opcionais (message, callback_query, edited_message, ...); aqui ele é
decodificado uma única vez para um dict com a chave "type", e os handlers
só olham esse dict.

Formato de saída:
  {"type": "callback", "callback_id": "...", "data": "join_game",
   "from": {...}, "chat_id": -100.., "message_id": 42}
  {"type": "members_joined", "chat_id": -100.., "members": [{...}, ...]}
  {"type": "text", "chat_id": -100.., "message_id": 7, "text": "...",
   "from": {...}, "reply_to": {...}}
  {"type": "pinned", "chat_id": -100.., "message_id": 8}
  {"type": "other", "kind": "edited_message"}
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, NotRequired, Optional, TypedDict


# -----------------------------
# Tipos dos eventos
# -----------------------------
class Sender(TypedDict):
    id: int
    is_bot: bool
    first_name: str
    username: NotRequired[str]


class BaseEvent(TypedDict):
    type: str
    update_id: NotRequired[int]


class CallbackEvent(BaseEvent):
    type: Literal["callback"]
    callback_id: str
    data: str
    from_: Sender
    chat_id: NotRequired[int]
    message_id: NotRequired[int]


class MembersJoinedEvent(BaseEvent):
    type: Literal["members_joined"]
    chat_id: int
    members: List[Sender]


class ReplyTo(TypedDict):
    message_id: NotRequired[int]
    text: NotRequired[str]
    from_username: NotRequired[str]
    from_is_bot: NotRequired[bool]
    via_bot_username: NotRequired[str]


class TextEvent(BaseEvent):
    type: Literal["text"]
    chat_id: int
    message_id: int
    text: str
    from_: NotRequired[Sender]
    reply_to: NotRequired[ReplyTo]


class PinnedEvent(BaseEvent):
    type: Literal["pinned"]
    chat_id: int
    message_id: int


class OtherEvent(BaseEvent):
    type: Literal["other"]
    kind: str


UpdateEvent = Dict[str, Any]  # união dos tipos acima em tempo de execução


# -----------------------------
# Função principal
# -----------------------------
def decode_update(body: Any) -> UpdateEvent:
    """
    Converte o Update bruto em um evento.

    - callback_query com data -> "callback"
    - message.new_chat_members -> "members_joined"
    - message.pinned_message   -> "pinned" (mensagem de serviço, ignorada)
    - message com texto        -> "text"
    - todo o resto             -> "other"

    Tolerante a campos ausentes: nunca levanta exceção; o que não entende
    vira "other".
    """
    body = _safe_dict(body)
    update_id = body.get("update_id")

    cq = _safe_dict(body.get("callback_query"))
    if cq:
        data = cq.get("data")
        sender = _sender(cq.get("from"))
        if data is None or not cq.get("id") or sender is None:
            return _other("callback_query", update_id)
        msg = _safe_dict(cq.get("message"))
        evt: CallbackEvent = {  # type: ignore[typeddict-item]
            "type": "callback",
            "callback_id": str(cq["id"]),
            "data": str(data),
            "from_": sender,
        }
        chat_id = _safe_dict(msg.get("chat")).get("id")
        if chat_id is not None and msg.get("message_id") is not None:
            evt["chat_id"] = int(chat_id)
            evt["message_id"] = int(msg["message_id"])
        return _export(evt, update_id)

    msg = _safe_dict(body.get("message"))
    if msg:
        chat_id = _safe_dict(msg.get("chat")).get("id")
        message_id = msg.get("message_id")
        if chat_id is None or message_id is None:
            return _other("message", update_id)

        members = [s for s in (_sender(m) for m in _safe_list(msg.get("new_chat_members"))) if s]
        if members:
            evt_m: MembersJoinedEvent = {  # type: ignore[typeddict-item]
                "type": "members_joined",
                "chat_id": int(chat_id),
                "members": members,
            }
            return _export(evt_m, update_id)

        if msg.get("pinned_message") is not None:
            evt_p: PinnedEvent = {"type": "pinned", "chat_id": int(chat_id), "message_id": int(message_id)}  # type: ignore[typeddict-item]
            return _export(evt_p, update_id)

        text = msg.get("text")
        if isinstance(text, str):
            evt_t: TextEvent = {  # type: ignore[typeddict-item]
                "type": "text",
                "chat_id": int(chat_id),
                "message_id": int(message_id),
                "text": text,
            }
            sender = _sender(msg.get("from"))
            if sender:
                evt_t["from_"] = sender
            reply = _reply_to(msg.get("reply_to_message"))
            if reply:
                evt_t["reply_to"] = reply
            return _export(evt_t, update_id)

        return _other("message", update_id)

    kind = next((k for k in body if k != "update_id"), "unknown")
    return _other(str(kind), update_id)


# -----------------------------
# Helpers internos
# -----------------------------
def _safe_list(x: Any) -> list:
    return x if isinstance(x, list) else []


def _safe_dict(x: Any) -> dict:
    return x if isinstance(x, dict) else {}


def _sender(x: Any) -> Optional[Sender]:
    u = _safe_dict(x)
    if u.get("id") is None:
        return None
    s: Sender = {  # type: ignore[typeddict-item]
        "id": int(u["id"]),
        "is_bot": bool(u.get("is_bot", False)),
        "first_name": str(u.get("first_name") or ""),
    }
    if u.get("username"):
        s["username"] = str(u["username"])
    return s


def _reply_to(x: Any) -> Optional[ReplyTo]:
    r = _safe_dict(x)
    if not r:
        return None
    out: ReplyTo = {}
    if r.get("message_id") is not None:
        out["message_id"] = int(r["message_id"])
    if isinstance(r.get("text"), str):
        out["text"] = r["text"]
    frm = _safe_dict(r.get("from"))
    if frm.get("username"):
        out["from_username"] = str(frm["username"])
    if frm:
        out["from_is_bot"] = bool(frm.get("is_bot", False))
    via = _safe_dict(r.get("via_bot"))
    if via.get("username"):
        out["via_bot_username"] = str(via["username"])
    return out


def _other(kind: str, update_id: Any) -> UpdateEvent:
    evt: OtherEvent = {"type": "other", "kind": kind}  # type: ignore[typeddict-item]
    return _export(evt, update_id)


def _export(evt: Dict[str, Any], update_id: Any) -> UpdateEvent:
    """
    Renomeia 'from_' para 'from' e anexa update_id quando houver.
    """
    evt = dict(evt)
    if "from_" in evt:
        evt["from"] = evt.pop("from_")
    if update_id is not None:
        evt["update_id"] = update_id
    return evt
