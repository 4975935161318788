# tests/unit/test_updates.py
"""
Testes unitários para padelbot.flows.updates (decodificação do Update).
"""

from padelbot.flows.updates import decode_update
from tests.factories import (
    CHAT_ID,
    make_callback_update,
    make_members_joined_update,
    make_pinned_update,
    make_reply_update,
    make_text_update,
    make_user,
)


def test_callback_update():
    body = make_callback_update("join_game", message_id=77, sender=make_user(5, "Ana", "ana"))
    evt = decode_update(body)

    assert evt["type"] == "callback"
    assert evt["data"] == "join_game"
    assert evt["chat_id"] == CHAT_ID
    assert evt["message_id"] == 77
    assert evt["from"] == {"id": 5, "is_bot": False, "first_name": "Ana", "username": "ana"}
    assert evt["update_id"] == body["update_id"]


def test_callback_without_message_has_no_ids():
    body = make_callback_update("join_game", message_id=1)
    del body["callback_query"]["message"]
    evt = decode_update(body)
    assert evt["type"] == "callback"
    assert "message_id" not in evt


def test_text_update():
    evt = decode_update(make_text_update("hello @padel_dubai_bot", message_id=9))
    assert evt["type"] == "text"
    assert evt["text"] == "hello @padel_dubai_bot"
    assert evt["message_id"] == 9
    assert "reply_to" not in evt


def test_reply_update_keeps_reply_context():
    reply_to = {
        "message_id": 3,
        "text": "шутка",
        "from": {"id": 999, "is_bot": True, "first_name": "Bot", "username": "padel_dubai_bot"},
    }
    evt = decode_update(make_reply_update("ха", reply_to))
    assert evt["reply_to"] == {
        "message_id": 3,
        "text": "шутка",
        "from_username": "padel_dubai_bot",
        "from_is_bot": True,
    }


def test_members_joined_update():
    evt = decode_update(make_members_joined_update([make_user(1, "Ana"), make_user(2, "Bot", is_bot=True)]))
    assert evt["type"] == "members_joined"
    assert [m["id"] for m in evt["members"]] == [1, 2]


def test_pinned_update():
    evt = decode_update(make_pinned_update())
    assert evt["type"] == "pinned"


def test_unknown_update_kind():
    evt = decode_update({"update_id": 1, "edited_message": {"message_id": 1}})
    assert evt == {"type": "other", "kind": "edited_message", "update_id": 1}


def test_garbage_never_raises():
    assert decode_update(None)["type"] == "other"
    assert decode_update({"message": "nope"})["type"] == "other"
    assert decode_update({"callback_query": {"id": "1"}})["type"] == "other"
