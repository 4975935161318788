# tests/unit/test_synchronizer.py
"""
Testes do Synchronizer com SQLite real (tmp_path) e Telegram fake.

Cobre: criação, edição, no-op idempotente, cancelamento, recuperação de
mensagem apagada por fora, falhas externas/persistência e a corrida de
duas reconciliações da mesma reserva.
"""

import sqlite3
import threading

from padelbot.models import ABSENT, DELETED, POSTED, STALE, set_booking_cancelled
from padelbot.telegram import FORBIDDEN, RATE_LIMITED, TRANSIENT, TelegramError
from tests.factories import CHAT_ID, register, seed_booking


def test_first_reconcile_creates_message(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path, players=[(1, "Ana", "ana", "C")])

    result = synchronizer.reconcile(bid)

    assert result.ok is True
    assert result.action == "created"
    assert fake_tg.count("sendMessage") == 1
    rec = store.get(bid)
    assert rec.status == POSTED
    assert rec.message_id == result.message_id
    assert "1. @ana (C)" in fake_tg.text_of(CHAT_ID, rec.message_id)


def test_reconcile_is_idempotent(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    before = store.get(bid)

    result = synchronizer.reconcile(bid)

    assert result.ok is True
    assert result.action == "noop"
    assert fake_tg.count("sendMessage") == 1
    assert fake_tg.count("editMessageText") == 0
    assert store.get(bid).content_hash == before.content_hash


def test_full_lifecycle_create_edit_delete_noop(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)

    assert synchronizer.reconcile(bid).action == "created"
    message_id = store.get(bid).message_id

    register(db_path, bid, 7, "Bruno", "bruno")
    edited = synchronizer.reconcile(bid)
    assert edited.action == "edited"
    assert edited.message_id == message_id
    assert "1. @bruno (E)" in fake_tg.text_of(CHAT_ID, message_id)

    set_booking_cancelled(db_path, bid, True)
    deleted = synchronizer.reconcile(bid)
    assert deleted.action == "deleted"
    assert fake_tg.text_of(CHAT_ID, message_id) is None
    assert store.get(bid).status == DELETED

    again = synchronizer.reconcile(bid)
    assert again.action == "noop"
    assert fake_tg.count("deleteMessage") == 1


def test_restore_after_delete_posts_new_message(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    first_id = store.get(bid).message_id
    set_booking_cancelled(db_path, bid, True)
    synchronizer.reconcile(bid)

    set_booking_cancelled(db_path, bid, False)
    result = synchronizer.reconcile(bid)

    assert result.action == "created"
    assert result.message_id != first_id
    assert store.get(bid).status == POSTED


def test_cancelled_without_message_is_noop(db_path, synchronizer, fake_tg):
    bid = seed_booking(db_path)
    set_booking_cancelled(db_path, bid, True)

    result = synchronizer.reconcile(bid)

    assert result.ok is True
    assert result.action == "noop"
    assert fake_tg.calls == []


def test_missing_booking(synchronizer, fake_tg):
    result = synchronizer.reconcile(4242)
    assert result.ok is False
    assert result.failure == "not_found"
    assert fake_tg.calls == []


def test_out_of_band_deletion_is_recreated(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    old_id = store.get(bid).message_id
    fake_tg.delete_out_of_band(CHAT_ID, old_id)

    register(db_path, bid, 7, "Bruno", "bruno")
    result = synchronizer.reconcile(bid)

    assert result.ok is True
    assert result.action == "recreated"
    assert result.message_id != old_id
    rec = store.get(bid)
    assert rec.status == POSTED
    assert rec.message_id == result.message_id
    assert fake_tg.count("sendMessage") == 2


def test_delete_tolerates_message_already_gone(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    fake_tg.delete_out_of_band(CHAT_ID, store.get(bid).message_id)
    set_booking_cancelled(db_path, bid, True)

    result = synchronizer.reconcile(bid)

    assert result.ok is True
    assert result.action == "deleted"
    assert store.get(bid).status == DELETED


def test_delete_other_error_keeps_local_state(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    before = store.get(bid)
    set_booking_cancelled(db_path, bid, True)
    fake_tg.fail_next("deleteMessage", TelegramError(FORBIDDEN, "message can't be deleted", error_code=400))

    result = synchronizer.reconcile(bid)

    assert result.ok is False
    assert result.failure == "external"
    assert store.get(bid) == before


def test_transient_edit_failure_marks_stale_then_recovers(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    register(db_path, bid, 7, "Bruno", "bruno")
    fake_tg.fail_next("editMessageText", TelegramError(RATE_LIMITED, "Too Many Requests", error_code=429, retry_after=3))

    failed = synchronizer.reconcile(bid)
    assert failed.ok is False
    assert failed.failure == "external"
    assert store.get(bid).status == STALE

    retried = synchronizer.reconcile(bid)
    assert retried.ok is True
    assert retried.action == "edited"
    assert store.get(bid).status == POSTED


def test_create_failure_writes_nothing(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    fake_tg.fail_next("sendMessage", TelegramError(TRANSIENT, "timeout"))

    result = synchronizer.reconcile(bid)

    assert result.ok is False
    assert result.failure == "external"
    assert store.get(bid) is None


def test_persistence_failure_after_send_is_reported(db_path, synchronizer, fake_tg, store, monkeypatch):
    bid = seed_booking(db_path)

    def broken_upsert(record, expected_prior_hash):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "upsert", broken_upsert)
    result = synchronizer.reconcile(bid)

    assert result.ok is False
    assert result.failure == "persistence"
    assert result.message_id is not None
    # não tenta compensar apagando a mensagem
    assert fake_tg.count("deleteMessage") == 0


def test_conflicting_write_is_persistence_failure(db_path, synchronizer, fake_tg, store, monkeypatch):
    bid = seed_booking(db_path)
    monkeypatch.setattr(store, "upsert", lambda record, expected_prior_hash: False)

    result = synchronizer.reconcile(bid)

    assert result.ok is False
    assert result.failure == "persistence"
    assert result.error == "conflicting write"


def test_concurrent_reconcile_makes_one_external_call(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    fake_tg.block = threading.Event()
    results = {}

    worker = threading.Thread(target=lambda: results.setdefault("a", synchronizer.reconcile(bid)))
    worker.start()
    assert fake_tg.entered.wait(5)

    # segunda registração chega enquanto a primeira está no Telegram
    register(db_path, bid, 7, "Bruno", "bruno")
    results["b"] = synchronizer.reconcile(bid)

    fake_tg.block.set()
    worker.join(5)

    assert results["b"].action == "deferred"
    assert results["b"].ok is True
    assert fake_tg.count("sendMessage") == 1
    rec = store.get(bid)
    assert rec.status == POSTED
    # o dono do lease rodou a passada extra e incluiu o Bruno
    assert "@bruno" in fake_tg.text_of(CHAT_ID, rec.message_id)


def test_absent_record_is_reposted(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    rec = store.get(bid)
    store.upsert(rec.evolve(status=ABSENT, content_hash=None), rec.content_hash)

    result = synchronizer.reconcile(bid)

    assert result.action == "created"
    assert fake_tg.count("sendMessage") == 2


def test_change_deferred_on_every_pass_is_reported_not_lost(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    register(db_path, bid, 7, "Bruno", "bruno")

    deferred = []
    joined = iter(range(20, 30))

    def concurrent_change(method):
        if method in ("sendMessage", "editMessageText"):
            user_id = next(joined)
            register(db_path, bid, user_id, f"Player{user_id}")
            deferred.append(synchronizer.reconcile(bid))

    fake_tg.on_call = concurrent_change
    result = synchronizer.reconcile(bid)
    fake_tg.on_call = None

    assert [(r.action, r.ok) for r in deferred] == [("deferred", True)] * 3
    # a última mudança não entrou no chat: o dono não pode dizer que deu certo
    assert result.ok is False
    assert result.failure == "contended"
    assert store.get(bid).status == STALE

    retried = synchronizer.reconcile(bid)
    assert retried.ok is True
    rec = store.get(bid)
    assert rec.status == POSTED
    assert "Player22" in fake_tg.text_of(CHAT_ID, rec.message_id)


def test_single_deferral_is_absorbed_by_extra_pass(db_path, synchronizer, fake_tg, store):
    bid = seed_booking(db_path)
    synchronizer.reconcile(bid)
    register(db_path, bid, 7, "Bruno", "bruno")

    def one_change(method):
        fake_tg.on_call = None
        register(db_path, bid, 8, "Carla", "carla")
        synchronizer.reconcile(bid)

    fake_tg.on_call = one_change
    result = synchronizer.reconcile(bid)

    assert result.ok is True
    assert result.action == "edited"
    rec = store.get(bid)
    assert rec.status == POSTED
    assert "@carla" in fake_tg.text_of(CHAT_ID, rec.message_id)
