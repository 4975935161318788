# padelbot/models/message_store.py
"""
Message State Store: reserva -> mensagem publicada no chat.

Contrato consumido pelo Synchronizer:
- get(booking_id)                        -> MessageRecord | None (None = nunca publicada)
- upsert(record, expected_prior_hash)    -> True | False (False = conflito)
- find_by_message(chat_id, message_id)   -> MessageRecord | None

Pin (best-effort, usado pelos endpoints de pin): set_pinned, clear_latest_pin.
O pin pertence à mensagem: trocar o message_id no upsert zera pinned_at.

Linhas nunca são apagadas: `status` registra a exclusão lógica
(absent | posted | stale | deleted).

Exclusão mútua por reserva (sync_leases):
- claim(booking_id, owner)  -> True se pegou o lease; se outro dono estiver
  ativo, marca `dirty` na MESMA transação e devolve False
- finish(booking_id, owner) -> True se alguém marcou dirty enquanto o dono
  trabalhava (o lease é renovado e o dono deve rodar mais uma passada);
  False quando o lease foi liberado
Claim e dirty na mesma transação garantem que nenhum pedido se perde entre
"não consegui o lease" e "o dono liberou".
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import List, Optional

from .storage import get_conn, iso_now, transaction

ABSENT = "absent"
POSTED = "posted"
STALE = "stale"
DELETED = "deleted"

STATUSES = (ABSENT, POSTED, STALE, DELETED)


@dataclass(frozen=True)
class MessageRecord:
    booking_id: int
    chat_id: int
    message_id: Optional[int]
    content_hash: Optional[str]
    status: str
    last_synced_at: Optional[str] = None
    pinned_at: Optional[str] = None

    @property
    def live(self) -> bool:
        """Há (ou deveria haver) uma mensagem no chat para esta reserva."""
        return self.status in (POSTED, STALE) and self.message_id is not None

    def evolve(self, **changes) -> "MessageRecord":
        return replace(self, **changes)


def _row_to_record(row: dict) -> MessageRecord:
    return MessageRecord(
        booking_id=row["booking_id"],
        chat_id=row["chat_id"],
        message_id=row["message_id"],
        content_hash=row["content_hash"],
        status=row["status"],
        last_synced_at=row["last_synced_at"],
        pinned_at=row.get("pinned_at"),
    )


class MessageStateStore:
    def __init__(self, db_path: str, *, lease_seconds: int = 30):
        self.db_path = db_path
        self.lease_seconds = int(lease_seconds)

    # ---------- leitura ----------

    def get(self, booking_id: int) -> Optional[MessageRecord]:
        with get_conn(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM messages WHERE booking_id=?", (int(booking_id),)
            ).fetchone()
        return _row_to_record(row) if row else None

    def find_by_message(self, chat_id: int, message_id: int) -> Optional[MessageRecord]:
        with get_conn(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM messages WHERE chat_id=? AND message_id=? ORDER BY last_synced_at DESC LIMIT 1",
                (int(chat_id), int(message_id)),
            ).fetchone()
        return _row_to_record(row) if row else None

    def list_by_status(self, *statuses: str) -> List[MessageRecord]:
        wanted = statuses or (POSTED, STALE)
        marks = ",".join("?" for _ in wanted)
        with get_conn(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT * FROM messages WHERE status IN ({marks}) ORDER BY booking_id",
                tuple(wanted),
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    # ---------- escrita condicional ----------

    def upsert(self, record: MessageRecord, expected_prior_hash: Optional[str]) -> bool:
        """
        Grava `record` somente se o hash atual for `expected_prior_hash`.
        Sem linha: só insere se expected_prior_hash for None.
        """
        if record.status not in STATUSES:
            raise ValueError(f"status inválido: {record.status!r}")

        now = iso_now()
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT content_hash FROM messages WHERE booking_id=?", (int(record.booking_id),)
            ).fetchone()

            if row is None:
                if expected_prior_hash is not None:
                    return False
                conn.execute(
                    """INSERT INTO messages
                       (booking_id, chat_id, message_id, content_hash, status, last_synced_at, created_at)
                       VALUES (?,?,?,?,?,?,?)""",
                    (int(record.booking_id), int(record.chat_id), record.message_id,
                     record.content_hash, record.status, now, now),
                )
                return True

            if row["content_hash"] != expected_prior_hash:
                return False

            conn.execute(
                """UPDATE messages
                   SET pinned_at=CASE WHEN message_id IS ? THEN pinned_at ELSE NULL END,
                       chat_id=?, message_id=?, content_hash=?, status=?, last_synced_at=?
                   WHERE booking_id=?""",
                (record.message_id, int(record.chat_id), record.message_id, record.content_hash,
                 record.status, now, int(record.booking_id)),
            )
            return True

    def mark_stale(self, booking_id: int) -> bool:
        with get_conn(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE messages SET status=? WHERE booking_id=? AND status=?",
                (STALE, int(booking_id), POSTED),
            )
            return cur.rowcount > 0

    def mark_deleted_by_message(self, chat_id: int, message_id: int) -> int:
        """Desfaz a associação mensagem->reserva (exclusão lógica)."""
        with get_conn(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE messages SET status=?, last_synced_at=? WHERE chat_id=? AND message_id=?",
                (DELETED, iso_now(), int(chat_id), int(message_id)),
            )
            return cur.rowcount

    # ---------- pin ----------

    def set_pinned(self, chat_id: int, message_id: int, pinned: bool) -> int:
        with get_conn(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE messages SET pinned_at=? WHERE chat_id=? AND message_id=?",
                (iso_now() if pinned else None, int(chat_id), int(message_id)),
            )
            return cur.rowcount

    def clear_latest_pin(self, chat_id: int) -> int:
        """unpin sem message_id: o Telegram solta a fixada mais recente."""
        with get_conn(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE messages SET pinned_at=NULL
                   WHERE rowid = (SELECT rowid FROM messages
                                  WHERE chat_id=? AND pinned_at IS NOT NULL
                                  ORDER BY pinned_at DESC LIMIT 1)""",
                (int(chat_id),),
            )
            return cur.rowcount

    # ---------- lease por reserva ----------

    def claim(self, booking_id: int, owner: str) -> bool:
        now = time.time()
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT owner, lease_until FROM sync_leases WHERE booking_id=?", (int(booking_id),)
            ).fetchone()

            if row and row["owner"] and row["owner"] != owner and row["lease_until"] > now:
                conn.execute("UPDATE sync_leases SET dirty=1 WHERE booking_id=?", (int(booking_id),))
                return False

            conn.execute(
                """INSERT INTO sync_leases (booking_id, owner, lease_until, dirty) VALUES (?,?,?,0)
                   ON CONFLICT(booking_id) DO UPDATE SET owner=excluded.owner,
                       lease_until=excluded.lease_until, dirty=0""",
                (int(booking_id), owner, now + self.lease_seconds),
            )
            return True

    def finish(self, booking_id: int, owner: str) -> bool:
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT owner, dirty FROM sync_leases WHERE booking_id=?", (int(booking_id),)
            ).fetchone()
            if not row or row["owner"] != owner:
                return False

            if row["dirty"]:
                conn.execute(
                    "UPDATE sync_leases SET dirty=0, lease_until=? WHERE booking_id=?",
                    (time.time() + self.lease_seconds, int(booking_id)),
                )
                return True

            conn.execute(
                "UPDATE sync_leases SET owner=NULL, lease_until=0 WHERE booking_id=?",
                (int(booking_id),),
            )
            return False

    def release(self, booking_id: int, owner: str) -> None:
        with get_conn(self.db_path) as conn:
            conn.execute(
                "UPDATE sync_leases SET owner=NULL, lease_until=0, dirty=0 WHERE booking_id=? AND owner=?",
                (int(booking_id), owner),
            )
