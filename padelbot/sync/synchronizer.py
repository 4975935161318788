# padelbot/sync/synchronizer.py
"""
Synchronizer: deixa a mensagem do chat igual ao estado atual da reserva.

reconcile(booking_id) -> SyncResult

Fluxo de uma passada:
1) carrega snapshot da reserva + MessageRecord
2) decide o estado desejado:
   - reserva cancelada -> apagar (se houver mensagem viva) ou nada
   - reserva aberta    -> criar | editar | nada (compara content_hash)
3) faz NO MÁXIMO uma chamada externa necessária (mais o recreate quando a
   mensagem sumiu por fora)
4) grava o novo registro com upsert condicional (hash anterior esperado)

Concorrência: cada reserva tem um lease em sync_leases. Quem não consegue o
lease marca a reserva como "dirty" e sai com action="deferred" sem chamar o
Telegram; o dono do lease roda mais uma passada quando vê o dirty
(até MAX_PASSES; dirty depois da última passada vira falha "contended").
Nunca existe registro "posted" apontando para mensagem não confirmada: o
store só é escrito depois da resposta do Telegram.

Falhas:
- "external"    -> chamada ao Telegram falhou; seguro repetir tudo
- "persistence" -> Telegram ok mas a escrita local falhou/conflitou; não
                   repetir às cegas, a próxima reconciliação conserta
- "not_found"   -> reserva não existe
- "contended"   -> a reserva mudou de novo durante todas as MAX_PASSES
                   passadas; registro fica stale para a próxima rodada
"""

from __future__ import annotations

import os
import sqlite3
import threading
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..booking.render import DEFAULT_SETTINGS_URL, DEFAULT_TZ, RenderedMessage, render_booking
from ..logging import get_logger
from ..models.bookings import get_booking_snapshot
from ..models.message_store import (
    ABSENT,
    DELETED,
    POSTED,
    STALE,
    MessageRecord,
    MessageStateStore,
)
from ..telegram.client import NOT_FOUND, TelegramError

logger = get_logger(__name__)

MAX_PASSES = 3

# ações
CREATED = "created"
EDITED = "edited"
RECREATED = "recreated"
DELETED_ACTION = "deleted"
NOOP = "noop"
DEFERRED = "deferred"
ERROR = "error"

# falhas
EXTERNAL = "external"
PERSISTENCE = "persistence"
BOOKING_NOT_FOUND = "not_found"
CONTENDED = "contended"


@dataclass(frozen=True)
class SyncResult:
    ok: bool
    action: str
    booking_id: int
    message_id: Optional[int] = None
    failure: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Synchronizer:
    def __init__(
        self,
        db_path: str,
        client,
        store: MessageStateStore,
        chat_id: int | str | None,
        *,
        tz: str = DEFAULT_TZ,
        settings_url: str = DEFAULT_SETTINGS_URL,
        max_passes: int = MAX_PASSES,
    ):
        self.db_path = db_path
        self.client = client
        self.store = store
        self.chat_id = chat_id
        self.tz = tz
        self.settings_url = settings_url
        self.max_passes = max(1, int(max_passes))

    # -----------------------------
    # Entrada pública
    # -----------------------------
    def reconcile(self, booking_id: int) -> SyncResult:
        booking_id = int(booking_id)
        owner = f"{os.getpid()}:{threading.get_ident()}:{uuid.uuid4().hex[:8]}"

        try:
            claimed = self.store.claim(booking_id, owner)
        except sqlite3.Error as e:
            logger.error("sync.lease_error", extra={"booking_id": booking_id, "err": str(e)})
            return SyncResult(False, ERROR, booking_id, failure=PERSISTENCE, error=str(e))

        if not claimed:
            logger.info("sync.deferred", extra={"booking_id": booking_id})
            return SyncResult(True, DEFERRED, booking_id)

        result: Optional[SyncResult] = None
        released = False
        try:
            for attempt in range(1, self.max_passes + 1):
                result = self._run_pass(booking_id)
                try:
                    dirty = self.store.finish(booking_id, owner)
                except sqlite3.Error as e:
                    logger.error("sync.lease_error", extra={"booking_id": booking_id, "err": str(e)})
                    break
                if not dirty:
                    released = True
                    break
                if attempt == self.max_passes:
                    result = self._exhausted(booking_id, result, attempt)
                    break
                logger.info("sync.rerun", extra={"booking_id": booking_id, "pass": attempt + 1})
        finally:
            if not released:
                self._release(booking_id, owner)

        return result

    # -----------------------------
    # Uma passada
    # -----------------------------
    def _run_pass(self, booking_id: int) -> SyncResult:
        try:
            snapshot = get_booking_snapshot(self.db_path, booking_id)
            record = self.store.get(booking_id)
        except sqlite3.Error as e:
            logger.error("sync.load_failed", extra={"booking_id": booking_id, "err": str(e)})
            return SyncResult(False, ERROR, booking_id, failure=PERSISTENCE, error=str(e))

        if snapshot is None:
            logger.info("sync.booking_not_found", extra={"booking_id": booking_id})
            return SyncResult(
                False, ERROR, booking_id, failure=BOOKING_NOT_FOUND, error="booking not found"
            )

        if snapshot.booking.cancelled:
            if record is not None and record.live:
                return self._delete(record)
            return self._noop(booking_id, record)

        rendered = render_booking(snapshot, tz=self.tz, settings_url=self.settings_url)

        if record is None or not record.live:
            return self._create(booking_id, rendered, record, CREATED)

        if record.content_hash == rendered.content_hash:
            if record.status == STALE:
                # texto já bate; só volta o status
                return self._persist(record.evolve(status=POSTED), record.content_hash, NOOP)
            return self._noop(booking_id, record)

        return self._edit(record, rendered)

    # -----------------------------
    # Limpeza em lote
    # -----------------------------
    def sweep(self, *, delay: float = 0.1) -> Dict[str, int]:
        """
        Confere no Telegram cada mensagem viva (posted/stale).

        A checagem reaplica o teclado atual com editMessageReplyMarkup:
        "not modified" ou sucesso = a mensagem existe. As que sumiram por fora
        viram absent (o texto não é tocado); a próxima reconciliação da
        reserva publica de novo. Erros numa mensagem não param as outras.
        """
        checked = cleaned = failed = 0
        for record in self.store.list_by_status(POSTED, STALE):
            if checked and delay:
                time.sleep(delay)
            checked += 1
            try:
                snapshot = get_booking_snapshot(self.db_path, record.booking_id)
            except sqlite3.Error as e:
                logger.error("sync.sweep_load_failed", extra={"booking_id": record.booking_id, "err": str(e)})
                failed += 1
                continue
            markup = None
            if snapshot is not None and not snapshot.booking.cancelled:
                markup = render_booking(snapshot, tz=self.tz, settings_url=self.settings_url).reply_markup

            try:
                self.client.edit_message_reply_markup(record.chat_id, record.message_id, reply_markup=markup)
                continue
            except TelegramError as e:
                if e.kind != NOT_FOUND:
                    logger.warning(
                        "sync.sweep_check_failed",
                        extra={"booking_id": record.booking_id, "kind": e.kind, "error_code": e.error_code},
                    )
                    failed += 1
                    continue

            absent = record.evolve(status=ABSENT, content_hash=None)
            try:
                marked = self.store.upsert(absent, record.content_hash)
            except sqlite3.Error as e:
                logger.error("sync.sweep_persist_failed", extra={"booking_id": record.booking_id, "err": str(e)})
                failed += 1
                continue
            if marked:
                cleaned += 1
                logger.info(
                    "sync.sweep_missing",
                    extra={"booking_id": record.booking_id, "message_id": record.message_id},
                )

        logger.info("sync.sweep_done", extra={"checked": checked, "cleaned": cleaned, "failed": failed})
        return {"checked": checked, "cleaned": cleaned, "failed": failed}

    # -----------------------------
    # Ações
    # -----------------------------
    def _create(
        self,
        booking_id: int,
        rendered: RenderedMessage,
        prior: Optional[MessageRecord],
        action: str,
    ) -> SyncResult:
        if self.chat_id in (None, ""):
            logger.error("sync.misconfig", extra={"booking_id": booking_id, "have_chat_id": False})
            return SyncResult(False, action, booking_id, failure=EXTERNAL, error="CHAT_ID not configured")

        try:
            message_id = self.client.send_message(
                self.chat_id, rendered.text, reply_markup=rendered.reply_markup
            )
        except TelegramError as e:
            return self._external_failure(booking_id, action, e)

        record = MessageRecord(
            booking_id=booking_id,
            chat_id=int(self.chat_id),
            message_id=message_id,
            content_hash=rendered.content_hash,
            status=POSTED,
        )
        return self._persist(record, prior.content_hash if prior else None, action)

    def _edit(self, record: MessageRecord, rendered: RenderedMessage) -> SyncResult:
        try:
            self.client.edit_message_text(
                record.chat_id,
                record.message_id,
                rendered.text,
                reply_markup=rendered.reply_markup,
            )
        except TelegramError as e:
            if e.kind == NOT_FOUND:
                return self._recover_missing(record, rendered)
            if e.retryable:
                try:
                    self.store.mark_stale(record.booking_id)
                except sqlite3.Error as se:
                    logger.warning(
                        "sync.mark_stale_failed",
                        extra={"booking_id": record.booking_id, "err": str(se)},
                    )
            return self._external_failure(record.booking_id, EDITED, e, record.message_id)

        updated = record.evolve(content_hash=rendered.content_hash, status=POSTED)
        return self._persist(updated, record.content_hash, EDITED)

    def _recover_missing(self, record: MessageRecord, rendered: RenderedMessage) -> SyncResult:
        """Mensagem apagada por fora: marca absent e cria de novo (uma vez)."""
        logger.warning(
            "sync.message_gone",
            extra={"booking_id": record.booking_id, "message_id": record.message_id},
        )
        absent = record.evolve(status=ABSENT, content_hash=None)
        marked = self._persist(absent, record.content_hash, RECREATED, log=False)
        if not marked.ok:
            return marked
        return self._create(record.booking_id, rendered, absent, RECREATED)

    def _delete(self, record: MessageRecord) -> SyncResult:
        try:
            self.client.delete_message(record.chat_id, record.message_id)
        except TelegramError as e:
            if e.kind != NOT_FOUND:
                return self._external_failure(record.booking_id, DELETED_ACTION, e, record.message_id)
            logger.info(
                "sync.delete_already_gone",
                extra={"booking_id": record.booking_id, "message_id": record.message_id},
            )

        deleted = record.evolve(status=DELETED, content_hash=None)
        return self._persist(deleted, record.content_hash, DELETED_ACTION)

    def _noop(self, booking_id: int, record: Optional[MessageRecord]) -> SyncResult:
        logger.debug("sync.noop", extra={"booking_id": booking_id})
        return SyncResult(True, NOOP, booking_id, message_id=record.message_id if record else None)

    # -----------------------------
    # Helpers
    # -----------------------------
    def _persist(
        self,
        record: MessageRecord,
        expected_prior_hash: Optional[str],
        action: str,
        *,
        log: bool = True,
    ) -> SyncResult:
        try:
            written = self.store.upsert(record, expected_prior_hash)
        except sqlite3.Error as e:
            logger.error(
                "sync.persist_failed",
                extra={"booking_id": record.booking_id, "action": action, "err": str(e)},
            )
            return SyncResult(
                False, action, record.booking_id, record.message_id, failure=PERSISTENCE, error=str(e)
            )

        if not written:
            logger.error(
                "sync.conflict",
                extra={
                    "booking_id": record.booking_id,
                    "action": action,
                    "expected_hash": expected_prior_hash,
                },
            )
            return SyncResult(
                False,
                action,
                record.booking_id,
                record.message_id,
                failure=PERSISTENCE,
                error="conflicting write",
            )

        if log:
            logger.info(
                f"sync.{action}",
                extra={
                    "booking_id": record.booking_id,
                    "message_id": record.message_id,
                    "status": record.status,
                },
            )
        return SyncResult(True, action, record.booking_id, record.message_id)

    def _external_failure(
        self,
        booking_id: int,
        action: str,
        err: TelegramError,
        message_id: Optional[int] = None,
    ) -> SyncResult:
        logger.warning(
            "sync.external_failed",
            extra={
                "booking_id": booking_id,
                "action": action,
                "kind": err.kind,
                "error_code": err.error_code,
                "retry_after": err.retry_after,
            },
        )
        return SyncResult(
            False, action, booking_id, message_id, failure=EXTERNAL, error=err.description or err.kind
        )

    def _exhausted(self, booking_id: int, last: SyncResult, passes: int) -> SyncResult:
        """
        Ainda dirty depois da última passada: alguém mudou a reserva e foi
        adiado. Marca stale (o update-messages em massa pega) e devolve falha
        para o chamador não achar que o chat está em dia.
        """
        logger.warning("sync.passes_exhausted", extra={"booking_id": booking_id, "passes": passes})
        try:
            self.store.mark_stale(booking_id)
        except sqlite3.Error as e:
            logger.error("sync.mark_stale_failed", extra={"booking_id": booking_id, "err": str(e)})
        return SyncResult(
            False, last.action, booking_id, last.message_id, failure=CONTENDED, error="passes exhausted"
        )

    def _release(self, booking_id: int, owner: str) -> None:
        try:
            self.store.release(booking_id, owner)
        except sqlite3.Error as e:
            # lease expira sozinho em SYNC_LEASE_SECONDS
            logger.error("sync.lease_release_failed", extra={"booking_id": booking_id, "err": str(e)})
