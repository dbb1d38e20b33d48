from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from sismog.config import BRT
from sismog.models.receivable import Receivable, ReceivableKind, ReceivableStatus
from sismog.services.exceptions import InvalidTransitionError, NotFoundError
from sismog.store.base import RowStore, eq
from sismog.utils.formatters import to_row_value
from sismog.utils.validators import validate_date, validate_monetary

logger = logging.getLogger(__name__)

RECEBIMENTOS = "recebimentos"


def _load(store: RowStore, receivable_id: str) -> Receivable:
    row = store.get(RECEBIMENTOS, receivable_id)
    if row is None:
        raise NotFoundError(f"Recebimento {receivable_id} não encontrado.")
    return Receivable.from_row(row)


def list_receivables(store: RowStore, status: ReceivableStatus | str | None = None) -> list[dict]:
    filters = [eq("status", str(ReceivableStatus(status)))] if status else []
    return store.select(RECEBIMENTOS, *filters, order_by="data_vencimento")


def mark_received(store: RowStore, receivable_id: str, today: date | None = None) -> dict:
    """Pendente → Recebido, stamping the receipt date. The billing record is untouched."""
    rec = _load(store, receivable_id)
    if rec.status is ReceivableStatus.RECEBIDO:
        raise InvalidTransitionError("Recebimento já está marcado como recebido.")
    today = today or datetime.now(BRT).date()
    logger.info("Receivable %s received on %s", receivable_id, today)
    return store.update(
        RECEBIMENTOS,
        receivable_id,
        {"status": str(ReceivableStatus.RECEBIDO), "data_recebimento": today.isoformat()},
    )


def undo_receipt(store: RowStore, receivable_id: str) -> dict:
    rec = _load(store, receivable_id)
    if rec.status is not ReceivableStatus.RECEBIDO:
        raise InvalidTransitionError("Recebimento ainda não foi recebido.")
    return store.update(
        RECEBIMENTOS,
        receivable_id,
        {"status": str(ReceivableStatus.PENDENTE), "data_recebimento": None},
    )


def edit_receivable(
    store: RowStore,
    receivable_id: str,
    *,
    valor: str | Decimal | None = None,
    data_vencimento: str | None = None,
    status: ReceivableStatus | str | None = None,
    observacoes: str | None = None,
) -> dict:
    """Free-form edit of a Pendente receivable."""
    rec = _load(store, receivable_id)
    if rec.status is not ReceivableStatus.PENDENTE:
        raise InvalidTransitionError("Apenas recebimentos pendentes podem ser editados.")

    changes: dict = {}
    if valor is not None:
        changes["valor"] = to_row_value(validate_monetary(str(valor), allow_zero=True))
    if data_vencimento is not None:
        changes["data_vencimento"] = validate_date(data_vencimento)
    if observacoes is not None:
        changes["observacoes"] = observacoes
    if status is not None:
        new_status = ReceivableStatus(status)
        changes["status"] = str(new_status)
        if new_status is ReceivableStatus.RECEBIDO:
            changes["data_recebimento"] = datetime.now(BRT).date().isoformat()
    if not changes:
        return store.get(RECEBIMENTOS, receivable_id) or {}
    return store.update(RECEBIMENTOS, receivable_id, changes)


def create_standalone_receivable(
    store: RowStore,
    empresa_id: str | None,
    valor: str | Decimal,
    data_vencimento: str,
    observacoes: str | None = None,
) -> dict:
    """Register a receivable not tied to any billing record (Avulso)."""
    row = store.insert(
        RECEBIMENTOS,
        {
            "faturamento_id": None,
            "empresa_id": empresa_id,
            "tipo": str(ReceivableKind.AVULSO),
            "valor": to_row_value(validate_monetary(str(valor))),
            "data_vencimento": validate_date(data_vencimento),
            "status": str(ReceivableStatus.PENDENTE),
            "data_recebimento": None,
            "observacoes": observacoes,
        },
    )
    logger.info("Standalone receivable %s created", row["id"])
    return row


def delete_receivable(store: RowStore, receivable_id: str) -> None:
    """Delete a standalone receivable. Billing receivables go away through undo_billing."""
    rec = _load(store, receivable_id)
    if rec.tipo is not ReceivableKind.AVULSO:
        raise InvalidTransitionError(
            "Recebimentos gerados por faturamento só podem ser removidos desfazendo o faturamento."
        )
    store.delete(RECEBIMENTOS, receivable_id)
