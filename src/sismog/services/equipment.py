"""Controlled equipment: serialized weapons and vests, fungible ammunition lots.

Serialized units move by updating their location, with one audit row per
transfer. Ammunition is split and merged across (description, location) lots;
only the current balance per location is kept.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime

from sismog.config import BRT
from sismog.models.equipment import EquipmentItem, EquipmentType, InventoryStats
from sismog.services.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from sismog.store.base import RowStore, eq, is_null

logger = logging.getLogger(__name__)

EQUIPAMENTOS = "equipamentos_controle"
MOVIMENTACOES = "equipamentos_movimentacoes"


def _location_filter(posto_trabalho_id: str | None):
    if posto_trabalho_id is None:
        return is_null("posto_trabalho_id")
    return eq("posto_trabalho_id", posto_trabalho_id)


def _find_lot(store: RowStore, descricao: str, posto_trabalho_id: str | None) -> dict | None:
    return store.first(
        EQUIPAMENTOS,
        eq("tipo", str(EquipmentType.MUNICAO)),
        eq("descricao", descricao),
        _location_filter(posto_trabalho_id),
    )


def list_equipment(store: RowStore, tipo: EquipmentType | str | None = None) -> list[EquipmentItem]:
    filters = [eq("tipo", str(EquipmentType(tipo)))] if tipo else []
    return [
        EquipmentItem.from_row(r)
        for r in store.select(EQUIPAMENTOS, *filters, order_by="descricao")
    ]


def add_equipment(
    store: RowStore,
    tipo: EquipmentType | str,
    descricao: str,
    *,
    numero_serie: str | None = None,
    quantidade: int = 1,
    empresa_id: str | None = None,
) -> dict:
    """Register equipment at the base.

    Serialized items need a unique serial number. Ammunition is merged into
    the base lot with the same description when one exists.
    """
    kind = EquipmentType(tipo)
    descricao = descricao.strip()
    if not descricao:
        raise ValidationError("Descrição é obrigatória.")

    with store.atomic():
        if kind.serialized:
            serie = (numero_serie or "").strip().upper()
            if not serie:
                raise ValidationError("Número de série é obrigatório para armas e coletes.")
            if store.select(EQUIPAMENTOS, eq("numero_serie", serie)):
                raise ValidationError(f"Número de série {serie} já cadastrado.")
            row = store.insert(
                EQUIPAMENTOS,
                {
                    "empresa_id": empresa_id,
                    "tipo": str(kind),
                    "descricao": descricao,
                    "numero_serie": serie,
                    "quantidade": 1,
                    "posto_trabalho_id": None,
                },
            )
        else:
            if quantidade <= 0:
                raise ValidationError("Quantidade deve ser maior que zero.")
            lot = _find_lot(store, descricao, None)
            if lot is not None:
                row = store.update(
                    EQUIPAMENTOS, lot["id"], {"quantidade": int(lot["quantidade"]) + quantidade}
                )
            else:
                row = store.insert(
                    EQUIPAMENTOS,
                    {
                        "empresa_id": empresa_id,
                        "tipo": str(kind),
                        "descricao": descricao,
                        "numero_serie": None,
                        "quantidade": quantidade,
                        "posto_trabalho_id": None,
                    },
                )
    logger.info("Equipment %s registered: %s", kind, descricao)
    return row


def transfer_serialized(
    store: RowStore,
    item_id: str,
    destino_posto_id: str | None,
    *,
    today: date | None = None,
) -> dict:
    """Move a serialized unit to a work site, or back to the base with None."""
    with store.atomic():
        row = store.get(EQUIPAMENTOS, item_id)
        if row is None:
            raise NotFoundError(f"Equipamento {item_id} não encontrado.")
        item = EquipmentItem.from_row(row)
        if not item.tipo.serialized:
            raise ValidationError("Munição é transferida por lote.")
        if item.posto_trabalho_id == destino_posto_id:
            raise ValidationError("Equipamento já está neste local.")

        updated = store.update(EQUIPAMENTOS, item_id, {"posto_trabalho_id": destino_posto_id})
        store.insert(
            MOVIMENTACOES,
            {
                "equipamento_id": item_id,
                "origem_posto_id": item.posto_trabalho_id,
                "destino_posto_id": destino_posto_id,
                "data_movimento": (today or datetime.now(BRT).date()).isoformat(),
            },
        )
    logger.info(
        "Equipment %s moved %s → %s",
        item.numero_serie,
        item.posto_trabalho_id or "base",
        destino_posto_id or "base",
    )
    return updated


def transfer_history(store: RowStore, item_id: str) -> list[dict]:
    return store.select(MOVIMENTACOES, eq("equipamento_id", item_id), order_by="data_movimento")


def transfer_lot(
    store: RowStore,
    descricao: str,
    origem_posto_id: str | None,
    destino_posto_id: str | None,
    quantidade: int,
) -> None:
    """Move *quantidade* rounds between two locations, splitting and merging lots.

    The source row is deleted exactly when it reaches zero.
    """
    if quantidade <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.")
    if origem_posto_id == destino_posto_id:
        raise ValidationError("Origem e destino são o mesmo local.")

    with store.atomic():
        source = _find_lot(store, descricao, origem_posto_id)
        available = int(source["quantidade"]) if source else 0
        if source is None or quantidade > available:
            raise InsufficientBalanceError(
                f"Saldo insuficiente de {descricao}: disponível {available}, "
                f"solicitado {quantidade}."
            )

        if quantidade == available:
            store.delete(EQUIPAMENTOS, source["id"])
        else:
            store.update(EQUIPAMENTOS, source["id"], {"quantidade": available - quantidade})

        target = _find_lot(store, descricao, destino_posto_id)
        if target is not None:
            store.update(
                EQUIPAMENTOS, target["id"], {"quantidade": int(target["quantidade"]) + quantidade}
            )
        else:
            store.insert(
                EQUIPAMENTOS,
                {
                    "empresa_id": source.get("empresa_id"),
                    "tipo": str(EquipmentType.MUNICAO),
                    "descricao": descricao,
                    "numero_serie": None,
                    "quantidade": quantidade,
                    "posto_trabalho_id": destino_posto_id,
                },
            )
    logger.info(
        "%d × %s moved %s → %s",
        quantidade,
        descricao,
        origem_posto_id or "base",
        destino_posto_id or "base",
    )


def inventory_stats(items: Iterable[EquipmentItem]) -> dict[EquipmentType, InventoryStats]:
    """Totals per equipment type, split between the base and work sites."""
    stats = {kind: InventoryStats() for kind in EquipmentType}
    for item in items:
        current = stats[item.tipo]
        qty = item.quantidade if not item.tipo.serialized else 1
        stats[item.tipo] = InventoryStats(
            total=current.total + qty,
            base=current.base + (qty if item.at_base else 0),
            posto=current.posto + (0 if item.at_base else qty),
        )
    return stats
