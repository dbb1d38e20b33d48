from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from sismog.utils.validators import to_decimal


class ReceivableStatus(StrEnum):
    PENDENTE = "Pendente"
    RECEBIDO = "Recebido"


class ReceivableKind(StrEnum):
    FATURAMENTO = "Faturamento"  # created by issuing a billing record
    AVULSO = "Avulso"  # standalone, entered by hand


@dataclass(frozen=True)
class Receivable:
    """Receivable record (recebimento)."""

    id: str
    valor: Decimal
    status: ReceivableStatus
    tipo: ReceivableKind = ReceivableKind.FATURAMENTO
    faturamento_id: str | None = None
    empresa_id: str | None = None
    data_vencimento: str | None = None
    data_recebimento: str | None = None
    observacoes: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> Receivable:
        tipo = row.get("tipo")
        if tipo is None:
            tipo = ReceivableKind.FATURAMENTO if row.get("faturamento_id") else ReceivableKind.AVULSO
        return cls(
            id=str(row["id"]),
            valor=to_decimal(row.get("valor")),
            status=ReceivableStatus(row.get("status") or ReceivableStatus.PENDENTE),
            tipo=ReceivableKind(tipo),
            faturamento_id=row.get("faturamento_id"),
            empresa_id=row.get("empresa_id"),
            data_vencimento=row.get("data_vencimento"),
            data_recebimento=row.get("data_recebimento"),
            observacoes=row.get("observacoes"),
        )
