from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EquipmentType(StrEnum):
    ARMA = "Arma"
    COLETE = "Colete Balístico"
    MUNICAO = "Munição"

    @property
    def serialized(self) -> bool:
        return self is not EquipmentType.MUNICAO


@dataclass(frozen=True)
class EquipmentItem:
    """Controlled equipment (equipamento_controle): a serialized unit or an ammunition lot.

    ``posto_trabalho_id`` None means the item is at the base.
    """

    id: str
    tipo: EquipmentType
    descricao: str
    quantidade: int = 1
    numero_serie: str | None = None
    posto_trabalho_id: str | None = None
    empresa_id: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> EquipmentItem:
        return cls(
            id=str(row["id"]),
            tipo=EquipmentType(row["tipo"]),
            descricao=row.get("descricao") or "",
            quantidade=int(row.get("quantidade") or 0),
            numero_serie=row.get("numero_serie"),
            posto_trabalho_id=row.get("posto_trabalho_id"),
            empresa_id=row.get("empresa_id"),
        )

    @property
    def at_base(self) -> bool:
        return self.posto_trabalho_id is None


@dataclass(frozen=True)
class InventoryStats:
    total: int = 0
    base: int = 0
    posto: int = 0
