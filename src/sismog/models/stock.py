from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ProductType(StrEnum):
    INDIVIDUAL = "Individual"  # issued to employees
    COLETIVO = "Coletivo"  # issued to work sites


class MovementType(StrEnum):
    ENTREGAR = "ENTREGAR"
    DEVOLVER = "DEVOLVER"
    ADICIONAR_LOTE = "ADICIONAR_LOTE"
    DESCARTAR_LOTE = "DESCARTAR_LOTE"


@dataclass(frozen=True)
class Product:
    """Stock product (estoque_produto). Counters are a view rebuilt from the ledger."""

    id: str
    tipo: ProductType
    nome: str
    categoria: str = ""
    variacao: str = ""
    codigo_ref: str = ""
    estoque_minimo: int = 5
    estoque_base: int = 0
    estoque_em_uso: int = 0

    @classmethod
    def from_row(cls, row: dict) -> Product:
        return cls(
            id=str(row["id"]),
            tipo=ProductType(row.get("tipo") or ProductType.INDIVIDUAL),
            nome=row.get("nome") or "",
            categoria=row.get("categoria") or "",
            variacao=row.get("variacao") or "",
            codigo_ref=row.get("codigo_ref") or "",
            estoque_minimo=int(row.get("estoque_minimo") or 0),
            estoque_base=int(row.get("estoque_base") or 0),
            estoque_em_uso=int(row.get("estoque_em_uso") or 0),
        )


@dataclass(frozen=True)
class Movement:
    """Immutable stock movement (estoque_movimentacao)."""

    produto_id: str
    tipo_movimento: MovementType
    quantidade: int
    data_movimento: str
    funcionario_id: str | None = None
    posto_trabalho_id: str | None = None
    empresa_destino: str | None = None
    observacao: str | None = None
    id: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> Movement:
        return cls(
            id=row.get("id"),
            produto_id=str(row["produto_id"]),
            tipo_movimento=MovementType(row["tipo_movimento"]),
            quantidade=int(row.get("quantidade") or 0),
            data_movimento=row.get("data_movimento") or "",
            funcionario_id=row.get("funcionario_id"),
            posto_trabalho_id=row.get("posto_trabalho_id"),
            empresa_destino=row.get("empresa_destino"),
            observacao=row.get("observacao"),
        )

    def to_row(self) -> dict:
        return {
            "produto_id": self.produto_id,
            "tipo_movimento": str(self.tipo_movimento),
            "quantidade": self.quantidade,
            "data_movimento": self.data_movimento,
            "funcionario_id": self.funcionario_id,
            "posto_trabalho_id": self.posto_trabalho_id,
            "empresa_destino": self.empresa_destino,
            "observacao": self.observacao,
        }


@dataclass(frozen=True)
class StockLevels:
    base: int
    in_use: int
