from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import StrEnum

from sismog.utils.formatters import to_row_value
from sismog.utils.validators import to_decimal


class BillingStatus(StrEnum):
    PENDENTE = "Pendente"
    FATURADO = "Faturado"


@dataclass(frozen=True)
class TaxBreakdown:
    """Itemized withholdings and the two net figures for one gross amount."""

    val_iss: Decimal
    val_pis: Decimal
    val_cofins: Decimal
    val_csll: Decimal
    val_irpj: Decimal
    val_inss: Decimal
    val_caucao: Decimal
    total_deducoes: Decimal
    val_liquido_nota: Decimal
    val_liquido_recebimento: Decimal

    def to_row(self) -> dict[str, str]:
        """Columns persisted on the billing row (the deduction total is not stored)."""
        return {
            f.name: to_row_value(getattr(self, f.name))
            for f in fields(self)
            if f.name != "total_deducoes"
        }


@dataclass(frozen=True)
class Billing:
    """Billing record (faturamento) for one contract and competency month."""

    id: str
    contrato_id: str
    mes_competencia: str  # YYYY-MM-01
    valor_bruto: Decimal
    status: BillingStatus
    data_emissao: str | None = None
    data_vencimento: str | None = None
    numero_nf: str | None = None
    val_liquido_recebimento: Decimal = Decimal(0)

    @classmethod
    def from_row(cls, row: dict) -> Billing:
        return cls(
            id=str(row["id"]),
            contrato_id=str(row["contrato_id"]),
            mes_competencia=row["mes_competencia"],
            valor_bruto=to_decimal(row.get("valor_bruto")),
            status=BillingStatus(row.get("status") or BillingStatus.PENDENTE),
            data_emissao=row.get("data_emissao"),
            data_vencimento=row.get("data_vencimento"),
            numero_nf=row.get("numero_nf"),
            val_liquido_recebimento=to_decimal(row.get("val_liquido_recebimento")),
        )

    @property
    def is_pending(self) -> bool:
        return self.status is BillingStatus.PENDENTE
