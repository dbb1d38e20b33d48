from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sismog.utils.dates import contract_end
from sismog.utils.validators import to_decimal


def _opt_int(value: object) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Contract:
    """Service contract (contrato) between the company and a client work site."""

    id: str
    valor_base_mensal: Decimal
    empresa_id: str | None = None
    posto_trabalho_id: str | None = None
    nome_posto: str = ""
    dia_faturamento: int | None = None
    dia_vencimento: int | None = None
    vencimento_mes_corrente: bool = True
    data_inicio: date | None = None
    duracao_meses: int | None = None
    ativo: bool = True

    # Withholding flags and contract-specific rates (percent)
    retem_iss: bool = False
    aliquota_iss: Decimal = Decimal(0)
    retem_pis: bool = False
    retem_cofins: bool = False
    retem_csll: bool = False
    retem_irpj: bool = False
    retem_inss: bool = False
    retem_caucao: bool = False
    aliquota_caucao: Decimal = Decimal(0)

    @classmethod
    def from_row(cls, row: dict) -> Contract:
        """Create a Contract from a store row, applying defaults for optional columns."""
        inicio = row.get("data_inicio")
        return cls(
            id=str(row["id"]),
            valor_base_mensal=to_decimal(row.get("valor_base_mensal")),
            empresa_id=row.get("empresa_id"),
            posto_trabalho_id=row.get("posto_trabalho_id"),
            nome_posto=row.get("nome_posto") or "",
            dia_faturamento=_opt_int(row.get("dia_faturamento")),
            dia_vencimento=_opt_int(row.get("dia_vencimento")),
            vencimento_mes_corrente=row.get("vencimento_mes_corrente") is not False,
            data_inicio=date.fromisoformat(inicio[:10]) if inicio else None,
            duracao_meses=_opt_int(row.get("duracao_meses")),
            ativo=bool(row.get("ativo", True)),
            retem_iss=bool(row.get("retem_iss")),
            aliquota_iss=to_decimal(row.get("aliquota_iss")),
            retem_pis=bool(row.get("retem_pis")),
            retem_cofins=bool(row.get("retem_cofins")),
            retem_csll=bool(row.get("retem_csll")),
            retem_irpj=bool(row.get("retem_irpj")),
            retem_inss=bool(row.get("retem_inss")),
            retem_caucao=bool(row.get("retem_caucao")),
            aliquota_caucao=to_decimal(row.get("aliquota_caucao")),
        )

    @property
    def data_fim(self) -> date | None:
        """Last valid day of the contract, or None when the term is open-ended."""
        if self.data_inicio is None or not self.duracao_meses:
            return None
        return contract_end(self.data_inicio, self.duracao_meses)

    def covers(self, first: date, last: date) -> bool:
        """True unless the [first, last] range falls entirely outside the contract term."""
        end = self.data_fim
        if end is None or self.data_inicio is None:
            return True
        return not (last < self.data_inicio or first > end)
