"""Withholding calculation for billing records.

ISS is always computed from the contract's rate but only deducted when the
contract withholds it. Caução (escrow) is never part of the invoice deductions;
it only reduces the amount actually received.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from sismog.models.billing import TaxBreakdown
from sismog.models.contract import Contract
from sismog.utils.validators import to_decimal

logger = logging.getLogger(__name__)

CENTAVO = Decimal("0.01")
_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class StatutoryRates:
    """Federal withholding rates as fractions of the gross amount."""

    pis: Decimal = Decimal("0.0065")
    cofins: Decimal = Decimal("0.03")
    csll: Decimal = Decimal("0.01")
    irpj: Decimal = Decimal("0.015")
    inss: Decimal = Decimal("0.11")

    def with_overrides(self, overrides: dict[str, str]) -> StatutoryRates:
        """Return a copy with rates replaced from a ``{"pis": "0.0065", ...}`` mapping."""
        known = {k: to_decimal(v) for k, v in overrides.items() if k in self.__dataclass_fields__}
        unknown = set(overrides) - set(known)
        if unknown:
            logger.warning("Ignoring unknown rate overrides: %s", ", ".join(sorted(unknown)))
        return replace(self, **known)


DEFAULT_RATES = StatutoryRates()


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def compute_taxes(
    gross: object, contract: Contract, rates: StatutoryRates = DEFAULT_RATES
) -> TaxBreakdown:
    """Compute every withholding and both net figures for *gross*.

    Non-numeric, missing, NaN or infinite inputs are treated as zero; this
    function never raises on bad numbers.
    """
    valor = to_decimal(gross)

    def withheld(flag: bool, rate: Decimal) -> Decimal:
        return _cents(valor * rate) if flag else Decimal("0.00")

    iss = _cents(valor * to_decimal(contract.aliquota_iss) / _HUNDRED)
    pis = withheld(contract.retem_pis, rates.pis)
    cofins = withheld(contract.retem_cofins, rates.cofins)
    csll = withheld(contract.retem_csll, rates.csll)
    irpj = withheld(contract.retem_irpj, rates.irpj)
    inss = withheld(contract.retem_inss, rates.inss)
    caucao = withheld(contract.retem_caucao, to_decimal(contract.aliquota_caucao) / _HUNDRED)

    deducoes = (iss if contract.retem_iss else Decimal(0)) + pis + cofins + csll + irpj + inss
    # Gross truncated to centavos so the net never exceeds it
    liquido_nota = valor.quantize(CENTAVO, rounding=ROUND_DOWN) - deducoes

    return TaxBreakdown(
        val_iss=iss,
        val_pis=pis,
        val_cofins=cofins,
        val_csll=csll,
        val_irpj=irpj,
        val_inss=inss,
        val_caucao=caucao,
        total_deducoes=deducoes,
        val_liquido_nota=liquido_nota,
        val_liquido_recebimento=liquido_nota - caucao,
    )


def configured_rates() -> StatutoryRates:
    """Statutory rates with any ``aliquotas:`` overrides from settings.yaml applied."""
    from sismog.config import get_rate_overrides

    overrides = get_rate_overrides()
    if not overrides:
        return DEFAULT_RATES
    return DEFAULT_RATES.with_overrides(overrides)
