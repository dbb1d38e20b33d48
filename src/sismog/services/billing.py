"""Billing records: monthly generation and the Pendente → Faturado lifecycle.

Issuing a billing record creates exactly one receivable. Issue and undo are
multi-step writes; they run inside ``store.atomic()`` and fall back to an
explicit compensating write when the backend cannot roll back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sismog.config import BRT
from sismog.models.billing import Billing, BillingStatus
from sismog.models.contract import Contract
from sismog.models.receivable import ReceivableKind, ReceivableStatus
from sismog.services.exceptions import (
    AlreadyBilledError,
    CompensationError,
    DuplicateBillingError,
    InvalidTransitionError,
    NoActiveContractsError,
    NotFoundError,
    StoreError,
)
from sismog.services.taxes import DEFAULT_RATES, StatutoryRates, compute_taxes
from sismog.store.base import RowStore, eq
from sismog.utils.dates import add_months, clamp_day, first_of_month, month_bounds
from sismog.utils.formatters import format_competencia, to_row_value
from sismog.utils.validators import validate_competencia, validate_date, validate_monetary

logger = logging.getLogger(__name__)

CONTRATOS = "contratos"
FATURAMENTOS = "faturamentos"
RECEBIMENTOS = "recebimentos"


@dataclass(frozen=True)
class GenerationResult:
    competencia: str
    created: int = 0
    skipped_existing: int = 0
    skipped_out_of_term: int = 0

    @property
    def nothing_to_do(self) -> bool:
        return self.created == 0


def _today() -> date:
    return datetime.now(BRT).date()


def _load_contract(store: RowStore, contrato_id: str) -> Contract:
    row = store.get(CONTRATOS, contrato_id)
    if row is None:
        raise NotFoundError(f"Contrato {contrato_id} não encontrado.")
    return Contract.from_row(row)


def _load_billing(store: RowStore, billing_id: str) -> Billing:
    row = store.get(FATURAMENTOS, billing_id)
    if row is None:
        raise NotFoundError(f"Faturamento {billing_id} não encontrado.")
    return Billing.from_row(row)


def issue_date_for(contract: Contract, first: date, today: date) -> date:
    """Issue date inside the competency month, clamped to its last day."""
    if contract.dia_faturamento:
        return clamp_day(first.year, first.month, contract.dia_faturamento)
    return today


def due_date_for(contract: Contract, first: date) -> date | None:
    """Due date from the contract's due day, in the same or the following month."""
    if not contract.dia_vencimento:
        return None
    month = first if contract.vencimento_mes_corrente else add_months(first, 1)
    return clamp_day(month.year, month.month, contract.dia_vencimento)


def build_billing_row(
    contract: Contract,
    competencia: str,
    valor_bruto: Decimal,
    data_emissao: str,
    data_vencimento: str | None,
    rates: StatutoryRates = DEFAULT_RATES,
) -> dict:
    taxes = compute_taxes(valor_bruto, contract, rates)
    return {
        "contrato_id": contract.id,
        "mes_competencia": competencia,
        "valor_bruto": to_row_value(valor_bruto),
        "data_emissao": data_emissao,
        "data_vencimento": data_vencimento,
        "status": str(BillingStatus.PENDENTE),
        "numero_nf": None,
        **taxes.to_row(),
    }


def generate_billings(
    store: RowStore,
    competencia: str,
    *,
    today: date | None = None,
    rates: StatutoryRates = DEFAULT_RATES,
) -> GenerationResult:
    """Create Pendente billing records for every active contract in *competencia*.

    Re-running for the same month creates nothing new. Raises
    NoActiveContractsError when there is no active contract at all.
    """
    comp = validate_competencia(competencia)
    today = today or _today()

    # Existing-billing check and insert run under one lock
    with store.atomic():
        contracts = [Contract.from_row(r) for r in store.select(CONTRATOS, eq("ativo", True))]
        if not contracts:
            raise NoActiveContractsError("Nenhum contrato ativo encontrado.")

        already = {
            r["contrato_id"] for r in store.select(FATURAMENTOS, eq("mes_competencia", comp))
        }
        first, last = month_bounds(comp)

        rows: list[dict] = []
        skipped_existing = skipped_term = 0
        for contract in contracts:
            if contract.id in already:
                skipped_existing += 1
                continue
            if not contract.covers(first, last):
                logger.info("Contract %s outside its term for %s, skipping", contract.id, comp)
                skipped_term += 1
                continue
            vencimento = due_date_for(contract, first)
            rows.append(
                build_billing_row(
                    contract,
                    comp,
                    contract.valor_base_mensal.quantize(Decimal("0.01")),
                    issue_date_for(contract, first, today).isoformat(),
                    vencimento.isoformat() if vencimento else None,
                    rates,
                )
            )

        if rows:
            store.insert_many(FATURAMENTOS, rows)
    logger.info(
        "Generated %d billing(s) for %s (%d existing, %d out of term)",
        len(rows),
        format_competencia(comp),
        skipped_existing,
        skipped_term,
    )
    return GenerationResult(comp, len(rows), skipped_existing, skipped_term)


def list_billings(store: RowStore, competencia: str) -> list[dict]:
    comp = validate_competencia(competencia)
    return store.select(FATURAMENTOS, eq("mes_competencia", comp), order_by="data_emissao")


def create_billing(
    store: RowStore,
    contrato_id: str,
    valor_bruto: str | Decimal,
    data_emissao: str,
    data_vencimento: str | None = None,
    *,
    rates: StatutoryRates = DEFAULT_RATES,
) -> dict:
    """Create one billing record by hand. The competency month follows the issue date."""
    contract = _load_contract(store, contrato_id)
    valor = validate_monetary(str(valor_bruto))
    emissao = validate_date(data_emissao)
    vencimento = validate_date(data_vencimento) if data_vencimento else None
    comp = first_of_month(date.fromisoformat(emissao))

    with store.atomic():
        existing = store.select(
            FATURAMENTOS, eq("contrato_id", contrato_id), eq("mes_competencia", comp)
        )
        if existing:
            raise DuplicateBillingError(
                f"Já existe faturamento para este contrato em {format_competencia(comp)}."
            )
        return store.insert(
            FATURAMENTOS, build_billing_row(contract, comp, valor, emissao, vencimento, rates)
        )


def edit_billing(
    store: RowStore,
    billing_id: str,
    *,
    valor_bruto: str | Decimal | None = None,
    data_emissao: str | None = None,
    data_vencimento: str | None = None,
    observacoes: str | None = None,
    rates: StatutoryRates = DEFAULT_RATES,
) -> dict:
    """Update a Pendente billing record and recompute its taxes from the new gross."""
    billing = _load_billing(store, billing_id)
    if not billing.is_pending:
        raise InvalidTransitionError("Apenas faturamentos pendentes podem ser editados.")
    contract = _load_contract(store, billing.contrato_id)

    valor = validate_monetary(str(valor_bruto)) if valor_bruto is not None else billing.valor_bruto
    changes: dict = {"valor_bruto": to_row_value(valor)}
    changes.update(compute_taxes(valor, contract, rates).to_row())

    if data_emissao is not None:
        emissao = validate_date(data_emissao)
        changes["data_emissao"] = emissao
        comp = first_of_month(date.fromisoformat(emissao))
        if comp != billing.mes_competencia:
            logger.info(
                "Billing %s moved from %s to %s", billing_id, billing.mes_competencia, comp
            )
            changes["mes_competencia"] = comp
    if data_vencimento is not None:
        changes["data_vencimento"] = validate_date(data_vencimento) if data_vencimento else None
    if observacoes is not None:
        changes["observacoes"] = observacoes

    with store.atomic():
        if "mes_competencia" in changes:
            clash = [
                r
                for r in store.select(
                    FATURAMENTOS,
                    eq("contrato_id", billing.contrato_id),
                    eq("mes_competencia", changes["mes_competencia"]),
                )
                if r["id"] != billing_id
            ]
            if clash:
                raise DuplicateBillingError(
                    "Já existe faturamento para este contrato em "
                    f"{format_competencia(changes['mes_competencia'])}."
                )
        return store.update(FATURAMENTOS, billing_id, changes)


def issue_billing(store: RowStore, billing_id: str, numero_nf: str | None = None) -> dict:
    """Move a billing record to Faturado and create its receivable.

    Returns the new receivable row. A second issue for the same record is
    rejected with AlreadyBilledError before anything is written.
    """
    with store.atomic():
        if store.select(RECEBIMENTOS, eq("faturamento_id", billing_id)):
            raise AlreadyBilledError("Este faturamento já possui recebimento gerado.")
        billing = _load_billing(store, billing_id)
        if not billing.is_pending:
            raise InvalidTransitionError("Apenas faturamentos pendentes podem ser faturados.")
        contract = _load_contract(store, billing.contrato_id)

        status_change: dict = {"status": str(BillingStatus.FATURADO)}
        numero_nf = (numero_nf or "").strip()
        if numero_nf:
            status_change["numero_nf"] = numero_nf
        store.update(FATURAMENTOS, billing_id, status_change)

        try:
            receivable = store.insert(
                RECEBIMENTOS,
                {
                    "faturamento_id": billing_id,
                    "empresa_id": contract.empresa_id,
                    "tipo": str(ReceivableKind.FATURAMENTO),
                    "valor": to_row_value(billing.val_liquido_recebimento),
                    "data_vencimento": billing.data_vencimento,
                    "status": str(ReceivableStatus.PENDENTE),
                    "data_recebimento": None,
                },
            )
        except StoreError as exc:
            logger.error("Receivable insert failed for billing %s: %s", billing_id, exc)
            try:
                store.update(
                    FATURAMENTOS,
                    billing_id,
                    {"status": str(BillingStatus.PENDENTE), "numero_nf": billing.numero_nf},
                )
            except StoreError as comp_exc:
                logger.critical(
                    "Could not revert billing %s to Pendente: %s", billing_id, comp_exc
                )
                raise CompensationError(
                    "Falha ao gerar recebimento e ao reverter o faturamento; "
                    "verifique o registro manualmente.",
                    cause=exc,
                    compensation_error=comp_exc,
                ) from comp_exc
            raise StoreError(
                f"Falha ao gerar recebimento: {exc}",
                status_code=exc.status_code,
                response=exc.response,
            ) from exc

    logger.info("Billing %s issued, receivable %s created", billing_id, receivable["id"])
    return receivable


def undo_billing(store: RowStore, billing_id: str) -> dict:
    """Delete the billing record's receivable, then return it to Pendente."""
    with store.atomic():
        billing = _load_billing(store, billing_id)
        if billing.status is not BillingStatus.FATURADO:
            raise InvalidTransitionError("Apenas faturamentos já faturados podem ser desfeitos.")
        # A failed delete propagates before the status is touched
        removed = store.delete_where(RECEBIMENTOS, eq("faturamento_id", billing_id))
        updated = store.update(
            FATURAMENTOS, billing_id, {"status": str(BillingStatus.PENDENTE), "numero_nf": None}
        )
    logger.info("Billing %s reverted to Pendente (%d receivable(s) removed)", billing_id, removed)
    return updated


def delete_billing(store: RowStore, billing_id: str) -> None:
    billing = _load_billing(store, billing_id)
    if not billing.is_pending:
        raise InvalidTransitionError("Apenas faturamentos pendentes podem ser excluídos.")
    store.delete(FATURAMENTOS, billing_id)
    logger.info("Billing %s deleted", billing_id)
