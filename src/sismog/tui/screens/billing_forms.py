from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from sismog.services.taxes import compute_taxes
from sismog.utils.formatters import format_brl, format_competencia, format_date
from sismog.utils.validators import to_decimal, validate_date, validate_monetary


class IssueBillingScreen(ModalScreen[dict | None]):
    """Confirm issuing a billing record, with an optional invoice number."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, billing: dict) -> None:
        super().__init__()
        self._billing = billing

    def compose(self) -> ComposeResult:
        b = self._billing
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Faturar", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Static(
                f"Competência: {format_competencia(b.get('mes_competencia'))}\n"
                f"Valor bruto: {format_brl(b.get('valor_bruto'))}\n"
                f"Líquido da nota: {format_brl(b.get('val_liquido_nota'))}\n"
                f"A receber: {format_brl(b.get('val_liquido_recebimento'))}\n"
                f"Vencimento: {format_date(b.get('data_vencimento')) or '—'}",
                id="issue-summary",
            )
            yield Label("Número da NF (opcional)", classes="form-label")
            yield Input(placeholder="ex.: 1234", id="nf-input")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("▶ Faturar", id="btn-confirm", variant="success")

    def on_mount(self) -> None:
        self.query_one("#nf-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._confirm()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-confirm":
                self._confirm()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _confirm(self) -> None:
        nf = self.query_one("#nf-input", Input).value.strip()
        self.dismiss({"numero_nf": nf or None})

    def action_cancel(self) -> None:
        self.dismiss(None)


class EditBillingScreen(ModalScreen[dict | None]):
    """Edit gross value and dates of a pending billing record.

    Shows a live preview of the recomputed net receivable when the contract
    row is available.
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, billing: dict) -> None:
        super().__init__()
        self._billing = billing

    def compose(self) -> ComposeResult:
        b = self._billing
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Editar faturamento", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("Valor bruto (R$)", classes="form-label")
            yield Input(value=str(b.get("valor_bruto") or ""), id="valor-input")
            yield Label("Data de emissão (DD/MM/AAAA)", classes="form-label")
            yield Input(value=format_date(b.get("data_emissao")), id="emissao-input")
            yield Label("Vencimento (DD/MM/AAAA)", classes="form-label")
            yield Input(value=format_date(b.get("data_vencimento")), id="vencimento-input")
            yield Label("Observações", classes="form-label")
            yield Input(value=b.get("observacoes") or "", id="obs-input")
            yield Static("", id="preview")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("✓ Salvar", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#valor-input", Input).focus()
        self._update_preview()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "valor-input":
            self._update_preview()

    def _update_preview(self) -> None:
        from sismog.models.contract import Contract
        from sismog.services.billing import CONTRATOS

        contract_row = self.app.store.get(  # type: ignore[attr-defined]
            CONTRATOS, self._billing.get("contrato_id", "")
        )
        if contract_row is None:
            return
        valor = to_decimal(self.query_one("#valor-input", Input).value)
        taxes = compute_taxes(valor, Contract.from_row(contract_row))
        self.query_one("#preview", Static).update(
            f"Deduções: {format_brl(taxes.total_deducoes)}   "
            f"A receber: {format_brl(taxes.val_liquido_recebimento)}"
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-save":
                self._save()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _save(self) -> None:
        valor = self.query_one("#valor-input", Input).value
        emissao = self.query_one("#emissao-input", Input).value
        vencimento = self.query_one("#vencimento-input", Input).value
        try:
            changes: dict = {
                "valor_bruto": validate_monetary(valor),
                "data_emissao": validate_date(emissao),
                "observacoes": self.query_one("#obs-input", Input).value,
            }
            if vencimento.strip():
                changes["data_vencimento"] = validate_date(vencimento)
        except ValueError as e:
            self.query_one("#error-label", Label).update(str(e))
            return
        self.dismiss(changes)

    def action_cancel(self) -> None:
        self.dismiss(None)
