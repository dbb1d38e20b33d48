from __future__ import annotations

from datetime import date
from decimal import Decimal

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Label, Static

from sismog.models.billing import Billing, BillingStatus
from sismog.services.exceptions import NoActiveContractsError, SismogError
from sismog.utils.dates import add_months
from sismog.utils.formatters import format_brl, format_competencia, format_date
from sismog.utils.validators import to_decimal


class DashboardScreen(Screen):
    """Billing records of the selected competency month."""

    BINDINGS = [
        # List actions — hidden from footer (have buttons above table)
        Binding("g", "generate", "Gerar", show=False),
        Binding("f", "issue", "Faturar", show=False),
        Binding("u", "undo", "Desfazer", show=False),
        Binding("e", "edit", "Editar", show=False),
        Binding("x", "delete", "Excluir", show=False),
        Binding("left_square_bracket", "prev_month", "Mês anterior", show=False),
        Binding("right_square_bracket", "next_month", "Próximo mês", show=False),
        # Navigation — shown in footer
        Binding("r", "receivables", "Recebimentos"),
        Binding("s", "stock", "Estoque"),
        Binding("a", "equipment", "Armamento"),
        Binding("h", "help", "Ajuda"),
        Binding("q", "quit", "Sair"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._billings: dict[str, dict] = {}

    def compose(self) -> ComposeResult:
        with Horizontal(id="top-bar"):
            yield Static("SISMOG Back-office", id="app-title")
            yield Button(
                self._month_label(),
                id="month-badge",
                tooltip="Competência exibida ([ e ] trocam o mês)",
            )

        with Horizontal(id="info-bar"):
            with Vertical(id="card-count", classes="info-card"):
                yield Label("Faturamentos", classes="card-title")
                yield Label("…", id="count-info", classes="card-value")
            with Vertical(id="card-gross", classes="info-card"):
                yield Label("Valor bruto", classes="card-title")
                yield Label("…", id="gross-info", classes="card-value")
            with Vertical(id="card-net", classes="info-card"):
                yield Label("Líquido a receber", classes="card-title")
                yield Label("…", id="net-info", classes="card-value")

        with Horizontal(id="action-bar"):
            yield Button(
                "+ Gerar mês",
                id="btn-generate",
                variant="primary",
                tooltip="Gerar faturamentos dos contratos ativos (g)",
            )
            yield Button("▶ Faturar", id="btn-issue", variant="success", tooltip="(f)")
            yield Button("↺ Desfazer", id="btn-undo", tooltip="(u)")
            yield Button("✎ Editar", id="btn-edit", tooltip="(e)")
            yield Button("✕ Excluir", id="btn-delete", variant="error", tooltip="(x)")

        yield DataTable(id="billing-table", cursor_type="row")
        yield Static(
            "Nenhum faturamento nesta competência.\n"
            "Pressione [bold]g[/bold] para gerar a partir dos contratos ativos.",
            id="empty-state",
        )
        yield Footer()

    def on_mount(self) -> None:
        self._load_billings()
        self.query_one("#billing-table", DataTable).focus()

    def on_key(self, event: Key) -> None:
        table = self.query_one("#billing-table", DataTable)
        match event.key:
            case "j":
                table.action_cursor_down()
            case "k":
                table.action_cursor_up()
            case _:
                return
        event.prevent_default()
        event.stop()

    # --- Data loading (threaded) ---

    def _month_label(self) -> str:
        return f"Competência {format_competencia(self.app.competencia)}"  # type: ignore[attr-defined]

    @work(thread=True, exclusive=True, group="billings")
    def _load_billings(self) -> None:
        from sismog.services.billing import CONTRATOS, list_billings

        store = self.app.store  # type: ignore[attr-defined]
        rows = list_billings(store, self.app.competencia)  # type: ignore[attr-defined]
        postos = {c["id"]: c.get("nome_posto") or "" for c in store.select(CONTRATOS)}
        self.app.call_from_thread(self._populate_table, rows, postos)

    def _populate_table(self, rows: list[dict], postos: dict[str, str]) -> None:
        self._billings = {r["id"]: r for r in rows}
        table = self.query_one("#billing-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Posto", "Emissão", "Vencimento", "Bruto", "Líquido", "NF", "Status")

        status_styles = {
            BillingStatus.PENDENTE: "[yellow]Pendente[/yellow]",
            BillingStatus.FATURADO: "[green]Faturado[/green]",
        }
        gross = net = Decimal(0)
        for row in rows:
            billing = Billing.from_row(row)
            gross += billing.valor_bruto
            net += billing.val_liquido_recebimento
            table.add_row(
                postos.get(billing.contrato_id, billing.contrato_id),
                format_date(billing.data_emissao),
                format_date(billing.data_vencimento),
                format_brl(billing.valor_bruto),
                format_brl(to_decimal(row.get("val_liquido_nota"))),
                billing.numero_nf or "",
                status_styles[billing.status],
                key=billing.id,
            )

        self.query_one("#count-info", Label).update(str(len(rows)))
        self.query_one("#gross-info", Label).update(format_brl(gross))
        self.query_one("#net-info", Label).update(format_brl(net))
        self.query_one("#month-badge", Button).label = self._month_label()

        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    def _selected(self) -> dict | None:
        table = self.query_one("#billing-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._billings.get(str(row_key.value))

    def _require_selected(self) -> dict | None:
        row = self._selected()
        if row is None:
            self.notify("Nenhum faturamento selecionado", severity="warning", timeout=3)
        return row

    # --- Event handlers ---

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-generate":
                self.action_generate()
            case "btn-issue":
                self.action_issue()
            case "btn-undo":
                self.action_undo()
            case "btn-edit":
                self.action_edit()
            case "btn-delete":
                self.action_delete()
            case "month-badge":
                self.action_next_month()

    # --- Actions ---

    def action_generate(self) -> None:
        self.notify("Gerando faturamentos…", severity="information", timeout=2)
        self._run_generate()

    @work(thread=True, exclusive=True, group="generate")
    def _run_generate(self) -> None:
        from sismog.services.billing import generate_billings
        from sismog.services.taxes import configured_rates

        try:
            result = generate_billings(
                self.app.store,  # type: ignore[attr-defined]
                self.app.competencia,  # type: ignore[attr-defined]
                rates=configured_rates(),
            )
        except NoActiveContractsError as e:
            self.app.call_from_thread(self.notify, str(e), severity="warning", timeout=4)
            return
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        if result.nothing_to_do:
            msg = "Nada a gerar: todos os contratos já faturados ou fora da vigência."
        else:
            msg = f"{result.created} faturamento(s) gerado(s)."
        self.app.call_from_thread(self._on_done, msg)

    def action_issue(self) -> None:
        row = self._require_selected()
        if row is None:
            return
        if row.get("status") != BillingStatus.PENDENTE:
            self.notify("Faturamento já foi faturado", severity="warning", timeout=3)
            return
        from sismog.tui.screens.billing_forms import IssueBillingScreen

        self.app.push_screen(
            IssueBillingScreen(row),
            callback=lambda result: self._on_issue_confirmed(row["id"], result),
        )

    def _on_issue_confirmed(self, billing_id: str, result: dict | None) -> None:
        if result is not None:
            self._run_issue(billing_id, result.get("numero_nf"))

    @work(thread=True)
    def _run_issue(self, billing_id: str, numero_nf: str | None) -> None:
        from sismog.services.billing import issue_billing

        try:
            issue_billing(self.app.store, billing_id, numero_nf)  # type: ignore[attr-defined]
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Faturado. Recebimento gerado.")

    def action_undo(self) -> None:
        row = self._require_selected()
        if row is None:
            return
        from sismog.tui.screens.confirm import ConfirmScreen

        self.app.push_screen(
            ConfirmScreen(
                "Desfazer o faturamento?\n\n"
                "O recebimento vinculado será excluído e o\n"
                "faturamento voltará para Pendente."
            ),
            callback=lambda ok: self._run_undo(row["id"]) if ok else None,
        )

    @work(thread=True)
    def _run_undo(self, billing_id: str) -> None:
        from sismog.services.billing import undo_billing

        try:
            undo_billing(self.app.store, billing_id)  # type: ignore[attr-defined]
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Faturamento revertido para Pendente.")

    def action_edit(self) -> None:
        row = self._require_selected()
        if row is None:
            return
        if row.get("status") != BillingStatus.PENDENTE:
            self.notify("Apenas faturamentos pendentes podem ser editados", severity="warning")
            return
        from sismog.tui.screens.billing_forms import EditBillingScreen

        self.app.push_screen(
            EditBillingScreen(row),
            callback=lambda changes: self._run_edit(row["id"], changes) if changes else None,
        )

    @work(thread=True)
    def _run_edit(self, billing_id: str, changes: dict) -> None:
        from sismog.services.billing import edit_billing
        from sismog.services.taxes import configured_rates

        try:
            edit_billing(
                self.app.store,  # type: ignore[attr-defined]
                billing_id,
                rates=configured_rates(),
                **changes,
            )
        except (SismogError, ValueError) as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Faturamento atualizado.")

    def action_delete(self) -> None:
        row = self._require_selected()
        if row is None:
            return
        from sismog.tui.screens.confirm import ConfirmScreen

        self.app.push_screen(
            ConfirmScreen("Excluir este faturamento pendente?"),
            callback=lambda ok: self._run_delete(row["id"]) if ok else None,
        )

    @work(thread=True)
    def _run_delete(self, billing_id: str) -> None:
        from sismog.services.billing import delete_billing

        try:
            delete_billing(self.app.store, billing_id)  # type: ignore[attr-defined]
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Faturamento excluído.")

    def _shift_month(self, months: int) -> None:
        current = date.fromisoformat(self.app.competencia)  # type: ignore[attr-defined]
        self.app.competencia = add_months(current, months).isoformat()  # type: ignore[attr-defined]
        self._load_billings()

    def action_prev_month(self) -> None:
        self._shift_month(-1)

    def action_next_month(self) -> None:
        self._shift_month(1)

    def action_receivables(self) -> None:
        from sismog.tui.screens.receivables import ReceivablesScreen

        self.app.push_screen(ReceivablesScreen())

    def action_stock(self) -> None:
        from sismog.tui.screens.stock import StockScreen

        self.app.push_screen(StockScreen())

    def action_equipment(self) -> None:
        from sismog.tui.screens.equipment import EquipmentScreen

        self.app.push_screen(EquipmentScreen())

    def action_help(self) -> None:
        from sismog.tui.screens.help import HelpScreen

        self.app.push_screen(HelpScreen())

    def action_quit(self) -> None:
        self.app.exit()

    # --- Helpers ---

    def _on_done(self, msg: str) -> None:
        self.notify(msg, timeout=3)
        self._load_billings()

    def _on_error(self, msg: str) -> None:
        self.notify(f"Erro: {msg}", severity="error", timeout=5)

    def on_screen_resume(self) -> None:
        self._load_billings()
