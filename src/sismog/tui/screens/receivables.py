from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, DataTable, Footer, Input, Label, Select, Static

from sismog.models.receivable import Receivable, ReceivableKind, ReceivableStatus
from sismog.services.exceptions import SismogError
from sismog.utils.formatters import format_brl, format_date
from sismog.utils.validators import validate_date, validate_monetary


class ReceivablesScreen(Screen):
    """Receivables list with receipt and standalone-entry actions."""

    BINDINGS = [
        Binding("m", "mark_received", "Recebido", show=False),
        Binding("u", "undo_receipt", "Desfazer", show=False),
        Binding("n", "new", "Novo avulso", show=False),
        Binding("x", "delete", "Excluir", show=False),
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._rows: dict[str, dict] = {}

    def compose(self) -> ComposeResult:
        with Horizontal(id="filter-bar"):
            yield Static("Recebimentos", id="section-title")
            yield Select(
                [("Todos", "todos"), ("Pendentes", "Pendente"), ("Recebidos", "Recebido")],
                value="Pendente",
                allow_blank=False,
                id="filter-status",
            )
        with Horizontal(id="action-bar"):
            yield Button("✓ Recebido", id="btn-received", variant="success", tooltip="(m)")
            yield Button("↺ Desfazer", id="btn-undo", tooltip="(u)")
            yield Button("+ Avulso", id="btn-new", variant="primary", tooltip="(n)")
            yield Button("✕ Excluir", id="btn-delete", variant="error", tooltip="(x)")
        yield DataTable(id="receivable-table", cursor_type="row")
        yield Static("Nenhum recebimento encontrado.", id="empty-state")
        yield Footer()

    def on_mount(self) -> None:
        self._load()
        self.query_one("#receivable-table", DataTable).focus()

    def _load(self) -> None:
        status = self.query_one("#filter-status", Select).value
        self._fetch(None if status == "todos" else str(status))

    @work(thread=True, exclusive=True, group="receivables")
    def _fetch(self, status: str | None) -> None:
        from sismog.services.receivables import list_receivables

        rows = list_receivables(
            self.app.store,  # type: ignore[attr-defined]
            status,
        )
        self.app.call_from_thread(self._populate_table, rows)

    def _populate_table(self, rows: list[dict]) -> None:
        self._rows = {r["id"]: r for r in rows}
        table = self.query_one("#receivable-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Vencimento", "Tipo", "Valor", "Status", "Recebido em", "Obs.")
        for row in rows:
            rec = Receivable.from_row(row)
            status = (
                "[green]Recebido[/green]"
                if rec.status is ReceivableStatus.RECEBIDO
                else "[yellow]Pendente[/yellow]"
            )
            table.add_row(
                format_date(rec.data_vencimento),
                str(rec.tipo),
                format_brl(rec.valor),
                status,
                format_date(rec.data_recebimento),
                rec.observacoes or "",
                key=rec.id,
            )
        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    def _selected(self) -> dict | None:
        table = self.query_one("#receivable-table", DataTable)
        if table.row_count == 0:
            self.notify("Nenhum recebimento selecionado", severity="warning", timeout=3)
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._rows.get(str(row_key.value))

    def on_select_changed(self, event: Select.Changed) -> None:
        self._load()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-received":
                self.action_mark_received()
            case "btn-undo":
                self.action_undo_receipt()
            case "btn-new":
                self.action_new()
            case "btn-delete":
                self.action_delete()

    # --- Actions ---

    def action_mark_received(self) -> None:
        row = self._selected()
        if row is not None:
            self._run("mark_received", row["id"], "Recebimento confirmado.")

    def action_undo_receipt(self) -> None:
        row = self._selected()
        if row is not None:
            self._run("undo_receipt", row["id"], "Recebimento voltou para Pendente.")

    def action_delete(self) -> None:
        row = self._selected()
        if row is None:
            return
        if row.get("tipo") != ReceivableKind.AVULSO and row.get("faturamento_id"):
            self.notify(
                "Recebimento de faturamento: desfaça o faturamento no painel",
                severity="warning",
            )
            return
        from sismog.tui.screens.confirm import ConfirmScreen

        self.app.push_screen(
            ConfirmScreen("Excluir este recebimento avulso?"),
            callback=lambda ok: (
                self._run("delete_receivable", row["id"], "Recebimento excluído.") if ok else None
            ),
        )

    def action_new(self) -> None:
        self.app.push_screen(NewReceivableScreen(), callback=self._on_new)

    def _on_new(self, data: dict | None) -> None:
        if data:
            self._run_create(data)

    @work(thread=True)
    def _run_create(self, data: dict) -> None:
        from sismog.services.receivables import create_standalone_receivable

        try:
            create_standalone_receivable(self.app.store, **data)  # type: ignore[attr-defined]
        except (SismogError, ValueError) as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Recebimento avulso criado.")

    @work(thread=True)
    def _run(self, operation: str, receivable_id: str, ok_msg: str) -> None:
        from sismog.services import receivables

        try:
            getattr(receivables, operation)(self.app.store, receivable_id)  # type: ignore[attr-defined]
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, ok_msg)

    def _on_done(self, msg: str) -> None:
        self.notify(msg, timeout=3)
        self._load()

    def _on_error(self, msg: str) -> None:
        self.notify(f"Erro: {msg}", severity="error", timeout=5)

    def action_go_back(self) -> None:
        self.app.pop_screen()


class NewReceivableScreen(ModalScreen[dict | None]):
    """Form for a standalone (avulso) receivable."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Novo recebimento avulso", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("Valor (R$)", classes="form-label")
            yield Input(placeholder="1.500,00", id="valor-input")
            yield Label("Vencimento (DD/MM/AAAA)", classes="form-label")
            yield Input(id="vencimento-input")
            yield Label("Empresa (id, opcional)", classes="form-label")
            yield Input(id="empresa-input")
            yield Label("Observações", classes="form-label")
            yield Input(id="obs-input")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("✓ Salvar", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#valor-input", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-save":
                self._save()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _save(self) -> None:
        try:
            valor = validate_monetary(self.query_one("#valor-input", Input).value)
            vencimento = validate_date(self.query_one("#vencimento-input", Input).value)
        except ValueError as e:
            self.query_one("#error-label", Label).update(str(e))
            return
        self.dismiss(
            {
                "empresa_id": self.query_one("#empresa-input", Input).value.strip() or None,
                "valor": valor,
                "data_vencimento": vencimento,
                "observacoes": self.query_one("#obs-input", Input).value.strip() or None,
            }
        )

    def action_cancel(self) -> None:
        self.dismiss(None)
