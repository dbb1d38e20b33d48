from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, DataTable, Footer, Input, Label, Select, Static

from sismog.models.equipment import EquipmentItem, EquipmentType
from sismog.services.exceptions import SismogError
from sismog.utils.validators import validate_quantity


class EquipmentScreen(Screen):
    """Weapons, vests and ammunition by location."""

    BINDINGS = [
        Binding("n", "new", "Cadastrar", show=False),
        Binding("t", "transfer", "Transferir", show=False),
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._items: dict[str, EquipmentItem] = {}

    def compose(self) -> ComposeResult:
        with Horizontal(id="info-bar"):
            for kind in EquipmentType:
                with Vertical(classes="info-card"):
                    yield Label(str(kind), classes="card-title")
                    yield Label("…", id=f"stats-{kind.name.lower()}", classes="card-value")
        with Horizontal(id="action-bar"):
            yield Button("+ Cadastrar", id="btn-new", variant="primary", tooltip="(n)")
            yield Button("⇄ Transferir", id="btn-transfer", variant="success", tooltip="(t)")
        yield DataTable(id="equipment-table", cursor_type="row")
        yield Static("Nenhum equipamento cadastrado.", id="empty-state")
        yield Footer()

    def on_mount(self) -> None:
        self._load()
        self.query_one("#equipment-table", DataTable).focus()

    @work(thread=True, exclusive=True, group="equipment")
    def _load(self) -> None:
        from sismog.services.equipment import list_equipment

        items = list_equipment(self.app.store)  # type: ignore[attr-defined]
        self.app.call_from_thread(self._populate, items)

    def _populate(self, items: list[EquipmentItem]) -> None:
        from sismog.services.equipment import inventory_stats

        self._items = {i.id: i for i in items}
        for kind, stats in inventory_stats(items).items():
            self.query_one(f"#stats-{kind.name.lower()}", Label).update(
                f"{stats.total} total · {stats.base} base · {stats.posto} postos"
            )

        table = self.query_one("#equipment-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Tipo", "Descrição", "Nº série", "Qtd.", "Local")
        for item in items:
            table.add_row(
                str(item.tipo),
                item.descricao,
                item.numero_serie or "",
                str(item.quantidade),
                "Base" if item.at_base else item.posto_trabalho_id,
                key=item.id,
            )
        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    def _selected(self) -> EquipmentItem | None:
        table = self.query_one("#equipment-table", DataTable)
        if table.row_count == 0:
            self.notify("Nenhum equipamento selecionado", severity="warning", timeout=3)
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._items.get(str(row_key.value))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-new":
                self.action_new()
            case "btn-transfer":
                self.action_transfer()

    # --- Actions ---

    def action_new(self) -> None:
        self.app.push_screen(NewEquipmentScreen(), callback=self._on_new)

    def _on_new(self, data: dict | None) -> None:
        if data:
            self._run_add(data)

    @work(thread=True)
    def _run_add(self, data: dict) -> None:
        from sismog.services.equipment import add_equipment

        try:
            add_equipment(self.app.store, **data)  # type: ignore[attr-defined]
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Equipamento cadastrado.")

    def action_transfer(self) -> None:
        item = self._selected()
        if item is None:
            return
        self.app.push_screen(
            TransferScreen(item),
            callback=lambda data: self._run_transfer(item, data) if data else None,
        )

    @work(thread=True)
    def _run_transfer(self, item: EquipmentItem, data: dict) -> None:
        from sismog.services.equipment import transfer_lot, transfer_serialized

        store = self.app.store  # type: ignore[attr-defined]
        try:
            if item.tipo.serialized:
                transfer_serialized(store, item.id, data["destino"])
            else:
                transfer_lot(
                    store,
                    item.descricao,
                    item.posto_trabalho_id,
                    data["destino"],
                    data["quantidade"],
                )
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Transferência registrada.")

    def _on_done(self, msg: str) -> None:
        self.notify(msg, timeout=3)
        self._load()

    def _on_error(self, msg: str) -> None:
        self.notify(f"Erro: {msg}", severity="error", timeout=5)

    def action_go_back(self) -> None:
        self.app.pop_screen()


class TransferScreen(ModalScreen[dict | None]):
    """Destination (blank = base) and, for ammunition, the quantity."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, item: EquipmentItem) -> None:
        super().__init__()
        self._item = item

    def compose(self) -> ComposeResult:
        origem = "Base" if self._item.at_base else self._item.posto_trabalho_id
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static(f"Transferir {self._item.descricao}", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Static(f"Origem: {origem}")
            yield Label("Destino (id do posto; vazio = base)", classes="form-label")
            yield Input(id="destino-input")
            if not self._item.tipo.serialized:
                yield Label(f"Quantidade (disponível {self._item.quantidade})", classes="form-label")
                yield Input(value=str(self._item.quantidade), id="qty-input")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("⇄ Transferir", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#destino-input", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-save":
                self._save()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _save(self) -> None:
        data: dict = {"destino": self.query_one("#destino-input", Input).value.strip() or None}
        if not self._item.tipo.serialized:
            try:
                data["quantidade"] = validate_quantity(self.query_one("#qty-input", Input).value)
            except ValueError as e:
                self.query_one("#error-label", Label).update(str(e))
                return
        self.dismiss(data)

    def action_cancel(self) -> None:
        self.dismiss(None)


class NewEquipmentScreen(ModalScreen[dict | None]):
    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Cadastrar equipamento", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("Tipo", classes="form-label")
            yield Select(
                [(str(k), k.value) for k in EquipmentType],
                value=EquipmentType.ARMA.value,
                allow_blank=False,
                id="tipo-select",
            )
            yield Label("Descrição", classes="form-label")
            yield Input(placeholder="Revólver .38", id="descricao-input")
            yield Label("Nº de série (armas e coletes)", classes="form-label")
            yield Input(id="serie-input")
            yield Label("Quantidade (munição)", classes="form-label")
            yield Input(value="1", id="qty-input")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("✓ Salvar", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#descricao-input", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-save":
                self._save()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _save(self) -> None:
        tipo = EquipmentType(self.query_one("#tipo-select", Select).value)
        descricao = self.query_one("#descricao-input", Input).value.strip()
        if not descricao:
            self.query_one("#error-label", Label).update("Descrição é obrigatória")
            return
        data: dict = {"tipo": tipo, "descricao": descricao}
        if tipo.serialized:
            data["numero_serie"] = self.query_one("#serie-input", Input).value.strip()
        else:
            try:
                data["quantidade"] = validate_quantity(self.query_one("#qty-input", Input).value)
            except ValueError as e:
                self.query_one("#error-label", Label).update(str(e))
                return
        self.dismiss(data)

    def action_cancel(self) -> None:
        self.dismiss(None)
