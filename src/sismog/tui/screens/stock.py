from __future__ import annotations

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, DataTable, Footer, Input, Label, Select, Static

from sismog.models.stock import MovementType, Product, ProductType
from sismog.services.exceptions import SismogError
from sismog.utils.validators import validate_quantity

_MOVEMENT_LABELS = [
    ("Entregar", MovementType.ENTREGAR.value),
    ("Devolver", MovementType.DEVOLVER.value),
    ("Adicionar lote", MovementType.ADICIONAR_LOTE.value),
    ("Descartar lote", MovementType.DESCARTAR_LOTE.value),
]


class StockScreen(Screen):
    """Products with ledger-derived levels; movements and new products."""

    BINDINGS = [
        Binding("n", "new_product", "Novo produto", show=False),
        Binding("m", "movement", "Movimentar", show=False),
        Binding("l", "toggle_low", "Estoque baixo"),
        Binding("escape", "go_back", "Voltar"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._products: dict[str, Product] = {}
        self._only_low = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="filter-bar"):
            yield Static("Estoque", id="section-title")
            yield Static("", id="low-stock-info", classes="low-stock")
        with Horizontal(id="action-bar"):
            yield Button("+ Produto", id="btn-new", variant="primary", tooltip="(n)")
            yield Button("⇄ Movimentar", id="btn-move", variant="success", tooltip="(m)")
            yield Button("⚠ Estoque baixo", id="btn-low", tooltip="(l)")
        yield DataTable(id="stock-table", cursor_type="row")
        yield Static("Nenhum produto cadastrado.", id="empty-state")
        yield Footer()

    def on_mount(self) -> None:
        self._load()
        self.query_one("#stock-table", DataTable).focus()

    @work(thread=True, exclusive=True, group="stock")
    def _load(self) -> None:
        from sismog.services.stock_ledger import PRODUTOS, compute_levels, load_movements

        store = self.app.store  # type: ignore[attr-defined]
        movements = load_movements(store)
        entries = []
        for row in store.select(PRODUTOS, order_by="nome"):
            product = Product.from_row(row)
            entries.append((product, compute_levels(product.id, movements)))
        self.app.call_from_thread(self._populate_table, entries)

    def _populate_table(self, entries: list) -> None:
        self._products = {p.id: p for p, _ in entries}
        low = [(p, lv) for p, lv in entries if lv.base < p.estoque_minimo]
        shown = low if self._only_low else entries

        table = self.query_one("#stock-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Código", "Produto", "Variação", "Tipo", "Base", "Em uso", "Mínimo")
        for product, levels in shown:
            base = str(levels.base)
            if levels.base < product.estoque_minimo:
                base = f"[yellow]{base}[/yellow]"
            table.add_row(
                product.codigo_ref,
                product.nome,
                product.variacao,
                str(product.tipo),
                base,
                str(levels.in_use),
                str(product.estoque_minimo),
                key=product.id,
            )
        self.query_one("#low-stock-info", Static).update(
            f"{len(low)} produto(s) abaixo do mínimo" if low else ""
        )
        has_rows = table.row_count > 0
        table.display = has_rows
        self.query_one("#empty-state", Static).display = not has_rows

    def _selected(self) -> Product | None:
        table = self.query_one("#stock-table", DataTable)
        if table.row_count == 0:
            self.notify("Nenhum produto selecionado", severity="warning", timeout=3)
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._products.get(str(row_key.value))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-new":
                self.action_new_product()
            case "btn-move":
                self.action_movement()
            case "btn-low":
                self.action_toggle_low()

    # --- Actions ---

    def action_toggle_low(self) -> None:
        self._only_low = not self._only_low
        self._load()

    def action_new_product(self) -> None:
        self.app.push_screen(NewProductScreen(), callback=self._on_new_product)

    def _on_new_product(self, data: dict | None) -> None:
        if data:
            self._run_register_product(data)

    @work(thread=True)
    def _run_register_product(self, data: dict) -> None:
        from sismog.services.stock_ledger import register_product

        try:
            row = register_product(self.app.store, **data)  # type: ignore[attr-defined]
        except SismogError as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, f"Produto {row['codigo_ref']} cadastrado.")

    def action_movement(self) -> None:
        product = self._selected()
        if product is None:
            return
        self.app.push_screen(
            MovementScreen(product),
            callback=lambda data: self._run_movement(product.id, data) if data else None,
        )

    @work(thread=True)
    def _run_movement(self, produto_id: str, data: dict) -> None:
        from sismog.services.stock_ledger import register_movement

        try:
            register_movement(self.app.store, produto_id, **data)  # type: ignore[attr-defined]
        except (SismogError, ValueError) as e:
            self.app.call_from_thread(self._on_error, str(e))
            return
        self.app.call_from_thread(self._on_done, "Movimentação registrada.")

    def _on_done(self, msg: str) -> None:
        self.notify(msg, timeout=3)
        self._load()

    def _on_error(self, msg: str) -> None:
        self.notify(f"Erro: {msg}", severity="error", timeout=5)

    def action_go_back(self) -> None:
        self.app.pop_screen()


class MovementScreen(ModalScreen[dict | None]):
    """Movement form. The holder field is an employee or a work site by product type."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def __init__(self, product: Product) -> None:
        super().__init__()
        self._product = product

    def compose(self) -> ComposeResult:
        individual = self._product.tipo is ProductType.INDIVIDUAL
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static(
                    f"Movimentar {self._product.codigo_ref} — {self._product.nome}",
                    id="header-bar",
                )
                yield Button("✕", id="btn-modal-close")
            yield Label("Tipo de movimento", classes="form-label")
            yield Select(
                _MOVEMENT_LABELS,
                value=MovementType.ENTREGAR.value,
                allow_blank=False,
                id="tipo-select",
            )
            yield Label("Quantidade", classes="form-label")
            yield Input(value="1", id="qty-input")
            yield Label(
                "Funcionário (id)" if individual else "Posto de trabalho (id)",
                classes="form-label",
            )
            yield Input(id="holder-input")
            yield Label("Empresa destino", classes="form-label")
            yield Input(id="empresa-input")
            yield Label("Observação", classes="form-label")
            yield Input(id="obs-input")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("✓ Registrar", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#qty-input", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-save":
                self._save()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _save(self) -> None:
        tipo = MovementType(self.query_one("#tipo-select", Select).value)
        holder = self.query_one("#holder-input", Input).value.strip() or None
        try:
            quantidade = validate_quantity(self.query_one("#qty-input", Input).value)
        except ValueError as e:
            self.query_one("#error-label", Label).update(str(e))
            return
        data: dict = {
            "tipo_movimento": tipo,
            "quantidade": quantidade,
            "empresa_destino": self.query_one("#empresa-input", Input).value.strip() or None,
            "observacao": self.query_one("#obs-input", Input).value.strip() or None,
        }
        if tipo in (MovementType.ENTREGAR, MovementType.DEVOLVER):
            if holder is None:
                self.query_one("#error-label", Label).update("Informe o destinatário")
                return
            if self._product.tipo is ProductType.INDIVIDUAL:
                data["funcionario_id"] = holder
            else:
                data["posto_trabalho_id"] = holder
        self.dismiss(data)

    def action_cancel(self) -> None:
        self.dismiss(None)


class NewProductScreen(ModalScreen[dict | None]):
    BINDINGS = [
        Binding("escape", "cancel", "Cancelar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Novo produto", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("Tipo", classes="form-label")
            yield Select(
                [("Individual (funcionário)", "Individual"), ("Coletivo (posto)", "Coletivo")],
                value="Individual",
                allow_blank=False,
                id="tipo-select",
            )
            yield Label("Nome", classes="form-label")
            yield Input(id="nome-input")
            yield Label("Categoria", classes="form-label")
            yield Input(id="categoria-input")
            yield Label("Variação (tamanho, cor…)", classes="form-label")
            yield Input(id="variacao-input")
            yield Label("Estoque mínimo", classes="form-label")
            yield Input(value="5", id="minimo-input")
            yield Label("Quantidade inicial", classes="form-label")
            yield Input(value="0", id="inicial-input")
            yield Label("", id="error-label")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancelar", id="btn-cancel")
                yield Button("✓ Salvar", id="btn-save", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#nome-input", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-save":
                self._save()
            case "btn-cancel" | "btn-modal-close":
                self.dismiss(None)

    def _save(self) -> None:
        nome = self.query_one("#nome-input", Input).value.strip()
        if not nome:
            self.query_one("#error-label", Label).update("Nome é obrigatório")
            return
        try:
            minimo = int(self.query_one("#minimo-input", Input).value.strip() or "0")
            inicial = int(self.query_one("#inicial-input", Input).value.strip() or "0")
        except ValueError:
            self.query_one("#error-label", Label).update("Quantidades devem ser números inteiros")
            return
        self.dismiss(
            {
                "tipo": self.query_one("#tipo-select", Select).value,
                "nome": nome,
                "categoria": self.query_one("#categoria-input", Input).value.strip(),
                "variacao": self.query_one("#variacao-input", Input).value.strip(),
                "estoque_minimo": minimo,
                "quantidade_inicial": inicial,
            }
        )

    def action_cancel(self) -> None:
        self.dismiss(None)
