from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, RichLog, Static

_SHORTCUTS = [
    ("g", "Gerar mês", "Gerar faturamentos dos contratos ativos"),
    ("f", "Faturar", "Faturar e gerar o recebimento"),
    ("u", "Desfazer", "Excluir o recebimento e voltar para Pendente"),
    ("e", "Editar", "Editar valor e datas (somente pendentes)"),
    ("x", "Excluir", "Excluir faturamento pendente"),
    ("[ ]", "Competência", "Mês anterior / próximo mês"),
    ("r", "Recebimentos", "Contas a receber"),
    ("s", "Estoque", "Uniformes e materiais"),
    ("a", "Armamento", "Armas, coletes e munição"),
    ("h", "Ajuda", "Esta tela"),
    ("q", "Sair", "Encerrar aplicação"),
]


class HelpScreen(ModalScreen):
    """Keyboard shortcuts and calculation notes."""

    BINDINGS = [
        Binding("escape", "go_back", "Voltar"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Ajuda", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield RichLog(id="help-content", wrap=True, markup=True)
            with Horizontal(classes="button-bar"):
                yield Button("✕ Fechar", id="btn-voltar")

    def on_mount(self) -> None:
        log = self.query_one("#help-content", RichLog)

        log.write("[bold]SISMOG Back-office[/bold]")
        log.write("")
        log.write(
            "Faturamento mensal de contratos, contas a receber, controle de "
            "estoque e de armamento."
        )
        log.write("")
        log.write("[bold]Atalhos de teclado[/bold]")
        log.write("")
        for key, name, desc in _SHORTCUTS:
            log.write(f"  [bold cyan]{key:<4}[/bold cyan] {name:<14} {desc}")
        log.write("")
        log.write("[bold]Retenções[/bold]")
        log.write("")
        log.write(
            "PIS 0,65% · COFINS 3% · CSLL 1% · IRPJ 1,5% · INSS 11%, quando retidos "
            "pelo contrato. O ISS é sempre calculado, mas só é deduzido da nota se "
            "o contrato retém ISS. A caução reduz apenas o valor a receber."
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id in ("btn-voltar", "btn-modal-close"):
            self.app.pop_screen()

    def action_go_back(self) -> None:
        self.app.pop_screen()
