from __future__ import annotations

from datetime import datetime

from textual.app import App
from textual.binding import Binding

from sismog.config import BRT
from sismog.store.base import RowStore


class SismogApp(App):
    """SISMOG back-office TUI application."""

    CSS_PATH = "app.tcss"
    TITLE = "SISMOG Back-office"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("q", "quit", "Sair", priority=True),
    ]

    def __init__(self, store: RowStore | None = None, competencia: str | None = None):
        super().__init__()
        if store is None:
            from sismog.store import open_store

            store = open_store()
        self.store = store
        self.competencia = competencia or datetime.now(BRT).strftime("%Y-%m-01")

    def on_mount(self) -> None:
        from sismog.tui.screens.dashboard import DashboardScreen

        self.push_screen(DashboardScreen())
