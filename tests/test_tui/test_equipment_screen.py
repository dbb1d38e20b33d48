from __future__ import annotations

import pytest
from textual.widgets import Button, DataTable, Input, Label, Select

from sismog.services.equipment import EQUIPAMENTOS, add_equipment, transfer_history
from sismog.tui.screens.equipment import EquipmentScreen, NewEquipmentScreen, TransferScreen


async def _open(app, pilot, settle) -> DataTable:
    await settle(pilot)
    await pilot.press("a")
    await settle(pilot)
    assert isinstance(app.screen, EquipmentScreen)
    return app.screen.query_one("#equipment-table", DataTable)


def _stats(app, kind: str) -> str:
    return app.screen.query_one(f"#stats-{kind}", Label).render().plain


@pytest.mark.asyncio
async def test_shows_stats(make_app, settle, store):
    add_equipment(store, "Arma", "Pistola", numero_serie="P1")
    add_equipment(store, "Munição", "9mm", quantidade=50)
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        assert table.row_count == 2
        assert _stats(app, "arma").startswith("1 total")
        assert "50 base" in _stats(app, "municao")
        assert _stats(app, "colete").startswith("0 total")


@pytest.mark.asyncio
async def test_transfer_serialized(make_app, settle, store):
    item = add_equipment(store, "Arma", "Pistola", numero_serie="P1")
    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot, settle)
        await pilot.press("t")
        assert isinstance(app.screen, TransferScreen)
        app.screen.query_one("#destino-input", Input).value = "posto-1"
        app.screen.query_one("#btn-save", Button).press()
        await settle(pilot)
        assert "1 postos" in _stats(app, "arma")
    assert store.get(EQUIPAMENTOS, item["id"])["posto_trabalho_id"] == "posto-1"
    assert len(transfer_history(store, item["id"])) == 1


@pytest.mark.asyncio
async def test_transfer_ammunition_split(make_app, settle, store):
    add_equipment(store, "Munição", "9mm", quantidade=50)
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        await pilot.press("t")
        app.screen.query_one("#destino-input", Input).value = "posto-1"
        app.screen.query_one("#qty-input", Input).value = "20"
        app.screen.query_one("#btn-save", Button).press()
        await settle(pilot)
        assert table.row_count == 2
    lots = {r["posto_trabalho_id"]: r["quantidade"] for r in store.select(EQUIPAMENTOS)}
    assert lots == {None: 30, "posto-1": 20}


@pytest.mark.asyncio
async def test_new_equipment(make_app, settle, store):
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        await pilot.press("n")
        assert isinstance(app.screen, NewEquipmentScreen)
        app.screen.query_one("#tipo-select", Select).value = "Colete Balístico"
        app.screen.query_one("#descricao-input", Input).value = "Colete III-A"
        app.screen.query_one("#serie-input", Input).value = "cx-9"
        app.screen.query_one("#btn-save", Button).press()
        await settle(pilot)
        assert table.row_count == 1
    assert store.select(EQUIPAMENTOS)[0]["numero_serie"] == "CX-9"


@pytest.mark.asyncio
async def test_duplicate_serial_not_saved(make_app, settle, store):
    add_equipment(store, "Arma", "Pistola", numero_serie="P1")
    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot, settle)
        await pilot.press("n")
        app.screen.query_one("#descricao-input", Input).value = "Revólver"
        app.screen.query_one("#serie-input", Input).value = "p1"
        app.screen.query_one("#btn-save", Button).press()
        await settle(pilot)
    assert len(store.select(EQUIPAMENTOS)) == 1
