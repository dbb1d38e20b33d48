from __future__ import annotations

import pytest
from textual.widgets import Button, DataTable, Input, Select

from sismog.services.billing import FATURAMENTOS, generate_billings, issue_billing
from sismog.services.receivables import RECEBIMENTOS, create_standalone_receivable
from sismog.tui.screens.receivables import NewReceivableScreen, ReceivablesScreen


async def _open(app, pilot, settle) -> DataTable:
    await settle(pilot)
    await pilot.press("r")
    await settle(pilot)
    assert isinstance(app.screen, ReceivablesScreen)
    return app.screen.query_one("#receivable-table", DataTable)


@pytest.fixture
def issued(store):
    generate_billings(store, "2024-06")
    return issue_billing(store, store.select(FATURAMENTOS)[0]["id"])


@pytest.mark.asyncio
async def test_lists_pending_by_default(make_app, settle, issued):
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        assert table.row_count == 1


@pytest.mark.asyncio
async def test_mark_received(make_app, settle, store, issued):
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        await pilot.press("m")
        await settle(pilot)
        assert table.row_count == 0
    row = store.get(RECEBIMENTOS, issued["id"])
    assert row["status"] == "Recebido"
    assert row["data_recebimento"]
    assert store.select(FATURAMENTOS)[0]["status"] == "Faturado"


@pytest.mark.asyncio
async def test_filter_shows_received(make_app, settle, store, issued):
    from sismog.services.receivables import mark_received

    mark_received(store, issued["id"])
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        assert table.row_count == 0
        app.screen.query_one("#filter-status", Select).value = "Recebido"
        await settle(pilot)
        assert table.row_count == 1
        await pilot.press("u")
        await settle(pilot)
        assert table.row_count == 0
    assert store.get(RECEBIMENTOS, issued["id"])["status"] == "Pendente"


@pytest.mark.asyncio
async def test_new_standalone_receivable(make_app, settle, store):
    app = make_app()
    async with app.run_test() as pilot:
        table = await _open(app, pilot, settle)
        await pilot.press("n")
        assert isinstance(app.screen, NewReceivableScreen)
        app.screen.query_one("#valor-input", Input).value = "1.500,00"
        app.screen.query_one("#vencimento-input", Input).value = "10/07/2024"
        app.screen.query_one("#btn-save", Button).press()
        await settle(pilot)
        assert table.row_count == 1
    row = store.select(RECEBIMENTOS)[0]
    assert row["valor"] == "1500.00"
    assert row["tipo"] == "Avulso"
    assert row["data_vencimento"] == "2024-07-10"


@pytest.mark.asyncio
async def test_new_receivable_validation(make_app, settle):
    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot, settle)
        await pilot.press("n")
        app.screen.query_one("#valor-input", Input).value = "10"
        app.screen.query_one("#vencimento-input", Input).value = "31/02/2024"
        app.screen.query_one("#btn-save", Button).press()
        await pilot.pause()
        assert isinstance(app.screen, NewReceivableScreen)


@pytest.mark.asyncio
async def test_delete_standalone(make_app, settle, store):
    create_standalone_receivable(store, None, "10", "2024-07-01")
    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot, settle)
        await pilot.press("x")
        app.screen.query_one("#btn-confirm", Button).press()
        await settle(pilot)
    assert store.select(RECEBIMENTOS) == []


@pytest.mark.asyncio
async def test_delete_billing_receivable_blocked(make_app, settle, store, issued):
    app = make_app()
    async with app.run_test() as pilot:
        await _open(app, pilot, settle)
        await pilot.press("x")
        await pilot.pause()
        assert isinstance(app.screen, ReceivablesScreen)
    assert len(store.select(RECEBIMENTOS)) == 1
