from __future__ import annotations

import pytest

from sismog.services.billing import CONTRATOS
from sismog.tui.app import SismogApp


@pytest.fixture
def make_app(store, contract_row):
    """Build a SismogApp over a local store seeded with one contract, June 2024."""
    store.insert(CONTRATOS, contract_row)

    def _make(competencia: str = "2024-06-01") -> SismogApp:
        return SismogApp(store=store, competencia=competencia)

    return _make


@pytest.fixture
def settle():
    """Wait for threaded workers and the callbacks they post back."""

    async def _settle(pilot) -> None:
        await pilot.pause()
        await pilot.app.workers.wait_for_complete()
        await pilot.pause()

    return _settle
