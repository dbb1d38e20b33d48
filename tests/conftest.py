from __future__ import annotations

import pytest

from sismog.services.billing import CONTRATOS
from sismog.store.local import LocalStore


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch, tmp_path):
    """Point config/data dirs at tmp_path and clear store-related env vars."""
    monkeypatch.setenv("SISMOG_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("SISMOG_DATA_DIR", str(tmp_path / "data"))
    for var in ("SISMOG_STORE", "SISMOG_STORE_URL", "SISMOG_API_KEY"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(tmp_path / "data" / "store.json")


# --- Contract fixtures ---


@pytest.fixture
def contract_row() -> dict:
    return {
        "id": "c1",
        "empresa_id": "emp-1",
        "posto_trabalho_id": "posto-1",
        "nome_posto": "Condomínio Jardins",
        "valor_base_mensal": "10000.00",
        "dia_faturamento": 25,
        "dia_vencimento": 10,
        "vencimento_mes_corrente": False,
        "data_inicio": None,
        "duracao_meses": None,
        "ativo": True,
        "retem_iss": True,
        "aliquota_iss": "5",
        "retem_pis": True,
        "retem_cofins": False,
        "retem_csll": False,
        "retem_irpj": False,
        "retem_inss": True,
        "retem_caucao": False,
        "aliquota_caucao": "0",
    }


@pytest.fixture
def seeded_store(store, contract_row) -> LocalStore:
    store.insert(CONTRATOS, contract_row)
    return store
