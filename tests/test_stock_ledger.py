from __future__ import annotations

import random

import pytest

from sismog.models.stock import Movement, MovementType, Product, ProductType
from sismog.services.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from sismog.services.stock_ledger import (
    MOVIMENTACOES,
    PRODUTOS,
    compute_levels,
    compute_possession,
    load_movements,
    low_stock,
    make_reference_code,
    possession_by_entity,
    register_movement,
    register_product,
    validate_movement,
)


def _mov(kind, qty, produto_id="p1", **kwargs) -> Movement:
    return Movement(
        produto_id=produto_id,
        tipo_movimento=MovementType(kind),
        quantidade=qty,
        data_movimento="2024-06-01",
        **kwargs,
    )


@pytest.fixture
def uniform(store) -> dict:
    """Individual product with 10 units at base."""
    return register_product(
        store, ProductType.INDIVIDUAL, "Camisa", variacao="M", quantidade_inicial=10
    )


@pytest.fixture
def cone(store) -> dict:
    return register_product(store, ProductType.COLETIVO, "Cone", quantidade_inicial=3)


class TestFolds:
    def test_possession_nets_deliveries_and_returns(self):
        log = [
            _mov("ENTREGAR", 3, funcionario_id="f1"),
            _mov("DEVOLVER", 1, funcionario_id="f1"),
            _mov("ENTREGAR", 2, produto_id="p2", funcionario_id="f1"),
            _mov("ENTREGAR", 5, funcionario_id="f2"),
        ]
        assert compute_possession("f1", True, log) == {"p1": 2, "p2": 2}

    def test_possession_omits_zero_balances(self):
        log = [
            _mov("ENTREGAR", 2, funcionario_id="f1"),
            _mov("DEVOLVER", 2, funcionario_id="f1"),
        ]
        assert compute_possession("f1", True, log) == {}

    def test_possession_by_work_site(self):
        log = [_mov("ENTREGAR", 4, posto_trabalho_id="s1")]
        assert compute_possession("s1", False, log) == {"p1": 4}
        assert compute_possession("s1", True, log) == {}

    def test_levels(self):
        log = [
            _mov("ADICIONAR_LOTE", 10),
            _mov("ENTREGAR", 4, funcionario_id="f1"),
            _mov("DEVOLVER", 1, funcionario_id="f1"),
            _mov("DESCARTAR_LOTE", 2),
            _mov("ADICIONAR_LOTE", 99, produto_id="other"),
        ]
        levels = compute_levels("p1", log)
        assert (levels.base, levels.in_use) == (5, 3)


class TestValidateMovement:
    product = Product(id="p1", tipo=ProductType.INDIVIDUAL, nome="Camisa")

    def test_individual_requires_employee(self):
        with pytest.raises(ValidationError, match="funcionário"):
            validate_movement(
                self.product,
                _mov("ENTREGAR", 1, posto_trabalho_id="s1"),
                [_mov("ADICIONAR_LOTE", 5)],
            )

    def test_collective_requires_work_site(self):
        product = Product(id="p1", tipo=ProductType.COLETIVO, nome="Cone")
        with pytest.raises(ValidationError, match="posto"):
            validate_movement(
                product, _mov("ENTREGAR", 1, funcionario_id="f1"), [_mov("ADICIONAR_LOTE", 5)]
            )

    def test_lot_entries_have_no_holder(self):
        with pytest.raises(ValidationError):
            validate_movement(self.product, _mov("ADICIONAR_LOTE", 1, funcionario_id="f1"), [])

    def test_return_beyond_possession(self):
        log = [_mov("ADICIONAR_LOTE", 5), _mov("ENTREGAR", 1, funcionario_id="f1")]
        with pytest.raises(InsufficientBalanceError, match="posse"):
            validate_movement(self.product, _mov("DEVOLVER", 2, funcionario_id="f1"), log)

    def test_zero_quantity(self):
        with pytest.raises(ValidationError):
            validate_movement(self.product, _mov("ADICIONAR_LOTE", 0), [])


class TestRegisterMovement:
    def test_deliver_updates_levels_and_counters(self, store, uniform):
        register_movement(store, uniform["id"], "ENTREGAR", 4, funcionario_id="f1")
        product = store.get(PRODUTOS, uniform["id"])
        assert product["estoque_base"] == 6
        assert product["estoque_em_uso"] == 4
        assert possession_by_entity(store, "f1", True) == {uniform["id"]: 4}

    def test_return_more_than_held_rejected(self, store, uniform):
        register_movement(store, uniform["id"], "ENTREGAR", 4, funcionario_id="f1")
        with pytest.raises(InsufficientBalanceError):
            register_movement(store, uniform["id"], "DEVOLVER", 5, funcionario_id="f1")
        assert len(load_movements(store, uniform["id"])) == 2

    def test_return_within_possession(self, store, uniform):
        register_movement(store, uniform["id"], "ENTREGAR", 4, funcionario_id="f1")
        register_movement(store, uniform["id"], "DEVOLVER", 3, funcionario_id="f1")
        assert possession_by_entity(store, "f1", True) == {uniform["id"]: 1}
        assert store.get(PRODUTOS, uniform["id"])["estoque_base"] == 9

    def test_deliver_more_than_base_rejected(self, store, uniform):
        with pytest.raises(InsufficientBalanceError, match="Saldo insuficiente"):
            register_movement(store, uniform["id"], "ENTREGAR", 11, funcionario_id="f1")

    def test_discard_more_than_base_rejected(self, store, uniform):
        register_movement(store, uniform["id"], "ENTREGAR", 8, funcionario_id="f1")
        with pytest.raises(InsufficientBalanceError):
            register_movement(store, uniform["id"], "DESCARTAR_LOTE", 3)
        register_movement(store, uniform["id"], "DESCARTAR_LOTE", 2)
        assert store.get(PRODUTOS, uniform["id"])["estoque_base"] == 0

    def test_collective_delivery_to_work_site(self, store, cone):
        register_movement(store, cone["id"], "ENTREGAR", 2, posto_trabalho_id="s1")
        assert possession_by_entity(store, "s1", False) == {cone["id"]: 2}

    def test_invalid_quantity(self, store, uniform):
        with pytest.raises(ValueError):
            register_movement(store, uniform["id"], "ADICIONAR_LOTE", "-1")

    def test_unknown_product(self, store):
        with pytest.raises(NotFoundError):
            register_movement(store, "missing", "ADICIONAR_LOTE", 1)

    def test_explicit_date(self, store, uniform):
        row = register_movement(
            store, uniform["id"], "ADICIONAR_LOTE", 1, data_movimento="02/01/2024"
        )
        assert row["data_movimento"] == "2024-01-02"

    def test_movements_are_appended_only(self, store, uniform):
        register_movement(store, uniform["id"], "ENTREGAR", 1, funcionario_id="f1")
        register_movement(store, uniform["id"], "DEVOLVER", 1, funcionario_id="f1")
        kinds = [r["tipo_movimento"] for r in store.select(MOVIMENTACOES)]
        assert kinds.count("ADICIONAR_LOTE") == 1
        assert len(kinds) == 3


class TestProducts:
    def test_reference_code_format(self):
        code = make_reference_code("colete", random.Random(1))
        letters, digits = code.split("-")
        assert letters == "COL"
        assert len(digits) == 4 and digits.isdigit()

    def test_reference_code_short_name(self):
        assert make_reference_code("?", random.Random(1)).startswith("PRD-")

    def test_initial_quantity_enters_as_lot(self, store, uniform):
        movements = load_movements(store, uniform["id"])
        assert [m.tipo_movimento for m in movements] == [MovementType.ADICIONAR_LOTE]
        assert uniform["estoque_base"] == 10
        assert uniform["codigo_ref"].startswith("CAM-")

    def test_no_initial_quantity(self, store):
        row = register_product(store, "Coletivo", "Rádio")
        assert row["estoque_base"] == 0
        assert row["estoque_minimo"] == 5
        assert load_movements(store, row["id"]) == []

    def test_blank_name_rejected(self, store):
        with pytest.raises(ValidationError):
            register_product(store, "Individual", "  ")

    def test_codes_are_unique(self, store):
        first = register_product(store, "Individual", "Bota", rng=random.Random(7))
        second = register_product(store, "Individual", "Bota", rng=random.Random(7))
        assert first["codigo_ref"] != second["codigo_ref"]

    def test_low_stock(self, store, uniform, cone):
        alerts = low_stock(store)
        assert [p.nome for p, _ in alerts] == ["Cone"]
        assert alerts[0][1].base == 3


def test_deliver_and_return_full_possession(store, uniform):
    register_movement(store, uniform["id"], "ENTREGAR", 4, funcionario_id="x")
    assert possession_by_entity(store, "x", True) == {uniform["id"]: 4}
    with pytest.raises(InsufficientBalanceError):
        register_movement(store, uniform["id"], "DEVOLVER", 5, funcionario_id="x")
    register_movement(store, uniform["id"], "DEVOLVER", 4, funcionario_id="x")
    assert possession_by_entity(store, "x", True) == {}
    assert store.get(PRODUTOS, uniform["id"])["estoque_base"] == 10


@pytest.mark.parametrize("seed", range(5))
def test_possession_matches_delivered_minus_returned(seed):
    rng = random.Random(seed)
    product = Product(id="p1", tipo=ProductType.INDIVIDUAL, nome="Camisa")
    log = [_mov("ADICIONAR_LOTE", 50)]
    for _ in range(40):
        holder = rng.choice(["f1", "f2"])
        kind = rng.choice(["ENTREGAR", "DEVOLVER"])
        mov = _mov(kind, rng.randint(1, 5), funcionario_id=holder)
        try:
            validate_movement(product, mov, log)
        except InsufficientBalanceError:
            continue
        log.append(mov)

    for holder in ("f1", "f2"):
        delivered = sum(
            m.quantidade
            for m in log
            if m.funcionario_id == holder and m.tipo_movimento is MovementType.ENTREGAR
        )
        returned = sum(
            m.quantidade
            for m in log
            if m.funcionario_id == holder and m.tipo_movimento is MovementType.DEVOLVER
        )
        assert delivered - returned >= 0
        assert compute_possession(holder, True, log).get("p1", 0) == delivered - returned
