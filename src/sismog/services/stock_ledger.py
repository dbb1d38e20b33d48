"""General stock ledger.

Movements are append-only. Possession per employee or work site and the
base / in-use levels of each product are folds over the movement log; the
counters stored on the product row are rebuilt from the log after every
append and never edited directly.
"""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from sismog.config import BRT
from sismog.models.stock import Movement, MovementType, Product, ProductType, StockLevels
from sismog.services.exceptions import InsufficientBalanceError, NotFoundError, ValidationError
from sismog.store.base import RowStore, eq
from sismog.utils.validators import validate_date, validate_quantity

logger = logging.getLogger(__name__)

PRODUTOS = "estoque_produtos"
MOVIMENTACOES = "estoque_movimentacoes"

DEFAULT_MINIMUM = 5


def _holder(movement: Movement, is_employee: bool) -> str | None:
    return movement.funcionario_id if is_employee else movement.posto_trabalho_id


def compute_possession(
    entity_id: str, is_employee: bool, movements: Iterable[Movement]
) -> dict[str, int]:
    """Net quantity per product held by an employee or work site.

    Only products with a positive balance are returned.
    """
    totals: dict[str, int] = defaultdict(int)
    for mov in movements:
        if _holder(mov, is_employee) != entity_id:
            continue
        if mov.tipo_movimento is MovementType.ENTREGAR:
            totals[mov.produto_id] += mov.quantidade
        elif mov.tipo_movimento is MovementType.DEVOLVER:
            totals[mov.produto_id] -= mov.quantidade
    return {pid: qty for pid, qty in totals.items() if qty > 0}


def compute_levels(produto_id: str, movements: Iterable[Movement]) -> StockLevels:
    base = in_use = 0
    for mov in movements:
        if mov.produto_id != produto_id:
            continue
        match mov.tipo_movimento:
            case MovementType.ADICIONAR_LOTE:
                base += mov.quantidade
            case MovementType.DESCARTAR_LOTE:
                base -= mov.quantidade
            case MovementType.ENTREGAR:
                base -= mov.quantidade
                in_use += mov.quantidade
            case MovementType.DEVOLVER:
                base += mov.quantidade
                in_use -= mov.quantidade
    return StockLevels(base=base, in_use=in_use)


def validate_movement(product: Product, movement: Movement, movements: list[Movement]) -> None:
    """Reject a movement the ledger cannot honour. Raises ValidationError subclasses."""
    if movement.quantidade <= 0:
        raise ValidationError("Quantidade deve ser maior que zero.")
    if movement.produto_id != product.id:
        raise ValidationError("Movimentação não pertence a este produto.")

    kind = movement.tipo_movimento
    if kind in (MovementType.ENTREGAR, MovementType.DEVOLVER):
        is_employee = product.tipo is ProductType.INDIVIDUAL
        if movement.funcionario_id and movement.posto_trabalho_id:
            raise ValidationError("Informe funcionário ou posto, não ambos.")
        if is_employee and not movement.funcionario_id:
            raise ValidationError("Itens individuais exigem um funcionário.")
        if not is_employee and not movement.posto_trabalho_id:
            raise ValidationError("Itens coletivos exigem um posto de trabalho.")
    elif movement.funcionario_id or movement.posto_trabalho_id:
        raise ValidationError("Entrada e descarte de lote não têm destinatário.")

    match kind:
        case MovementType.ENTREGAR | MovementType.DESCARTAR_LOTE:
            base = compute_levels(product.id, movements).base
            if base < movement.quantidade:
                raise InsufficientBalanceError(
                    f"Saldo insuficiente na base: disponível {base}, "
                    f"solicitado {movement.quantidade}."
                )
        case MovementType.DEVOLVER:
            holder = _holder(movement, product.tipo is ProductType.INDIVIDUAL)
            held = compute_possession(
                holder, product.tipo is ProductType.INDIVIDUAL, movements
            ).get(product.id, 0)
            if held < movement.quantidade:
                raise InsufficientBalanceError(
                    f"Quantidade em posse insuficiente: possui {held}, "
                    f"devolução de {movement.quantidade}."
                )
        case MovementType.ADICIONAR_LOTE:
            pass


def load_movements(store: RowStore, produto_id: str | None = None) -> list[Movement]:
    filters = [eq("produto_id", produto_id)] if produto_id else []
    rows = store.select(MOVIMENTACOES, *filters, order_by="data_movimento")
    return [Movement.from_row(r) for r in rows]


def load_product(store: RowStore, produto_id: str) -> Product:
    row = store.get(PRODUTOS, produto_id)
    if row is None:
        raise NotFoundError(f"Produto {produto_id} não encontrado.")
    return Product.from_row(row)


def rebuild_counters(store: RowStore, produto_id: str) -> StockLevels:
    """Recompute the product's stored counters from its movements."""
    levels = compute_levels(produto_id, load_movements(store, produto_id))
    store.update(
        PRODUTOS, produto_id, {"estoque_base": levels.base, "estoque_em_uso": levels.in_use}
    )
    return levels


def register_movement(
    store: RowStore,
    produto_id: str,
    tipo_movimento: MovementType | str,
    quantidade: object,
    *,
    funcionario_id: str | None = None,
    posto_trabalho_id: str | None = None,
    empresa_destino: str | None = None,
    observacao: str | None = None,
    data_movimento: str | None = None,
) -> dict:
    """Validate a movement against the current log and append it."""
    movement = Movement(
        produto_id=produto_id,
        tipo_movimento=MovementType(tipo_movimento),
        quantidade=validate_quantity(quantidade),
        data_movimento=(
            validate_date(data_movimento)
            if data_movimento
            else datetime.now(BRT).date().isoformat()
        ),
        funcionario_id=funcionario_id or None,
        posto_trabalho_id=posto_trabalho_id or None,
        empresa_destino=empresa_destino,
        observacao=observacao,
    )
    with store.atomic():
        product = load_product(store, produto_id)
        validate_movement(product, movement, load_movements(store, produto_id))
        row = store.insert(MOVIMENTACOES, movement.to_row())
        levels = rebuild_counters(store, produto_id)
    logger.info(
        "%s %d × %s (base=%d, em uso=%d)",
        movement.tipo_movimento,
        movement.quantidade,
        product.codigo_ref or produto_id,
        levels.base,
        levels.in_use,
    )
    return row


def make_reference_code(nome: str, rng: random.Random | None = None) -> str:
    """Reference code: first three letters of the name, upper-cased, plus 4 digits."""
    rng = rng or random.Random()
    letters = "".join(ch for ch in nome if ch.isalpha())[:3].upper() or "PRD"
    return f"{letters}-{rng.randint(0, 9999):04d}"


def register_product(
    store: RowStore,
    tipo: ProductType | str,
    nome: str,
    *,
    categoria: str = "",
    variacao: str = "",
    estoque_minimo: int = DEFAULT_MINIMUM,
    quantidade_inicial: int = 0,
    rng: random.Random | None = None,
) -> dict:
    """Create a product. A positive initial quantity enters through an ADICIONAR_LOTE movement."""
    if not nome.strip():
        raise ValidationError("Nome do produto é obrigatório.")
    if estoque_minimo < 0:
        raise ValidationError("Estoque mínimo não pode ser negativo.")
    existing = {r.get("codigo_ref") for r in store.select(PRODUTOS)}
    codigo = make_reference_code(nome, rng)
    while codigo in existing:
        codigo = make_reference_code(nome, rng)

    with store.atomic():
        row = store.insert(
            PRODUTOS,
            {
                "tipo": str(ProductType(tipo)),
                "categoria": categoria,
                "nome": nome.strip(),
                "variacao": variacao,
                "codigo_ref": codigo,
                "estoque_minimo": estoque_minimo,
                "estoque_base": 0,
                "estoque_em_uso": 0,
            },
        )
        if quantidade_inicial > 0:
            register_movement(
                store,
                row["id"],
                MovementType.ADICIONAR_LOTE,
                quantidade_inicial,
                observacao="Estoque inicial",
            )
            row = store.get(PRODUTOS, row["id"]) or row
    logger.info("Product %s registered (%s)", codigo, row["nome"])
    return row


def possession_by_entity(store: RowStore, entity_id: str, is_employee: bool) -> dict[str, int]:
    return compute_possession(entity_id, is_employee, load_movements(store))


def low_stock(store: RowStore) -> list[tuple[Product, StockLevels]]:
    """Products whose ledger-derived base stock is below their minimum."""
    movements = load_movements(store)
    alerts = []
    for row in store.select(PRODUTOS, order_by="nome"):
        product = Product.from_row(row)
        levels = compute_levels(product.id, movements)
        if levels.base < product.estoque_minimo:
            alerts.append((product, levels))
    return alerts
