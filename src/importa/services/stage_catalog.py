"""Static, ordered catalog of every stage an import can go through.

Sea and air shipments share the catalog; the transport leg is the only stage
specific to each method.
"""

from __future__ import annotations

from importa.models.stage import ShippingMethod, Stage
from importa.services.exceptions import NotFoundError

_BOTH = frozenset({ShippingMethod.SEA, ShippingMethod.AIR})

FINAL_STAGE_ID = "concluido"

STAGES: tuple[Stage, ...] = (
    Stage(
        id="planejamento",
        order=1,
        name="Planejamento",
        estimated_days=3,
        applies_to=_BOTH,
        description="Definição da importação e documentação inicial",
    ),
    Stage(
        id="producao",
        order=2,
        name="Produção",
        estimated_days=15,
        applies_to=_BOTH,
        description="Fabricação dos produtos pelo fornecedor",
    ),
    Stage(
        id="entregue_agente",
        order=3,
        name="Entregue ao Agente",
        estimated_days=2,
        applies_to=_BOTH,
        description="Produtos entregues ao agente de carga na origem",
    ),
    Stage(
        id="transporte_maritimo",
        order=4,
        name="Transporte Marítimo",
        estimated_days=30,
        applies_to=frozenset({ShippingMethod.SEA}),
        description="Envio por navio para o Brasil",
    ),
    Stage(
        id="transporte_aereo",
        order=5,
        name="Transporte Aéreo",
        estimated_days=5,
        applies_to=frozenset({ShippingMethod.AIR}),
        description="Envio por avião para o Brasil",
    ),
    Stage(
        id="desembaraco",
        order=6,
        name="Desembaraço",
        estimated_days=7,
        applies_to=_BOTH,
        description="Liberação alfandegária no Brasil",
    ),
    Stage(
        id="transporte_nacional",
        order=7,
        name="Transporte Nacional",
        estimated_days=3,
        applies_to=_BOTH,
        description="Entrega do porto/aeroporto ao destino final",
    ),
    Stage(
        id=FINAL_STAGE_ID,
        order=8,
        name="Concluído",
        estimated_days=0,
        applies_to=_BOTH,
        description="Importação finalizada e entregue",
    ),
)

_BY_ID: dict[str, int] = {s.id: i for i, s in enumerate(STAGES)}


def _check_catalog(stages: tuple[Stage, ...]) -> None:
    ids = [s.id for s in stages]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate stage ids in catalog: {ids}")
    orders = [s.order for s in stages]
    if any(a >= b for a, b in zip(orders, orders[1:])):
        raise ValueError(f"Stage order must be strictly increasing: {orders}")


_check_catalog(STAGES)


def get_stage(stage_id: str) -> Stage:
    """Return the catalog entry for *stage_id*; NotFoundError if unknown."""
    try:
        return STAGES[_BY_ID[stage_id]]
    except KeyError:
        raise NotFoundError(stage_id) from None


def stages_for(method: ShippingMethod) -> tuple[Stage, ...]:
    """Stages that apply to *method*, in catalog order."""
    return tuple(s for s in STAGES if s.applies(method))


def next_stage(stage_id: str) -> Stage | None:
    """Adjacent stage after *stage_id* in the full catalog, or None at the end."""
    get_stage(stage_id)
    idx = _BY_ID[stage_id]
    return STAGES[idx + 1] if idx + 1 < len(STAGES) else None


def previous_stage(stage_id: str) -> Stage | None:
    """Adjacent stage before *stage_id* in the full catalog, or None at the start."""
    get_stage(stage_id)
    idx = _BY_ID[stage_id]
    return STAGES[idx - 1] if idx > 0 else None


def total_estimated_days(method: ShippingMethod) -> int:
    return sum(s.estimated_days for s in stages_for(method))
