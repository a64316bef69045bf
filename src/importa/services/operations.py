"""Request handlers at the boundary of the import core.

An HTTP layer calls these with already-decoded request bodies. Every handler
returns a ``Result``; typed ``ImportaError`` rejections travel as values so
the caller can render a specific message. Transitions are applied with a
compare-and-swap against the pipeline store: a lost race comes back as
``ConcurrentUpdateError`` and is never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from importa.models.costs import CostCatalog, CostRequest, ImportFinancials
from importa.models.credit import CreditDecision, CreditSnapshot
from importa.models.pipeline import ImportPipelineState
from importa.models.stage import ShippingMethod
from importa.services import costs, credit, pipeline
from importa.services.exceptions import ImportaError, NotFoundError, ValidationError
from importa.utils.pipeline_store import PipelineStore
from importa.utils.validators import validate_mapping

T = TypeVar("T")

logger = logging.getLogger(__name__)

ACTIONS = ("advance", "revert")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: ImportaError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _fail(error: ImportaError) -> Result[Any]:
    if isinstance(error, NotFoundError):
        logger.error("Lookup failed: %s", error)
    else:
        logger.info("Request rejected: %s: %s", type(error).__name__, error)
    return Result(error=error)


def register_import(
    store: PipelineStore,
    import_id: str,
    shipping_method: str | ShippingMethod,
    created_at: datetime | None = None,
) -> Result[ImportPipelineState]:
    """Create the pipeline record of a newly registered shipment."""
    try:
        method = ShippingMethod(shipping_method)
    except ValueError:
        return _fail(ValidationError(f"Modal de transporte invalido: '{shipping_method}'"))
    state = pipeline.new_state(method, created_at)
    try:
        store.create(import_id, state)
    except ImportaError as exc:
        return _fail(exc)
    return Result(value=state)


def handle_transition(
    store: PipelineStore, import_id: str, action: str, now: datetime | None = None
) -> Result[ImportPipelineState]:
    """Apply ``advance`` or ``revert`` to the most recently stored state."""
    if action not in ACTIONS:
        return _fail(ValidationError(f"Acao invalida: '{action}' (use advance ou revert)"))
    stored = store.get(import_id)
    if stored is None:
        return _fail(NotFoundError(import_id, kind="import"))
    try:
        if action == "advance":
            new = pipeline.advance(stored.state, now)
        else:
            new = pipeline.revert(stored.state)
        store.save(import_id, new, expected_version=stored.version)
    except ImportaError as exc:
        return _fail(exc)
    return Result(value=new)


def handle_stage_edit(
    store: PipelineStore, import_id: str, stage_id: str, patch: Mapping[str, Any]
) -> Result[ImportPipelineState]:
    stored = store.get(import_id)
    if stored is None:
        return _fail(NotFoundError(import_id, kind="import"))
    try:
        new = pipeline.update_stage_details(stored.state, stage_id, patch)
        store.save(import_id, new, expected_version=stored.version)
    except ImportaError as exc:
        return _fail(exc)
    return Result(value=new)


def handle_cost_request(
    request: Mapping[str, Any], catalog: CostCatalog | None = None
) -> Result[ImportFinancials]:
    try:
        parsed = CostRequest.from_dict(request)  # type: ignore[arg-type]
        return Result(value=costs.compute_financials(parsed, catalog))
    except ImportaError as exc:
        return _fail(exc)


def handle_credit_request(request: Mapping[str, Any]) -> Result[CreditDecision]:
    """Gate an import's creation on the credit line's remaining capacity.

    Expects ``import_value_brl`` and a ``credit_snapshot`` mapping;
    ``down_payment_percent`` defaults to the snapshot's. Callers hold
    ``credit_line_lock`` around this and the import creation.
    """
    try:
        request = validate_mapping(request, "Pedido de credito")
        if request.get("import_value_brl") is None:
            raise ValidationError("valor da importacao: campo obrigatorio")
        snapshot = CreditSnapshot.from_dict(
            request.get("credit_snapshot") or {}  # type: ignore[arg-type]
        )
        financed = credit.financed_amount(
            request["import_value_brl"],
            request.get("down_payment_percent", snapshot.down_payment_percent),
        )
        return Result(value=credit.validate(financed, snapshot))
    except ImportaError as exc:
        return _fail(exc)
