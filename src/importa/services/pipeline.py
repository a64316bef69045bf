from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from importa.config import BRT
from importa.models.pipeline import ImportPipelineState, StageDetail
from importa.models.stage import ShippingMethod, Stage, StageStatus
from importa.services.exceptions import (
    InvalidStagePatchError,
    NoNextStageError,
    NoPreviousStageError,
    NotFoundError,
)
from importa.services.stage_catalog import (
    FINAL_STAGE_ID,
    get_stage,
    stages_for,
    total_estimated_days,
)
from importa.utils.validators import validate_mapping

logger = logging.getLogger(__name__)

_PATCH_KEYS = frozenset({"started_at", "completed_at", "note", "status"})
_PATCH_STATUSES = frozenset({"pending", "current", "in_progress", "completed", "delayed"})


def _now() -> datetime:
    return datetime.now(BRT)


def _aware(value: datetime) -> datetime:
    """Naive datetimes are taken as Brasilia local time."""
    return value if value.tzinfo is not None else value.replace(tzinfo=BRT)


def _method_stages(state: ImportPipelineState) -> tuple[Stage, ...]:
    return stages_for(state.shipping_method)


def _position(stages: tuple[Stage, ...], stage_id: str) -> int:
    for i, s in enumerate(stages):
        if s.id == stage_id:
            return i
    raise NotFoundError(stage_id)


def new_state(method: ShippingMethod, created_at: datetime | None = None) -> ImportPipelineState:
    """State of a freshly registered shipment: first stage current, nothing done."""
    created = _aware(created_at) if created_at is not None else _now()
    first = stages_for(method)[0]
    return ImportPipelineState(
        shipping_method=method,
        current_stage_id=first.id,
        created_at=created,
        stage_details={first.id: StageDetail(started_at=created)},
        estimated_delivery_at=created + timedelta(days=total_estimated_days(method)),
    )


def progress(state: ImportPipelineState) -> int:
    """Overall completion, 0-100, counting the current stage as reached."""
    stages = _method_stages(state)
    reached = _position(stages, state.current_stage_id) + 1
    pct = Decimal(reached) * 100 / Decimal(len(stages))
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _is_completed(state: ImportPipelineState, stage_id: str) -> bool:
    return stage_id in state.completed_stage_ids


def is_delayed(state: ImportPipelineState, stage_id: str, now: datetime | None = None) -> bool:
    """True if an unfinished stage has overrun its estimate or is flagged delayed."""
    stage = get_stage(stage_id)
    if _is_completed(state, stage_id):
        return False
    detail = state.detail(stage_id)
    if detail.completed_at is not None:
        return False
    if detail.delayed:
        return True
    if detail.started_at is None:
        return False
    elapsed = (_aware(now) if now is not None else _now()) - _aware(detail.started_at)
    return elapsed > timedelta(days=stage.estimated_days)


def stage_status(
    state: ImportPipelineState, stage_id: str, now: datetime | None = None
) -> StageStatus:
    if is_delayed(state, stage_id, now):
        return StageStatus.DELAYED
    if _is_completed(state, stage_id):
        return StageStatus.COMPLETED
    if stage_id == state.current_stage_id:
        return StageStatus.CURRENT
    return StageStatus.PENDING


def stage_statuses(
    state: ImportPipelineState, now: datetime | None = None
) -> dict[str, StageStatus]:
    """Status of every stage of the shipment's method, in pipeline order."""
    ts = now or _now()
    return {s.id: stage_status(state, s.id, ts) for s in _method_stages(state)}


def delayed_stages(state: ImportPipelineState, now: datetime | None = None) -> list[str]:
    ts = now or _now()
    return [s.id for s in _method_stages(state) if is_delayed(state, s.id, ts)]


def advance(state: ImportPipelineState, now: datetime | None = None) -> ImportPipelineState:
    """Complete the current stage and move to the next one of the method.

    Raises NoNextStageError at the terminal stage.
    """
    stages = _method_stages(state)
    idx = _position(stages, state.current_stage_id)
    if idx + 1 >= len(stages):
        raise NoNextStageError(state.current_stage_id)
    target = stages[idx + 1]

    details = dict(state.stage_details)
    current = state.detail(target.id)
    if current.started_at is None:
        stamp = _aware(now) if now is not None else _now()
        details[target.id] = replace(current, started_at=stamp)

    logger.info("Pipeline advance: %s -> %s", state.current_stage_id, target.id)
    return replace(
        state,
        current_stage_id=target.id,
        completed_stage_ids=state.completed_stage_ids | {state.current_stage_id},
        stage_details=details,
    )


def revert(state: ImportPipelineState) -> ImportPipelineState:
    """Step back to the previous stage of the method, un-completing it.

    Raises NoPreviousStageError at the first stage.
    """
    stages = _method_stages(state)
    idx = _position(stages, state.current_stage_id)
    if idx == 0:
        raise NoPreviousStageError(state.current_stage_id)
    target = stages[idx - 1]

    logger.info("Pipeline revert: %s -> %s", state.current_stage_id, target.id)
    return replace(
        state,
        current_stage_id=target.id,
        completed_stage_ids=state.completed_stage_ids - {target.id},
    )


def _patch_datetime(value: Any, key: str) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _aware(value)
    try:
        return _aware(datetime.fromisoformat(str(value)))
    except ValueError:
        raise InvalidStagePatchError(f"{key}: data invalida: '{value}'") from None


def update_stage_details(
    state: ImportPipelineState, stage_id: str, patch: Mapping[str, Any]
) -> ImportPipelineState:
    """Merge *patch* into the stage's details.

    ``status="completed"`` marks the stage complete even out of order; operators
    use it to record work finished ahead of the pipeline. ``"pending"`` undoes
    it, ``"delayed"`` raises the manual delay flag.
    """
    get_stage(stage_id)
    _position(_method_stages(state), stage_id)

    patch = validate_mapping(patch, "Alteracao de estagio", InvalidStagePatchError)
    unknown = set(patch) - _PATCH_KEYS
    if unknown:
        raise InvalidStagePatchError(f"Campos desconhecidos: {', '.join(sorted(unknown))}")

    detail = state.detail(stage_id)
    changes: dict[str, Any] = {}
    if "started_at" in patch:
        changes["started_at"] = _patch_datetime(patch["started_at"], "started_at")
    if "completed_at" in patch:
        changes["completed_at"] = _patch_datetime(patch["completed_at"], "completed_at")
    if "note" in patch:
        changes["note"] = patch["note"]

    completed = state.completed_stage_ids
    status = patch.get("status")
    if status is not None:
        if status not in _PATCH_STATUSES:
            raise InvalidStagePatchError(f"Status invalido: '{status}'")
        if status == "completed":
            if stage_id not in completed and stage_id != state.current_stage_id:
                logger.info("Manual completion override for stage %s", stage_id)
            completed = completed | {stage_id}
            changes["delayed"] = False
        elif status == "delayed":
            changes["delayed"] = True
        else:
            changes["delayed"] = False
            if status == "pending":
                completed = completed - {stage_id}

    details = dict(state.stage_details)
    details[stage_id] = replace(detail, **changes)
    return replace(state, completed_stage_ids=completed, stage_details=details)


def is_active(state: ImportPipelineState) -> bool:
    """An import holds credit until it reaches the final stage."""
    return state.current_stage_id != FINAL_STAGE_ID
