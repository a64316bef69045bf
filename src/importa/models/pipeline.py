from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from importa.models.stage import ShippingMethod


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class StageDetail:
    """Operator-facing timestamps and notes for a single stage."""

    started_at: datetime | None = None
    completed_at: datetime | None = None
    note: str | None = None
    delayed: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> StageDetail:
        return cls(
            started_at=_parse_dt(d.get("started_at")),
            completed_at=_parse_dt(d.get("completed_at")),
            note=d.get("note"),
            delayed=bool(d.get("delayed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"delayed": self.delayed}
        if self.started_at is not None:
            out["started_at"] = _format_dt(self.started_at)
        if self.completed_at is not None:
            out["completed_at"] = _format_dt(self.completed_at)
        if self.note is not None:
            out["note"] = self.note
        return out


@dataclass(frozen=True)
class ImportPipelineState:
    """Snapshot of one shipment's position in the pipeline.

    Never mutated: every transition in ``importa.services.pipeline`` returns a
    new instance built with ``dataclasses.replace``.
    """

    shipping_method: ShippingMethod
    current_stage_id: str
    created_at: datetime
    completed_stage_ids: frozenset[str] = frozenset()
    stage_details: Mapping[str, StageDetail] = field(default_factory=dict)
    estimated_delivery_at: datetime | None = None

    def detail(self, stage_id: str) -> StageDetail:
        """Return the detail record for *stage_id*, or an empty one."""
        return self.stage_details.get(stage_id) or StageDetail()

    @classmethod
    def from_dict(cls, d: dict) -> ImportPipelineState:
        """Rebuild a state from its JSON form (see ``to_dict``)."""
        return cls(
            shipping_method=ShippingMethod(d["shipping_method"]),
            current_stage_id=d["current_stage_id"],
            created_at=datetime.fromisoformat(d["created_at"]),
            completed_stage_ids=frozenset(d.get("completed_stage_ids", [])),
            stage_details={
                sid: StageDetail.from_dict(detail)
                for sid, detail in d.get("stage_details", {}).items()
            },
            estimated_delivery_at=_parse_dt(d.get("estimated_delivery_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "shipping_method": self.shipping_method.value,
            "current_stage_id": self.current_stage_id,
            "created_at": self.created_at.isoformat(),
            "completed_stage_ids": sorted(self.completed_stage_ids),
            "stage_details": {sid: d.to_dict() for sid, d in self.stage_details.items()},
            "estimated_delivery_at": _format_dt(self.estimated_delivery_at),
        }
