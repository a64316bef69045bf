from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ShippingMethod(Enum):
    SEA = "sea"
    AIR = "air"


class StageStatus(Enum):
    PENDING = "pending"
    CURRENT = "current"
    COMPLETED = "completed"
    DELAYED = "delayed"


@dataclass(frozen=True)
class Stage:
    """One operational step of an import shipment.

    Rendering concerns (icons, colours) are mapped by ``id`` in the
    presentation layer and never live on the catalog entry.
    """

    id: str
    order: int
    name: str
    estimated_days: int
    applies_to: frozenset[ShippingMethod]
    description: str = ""

    def __post_init__(self) -> None:
        if self.estimated_days < 0:
            raise ValueError(f"estimated_days must be non-negative, got {self.estimated_days}")

    def applies(self, method: ShippingMethod) -> bool:
        return method in self.applies_to
