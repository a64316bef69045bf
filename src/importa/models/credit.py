from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from importa.utils.validators import validate_mapping, validate_monetary, validate_percent


@dataclass(frozen=True)
class CreditSnapshot:
    """Point-in-time usage of an approved credit line."""

    approved_limit: Decimal
    used_amount: Decimal
    down_payment_percent: Decimal = Decimal("30")
    admin_fee_percent: Decimal = Decimal("10")

    @property
    def available_credit(self) -> Decimal:
        return max(Decimal("0"), self.approved_limit - self.used_amount)

    @classmethod
    def from_dict(cls, d: dict) -> CreditSnapshot:
        d = validate_mapping(d, "Snapshot de credito")
        return cls(
            approved_limit=validate_monetary(d.get("approved_limit", 0), "limite aprovado"),
            used_amount=validate_monetary(d.get("used_amount", 0), "credito utilizado"),
            down_payment_percent=validate_percent(d.get("down_payment_percent", 30), "entrada"),
            admin_fee_percent=validate_percent(d.get("admin_fee_percent", 10), "taxa administrativa"),
        )


@dataclass(frozen=True)
class CreditDecision:
    """Acceptance of an import against a credit line."""

    financed_amount: Decimal
    available_credit: Decimal

    @property
    def remaining_after(self) -> Decimal:
        return self.available_credit - self.financed_amount


@dataclass(frozen=True)
class FinancingPreview:
    down_payment: Decimal
    financed_amount: Decimal
    admin_fee: Decimal
    total_import_cost: Decimal
    total_credit_needed: Decimal


@dataclass(frozen=True)
class PaymentInstallment:
    kind: str  # "down_payment" | "installment"
    amount: Decimal
    due_date: date | None = None
    number: int | None = None
    total: int | None = None
