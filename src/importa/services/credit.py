from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal

from importa.config import CREDIT_WARNING_THRESHOLD
from importa.models.credit import (
    CreditDecision,
    CreditSnapshot,
    FinancingPreview,
    PaymentInstallment,
)
from importa.models.pipeline import ImportPipelineState
from importa.services.exceptions import InsufficientCreditError, ValidationError
from importa.services.pipeline import is_active
from importa.utils.validators import validate_monetary, validate_percent

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def financed_amount(import_value_brl: object, down_payment_percent: object) -> Decimal:
    """Portion of the import value not covered by the down payment."""
    value = validate_monetary(import_value_brl, "valor da importacao")
    pct = validate_percent(down_payment_percent, "entrada")
    return value * (1 - pct / _HUNDRED)


def validate(financed: Decimal, snapshot: CreditSnapshot) -> CreditDecision:
    """Accept *financed* against the snapshot or raise InsufficientCreditError.

    Exact equality with the available credit is accepted. Nothing is reserved;
    callers serialize checks per credit line (see ``credit_line_lock``).
    """
    available = snapshot.available_credit
    if financed > available:
        logger.info("Credit rejected: financed=%s available=%s", financed, available)
        raise InsufficientCreditError(financed, available)
    return CreditDecision(financed_amount=financed, available_credit=available)


def snapshot_from_imports(
    approved_limit: object,
    imports: Iterable[tuple[ImportPipelineState, object]],
    down_payment_percent: object = Decimal("30"),
    admin_fee_percent: object = Decimal("10"),
) -> CreditSnapshot:
    """Build a snapshot whose usage is the total value of still-active imports.

    *imports* yields ``(pipeline_state, import_value)`` pairs; imports that
    reached the final stage no longer hold credit.
    """
    used = sum(
        (validate_monetary(value, "valor da importacao") for state, value in imports if is_active(state)),
        _ZERO,
    )
    return CreditSnapshot(
        approved_limit=validate_monetary(approved_limit, "limite aprovado"),
        used_amount=used,
        down_payment_percent=validate_percent(down_payment_percent, "entrada"),
        admin_fee_percent=validate_percent(admin_fee_percent, "taxa administrativa"),
    )


def usage_percent(snapshot: CreditSnapshot) -> Decimal:
    if snapshot.approved_limit <= 0:
        return _ZERO
    return snapshot.used_amount * _HUNDRED / snapshot.approved_limit


def needs_limit_warning(
    snapshot: CreditSnapshot, threshold: Decimal = CREDIT_WARNING_THRESHOLD
) -> bool:
    """True once usage reaches *threshold* percent of the approved limit."""
    if snapshot.approved_limit <= 0:
        return False
    pct = usage_percent(snapshot)
    if pct >= threshold:
        logger.warning(
            "Credit usage at %.0f%% of limit (%s available)", pct, snapshot.available_credit
        )
        return True
    return False


def financing_preview(import_value: object, snapshot: CreditSnapshot) -> FinancingPreview:
    """Split an import value into down payment, financed part and admin fee."""
    value = validate_monetary(import_value, "valor da importacao")
    down = value * snapshot.down_payment_percent / _HUNDRED
    financed = value - down
    admin_fee = financed * snapshot.admin_fee_percent / _HUNDRED
    return FinancingPreview(
        down_payment=down,
        financed_amount=financed,
        admin_fee=admin_fee,
        total_import_cost=value + admin_fee,
        total_credit_needed=financed + admin_fee,
    )


def parse_terms(terms: str) -> list[int]:
    """Parse a payment-terms string such as ``"30,60,90,120"`` into day offsets."""
    try:
        days = [int(t.strip()) for t in terms.split(",") if t.strip()]
    except ValueError:
        raise ValidationError(f"Prazos de pagamento invalidos: '{terms}'") from None
    if not days or any(d < 0 for d in days):
        raise ValidationError(f"Prazos de pagamento invalidos: '{terms}'")
    return days


def payment_schedule(
    total_value: object,
    down_payment_percent: object,
    terms: str,
    start: date,
) -> list[PaymentInstallment]:
    """Down payment due at *start*, then equal installments at each term offset."""
    value = validate_monetary(total_value, "valor da importacao")
    pct = validate_percent(down_payment_percent, "entrada")
    days = parse_terms(terms)

    down = value * pct / _HUNDRED
    installment = (value - down) / len(days)
    schedule = [PaymentInstallment(kind="down_payment", amount=down, due_date=start)]
    for i, offset in enumerate(days, start=1):
        schedule.append(
            PaymentInstallment(
                kind="installment",
                amount=installment,
                due_date=start + timedelta(days=offset),
                number=i,
                total=len(days),
            )
        )
    return schedule
