from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from importa.services.exceptions import (
    InvalidPercentError,
    InvalidRateError,
    ValidationError,
)

_HUNDRED = Decimal("100")


def parse_decimal(value: object, label: str = "valor") -> Decimal:
    """Convert *value* (str, int, float or Decimal) to a finite Decimal.

    Floats go through ``str()`` so that ``0.1`` becomes ``Decimal("0.1")``.
    Raises ValidationError for non-numeric, NaN or infinite input.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{label}: valor numerico invalido: '{value}'")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not d.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label}: valor numerico invalido: '{value}'") from None
    return d


def validate_monetary(value: object, label: str = "valor") -> Decimal:
    """Validate a non-negative monetary amount."""
    d = parse_decimal(value, label)
    if d < 0:
        raise ValidationError(f"{label}: valor nao pode ser negativo: '{value}'")
    return d


def validate_quantity(value: object) -> Decimal:
    return validate_monetary(value, "quantidade")


def validate_rate(value: object) -> Decimal:
    """Validate the USD→BRL exchange rate (must be strictly positive)."""
    try:
        d = parse_decimal(value, "taxa de cambio")
    except ValidationError as exc:
        raise InvalidRateError(str(exc)) from None
    if d <= 0:
        raise InvalidRateError(f"Taxa de cambio deve ser positiva: '{value}'")
    return d


def validate_percent(value: object, label: str = "percentual") -> Decimal:
    """Validate a percentage in the closed range 0-100."""
    try:
        d = parse_decimal(value, label)
    except ValidationError as exc:
        raise InvalidPercentError(str(exc)) from None
    if d < 0 or d > _HUNDRED:
        raise InvalidPercentError(f"{label}: deve estar entre 0 e 100")
    return d


def validate_declared_percent(value: object) -> Decimal:
    """Validate the declared FOB percentage, which must lie in [1, 100]."""
    d = validate_percent(value, "percentual FOB declarado")
    if d < 1:
        raise InvalidPercentError("percentual FOB declarado: deve estar entre 1 e 100")
    return d


def clamp_declared_percent(value: object) -> Decimal:
    """Clamp a declared FOB percentage into [1, 100].

    Callers use this on raw form input before building a cost request;
    non-numeric input still raises.
    """
    try:
        d = parse_decimal(value, "percentual FOB declarado")
    except ValidationError as exc:
        raise InvalidPercentError(str(exc)) from None
    return min(max(d, Decimal("1")), _HUNDRED)


def validate_mapping(
    value: object, label: str, error: type[ValidationError] = ValidationError
) -> Mapping:
    """Ensure a request section is a mapping (YAML/JSON object)."""
    if not isinstance(value, Mapping):
        raise error(f"{label}: objeto esperado, recebido '{value}'")
    return value


def validate_entries(
    value: object, label: str, error: type[ValidationError] = ValidationError
) -> list[Mapping]:
    """Ensure a request section is a list of mappings; None counts as empty."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise error(f"{label}: lista esperada, recebido '{value}'")
    return [validate_mapping(entry, label, error) for entry in value]
