from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from importa.services.exceptions import InvalidCostItemError
from importa.utils.validators import (
    validate_declared_percent,
    validate_entries,
    validate_mapping,
    validate_monetary,
    validate_quantity,
    validate_rate,
)


class Category(Enum):
    TAX = "tax"
    FEE = "fee"
    SERVICE = "service"
    IMPORT_DATA = "import_data"


class Kind(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class Currency(Enum):
    USD = "USD"
    BRL = "BRL"


class Incoterm(Enum):
    FOB = "FOB"
    CFR = "CFR"
    CIF = "CIF"


def _enum_value(enum_cls: type[Enum], raw: object, label: str) -> Enum:
    """Map a raw string onto a closed enum, rejecting anything unknown."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidCostItemError(f"{label} invalido: '{raw}' (use {allowed})") from None


@dataclass(frozen=True)
class CostLineItem:
    """A tax, fee or service entry.

    For ``Kind.FIXED`` *amount* is an absolute value in *currency*; for
    ``Kind.PERCENTAGE`` it is a rate applied to the CIF in *currency*.
    """

    name: str
    category: Category
    kind: Kind
    currency: Currency
    amount: Decimal

    @classmethod
    def from_dict(cls, d: dict) -> CostLineItem:
        """Create a CostLineItem from a YAML/JSON dict, validating every field."""
        d = validate_mapping(d, "Custo", InvalidCostItemError)
        name = str(d.get("name") or "").strip()
        if not name:
            raise InvalidCostItemError("Custo sem nome")
        if "amount" not in d:
            raise InvalidCostItemError(f"Custo '{name}' sem valor")
        kind = _enum_value(Kind, d.get("kind", "fixed"), "Tipo")
        try:
            amount = validate_monetary(d["amount"], f"Custo '{name}'")
        except ValueError as exc:
            raise InvalidCostItemError(str(exc)) from None
        return cls(
            name=name,
            category=_enum_value(Category, d.get("category"), "Categoria"),  # type: ignore[arg-type]
            kind=kind,  # type: ignore[arg-type]
            currency=_enum_value(Currency, d.get("currency", "BRL"), "Moeda"),  # type: ignore[arg-type]
            amount=amount,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "category": self.category.value,
            "kind": self.kind.value,
            "currency": self.currency.value,
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class LineItem:
    quantity: Decimal
    unit_price_usd: Decimal

    @property
    def total_usd(self) -> Decimal:
        return self.quantity * self.unit_price_usd

    @classmethod
    def from_dict(cls, d: dict) -> LineItem:
        d = validate_mapping(d, "Item")
        return cls(
            quantity=validate_quantity(d.get("quantity", 0)),
            unit_price_usd=validate_monetary(d.get("unit_price_usd", 0), "preco unitario"),
        )


@dataclass(frozen=True)
class CostRequest:
    """Inputs of a landed-cost computation."""

    line_items: tuple[LineItem, ...]
    incoterm: Incoterm = Incoterm.FOB
    international_freight_usd: Decimal = Decimal("0")
    insurance_usd: Decimal = Decimal("0")
    declared_fob_percent: Decimal = Decimal("100")
    usd_to_brl_rate: Decimal = Decimal("5.30")
    custom_costs: tuple[CostLineItem, ...] = ()

    @classmethod
    def from_dict(cls, d: dict) -> CostRequest:
        """Build a request from a loaded dict, applying defaults for optional fields.

        Raises InvalidRateError and InvalidPercentError for out-of-range rate
        and declared percentage, ValidationError for other bad fields.
        """
        d = validate_mapping(d, "Pedido de custo")
        incoterm = d.get("incoterm") or "FOB"
        if isinstance(incoterm, str):
            incoterm = incoterm.upper().strip()
        return cls(
            line_items=tuple(
                LineItem.from_dict(li) for li in validate_entries(d.get("line_items"), "Itens")
            ),
            incoterm=_enum_value(Incoterm, incoterm, "Incoterm"),  # type: ignore[arg-type]
            international_freight_usd=validate_monetary(
                d.get("international_freight_usd", 0), "frete internacional"
            ),
            insurance_usd=validate_monetary(d.get("insurance_usd", 0), "seguro"),
            declared_fob_percent=validate_declared_percent(d.get("declared_fob_percent", 100)),
            usd_to_brl_rate=validate_rate(d.get("usd_to_brl_rate", "5.30")),
            custom_costs=tuple(
                CostLineItem.from_dict(c)
                for c in validate_entries(
                    d.get("custom_costs"), "Custos adicionais", InvalidCostItemError
                )
            ),
        )


@dataclass(frozen=True)
class CostEntry:
    """A resolved cost: *value* in its own currency, *value_brl* converted."""

    name: str
    category: Category
    currency: Currency
    value: Decimal
    value_brl: Decimal
    builtin: bool = True


@dataclass(frozen=True)
class ImportFinancials:
    """Full declared/real cost breakdown of one import, all BRL totals."""

    fob_total: Decimal
    declared_fob: Decimal
    cif_usd: Decimal
    cif_brl: Decimal
    taxes_total: Decimal
    fees_total: Decimal
    services_total: Decimal
    total_declared_brl: Decimal
    real_cif_usd: Decimal
    real_cif_brl: Decimal
    total_real_brl: Decimal
    entries: tuple[CostEntry, ...] = field(default=())

    @property
    def import_costs_total(self) -> Decimal:
        return self.taxes_total + self.fees_total + self.services_total

    def entries_for(self, category: Category) -> tuple[CostEntry, ...]:
        return tuple(e for e in self.entries if e.category is category)


@dataclass(frozen=True)
class CostCatalog:
    """The built-in tax/fee/service stacks applied to every import."""

    taxes: tuple[CostLineItem, ...]
    fees: tuple[CostLineItem, ...]
    services: tuple[CostLineItem, ...]

    def items(self) -> tuple[CostLineItem, ...]:
        return self.taxes + self.fees + self.services

    @classmethod
    def from_dict(cls, d: dict, default: CostCatalog | None = None) -> CostCatalog:
        """Load a catalog from YAML; sections left out fall back to *default*.

        Each entry's category is forced to match its section.
        """
        d = validate_mapping(d, "Catalogo de custos", InvalidCostItemError)

        def section(key: str, category: Category) -> tuple[CostLineItem, ...] | None:
            raw = d.get(key)
            if raw is None:
                return None
            entries = validate_entries(raw, key, InvalidCostItemError)
            return tuple(
                CostLineItem.from_dict({**entry, "category": category.value}) for entry in entries
            )

        taxes = section("taxes", Category.TAX)
        fees = section("fees", Category.FEE)
        services = section("services", Category.SERVICE)
        if default is None and (taxes is None or fees is None or services is None):
            raise InvalidCostItemError("Catalogo de custos incompleto (taxes, fees, services)")
        return cls(
            taxes=taxes if taxes is not None else default.taxes,  # type: ignore[union-attr]
            fees=fees if fees is not None else default.fees,  # type: ignore[union-attr]
            services=services if services is not None else default.services,  # type: ignore[union-attr]
        )
