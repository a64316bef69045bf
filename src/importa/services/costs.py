"""Landed-cost computation: FOB → CIF → taxes, fees and services in BRL.

Two variants come out of one computation. The *declared* variant uses the FOB
fraction submitted to customs; the *real* variant uses the full FOB paid to
the supplier. Taxes, fees and services are levied on the declared CIF only
and are carried unchanged into the real total.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from importa.models.costs import (
    Category,
    CostCatalog,
    CostEntry,
    CostLineItem,
    CostRequest,
    Currency,
    ImportFinancials,
    Incoterm,
    Kind,
)
from importa.utils.validators import validate_declared_percent, validate_rate

logger = logging.getLogger(__name__)

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def _tax(name: str, rate: str) -> CostLineItem:
    return CostLineItem(name, Category.TAX, Kind.PERCENTAGE, Currency.BRL, Decimal(rate))


def _fixed(name: str, category: Category, currency: Currency, amount: str) -> CostLineItem:
    return CostLineItem(name, category, Kind.FIXED, currency, Decimal(amount))


BUILTIN_CATALOG = CostCatalog(
    taxes=(
        _tax("Imposto de Importação", "14"),
        _tax("IPI", "15"),
        _tax("PIS", "1.65"),
        _tax("COFINS", "7.6"),
        _tax("ICMS", "18"),
    ),
    fees=(
        _fixed("Despacho Aduaneiro", Category.FEE, Currency.BRL, "800"),
        _fixed("Armazenagem", Category.FEE, Currency.BRL, "450"),
        _fixed("THC (Terminal Handling Charge)", Category.FEE, Currency.USD, "120"),
        _fixed("SISCOMEX", Category.FEE, Currency.BRL, "215"),
    ),
    services=(
        _fixed("Transporte Nacional", Category.SERVICE, Currency.BRL, "1200"),
        _fixed("Descarga", Category.SERVICE, Currency.BRL, "350"),
        _fixed("Escolta (opcional)", Category.SERVICE, Currency.BRL, "800"),
    ),
)


def fob_total(request: CostRequest) -> Decimal:
    return sum((li.total_usd for li in request.line_items), _ZERO)


def cif_for_incoterm(
    incoterm: Incoterm, fob: Decimal, freight_usd: Decimal, insurance_usd: Decimal
) -> Decimal:
    """CIF value in USD for a FOB amount quoted under *incoterm*."""
    if incoterm is Incoterm.CIF:
        return fob
    if incoterm is Incoterm.CFR:
        return fob + insurance_usd
    return fob + freight_usd + insurance_usd


def cost_value(item: CostLineItem, cif_usd: Decimal, cif_brl: Decimal) -> Decimal:
    """Value of *item* in its own currency.

    Percentages apply to the CIF expressed in the item's currency; fixed
    amounts are taken as given.
    """
    if item.kind is Kind.PERCENTAGE:
        base = cif_usd if item.currency is Currency.USD else cif_brl
        return base * item.amount / _HUNDRED
    return item.amount


def _to_brl(value: Decimal, currency: Currency, rate: Decimal) -> Decimal:
    return value * rate if currency is Currency.USD else value


def resolve_entries(
    catalog: CostCatalog,
    custom_costs: tuple[CostLineItem, ...],
    cif_usd: Decimal,
    cif_brl: Decimal,
    rate: Decimal,
) -> tuple[CostEntry, ...]:
    entries = []
    for builtin, items in ((True, catalog.items()), (False, custom_costs)):
        for item in items:
            value = cost_value(item, cif_usd, cif_brl)
            entries.append(
                CostEntry(
                    name=item.name,
                    category=item.category,
                    currency=item.currency,
                    value=value,
                    value_brl=_to_brl(value, item.currency, rate),
                    builtin=builtin,
                )
            )
    return tuple(entries)


def _category_total(entries: tuple[CostEntry, ...], category: Category) -> Decimal:
    return sum((e.value_brl for e in entries if e.category is category), _ZERO)


def compute_financials(
    request: CostRequest, catalog: CostCatalog | None = None
) -> ImportFinancials:
    """Compute the declared and real landed cost of an import.

    Raises InvalidRateError for a non-positive exchange rate and
    InvalidPercentError for a declared percentage outside [1, 100].
    """
    rate = validate_rate(request.usd_to_brl_rate)
    declared_pct = validate_declared_percent(request.declared_fob_percent)
    catalog = catalog or BUILTIN_CATALOG

    fob = fob_total(request)
    declared_fob = fob * declared_pct / _HUNDRED
    freight = request.international_freight_usd
    insurance = request.insurance_usd

    cif_usd = cif_for_incoterm(request.incoterm, declared_fob, freight, insurance)
    cif_brl = cif_usd * rate

    entries = resolve_entries(catalog, request.custom_costs, cif_usd, cif_brl, rate)
    taxes = _category_total(entries, Category.TAX)
    fees = _category_total(entries, Category.FEE)
    services = _category_total(entries, Category.SERVICE)

    # The supplier is always paid the full FOB plus transport, whatever the
    # incoterm used for the declaration.
    real_cif_usd = fob + freight + insurance
    real_cif_brl = real_cif_usd * rate

    logger.debug(
        "Financials: fob=%s declared=%s cif_usd=%s incoterm=%s",
        fob,
        declared_fob,
        cif_usd,
        request.incoterm.value,
    )
    return ImportFinancials(
        fob_total=fob,
        declared_fob=declared_fob,
        cif_usd=cif_usd,
        cif_brl=cif_brl,
        taxes_total=taxes,
        fees_total=fees,
        services_total=services,
        total_declared_brl=cif_brl + taxes + fees + services,
        real_cif_usd=real_cif_usd,
        real_cif_brl=real_cif_brl,
        total_real_brl=real_cif_brl + taxes + fees + services,
        entries=entries,
    )
