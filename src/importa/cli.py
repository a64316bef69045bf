from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Mapping
from datetime import date
from importlib.resources import files
from pathlib import Path

from importa.models.costs import Category, ImportFinancials
from importa.models.credit import CreditSnapshot

TEMPLATES = [
    "costs.yaml.example",
    "custos.yaml.example",
    "credito.yaml.example",
]

_CATEGORY_LABELS = {
    Category.TAX: "Impostos",
    Category.FEE: "Taxas",
    Category.SERVICE: "Serviços",
    Category.IMPORT_DATA: "Dados de importação",
}


def _init_config() -> None:
    """Copy bundled config templates to the user's config/data directories."""
    from importa.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    templates = files("importa") / "templates"

    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    for rel in TEMPLATES:
        dest = config_dir / rel
        if dest.exists():
            print(f"  já existe: {dest}")
            continue
        src = templates / rel
        with src.open("rb") as f:
            dest.write_bytes(f.read())
        print(f"  criado: {dest}")
        copied += 1

    print()
    print(f"Configuração: {config_dir}")
    print(f"Dados:   {data_dir}")
    print()
    if copied:
        print("Próximos passos:")
        print(f"  1. cp {config_dir / 'costs.yaml.example'} {config_dir / 'costs.yaml'}")
        print("  2. Ajuste taxas e serviços padrão em costs.yaml (opcional)")
        print(f"  3. Execute: importa custos {config_dir / 'custos.yaml.example'}")
    else:
        print("Nenhum arquivo novo criado (todos já existiam).")


def _print_financials(fin: ImportFinancials) -> None:
    from importa.utils.formatters import format_brl, format_usd

    print(f"FOB total:          {format_usd(fin.fob_total)}")
    print(f"FOB declarado:      {format_usd(fin.declared_fob)}")
    print(f"CIF declarado:      {format_usd(fin.cif_usd)}  ({format_brl(fin.cif_brl)})")
    print()
    for category, label in _CATEGORY_LABELS.items():
        entries = [e for e in fin.entries if e.category is category]
        if not entries:
            continue
        print(f"{label}:")
        for e in entries:
            print(f"  {e.name:<36} {format_brl(e.value_brl)}")
    print()
    print(f"Total impostos:     {format_brl(fin.taxes_total)}")
    print(f"Total taxas:        {format_brl(fin.fees_total)}")
    print(f"Total serviços:     {format_brl(fin.services_total)}")
    print(f"Total declarado:    {format_brl(fin.total_declared_brl)}")
    print()
    print(f"CIF real:           {format_usd(fin.real_cif_usd)}  ({format_brl(fin.real_cif_brl)})")
    print(f"Total real:         {format_brl(fin.total_real_brl)}")


def _cmd_custos(args: argparse.Namespace) -> int:
    from importa.config import get_usd_brl_rate, load_cost_catalog, load_yaml
    from importa.services.operations import handle_cost_request

    request = load_yaml(Path(args.arquivo))
    if args.taxa is not None:
        request["usd_to_brl_rate"] = args.taxa
    request.setdefault("usd_to_brl_rate", str(get_usd_brl_rate()))

    result = handle_cost_request(request, load_cost_catalog())
    if not result.ok:
        print(f"Erro: {result.error}")
        return 1
    _print_financials(result.value)  # type: ignore[arg-type]
    return 0


def _cmd_credito(args: argparse.Namespace) -> int:
    from importa.config import (
        CREDIT_WARNING_THRESHOLD,
        get_admin_fee_percent,
        get_down_payment_percent,
        get_payment_terms,
        load_yaml,
    )
    from importa.services.credit import (
        financing_preview,
        needs_limit_warning,
        payment_schedule,
        usage_percent,
    )
    from importa.services.operations import handle_credit_request
    from importa.utils.credit_lock import credit_line_lock
    from importa.utils.formatters import format_brl, format_percent

    request = load_yaml(Path(args.arquivo))
    snap = request.get("credit_snapshot") or {}
    if isinstance(snap, Mapping):
        snap = dict(snap)
        snap.setdefault(
            "down_payment_percent",
            request.get("down_payment_percent", str(get_down_payment_percent())),
        )
        snap.setdefault("admin_fee_percent", str(get_admin_fee_percent()))
        request["credit_snapshot"] = snap
    credit_id = request.get("credit_application_id", "default")

    with credit_line_lock(credit_id):
        result = handle_credit_request(request)

    if not result.ok:
        print(f"Rejeitado: {result.error}")
        return 1

    decision = result.value
    snapshot = CreditSnapshot.from_dict(snap)
    preview = financing_preview(request["import_value_brl"], snapshot)
    print(f"Financiado:         {format_brl(decision.financed_amount)}")  # type: ignore[union-attr]
    print(f"Disponível:         {format_brl(decision.available_credit)}")  # type: ignore[union-attr]
    print(f"Saldo após:         {format_brl(decision.remaining_after)}")  # type: ignore[union-attr]
    print(f"Entrada:            {format_brl(preview.down_payment)}")
    print(f"Taxa administrativa:{format_brl(preview.admin_fee):>20}")
    print(f"Uso do limite:      {format_percent(round(usage_percent(snapshot), 2))}")
    if needs_limit_warning(snapshot, CREDIT_WARNING_THRESHOLD):
        limit = format_percent(CREDIT_WARNING_THRESHOLD)
        print(f"  AVISO: uso do limite de crédito acima de {limit}")
    print()
    print("Cronograma:")
    schedule = payment_schedule(
        request["import_value_brl"],
        snapshot.down_payment_percent,
        request.get("payment_terms") or get_payment_terms(),
        date.today(),
    )
    for p in schedule:
        label = "Entrada" if p.kind == "down_payment" else f"Parcela {p.number}/{p.total}"
        print(f"  {label:<14} {p.due_date}  {format_brl(p.amount)}")
    return 0


def _cmd_pipeline(args: argparse.Namespace) -> int:
    from importa.services.operations import handle_transition, register_import
    from importa.services.pipeline import progress, stage_statuses
    from importa.services.stage_catalog import get_stage
    from importa.utils.formatters import format_stage_duration
    from importa.utils.pipeline_store import PipelineStore

    store = PipelineStore()
    if args.acao == "novo":
        result = register_import(store, args.import_id, args.modal)
    elif args.acao in ("avancar", "voltar"):
        action = "advance" if args.acao == "avancar" else "revert"
        result = handle_transition(store, args.import_id, action)
    else:
        stored = store.get(args.import_id)
        if stored is None:
            print(f"Erro: importação não encontrada: {args.import_id}")
            return 1
        result = None
        state = stored.state

    if result is not None:
        if not result.ok:
            print(f"Erro: {result.error}")
            return 1
        state = result.value  # type: ignore[assignment]

    print(f"Importação {args.import_id} ({state.shipping_method.value}) - {progress(state)}%")
    for stage_id, status in stage_statuses(state).items():
        stage = get_stage(stage_id)
        print(f"  [{status.value:<9}] {stage.name:<22} {format_stage_duration(stage.estimated_days)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="importa", description="Custos de importação, crédito e acompanhamento de embarques"
    )
    sub = parser.add_subparsers(dest="comando", required=True)

    sub.add_parser("init", help="Cria os arquivos de configuração de exemplo")

    p_custos = sub.add_parser("custos", help="Calcula o custo de uma importação")
    p_custos.add_argument("arquivo", help="YAML com itens, incoterm, frete e seguro")
    p_custos.add_argument("--taxa", default=None, help="Taxa USD→BRL (sobrescreve o arquivo)")

    p_credito = sub.add_parser("credito", help="Valida uma importação contra o limite de crédito")
    p_credito.add_argument("arquivo", help="YAML com valor, entrada e snapshot de crédito")

    p_pipe = sub.add_parser("pipeline", help="Acompanha os estágios de uma importação")
    p_pipe.add_argument("import_id")
    p_pipe.add_argument("acao", choices=["novo", "status", "avancar", "voltar"])
    p_pipe.add_argument("--modal", choices=["sea", "air"], default="sea")
    return parser


def main() -> None:
    """Entry point for the importa CLI."""
    logging.basicConfig(
        level=os.environ.get("IMPORTA_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    args = _build_parser().parse_args()

    if args.comando == "init":
        _init_config()
        return

    handlers = {"custos": _cmd_custos, "credito": _cmd_credito, "pipeline": _cmd_pipeline}
    code = handlers[args.comando](args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
