from __future__ import annotations

import logging
import os
from datetime import timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING

import platformdirs
import yaml
from dotenv import load_dotenv

if TYPE_CHECKING:
    from importa.models.costs import CostCatalog

APP_NAME = "importa"

logger = logging.getLogger(__name__)


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve the config dir for .env loading before .env itself is read.

    Only checks sources available up front (shell env var, dev layout, an
    existing platformdirs directory). Returns None when none of them exists.
    """
    from_env = os.environ.get("IMPORTA_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/importa/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("IMPORTA_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("IMPORTA_DATA_DIR", "data", kind="data")


BRT = timezone(timedelta(hours=-3))

DEFAULT_USD_BRL_RATE = Decimal("5.30")
DEFAULT_DOWN_PAYMENT_PERCENT = Decimal("30")
DEFAULT_ADMIN_FEE_PERCENT = Decimal("10")
DEFAULT_PAYMENT_TERMS = "30,60,90,120"
CREDIT_WARNING_THRESHOLD = Decimal("80")


# --- Env settings ---


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.environ.get(name)
    if not raw:
        return default
    from importa.utils.validators import parse_decimal

    try:
        return parse_decimal(raw, name)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def get_usd_brl_rate() -> Decimal:
    """Default USD→BRL rate for new cost requests (IMPORTA_USD_BRL_RATE)."""
    return _env_decimal("IMPORTA_USD_BRL_RATE", DEFAULT_USD_BRL_RATE)


def get_down_payment_percent() -> Decimal:
    return _env_decimal("IMPORTA_DOWN_PAYMENT_PERCENT", DEFAULT_DOWN_PAYMENT_PERCENT)


def get_admin_fee_percent() -> Decimal:
    return _env_decimal("IMPORTA_ADMIN_FEE_PERCENT", DEFAULT_ADMIN_FEE_PERCENT)


def get_payment_terms() -> str:
    return os.environ.get("IMPORTA_PAYMENT_TERMS") or DEFAULT_PAYMENT_TERMS


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text()) or {}


def load_cost_catalog() -> CostCatalog:
    """Return the built-in cost catalog, overridden by config/costs.yaml if present.

    Sections missing from the file keep their built-in entries.
    """
    from importa.models.costs import CostCatalog
    from importa.services.costs import BUILTIN_CATALOG

    path = get_config_dir() / "costs.yaml"
    if not path.is_file():
        return BUILTIN_CATALOG
    return CostCatalog.from_dict(load_yaml(path), default=BUILTIN_CATALOG)


def get_pipeline_store_path() -> Path:
    return get_data_dir() / "pipelines.json"
