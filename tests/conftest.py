from __future__ import annotations

from datetime import datetime

import pytest

from importa.config import BRT
from importa.models.stage import ShippingMethod
from importa.services import pipeline
from importa.utils.pipeline_store import PipelineStore

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=BRT)


# --- Pipeline fixtures ---


@pytest.fixture
def sea_state():
    return pipeline.new_state(ShippingMethod.SEA, created_at=T0)


@pytest.fixture
def air_state():
    return pipeline.new_state(ShippingMethod.AIR, created_at=T0)


@pytest.fixture
def store(tmp_path) -> PipelineStore:
    return PipelineStore(tmp_path / "pipelines.json")


# --- Cost fixtures ---


@pytest.fixture
def cost_request_dict() -> dict:
    return {
        "line_items": [{"quantity": 1000, "unit_price_usd": "100"}],
        "incoterm": "FOB",
        "international_freight_usd": "5000",
        "insurance_usd": "1000",
        "declared_fob_percent": 100,
        "usd_to_brl_rate": "5.00",
    }


# --- Credit fixtures ---


@pytest.fixture
def credit_request_dict() -> dict:
    return {
        "credit_application_id": 42,
        "import_value_brl": "200000",
        "down_payment_percent": 30,
        "credit_snapshot": {
            "approved_limit": "500000",
            "used_amount": "300000",
            "admin_fee_percent": 10,
        },
    }


# --- Config dir fixture ---


@pytest.fixture
def isolated_dirs(monkeypatch, tmp_path):
    """Point config and data dirs at empty temp directories."""
    cfg = tmp_path / "config"
    data = tmp_path / "data"
    cfg.mkdir()
    monkeypatch.setenv("IMPORTA_CONFIG_DIR", str(cfg))
    monkeypatch.setenv("IMPORTA_DATA_DIR", str(data))
    for var in (
        "IMPORTA_USD_BRL_RATE",
        "IMPORTA_DOWN_PAYMENT_PERCENT",
        "IMPORTA_ADMIN_FEE_PERCENT",
        "IMPORTA_PAYMENT_TERMS",
    ):
        monkeypatch.delenv(var, raising=False)
    return cfg, data
