from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta

import pytest

from importa.config import BRT
from importa.models.stage import ShippingMethod, StageStatus
from importa.services import pipeline
from importa.services.exceptions import (
    InvalidStagePatchError,
    NoNextStageError,
    NoPreviousStageError,
    NotFoundError,
)
from importa.services.stage_catalog import stages_for

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=BRT)


def _advance_n(state, n, now=T0):
    for _ in range(n):
        state = pipeline.advance(state, now)
    return state


class TestNewState:
    def test_starts_at_first_stage(self, sea_state):
        assert sea_state.current_stage_id == "planejamento"
        assert sea_state.completed_stage_ids == frozenset()
        assert sea_state.detail("planejamento").started_at == T0

    def test_estimated_delivery(self, sea_state, air_state):
        assert sea_state.estimated_delivery_at == T0 + timedelta(days=60)
        assert air_state.estimated_delivery_at == T0 + timedelta(days=35)

    def test_is_active(self, sea_state):
        assert pipeline.is_active(sea_state)
        assert not pipeline.is_active(_advance_n(sea_state, 6))


class TestProgress:
    def test_first_stage(self, sea_state):
        assert pipeline.progress(sea_state) == 14

    def test_rounds_half_up(self, sea_state):
        assert pipeline.progress(pipeline.advance(sea_state, T0)) == 29

    def test_final_stage_is_100(self, air_state):
        assert pipeline.progress(_advance_n(air_state, 6)) == 100

    def test_monotonic_under_advance(self, sea_state):
        values = [pipeline.progress(sea_state)]
        state = sea_state
        for _ in range(6):
            state = pipeline.advance(state, T0)
            values.append(pipeline.progress(state))
        assert values == sorted(values)
        assert len(set(values)) == len(values)


class TestAdvance:
    def test_moves_and_completes(self, sea_state):
        later = T0 + timedelta(days=2)
        new = pipeline.advance(sea_state, later)
        assert new.current_stage_id == "producao"
        assert new.completed_stage_ids == {"planejamento"}
        assert new.detail("producao").started_at == later

    def test_sea_skips_air_leg(self, sea_state):
        new = _advance_n(sea_state, 4)
        assert new.current_stage_id == "desembaraco"
        assert "transporte_aereo" not in new.completed_stage_ids

    def test_air_uses_air_leg(self, air_state):
        assert _advance_n(air_state, 3).current_stage_id == "transporte_aereo"

    def test_at_final_stage_raises(self, sea_state):
        final = _advance_n(sea_state, 6)
        with pytest.raises(NoNextStageError):
            pipeline.advance(final, T0)

    def test_keeps_existing_started_at(self, sea_state):
        moved = pipeline.advance(sea_state, T0 + timedelta(days=1))
        back = pipeline.revert(moved)
        again = pipeline.advance(back, T0 + timedelta(days=5))
        assert again.detail("producao").started_at == T0 + timedelta(days=1)

    def test_input_state_unchanged(self, sea_state):
        pipeline.advance(sea_state, T0)
        assert sea_state.current_stage_id == "planejamento"
        assert sea_state.completed_stage_ids == frozenset()

    def test_state_is_frozen(self, sea_state):
        with pytest.raises(FrozenInstanceError):
            sea_state.current_stage_id = "producao"


class TestRevert:
    def test_steps_back_and_uncompletes(self, sea_state):
        moved = _advance_n(sea_state, 2)
        back = pipeline.revert(moved)
        assert back.current_stage_id == "producao"
        assert back.completed_stage_ids == {"planejamento"}

    def test_at_first_stage_raises(self, sea_state):
        with pytest.raises(NoPreviousStageError):
            pipeline.revert(sea_state)

    @pytest.mark.parametrize("method", list(ShippingMethod))
    def test_revert_undoes_advance_at_every_stage(self, method):
        state = pipeline.new_state(method, created_at=T0)
        for _ in range(len(stages_for(method)) - 1):
            moved = pipeline.advance(state, T0)
            back = pipeline.revert(moved)
            assert back.current_stage_id == state.current_stage_id
            assert back.completed_stage_ids == state.completed_stage_ids
            state = moved


class TestDelay:
    def test_not_delayed_at_estimate(self, sea_state):
        now = T0 + timedelta(days=3)
        assert not pipeline.is_delayed(sea_state, "planejamento", now)

    def test_delayed_past_estimate(self, sea_state):
        now = T0 + timedelta(days=3, seconds=1)
        assert pipeline.is_delayed(sea_state, "planejamento", now)
        assert pipeline.delayed_stages(sea_state, now) == ["planejamento"]

    def test_not_started_never_delayed(self, sea_state):
        assert not pipeline.is_delayed(sea_state, "producao", T0 + timedelta(days=365))

    def test_completed_at_clears_delay(self, sea_state):
        now = T0 + timedelta(days=10)
        patched = pipeline.update_stage_details(
            sea_state, "planejamento", {"completed_at": (T0 + timedelta(days=4)).isoformat()}
        )
        assert not pipeline.is_delayed(patched, "planejamento", now)

    def test_completed_stage_not_delayed(self, sea_state):
        moved = pipeline.advance(sea_state, T0 + timedelta(days=10))
        assert not pipeline.is_delayed(moved, "planejamento", T0 + timedelta(days=11))

    def test_manual_flag(self, sea_state):
        patched = pipeline.update_stage_details(sea_state, "producao", {"status": "delayed"})
        assert pipeline.is_delayed(patched, "producao", T0)
        assert pipeline.stage_status(patched, "producao", T0) is StageStatus.DELAYED


class TestStageStatuses:
    def test_initial(self, sea_state):
        statuses = pipeline.stage_statuses(sea_state, T0)
        assert statuses["planejamento"] is StageStatus.CURRENT
        assert statuses["producao"] is StageStatus.PENDING
        assert "transporte_aereo" not in statuses

    def test_after_advance(self, sea_state):
        statuses = pipeline.stage_statuses(pipeline.advance(sea_state, T0), T0)
        assert statuses["planejamento"] is StageStatus.COMPLETED
        assert statuses["producao"] is StageStatus.CURRENT

    def test_order_follows_pipeline(self, air_state):
        assert list(pipeline.stage_statuses(air_state, T0))[3] == "transporte_aereo"


class TestUpdateStageDetails:
    def test_note_and_started_at(self, sea_state):
        patched = pipeline.update_stage_details(
            sea_state,
            "producao",
            {"note": "Fornecedor confirmou", "started_at": "2026-03-05T10:00:00-03:00"},
        )
        detail = patched.detail("producao")
        assert detail.note == "Fornecedor confirmou"
        assert detail.started_at == datetime(2026, 3, 5, 10, 0, tzinfo=BRT)

    def test_none_clears_value(self, sea_state):
        patched = pipeline.update_stage_details(sea_state, "planejamento", {"started_at": None})
        assert patched.detail("planejamento").started_at is None

    def test_manual_completion_override(self, sea_state):
        patched = pipeline.update_stage_details(sea_state, "desembaraco", {"status": "completed"})
        assert "desembaraco" in patched.completed_stage_ids
        assert patched.current_stage_id == "planejamento"
        assert pipeline.stage_status(patched, "desembaraco", T0) is StageStatus.COMPLETED

    def test_pending_undoes_completion(self, sea_state):
        moved = pipeline.advance(sea_state, T0)
        patched = pipeline.update_stage_details(moved, "planejamento", {"status": "pending"})
        assert "planejamento" not in patched.completed_stage_ids

    def test_completed_clears_manual_flag(self, sea_state):
        flagged = pipeline.update_stage_details(sea_state, "producao", {"status": "delayed"})
        done = pipeline.update_stage_details(flagged, "producao", {"status": "completed"})
        assert done.detail("producao").delayed is False

    def test_unknown_key_raises(self, sea_state):
        with pytest.raises(InvalidStagePatchError, match="desconhecidos"):
            pipeline.update_stage_details(sea_state, "producao", {"color": "red"})

    def test_unknown_status_raises(self, sea_state):
        with pytest.raises(InvalidStagePatchError, match="Status"):
            pipeline.update_stage_details(sea_state, "producao", {"status": "lost"})

    def test_bad_date_raises(self, sea_state):
        with pytest.raises(InvalidStagePatchError, match="data invalida"):
            pipeline.update_stage_details(sea_state, "producao", {"started_at": "ontem"})

    def test_unknown_stage_raises(self, sea_state):
        with pytest.raises(NotFoundError):
            pipeline.update_stage_details(sea_state, "bogus", {"note": "x"})

    def test_stage_of_other_method_raises(self, sea_state):
        with pytest.raises(NotFoundError):
            pipeline.update_stage_details(sea_state, "transporte_aereo", {"note": "x"})

    def test_input_state_unchanged(self, sea_state):
        pipeline.update_stage_details(sea_state, "producao", {"note": "x"})
        assert sea_state.detail("producao").note is None


class TestShippingMethods:
    @pytest.mark.parametrize("method", list(ShippingMethod))
    def test_full_run_reaches_final(self, method):
        state = pipeline.new_state(method, created_at=T0)
        state = _advance_n(state, 6)
        assert state.current_stage_id == "concluido"
        assert len(state.completed_stage_ids) == 6


class TestNaiveDatetimes:
    def test_date_only_patch_taken_as_brt(self, sea_state):
        patched = pipeline.update_stage_details(sea_state, "producao", {"started_at": "2026-03-05"})
        assert patched.detail("producao").started_at == datetime(2026, 3, 5, tzinfo=BRT)
        statuses = pipeline.stage_statuses(patched, T0 + timedelta(days=30))
        assert statuses["producao"] is StageStatus.DELAYED
        assert pipeline.delayed_stages(patched, T0 + timedelta(days=30)) == [
            "planejamento",
            "producao",
        ]

    def test_naive_created_at_and_now(self):
        naive = datetime(2026, 3, 2, 9, 0)
        state = pipeline.new_state(ShippingMethod.AIR, created_at=naive)
        assert state.created_at == T0
        moved = pipeline.advance(state, naive + timedelta(days=1))
        assert moved.detail("producao").started_at.tzinfo is not None
        assert pipeline.is_delayed(moved, "producao", naive + timedelta(days=20))

    def test_non_mapping_patch_rejected(self, sea_state):
        with pytest.raises(InvalidStagePatchError):
            pipeline.update_stage_details(sea_state, "producao", ["note"])
