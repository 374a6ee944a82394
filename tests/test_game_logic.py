"""
Game logic unit tests — clock, constants and the error taxonomy, without
hitting the full HTTP stack.

Covers:
  - Simulation clock math (game_now_s, pause/resume, reset)
  - Constants consistency
  - GameActionError status codes and kinds
"""

import math
import time

import pytest


# ── Simulation clock ──────────────────────────────────────────────────────

class TestSimulationClock:
    def test_game_now_returns_number(self):
        from sim_service import game_now_s
        t = game_now_s()
        assert isinstance(t, float)
        assert t > 0

    def test_pause_freezes_time(self):
        from sim_service import game_now_s, set_simulation_paused, simulation_paused
        set_simulation_paused(True)
        assert simulation_paused() is True
        t1 = game_now_s()
        time.sleep(0.05)
        t2 = game_now_s()
        assert t1 == t2, "Game time should not advance while paused"
        set_simulation_paused(False)

    def test_unpause_resumes_time(self):
        from sim_service import game_now_s, set_simulation_paused
        set_simulation_paused(True)
        set_simulation_paused(False)
        t1 = game_now_s()
        time.sleep(0.05)
        t2 = game_now_s()
        assert t2 > t1, "Game time should advance after unpausing"

    def test_reset_tracks_wall_clock(self):
        from sim_service import game_now_s, reset_simulation_clock, set_simulation_paused, simulation_paused
        set_simulation_paused(True)
        reset_simulation_clock()
        assert simulation_paused() is False
        assert abs(game_now_s() - time.time()) < 5

    def test_time_scale_running(self):
        from sim_service import GAME_TIME_SCALE, clock_payload
        assert clock_payload()["time_scale"] == GAME_TIME_SCALE

    def test_clock_payload_reports_pause(self):
        from sim_service import clock_payload, set_simulation_paused
        set_simulation_paused(True)
        payload = clock_payload()
        assert payload["paused"] is True
        assert payload["time_scale"] == 0.0
        assert clock_payload()["server_time"] == payload["server_time"]
        set_simulation_paused(False)

    def test_module_clock_state(self):
        import sim_service
        sim_service.set_simulation_paused(True)
        assert sim_service._SIMULATION_PAUSED is True
        assert sim_service.game_now_s() == sim_service._GAME_TIME_ANCHOR_S
        sim_service.set_simulation_paused(False)
        assert sim_service._SIMULATION_PAUSED is False

    def test_export_import_roundtrip(self):
        from sim_service import export_simulation_state, import_simulation_state, game_now_s
        state = export_simulation_state()
        assert set(state) == {"real_time_anchor_s", "game_time_anchor_s", "paused"}
        t_before = game_now_s()
        import_simulation_state(**state)
        t_after = game_now_s()
        assert abs(t_after - t_before) < 10


# ── Constants ─────────────────────────────────────────────────────────────

class TestConstants:
    def test_item_categories_have_required_fields(self):
        from constants import ITEM_CATEGORIES
        for cat in ITEM_CATEGORIES:
            assert {"id", "name", "kind", "description"} <= set(cat)

    def test_aliases_reference_valid_categories(self):
        from constants import ITEM_CATEGORY_ALIASES, ITEM_CATEGORY_BY_ID
        for alias, target in ITEM_CATEGORY_ALIASES.items():
            assert target in ITEM_CATEGORY_BY_ID, f"Alias {alias} -> unknown {target}"

    def test_rent_cycle_is_twelve_hours(self):
        from constants import RENT_CYCLE_DURATION_S, RENT_CYCLES_PER_DAY
        assert RENT_CYCLE_DURATION_S == 43200
        assert RENT_CYCLES_PER_DAY == 2

    def test_box_thresholds_descending(self):
        from constants import BOX_TIER_THRESHOLDS, ROLLABLE_TIERS
        values = [t for t, _ in BOX_TIER_THRESHOLDS]
        assert values == sorted(values, reverse=True)
        assert all(tier in ROLLABLE_TIERS for _, tier in BOX_TIER_THRESHOLDS)

    def test_fee_schedule_ends_unbounded(self):
        from constants import WITHDRAW_FEE_SCHEDULE
        assert math.isinf(WITHDRAW_FEE_SCHEDULE[-1][0])

    def test_health_decay_rate(self):
        from constants import HEALTH_DECAY_PER_DAY
        assert HEALTH_DECAY_PER_DAY == pytest.approx(3.33, abs=0.01)

    def test_auto_pay_tiers(self):
        from constants import AUTO_PAY_TIERS
        assert AUTO_PAY_TIERS == {"rare", "epic", "legendary"}


# ── Error taxonomy ────────────────────────────────────────────────────────

class TestGameErrors:
    @pytest.mark.parametrize(
        "cls_name, status, kind",
        [
            ("InsufficientBalanceError", 400, "insufficient_balance"),
            ("NotEmptyError", 409, "not_empty"),
            ("InvalidStateError", 400, "invalid_state"),
            ("ItemNotFoundError", 404, "item_not_found"),
            ("CapacityExceededError", 409, "capacity_exceeded"),
            ("DataIntegrityError", 500, "data_integrity"),
        ],
    )
    def test_status_and_kind(self, cls_name, status, kind):
        import game_errors
        cls = getattr(game_errors, cls_name)
        err = cls("boom")
        assert isinstance(err, game_errors.GameActionError)
        assert err.status_code == status
        assert err.kind == kind
        assert err.detail == "boom"

    def test_item_not_found_is_invalid_state(self):
        from game_errors import InvalidStateError, ItemNotFoundError
        assert issubclass(ItemNotFoundError, InvalidStateError)
