"""
Production engine tests — active power / yield / watt aggregates and the
financial projection.
"""

import pytest

from conftest import T0


class TestAggregates:
    def test_starter_rig(self, fresh_session, helpers):
        from production_service import active_daily_yield, active_power, active_watt_draw
        helpers.build_rig(fresh_session)
        inv = fresh_session.inventory
        assert active_power(inv, T0) == pytest.approx(20.0)
        assert active_daily_yield(inv, T0) == pytest.approx(6.25)
        assert active_watt_draw(inv, T0) == 16

    def test_watt_draw_floors_per_miner(self, fresh_session, helpers):
        from production_service import active_watt_draw
        rig = helpers.build_rig(fresh_session, room_id="room_common", shelf_id="shelf_common", miner_id="gpu_common")
        helpers.add_item(fresh_session, "gpu_common", "miner", parent_uid=rig["shelf"].uid)
        # floor(25 * 0.8) = 20 each, summed after flooring
        assert active_watt_draw(fresh_session.inventory, T0) == 40

    def test_inactive_miners_excluded(self, fresh_session, helpers):
        from production_service import active_daily_yield, active_power
        rig = helpers.build_rig(fresh_session)
        helpers.add_item(fresh_session, "gpu_common", "miner")  # stored
        rig["room"].powered = False
        assert active_power(fresh_session.inventory, T0) == 0.0
        assert active_daily_yield(fresh_session.inventory, T0) == 0.0

    def test_empty_inventory(self, fresh_session):
        from production_service import active_daily_yield, active_power, active_watt_draw
        assert active_power(fresh_session.inventory, T0) == 0.0
        assert active_daily_yield(fresh_session.inventory, T0) == 0.0
        assert active_watt_draw(fresh_session.inventory, T0) == 0

    def test_rent_liability_counts_every_room(self, fresh_session, helpers):
        from production_service import total_rent_liability
        rig = helpers.build_rig(fresh_session)
        helpers.add_item(fresh_session, "room_common", "room")
        rig["room"].powered = False
        assert total_rent_liability(fresh_session.inventory) == pytest.approx(0.60 + 1.50)


class TestFinancialProjection:
    def test_daily_figures(self):
        from production_service import financial_projection
        proj = financial_projection(6.25, 0.60)
        assert proj["daily_gross"] == pytest.approx(6.25)
        assert proj["daily_energy_cost"] == pytest.approx(1.20)
        assert proj["daily_exchange_fee"] == pytest.approx(0.3125)
        assert proj["daily_net"] == pytest.approx(6.25 - 1.20 - 0.3125)
        assert proj["margin"] == pytest.approx(proj["daily_net"] / 6.25)

    def test_periods_scale_linearly(self):
        from production_service import financial_projection
        proj = financial_projection(10.0, 1.0)
        by_id = {p["id"]: p for p in proj["periods"]}
        assert set(by_id) == {"day", "week", "month"}
        assert by_id["week"]["net"] == pytest.approx(proj["daily_net"] * 7)
        assert by_id["month"]["token_produced"] == pytest.approx(300.0)

    def test_zero_yield_has_zero_margin(self):
        from production_service import financial_projection
        proj = financial_projection(0.0, 0.6)
        assert proj["margin"] == 0.0
        assert proj["daily_net"] == pytest.approx(-1.2)

    def test_payload_shape(self, fresh_session, helpers):
        from production_service import build_production_payload
        helpers.build_rig(fresh_session)
        payload = build_production_payload(fresh_session.inventory, T0)
        assert payload["active_miner_count"] == 1
        assert payload["rent_liability_per_cycle"] == pytest.approx(0.60)
        assert payload["projection"]["daily_yield"] == pytest.approx(6.25)
