"""
Charging simulator tests.
"""
import pytest

from portal.services.simulator import (
    ChargingTime, charging_time, compare_options, find_option, find_version, needed_energy,
    quote_request_summary,
)


class TestChargingTime:
    """Test cases for charging time estimates."""

    def test_needed_energy(self):
        assert needed_energy(50, 20, 80) == pytest.approx(30)

    def test_time_at_wall_box(self):
        # 30 kWh at 7 kW with 90% efficiency: 4.76 h
        assert charging_time(50, 20, 80, 7) == ChargingTime(hours=4, minutes=46)

    def test_minutes_round_up_to_next_hour(self):
        # 8.99 kWh at 10 kW * 0.9: 0.9989 h -> 59.93 min
        assert charging_time(89.9, 0, 10, 10) == ChargingTime(hours=1, minutes=0)

    def test_display(self):
        assert str(ChargingTime(hours=3, minutes=5)) == "3h05"

    @pytest.mark.parametrize("start,end", [(80, 20), (50, 50), (-1, 50), (20, 101)])
    def test_invalid_window(self, start, end):
        with pytest.raises(ValueError):
            charging_time(50, start, end, 7)

    def test_power_must_be_positive(self):
        with pytest.raises(ValueError):
            charging_time(50, 20, 80, 0)


class TestVehicles:
    def test_find_version(self):
        vehicle = find_version("Tesla", "Model 3", "Long Range")

        assert vehicle.battery_capacity == 75
        assert vehicle.charge_capacity == 11

    def test_unknown_version(self):
        assert find_version("Tesla", "Model S", "Plaid") is None

    def test_options_use_nominal_power(self):
        """The vehicle's AC limit does not lower the compared powers."""
        vehicle = find_version("Peugeot", "e-208", "50 kWh")

        rows = compare_options(vehicle, 20, 80)

        assert [row["power"] for row in rows] == [3.7, 7, 22]
        assert rows[2]["time"] == ChargingTime(hours=1, minutes=31)
        assert rows[0]["time"].hours > rows[2]["time"].hours

    def test_quote_request_summary(self):
        vehicle = find_version("Renault", "Zoe", "50 kWh - R135")

        text = quote_request_summary("Renault", "Zoe", vehicle, find_option("Borne murale"))

        assert text == (
            "Simulation pour véhicule Renault Zoe 50 kWh - R135 avec batterie 50 kWh. "
            "Souhaite installer Borne murale (7 kW)."
        )

    def test_unknown_option(self):
        assert find_option("Superchargeur") is None
