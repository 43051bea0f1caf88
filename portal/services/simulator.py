"""
Charging-time simulator for the public estimator page.

Given a vehicle version and a battery window, estimates how long each home
charging option takes. The result also prefills the public quote request.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

CHARGING_EFFICIENCY = 0.9


@dataclass(frozen=True)
class VehicleVersion:
    version: str
    battery_capacity: float  # kWh
    charge_capacity: float  # kW, maximum AC power accepted


@dataclass(frozen=True)
class ChargingOption:
    type: str
    power: float  # kW


@dataclass(frozen=True)
class ChargingTime:
    hours: int
    minutes: int

    def __str__(self):
        return f"{self.hours}h{self.minutes:02d}"


CHARGING_OPTIONS: List[ChargingOption] = [
    ChargingOption("Prise renforcée", 3.7),
    ChargingOption("Borne murale", 7),
    ChargingOption("Borne rapide", 22),
]

VEHICLES: Dict[str, Dict[str, List[VehicleVersion]]] = {
    "Renault": {
        "Zoe": [
            VehicleVersion("50 kWh - R135", 50, 22),
            VehicleVersion("50 kWh - R110", 50, 22),
            VehicleVersion("40 kWh - R110", 40, 22),
        ],
        "Megane": [
            VehicleVersion("60 kWh - EV40", 60, 22),
            VehicleVersion("40 kWh - EV60", 40, 22),
        ],
    },
    "Tesla": {
        "Model 3": [
            VehicleVersion("Standard Range Plus", 50, 11),
            VehicleVersion("Long Range", 75, 11),
            VehicleVersion("Performance", 75, 11),
        ],
    },
    "Peugeot": {
        "e-208": [VehicleVersion("50 kWh", 50, 11)],
        "e-2008": [VehicleVersion("50 kWh", 50, 11)],
    },
    "Volkswagen": {
        "ID.3": [
            VehicleVersion("Pure - 45 kWh", 45, 11),
            VehicleVersion("Pro - 58 kWh", 58, 11),
            VehicleVersion("Pro S - 77 kWh", 77, 11),
        ],
        "ID.4": [
            VehicleVersion("Pure - 52 kWh", 52, 11),
            VehicleVersion("Pro - 77 kWh", 77, 11),
        ],
    },
}

SAVINGS_INFO = [
    {"title": "Économisez par an", "description": "Réduction de vos dépenses en carburant", "value": "1200€"},
    {"title": "Achat amorti", "description": "Retour sur investissement", "value": "3 ans"},
    {"title": "Rechargez en moins", "description": "Temps de recharge optimisé", "value": "30 min"},
    {"title": "Coût par recharge", "description": "Prix moyen d'une recharge complète", "value": "8€"},
]


def find_version(brand: str, model: str, version: str) -> Optional[VehicleVersion]:
    for candidate in VEHICLES.get(brand, {}).get(model, []):
        if candidate.version == version:
            return candidate
    return None


def needed_energy(battery_capacity: float, start_pct: float, end_pct: float) -> float:
    """Energy in kWh to go from start_pct to end_pct of the battery."""
    if not 0 <= start_pct < end_pct <= 100:
        raise ValueError("Battery levels must satisfy 0 <= start < end <= 100")
    return battery_capacity * (end_pct - start_pct) / 100


# PUBLIC_INTERFACE
def charging_time(battery_capacity: float, start_pct: float, end_pct: float, power: float) -> ChargingTime:
    """
    Estimate the time needed to charge a battery window at a given power.

    Args:
        battery_capacity: Battery capacity in kWh
        start_pct: Battery level before charging, in percent
        end_pct: Battery level targeted, in percent
        power: Charging power in kW

    Returns:
        ChargingTime: Whole hours and rounded minutes
    """
    if power <= 0:
        raise ValueError("Charging power must be positive")
    hours = needed_energy(battery_capacity, start_pct, end_pct) / (power * CHARGING_EFFICIENCY)
    whole = math.floor(hours)
    minutes = round((hours - whole) * 60)
    if minutes == 60:
        whole, minutes = whole + 1, 0
    return ChargingTime(hours=whole, minutes=minutes)


def compare_options(vehicle: VehicleVersion, start_pct: float, end_pct: float) -> List[Dict[str, object]]:
    """
    Charging time for every option at the option's nominal power.

    The vehicle's own AC limit is shown beside the table and does not
    lower the power used here.
    """
    rows = []
    for option in CHARGING_OPTIONS:
        rows.append({
            "type": option.type,
            "power": option.power,
            "time": charging_time(vehicle.battery_capacity, start_pct, end_pct, option.power),
        })
    return rows


def find_option(option_type: str) -> Optional[ChargingOption]:
    for option in CHARGING_OPTIONS:
        if option.type == option_type:
            return option
    return None


def quote_request_summary(brand: str, model: str, vehicle: VehicleVersion, option: Optional[ChargingOption] = None) -> str:
    """Description used to prefill the quote request after a simulation."""
    text = f"Simulation pour véhicule {brand} {model} {vehicle.version} avec batterie {vehicle.battery_capacity:g} kWh"
    if option is not None:
        text += f". Souhaite installer {option.type} ({option.power:g} kW)."
    return text
