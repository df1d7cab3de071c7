"""
Carbon credit reward calculation.

Distance driven on an electric vehicle is converted to kg of CO2 saved using
a per-vehicle emission factor, then to carbon credits (1 credit per tonne)
and finally to a rupee reward at a fixed rate per credit.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple
import logging

logger = logging.getLogger(__name__)

# kg CO2 saved per km
EMISSION_FACTORS = {
    "E-Rickshaw": Decimal("0.05"),
    "EV Bike": Decimal("0.06"),
    "EV Car": Decimal("0.12"),
}
VEHICLE_TYPES = tuple(EMISSION_FACTORS)
DEFAULT_EMISSION_FACTOR = Decimal("0.05")

KG_PER_CREDIT = Decimal("1000")
INR_PER_CREDIT = Decimal("1500")

CARBON_SAVED_PLACES = Decimal("0.001")
CREDIT_PLACES = Decimal("0.000001")
INR_PLACES = Decimal("0.01")


class RewardBreakdown(NamedTuple):
    carbon_saved_kg: Decimal
    carbon_credits: Decimal
    reward_inr: Decimal


def emission_factor(vehicle_type: str) -> Decimal:
    factor = EMISSION_FACTORS.get(vehicle_type)
    if factor is None:
        logger.warning("Unknown vehicle type %r, using default emission factor %s",
                       vehicle_type, DEFAULT_EMISSION_FACTOR)
        return DEFAULT_EMISSION_FACTOR
    return factor


def quantize(value: Decimal, places: Decimal) -> Decimal:
    return value.quantize(places, rounding=ROUND_HALF_UP)


def compute_reward(distance_km: int, vehicle_type: str) -> RewardBreakdown:
    """
    Compute carbon saved, carbon credits and reward for a distance.

    Each figure is derived from the exact value of the previous one and
    only then rounded, to 3, 6 and 2 decimal places respectively.
    """
    carbon_saved = Decimal(distance_km) * emission_factor(vehicle_type)
    credits = carbon_saved / KG_PER_CREDIT
    reward = credits * INR_PER_CREDIT

    return RewardBreakdown(
        carbon_saved_kg=quantize(carbon_saved, CARBON_SAVED_PLACES),
        carbon_credits=quantize(credits, CREDIT_PLACES),
        reward_inr=quantize(reward, INR_PLACES),
    )
