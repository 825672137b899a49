from dataclasses import dataclass
from typing import List


# Relative share of annual rainfall per month (Jan..Dec), peaking with the
# south-west monsoon. Only the ratios matter.
MONSOON_WEIGHTS = (5, 8, 12, 35, 70, 140, 180, 170, 140, 80, 30, 10)
MONTHS_SHORT = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True)
class MonthlyRainfall:
    month: str
    rainfall: float


def distribute_annual_to_months(annual: float) -> List[MonthlyRainfall]:
    """Split an annual rainfall figure across the twelve months."""
    total = sum(MONSOON_WEIGHTS)
    return [
        MonthlyRainfall(month=month, rainfall=annual * (weight / total))
        for month, weight in zip(MONTHS_SHORT, MONSOON_WEIGHTS)
    ]
