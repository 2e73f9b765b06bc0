"""Emission-reduction and carbon-credit estimate (AMS-I.F style).

    ER = BE - PE - LE,  BE = E_MWh * EF

Annual figures extrapolate the average operating-day energy over a full year;
the crediting period multiplies the annual figures. No rounding happens here.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import List

from solarverify.core.config import CarbonConfig
from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import CarbonStats

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


@dataclass(frozen=True)
class CarbonCreditEstimate:
    baseline_emissions_t: float
    emission_reductions_t: float
    annual_energy_mwh: float
    annual_reductions_t: float
    annual_value_usd: float
    period_reductions_t: float
    period_value_usd: float
    crediting_period_years: int

    def monthly_projection(self) -> List[dict]:
        return [
            {
                "month": month,
                "energy_mwh": self.annual_energy_mwh / 12.0,
                "reductions_t": self.annual_reductions_t / 12.0,
                "value_usd": self.annual_value_usd / 12.0,
            }
            for month in _MONTHS
        ]

    def yearly_projection(self) -> List[dict]:
        return [
            {
                "year": year,
                "cumulative_reductions_t": self.annual_reductions_t * year,
                "cumulative_value_usd": self.annual_value_usd * year,
            }
            for year in range(1, self.crediting_period_years + 1)
        ]

    def to_dict(self) -> dict:
        return asdict(self)


def estimate_credits(
    stats: CarbonStats,
    config: CarbonConfig | None = None,
    debug: DebugCollector | None = None,
) -> CarbonCreditEstimate:
    cfg = config or CarbonConfig()
    debug = debug or NullDebugCollector()

    baseline = stats.total_energy_mwh * cfg.emission_factor_t_per_mwh
    reductions = baseline - cfg.project_emissions_t - cfg.leakage_emissions_t
    annual_energy_mwh = (stats.avg_daily_energy_kwh / 1000.0) * cfg.days_per_year
    annual_reductions = annual_energy_mwh * cfg.emission_factor_t_per_mwh
    annual_value = annual_reductions * cfg.carbon_price_usd_per_t
    period_reductions = annual_reductions * cfg.crediting_period_years
    period_value = period_reductions * cfg.carbon_price_usd_per_t

    estimate = CarbonCreditEstimate(
        baseline_emissions_t=baseline,
        emission_reductions_t=reductions,
        annual_energy_mwh=annual_energy_mwh,
        annual_reductions_t=annual_reductions,
        annual_value_usd=annual_value,
        period_reductions_t=period_reductions,
        period_value_usd=period_value,
        crediting_period_years=cfg.crediting_period_years,
    )
    debug.emit(
        "carbon.estimate",
        {"inputs": stats.to_dict(), "estimate": estimate.to_dict()},
        ts=stats.period_end,
    )
    return estimate


class CarbonCreditCalculator:
    """Holds the emission constants for one deployment."""

    def __init__(self, config: CarbonConfig | None = None, debug: DebugCollector | None = None):
        self.config = config or CarbonConfig()
        self.debug = debug or NullDebugCollector()

    def calculate(self, stats: CarbonStats) -> CarbonCreditEstimate:
        return estimate_credits(stats, self.config, self.debug)


__all__ = ["CarbonCreditCalculator", "CarbonCreditEstimate", "estimate_credits"]
