"""One-shot device analysis over a loaded snapshot."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from solarverify.carbon.credits import CarbonCreditCalculator, CarbonCreditEstimate
from solarverify.core.config import AnalysisConfig
from solarverify.core.debug import DebugCollector, NullDebugCollector, ScopedDebugCollector
from solarverify.core.models import CarbonStats, PassRates, VerificationStatus
from solarverify.engine.battery_dip import BatteryDipResolver
from solarverify.engine.energy import EnergyIntegrator
from solarverify.engine.envelope import EnvelopeEngine, WindowReport
from solarverify.engine.verification import VerificationAggregator
from solarverify.telemetry.store import SampleStore

DAILY_COLUMNS = [
    "date",
    "sample_count",
    "energy_wh",
    "max_power_w",
    "max_power_hour",
    "has_metric",
    "sinusoidality_pass",
    "negative_noise_pass",
    "no_generation_outside_daylight_pass",
    "dip_hour",
]


@dataclass(frozen=True)
class AnalysisResult:
    device_id: str
    status: VerificationStatus
    pass_rates: PassRates
    daily: pd.DataFrame
    windows: List[WindowReport] = field(default_factory=list)
    carbon_stats: CarbonStats | None = None
    credits: CarbonCreditEstimate | None = None
    device_name: str = ""
    failing_dates: List[str] = field(default_factory=list)
    median_dip_hour: Optional[float] = None
    average_daily_peak_power_w: float = 0.0

    def failing_daily(self) -> pd.DataFrame:
        """Rows of the per-day table whose metric fails any criterion."""
        return self.daily.loc[self.daily["date"].isin(self.failing_dates)].reset_index(drop=True)

    def to_dict(self) -> dict:
        daily = self.daily.astype(object).where(self.daily.notna(), None)
        return {
            "device_id": self.device_id,
            "device_name": self.device_name,
            "status": self.status.value,
            "pass_rates": self.pass_rates.to_dict(),
            "daily": daily.to_dict(orient="records"),
            "windows": [w.to_dict() for w in self.windows],
            "carbon_stats": self.carbon_stats.to_dict() if self.carbon_stats else None,
            "failing_dates": list(self.failing_dates),
            "median_dip_hour": self.median_dip_hour,
            "average_daily_peak_power_w": self.average_daily_peak_power_w,
            "credits": _credits_dict(self.credits),
        }


def _credits_dict(credits: CarbonCreditEstimate | None) -> dict | None:
    if credits is None:
        return None
    return {
        **credits.to_dict(),
        "monthly_projection": credits.monthly_projection(),
        "yearly_projection": credits.yearly_projection(),
    }


def _daily_frame(store: SampleStore, energy: EnergyIntegrator, dips: BatteryDipResolver) -> pd.DataFrame:
    dates = sorted(set(store.all_dates()) | {m.date for m in store.all_metrics()})
    rows = []
    for date in dates:
        summary = energy.day_summary(date)
        metric = summary.metric
        rows.append(
            {
                "date": date,
                "sample_count": summary.sample_count,
                "energy_wh": summary.energy_wh,
                "max_power_w": summary.max_power_w,
                "max_power_hour": summary.max_power_hour,
                "has_metric": metric is not None,
                "sinusoidality_pass": metric.sinusoidality_pass if metric else None,
                "negative_noise_pass": metric.negative_noise_pass if metric else None,
                "no_generation_outside_daylight_pass": (
                    metric.no_generation_outside_daylight_pass if metric else None
                ),
                "dip_hour": dips.dip_hour_for_date(date),
            }
        )
    return pd.DataFrame(rows, columns=DAILY_COLUMNS)


def analyze(
    store: SampleStore,
    config: AnalysisConfig | None = None,
    debug: DebugCollector | None = None,
) -> AnalysisResult:
    """Run every analytics component over ``store`` and bundle the outputs."""

    config = config or AnalysisConfig()
    debug = ScopedDebugCollector(debug or NullDebugCollector(), device=config.device.id)

    verification = VerificationAggregator(store, debug=debug)
    energy = EnergyIntegrator(store, config.energy, debug=debug)
    envelope = EnvelopeEngine(store, config.envelope, debug=debug)
    dips = BatteryDipResolver(store, config.telemetry, debug=debug)

    status = verification.overall_status()
    rates = verification.pass_rates()
    stats = energy.carbon_stats()
    credits = CarbonCreditCalculator(config.carbon, debug=debug).calculate(stats)
    windows = envelope.all_window_reports()
    daily = _daily_frame(store, energy, dips)
    failing = [m.date for m in verification.failing_metrics()]
    median_dip = dips.median_dip_hour()

    debug.emit(
        "analysis.summary",
        {
            "status": status.value,
            "dates": int(len(daily)),
            "windows": len(windows),
            "failing_dates": len(failing),
            "total_energy_mwh": stats.total_energy_mwh,
        },
        ts=store.latest_heartbeat(),
    )
    return AnalysisResult(
        device_id=config.device.id,
        status=status,
        pass_rates=rates,
        daily=daily,
        windows=windows,
        carbon_stats=stats,
        credits=credits,
        device_name=config.device.name,
        failing_dates=failing,
        median_dip_hour=median_dip,
        average_daily_peak_power_w=energy.average_daily_peak_power_w(),
    )


__all__ = ["AnalysisResult", "DAILY_COLUMNS", "analyze"]
