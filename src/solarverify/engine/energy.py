"""Trapezoidal energy integration over daylight samples.

Consecutive samples further apart than ``max_gap_h`` are treated as a data
gap: the interval contributes nothing, with no interpolation across it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd

from solarverify.core.config import EnergyConfig
from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import CarbonStats, DailyMetric
from solarverify.telemetry.store import DateLike, SampleStore, as_date_key


def integrate_trapezoid(ts: pd.Series, power_w: pd.Series, max_gap_h: float = 0.5) -> float:
    """Energy in Wh of ``power_w`` over ``ts`` (aligned Series), skipping gaps.

    Samples are ordered by instant with a stable sort before pairing.
    """

    ts = pd.Series(ts)
    power_w = pd.Series(power_w)
    if len(ts) < 2:
        return 0.0
    if len(ts) != len(power_w):
        raise ValueError("ts and power_w must have the same length")
    frame = pd.DataFrame(
        {
            "ts": pd.to_datetime(ts, utc=True).to_numpy(),
            "p": power_w.to_numpy(dtype=float),
        }
    )
    frame = frame.sort_values("ts", kind="mergesort")
    times = frame["ts"]
    power = frame["p"].to_numpy()
    dt_h = (times.diff().dt.total_seconds().to_numpy()[1:]) / 3600.0
    avg_w = (power[:-1] + power[1:]) / 2.0
    keep = dt_h <= max_gap_h
    return float(np.sum(avg_w[keep] * dt_h[keep]))


@dataclass(frozen=True)
class DaySummary:
    date: str
    sample_count: int
    max_power_w: float
    max_power_hour: Optional[float]
    energy_wh: float
    metric: Optional[DailyMetric] = None

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "sample_count": self.sample_count,
            "max_power_w": self.max_power_w,
            "max_power_hour": self.max_power_hour,
            "energy_wh": self.energy_wh,
            "has_metric": self.metric is not None,
        }


class EnergyIntegrator:
    def __init__(
        self,
        store: SampleStore,
        config: EnergyConfig | None = None,
        debug: DebugCollector | None = None,
    ):
        self.store = store
        self.config = config or EnergyConfig()
        self.debug = debug or NullDebugCollector()

    def _integrate(self, samples: pd.DataFrame) -> float:
        if samples.empty:
            return 0.0
        return integrate_trapezoid(samples["ts"], samples["power_w"], self.config.max_gap_h)

    def energy_for_range(self, start: DateLike, end: DateLike) -> float:
        samples = self.store.daylight_samples_for_range(start, end)
        energy_wh = self._integrate(samples)
        self.debug.emit(
            "energy.range",
            {
                "start": as_date_key(start),
                "end": as_date_key(end),
                "samples": int(len(samples)),
                "energy_wh": energy_wh,
            },
            ts=as_date_key(start),
        )
        return energy_wh

    def energy_for_date(self, date: DateLike) -> float:
        return self._integrate(self.store.daylight_samples_for_date(date))

    def daily_energy(self) -> Dict[str, float]:
        """Wh per date for every date in the snapshot, ascending."""
        daylight = self.store.daylight_samples()
        energies = {date: 0.0 for date in self.store.all_dates()}
        for date, group in daylight.groupby("date", sort=True):
            energies[date] = self._integrate(group)
        self.debug.emit(
            "energy.daily",
            {
                "dates": len(energies),
                "operating_days": sum(1 for v in energies.values() if v > 0),
                "total_wh": float(sum(energies.values())),
            },
            ts=next(iter(energies), None),
        )
        return energies

    def total_energy_mwh(self) -> float:
        start, end = self.store.data_period_range()
        if start is None:
            return 0.0
        return self.energy_for_range(start, end) / 1e6

    def avg_daily_energy_kwh(self) -> float:
        """Mean kWh over days with positive energy; zero-energy days are left out."""
        positive = [wh for wh in self.daily_energy().values() if wh > 0]
        if not positive:
            return 0.0
        return sum(positive) / len(positive) / 1000.0

    def operating_days(self) -> int:
        return sum(1 for wh in self.daily_energy().values() if wh > 0)

    def peak_power_w(self) -> float:
        daylight = self.store.daylight_samples()
        if daylight.empty:
            return 0.0
        return float(daylight["power_w"].max())

    def average_daily_peak_power_w(self) -> float:
        daylight = self.store.daylight_samples()
        if daylight.empty:
            return 0.0
        return float(daylight.groupby("date")["power_w"].max().mean())

    def day_summary(self, date: DateLike) -> DaySummary:
        key = as_date_key(date)
        samples = self.store.daylight_samples_for_date(key)
        if samples.empty:
            max_power, max_hour = 0.0, None
        else:
            # first sample reaching the max, in time order
            pos = int(samples["power_w"].to_numpy().argmax())
            max_power = float(samples["power_w"].iloc[pos])
            max_hour = float(samples["local_hour"].iloc[pos])
        return DaySummary(
            date=key,
            sample_count=int(len(samples)),
            max_power_w=max_power,
            max_power_hour=max_hour,
            energy_wh=self._integrate(samples),
            metric=self.store.metric_for_date(key),
        )

    def carbon_stats(self) -> CarbonStats:
        daily = self.daily_energy()
        positive = [wh for wh in daily.values() if wh > 0]
        start, end = self.store.data_period_range()
        return CarbonStats(
            total_energy_mwh=self.total_energy_mwh(),
            avg_daily_energy_kwh=(sum(positive) / len(positive) / 1000.0) if positive else 0.0,
            operating_days=len(positive),
            period_start=start,
            period_end=end,
            peak_power_w=self.peak_power_w(),
        )


__all__ = ["DaySummary", "EnergyIntegrator", "integrate_trapezoid"]
