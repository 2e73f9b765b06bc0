"""7-day max-power envelope, half-sine clear-sky fit and peak filtering.

The envelope is the per-bin maximum of daylight power across a window; the
fit is the idealised generation curve described by the window's upstream
coefficients ``k1`` (amplitude, W) and ``k2`` (phase shift, h):

    power(h) = max(0, k1 * sin((h - 6 - k2) * pi / 12))

Peaks are strict interior local maxima of the envelope at or above a power
threshold.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from solarverify.core.config import EnvelopeConfig
from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import DailyMetric, EnvelopePoint, PassRates, Window
from solarverify.engine.battery_dip import BatteryDipResolver
from solarverify.engine.verification import pass_rates
from solarverify.telemetry.store import SampleStore

# Hour labels are rounded to this many decimals to keep the 0.1 h grid exact.
_HOUR_DECIMALS = 10

PointLike = EnvelopePoint | Tuple[float, float]


def build_envelope(samples: pd.DataFrame, bin_width_h: float = 0.1) -> List[EnvelopePoint]:
    """Bin ``local_hour`` to the nearest ``bin_width_h`` and keep the max power per bin.

    Halves round up (``6.05`` lands in the ``6.1`` bin). Bins without samples
    produce no point.
    """

    if samples is None or samples.empty:
        return []
    scale = 1.0 / bin_width_h
    bin_idx = np.floor(samples["local_hour"].to_numpy(dtype=float) * scale + 0.5).astype(np.int64)
    peaks = pd.Series(samples["power_w"].to_numpy(dtype=float)).groupby(bin_idx).max().sort_index()
    return [
        EnvelopePoint(hour=round(int(idx) * bin_width_h, _HOUR_DECIMALS), power_w=float(power))
        for idx, power in peaks.items()
    ]


def half_sine_power(hour: float, k1: float, k2: float) -> float:
    return max(0.0, k1 * math.sin((hour - 6.0 - k2) * math.pi / 12.0))


def half_sine_fit(
    k1: float,
    k2: float,
    start_h: float = 6.0,
    end_h: float = 18.0,
    step_h: float = 0.1,
) -> List[EnvelopePoint]:
    """Dense fit curve from ``start_h`` to ``end_h`` inclusive in ``step_h`` steps."""

    if step_h <= 0:
        raise ValueError("step_h must be positive")
    if end_h < start_h:
        return []
    # tolerate float accumulation so the end hour is always included
    steps = int(math.floor((end_h - start_h) / step_h + 1e-9)) + 1
    points = []
    for i in range(steps):
        hour = round(start_h + i * step_h, _HOUR_DECIMALS)
        points.append(EnvelopePoint(hour=hour, power_w=half_sine_power(hour, k1, k2)))
    return points


def _as_point(item: PointLike) -> EnvelopePoint:
    if isinstance(item, EnvelopePoint):
        return item
    hour, power = item
    return EnvelopePoint(hour=float(hour), power_w=float(power))


def find_filtered_peaks(points: Iterable[PointLike], threshold_w: float = 250.0) -> List[EnvelopePoint]:
    """Interior points strictly above both neighbours and at or above ``threshold_w``.

    Ties with either neighbour disqualify a point; endpoints never qualify.
    """

    seq = [_as_point(p) for p in points]
    peaks = []
    for i in range(1, len(seq) - 1):
        prev, curr, nxt = seq[i - 1], seq[i], seq[i + 1]
        if curr.power_w > prev.power_w and curr.power_w > nxt.power_w and curr.power_w >= threshold_w:
            peaks.append(curr)
    return peaks


def window_coefficients(metrics: Sequence[DailyMetric]) -> Tuple[float, float]:
    """k1/k2 of the first record in the window; absent values count as 0.

    The upstream fit is per window, so every record carries the same pair and
    no averaging is done.
    """
    if not metrics:
        return 0.0, 0.0
    first = metrics[0]
    return (first.k1 or 0.0), (first.k2 or 0.0)


@dataclass(frozen=True)
class WindowReport:
    window: Window
    k1: float
    k2: float
    days_in_window: int
    envelope: List[EnvelopePoint] = field(default_factory=list)
    fit: List[EnvelopePoint] = field(default_factory=list)
    peaks: List[EnvelopePoint] = field(default_factory=list)
    median_dip_hour: Optional[float] = None
    pass_rates: PassRates = field(default_factory=PassRates)

    def to_dict(self) -> dict:
        return {
            "window_start": self.window.start,
            "window_end": self.window.end,
            "k1": self.k1,
            "k2": self.k2,
            "days_in_window": self.days_in_window,
            "envelope": [p.to_dict() for p in self.envelope],
            "fit": [p.to_dict() for p in self.fit],
            "peaks": [p.to_dict() for p in self.peaks],
            "median_dip_hour": self.median_dip_hour,
            "pass_rates": self.pass_rates.to_dict(),
        }


class EnvelopeEngine:
    def __init__(
        self,
        store: SampleStore,
        config: EnvelopeConfig | None = None,
        debug: DebugCollector | None = None,
    ):
        self.store = store
        self.config = config or EnvelopeConfig()
        self.debug = debug or NullDebugCollector()
        self.dips = BatteryDipResolver(store, debug=self.debug)

    def envelope_for_window(self, window: Window) -> List[EnvelopePoint]:
        samples = self.store.daylight_samples_for_range(window.start, window.end)
        envelope = build_envelope(samples, self.config.bin_width_h)
        self.debug.emit(
            "envelope.summary",
            {
                "samples": int(len(samples)),
                "bins": len(envelope),
                "max_power_w": max((p.power_w for p in envelope), default=None),
            },
            ts=window.start,
            window=f"{window.start}|{window.end}",
        )
        return envelope

    def fit_for_window(self, window: Window) -> List[EnvelopePoint]:
        k1, k2 = window_coefficients(self.store.metrics_for_window(window.start, window.end))
        cfg = self.config
        return half_sine_fit(k1, k2, cfg.fit_start_h, cfg.fit_end_h, cfg.fit_step_h)

    def peaks_for_window(self, window: Window, threshold_w: float | None = None) -> List[EnvelopePoint]:
        threshold = self.config.peak_threshold_w if threshold_w is None else threshold_w
        peaks = find_filtered_peaks(self.envelope_for_window(window), threshold)
        self.debug.emit(
            "peaks.summary",
            {"threshold_w": float(threshold), "peaks": len(peaks)},
            ts=window.start,
            window=f"{window.start}|{window.end}",
        )
        return peaks

    def window_report(self, window: Window, threshold_w: float | None = None) -> WindowReport:
        metrics = self.store.metrics_for_window(window.start, window.end)
        k1, k2 = window_coefficients(metrics)
        cfg = self.config
        threshold = cfg.peak_threshold_w if threshold_w is None else threshold_w
        envelope = self.envelope_for_window(window)
        return WindowReport(
            window=window,
            k1=k1,
            k2=k2,
            days_in_window=len(metrics),
            envelope=envelope,
            fit=half_sine_fit(k1, k2, cfg.fit_start_h, cfg.fit_end_h, cfg.fit_step_h),
            peaks=find_filtered_peaks(envelope, threshold),
            median_dip_hour=self.dips.median_dip_hour_for_window(window),
            pass_rates=pass_rates(metrics),
        )

    def all_window_reports(self, threshold_w: float | None = None) -> List[WindowReport]:
        return [self.window_report(w, threshold_w) for w in self.store.distinct_windows()]


__all__ = [
    "EnvelopeEngine",
    "WindowReport",
    "build_envelope",
    "find_filtered_peaks",
    "half_sine_fit",
    "half_sine_power",
    "window_coefficients",
]
