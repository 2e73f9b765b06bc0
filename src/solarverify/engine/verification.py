"""Corpus-wide verification status and pass-rate aggregation.

The overall status is a strict gate: one failing day anywhere in the history
flips the device to ``needs-review``. There is no tolerance threshold.
"""
from __future__ import annotations

from typing import Iterable, List

from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import DailyMetric, PassRates, VerificationStatus, Window
from solarverify.telemetry.store import DateLike, SampleStore


def _pct(count: int, total: int) -> float:
    return count / total * 100.0 if total else 0.0


def overall_status(metrics: Iterable[DailyMetric]) -> VerificationStatus:
    """``verified`` iff every metric passes all three criteria (vacuously true when empty)."""
    if all(m.passes_all for m in metrics):
        return VerificationStatus.VERIFIED
    return VerificationStatus.NEEDS_REVIEW


def pass_rates(metrics: Iterable[DailyMetric]) -> PassRates:
    metrics = list(metrics)
    total = len(metrics)
    return PassRates(
        sinusoidality=_pct(sum(1 for m in metrics if m.sinusoidality_pass), total),
        negative_noise=_pct(sum(1 for m in metrics if m.negative_noise_pass), total),
        no_generation_outside_daylight=_pct(
            sum(1 for m in metrics if m.no_generation_outside_daylight_pass), total
        ),
        battery_dip_detected=_pct(sum(1 for m in metrics if m.battery_dip_detected), total),
        total=total,
    )


def failing_metrics(metrics: Iterable[DailyMetric]) -> List[DailyMetric]:
    return [m for m in metrics if not m.passes_all]


class VerificationAggregator:
    def __init__(self, store: SampleStore, debug: DebugCollector | None = None):
        self.store = store
        self.debug = debug or NullDebugCollector()

    def overall_status(self) -> VerificationStatus:
        return overall_status(self.store.all_metrics())

    def pass_rates(self) -> PassRates:
        rates = pass_rates(self.store.all_metrics())
        self.debug.emit(
            "verification.summary",
            {"status": self.overall_status().value, **rates.to_dict()},
            ts=self.store.latest_heartbeat(),
        )
        return rates

    def failing_metrics(self) -> List[DailyMetric]:
        return failing_metrics(self.store.all_metrics())

    def window_pass_rates(self, start: DateLike | Window, end: DateLike | None = None) -> PassRates:
        if isinstance(start, Window):
            start, end = start.start, start.end
        if end is None:
            raise ValueError("end is required when start is not a Window")
        return pass_rates(self.store.metrics_for_window(start, end))


__all__ = [
    "VerificationAggregator",
    "failing_metrics",
    "overall_status",
    "pass_rates",
]
