"""Battery-dip time-of-day resolution per day and per 7-day window."""
from __future__ import annotations

import datetime as dt
from typing import List, Optional, Sequence

from solarverify.core.config import TelemetryConfig
from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import Window
from solarverify.telemetry.normalizer import local_hour
from solarverify.telemetry.store import DateLike, SampleStore


def dip_local_hour(instant: Optional[dt.datetime], utc_offset_h: float) -> Optional[float]:
    if instant is None:
        return None
    return local_hour(instant, utc_offset_h)


def upper_median(values: Sequence[float]) -> Optional[float]:
    """Element at ``floor(n/2)`` of the sorted values.

    For even counts this is the upper of the two middle values, not their mean.
    """
    if not values:
        return None
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


class BatteryDipResolver:
    def __init__(
        self,
        store: SampleStore,
        telemetry: TelemetryConfig | None = None,
        debug: DebugCollector | None = None,
    ):
        self.store = store
        self.telemetry = telemetry or store.telemetry
        self.debug = debug or NullDebugCollector()

    def dip_hour_for_date(self, date: DateLike) -> Optional[float]:
        metric = self.store.metric_for_date(date)
        if metric is None:
            return None
        return dip_local_hour(metric.detected_battery_dip, self.telemetry.utc_offset_h)

    def dip_hours_for_window(self, start: DateLike, end: DateLike) -> List[float]:
        hours = []
        for metric in self.store.metrics_for_window(start, end):
            hour = dip_local_hour(metric.detected_battery_dip, self.telemetry.utc_offset_h)
            if hour is not None:
                hours.append(hour)
        return sorted(hours)

    def dip_hours(self) -> List[float]:
        """Local dip hours of every metric with a detected dip, ascending."""
        hours = []
        for metric in self.store.all_metrics():
            hour = dip_local_hour(metric.detected_battery_dip, self.telemetry.utc_offset_h)
            if hour is not None:
                hours.append(hour)
        return sorted(hours)

    def median_dip_hour(self) -> Optional[float]:
        """Upper median dip hour over the whole history; ``None`` without dips."""
        hours = self.dip_hours()
        median = upper_median(hours)
        self.debug.emit(
            "battery_dip.overall",
            {"dips": len(hours), "metrics": len(self.store.all_metrics()), "median_hour": median},
            ts=self.store.latest_heartbeat(),
        )
        return median

    def median_dip_hour_for_window(self, start: DateLike | Window, end: DateLike | None = None) -> Optional[float]:
        if isinstance(start, Window):
            start, end = start.start, start.end
        if end is None:
            raise ValueError("end is required when start is not a Window")
        hours = self.dip_hours_for_window(start, end)
        median = upper_median(hours)
        self.debug.emit(
            "battery_dip.window",
            {"dips": len(hours), "median_hour": median},
            ts=start,
            window=f"{start}|{end}",
        )
        return median


__all__ = ["BatteryDipResolver", "dip_local_hour", "upper_median"]
