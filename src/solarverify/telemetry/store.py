"""In-memory snapshot of one device's telemetry and daily metrics.

The store owns the canonical sample frame and metric records for a single
analysis session. Every query returns a fresh object; the snapshot itself is
never mutated after construction, so one store can be shared by concurrent
readers.
"""
from __future__ import annotations

import datetime as dt
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from solarverify.core.config import TelemetryConfig
from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import DailyMetric, Sample, Window
from solarverify.telemetry.normalizer import SAMPLE_COLUMNS, empty_sample_frame, samples_to_frame

DateLike = str | dt.date


def as_date_key(value: DateLike) -> str:
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value)


class SampleStore:
    """Read-only query layer over normalised samples and daily metrics."""

    def __init__(
        self,
        samples: pd.DataFrame | None = None,
        metrics: Iterable[DailyMetric] = (),
        telemetry: TelemetryConfig | None = None,
        debug: DebugCollector | None = None,
    ):
        frame = samples if samples is not None else empty_sample_frame()
        missing = set(SAMPLE_COLUMNS) - set(frame.columns)
        if missing:
            raise ValueError(f"sample frame missing columns: {sorted(missing)}")
        self._samples = frame[SAMPLE_COLUMNS].sort_values("ts", kind="mergesort").reset_index(drop=True).copy()
        self._metrics: Tuple[DailyMetric, ...] = tuple(metrics)
        self.telemetry = telemetry or TelemetryConfig()
        debug = debug or NullDebugCollector()
        debug.emit(
            "store.loaded",
            {
                "samples": int(len(self._samples)),
                "metrics": len(self._metrics),
                "dates": len(self.all_dates()),
                "windows": len(self.distinct_windows()),
            },
            ts=self.latest_heartbeat(),
        )

    @classmethod
    def from_samples(
        cls,
        samples: Sequence[Sample],
        metrics: Iterable[DailyMetric] = (),
        telemetry: TelemetryConfig | None = None,
        debug: DebugCollector | None = None,
    ) -> "SampleStore":
        return cls(samples_to_frame(samples), metrics, telemetry=telemetry, debug=debug)

    # -- samples -----------------------------------------------------------------

    @property
    def sample_count(self) -> int:
        return int(len(self._samples))

    def all_samples(self) -> pd.DataFrame:
        return self._samples.copy()

    def all_dates(self) -> List[str]:
        return sorted(self._samples["date"].unique().tolist())

    def _daylight(self, df: pd.DataFrame) -> pd.DataFrame:
        hours = df["local_hour"]
        mask = (hours >= self.telemetry.daylight_start_h) & (hours <= self.telemetry.daylight_end_h)
        return df.loc[mask]

    def daylight_samples(self) -> pd.DataFrame:
        return self._daylight(self._samples).copy()

    def samples_for_date(self, date: DateLike) -> pd.DataFrame:
        key = as_date_key(date)
        return self._samples.loc[self._samples["date"] == key].copy()

    def daylight_samples_for_date(self, date: DateLike) -> pd.DataFrame:
        return self._daylight(self.samples_for_date(date)).copy()

    def samples_for_range(self, start: DateLike, end: DateLike) -> pd.DataFrame:
        lo, hi = as_date_key(start), as_date_key(end)
        dates = self._samples["date"]
        return self._samples.loc[(dates >= lo) & (dates <= hi)].copy()

    def daylight_samples_for_range(self, start: DateLike, end: DateLike) -> pd.DataFrame:
        return self._daylight(self.samples_for_range(start, end)).copy()

    def latest_heartbeat(self) -> Optional[pd.Timestamp]:
        if self._samples.empty:
            return None
        return self._samples["ts"].max()

    def data_period_range(self) -> Tuple[Optional[str], Optional[str]]:
        dates = self.all_dates()
        if not dates:
            return None, None
        return dates[0], dates[-1]

    # -- metrics -----------------------------------------------------------------

    def all_metrics(self) -> List[DailyMetric]:
        return list(self._metrics)

    def metric_for_date(self, date: DateLike) -> Optional[DailyMetric]:
        key = as_date_key(date)
        for metric in self._metrics:
            if metric.date == key:
                return metric
        return None

    def metrics_for_window(self, start: DateLike, end: DateLike) -> List[DailyMetric]:
        lo, hi = as_date_key(start), as_date_key(end)
        return [m for m in self._metrics if m.window_start == lo and m.window_end == hi]

    def distinct_windows(self) -> List[Window]:
        return sorted({m.window for m in self._metrics})


__all__ = ["SampleStore", "as_date_key"]
