"""Domain models for solar telemetry verification.

Provides immutable records for heartbeat samples, externally produced daily
verification metrics, 7-day windows and the derived envelope/carbon views.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ValidationError(ValueError):
    """Raised when model inputs violate constraints."""


def _is_date_key(value: str) -> bool:
    """Only the canonical ``YYYY-MM-DD`` form; keys are compared as strings."""
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        dt.datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class Sample:
    """One heartbeat reading with its normalised time fields.

    ``local_hour`` and ``date`` are derived once by the time normalizer and
    carried as-is; nothing downstream recomputes them.
    """

    timestamp: dt.datetime
    mv_in: float
    ma_in: float
    local_hour: float
    date: str

    def __post_init__(self):
        if self.timestamp.tzinfo is None:
            raise ValidationError("Sample timestamp must be timezone-aware (UTC)")
        if not (0.0 <= self.local_hour < 24.0):
            raise ValidationError("local_hour must be in [0, 24)")
        if not _is_date_key(self.date):
            raise ValidationError(f"Sample date must be YYYY-MM-DD, got {self.date!r}")

    @property
    def voltage_v(self) -> float:
        return self.mv_in / 1000.0

    @property
    def current_a(self) -> float:
        return self.ma_in / 1000.0

    @property
    def power_w(self) -> float:
        return self.voltage_v * self.current_a


@dataclass(frozen=True)
class DailyMetric:
    """Per-day verification record produced upstream and consumed read-only.

    Optional numeric fields use ``None`` as the absent marker; ``0.0`` is a
    real measurement.
    """

    date: str
    window_start: str
    window_end: str
    k1: Optional[float] = None
    k2: Optional[float] = None
    detected_battery_dip: Optional[dt.datetime] = None
    sinusoidality_nrmse: Optional[float] = None
    sinusoidality_pass: bool = False
    frac_points_above_model: Optional[float] = None
    negative_noise_pass: bool = False
    fraction_low_power_outside_daylight: Optional[float] = None
    no_generation_outside_daylight_pass: bool = False
    lambda_day: Optional[float] = None

    def __post_init__(self):
        for name in ("date", "window_start", "window_end"):
            value = getattr(self, name)
            if not value:
                raise ValidationError(f"DailyMetric {name} is required")
            if not _is_date_key(value):
                raise ValidationError(f"DailyMetric {name} must be YYYY-MM-DD, got {value!r}")
        if self.window_start > self.window_end:
            raise ValidationError("window_start must not be after window_end")
        if self.detected_battery_dip is not None and self.detected_battery_dip.tzinfo is None:
            raise ValidationError("detected_battery_dip must be timezone-aware (UTC)")

    @property
    def window(self) -> "Window":
        return Window(start=self.window_start, end=self.window_end)

    @property
    def passes_all(self) -> bool:
        return self.sinusoidality_pass and self.negative_noise_pass and self.no_generation_outside_daylight_pass

    @property
    def battery_dip_detected(self) -> bool:
        return self.detected_battery_dip is not None


@dataclass(frozen=True, order=True)
class Window:
    """A 7-day fitting window; ordering is by start then end date."""

    start: str
    end: str

    def __post_init__(self):
        if self.start > self.end:
            raise ValidationError("Window start must not be after end")

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class EnvelopePoint:
    hour: float
    power_w: float

    def to_dict(self) -> dict:
        return {"hour": self.hour, "power_w": self.power_w}


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    NEEDS_REVIEW = "needs-review"


@dataclass(frozen=True)
class PassRates:
    """Percentages (0-100) of daily metrics meeting each criterion."""

    sinusoidality: float = 0.0
    negative_noise: float = 0.0
    no_generation_outside_daylight: float = 0.0
    battery_dip_detected: float = 0.0
    total: int = 0

    def to_dict(self) -> dict:
        return {
            "sinusoidality_pct": self.sinusoidality,
            "negative_noise_pct": self.negative_noise,
            "no_generation_outside_daylight_pct": self.no_generation_outside_daylight,
            "battery_dip_detected_pct": self.battery_dip_detected,
            "total": self.total,
        }


@dataclass(frozen=True)
class CarbonStats:
    """Projection of integrated energy used by the carbon calculator."""

    total_energy_mwh: float
    avg_daily_energy_kwh: float
    operating_days: int
    period_start: Optional[str]
    period_end: Optional[str]
    peak_power_w: float

    def __post_init__(self):
        if self.operating_days < 0:
            raise ValidationError("operating_days must be non-negative")

    def to_dict(self) -> dict:
        return {
            "total_energy_mwh": self.total_energy_mwh,
            "avg_daily_energy_kwh": self.avg_daily_energy_kwh,
            "operating_days": self.operating_days,
            "period_start": self.period_start,
            "period_end": self.period_end,
            "peak_power_w": self.peak_power_w,
        }


__all__ = [
    "ValidationError",
    "Sample",
    "DailyMetric",
    "Window",
    "EnvelopePoint",
    "VerificationStatus",
    "PassRates",
    "CarbonStats",
]
