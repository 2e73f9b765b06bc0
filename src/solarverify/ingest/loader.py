"""CSV/JSON ingestion into normalised samples and typed daily metrics.

Raw cells are resolved here: ``""``/``"nan"`` become ``None`` and booleans
accept ``"true"``/``"1"`` case-insensitively. Nothing past this module sees
raw strings.
"""
from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import DailyMetric, ValidationError
from solarverify.telemetry.normalizer import MalformedTimestamp, normalize_frame, parse_instant


class IngestError(ValueError):
    """Raised when an input file cannot be read into records."""


SAMPLE_REQUIRED = {"heartbeat_ts", "mv_in", "ma_in"}
METRIC_REQUIRED = {"date", "window_start", "window_end"}

# export column name -> DailyMetric field
METRIC_ALIASES = {
    "k1_window": "k1",
    "k2_window": "k2",
    "sinusoidality_pass_<=30pct": "sinusoidality_pass",
    "frac_points_obs_gt_model_plus_5pct": "frac_points_above_model",
    "negative_noise_pass_<=5pct_violations": "negative_noise_pass",
    "no_generation_outside_daylight_pass_>=95pct": "no_generation_outside_daylight_pass",
}
_FLOAT_FIELDS = (
    "k1",
    "k2",
    "sinusoidality_nrmse",
    "frac_points_above_model",
    "fraction_low_power_outside_daylight",
    "lambda_day",
)
_BOOL_FIELDS = ("sinusoidality_pass", "negative_noise_pass", "no_generation_outside_daylight_pass")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and value.strip().lower() in {"", "nan"}:
        return True
    return False


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if _is_blank(value):
        return False
    return str(value).strip().lower() in {"true", "1"}


def parse_optional_float(value: Any) -> Optional[float]:
    if _is_blank(value):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(parsed) else parsed


def parse_optional_str(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


def _read_table(path: str | Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise IngestError(f"Input file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    if suffix == ".json":
        try:
            records = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise IngestError(f"Could not parse {path}: {exc}") from exc
        if not isinstance(records, list):
            raise IngestError(f"{path} must contain a JSON array of records")
        return pd.DataFrame.from_records(records)
    raise IngestError(f"Unsupported input extension: {path.suffix}")


def _require(df: pd.DataFrame, required: set, path: str | Path) -> None:
    missing = required - set(df.columns)
    if missing:
        raise IngestError(f"{path} is missing columns: {sorted(missing)}")


def load_samples(
    path: str | Path,
    utc_offset_h: float = -6.0,
    debug: DebugCollector | None = None,
) -> pd.DataFrame:
    """Read heartbeat records and return the canonical normalised sample frame."""
    raw = _read_table(path)
    if raw.empty:
        return normalize_frame(pd.DataFrame(columns=sorted(SAMPLE_REQUIRED)), utc_offset_h, debug)
    _require(raw, SAMPLE_REQUIRED, path)
    return normalize_frame(raw, utc_offset_h, debug)


def metric_from_row(row: Dict[str, Any]) -> DailyMetric:
    """Build a DailyMetric from one raw row; raises ValidationError on bad keys/dates."""
    data = {METRIC_ALIASES.get(k, k): v for k, v in row.items()}
    dip_raw = parse_optional_str(data.get("detected_battery_dip"))
    dip = None
    if dip_raw is not None:
        try:
            dip = parse_instant(dip_raw).to_pydatetime()
        except MalformedTimestamp:
            dip = None
    kwargs: Dict[str, Any] = {
        "date": parse_optional_str(data.get("date")) or "",
        "window_start": parse_optional_str(data.get("window_start")) or "",
        "window_end": parse_optional_str(data.get("window_end")) or "",
        "detected_battery_dip": dip,
    }
    for name in _FLOAT_FIELDS:
        kwargs[name] = parse_optional_float(data.get(name))
    for name in _BOOL_FIELDS:
        kwargs[name] = parse_bool(data.get(name))
    return DailyMetric(**kwargs)


def load_daily_metrics(path: str | Path, debug: DebugCollector | None = None) -> List[DailyMetric]:
    debug = debug or NullDebugCollector()
    raw = _read_table(path)
    if raw.empty:
        debug.emit("ingest.metrics", {"rows_in": 0, "rows_out": 0, "dropped": 0}, ts=None)
        return []
    _require(raw, METRIC_REQUIRED, path)

    metrics: List[DailyMetric] = []
    errors: List[str] = []
    for record in raw.to_dict(orient="records"):
        try:
            metrics.append(metric_from_row(record))
        except ValidationError as exc:
            errors.append(str(exc))
    debug.emit(
        "ingest.metrics",
        {
            "rows_in": int(len(raw)),
            "rows_out": len(metrics),
            "dropped": len(errors),
            "errors": errors[:10],
        },
        ts=metrics[0].date if metrics else None,
    )
    return metrics


__all__ = [
    "IngestError",
    "METRIC_ALIASES",
    "load_daily_metrics",
    "load_samples",
    "metric_from_row",
    "parse_bool",
    "parse_optional_float",
    "parse_optional_str",
]
