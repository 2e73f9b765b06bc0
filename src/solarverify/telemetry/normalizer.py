"""Timestamp normalisation for heartbeat telemetry.

Every sample gets a UTC instant, a local time-of-day fraction and a calendar
date key. The date key is taken from the UTC fields, not the offset-shifted
ones, so samples near local midnight keep the same day assignment as the
upstream verification metrics.
"""
from __future__ import annotations

import datetime as dt
from typing import Any

import numpy as np
import pandas as pd

from solarverify.core.debug import DebugCollector, NullDebugCollector
from solarverify.core.models import Sample

SAMPLE_COLUMNS = [
    "ts",
    "heartbeat_ts",
    "mv_in",
    "ma_in",
    "voltage_v",
    "current_a",
    "power_w",
    "local_hour",
    "date",
]


class MalformedTimestamp(ValueError):
    """Raised when a value cannot be parsed as a UTC instant."""


def parse_instant(raw: Any) -> pd.Timestamp:
    """Parse ``"YYYY-MM-DD HH:MM:SS UTC"``, ISO strings or datetimes into a UTC Timestamp.

    Naive values are taken to be UTC already; aware values are converted.
    """

    if raw is None:
        raise MalformedTimestamp("timestamp is missing")
    if isinstance(raw, str):
        text = raw.strip()
        if text.upper().endswith("UTC"):
            text = text[:-3].strip()
        if not text or text.lower() == "nan":
            raise MalformedTimestamp(f"timestamp is empty: {raw!r}")
        value: Any = text
    else:
        value = raw
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedTimestamp(f"cannot parse timestamp {raw!r}") from exc
    if pd.isna(ts):
        raise MalformedTimestamp(f"cannot parse timestamp {raw!r}")
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def local_hour(ts: dt.datetime, utc_offset_h: float) -> float:
    """Local hour-of-day in [0, 24) from the UTC clock fields plus a fixed offset."""
    utc = pd.Timestamp(ts)
    if utc.tzinfo is not None:
        utc = utc.tz_convert("UTC")
    return (utc.hour + utc.minute / 60.0 + utc.second / 3600.0 + utc_offset_h + 24.0) % 24.0


def date_key(ts: dt.datetime) -> str:
    """UTC calendar date of ``ts`` as ``YYYY-MM-DD``."""
    utc = pd.Timestamp(ts)
    if utc.tzinfo is not None:
        utc = utc.tz_convert("UTC")
    return utc.strftime("%Y-%m-%d")


def normalize_sample(heartbeat_ts: Any, mv_in: float, ma_in: float, utc_offset_h: float) -> Sample:
    ts = parse_instant(heartbeat_ts)
    return Sample(
        timestamp=ts.to_pydatetime(),
        mv_in=float(mv_in),
        ma_in=float(ma_in),
        local_hour=local_hour(ts, utc_offset_h),
        date=date_key(ts),
    )


def _parse_or_nat(raw: Any) -> pd.Timestamp:
    try:
        return parse_instant(raw)
    except MalformedTimestamp:
        return pd.NaT


def normalize_frame(
    raw: pd.DataFrame,
    utc_offset_h: float,
    debug: DebugCollector | None = None,
) -> pd.DataFrame:
    """Vectorised normaliser for ingestion.

    ``raw`` needs ``heartbeat_ts``, ``mv_in`` and ``ma_in`` columns. Rows whose
    timestamp or readings cannot be parsed are dropped and counted in the
    ``normalize.summary`` debug event. The result is ordered by instant.
    """

    debug = debug or NullDebugCollector()
    rows_in = len(raw)
    if rows_in == 0:
        debug.emit("normalize.summary", {"rows_in": 0, "rows_out": 0, "dropped_ts": 0, "dropped_values": 0}, ts=None)
        return empty_sample_frame()

    ts = pd.to_datetime(raw["heartbeat_ts"].map(_parse_or_nat), utc=True)
    mv = pd.to_numeric(raw["mv_in"], errors="coerce")
    ma = pd.to_numeric(raw["ma_in"], errors="coerce")
    bad_ts = ts.isna()
    bad_values = ~bad_ts & (mv.isna() | ma.isna())
    keep = ~(bad_ts | bad_values)

    df = pd.DataFrame(
        {
            "ts": ts[keep],
            "heartbeat_ts": raw["heartbeat_ts"][keep].astype(str),
            "mv_in": mv[keep].astype(float),
            "ma_in": ma[keep].astype(float),
        }
    )
    df["voltage_v"] = df["mv_in"] / 1000.0
    df["current_a"] = df["ma_in"] / 1000.0
    df["power_w"] = df["voltage_v"] * df["current_a"]
    clock = df["ts"].dt.hour + df["ts"].dt.minute / 60.0 + df["ts"].dt.second / 3600.0
    df["local_hour"] = np.mod(clock + utc_offset_h + 24.0, 24.0).astype(float)
    df["date"] = df["ts"].dt.strftime("%Y-%m-%d")
    df = df.sort_values("ts", kind="mergesort").reset_index(drop=True)

    debug.emit(
        "normalize.summary",
        {
            "rows_in": int(rows_in),
            "rows_out": int(len(df)),
            "dropped_ts": int(bad_ts.sum()),
            "dropped_values": int(bad_values.sum()),
            "utc_offset_h": float(utc_offset_h),
        },
        ts=df["ts"].iloc[0] if len(df) else None,
    )
    return df[SAMPLE_COLUMNS]


def samples_to_frame(samples) -> pd.DataFrame:
    """Build the canonical sample frame from already-normalised ``Sample`` records."""
    rows = [
        {
            "ts": pd.Timestamp(s.timestamp).tz_convert("UTC"),
            "heartbeat_ts": pd.Timestamp(s.timestamp).tz_convert("UTC").strftime("%Y-%m-%d %H:%M:%S UTC"),
            "mv_in": s.mv_in,
            "ma_in": s.ma_in,
            "voltage_v": s.voltage_v,
            "current_a": s.current_a,
            "power_w": s.power_w,
            "local_hour": s.local_hour,
            "date": s.date,
        }
        for s in samples
    ]
    if not rows:
        return empty_sample_frame()
    df = pd.DataFrame(rows, columns=SAMPLE_COLUMNS)
    df["ts"] = pd.to_datetime(df["ts"], utc=True)
    return df.sort_values("ts", kind="mergesort").reset_index(drop=True)


def empty_sample_frame() -> pd.DataFrame:
    df = pd.DataFrame({col: pd.Series(dtype=float) for col in SAMPLE_COLUMNS})
    df["ts"] = pd.to_datetime(df["ts"], utc=True)
    df["heartbeat_ts"] = df["heartbeat_ts"].astype(object)
    df["date"] = df["date"].astype(object)
    return df


__all__ = [
    "MalformedTimestamp",
    "SAMPLE_COLUMNS",
    "date_key",
    "empty_sample_frame",
    "local_hour",
    "normalize_frame",
    "normalize_sample",
    "parse_instant",
    "samples_to_frame",
]
