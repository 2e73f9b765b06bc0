"""Shared CLI helpers to avoid circular imports."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Tuple

from solarverify.core.config import AnalysisConfig, ConfigError, load_config
from solarverify.core.debug import DebugCollector
from solarverify.engine.analyze import AnalysisResult
from solarverify.ingest.loader import load_daily_metrics, load_samples
from solarverify.telemetry.store import SampleStore


def format_hour(hour: Optional[float]) -> str:
    """Local hour fraction as ``HH:MM``; ``-`` when absent."""
    if hour is None:
        return "-"
    total_min = int(round(hour * 60.0))
    return f"{(total_min // 60) % 24:02d}:{total_min % 60:02d}"


def load_session(
    samples: Path,
    metrics: Optional[Path],
    config: Optional[Path] = None,
    debug: Optional[DebugCollector] = None,
) -> Tuple[SampleStore, AnalysisConfig]:
    cfg = load_config(config)
    frame = load_samples(samples, cfg.telemetry.utc_offset_h, debug=debug)
    records = load_daily_metrics(metrics, debug=debug) if metrics else []
    store = SampleStore(frame, records, telemetry=cfg.telemetry, debug=debug)
    return store, cfg


def write_result(path: Path, result: AnalysisResult, fmt: str) -> None:
    fmt = fmt.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "json":
        path.write_text(json.dumps(result.to_dict(), indent=2))
    elif fmt == "csv":
        result.daily.to_csv(path, index=False)
    else:
        raise ConfigError("format must be json or csv")


__all__ = ["format_hour", "load_session", "write_result"]
