"""Configuration loader for analysis settings.

Supports YAML and JSON files holding the telemetry, envelope, energy and
carbon sections. Every key is optional and falls back to the deployment
defaults.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

try:
    import yaml
except ModuleNotFoundError as exc:  # pragma: no cover
    raise ImportError("PyYAML is required to load YAML configs") from exc

from .models import ValidationError


class ConfigError(ValueError):
    """Raised when configuration cannot be parsed into settings."""


@dataclass(frozen=True)
class TelemetryConfig:
    utc_offset_h: float = -6.0
    daylight_start_h: float = 6.0
    daylight_end_h: float = 18.0

    def __post_init__(self):
        if not (-14.0 <= self.utc_offset_h <= 14.0):
            raise ValidationError("utc_offset_h must be between -14 and 14 hours")
        if not (0.0 <= self.daylight_start_h <= 24.0 and 0.0 <= self.daylight_end_h <= 24.0):
            raise ValidationError("daylight hours must be within [0, 24]")
        if self.daylight_start_h >= self.daylight_end_h:
            raise ValidationError("daylight_start_h must be before daylight_end_h")


@dataclass(frozen=True)
class EnvelopeConfig:
    bin_width_h: float = 0.1
    fit_start_h: float = 6.0
    fit_end_h: float = 18.0
    fit_step_h: float = 0.1
    peak_threshold_w: float = 250.0

    def __post_init__(self):
        if self.bin_width_h <= 0:
            raise ValidationError("bin_width_h must be positive")
        if self.fit_step_h <= 0:
            raise ValidationError("fit_step_h must be positive")
        if self.fit_start_h > self.fit_end_h:
            raise ValidationError("fit_start_h must not be after fit_end_h")
        if self.peak_threshold_w < 0:
            raise ValidationError("peak_threshold_w must be non-negative")


@dataclass(frozen=True)
class EnergyConfig:
    max_gap_h: float = 0.5

    def __post_init__(self):
        if self.max_gap_h <= 0:
            raise ValidationError("max_gap_h must be positive")


@dataclass(frozen=True)
class CarbonConfig:
    """AMS-I.F style constants; diesel baseline for an off-grid site."""

    emission_factor_t_per_mwh: float = 0.8
    project_emissions_t: float = 0.0
    leakage_emissions_t: float = 0.0
    carbon_price_usd_per_t: float = 15.0
    crediting_period_years: int = 10
    days_per_year: int = 365

    def __post_init__(self):
        if self.emission_factor_t_per_mwh < 0:
            raise ValidationError("emission_factor_t_per_mwh must be non-negative")
        if self.project_emissions_t < 0 or self.leakage_emissions_t < 0:
            raise ValidationError("project/leakage emissions must be non-negative")
        if self.carbon_price_usd_per_t < 0:
            raise ValidationError("carbon_price_usd_per_t must be non-negative")
        if self.crediting_period_years < 1:
            raise ValidationError("crediting_period_years must be at least 1")
        if self.days_per_year < 1:
            raise ValidationError("days_per_year must be at least 1")


@dataclass(frozen=True)
class DeviceInfo:
    id: str = "demo-device-001"
    name: str = "Demo Device"

    def __post_init__(self):
        if not self.id:
            raise ValidationError("device id is required")


@dataclass(frozen=True)
class AnalysisConfig:
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    envelope: EnvelopeConfig = field(default_factory=EnvelopeConfig)
    energy: EnergyConfig = field(default_factory=EnergyConfig)
    carbon: CarbonConfig = field(default_factory=CarbonConfig)
    device: DeviceInfo = field(default_factory=DeviceInfo)


_SECTION_TYPES = {
    "telemetry": TelemetryConfig,
    "envelope": EnvelopeConfig,
    "energy": EnergyConfig,
    "carbon": CarbonConfig,
}
_INT_KEYS = {"crediting_period_years", "days_per_year"}


def _load_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    if path.suffix.lower() == ".json":
        return json.loads(text)
    raise ConfigError(f"Unsupported config extension: {path.suffix}")


def _coerce(name: str, key: str, value: Any):
    if isinstance(value, bool):
        raise ConfigError(f"{name}.{key} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name}.{key} must be numeric, got {value!r}") from exc
    if key in _INT_KEYS:
        if not number.is_integer():
            raise ConfigError(f"{name}.{key} must be a whole number, got {value!r}")
        return int(number)
    return number


def _parse_section(name: str, raw: Any):
    cls = _SECTION_TYPES[name]
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    known = set(cls.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"Unknown {name} fields: {sorted(unknown)}")
    kwargs = {key: _coerce(name, key, value) for key, value in raw.items()}
    try:
        return cls(**kwargs)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {name} settings: {exc}") from exc


def _parse_device(raw: Any) -> DeviceInfo:
    if raw is None:
        return DeviceInfo()
    if not isinstance(raw, dict):
        raise ConfigError("Section 'device' must be a mapping")
    unknown = set(raw) - set(DeviceInfo.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown device fields: {sorted(unknown)}")
    try:
        return DeviceInfo(
            id=str(raw.get("id", DeviceInfo.id)),
            name=str(raw.get("name", DeviceInfo.name)),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid device: {exc}") from exc


def parse_config(raw: Dict[str, Any]) -> AnalysisConfig:
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    sections = {name: _parse_section(name, raw.get(name)) for name in _SECTION_TYPES}
    return AnalysisConfig(device=_parse_device(raw.get("device")), **sections)


def load_config(path: str | Path | None = None) -> AnalysisConfig:
    if path is None:
        return AnalysisConfig()
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        raw = _load_raw(path)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    return parse_config(raw)


__all__ = [
    "AnalysisConfig",
    "CarbonConfig",
    "ConfigError",
    "DeviceInfo",
    "EnergyConfig",
    "EnvelopeConfig",
    "TelemetryConfig",
    "load_config",
    "parse_config",
]
