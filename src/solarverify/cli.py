"""Command line entrypoint for solarverify.

Commands:

* ``report``: full analysis of one device export, written as JSON or CSV.
* ``windows``: one line per 7-day window (fit coefficients, peaks, dip time).
* ``day``: single-day summary.
* ``credits``: carbon-credit estimate from integrated generation.
"""
from __future__ import annotations

import dataclasses
import datetime as dt
from pathlib import Path
from typing import Optional

import typer

from solarverify.carbon.credits import CarbonCreditCalculator
from solarverify.cli_utils import format_hour, load_session, write_result
from solarverify.core.config import ConfigError
from solarverify.core.debug import NullDebugCollector, build_debug_collector
from solarverify.engine.analyze import analyze
from solarverify.engine.battery_dip import BatteryDipResolver
from solarverify.engine.energy import EnergyIntegrator
from solarverify.engine.envelope import EnvelopeEngine
from solarverify.engine.verification import VerificationAggregator
from solarverify.ingest.loader import IngestError

__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Solar telemetry verification and carbon-credit CLI")

SAMPLES_OPT = typer.Option(..., "--samples", "-s", help="Heartbeat export (.csv or .json)")
METRICS_OPT = typer.Option(None, "--metrics", "-m", help="Daily metrics export (.csv or .json)")
CONFIG_OPT = typer.Option(None, "--config", "-c", help="Analysis settings YAML/JSON")


def _exit_with_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


def _session(samples: Path, metrics: Optional[Path], config: Optional[Path], debug=None):
    try:
        return load_session(samples, metrics, config, debug=debug)
    except (ConfigError, IngestError) as exc:
        _exit_with_error(str(exc))


@app.command()
def report(
    samples: Path = SAMPLES_OPT,
    metrics: Optional[Path] = METRICS_OPT,
    config: Optional[Path] = CONFIG_OPT,
    debug: Optional[Path] = typer.Option(None, help="Write debug events (.json array or JSONL)"),
    format: str = typer.Option("json", "--format", "-f", help="Output format: json or csv"),
    output: Optional[Path] = typer.Option(None, help="Output file path; defaults to report.<format>"),
    failing_only: bool = typer.Option(False, "--failing-only", help="Only show and write days failing verification"),
):
    """Run every analysis over the export and write the result."""

    fmt = format.lower()
    if fmt not in {"json", "csv"}:
        _exit_with_error("format must be json or csv")

    collector = build_debug_collector(debug)
    try:
        store, cfg = _session(samples, metrics, config, debug=collector)
        result = analyze(store, cfg, debug=collector)
        if failing_only:
            result = dataclasses.replace(result, daily=result.failing_daily())
        output_path = output or Path(f"report.{fmt}")
        write_result(output_path, result, fmt)
    finally:
        if hasattr(collector, "close"):
            collector.close()

    typer.echo(f"Device {result.device_id} ({result.device_name}): {result.status.value}")
    typer.echo(
        f"Battery dip on {result.pass_rates.battery_dip_detected:.1f}% of days, "
        f"median at {format_hour(result.median_dip_hour)}"
    )
    if failing_only and result.daily.empty:
        typer.echo("No failing days")
    elif not result.daily.empty:
        typer.echo(result.daily.to_string(index=False))
    typer.echo(f"Wrote results to {output_path}")
    if debug:
        typer.echo(f"Debug events -> {debug}")


@app.command()
def windows(
    samples: Path = SAMPLES_OPT,
    metrics: Path = typer.Option(..., "--metrics", "-m", help="Daily metrics export (.csv or .json)"),
    config: Optional[Path] = CONFIG_OPT,
    threshold: Optional[float] = typer.Option(None, help="Peak power threshold (W); defaults to config"),
):
    """List 7-day windows with fit coefficients, filtered peaks and median dip time."""

    store, cfg = _session(samples, metrics, config)
    engine = EnvelopeEngine(store, cfg.envelope)
    reports = engine.all_window_reports(threshold)
    if not reports:
        typer.echo("No windows found")
        return
    for rep in reports:
        peaks = ", ".join(f"{p.hour:.1f}h={p.power_w:.1f}W" for p in rep.peaks) or "none"
        typer.echo(
            f"{rep.window.start}..{rep.window.end} days={rep.days_in_window} "
            f"k1={rep.k1:.2f} k2={rep.k2:.2f} "
            f"sinusoidality={rep.pass_rates.sinusoidality:.1f}% "
            f"dip={format_hour(rep.median_dip_hour)} peaks=[{peaks}]"
        )


@app.command()
def day(
    date: str = typer.Argument(..., help="Date (YYYY-MM-DD)"),
    samples: Path = SAMPLES_OPT,
    metrics: Optional[Path] = METRICS_OPT,
    config: Optional[Path] = CONFIG_OPT,
):
    """Show daylight samples, peak power and verification flags for one day."""

    try:
        parsed = dt.datetime.strptime(date, "%Y-%m-%d")
    except ValueError:
        parsed = None
    if parsed is None or len(date) != 10:
        _exit_with_error("date must be YYYY-MM-DD")

    store, cfg = _session(samples, metrics, config)
    summary = EnergyIntegrator(store, cfg.energy).day_summary(date)
    dip_hour = BatteryDipResolver(store, cfg.telemetry).dip_hour_for_date(date)

    typer.echo(f"Date: {summary.date}")
    typer.echo(f"Daylight samples: {summary.sample_count}")
    typer.echo(f"Max power: {summary.max_power_w:.1f} W at {format_hour(summary.max_power_hour)}")
    typer.echo(f"Energy: {summary.energy_wh:.1f} Wh")
    typer.echo(f"Battery dip: {format_hour(dip_hour)}")
    metric = summary.metric
    if metric is None:
        typer.echo("Verification: no metric for this date")
        return
    typer.echo(
        "Verification: "
        f"sinusoidality={'pass' if metric.sinusoidality_pass else 'fail'} "
        f"negative_noise={'pass' if metric.negative_noise_pass else 'fail'} "
        f"no_generation_outside_daylight={'pass' if metric.no_generation_outside_daylight_pass else 'fail'}"
    )


@app.command()
def credits(
    samples: Path = SAMPLES_OPT,
    metrics: Optional[Path] = METRICS_OPT,
    config: Optional[Path] = CONFIG_OPT,
    projection: Optional[str] = typer.Option(None, "--projection", "-p", help="Also print a monthly or yearly projection"),
):
    """Estimate emission reductions and carbon-credit value."""

    if projection is not None and projection.lower() not in {"monthly", "yearly"}:
        _exit_with_error("projection must be monthly or yearly")

    store, cfg = _session(samples, metrics, config)
    energy = EnergyIntegrator(store, cfg.energy)
    stats = energy.carbon_stats()
    estimate = CarbonCreditCalculator(cfg.carbon, debug=NullDebugCollector()).calculate(stats)
    status = VerificationAggregator(store).overall_status()
    median_dip = BatteryDipResolver(store, cfg.telemetry).median_dip_hour()

    typer.echo(f"Period: {stats.period_start or '-'} .. {stats.period_end or '-'} ({stats.operating_days} operating days)")
    typer.echo(f"Total energy: {stats.total_energy_mwh:.6f} MWh")
    typer.echo(f"Average daily energy: {stats.avg_daily_energy_kwh:.3f} kWh")
    typer.echo(f"Peak power: {stats.peak_power_w:.1f} W")
    typer.echo(f"Average daily peak power: {energy.average_daily_peak_power_w():.1f} W")
    typer.echo(f"Median battery dip: {format_hour(median_dip)}")
    typer.echo(f"Emission reductions: {estimate.emission_reductions_t:.6f} tCO2")
    typer.echo(f"Annual reductions: {estimate.annual_reductions_t:.4f} tCO2/yr (USD {estimate.annual_value_usd:.2f}/yr)")
    typer.echo(
        f"{estimate.crediting_period_years}-year period: {estimate.period_reductions_t:.4f} tCO2 "
        f"(USD {estimate.period_value_usd:.2f})"
    )
    typer.echo(f"Verification: {status.value}")

    if projection is None:
        return
    if projection.lower() == "monthly":
        for row in estimate.monthly_projection():
            typer.echo(
                f"{row['month']}: {row['energy_mwh']:.4f} MWh {row['reductions_t']:.4f} tCO2 USD {row['value_usd']:.2f}"
            )
    else:
        for row in estimate.yearly_projection():
            typer.echo(
                f"Year {row['year']}: {row['cumulative_reductions_t']:.4f} tCO2 "
                f"USD {row['cumulative_value_usd']:.2f} cumulative"
            )


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def version_callback(
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit"
    ),
):
    """Solar telemetry verification and carbon-credit CLI."""


def main() -> None:  # pragma: no cover - thin wrapper for console_script
    app()


__all__ = ["app", "main"]


if __name__ == "__main__":  # pragma: no cover
    main()
