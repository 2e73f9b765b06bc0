from pathlib import Path
import json

import pandas as pd
from typer.testing import CliRunner

from solarverify import cli
from solarverify.cli_utils import format_hour


runner = CliRunner()

METRICS_HEADER = (
    "date,window_start,window_end,k1_window,k2_window,detected_battery_dip,"
    "sinusoidality_pass_<=30pct,negative_noise_pass_<=5pct_violations,"
    "no_generation_outside_daylight_pass_>=95pct\n"
)


def _write_fixture(tmp_path: Path, failing: bool = False) -> tuple[Path, Path]:
    samples = tmp_path / "samples.csv"
    lines = ["heartbeat_ts,mv_in,ma_in"]
    # 12 V at 10 A, every 15 minutes from 08:00 to 10:00 local (UTC-6)
    for i in range(9):
        ts = pd.Timestamp("2025-05-14T14:00:00Z") + pd.Timedelta(minutes=15 * i)
        lines.append(f"{ts.strftime('%Y-%m-%d %H:%M:%S')} UTC,12000,10000")
    samples.write_text("\n".join(lines) + "\n")

    metrics = tmp_path / "metrics.csv"
    noise = "False" if failing else "True"
    metrics.write_text(
        METRICS_HEADER
        + "2025-05-14,2025-05-14,2025-05-20,400,0,2025-05-15 00:30:00 UTC,True,True,True\n"
        + f"2025-05-15,2025-05-14,2025-05-20,400,0,,True,{noise},True\n"
    )
    return samples, metrics


def test_help_exits_zero():
    res = runner.invoke(cli.app, ["--help"])
    assert res.exit_code == 0
    for command in ("report", "windows", "day", "credits"):
        assert command in res.stdout


def test_version():
    res = runner.invoke(cli.app, ["--version"])
    assert res.exit_code == 0
    assert cli.__version__ in res.stdout


def test_report_json(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    out = tmp_path / "out" / "report.json"
    debug = tmp_path / "debug.jsonl"
    res = runner.invoke(
        cli.app,
        ["report", "-s", str(samples), "-m", str(metrics), "--output", str(out), "--debug", str(debug)],
    )
    assert res.exit_code == 0, res.output
    assert "Device demo-device-001 (Demo Device): verified" in res.stdout
    assert "Battery dip on 50.0% of days, median at 18:30" in res.stdout
    payload = json.loads(out.read_text())
    assert payload["status"] == "verified"
    assert payload["carbon_stats"]["operating_days"] == 1
    assert payload["daily"][0]["energy_wh"] == 240.0
    stages = [json.loads(line)["stage"] for line in debug.read_text().splitlines()]
    assert "analysis.summary" in stages
    assert "ingest.metrics" in stages


def test_report_csv_with_failing_day(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path, failing=True)
    out = tmp_path / "daily.csv"
    res = runner.invoke(
        cli.app, ["report", "-s", str(samples), "-m", str(metrics), "-f", "csv", "--output", str(out)]
    )
    assert res.exit_code == 0, res.output
    assert "needs-review" in res.stdout
    daily = pd.read_csv(out)
    assert daily["date"].tolist() == ["2025-05-14", "2025-05-15"]
    assert daily["negative_noise_pass"].tolist() == [True, False]


def test_report_rejects_unknown_format(tmp_path: Path):
    samples, _ = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["report", "-s", str(samples), "-f", "xml"])
    assert res.exit_code == 1
    assert "format must be json or csv" in res.output


def test_bad_config_exits_nonzero(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    cfg = tmp_path / "config.yaml"
    cfg.write_text("telemetry:\n  utc_offset_h: 40\n")
    res = runner.invoke(cli.app, ["credits", "-s", str(samples), "-m", str(metrics), "-c", str(cfg)])
    assert res.exit_code == 1
    assert "utc_offset_h" in res.output


def test_missing_samples_file_exits_nonzero(tmp_path: Path):
    res = runner.invoke(cli.app, ["credits", "-s", str(tmp_path / "nope.csv")])
    assert res.exit_code == 1
    assert "not found" in res.output


def test_windows_lists_fit_and_dip(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["windows", "-s", str(samples), "-m", str(metrics)])
    assert res.exit_code == 0, res.output
    line = res.stdout.strip().splitlines()[0]
    assert line.startswith("2025-05-14..2025-05-20 days=2")
    assert "k1=400.00" in line
    assert "dip=18:30" in line
    assert "peaks=[none]" in line


def test_windows_without_metrics_rows(tmp_path: Path):
    samples, _ = _write_fixture(tmp_path)
    empty = tmp_path / "metrics.csv"
    empty.write_text(METRICS_HEADER)
    res = runner.invoke(cli.app, ["windows", "-s", str(samples), "-m", str(empty)])
    assert res.exit_code == 0, res.output
    assert "No windows found" in res.stdout


def test_day_summary(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["day", "2025-05-14", "-s", str(samples), "-m", str(metrics)])
    assert res.exit_code == 0, res.output
    assert "Daylight samples: 9" in res.stdout
    assert "Max power: 120.0 W at 08:00" in res.stdout
    assert "Energy: 240.0 Wh" in res.stdout
    assert "Battery dip: 18:30" in res.stdout
    assert "sinusoidality=pass" in res.stdout


def test_day_rejects_bad_date(tmp_path: Path):
    samples, _ = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["day", "14/05/2025", "-s", str(samples)])
    assert res.exit_code == 1
    assert "YYYY-MM-DD" in res.output


def test_credits(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["credits", "-s", str(samples), "-m", str(metrics)])
    assert res.exit_code == 0, res.output
    assert "Period: 2025-05-14 .. 2025-05-14 (1 operating days)" in res.stdout
    assert "Total energy: 0.000240 MWh" in res.stdout
    assert "Emission reductions: 0.000192 tCO2" in res.stdout
    assert "Verification: verified" in res.stdout


def test_format_hour():
    assert format_hour(None) == "-"
    assert format_hour(14.5125) == "14:31"
    assert format_hour(23.999) == "00:00"


def test_report_failing_only(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path, failing=True)
    out = tmp_path / "failing.json"
    res = runner.invoke(
        cli.app, ["report", "-s", str(samples), "-m", str(metrics), "--failing-only", "--output", str(out)]
    )
    assert res.exit_code == 0, res.output
    payload = json.loads(out.read_text())
    assert [row["date"] for row in payload["daily"]] == ["2025-05-15"]
    assert payload["failing_dates"] == ["2025-05-15"]


def test_report_failing_only_when_all_pass(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    out = tmp_path / "failing.csv"
    res = runner.invoke(
        cli.app,
        ["report", "-s", str(samples), "-m", str(metrics), "--failing-only", "-f", "csv", "--output", str(out)],
    )
    assert res.exit_code == 0, res.output
    assert "No failing days" in res.stdout


def test_report_names_device_from_config(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    cfg = tmp_path / "config.yaml"
    cfg.write_text("device:\n  id: unit-7\n  name: Clinic roof\n")
    out = tmp_path / "report.json"
    res = runner.invoke(
        cli.app, ["report", "-s", str(samples), "-m", str(metrics), "-c", str(cfg), "--output", str(out)]
    )
    assert res.exit_code == 0, res.output
    assert "Device unit-7 (Clinic roof): verified" in res.stdout


def test_report_flushes_debug_events_on_failure(tmp_path: Path):
    samples, _ = _write_fixture(tmp_path)
    metrics = tmp_path / "metrics.csv"
    metrics.write_text("date\n2025-05-14\n")
    debug = tmp_path / "debug.json"
    res = runner.invoke(
        cli.app, ["report", "-s", str(samples), "-m", str(metrics), "--debug", str(debug)]
    )
    assert res.exit_code == 1
    assert "missing columns" in res.output
    stages = [event["stage"] for event in json.loads(debug.read_text())]
    assert "normalize.summary" in stages


def test_credits_projection(tmp_path: Path):
    samples, metrics = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["credits", "-s", str(samples), "-m", str(metrics), "--projection", "monthly"])
    assert res.exit_code == 0, res.output
    assert "Average daily peak power: 120.0 W" in res.stdout
    assert "Median battery dip: 18:30" in res.stdout
    months = [line for line in res.stdout.splitlines() if line[:4] in {"Jan:", "Dec:"}]
    assert len(months) == 2

    res = runner.invoke(cli.app, ["credits", "-s", str(samples), "-p", "yearly"])
    assert res.exit_code == 0, res.output
    assert "Year 1:" in res.stdout
    assert "Year 10:" in res.stdout
    assert "Median battery dip: -" in res.stdout


def test_credits_rejects_unknown_projection(tmp_path: Path):
    samples, _ = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["credits", "-s", str(samples), "-p", "weekly"])
    assert res.exit_code == 1
    assert "monthly or yearly" in res.output


def test_day_rejects_compact_date(tmp_path: Path):
    samples, _ = _write_fixture(tmp_path)
    res = runner.invoke(cli.app, ["day", "20250514", "-s", str(samples)])
    assert res.exit_code == 1
