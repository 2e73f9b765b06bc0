import dataclasses
import datetime as dt

import pytest

from solarverify.core.models import DailyMetric, VerificationStatus, Window
from solarverify.engine.verification import VerificationAggregator, failing_metrics, overall_status, pass_rates
from solarverify.telemetry.store import SampleStore

CRITERIA = ["sinusoidality_pass", "negative_noise_pass", "no_generation_outside_daylight_pass"]


def _passing(date, start="2025-05-14", end="2025-05-20", **kwargs):
    base = dict(
        date=date,
        window_start=start,
        window_end=end,
        sinusoidality_pass=True,
        negative_noise_pass=True,
        no_generation_outside_daylight_pass=True,
    )
    base.update(kwargs)
    return DailyMetric(**base)


def _week():
    return [_passing(f"2025-05-{d}") for d in range(14, 21)]


def test_all_passing_is_verified():
    assert overall_status(_week()) is VerificationStatus.VERIFIED


@pytest.mark.parametrize("criterion", CRITERIA)
@pytest.mark.parametrize("position", [0, 3, 6])
def test_single_failure_anywhere_needs_review(criterion, position):
    metrics = _week()
    metrics[position] = dataclasses.replace(metrics[position], **{criterion: False})
    assert overall_status(metrics) is VerificationStatus.NEEDS_REVIEW
    assert failing_metrics(metrics) == [metrics[position]]


def test_pass_rates_percentages():
    metrics = _week()
    metrics[0] = dataclasses.replace(metrics[0], sinusoidality_pass=False)
    metrics[1] = dataclasses.replace(
        metrics[1], detected_battery_dip=dt.datetime(2025, 5, 15, 23, 0, tzinfo=dt.timezone.utc)
    )
    rates = pass_rates(metrics[:4])
    assert rates.total == 4
    assert rates.sinusoidality == pytest.approx(75.0)
    assert rates.negative_noise == pytest.approx(100.0)
    assert rates.no_generation_outside_daylight == pytest.approx(100.0)
    assert rates.battery_dip_detected == pytest.approx(25.0)


def test_empty_metrics_yield_zero_rates():
    rates = pass_rates([])
    assert rates.total == 0
    assert rates.sinusoidality == 0.0
    assert rates.battery_dip_detected == 0.0
    assert overall_status([]) is VerificationStatus.VERIFIED


def test_aggregator_uses_store_and_windows():
    metrics = _week() + [_passing("2025-05-21", "2025-05-21", "2025-05-27", negative_noise_pass=False)]
    agg = VerificationAggregator(SampleStore(metrics=metrics))
    assert agg.overall_status() is VerificationStatus.NEEDS_REVIEW
    assert agg.pass_rates().negative_noise == pytest.approx(7 / 8 * 100)
    assert agg.window_pass_rates(Window("2025-05-14", "2025-05-20")).negative_noise == 100.0
    assert agg.window_pass_rates("2025-05-21", "2025-05-27").negative_noise == 0.0
    assert [m.date for m in agg.failing_metrics()] == ["2025-05-21"]
