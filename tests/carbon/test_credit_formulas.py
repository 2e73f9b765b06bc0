import pytest

from solarverify.carbon.credits import CarbonCreditCalculator, estimate_credits
from solarverify.core.config import CarbonConfig
from solarverify.core.debug import ListDebugCollector
from solarverify.core.models import CarbonStats


def _stats(total_mwh=0.0, avg_kwh=0.0, days=0):
    return CarbonStats(
        total_energy_mwh=total_mwh,
        avg_daily_energy_kwh=avg_kwh,
        operating_days=days,
        period_start="2025-05-14" if days else None,
        period_end="2025-05-20" if days else None,
        peak_power_w=0.0,
    )


def test_one_mwh_with_default_factor():
    est = estimate_credits(_stats(total_mwh=1.0))
    assert est.baseline_emissions_t == pytest.approx(0.8)
    assert est.emission_reductions_t == pytest.approx(0.8)


def test_annual_and_period_extrapolation():
    est = estimate_credits(_stats(total_mwh=0.07, avg_kwh=10.0, days=7))
    assert est.annual_energy_mwh == pytest.approx(3.65)
    assert est.annual_reductions_t == pytest.approx(2.92)
    assert est.annual_value_usd == pytest.approx(43.8)
    assert est.period_reductions_t == pytest.approx(29.2)
    assert est.period_value_usd == pytest.approx(438.0)
    assert est.crediting_period_years == 10


def test_project_and_leakage_emissions_are_subtracted():
    cfg = CarbonConfig(project_emissions_t=0.1, leakage_emissions_t=0.05)
    est = CarbonCreditCalculator(cfg).calculate(_stats(total_mwh=1.0))
    assert est.baseline_emissions_t == pytest.approx(0.8)
    assert est.emission_reductions_t == pytest.approx(0.65)


def test_projections():
    est = estimate_credits(_stats(avg_kwh=10.0, days=1), CarbonConfig(crediting_period_years=3))
    months = est.monthly_projection()
    assert [m["month"] for m in months][:3] == ["Jan", "Feb", "Mar"]
    assert len(months) == 12
    assert sum(m["reductions_t"] for m in months) == pytest.approx(est.annual_reductions_t)
    years = est.yearly_projection()
    assert [y["year"] for y in years] == [1, 2, 3]
    assert years[-1]["cumulative_value_usd"] == pytest.approx(est.period_value_usd)


def test_zero_generation_gives_zero_credits():
    est = estimate_credits(_stats())
    assert est.to_dict() == {
        "baseline_emissions_t": 0.0,
        "emission_reductions_t": 0.0,
        "annual_energy_mwh": 0.0,
        "annual_reductions_t": 0.0,
        "annual_value_usd": 0.0,
        "period_reductions_t": 0.0,
        "period_value_usd": 0.0,
        "crediting_period_years": 10,
    }


def test_estimate_emits_debug_event():
    debug = ListDebugCollector()
    estimate_credits(_stats(total_mwh=1.0, avg_kwh=1.0, days=1), debug=debug)
    event = debug.last("carbon.estimate")
    assert event["ts"] == "2025-05-20"
    assert event["payload"]["inputs"]["total_energy_mwh"] == 1.0
