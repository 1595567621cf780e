"""
End-to-end scenario tests: business-as-usual plausibility checks and the
policy presets.

Usage:
    pytest test_scenarios.py -s
"""

import numpy as np
import pytest

from lookup_tables import load_tables
from comparison_utils import run_scenarios
from validation import validate_business_as_usual, all_passed


@pytest.fixture(scope='module')
def outputs():
    return run_scenarios(['bau', 'technology', 'stabilized'], load_tables())


def _by_id(outputs, scenario_id):
    return next(o for o in outputs.values() if o.scenario_id == scenario_id)


def test_business_as_usual_checkpoints(outputs):
    bau = _by_id(outputs, 'bau')
    checks = validate_business_as_usual(bau)

    print("=" * 80)
    print("Business-as-usual checkpoints")
    print("=" * 80)
    for check in checks:
        mark = '✓' if check.passed else '✗'
        print(f"  {mark} {check.name:<28} {check.message}")

    assert all(type(check.passed) is bool for check in checks)
    failed = [c.name for c in checks if not c.passed]
    assert all_passed(checks), f"Failed checks: {failed}"


def test_business_as_usual_overshoot(outputs):
    bau = _by_id(outputs, 'bau')
    population = bau.extract_series('population.population')
    nnr = bau.extract_series('resources.fraction_remaining')

    # Population grows through the twentieth century, resources only decline
    assert population[70] > population[0]
    assert np.all(np.diff(nnr) <= 0.0)
    assert bau.state_at_year(2100).resources.fraction_remaining < bau.state_at_year(1970).resources.fraction_remaining


def test_presets_complete(outputs):
    assert len(outputs) == 3
    for name, output in outputs.items():
        assert len(output) == 201
        assert output.timeline[-1] == 2100.0
        for path in ('population.population', 'capital.industrial_output', 'pollution.pollution_index'):
            assert np.all(np.isfinite(output.extract_series(path))), f"{name}: {path}"


def test_stabilized_world_limits_growth(outputs):
    bau = _by_id(outputs, 'bau')
    stabilized = _by_id(outputs, 'stabilized')

    bau_peak = np.max(bau.extract_series('population.population'))
    stabilized_2100 = stabilized.state_at_year(2100).population.population
    print(f"BAU peak population {bau_peak / 1e9:.2f} B, stabilized 2100 population {stabilized_2100 / 1e9:.2f} B")
    assert stabilized_2100 < bau_peak

    bau_pollution = np.max(bau.extract_series('pollution.pollution_index'))
    stabilized_pollution = np.max(stabilized.extract_series('pollution.pollution_index'))
    assert stabilized_pollution < bau_pollution


if __name__ == '__main__':
    pytest.main([__file__, '-v', '-s'])
