"""
Plausibility checks for the business-as-usual run.

These are broad envelopes around the historical record and the classic
overshoot-and-decline behavior, not point calibration targets.
"""

from dataclasses import dataclass

import numpy as np


@dataclass
class CheckResult:
    """Outcome of one validation check."""
    name: str
    passed: bool
    message: str


def _population_at(output, year):
    return output.state_at_year(year).population.population


def validate_business_as_usual(output):
    """
    Run the BAU checkpoints on a simulation output.

    Parameters
    ----------
    output : SimulationOutput
        Business-as-usual run covering 1900-2100

    Returns
    -------
    list of CheckResult
        1900 population in [1e9, 2.5e9]; 1970 population in [2.5e9, 5e9];
        peak population in [6e9, 12e9] and reached between 2000 and 2070;
        resources remaining in 2100 below 0.7; peak pollution index at least 0.5.
    """
    checks = []

    pop_1900 = _population_at(output, 1900)
    checks.append(CheckResult(
        '1900 population',
        1.0e9 <= pop_1900 <= 2.5e9,
        f"{pop_1900 / 1e9:.2f} billion (expected 1.0-2.5)",
    ))

    pop_1970 = _population_at(output, 1970)
    checks.append(CheckResult(
        '1970 population',
        2.5e9 <= pop_1970 <= 5.0e9,
        f"{pop_1970 / 1e9:.2f} billion (expected 2.5-5.0)",
    ))

    population = output.extract_series('population.population')
    i_peak = int(np.argmax(population))
    peak, peak_year = population[i_peak], output.timeline[i_peak]
    checks.append(CheckResult(
        'Peak population',
        bool(6.0e9 <= peak <= 12.0e9),
        f"{peak / 1e9:.2f} billion (expected 6-12)",
    ))
    checks.append(CheckResult(
        'Peak population year',
        bool(2000 <= peak_year <= 2070),
        f"{peak_year:.0f} (expected 2000-2070)",
    ))

    nnr_2100 = output.state_at_year(2100).resources.fraction_remaining
    checks.append(CheckResult(
        '2100 resources remaining',
        bool(nnr_2100 < 0.7),
        f"{nnr_2100:.3f} (expected < 0.7)",
    ))

    peak_pollution = float(np.max(output.extract_series('pollution.pollution_index')))
    checks.append(CheckResult(
        'Peak pollution index',
        peak_pollution >= 0.5,
        f"{peak_pollution:.2f} (expected >= 0.5)",
    ))

    return checks


def all_passed(checks):
    return all(check.passed for check in checks)
