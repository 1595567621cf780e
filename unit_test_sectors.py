"""
Unit tests for the sector derivative functions and the derivative aggregator.

Usage:
    pytest unit_test_sectors.py
"""

from dataclasses import replace

import numpy as np
import pytest

from lookup_tables import load_tables
from parameters import ScenarioParameters, business_as_usual, initial_conditions_1900
from world_state import from_vector, to_vector
from sectors import (
    RESOURCE_USE_PER_OUTPUT,
    calculate_agriculture_tendencies,
    calculate_capital_tendencies,
    calculate_pollution_tendencies,
    calculate_population_tendencies,
    calculate_resource_auxiliaries,
    calculate_resource_tendencies,
    family_planning_ramp,
    technology_multiplier,
)
from world_model import calculate_auxiliaries, calculate_derivatives


TABLES = load_tables()


def _evaluated_1900(params=None):
    params = params or business_as_usual()
    tendencies, state = calculate_auxiliaries(initial_conditions_1900(params), params, TABLES)
    return tendencies, state, params


def test_resource_fraction_clamped():
    params = ScenarioParameters()
    state = initial_conditions_1900(replace(params, initial_nnr_fraction=1.4))

    state = calculate_resource_auxiliaries(state, params, TABLES)
    assert state.resources.nonrenewable_resources == 1.4
    assert state.resources.fraction_remaining == 1.0


def test_capital_output_1900():
    params = business_as_usual()
    state = calculate_resource_auxiliaries(initial_conditions_1900(params), params, TABLES)
    tendencies, state = calculate_capital_tendencies(state, params, TABLES)

    # Full resources: capital-output ratio 3.0 * 0.5, no capital diverted to extraction
    expected_output = 0.2e12 / 1.5
    assert state.capital.industrial_output == pytest.approx(expected_output)
    assert state.capital.industrial_output_per_capita == pytest.approx(expected_output / 1.6e9)
    assert state.capital.service_output_per_capita == pytest.approx(200.0)

    expected_dic = expected_output * 0.12 - 0.2e12 * 0.05
    assert tendencies['industrial_capital'] == pytest.approx(expected_dic)
    print(f"1900 industrial output: {state.capital.industrial_output:.3e} $/yr")


def test_technology_multiplier():
    params = replace(ScenarioParameters(), technology_growth_rate=0.02)
    assert technology_multiplier(1950.0, params) == 1.0
    assert technology_multiplier(1970.0, params) == 1.0
    assert technology_multiplier(1980.0, params) == pytest.approx(1.02 ** 10)


def test_resource_depletion_uses_same_evaluation_output():
    # A state rebuilt from a vector carries no industrial output; depletion must
    # still reflect the output computed by capital in this evaluation.
    params = business_as_usual()
    stage_state = from_vector(1950.0, to_vector(initial_conditions_1900(params)))
    assert stage_state.capital.industrial_output_per_capita == 0.0

    tendencies, state = calculate_auxiliaries(stage_state, params, TABLES)
    population = state.population.population
    iopc = state.capital.industrial_output_per_capita

    assert iopc > 0
    assert tendencies['nonrenewable_resources'] == pytest.approx(
        -population * iopc * RESOURCE_USE_PER_OUTPUT)
    assert tendencies['nonrenewable_resources'] < 0


def test_resource_efficiency_and_empty_world():
    params = business_as_usual()
    _, state, _ = _evaluated_1900(params)

    base, _ = calculate_resource_tendencies(state, params, TABLES)
    efficient, _ = calculate_resource_tendencies(state, replace(params, resource_efficiency=4.0), TABLES)
    assert efficient['nonrenewable_resources'] == pytest.approx(base['nonrenewable_resources'] / 4.0)

    empty = replace(state, population=replace(state.population, cohort_0_14=0.0, cohort_15_44=0.0,
                                              cohort_45_64=0.0, cohort_65_plus=0.0))
    tendencies, _ = calculate_resource_tendencies(empty, params, TABLES)
    assert tendencies['nonrenewable_resources'] == 0.0


def test_food_ratio_is_self_consistent():
    _, state, params = _evaluated_1900()
    agriculture = state.agriculture

    ratio = agriculture.food_per_capita / params.subsistence_food_per_capita
    expected_fraction = TABLES.industrial_fraction_to_agriculture(ratio)
    print(f"1900 food per capita: {agriculture.food_per_capita:.1f} kg, "
          f"allocation to agriculture: {agriculture.fraction_industrial_to_agriculture:.4f}")

    assert agriculture.fraction_industrial_to_agriculture == pytest.approx(expected_fraction, rel=1e-5)
    assert agriculture.food_per_capita > params.subsistence_food_per_capita
    assert agriculture.food_production == pytest.approx(agriculture.land_yield * 0.9e9)


def test_zero_subsistence_uses_unit_food_ratio():
    params = replace(business_as_usual(), subsistence_food_per_capita=0.0)
    _, state, _ = _evaluated_1900(params)
    assert state.agriculture.fraction_industrial_to_agriculture == pytest.approx(0.15)


def test_land_development_limited_by_reserve():
    params = business_as_usual()
    _, state, _ = _evaluated_1900(params)

    tendencies, _ = calculate_agriculture_tendencies(state, params, TABLES)
    assert tendencies['potentially_arable_land'] <= 0.0

    exhausted = replace(state, agriculture=replace(state.agriculture, potentially_arable_land=0.0))
    tendencies, _ = calculate_agriculture_tendencies(exhausted, params, TABLES)
    assert tendencies['potentially_arable_land'] == 0.0
    assert tendencies['arable_land'] <= 0.0


def test_land_protection_reduces_erosion():
    params = business_as_usual()
    _, state, _ = _evaluated_1900(params)
    exhausted = replace(state, agriculture=replace(state.agriculture, potentially_arable_land=0.0))

    unprotected, _ = calculate_agriculture_tendencies(exhausted, params, TABLES)
    protected, _ = calculate_agriculture_tendencies(
        exhausted, replace(params, land_protection_fraction=0.9), TABLES)

    # Protection is capped at one half
    assert protected['arable_land'] == pytest.approx(0.5 * unprotected['arable_land'])


def test_pollution_control_and_assimilation():
    params = replace(business_as_usual(), pollution_control=1.0)
    _, state, _ = _evaluated_1900(params)

    tendencies, state = calculate_pollution_tendencies(state, params, TABLES)
    stock = state.pollution.persistent_pollution
    assert state.pollution.generation_rate == 0.0
    assert state.pollution.pollution_index == pytest.approx(stock)
    assert tendencies['persistent_pollution'] == pytest.approx(
        -stock / TABLES.pollution_assimilation_time(stock))

    params = business_as_usual()
    _, state, _ = _evaluated_1900(params)
    assert state.pollution.generation_rate > 0.0


def test_family_planning_ramp():
    params = replace(ScenarioParameters(), family_planning_start_year=1950.0, family_planning_year=2000.0)
    assert family_planning_ramp(1900.0, params) == 0.0
    assert family_planning_ramp(1975.0, params) == pytest.approx(0.5)
    assert family_planning_ramp(2050.0, params) == 1.0

    step = replace(params, family_planning_year=1950.0)
    assert family_planning_ramp(1949.0, step) == 0.0
    assert family_planning_ramp(1950.0, step) == 1.0


def test_population_flows_balance():
    tendencies, state, params = _evaluated_1900()
    population = state.population
    total = population.population

    net = sum(tendencies[name] for name in
              ('cohort_0_14', 'cohort_15_44', 'cohort_45_64', 'cohort_65_plus'))
    # Aging only moves people between cohorts
    assert net == pytest.approx((population.birth_rate - population.death_rate) * total, rel=1e-9)

    births = 0.5 * population.cohort_15_44 * population.fertility_rate / 30.0
    assert population.birth_rate * total == pytest.approx(births)

    assert 5.0 <= population.life_expectancy <= 85.0
    assert 0.5 <= population.fertility_rate <= 8.0
    print(f"1900 life expectancy {population.life_expectancy:.1f} yr, "
          f"fertility {population.fertility_rate:.2f}, "
          f"growth {(population.birth_rate - population.death_rate) * 100:.2f} %/yr")
    assert population.birth_rate > population.death_rate


def test_family_planning_lowers_fertility():
    bau = replace(business_as_usual(), family_planning_efficacy=0.0)
    planned = replace(bau, family_planning_efficacy=1.0, family_planning_year=1900.0)

    _, bau_state, _ = _evaluated_1900(bau)
    _, planned_state, _ = _evaluated_1900(planned)
    assert planned_state.population.fertility_rate < bau_state.population.fertility_rate


def test_rate_state_has_no_auxiliaries():
    params = business_as_usual()
    rates = calculate_derivatives(initial_conditions_1900(params), params, TABLES)

    assert rates.population.life_expectancy == 0.0
    assert rates.agriculture.food_per_capita == 0.0
    assert rates.capital.industrial_output == 0.0
    assert rates.resources.fraction_remaining == 0.0
    assert rates.pollution.pollution_index == 0.0
    assert rates.resources.nonrenewable_resources < 0.0


def test_evaluation_is_pure():
    params = business_as_usual()
    state = initial_conditions_1900(params)
    before = to_vector(state)

    first = to_vector(calculate_derivatives(state, params, TABLES))
    second = to_vector(calculate_derivatives(state, params, TABLES))

    assert np.array_equal(first, second)
    assert np.array_equal(to_vector(state), before)
    assert state.agriculture.food_per_capita == 400.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
