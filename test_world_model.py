"""
Tests for the RK4 integrator: sample times, determinism, physical bounds and
divergence detection.

Usage:
    pytest test_world_model.py
"""

from dataclasses import replace

import numpy as np
import pytest

from lookup_tables import load_tables
from parameters import ScenarioParameters, business_as_usual, initial_conditions_1900
from world_state import to_vector, from_vector
from world_model import (
    DivergenceError,
    InvalidInitialConditionsError,
    InvalidTimeStepError,
    Rk4Solver,
    check_divergence,
    integrate_model,
    number_of_steps,
    rk4_step,
    validate_initial_state,
)


TABLES = load_tables()


def test_full_run_sample_times():
    params = business_as_usual()
    states = integrate_model(initial_conditions_1900(params), params, TABLES)

    times = np.array([s.time for s in states])
    print(f"{len(states)} samples from {times[0]} to {times[-1]}")

    assert len(states) == 201
    assert times[0] == 1900.0
    assert times[-1] == 2100.0
    assert np.allclose(np.diff(times), 1.0)
    assert times[100] == 2000.0


def test_last_step_clipped_to_end_year():
    params = replace(ScenarioParameters(), start_year=1900.0, end_year=1905.5, time_step=1.0)
    assert number_of_steps(params) == 6

    states = integrate_model(initial_conditions_1900(params), params, TABLES)
    times = [s.time for s in states]

    assert len(states) == 7
    assert times[-1] == 1905.5
    assert times[-2] == 1905.0


def test_fractional_time_step():
    params = replace(ScenarioParameters(), start_year=1900.0, end_year=1902.0, time_step=0.25)
    states = integrate_model(initial_conditions_1900(params), params, TABLES)

    assert len(states) == 9
    assert states[-1].time == 1902.0
    assert states[4].time == 1901.0


def test_empty_interval():
    params = replace(ScenarioParameters(), start_year=1950.0, end_year=1950.0)
    states = integrate_model(initial_conditions_1900(params), params, TABLES)

    assert len(states) == 1
    assert states[0].time == 1950.0
    # Initial sample has auxiliaries populated
    assert states[0].population.life_expectancy > 0


def test_runs_are_deterministic():
    params = replace(business_as_usual(), end_year=1950.0)
    solver = Rk4Solver(TABLES)

    first = solver.solve(initial_conditions_1900(params), params)
    second = solver.solve(initial_conditions_1900(params), params)

    assert len(first) == len(second)
    for a, b in zip(first, second):
        assert np.array_equal(to_vector(a), to_vector(b))
        assert a.population.life_expectancy == b.population.life_expectancy
        assert a.agriculture.food_per_capita == b.agriculture.food_per_capita


def test_trajectory_stays_physical():
    params = business_as_usual()
    states = integrate_model(initial_conditions_1900(params), params, TABLES)

    for state in states:
        v = to_vector(state)
        assert np.all(np.isfinite(v))
        assert np.all(v >= 0.0)
        assert 0.0 <= state.resources.fraction_remaining <= 1.0
        assert state.population.life_expectancy > 0

    nnr = np.array([s.resources.nonrenewable_resources for s in states])
    assert np.all(np.diff(nnr) <= 0.0)


def test_accepted_states_have_auxiliaries():
    params = replace(business_as_usual(), end_year=1910.0)
    states = integrate_model(initial_conditions_1900(params), params, TABLES)

    for state in states[1:]:
        assert state.capital.industrial_output > 0
        assert state.agriculture.food_per_capita > 0
        assert state.population.life_expectancy > 0
        assert state.pollution.pollution_index == pytest.approx(state.pollution.persistent_pollution)


def test_rk4_step_matches_stage_formula():
    params = business_as_usual()
    state = initial_conditions_1900(params)
    new_state = rk4_step(state, 0.5, params, TABLES)

    assert new_state.time == 1900.5
    assert new_state.agriculture.food_per_capita == 0.0
    # Half a year of 1900 growth: population up by well under one percent
    growth = new_state.population.population / state.population.population - 1.0
    assert 0.0 < growth < 0.01


def test_divergence_detected():
    params = replace(business_as_usual(), industrial_depreciation_rate=-0.5)

    with pytest.raises(DivergenceError) as excinfo:
        integrate_model(initial_conditions_1900(params), params, TABLES)

    error = excinfo.value
    print(f"Diverged: {error}")
    assert 1900.0 < error.year <= 2100.0
    assert error.variable in ('capital.industrial_capital', 'capital.service_capital', 'population')
    assert error.value > 0


def test_overflowing_investment_raises_divergence():
    # Industrial capital overflows inside the first step's RK4 stages
    params = replace(business_as_usual(), investment_rate=1e200)

    with pytest.raises(DivergenceError) as excinfo:
        integrate_model(initial_conditions_1900(params), params, TABLES)

    error = excinfo.value
    print(f"Diverged: {error}")
    assert error.variable == 'capital.industrial_capital'
    assert error.year == pytest.approx(1900.5)
    assert not np.isfinite(error.value)


def test_non_finite_stage_stock_stops_step():
    params = business_as_usual()
    state = initial_conditions_1900(params)

    with pytest.raises(DivergenceError):
        rk4_step(state, 1e300, params, TABLES)


@pytest.mark.parametrize('time_step', [0.0, -1.0, float('nan')])
def test_time_step_must_be_positive(time_step):
    params = replace(business_as_usual(), time_step=time_step)

    with pytest.raises(InvalidTimeStepError, match='time_step'):
        number_of_steps(params)
    with pytest.raises(InvalidTimeStepError):
        Rk4Solver(TABLES).solve(initial_conditions_1900(params), params)


def test_check_divergence():
    state = initial_conditions_1900()
    check_divergence(state)

    v = to_vector(state)
    v[0] = 2e13
    with pytest.raises(DivergenceError) as excinfo:
        check_divergence(from_vector(1950.0, v))
    assert excinfo.value.variable == 'population'
    assert excinfo.value.year == 1950.0

    v = to_vector(state)
    v[9] = np.inf
    with pytest.raises(DivergenceError) as excinfo:
        check_divergence(from_vector(1950.0, v))
    assert excinfo.value.variable == 'pollution.persistent_pollution'


def test_zero_population_world():
    params = replace(business_as_usual(), end_year=1910.0)
    v = to_vector(initial_conditions_1900(params))
    v[:4] = 0.0
    states = integrate_model(from_vector(1900.0, v), params, TABLES)

    assert len(states) == 11
    for state in states:
        assert state.population.population == 0.0
        assert state.resources.nonrenewable_resources == 1.0


def test_validate_initial_state():
    validate_initial_state(initial_conditions_1900())

    state = initial_conditions_1900()
    bad = replace(state, capital=replace(state.capital, industrial_capital=-1.0))
    with pytest.raises(InvalidInitialConditionsError):
        validate_initial_state(bad)

    empty = from_vector(1900.0, np.zeros(10))
    with pytest.raises(InvalidInitialConditionsError):
        validate_initial_state(empty)


def test_solver_shares_tables():
    solver = Rk4Solver(TABLES)
    assert solver.tables is TABLES
    rates = solver.derivatives(initial_conditions_1900(), business_as_usual())
    assert rates.capital.industrial_capital > 0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
