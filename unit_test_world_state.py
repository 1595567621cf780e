"""
Unit tests for the world state model: vector conversion, clamping and
stock-only arithmetic.

Usage:
    pytest unit_test_world_state.py
"""

from dataclasses import replace

import numpy as np
import pytest

from parameters import initial_conditions_1900
from world_state import (
    STOCK_NAMES,
    add_states,
    field_value,
    from_vector,
    scale_state,
    stock_values,
    to_vector,
    zero_state,
)


def test_vector_order():
    state = initial_conditions_1900()
    v = to_vector(state)

    assert v.shape == (10,)
    assert STOCK_NAMES[0] == 'cohort_0_14'
    assert STOCK_NAMES[-1] == 'persistent_pollution'
    assert v[0] == 0.60e9
    assert v[3] == 0.08e9
    assert v[4] == 0.2e12
    assert v[5] == 0.32e12
    assert v[6] == 0.9e9
    assert v[7] == 2.3e9
    assert v[8] == 1.0
    assert v[9] == 0.05


def test_round_trip_preserves_stocks():
    state = initial_conditions_1900()
    rebuilt = from_vector(state.time, to_vector(state))

    assert np.array_equal(to_vector(rebuilt), to_vector(state))
    assert rebuilt.time == state.time


def test_from_vector_clamps_and_resets_auxiliaries():
    v = np.array([1.0, -2.0, 3.0, 4.0, -5.0, 6.0, 7.0, 8.0, 1.5, -0.1])
    state = from_vector(1950.0, v)

    assert np.all(to_vector(state) >= 0.0)
    assert state.population.cohort_15_44 == 0.0
    assert state.capital.industrial_capital == 0.0
    assert state.pollution.persistent_pollution == 0.0

    # Stock kept, fraction clamped into [0, 1]
    assert state.resources.nonrenewable_resources == 1.5
    assert state.resources.fraction_remaining == 1.0

    assert state.population.life_expectancy == 0.0
    assert state.agriculture.food_per_capita == 0.0
    assert state.capital.industrial_output_per_capita == 0.0
    assert state.pollution.pollution_index == 0.0


def test_from_vector_wrong_length():
    with pytest.raises(ValueError):
        from_vector(1900.0, np.ones(9))


def test_population_is_sum_of_cohorts():
    state = initial_conditions_1900()
    assert state.population.population == pytest.approx(1.6e9)

    bigger = replace(state.population, cohort_65_plus=1.08e9)
    assert bigger.population == pytest.approx(2.6e9)


def test_arithmetic_uses_stocks_only():
    state = initial_conditions_1900()
    assert state.agriculture.food_per_capita == 400.0

    doubled = add_states(state, state)
    assert np.allclose(to_vector(doubled), 2.0 * to_vector(state))
    assert doubled.agriculture.food_per_capita == 0.0

    half = scale_state(state, 0.5)
    assert np.allclose(to_vector(half), 0.5 * to_vector(state))

    # Operators match the functions; scaling may produce negatives (rates)
    combined = state + state * -1.0
    assert np.allclose(to_vector(combined), 0.0)
    assert np.all(to_vector(-2.0 * state) <= 0.0)


def test_zero_state_and_lookups():
    zero = zero_state(2000.0)
    assert zero.time == 2000.0
    assert np.all(to_vector(zero) == 0.0)

    state = initial_conditions_1900()
    stocks = stock_values(state)
    assert set(stocks) == set(STOCK_NAMES)
    assert stocks['arable_land'] == 0.9e9

    assert field_value(state, 'agriculture.food_per_capita') == 400.0
    assert field_value(state, 'population.population') == pytest.approx(1.6e9)
    assert field_value(state, 'time') == 1900.0
    with pytest.raises(AttributeError):
        field_value(state, 'agriculture.no_such_field')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
