"""
Unit tests for the piecewise-linear lookup tables.

Test Cases:
1. Interpolation inside the range and exact values at breakpoints
2. Clamping outside the range returns the endpoint values exactly
3. Malformed calibration points are rejected at construction
4. The embedded table set is complete, valid and immutable

Usage:
    pytest unit_test_lookup_tables.py
"""

import dataclasses

import numpy as np
import pytest

from lookup_tables import LookupTable, LookupTableError, WorldLookupTables, evaluate, load_tables


def test_interpolation_and_breakpoints():
    table = LookupTable('test', [0.0, 1.0, 2.0], [0.0, 10.0, 5.0])

    assert evaluate(table, 0.5) == pytest.approx(5.0)
    assert evaluate(table, 1.5) == pytest.approx(7.5)
    assert table(1.0) == 10.0
    assert table(0.25) == pytest.approx(2.5)


def test_clamping_returns_exact_endpoints():
    tables = load_tables()
    food = tables.life_exp_multiplier_food

    assert food(-3.0) == 0.0
    assert food(0.0) == 0.0
    assert food(5.0) == 1.5
    assert food(1e9) == 1.5
    assert food(1.5) == pytest.approx(1.215)

    cost = tables.land_development_cost
    assert cost(-0.1) == 100.0
    assert cost(1.1) == 616.0


def test_nan_input_propagates():
    table = LookupTable('t', [0.0, 1.0], [2.0, 3.0])
    assert np.isnan(table(np.nan))
    assert np.isnan(evaluate(table, float('nan')))

    # Infinities clamp like any other out-of-range value
    assert table(np.inf) == 3.0
    assert table(-np.inf) == 2.0


def test_decreasing_curves():
    tables = load_tables()
    crowding = tables.life_exp_multiplier_crowding

    values = [crowding(x) for x in np.linspace(0.0, 5.0, 51)]
    assert all(a >= b for a, b in zip(values, values[1:]))
    assert crowding(2.25) == pytest.approx(1.05)


@pytest.mark.parametrize('x, y', [
    ([0.0, 1.0, 1.0], [1.0, 2.0, 3.0]),       # duplicate breakpoint
    ([0.0, 2.0, 1.0], [1.0, 2.0, 3.0]),       # decreasing
    ([0.0, 1.0], [1.0, 2.0, 3.0]),            # length mismatch
    ([0.0], [1.0]),                           # single point
    ([0.0, np.nan], [1.0, 2.0]),              # not finite
    ([0.0, 1.0], [1.0, np.inf]),              # not finite
])
def test_invalid_tables_rejected(x, y):
    with pytest.raises(LookupTableError):
        LookupTable('bad', x, y)


def test_invalid_table_is_value_error():
    with pytest.raises(ValueError):
        LookupTable('bad', [1.0, 0.0], [0.0, 1.0])


def test_table_set_complete_and_valid():
    tables = load_tables()
    names = tables.names()

    print(f"Loaded {len(names)} lookup tables")
    assert len(names) == len(dataclasses.fields(WorldLookupTables))
    assert len(names) >= 20

    for name in names:
        table = tables.get(name)
        assert table.name == name
        assert len(table) >= 2
        assert np.all(np.diff(table.x) > 0)

    with pytest.raises(KeyError):
        tables.get('no_such_table')


def test_tables_are_immutable():
    tables = load_tables()
    table = tables.pollution_assimilation_time

    with pytest.raises(ValueError):
        table.x[0] = 5.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        table.name = 'other'
    with pytest.raises(dataclasses.FrozenInstanceError):
        tables.pollution_assimilation_time = table


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
