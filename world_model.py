"""
Derivative aggregation and fixed-step RK4 integration of the world model.

One evaluation runs the sectors as a strict pipeline:

    resources (fraction remaining) -> capital -> resources (depletion)
        -> agriculture -> pollution -> population

Each stage reads only auxiliaries written earlier in the same evaluation and
returns a new immutable state, so the whole evaluation is a pure function of
(state, params, tables).
"""

import logging
import math

import numpy as np

from constants import POPULATION_CEILING, CAPITAL_CEILING
from world_state import STOCK_NAMES, STOCK_FIELDS, to_vector, from_vector, stocks_state
from sectors import (
    calculate_resource_auxiliaries,
    calculate_resource_tendencies,
    calculate_capital_tendencies,
    calculate_agriculture_tendencies,
    calculate_pollution_tendencies,
    calculate_population_tendencies,
)

logger = logging.getLogger(__name__)


class SolverError(Exception):
    """Base class for integration failures."""


class DivergenceError(SolverError):
    """
    Raised when the integration leaves the physically meaningful range.

    Attributes
    ----------
    year : float
        Time of the offending accepted state
    variable : str
        Name of the offending variable
    value : float
        Its value
    """

    def __init__(self, year, variable, value):
        self.year = year
        self.variable = variable
        self.value = value
        super().__init__(f"Simulation diverged at year {year:.2f}: {variable} = {value}")


class InvalidInitialConditionsError(SolverError):
    """Raised by ``validate_initial_state`` for unusable initial conditions."""


class InvalidTimeStepError(SolverError, ValueError):
    """Raised when ``time_step`` is not a positive finite number."""


def calculate_auxiliaries(state, params, tables):
    """
    Run every sector once on ``state``.

    Parameters
    ----------
    state : WorldState
    params : ScenarioParameters
    tables : WorldLookupTables

    Returns
    -------
    tuple of (dict, WorldState)
        Tendencies for all ten stocks keyed by stock name, and a state whose
        stocks equal ``state``'s and whose auxiliaries are all freshly computed.
    """
    tendencies = {}

    state = calculate_resource_auxiliaries(state, params, tables)
    for sector in (calculate_capital_tendencies,
                   calculate_resource_tendencies,
                   calculate_agriculture_tendencies,
                   calculate_pollution_tendencies,
                   calculate_population_tendencies):
        sector_tendencies, state = sector(state, params, tables)
        tendencies.update(sector_tendencies)

    return tendencies, state


def calculate_derivatives(state, params, tables):
    """
    Time derivative of the ten stocks at ``state``.

    Returns
    -------
    WorldState
        Rate state: stock fields hold derivatives (may be negative), every
        auxiliary is zero.
    """
    tendencies, _ = calculate_auxiliaries(state, params, tables)
    return stocks_state(state.time, [tendencies[name] for name in STOCK_NAMES])


def _stage_state(time, vector):
    """Intermediate RK4 state; a non-finite stock ends the run before it reaches the sectors."""
    for (sector, name), value in zip(STOCK_FIELDS, vector):
        if not np.isfinite(value):
            raise DivergenceError(time, f'{sector}.{name}', float(value))
    return from_vector(time, vector)


def rk4_step(state, dt, params, tables):
    """
    Advance ``state`` by one classical fourth-order Runge-Kutta step.

    Intermediate stage states are built with stock arithmetic and
    ``from_vector``, so their auxiliaries are recomputed by the derivative
    evaluation rather than carried over from ``state``.

    Returns
    -------
    WorldState
        State at ``state.time + dt`` with stocks only; auxiliaries are zero
        until ``calculate_auxiliaries`` is run on it.
    """
    t = state.time
    y = to_vector(state)

    k1 = to_vector(calculate_derivatives(state, params, tables))
    k2 = to_vector(calculate_derivatives(_stage_state(t + dt / 2, y + dt / 2 * k1), params, tables))
    k3 = to_vector(calculate_derivatives(_stage_state(t + dt / 2, y + dt / 2 * k2), params, tables))
    k4 = to_vector(calculate_derivatives(_stage_state(t + dt, y + dt * k3), params, tables))

    return from_vector(t + dt, y + dt / 6 * (k1 + 2 * k2 + 2 * k3 + k4))


def check_divergence(state):
    """
    Raise DivergenceError if ``state`` has left the meaningful range.

    Checks, in order: total population non-finite, negative or above
    POPULATION_CEILING; any stock non-finite; industrial or service capital
    above CAPITAL_CEILING.
    """
    population = state.population.population
    if not math.isfinite(population) or population < 0 or population > POPULATION_CEILING:
        raise DivergenceError(state.time, 'population', population)

    for (sector, name), value in zip(STOCK_FIELDS, to_vector(state)):
        if not np.isfinite(value):
            raise DivergenceError(state.time, f'{sector}.{name}', float(value))

    for name in ('industrial_capital', 'service_capital'):
        value = getattr(state.capital, name)
        if value > CAPITAL_CEILING:
            raise DivergenceError(state.time, f'capital.{name}', value)


def validate_initial_state(state):
    """
    Check that ``state`` can be used as initial conditions.

    The solver does not call this; callers that accept user-supplied initial
    states should.

    Raises
    ------
    InvalidInitialConditionsError
        If any stock is negative or not finite, or the population is zero.
    """
    for (sector, name), value in zip(STOCK_FIELDS, to_vector(state)):
        if not np.isfinite(value):
            raise InvalidInitialConditionsError(f"{sector}.{name} is not finite: {value}")
        if value < 0:
            raise InvalidInitialConditionsError(f"{sector}.{name} is negative: {value}")
    if state.population.population <= 0:
        raise InvalidInitialConditionsError("Initial population must be positive")


def number_of_steps(params):
    """
    Number of RK4 steps from start to end year, the last one possibly shorter.

    Raises
    ------
    InvalidTimeStepError
        If ``time_step`` is zero, negative or not finite.
    """
    if not math.isfinite(params.time_step) or params.time_step <= 0:
        raise InvalidTimeStepError(f"time_step must be positive, got {params.time_step}")
    span = params.end_year - params.start_year
    if span <= 0:
        return 0
    return int(math.ceil(span / params.time_step - 1e-9))


def integrate_model(initial_state, params, tables):
    """
    Integrate the model from ``params.start_year`` to ``params.end_year``.

    Parameters
    ----------
    initial_state : WorldState
        Initial stocks; its ``time`` is replaced by ``params.start_year``
    params : ScenarioParameters
    tables : WorldLookupTables

    Returns
    -------
    list of WorldState
        ``number_of_steps(params) + 1`` samples, each with auxiliaries
        computed. Sample i is at ``min(start + i * dt, end)``, so the last
        sample lands exactly on the end year.

    Raises
    ------
    InvalidTimeStepError
        If ``params.time_step`` is not positive.
    DivergenceError
        If any accepted state fails ``check_divergence``. An intermediate
        RK4 stage with a non-finite stock raises it as well. No partial
        trajectory is returned.

    Notes
    -----
    Sample times are computed from the step index rather than accumulated, so
    long runs do not drift.
    """
    start = params.start_year
    end = params.end_year
    dt = params.time_step
    n_steps = number_of_steps(params)

    logger.debug(f"Integrating '{params.meta.id}' from {start} to {end}, dt={dt} ({n_steps} steps)")

    state = from_vector(start, to_vector(initial_state))
    _, state = calculate_auxiliaries(state, params, tables)
    trajectory = [state]

    for i in range(n_steps):
        t_next = min(start + (i + 1) * dt, end)
        h = t_next - state.time

        try:
            new_state = rk4_step(state, h, params, tables)
            new_state = from_vector(t_next, to_vector(new_state))
            check_divergence(new_state)
        except DivergenceError as e:
            logger.warning(f"Scenario '{params.meta.id}': {e}")
            raise

        _, state = calculate_auxiliaries(new_state, params, tables)
        trajectory.append(state)

    logger.debug(f"Finished '{params.meta.id}': population {state.population.population:.3e} "
                 f"at year {state.time}")
    return trajectory


class Rk4Solver:
    """
    Fixed-step RK4 solver sharing one immutable table set across runs.

    Parameters
    ----------
    tables : WorldLookupTables
        Shared by reference; never modified
    """

    def __init__(self, tables):
        self.tables = tables

    def solve(self, initial_state, params):
        """Integrate one scenario; see ``integrate_model``."""
        return integrate_model(initial_state, params, self.tables)

    def derivatives(self, state, params):
        return calculate_derivatives(state, params, self.tables)
