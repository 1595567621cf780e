"""
World state: the ten integrable stocks plus per-sector auxiliary variables.

A ``WorldState`` is an immutable snapshot at one instant. Stocks are the
quantities the integrator advances; auxiliaries (rates, multipliers,
per-capita values) are recomputed by the sector functions at every
evaluation and are only meaningful on states produced by them.

The stock vector order is fixed:

    0  population cohort 0-14
    1  population cohort 15-44
    2  population cohort 45-64
    3  population cohort 65+
    4  industrial capital
    5  service capital
    6  arable land
    7  potentially arable land
    8  non-renewable resources (fraction of initial endowment)
    9  persistent pollution
"""

from dataclasses import dataclass, field, replace

import numpy as np

from constants import N_STOCKS


@dataclass(frozen=True)
class PopulationState:
    """Age cohorts (persons) and demographic auxiliaries."""
    cohort_0_14: float = 0.0
    cohort_15_44: float = 0.0
    cohort_45_64: float = 0.0
    cohort_65_plus: float = 0.0
    birth_rate: float = 0.0          # births per person per year
    death_rate: float = 0.0          # deaths per person per year
    life_expectancy: float = 0.0     # years
    fertility_rate: float = 0.0      # total fertility, children per woman

    @property
    def population(self):
        """Total population, the sum of the four cohorts."""
        return self.cohort_0_14 + self.cohort_15_44 + self.cohort_45_64 + self.cohort_65_plus


@dataclass(frozen=True)
class CapitalState:
    """Capital stocks (USD) and output auxiliaries."""
    industrial_capital: float = 0.0
    service_capital: float = 0.0
    industrial_output: float = 0.0                  # USD/yr
    industrial_output_per_capita: float = 0.0       # USD/person/yr
    service_output_per_capita: float = 0.0          # USD/person/yr
    fraction_industrial_to_services: float = 0.0


@dataclass(frozen=True)
class AgricultureState:
    """Land stocks (hectares) and food auxiliaries."""
    arable_land: float = 0.0
    potentially_arable_land: float = 0.0
    food_production: float = 0.0                    # kg/yr
    food_per_capita: float = 0.0                    # kg/person/yr
    land_yield: float = 0.0                         # kg/ha/yr
    fraction_industrial_to_agriculture: float = 0.0
    agricultural_inputs_per_hectare: float = 0.0    # USD/ha/yr


@dataclass(frozen=True)
class ResourceState:
    """Non-renewable resources, normalized to the 1900 endowment."""
    nonrenewable_resources: float = 0.0
    fraction_remaining: float = 0.0


@dataclass(frozen=True)
class PollutionState:
    """Persistent pollution stock and its flows."""
    persistent_pollution: float = 0.0
    pollution_index: float = 0.0
    generation_rate: float = 0.0        # units/yr
    assimilation_rate: float = 0.0      # units/yr


@dataclass(frozen=True)
class WorldState:
    """Snapshot of the whole world at ``time`` (calendar year)."""
    time: float = 0.0
    population: PopulationState = field(default_factory=PopulationState)
    capital: CapitalState = field(default_factory=CapitalState)
    agriculture: AgricultureState = field(default_factory=AgricultureState)
    resources: ResourceState = field(default_factory=ResourceState)
    pollution: PollutionState = field(default_factory=PollutionState)

    def __add__(self, other):
        return add_states(self, other)

    def __mul__(self, factor):
        return scale_state(self, factor)

    __rmul__ = __mul__


# (sector, field) for each stock, in vector order
STOCK_FIELDS = (
    ('population', 'cohort_0_14'),
    ('population', 'cohort_15_44'),
    ('population', 'cohort_45_64'),
    ('population', 'cohort_65_plus'),
    ('capital', 'industrial_capital'),
    ('capital', 'service_capital'),
    ('agriculture', 'arable_land'),
    ('agriculture', 'potentially_arable_land'),
    ('resources', 'nonrenewable_resources'),
    ('pollution', 'persistent_pollution'),
)

STOCK_NAMES = tuple(name for _, name in STOCK_FIELDS)

RESOURCE_INDEX = STOCK_NAMES.index('nonrenewable_resources')

assert len(STOCK_FIELDS) == N_STOCKS


def to_vector(state):
    """
    Extract the ten stocks of ``state`` as a float array, in vector order.

    Parameters
    ----------
    state : WorldState

    Returns
    -------
    ndarray of shape (10,)
    """
    return np.array(
        [getattr(getattr(state, sector), name) for sector, name in STOCK_FIELDS],
        dtype=float,
    )


def stocks_state(time, vector):
    """
    Build a state holding ``vector`` as its stocks, without any clamping.

    Used for rate states (derivatives may be negative) and for intermediate
    arithmetic. All auxiliaries are zero.
    """
    v = np.asarray(vector, dtype=float)
    if v.shape != (N_STOCKS,):
        raise ValueError(f"Stock vector must have shape ({N_STOCKS},), got {v.shape}")

    return WorldState(
        time=float(time),
        population=PopulationState(
            cohort_0_14=float(v[0]),
            cohort_15_44=float(v[1]),
            cohort_45_64=float(v[2]),
            cohort_65_plus=float(v[3]),
        ),
        capital=CapitalState(
            industrial_capital=float(v[4]),
            service_capital=float(v[5]),
        ),
        agriculture=AgricultureState(
            arable_land=float(v[6]),
            potentially_arable_land=float(v[7]),
        ),
        resources=ResourceState(nonrenewable_resources=float(v[8])),
        pollution=PollutionState(persistent_pollution=float(v[9])),
    )


def from_vector(time, vector):
    """
    Rebuild a physical world state from a stock vector.

    Parameters
    ----------
    time : float
        Calendar year of the new state
    vector : array_like of length 10
        Stocks in vector order

    Returns
    -------
    WorldState
        Every stock clamped to be nonnegative; ``fraction_remaining`` set to
        the resource stock clamped into [0, 1]; all other auxiliaries zero.
        They must be recomputed by the sector functions before being read.

    Raises
    ------
    ValueError
        If ``vector`` does not hold exactly ten values.
    """
    v = np.maximum(np.asarray(vector, dtype=float), 0.0)
    state = stocks_state(time, v)
    resources = replace(
        state.resources,
        fraction_remaining=float(np.clip(v[RESOURCE_INDEX], 0.0, 1.0)),
    )
    return replace(state, resources=resources)


def zero_state(time=0.0):
    """A state with every stock and auxiliary at zero."""
    return stocks_state(time, np.zeros(N_STOCKS))


def add_states(a, b):
    """Stock-wise sum; the result keeps ``a.time`` and has zero auxiliaries."""
    return stocks_state(a.time, to_vector(a) + to_vector(b))


def scale_state(state, factor):
    """Stock-wise product with a scalar; auxiliaries in the result are zero."""
    return stocks_state(state.time, to_vector(state) * float(factor))


def stock_values(state):
    """Return ``{stock name: value}`` for the ten stocks."""
    return dict(zip(STOCK_NAMES, to_vector(state)))


def field_value(state, path):
    """
    Resolve a dotted path such as ``'agriculture.food_per_capita'``.

    ``'time'`` resolves to the state's year. Raises AttributeError for an
    unknown path.
    """
    value = state
    for part in path.split('.'):
        if part.startswith('_'):
            raise AttributeError(path)
        value = getattr(value, part)
    return float(value)
