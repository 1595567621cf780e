"""
Piecewise-linear response curves for the world model.

Every nonlinear relationship in the model (life expectancy multipliers,
capital-output ratios, land yield, pollution assimilation, ...) is expressed
as a lookup table: a strictly increasing set of x breakpoints with matching y
values. Evaluation clamps to the endpoints and interpolates linearly inside.

Tables are validated once, at construction, and are immutable afterwards so
that a single ``WorldLookupTables`` instance can be shared by every solver.
"""

from dataclasses import dataclass, fields

import numpy as np


class LookupTableError(ValueError):
    """Raised when a lookup table's calibration points are malformed."""


@dataclass(frozen=True, eq=False)
class LookupTable:
    """
    Piecewise-linear curve y(x) with endpoint clamping.

    Parameters
    ----------
    name : str
        Identifier used in error messages
    x : array_like
        Breakpoints, strictly increasing, at least two
    y : array_like
        Values at the breakpoints, same length as x

    Raises
    ------
    LookupTableError
        If lengths differ, fewer than two points are given, any value is not
        finite, or x is not strictly increasing.
    """
    name: str
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self):
        x = np.array(self.x, dtype=float)
        y = np.array(self.y, dtype=float)

        if x.ndim != 1 or y.ndim != 1:
            raise LookupTableError(f"Table '{self.name}': x and y must be one-dimensional")
        if len(x) != len(y):
            raise LookupTableError(
                f"Table '{self.name}': x has {len(x)} points but y has {len(y)}"
            )
        if len(x) < 2:
            raise LookupTableError(f"Table '{self.name}': at least 2 points required, got {len(x)}")
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
            raise LookupTableError(f"Table '{self.name}': all values must be finite")
        if np.any(np.diff(x) <= 0.0):
            raise LookupTableError(f"Table '{self.name}': x must be strictly increasing")

        x.flags.writeable = False
        y.flags.writeable = False
        object.__setattr__(self, 'x', x)
        object.__setattr__(self, 'y', y)

    def evaluate(self, value):
        """
        Evaluate the curve at a single point.

        Parameters
        ----------
        value : float
            Input value; anything outside [x[0], x[-1]] is clamped

        Returns
        -------
        float
            Exactly y[0] at or below the first breakpoint, exactly y[-1] at or
            above the last one, linear interpolation in between.
            NaN for a NaN input.
        """
        x = self.x
        y = self.y
        if np.isnan(value):
            return float('nan')
        if value <= x[0]:
            return float(y[0])
        if value >= x[-1]:
            return float(y[-1])

        # First breakpoint strictly greater than value; segment is [i-1, i]
        i = int(np.searchsorted(x, value, side='right'))
        x0, x1 = x[i - 1], x[i]
        y0, y1 = y[i - 1], y[i]
        return float(y0 + (y1 - y0) * (value - x0) / (x1 - x0))

    def __call__(self, value):
        return self.evaluate(value)

    def __len__(self):
        return len(self.x)


def evaluate(table, value):
    """Evaluate ``table`` at ``value`` (see ``LookupTable.evaluate``)."""
    return table.evaluate(value)


@dataclass(frozen=True)
class WorldLookupTables:
    """
    The complete set of calibrated response curves, grouped by sector.

    Population
    ----------
    life_exp_multiplier_food : x = food per capita / subsistence
    life_exp_multiplier_health : x = health services per capita (USD/person/yr)
    life_exp_multiplier_crowding : x = population / 1970 population
    life_exp_multiplier_pollution : x = persistent pollution index
    desired_family_size : x = industrial output per capita (USD/person/yr)
    family_planning_multiplier : x = effective family-planning efficacy [0, 1]
    fraction_services_health : x = service output per capita normalized
    food_fertility_multiplier : x = food per capita / subsistence

    Capital
    -------
    capital_output_ratio_resources : x = fraction of resources remaining
    industrial_fraction_to_agriculture : x = food per capita / subsistence
    industrial_fraction_to_services : x = normalized service output per capita
    jobs_per_capital : x = industrial capital per worker (normalized)
    labor_force_participation : x = working-age share of population
    capital_fraction_resource_extraction : x = fraction of resources remaining

    Agriculture
    -----------
    land_yield_multiplier_capital : x = agricultural inputs per hectare (USD/ha/yr)
    land_yield_multiplier_pollution : x = persistent pollution index
    land_erosion_multiplier : x = land yield / 1900 land yield
    land_development_cost : x = fraction of potentially arable land developed

    Pollution
    ---------
    pollution_generation_industry : x = iopc / reference iopc
    pollution_generation_agriculture : x = inputs per hectare / reference inputs
    pollution_assimilation_time : x = persistent pollution index
    """
    life_exp_multiplier_food: LookupTable
    life_exp_multiplier_health: LookupTable
    life_exp_multiplier_crowding: LookupTable
    life_exp_multiplier_pollution: LookupTable
    desired_family_size: LookupTable
    family_planning_multiplier: LookupTable
    fraction_services_health: LookupTable
    food_fertility_multiplier: LookupTable

    capital_output_ratio_resources: LookupTable
    industrial_fraction_to_agriculture: LookupTable
    industrial_fraction_to_services: LookupTable
    jobs_per_capital: LookupTable
    labor_force_participation: LookupTable
    capital_fraction_resource_extraction: LookupTable

    land_yield_multiplier_capital: LookupTable
    land_yield_multiplier_pollution: LookupTable
    land_erosion_multiplier: LookupTable
    land_development_cost: LookupTable

    pollution_generation_industry: LookupTable
    pollution_generation_agriculture: LookupTable
    pollution_assimilation_time: LookupTable

    def names(self):
        """Return the curve names in declaration order."""
        return [f.name for f in fields(self)]

    def get(self, name):
        """Return the curve called ``name``; raises KeyError if unknown."""
        if name not in self.names():
            raise KeyError(f"Unknown lookup table: {name}")
        return getattr(self, name)

    def as_dict(self):
        return {name: getattr(self, name) for name in self.names()}


def _steps(start, stop, step):
    """Evenly spaced breakpoints from start to stop inclusive."""
    n = int(round((stop - start) / step)) + 1
    return [start + i * step for i in range(n)]


# Calibration points: curve name -> (x, y)
_CALIBRATION = {
    # Population
    'life_exp_multiplier_food': (
        [0.0, 1.0, 2.0, 3.0, 4.0, 5.0],
        [0.0, 1.0, 1.43, 1.5, 1.5, 1.5],
    ),
    'life_exp_multiplier_health': (
        [0.0, 200.0, 400.0, 600.0, 800.0, 1000.0],
        [0.5, 0.76, 1.15, 1.55, 1.78, 2.0],
    ),
    'life_exp_multiplier_crowding': (
        _steps(0.0, 5.0, 0.5),
        [1.5, 1.4, 1.3, 1.2, 1.1, 1.0, 0.9, 0.8, 0.7, 0.6, 0.5],
    ),
    'life_exp_multiplier_pollution': (
        _steps(0.0, 80.0, 10.0),
        [1.0, 0.99, 0.97, 0.95, 0.90, 0.85, 0.75, 0.65, 0.55],
    ),
    'desired_family_size': (
        [0.0, 400.0, 800.0, 1200.0, 1600.0],
        [5.0, 4.0, 3.0, 2.1, 1.9],
    ),
    'family_planning_multiplier': (
        [0.0, 0.25, 0.5, 0.75, 1.0],
        [1.0, 0.9, 0.75, 0.55, 0.4],
    ),
    'fraction_services_health': (
        [0.0, 0.5, 1.0, 1.5, 2.0],
        [0.3, 0.35, 0.4, 0.45, 0.5],
    ),
    'food_fertility_multiplier': (
        [0.0, 0.5, 1.0, 1.5, 2.0],
        [0.0, 0.6, 1.0, 1.05, 1.1],
    ),

    # Capital
    'capital_output_ratio_resources': (
        _steps(0.0, 1.0, 0.1),
        [4.0, 3.2, 2.6, 2.0, 1.6, 1.25, 0.9, 0.75, 0.62, 0.55, 0.5],
    ),
    'industrial_fraction_to_agriculture': (
        [0.0, 0.5, 1.0, 1.5, 2.0, 2.5],
        [0.4, 0.25, 0.15, 0.1, 0.07, 0.05],
    ),
    'industrial_fraction_to_services': (
        [0.0, 0.5, 1.0, 1.5, 2.0],
        [0.3, 0.25, 0.2, 0.15, 0.12],
    ),
    'jobs_per_capital': (
        [0.0, 0.5, 1.0, 2.0, 3.0, 4.0],
        [0.0007, 0.0014, 0.0017, 0.0018, 0.0019, 0.002],
    ),
    'labor_force_participation': (
        [0.5, 0.6, 0.7, 0.8],
        [0.5, 0.55, 0.6, 0.65],
    ),
    'capital_fraction_resource_extraction': (
        _steps(0.0, 1.0, 0.1),
        [1.0, 0.9, 0.7, 0.5, 0.4, 0.3, 0.2, 0.14, 0.08, 0.04, 0.0],
    ),

    # Agriculture
    'land_yield_multiplier_capital': (
        _steps(0.0, 400.0, 40.0),
        [1.0, 3.0, 4.5, 5.0, 5.3, 5.6, 5.9, 6.1, 6.35, 6.6, 6.9],
    ),
    'land_yield_multiplier_pollution': (
        _steps(0.0, 60.0, 10.0),
        [1.2, 1.0, 0.85, 0.75, 0.65, 0.55, 0.5],
    ),
    'land_erosion_multiplier': (
        _steps(0.0, 2.0, 0.25),
        [0.0, 0.1, 0.3, 0.5, 0.7, 1.0, 1.5, 2.0, 2.5],
    ),
    'land_development_cost': (
        _steps(0.0, 1.0, 0.1),
        [100.0, 117.0, 137.0, 161.0, 192.0, 232.0, 282.0, 344.0, 418.0, 507.0, 616.0],
    ),

    # Pollution
    'pollution_generation_industry': (
        [0.0, 1.0, 2.0, 3.0, 4.0, 5.0],
        [0.0, 1.0, 1.5, 1.9, 2.16, 2.36],
    ),
    'pollution_generation_agriculture': (
        [0.0, 1.0, 2.0, 3.0, 4.0],
        [0.0, 1.0, 1.7, 2.2, 2.5],
    ),
    'pollution_assimilation_time': (
        _steps(0.0, 60.0, 10.0),
        [20.0, 45.0, 90.0, 150.0, 220.0, 320.0, 480.0],
    ),
}


def load_tables():
    """
    Build and validate the full set of response curves.

    Returns
    -------
    WorldLookupTables
        Immutable table set, safe to share across solvers and threads

    Raises
    ------
    LookupTableError
        If any embedded curve is malformed. This is a configuration error and
        should stop the program at startup.
    """
    tables = {name: LookupTable(name, x, y) for name, (x, y) in _CALIBRATION.items()}
    return WorldLookupTables(**tables)
