"""
Sector derivative functions for the world model.

Each sector function takes an immutable WorldState, the scenario parameters
and the lookup tables, and returns a tuple ``(tendencies, state)``:

- ``tendencies`` maps the sector's stock names to their time derivatives
- ``state`` is a new WorldState whose sector auxiliaries are freshly computed

Within one evaluation the sectors run as a strict pipeline (see
``world_model.calculate_auxiliaries``); each reads only auxiliaries that an
earlier stage of the same evaluation has written.
"""

from dataclasses import replace

import numpy as np
from scipy.optimize import root_scalar

from constants import (
    EPSILON,
    LOOSE_EPSILON,
    MAX_ITERATIONS,
    REFERENCE_POPULATION,
    TECHNOLOGY_REFERENCE_YEAR,
)

#========================================================================================
# Sector calibration

# Capital
INDUSTRIAL_CAPITAL_OUTPUT_RATIO_1970 = 3.0   # yr
SERVICE_CAPITAL_OUTPUT_RATIO_1970 = 1.0      # yr

# Resources: fraction of the 1900 endowment used per USD of industrial output
RESOURCE_USE_PER_OUTPUT = 3.0e-15

# Agriculture
LAND_YIELD_1900 = 600.0                  # kg/ha/yr
TOTAL_POTENTIAL_ARABLE_LAND = 3.2e9      # ha
LAND_DEVELOPMENT_TIME = 10.0             # yr
LAND_DEVELOPMENT_SHARE = 0.1             # share of agricultural investment spent on new land
LAND_EROSION_RATE = 0.002                # yr^-1
MAX_LAND_PROTECTION = 0.5

# Pollution
PERSISTENT_POLLUTION_REFERENCE = 1.0     # stock giving pollution index 1
INDUSTRIAL_POLLUTION_FACTOR = 1.1e-10    # units/person/yr at reference iopc
AGRICULTURAL_POLLUTION_FACTOR = 5.0e-11  # units/ha/yr at reference inputs
IOPC_POLLUTION_REFERENCE = 250.0         # USD/person/yr
INPUTS_POLLUTION_REFERENCE = 50.0        # USD/ha/yr

# Population
LIFE_EXPECTANCY_BASE = 20.0              # yr
MIN_LIFE_EXPECTANCY = 5.0
MAX_LIFE_EXPECTANCY = 85.0
MIN_FERTILITY = 0.5
MAX_FERTILITY = 8.0
REPRODUCTIVE_SPAN = 30.0                 # yr spent in the 15-44 cohort
FEMALE_SHARE = 0.5
COHORT_DURATION_0_14 = 15.0
COHORT_DURATION_15_44 = 30.0
COHORT_DURATION_45_64 = 20.0
# Mortality relative to 1 / life expectancy, by cohort
MORTALITY_WEIGHTS = (0.8, 0.5, 1.0, 3.0)


def pollution_index(state):
    """Persistent pollution normalized to its reference stock."""
    return state.pollution.persistent_pollution / PERSISTENT_POLLUTION_REFERENCE


def food_ratio(food_per_capita, params):
    """Food per capita relative to subsistence; 1.0 when subsistence is not positive."""
    subsistence = params.subsistence_food_per_capita
    if subsistence <= 0:
        return 1.0
    return food_per_capita / subsistence


#========================================================================================
# Resources

def calculate_resource_auxiliaries(state, params, tables):
    """
    Clamp the resource stock into the fraction-remaining auxiliary.

    Runs first in the pipeline; capital needs the fraction remaining.
    """
    fraction = float(np.clip(state.resources.nonrenewable_resources, 0.0, 1.0))
    return replace(state, resources=replace(state.resources, fraction_remaining=fraction))


def calculate_resource_tendencies(state, params, tables):
    """
    Resource depletion from industrial activity.

    dNNR/dt = -(population * iopc * RESOURCE_USE_PER_OUTPUT / resource_efficiency)

    Reads the industrial output per capita that the capital sector wrote in the
    same evaluation. The derivative is never positive and is zero for an empty
    world.
    """
    population = state.population.population
    if population <= 0:
        extraction = 0.0
    else:
        iopc = max(state.capital.industrial_output_per_capita, 0.0)
        efficiency = max(params.resource_efficiency, EPSILON)
        extraction = population * iopc * RESOURCE_USE_PER_OUTPUT / efficiency

    return {'nonrenewable_resources': -extraction}, state


#========================================================================================
# Capital

def technology_multiplier(time, params):
    """Compound technological progress since 1970; 1.0 before."""
    years = max(time - TECHNOLOGY_REFERENCE_YEAR, 0.0)
    return (1.0 + params.technology_growth_rate) ** years


def calculate_capital_tendencies(state, params, tables):
    """
    Industrial and service capital.

    Parameters
    ----------
    state : WorldState
        Must carry the fraction of resources remaining for this evaluation
    params : ScenarioParameters
    tables : WorldLookupTables

    Returns
    -------
    tuple of (dict, WorldState)
        Derivatives of 'industrial_capital' and 'service_capital', and the
        state with industrial output, iopc, service output per capita and the
        service allocation filled in.

    Notes
    -----
    1. Capital-output ratio rises as resources deplete (curve on fraction remaining)
    2. A growing share of capital is diverted to resource extraction as resources deplete
    3. Industrial output = productive capital * technology / capital-output ratio
    4. Service allocation falls as service output per capita (normalized by
       industrial output per 1970 person) rises
    5. Investment minus depreciation for each capital stock
    """
    capital = state.capital
    fraction_remaining = state.resources.fraction_remaining
    population = max(state.population.population, 1.0)

    capital_output_ratio = (INDUSTRIAL_CAPITAL_OUTPUT_RATIO_1970
                            * tables.capital_output_ratio_resources(fraction_remaining))
    extraction_fraction = float(np.clip(
        tables.capital_fraction_resource_extraction(fraction_remaining), 0.0, 0.95))

    productive_capital = (capital.industrial_capital * (1.0 - extraction_fraction)
                          * technology_multiplier(state.time, params))
    industrial_output = max(productive_capital / capital_output_ratio, 0.0)
    iopc = industrial_output / population

    service_output = capital.service_capital / SERVICE_CAPITAL_OUTPUT_RATIO_1970
    sopc = service_output / population

    normalized_services = sopc / max(industrial_output / REFERENCE_POPULATION, EPSILON)
    fraction_to_services = tables.industrial_fraction_to_services(normalized_services)

    d_industrial = (industrial_output * params.investment_rate
                    - capital.industrial_capital * params.industrial_depreciation_rate)
    d_service = (industrial_output * fraction_to_services
                 - capital.service_capital * params.service_depreciation_rate)

    updated = replace(
        capital,
        industrial_output=industrial_output,
        industrial_output_per_capita=iopc,
        service_output_per_capita=sopc,
        fraction_industrial_to_services=fraction_to_services,
    )
    tendencies = {
        'industrial_capital': d_industrial,
        'service_capital': d_service,
    }
    return tendencies, replace(state, capital=updated)


#========================================================================================
# Agriculture

def _food_production(fraction_to_agriculture, state, params, tables):
    """
    Food output for a given share of industrial output sent to agriculture.

    Returns (inputs per hectare, land yield, food production, food per capita).
    """
    arable = state.agriculture.arable_land
    population = max(state.population.population, 1.0)

    inputs = state.capital.industrial_output * fraction_to_agriculture / max(arable, 1.0)
    land_yield = (LAND_YIELD_1900
                  * tables.land_yield_multiplier_capital(inputs)
                  * tables.land_yield_multiplier_pollution(pollution_index(state))
                  * params.agricultural_technology)
    food = arable * land_yield
    return inputs, land_yield, food, food / population


def solve_food_ratio(state, params, tables):
    """
    Find the food ratio consistent with the agricultural allocation it implies.

    The share of industrial output sent to agriculture depends on food per
    capita relative to subsistence, and food per capita depends on that share.
    The implied ratio is non-increasing in the assumed ratio, so the fixed
    point is unique and is bracketed by [0, ratio at maximum allocation + 1].

    Returns
    -------
    float
        Self-consistent food ratio

    Raises
    ------
    RuntimeError
        If the root solve does not converge.
    """
    allocation = tables.industrial_fraction_to_agriculture

    def implied_minus_assumed(ratio):
        fpc = _food_production(allocation(ratio), state, params, tables)[3]
        return food_ratio(fpc, params) - ratio

    left = 0.0
    f_left = implied_minus_assumed(left)
    if f_left <= 0.0:
        return left

    max_fpc = _food_production(float(np.max(allocation.y)), state, params, tables)[3]
    right = food_ratio(max_fpc, params) + 1.0
    f_right = implied_minus_assumed(right)
    if f_right > 0.0:
        raise RuntimeError(
            f"Root not bracketed: food balance(0)={f_left}, food balance({right})={f_right}"
        )

    sol = root_scalar(implied_minus_assumed, bracket=[left, right], method="brentq",
                      xtol=LOOSE_EPSILON, maxiter=MAX_ITERATIONS)
    if not sol.converged:
        raise RuntimeError("root_scalar did not converge for food ratio")
    return sol.root


def calculate_agriculture_tendencies(state, params, tables):
    """
    Food production and land development/erosion.

    Reads industrial output written by the capital sector in the same
    evaluation. Writes food production, food per capita, land yield,
    agricultural allocation and inputs per hectare.

    Returns
    -------
    tuple of (dict, WorldState)
        Derivatives of 'arable_land' (development - erosion) and
        'potentially_arable_land' (-development).
    """
    agriculture = state.agriculture

    if params.subsistence_food_per_capita <= 0:
        ratio = 1.0
    else:
        ratio = solve_food_ratio(state, params, tables)
    fraction_to_agriculture = tables.industrial_fraction_to_agriculture(ratio)
    inputs, land_yield, food, fpc = _food_production(fraction_to_agriculture, state, params, tables)

    # Land development, paid from the agricultural allocation
    developed = float(np.clip(
        1.0 - agriculture.potentially_arable_land / TOTAL_POTENTIAL_ARABLE_LAND, 0.0, 1.0))
    development_cost = tables.land_development_cost(developed)    # USD/ha
    desired_development = (state.capital.industrial_output * fraction_to_agriculture
                           * LAND_DEVELOPMENT_SHARE / max(development_cost, 1.0))
    development = min(desired_development / LAND_DEVELOPMENT_TIME,
                      agriculture.potentially_arable_land / LAND_DEVELOPMENT_TIME)

    # Erosion accelerates with intensive cultivation
    protection = float(np.clip(params.land_protection_fraction, 0.0, MAX_LAND_PROTECTION))
    erosion = (agriculture.arable_land * LAND_EROSION_RATE
               * tables.land_erosion_multiplier(land_yield / LAND_YIELD_1900)
               * (1.0 - protection))

    updated = replace(
        agriculture,
        food_production=food,
        food_per_capita=fpc,
        land_yield=land_yield,
        fraction_industrial_to_agriculture=fraction_to_agriculture,
        agricultural_inputs_per_hectare=inputs,
    )
    tendencies = {
        'arable_land': development - erosion,
        'potentially_arable_land': -development,
    }
    return tendencies, replace(state, agriculture=updated)


#========================================================================================
# Pollution

def calculate_pollution_tendencies(state, params, tables):
    """
    Persistent pollution: generation from industry and agriculture, first-order
    assimilation with a lifetime that lengthens as pollution accumulates.

    generation = (INDUSTRIAL_POLLUTION_FACTOR * population * f_ind(iopc / iopc_ref)
                  + AGRICULTURAL_POLLUTION_FACTOR * arable * f_agr(inputs / inputs_ref))
                 * (1 - pollution_control)
    assimilation = stock / assimilation_time(index)
    """
    pollution = state.pollution
    stock = pollution.persistent_pollution
    index = pollution_index(state)

    industrial = (INDUSTRIAL_POLLUTION_FACTOR * state.population.population
                  * tables.pollution_generation_industry(
                      state.capital.industrial_output_per_capita / IOPC_POLLUTION_REFERENCE))
    agricultural = (AGRICULTURAL_POLLUTION_FACTOR * state.agriculture.arable_land
                    * tables.pollution_generation_agriculture(
                        state.agriculture.agricultural_inputs_per_hectare / INPUTS_POLLUTION_REFERENCE))
    control = float(np.clip(params.pollution_control, 0.0, 1.0))
    generation = (industrial + agricultural) * (1.0 - control)

    assimilation = stock / tables.pollution_assimilation_time(index)

    updated = replace(
        pollution,
        pollution_index=index,
        generation_rate=generation,
        assimilation_rate=assimilation,
    )
    return {'persistent_pollution': generation - assimilation}, replace(state, pollution=updated)


#========================================================================================
# Population

def family_planning_ramp(time, params):
    """
    Fraction of full family-planning efficacy reached at ``time``.

    Linear from ``family_planning_start_year`` to ``family_planning_year``;
    a step at ``family_planning_year`` when that is not after the start year.
    """
    start = params.family_planning_start_year
    full = params.family_planning_year
    if full <= start:
        return 1.0 if time >= full else 0.0
    return float(np.clip((time - start) / (full - start), 0.0, 1.0))


def calculate_population_tendencies(state, params, tables):
    """
    Four-cohort population with births, deaths and aging.

    Reads food per capita (agriculture), service and industrial output per
    capita (capital) and the pollution index (pollution) written earlier in
    the same evaluation.

    Returns
    -------
    tuple of (dict, WorldState)
        Derivatives of the four cohorts, and the state with birth rate, death
        rate, life expectancy and total fertility filled in.

    Notes
    -----
    Life expectancy = 20 yr * food * health * crowding * pollution multipliers,
    clamped to [5, 85]. Total fertility = desired family size (iopc) *
    family-planning multiplier * food-fertility multiplier, clamped to [0.5, 8].
    Births = 0.5 * cohort 15-44 * fertility / 30. Cohort mortality is
    1 / life expectancy weighted by MORTALITY_WEIGHTS. Aging moves each cohort
    to the next at a rate of 1 / cohort duration.
    """
    population = state.population
    total = population.population
    total_safe = max(total, 1.0)

    ratio = food_ratio(state.agriculture.food_per_capita, params)
    health_services = state.capital.service_output_per_capita * params.health_investment_multiplier
    crowding = total / REFERENCE_POPULATION

    life_expectancy = (LIFE_EXPECTANCY_BASE
                       * tables.life_exp_multiplier_food(ratio)
                       * tables.life_exp_multiplier_health(health_services)
                       * tables.life_exp_multiplier_crowding(crowding)
                       * tables.life_exp_multiplier_pollution(state.pollution.pollution_index))
    life_expectancy = float(np.clip(life_expectancy, MIN_LIFE_EXPECTANCY, MAX_LIFE_EXPECTANCY))

    effective_planning = params.family_planning_efficacy * family_planning_ramp(state.time, params)
    fertility = (tables.desired_family_size(state.capital.industrial_output_per_capita)
                 * tables.family_planning_multiplier(effective_planning)
                 * tables.food_fertility_multiplier(ratio))
    fertility = float(np.clip(fertility, MIN_FERTILITY, MAX_FERTILITY))

    c0 = population.cohort_0_14
    c1 = population.cohort_15_44
    c2 = population.cohort_45_64
    c3 = population.cohort_65_plus

    births = c1 * FEMALE_SHARE * fertility / REPRODUCTIVE_SPAN

    base_mortality = 1.0 / life_expectancy
    w0, w1, w2, w3 = MORTALITY_WEIGHTS
    deaths0 = c0 * base_mortality * w0
    deaths1 = c1 * base_mortality * w1
    deaths2 = c2 * base_mortality * w2
    deaths3 = c3 * base_mortality * w3

    aging0 = c0 / COHORT_DURATION_0_14
    aging1 = c1 / COHORT_DURATION_15_44
    aging2 = c2 / COHORT_DURATION_45_64

    tendencies = {
        'cohort_0_14': births - aging0 - deaths0,
        'cohort_15_44': aging0 - aging1 - deaths1,
        'cohort_45_64': aging1 - aging2 - deaths2,
        'cohort_65_plus': aging2 - deaths3,
    }

    updated = replace(
        population,
        birth_rate=births / total_safe,
        death_rate=(deaths0 + deaths1 + deaths2 + deaths3) / total_safe,
        life_expectancy=life_expectancy,
        fertility_rate=fertility,
    )
    return tendencies, replace(state, population=updated)
