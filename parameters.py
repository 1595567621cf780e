"""
Scenario parameters, presets and initial conditions for the world model.

This module provides:
1. Scenario parameters - policy levers and solver settings, grouped by sector
2. Parameter descriptors - labels, units and slider ranges for every policy lever
3. Named presets (business as usual, comprehensive technology, stabilized world)
4. Calibrated 1900 initial conditions
5. Configuration loading from JSON with command-line overrides

Parameters are plain frozen dataclasses; variants are made with
``dataclasses.replace``. The engine performs no range checks, so descriptor
ranges are advisory.
"""

import copy
import json
from dataclasses import dataclass, field, fields, replace, asdict
from datetime import datetime, timezone

import numpy as np
from scipy.optimize import root_scalar

from constants import LOOSE_EPSILON, MAX_ITERATIONS
from world_state import (
    WorldState,
    PopulationState,
    CapitalState,
    AgricultureState,
    ResourceState,
    PollutionState,
    STOCK_NAMES,
    to_vector,
    from_vector,
)
from sectors import calculate_resource_auxiliaries, calculate_capital_tendencies


# =============================================================================
# Parameter Dataclasses
# =============================================================================

def _now_iso():
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ScenarioMeta:
    """
    Descriptive information attached to a scenario.

    Attributes
    ----------
    id : str
        Short identifier, used in file names and comparison tables
    name : str
        Human-readable name
    description : str
        One-paragraph description of the policy mix
    color_hex : str
        Plot color, e.g. '#e63946'
    created_at : str
        ISO-8601 creation timestamp
    """
    id: str = 'custom'
    name: str = 'Custom scenario'
    description: str = ''
    color_hex: str = '#264653'
    created_at: str = field(default_factory=_now_iso)


@dataclass(frozen=True)
class ScenarioParameters:
    """
    Policy levers and solver settings for one simulation run.

    Population
    ----------
    family_planning_start_year : float
        Year the family-planning program starts ramping in
    family_planning_year : float
        Year family planning reaches full efficacy
    family_planning_efficacy : float
        Maximum efficacy of family planning [0, 1]
    health_investment_multiplier : float
        Scales service output per capita available to health

    Capital
    -------
    industrial_depreciation_rate : float
        Industrial capital depreciation (yr^-1)
    service_depreciation_rate : float
        Service capital depreciation (yr^-1)
    technology_growth_rate : float
        Annual productivity growth compounding after 1970
    investment_rate : float
        Share of industrial output reinvested in industrial capital

    Agriculture
    -----------
    agricultural_technology : float
        Multiplier on land yield
    land_protection_fraction : float
        Erosion reduction, effective range [0, 0.5]
    subsistence_food_per_capita : float
        Subsistence food requirement (kg/person/yr)

    Resources
    ---------
    resource_efficiency : float
        Divides the resource use per unit of output
    initial_nnr_fraction : float
        Initial resource endowment as a fraction of the 1900 reference

    Pollution
    ---------
    pollution_control : float
        Fraction of pollution generation abated [0, 1]

    Solver
    ------
    start_year, end_year : float
        Integration interval (calendar years)
    time_step : float
        RK4 step (yr)
    """
    meta: ScenarioMeta = field(default_factory=ScenarioMeta)

    # Population
    family_planning_start_year: float = 1900.0
    family_planning_year: float = 2000.0
    family_planning_efficacy: float = 0.75
    health_investment_multiplier: float = 1.0

    # Capital
    industrial_depreciation_rate: float = 0.05
    service_depreciation_rate: float = 0.05
    technology_growth_rate: float = 0.002
    investment_rate: float = 0.12

    # Agriculture
    agricultural_technology: float = 1.0
    land_protection_fraction: float = 0.0
    subsistence_food_per_capita: float = 230.0

    # Resources
    resource_efficiency: float = 1.0
    initial_nnr_fraction: float = 1.0

    # Pollution
    pollution_control: float = 0.0

    # Solver
    start_year: float = 1900.0
    end_year: float = 2100.0
    time_step: float = 1.0


SOLVER_FIELDS = ('start_year', 'end_year', 'time_step')


def parameter_names():
    """Names of every numeric scenario parameter (excludes ``meta``)."""
    return [f.name for f in fields(ScenarioParameters) if f.name != 'meta']


@dataclass(frozen=True)
class ParameterDescriptor:
    """Display and range information for one policy lever."""
    field: str
    label: str
    unit: str
    min: float
    max: float
    default: float
    step: float
    sector: str
    description: str


_DEFAULTS = ScenarioParameters()


def _descriptor(name, label, unit, low, high, step, sector, description):
    return ParameterDescriptor(name, label, unit, low, high, getattr(_DEFAULTS, name),
                               step, sector, description)


def parameter_descriptors():
    """
    Return descriptors for every policy lever.

    Returns
    -------
    list of ParameterDescriptor
        Grouped by sector, population first
    """
    return [
        _descriptor('family_planning_start_year', 'Family planning start', 'year',
                    1900.0, 2100.0, 1.0, 'population',
                    'Year the family-planning program starts ramping in'),
        _descriptor('family_planning_year', 'Family planning full effect', 'year',
                    1950.0, 2100.0, 1.0, 'population',
                    'Year family planning reaches full effectiveness'),
        _descriptor('family_planning_efficacy', 'Family planning efficacy', 'fraction',
                    0.0, 1.0, 0.05, 'population',
                    'Maximum reduction of fertility through family planning'),
        _descriptor('health_investment_multiplier', 'Health investment', 'multiplier',
                    0.5, 3.0, 0.1, 'population',
                    'Scales the health services available per person'),
        _descriptor('industrial_depreciation_rate', 'Industrial depreciation', '1/yr',
                    0.01, 0.15, 0.005, 'capital',
                    'Annual depreciation of industrial capital'),
        _descriptor('service_depreciation_rate', 'Service depreciation', '1/yr',
                    0.01, 0.15, 0.005, 'capital',
                    'Annual depreciation of service capital'),
        _descriptor('technology_growth_rate', 'Technology growth', '1/yr',
                    0.0, 0.05, 0.001, 'capital',
                    'Annual productivity growth compounding after 1970'),
        _descriptor('investment_rate', 'Investment rate', 'fraction',
                    0.05, 0.3, 0.01, 'capital',
                    'Share of industrial output reinvested in industry'),
        _descriptor('agricultural_technology', 'Agricultural technology', 'multiplier',
                    0.5, 4.0, 0.1, 'agriculture',
                    'Multiplier on land yield'),
        _descriptor('land_protection_fraction', 'Land protection', 'fraction',
                    0.0, 0.5, 0.05, 'agriculture',
                    'Reduction of soil erosion on arable land'),
        _descriptor('subsistence_food_per_capita', 'Subsistence food', 'kg/person/yr',
                    100.0, 500.0, 10.0, 'agriculture',
                    'Food per person needed for subsistence'),
        _descriptor('resource_efficiency', 'Resource efficiency', 'multiplier',
                    0.5, 10.0, 0.1, 'resources',
                    'Divides non-renewable resource use per unit of output'),
        _descriptor('initial_nnr_fraction', 'Initial resources', 'fraction',
                    0.1, 2.0, 0.1, 'resources',
                    'Initial non-renewable endowment relative to the reference'),
        _descriptor('pollution_control', 'Pollution control', 'fraction',
                    0.0, 1.0, 0.05, 'pollution',
                    'Fraction of pollution generation abated'),
    ]


# =============================================================================
# Presets
# =============================================================================

def business_as_usual():
    """Historical policies continued, no family planning."""
    return ScenarioParameters(
        meta=ScenarioMeta(
            id='bau',
            name='Business as usual',
            description='Historical trends continue without family planning or '
                        'additional technology or pollution policy.',
            color_hex='#e63946',
        ),
        family_planning_efficacy=0.0,
    )


def comprehensive_technology():
    """Aggressive resource, pollution and agricultural technology, no demographic policy change."""
    return ScenarioParameters(
        meta=ScenarioMeta(
            id='technology',
            name='Comprehensive technology',
            description='Resource efficiency, pollution abatement and higher land '
                        'yields, with faster technological progress.',
            color_hex='#2a9d8f',
        ),
        resource_efficiency=4.0,
        pollution_control=0.8,
        agricultural_technology=2.0,
        technology_growth_rate=0.02,
    )


def stabilized_world():
    """Technology policies combined with early, effective family planning and land protection."""
    return ScenarioParameters(
        meta=ScenarioMeta(
            id='stabilized',
            name='Stabilized world',
            description='Technology policies combined with family planning from '
                        '1975 and soil protection.',
            color_hex='#457b9d',
        ),
        resource_efficiency=4.0,
        pollution_control=0.8,
        agricultural_technology=2.0,
        technology_growth_rate=0.015,
        family_planning_efficacy=0.95,
        family_planning_year=1975.0,
        land_protection_fraction=0.3,
    )


PRESETS = {
    'bau': business_as_usual,
    'technology': comprehensive_technology,
    'stabilized': stabilized_world,
}


def get_preset(name):
    """
    Return a fresh copy of the named preset.

    Raises
    ------
    ValueError
        If ``name`` is not a known preset.
    """
    if name not in PRESETS:
        raise ValueError(f"Unknown preset '{name}'. Valid presets: {', '.join(PRESETS)}")
    return PRESETS[name]()


def with_overrides(params, values):
    """
    Return a copy of ``params`` with the given parameter values replaced.

    Raises
    ------
    ValueError
        If a name is not a scenario parameter.
    """
    valid = set(parameter_names())
    unknown = sorted(set(values) - valid)
    if unknown:
        raise ValueError(f"Unknown scenario parameter(s): {', '.join(unknown)}")
    return replace(params, **{name: float(value) for name, value in values.items()})


# =============================================================================
# Initial Conditions
# =============================================================================

def initial_conditions_1900(params=None):
    """
    Calibrated world state for 1900.

    Parameters
    ----------
    params : ScenarioParameters, optional
        Supplies the start year and the initial resource endowment.
        Defaults to 1900 and a full endowment.

    Returns
    -------
    WorldState
        1.6 billion people, 0.2 trillion USD industrial capital, 0.9 billion
        hectares under cultivation, food per capita 400 kg/yr.
    """
    start_year = 1900.0 if params is None else params.start_year
    nnr = 1.0 if params is None else params.initial_nnr_fraction

    return WorldState(
        time=start_year,
        population=PopulationState(
            cohort_0_14=0.60e9,
            cohort_15_44=0.65e9,
            cohort_45_64=0.27e9,
            cohort_65_plus=0.08e9,
        ),
        capital=CapitalState(
            industrial_capital=0.2e12,
            service_capital=0.32e12,
        ),
        agriculture=AgricultureState(
            arable_land=0.9e9,
            potentially_arable_land=2.3e9,
            food_per_capita=400.0,
        ),
        resources=ResourceState(
            nonrenewable_resources=nnr,
            fraction_remaining=float(np.clip(nnr, 0.0, 1.0)),
        ),
        pollution=PollutionState(
            persistent_pollution=0.05,
            pollution_index=0.05,
        ),
    )


def equilibrium_service_capital(state, params, tables):
    """
    Service capital at which service investment balances depreciation.

    Parameters
    ----------
    state : WorldState
        Supplies population, industrial capital, resources and time
    params : ScenarioParameters
    tables : WorldLookupTables

    Returns
    -------
    float
        Service capital (USD) with dSC/dt = 0 for the given state

    Notes
    -----
    At steady state:
        f_services(sopc / (IO / 3.6e9)) * IO = delta_S * SC

    The left side is bounded by max(f_services) * IO and nonincreasing in SC,
    so the root is bracketed by [0, 2 * max(f_services) * IO / delta_S + 1].
    """
    if params.service_depreciation_rate <= 0:
        raise ValueError("Service depreciation rate must be positive for a steady state")

    base = calculate_resource_auxiliaries(state, params, tables)
    industrial_output = calculate_capital_tendencies(base, params, tables)[1].capital.industrial_output
    if industrial_output <= 0:
        return 0.0

    def service_balance(service_capital):
        trial = replace(base, capital=replace(base.capital, service_capital=service_capital))
        return calculate_capital_tendencies(trial, params, tables)[0]['service_capital']

    max_fraction = float(np.max(tables.industrial_fraction_to_services.y))
    right = 2.0 * max_fraction * industrial_output / params.service_depreciation_rate + 1.0

    sol = root_scalar(service_balance, bracket=[0.0, right], method="brentq",
                      xtol=LOOSE_EPSILON * industrial_output, maxiter=MAX_ITERATIONS)
    if not sol.converged:
        raise RuntimeError("root_scalar did not converge for equilibrium service capital")
    return sol.root


# =============================================================================
# Configuration Loading
# =============================================================================

@dataclass
class ModelConfiguration:
    """
    Complete run configuration.

    Attributes
    ----------
    run_name : str
        Name for this run (used for output directory naming)
    params : ScenarioParameters
        Scenario levers and solver settings
    initial_state : WorldState
        Initial conditions
    """
    run_name: str
    params: ScenarioParameters
    initial_state: WorldState


def _parse_value(text):
    """Interpret a command-line value as JSON (numbers, booleans), else keep the string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def parse_command_line_overrides(args):
    """
    Split command-line arguments into positionals and ``--section.key value`` overrides.

    Parameters
    ----------
    args : list of str
        Arguments after the command name

    Returns
    -------
    tuple of (list, dict)
        Positional arguments, and overrides keyed by the dotted name without
        the leading dashes (e.g. 'scenario_parameters.investment_rate' or
        'run_name').

    Raises
    ------
    ValueError
        If an option is missing its value.
    """
    positionals = []
    overrides = {}
    i = 0
    while i < len(args):
        arg = args[i]
        if arg.startswith('--'):
            if i + 1 >= len(args):
                raise ValueError(f"Missing value for option {arg}")
            overrides[arg[2:]] = _parse_value(args[i + 1])
            i += 2
        else:
            positionals.append(arg)
            i += 1
    return positionals, overrides


def _apply_overrides(config_data, overrides):
    """Set dotted keys such as 'scenario_parameters.investment_rate' in a nested dict."""
    for dotted, value in overrides.items():
        target = config_data
        *sections, key = dotted.split('.')
        for section in sections:
            target = target.setdefault(section, {})
        target[key] = value
    return config_data


def build_configuration(config_data, overrides=None, tables=None):
    """
    Build a ModelConfiguration from a configuration dictionary.

    Parameters
    ----------
    config_data : dict
        Keys (all optional except where noted):
        - run_name: string identifier for this run
        - preset: name of a preset to start from (default: model defaults)
        - scenario: dict of ScenarioMeta fields
        - scenario_parameters: dict of ScenarioParameters fields
        - integration_parameters: dict with start_year, end_year, time_step
        - initial_state: dict of stock name -> value overriding 1900 conditions
        - equilibrium_service_capital: bool, replace initial service capital
          with its steady-state value (requires ``tables``)
    overrides : dict, optional
        Dotted-key overrides applied on top of ``config_data``
    tables : WorldLookupTables, optional

    Returns
    -------
    ModelConfiguration

    Raises
    ------
    ValueError
        For unknown presets, parameter names or stock names.
    """
    config_data = _apply_overrides(copy.deepcopy(config_data), overrides or {})

    preset = config_data.get('preset')
    params = get_preset(preset) if preset else ScenarioParameters()

    if 'scenario' in config_data:
        params = replace(params, meta=replace(params.meta, **config_data['scenario']))

    integration = config_data.get('integration_parameters', {})
    unknown = sorted(set(integration) - set(SOLVER_FIELDS))
    if unknown:
        raise ValueError(f"Unknown integration parameter(s): {', '.join(unknown)}")

    values = dict(config_data.get('scenario_parameters', {}))
    values.update(integration)
    params = with_overrides(params, values)

    run_name = config_data.get('run_name', params.meta.id)

    initial_state = initial_conditions_1900(params)
    stock_overrides = config_data.get('initial_state', {})
    if stock_overrides:
        unknown = sorted(set(stock_overrides) - set(STOCK_NAMES))
        if unknown:
            raise ValueError(f"Unknown stock(s) in initial_state: {', '.join(unknown)}")
        vector = to_vector(initial_state)
        for name, value in stock_overrides.items():
            vector[STOCK_NAMES.index(name)] = float(value)
        fpc = initial_state.agriculture.food_per_capita
        initial_state = from_vector(initial_state.time, vector)
        initial_state = replace(initial_state,
                                agriculture=replace(initial_state.agriculture, food_per_capita=fpc))

    if config_data.get('equilibrium_service_capital', False):
        if tables is None:
            raise ValueError("equilibrium_service_capital requires lookup tables")
        service_capital = equilibrium_service_capital(initial_state, params, tables)
        initial_state = replace(initial_state,
                                capital=replace(initial_state.capital, service_capital=service_capital))

    return ModelConfiguration(run_name=run_name, params=params, initial_state=initial_state)


def load_configuration(config_path, overrides=None, tables=None):
    """
    Load a run configuration from a JSON file.

    Parameters
    ----------
    config_path : str
        Path to JSON configuration file (see ``build_configuration`` for keys)
    overrides : dict, optional
        Dotted-key overrides from the command line
    tables : WorldLookupTables, optional
        Needed only when the file asks for equilibrium service capital

    Returns
    -------
    ModelConfiguration

    See config_bau.json for an example.
    """
    with open(config_path, 'r') as f:
        config_data = json.load(f)
    return build_configuration(config_data, overrides, tables)


def scenario_to_dict(params):
    """JSON-serializable dictionary of a scenario (meta plus all parameters)."""
    return asdict(params)

