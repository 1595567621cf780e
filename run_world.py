#!/usr/bin/env python3
"""
Command-line driver for the world model.

Usage:
    python run_world.py simulate [preset | config.json] [options] [--section.key value ...]
    python run_world.py validate
    python run_world.py presets
    python run_world.py compare <preset> <preset> ... [--xlsx file] [--pdf file]

Simulate options:
    --run_name NAME       name used for the output directory (with --save)
    --output FILE.csv     write the trajectory to a CSV file
    --chart FILE.png      write the normalized overview chart
    --save true           write CSV and PDF plots to data/output/{run_name}_{timestamp}

Any --scenario_parameters.<name> or --integration_parameters.<name> option
overrides the corresponding parameter, e.g.
    python run_world.py simulate bau --scenario_parameters.investment_rate 0.15
"""

import logging
import os
import sys
import time

from lookup_tables import load_tables
from parameters import (
    PRESETS,
    build_configuration,
    load_configuration,
    parameter_descriptors,
    parse_command_line_overrides,
)
from world_model import Rk4Solver, DivergenceError, InvalidInitialConditionsError, validate_initial_state
from output import SimulationOutput, write_results_csv, save_results
from visualization_utils import plot_normalized_overview, create_comparison_pdf
from comparison_utils import run_scenarios, outputs_to_case_data, create_comparison_xlsx
from validation import validate_business_as_usual, all_passed

logger = logging.getLogger(__name__)

COMMANDS = ('simulate', 'validate', 'presets', 'compare')

# Options consumed by the driver rather than the configuration
DRIVER_OPTIONS = ('run_name', 'output', 'chart', 'save', 'xlsx', 'pdf')


def print_header(text):
    """Print formatted section header."""
    print(f"\n{'=' * 80}")
    print(f"  {text}")
    print(f"{'=' * 80}\n")


def print_usage():
    print(__doc__)


def print_summary(output, every=10):
    """Print a table of key variables every ``every`` samples."""
    print(f"{'Year':>6} {'Population':>12} {'LifeExp':>8} {'TFR':>6} {'IOPC':>9} "
          f"{'FPC':>8} {'NNR':>7} {'PollIdx':>8}")
    print('-' * 72)
    for i, state in enumerate(output.states):
        if i % every != 0 and i != len(output.states) - 1:
            continue
        print(f"{state.time:6.0f} "
              f"{state.population.population / 1e9:10.3f} B "
              f"{state.population.life_expectancy:8.1f} "
              f"{state.population.fertility_rate:6.2f} "
              f"{state.capital.industrial_output_per_capita:9.1f} "
              f"{state.agriculture.food_per_capita:8.1f} "
              f"{state.resources.fraction_remaining:7.3f} "
              f"{state.pollution.pollution_index:8.2f}")


def split_options(overrides):
    """Separate driver options from configuration overrides."""
    options = {key: overrides.pop(key) for key in DRIVER_OPTIONS if key in overrides}
    return options, overrides


def simulate(args, tables):
    positionals, overrides = parse_command_line_overrides(args)
    options, overrides = split_options(overrides)

    source = positionals[0] if positionals else 'bau'
    if source.endswith('.json'):
        config = load_configuration(source, overrides, tables)
    else:
        config = build_configuration({'preset': source}, overrides, tables)
    if 'run_name' in options:
        config.run_name = str(options['run_name'])

    params = config.params
    validate_initial_state(config.initial_state)

    print_header(f"SIMULATING: {params.meta.name}")
    print(f"Run name:   {config.run_name}")
    print(f"Years:      {params.start_year:.0f}-{params.end_year:.0f}, dt = {params.time_step}")

    start_time = time.time()
    states = Rk4Solver(tables).solve(config.initial_state, params)
    output = SimulationOutput(states, params)
    print(f"Completed {len(states) - 1} steps in {time.time() - start_time:.2f} s\n")

    print_summary(output)

    if 'output' in options:
        path = str(options['output'])
        directory, filename = os.path.split(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        write_results_csv(output.to_results_dict(), directory or '.', filename)
        print(f"\nResults written to: {path}")

    if 'chart' in options:
        path = plot_normalized_overview(output, str(options['chart']))
        print(f"Chart written to: {path}")

    if options.get('save'):
        paths = save_results(output, config.run_name)
        print(f"\nOutput directory: {paths['output_dir']}")
        print(f"  CSV: {paths['csv_file']}")
        print(f"  PDF: {paths['pdf_file']}")

    return output


def validate(args, tables):
    print_header("VALIDATING BUSINESS-AS-USUAL RUN")
    output = run_scenarios(['bau'], tables)
    output = next(iter(output.values()))

    checks = validate_business_as_usual(output)
    for check in checks:
        mark = '✓' if check.passed else '✗'
        print(f"  {mark} {check.name:<28} {check.message}")

    passed = all_passed(checks)
    print(f"\n{sum(c.passed for c in checks)}/{len(checks)} checks passed")
    return passed


def list_presets(args, tables):
    print_header("PRESETS")
    for key, factory in PRESETS.items():
        params = factory()
        print(f"{key:<12} {params.meta.name}")
        print(f"{'':<12} {params.meta.description}")

    print_header("PARAMETERS")
    sector = None
    for d in parameter_descriptors():
        if d.sector != sector:
            sector = d.sector
            print(f"\n[{sector}]")
        print(f"  {d.field:<32} default {d.default:<10g} range [{d.min:g}, {d.max:g}] {d.unit}")


def compare(args, tables):
    positionals, overrides = parse_command_line_overrides(args)
    options, _ = split_options(overrides)
    preset_names = positionals or list(PRESETS)

    print_header(f"COMPARING: {', '.join(preset_names)}")
    outputs = run_scenarios(preset_names, tables)

    for name, output in outputs.items():
        print(f"\n{name}")
        print_summary(output, every=25)

    case_data = outputs_to_case_data(outputs)
    sources = {name: output.params.meta.description for name, output in outputs.items()}
    colors = {name: output.params.meta.color_hex for name, output in outputs.items()}

    create_comparison_xlsx(case_data, str(options.get('xlsx', 'scenario_comparison.xlsx')), sources)
    create_comparison_pdf(case_data, str(options.get('pdf', 'scenario_comparison.pdf')), colors)


def main():
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        print_usage()
        sys.exit(1)

    command, args = sys.argv[1], sys.argv[2:]
    tables = load_tables()

    try:
        if command == 'simulate':
            simulate(args, tables)
        elif command == 'validate':
            if not validate(args, tables):
                sys.exit(1)
        elif command == 'presets':
            list_presets(args, tables)
        elif command == 'compare':
            compare(args, tables)
    except DivergenceError as e:
        logger.error(f"{e} (variable={e.variable}, year={e.year})")
        sys.exit(2)
    except (InvalidInitialConditionsError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
