"""
Utilities for comparing multiple world model scenarios.

Provides functions for:
- Running several presets with a shared table set
- Discovering saved result directories and loading their CSV files
- Creating Excel comparison workbooks
"""

import glob
from pathlib import Path

import pandas as pd
import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill
from openpyxl.utils import get_column_letter

from parameters import get_preset, initial_conditions_1900
from world_model import Rk4Solver
from output import SimulationOutput


HEADER_FILL = PatternFill(start_color='CCCCCC', end_color='CCCCCC', fill_type='solid')

# (column, sheet title) compared across scenarios
COMPARISON_VARIABLES = [
    ('population', 'Population'),
    ('life_expectancy', 'Life Expectancy'),
    ('fertility_rate', 'Total Fertility'),
    ('birth_rate', 'Birth Rate'),
    ('death_rate', 'Death Rate'),
    ('industrial_output', 'Industrial Output'),
    ('industrial_output_per_capita', 'Industrial Output Per Capita'),
    ('service_output_per_capita', 'Service Output Per Capita'),
    ('food_per_capita', 'Food Per Capita'),
    ('arable_land', 'Arable Land'),
    ('land_yield', 'Land Yield'),
    ('nnr_fraction', 'Resources Remaining'),
    ('pollution_index', 'Pollution Index'),
]


def run_scenarios(preset_names, tables, initial_state=None):
    """
    Integrate several presets from the same initial conditions.

    Parameters
    ----------
    preset_names : list of str
        Keys of ``parameters.PRESETS``
    tables : WorldLookupTables
        Shared by every run
    initial_state : WorldState, optional
        Defaults to the 1900 conditions of each preset

    Returns
    -------
    dict
        {scenario name: SimulationOutput, ...} in the order given

    Raises
    ------
    DivergenceError
        If any scenario diverges.
    """
    solver = Rk4Solver(tables)
    outputs = {}
    for preset_name in preset_names:
        params = get_preset(preset_name)
        start = initial_state if initial_state is not None else initial_conditions_1900(params)
        output = SimulationOutput(solver.solve(start, params), params)
        outputs[output.scenario_name] = output
    return outputs


def outputs_to_case_data(outputs):
    """Convert {name: SimulationOutput} to {name: DataFrame}."""
    return {name: output.to_dataframe() for name, output in outputs.items()}


def discover_result_directories(path_patterns):
    """
    Discover saved result directories from path patterns.

    Expands glob patterns and keeps directories that contain results.csv.

    Parameters
    ----------
    path_patterns : list of str
        Directory paths or glob patterns, e.g. ['data/output/bau_*/']

    Returns
    -------
    list of Path
        Sorted list of directories containing results.csv

    Raises
    ------
    ValueError
        If no valid directories found
    """
    directories = []

    for pattern in path_patterns:
        for match in glob.glob(pattern):
            path = Path(match)
            if path.is_dir() and (path / 'results.csv').exists():
                directories.append(path)

    if not directories:
        raise ValueError(f"No valid result directories found for patterns: {path_patterns}")

    return sorted(set(directories))


def generate_case_name(directory_path):
    """Use the directory name as the case name."""
    return directory_path.name


def load_results_csvs(directories):
    """
    Load results.csv from multiple directories.

    Parameters
    ----------
    directories : list of Path
        Result directories

    Returns
    -------
    dict
        {case_name: pd.DataFrame, ...}; directories without results.csv are
        skipped with a warning.
    """
    data = {}
    for directory in directories:
        case_name = generate_case_name(directory)
        csv_path = directory / 'results.csv'
        if csv_path.exists():
            data[case_name] = pd.read_csv(csv_path)
        else:
            print(f"Warning: results.csv not found in {directory}, skipping this case")

    return data


def _header_cell(cell, value):
    cell.value = value
    cell.font = Font(bold=True)
    cell.fill = HEADER_FILL
    cell.alignment = Alignment(horizontal='center')


def create_scenarios_sheet(wb, sources):
    """
    Create sheet listing the compared cases.

    Parameters
    ----------
    wb : openpyxl.Workbook
        Workbook to add sheet to
    sources : dict
        {case_name: description, ...}, e.g. a scenario description or the
        directory a case was loaded from
    """
    ws = wb.create_sheet('Scenarios')
    _header_cell(ws['A1'], 'Case Name')
    _header_cell(ws['B1'], 'Source')

    for row_idx, (case_name, source) in enumerate(sources.items(), start=2):
        ws.cell(row_idx, 1, case_name)
        ws.cell(row_idx, 2, str(source))


def create_comparison_xlsx(case_data, output_path, sources=None):
    """
    Create Excel workbook comparing time series across scenarios.

    Parameters
    ----------
    case_data : dict
        {case_name: results_df, ...}; every DataFrame needs a 'year' column
    output_path : Path or str
        Output Excel file path
    sources : dict, optional
        {case_name: description} for the Scenarios sheet

    Notes
    -----
    Workbook structure:
    - Sheet 1: "Scenarios" - compared cases and where they came from
    - One sheet per variable in COMPARISON_VARIABLES present in any case
      - Column A: Year
      - Columns B+: One column per case

    Cases are aligned on the first case's years; a case without a sample at
    that year leaves the cell empty.
    """
    if not case_data:
        print("No results data available - skipping comparison workbook")
        return

    wb = openpyxl.Workbook()
    wb.remove(wb.active)  # Remove default sheet

    create_scenarios_sheet(wb, sources or {name: '' for name in case_data})

    case_names = list(case_data.keys())
    years = next(iter(case_data.values()))['year'].values
    indexed = {name: df.set_index('year') for name, df in case_data.items()}

    for var_name, sheet_title in COMPARISON_VARIABLES:
        if not any(var_name in df.columns for df in case_data.values()):
            continue

        ws = wb.create_sheet(sheet_title[:31])
        _header_cell(ws['A1'], 'Year')
        for col_idx, case_name in enumerate(case_names, start=2):
            _header_cell(ws.cell(1, col_idx), case_name)

        for row_idx, year in enumerate(years, start=2):
            ws.cell(row_idx, 1, float(year))
            for col_idx, case_name in enumerate(case_names, start=2):
                df = indexed[case_name]
                if var_name in df.columns and year in df.index:
                    ws.cell(row_idx, col_idx, float(df.at[year, var_name]))

    # Auto-size columns
    for sheet in wb.worksheets:
        for column in sheet.columns:
            max_length = 0
            column_letter = get_column_letter(column[0].column)
            for cell in column:
                if cell.value:
                    max_length = max(max_length, len(str(cell.value)))
            sheet.column_dimensions[column_letter].width = max_length + 2

    wb.save(output_path)
    wb.close()
    print(f"Comparison Excel workbook saved to: {output_path}")
