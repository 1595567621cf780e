"""
Simulation output and export for the world model.

Wraps an integrated trajectory with scenario metadata, and writes CSV files
and PDF plots of model results in timestamped directories.
"""

import os
import csv
import json
from datetime import datetime, timezone

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

from world_state import field_value
from parameters import scenario_to_dict


# Result column -> dotted path into WorldState, in output order
RESULT_COLUMNS = (
    ('year', 'time'),
    ('population', 'population.population'),
    ('cohort_0_14', 'population.cohort_0_14'),
    ('cohort_15_44', 'population.cohort_15_44'),
    ('cohort_45_64', 'population.cohort_45_64'),
    ('cohort_65_plus', 'population.cohort_65_plus'),
    ('birth_rate', 'population.birth_rate'),
    ('death_rate', 'population.death_rate'),
    ('life_expectancy', 'population.life_expectancy'),
    ('fertility_rate', 'population.fertility_rate'),
    ('industrial_capital', 'capital.industrial_capital'),
    ('service_capital', 'capital.service_capital'),
    ('industrial_output', 'capital.industrial_output'),
    ('industrial_output_per_capita', 'capital.industrial_output_per_capita'),
    ('service_output_per_capita', 'capital.service_output_per_capita'),
    ('arable_land', 'agriculture.arable_land'),
    ('potentially_arable_land', 'agriculture.potentially_arable_land'),
    ('food_production', 'agriculture.food_production'),
    ('food_per_capita', 'agriculture.food_per_capita'),
    ('land_yield', 'agriculture.land_yield'),
    ('nnr_fraction', 'resources.fraction_remaining'),
    ('persistent_pollution', 'pollution.persistent_pollution'),
    ('pollution_index', 'pollution.pollution_index'),
)

# Human-readable labels for plots
COLUMN_LABELS = {
    'population': 'Population (persons)',
    'cohort_0_14': 'Population 0-14 (persons)',
    'cohort_15_44': 'Population 15-44 (persons)',
    'cohort_45_64': 'Population 45-64 (persons)',
    'cohort_65_plus': 'Population 65+ (persons)',
    'birth_rate': 'Birth rate (1/yr)',
    'death_rate': 'Death rate (1/yr)',
    'life_expectancy': 'Life expectancy (yr)',
    'fertility_rate': 'Total fertility (children/woman)',
    'industrial_capital': 'Industrial capital ($)',
    'service_capital': 'Service capital ($)',
    'industrial_output': 'Industrial output ($/yr)',
    'industrial_output_per_capita': 'Industrial output per capita ($/person/yr)',
    'service_output_per_capita': 'Service output per capita ($/person/yr)',
    'arable_land': 'Arable land (ha)',
    'potentially_arable_land': 'Potentially arable land (ha)',
    'food_production': 'Food production (kg/yr)',
    'food_per_capita': 'Food per capita (kg/person/yr)',
    'land_yield': 'Land yield (kg/ha/yr)',
    'nnr_fraction': 'Resources remaining (fraction)',
    'persistent_pollution': 'Persistent pollution (units)',
    'pollution_index': 'Pollution index',
}


class SimulationOutput:
    """
    Integrated trajectory of one scenario.

    Parameters
    ----------
    states : list of WorldState
        Trajectory from ``integrate_model``, one state per sample
    params : ScenarioParameters
        Parameters used for the run

    Attributes
    ----------
    scenario_id, scenario_name : str
        Copied from ``params.meta``
    timeline : ndarray
        Sample years
    computed_at : str
        ISO-8601 time the output was assembled
    """

    def __init__(self, states, params):
        if not states:
            raise ValueError("SimulationOutput requires at least one state")
        self.states = list(states)
        self.params = params
        self.scenario_id = params.meta.id
        self.scenario_name = params.meta.name
        self.timeline = np.array([s.time for s in self.states])
        self.computed_at = datetime.now(timezone.utc).isoformat()

    def __len__(self):
        return len(self.states)

    def state_at_year(self, year):
        """Return the sample closest to ``year`` (earliest on ties)."""
        return self.states[int(np.argmin(np.abs(self.timeline - year)))]

    def extract_series(self, path):
        """
        Time series of a dotted state path, e.g. 'population.population'.

        Unknown paths give an all-NaN series rather than an error.
        """
        values = np.empty(len(self.states))
        for i, state in enumerate(self.states):
            try:
                values[i] = field_value(state, path)
            except AttributeError:
                values[:] = np.nan
                break
        return values

    def to_results_dict(self):
        """Dictionary of result column -> numpy array, in RESULT_COLUMNS order."""
        return {column: self.extract_series(path) for column, path in RESULT_COLUMNS}

    def to_dataframe(self):
        """pandas DataFrame of the result columns, one row per sample."""
        return pd.DataFrame(self.to_results_dict())


def create_output_directory(run_name):
    """
    Create timestamped output directory.

    Parameters
    ----------
    run_name : str
        Name of the model run

    Returns
    -------
    str
        Path to created output directory

    Notes
    -----
    Directory format: ./data/output/{run_name}_YYYYMMDD-HHMMSS
    """
    timestamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    output_dir = os.path.join('data', 'output', f'{run_name}_{timestamp}')
    os.makedirs(output_dir, exist_ok=True)
    return output_dir


def write_results_csv(results, output_dir, filename='results.csv'):
    """
    Write results dictionary to CSV file.

    Parameters
    ----------
    results : dict
        Results dictionary from ``SimulationOutput.to_results_dict()``
    output_dir : str
        Directory to write CSV file
    filename : str
        Name of CSV file

    Returns
    -------
    str
        Path to created CSV file

    Notes
    -----
    Each column is a variable, each row is a sample year.
    Column order follows the dictionary order, 'year' first.
    """
    csv_path = os.path.join(output_dir, filename)
    var_names = list(results.keys())
    n_points = len(results['year'])

    with open(csv_path, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(var_names)
        for i in range(n_points):
            writer.writerow([results[var][i] for var in var_names])

    return csv_path


def plot_results_pdf(results, output_dir, filename='plots.pdf', title='World Model Results'):
    """
    Create PDF with time series plots of all variables.

    Parameters
    ----------
    results : dict
        Results dictionary from ``SimulationOutput.to_results_dict()``
    output_dir : str
        Directory to write PDF file
    filename : str
        Name of PDF file
    title : str
        Page title

    Returns
    -------
    str
        Path to created PDF file

    Notes
    -----
    Creates multi-page PDF with 6 plots per page (2 rows x 3 columns).
    """
    pdf_path = os.path.join(output_dir, filename)
    years = results['year']
    var_names = [k for k in results.keys() if k != 'year']

    with PdfPages(pdf_path) as pdf:
        plots_per_page = 6
        n_vars = len(var_names)

        for page_start in range(0, n_vars, plots_per_page):
            fig, axes = plt.subplots(2, 3, figsize=(11, 8.5))
            fig.suptitle(title, fontsize=14, fontweight='bold')
            axes_flat = axes.flatten()

            page_end = min(page_start + plots_per_page, n_vars)
            for i, var_idx in enumerate(range(page_start, page_end)):
                var_name = var_names[var_idx]
                ax = axes_flat[i]

                ax.plot(years, results[var_name], linewidth=1.5)
                ax.set_xlabel('Year', fontsize=10)
                ax.set_ylabel(COLUMN_LABELS.get(var_name, var_name), fontsize=9)
                ax.set_title(var_name, fontsize=11, fontweight='bold')
                ax.grid(True, alpha=0.3)
                ax.ticklabel_format(style='scientific', axis='y', scilimits=(-3, 3))

            # Hide unused subplots on last page
            for i in range(page_end - page_start, plots_per_page):
                axes_flat[i].set_visible(False)

            plt.tight_layout()
            pdf.savefig(fig)
            plt.close(fig)

    return pdf_path


def save_results(output, run_name):
    """
    Save a simulation to CSV, PDF and scenario JSON in a timestamped directory.

    Parameters
    ----------
    output : SimulationOutput
    run_name : str
        Name of the model run

    Returns
    -------
    dict
        Paths: 'output_dir', 'csv_file', 'pdf_file', 'scenario_file'
    """
    output_dir = create_output_directory(run_name)
    results = output.to_results_dict()

    csv_file = write_results_csv(results, output_dir)
    pdf_file = plot_results_pdf(results, output_dir, title=f'World Model Results: {output.scenario_name}')

    scenario_file = os.path.join(output_dir, 'scenario.json')
    with open(scenario_file, 'w') as f:
        json.dump(scenario_to_dict(output.params), f, indent=2)

    return {
        'output_dir': output_dir,
        'csv_file': csv_file,
        'pdf_file': pdf_file,
        'scenario_file': scenario_file,
    }
