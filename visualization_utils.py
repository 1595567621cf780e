"""
Visualization utilities for world model scenarios.

Provides reusable plotting functions for:
- Normalized "limits to growth" overview of a single run
- Multi-scenario comparison plots

Plotting functions take ``case_data``, a dictionary mapping case names to
results DataFrames (columns as in ``output.RESULT_COLUMNS``), so the same
code serves single runs and comparisons.
"""

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import numpy as np


# (column, y-axis label, title), in display order, grouped by sector
VARIABLE_SPECS = [
    # Population
    ('population', 'Population (persons)', 'Total Population'),
    ('life_expectancy', 'Life expectancy (yr)', 'Life Expectancy'),
    ('fertility_rate', 'Children per woman', 'Total Fertility'),
    ('birth_rate', 'Births per person per year', 'Crude Birth Rate'),
    ('death_rate', 'Deaths per person per year', 'Crude Death Rate'),
    ('cohort_65_plus', 'Population 65+ (persons)', 'Elderly Population'),

    # Capital
    ('industrial_output', 'Industrial output ($/yr)', 'Industrial Output'),
    ('industrial_output_per_capita', 'Industrial output ($/person/yr)', 'Industrial Output Per Capita'),
    ('service_output_per_capita', 'Service output ($/person/yr)', 'Service Output Per Capita'),
    ('industrial_capital', 'Industrial capital ($)', 'Industrial Capital'),
    ('service_capital', 'Service capital ($)', 'Service Capital'),

    # Agriculture
    ('food_per_capita', 'Food (kg/person/yr)', 'Food Per Capita'),
    ('food_production', 'Food (kg/yr)', 'Food Production'),
    ('land_yield', 'Yield (kg/ha/yr)', 'Land Yield'),
    ('arable_land', 'Arable land (ha)', 'Arable Land'),

    # Resources and pollution
    ('nnr_fraction', 'Fraction remaining', 'Non-Renewable Resources'),
    ('pollution_index', 'Pollution index', 'Persistent Pollution'),
]

# (column, legend label, color) for the normalized overview chart
OVERVIEW_SERIES = [
    ('nnr_fraction', 'Resources', '#2a9d8f'),
    ('food_per_capita', 'Food per capita', '#e9c46a'),
    ('population', 'Population', '#264653'),
    ('service_output_per_capita', 'Services per capita', '#457b9d'),
    ('industrial_output_per_capita', 'Industrial output per capita', '#f4a261'),
    ('pollution_index', 'Pollution', '#e63946'),
]


def normalize_series(values):
    """Divide by the maximum so the series peaks at 1; all-zero series stay zero."""
    values = np.asarray(values, dtype=float)
    peak = np.nanmax(values) if len(values) else 0.0
    if not np.isfinite(peak) or peak <= 0:
        return np.zeros_like(values)
    return values / peak


def plot_timeseries(ax, case_data, variable, ylabel, title, colors=None):
    """
    Create time series plot on given axes (unified function for single/multi-run).

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to plot on
    case_data : dict
        Dictionary mapping case names to DataFrames with a 'year' column
    variable : str
        Column name in DataFrame to plot
    ylabel : str
        Label for y-axis
    title : str
        Plot title
    colors : dict, optional
        Case name -> color; cases not listed use the tab10 colormap

    Notes
    -----
    - Adds legend only for multi-case plots
    - Skips cases that lack the variable
    """
    default_colors = plt.cm.tab10(np.arange(10))
    colors = colors or {}

    for idx, (case_name, df) in enumerate(case_data.items()):
        if variable in df.columns:
            ax.plot(
                df['year'],
                df[variable],
                label=case_name if len(case_data) > 1 else None,
                linewidth=2,
                color=colors.get(case_name, default_colors[idx % 10])
            )

    ax.set_xlabel('Year', fontsize=10)
    ax.set_ylabel(ylabel, fontsize=10)
    ax.set_title(title, fontsize=11, fontweight='bold')
    ax.grid(True, alpha=0.3, linestyle='--')

    if len(case_data) > 1:
        ax.legend(loc='best', fontsize=8)


def plot_normalized_overview(output, output_path):
    """
    Save the classic overview chart: key series of one run, each scaled to its peak.

    Parameters
    ----------
    output : SimulationOutput
    output_path : Path or str
        Image file (format from the extension, e.g. .png)

    Returns
    -------
    str
        ``output_path`` as a string
    """
    df = output.to_dataframe()

    fig, ax = plt.subplots(figsize=(12, 6.75))
    for column, label, color in OVERVIEW_SERIES:
        ax.plot(df['year'], normalize_series(df[column]), label=label, color=color, linewidth=2)

    ax.set_xlabel('Year', fontsize=11)
    ax.set_ylabel('Fraction of peak value', fontsize=11)
    ax.set_ylim(0.0, 1.05)
    ax.set_title(f'{output.scenario_name}: normalized trajectories', fontsize=13, fontweight='bold')
    ax.grid(True, alpha=0.3, linestyle='--')
    ax.legend(loc='upper left', fontsize=9)

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)

    return str(output_path)


def create_comparison_pdf(case_data, output_pdf, colors=None):
    """
    Create PDF comparing scenarios (6 plots per page, 16:9 landscape).

    Parameters
    ----------
    case_data : dict
        {case_name: results_df, ...}
    output_pdf : Path or str
        Output PDF file path
    colors : dict, optional
        Case name -> color (e.g. from scenario metadata)
    """
    with PdfPages(output_pdf) as pdf:
        for page_start in range(0, len(VARIABLE_SPECS), 6):
            page_vars = VARIABLE_SPECS[page_start:page_start + 6]

            fig, axes = plt.subplots(2, 3, figsize=(16, 9))
            fig.suptitle('Scenario Comparison', fontsize=14, fontweight='bold')
            axes = axes.flatten()

            for idx, (var_name, ylabel, title) in enumerate(page_vars):
                if any(var_name in df.columns for df in case_data.values()):
                    plot_timeseries(axes[idx], case_data, var_name, ylabel, title, colors)
                else:
                    axes[idx].text(0.5, 0.5, f'{var_name}\nnot available',
                                   ha='center', va='center',
                                   transform=axes[idx].transAxes,
                                   fontsize=11, color='gray')
                    axes[idx].set_title(title, fontsize=11)

            # Hide any unused subplots on last page
            for idx in range(len(page_vars), 6):
                axes[idx].axis('off')

            plt.tight_layout()
            pdf.savefig(fig, orientation='landscape')
            plt.close(fig)

    print(f"Comparison report saved to: {output_pdf}")
