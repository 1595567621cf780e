"""
Tests for simulation output, export, comparison workbooks and configuration
loading.

Usage:
    pytest test_output.py
"""

import json
import os
from dataclasses import replace

import numpy as np
import openpyxl
import pandas as pd
import pytest

from lookup_tables import load_tables
from parameters import (
    PRESETS,
    ScenarioParameters,
    business_as_usual,
    equilibrium_service_capital,
    get_preset,
    initial_conditions_1900,
    load_configuration,
    parameter_descriptors,
    parse_command_line_overrides,
)
from sectors import calculate_capital_tendencies, calculate_resource_auxiliaries
from world_model import integrate_model
from output import (
    RESULT_COLUMNS,
    SimulationOutput,
    plot_results_pdf,
    save_results,
    write_results_csv,
)
from visualization_utils import create_comparison_pdf, normalize_series, plot_normalized_overview
from comparison_utils import create_comparison_xlsx, discover_result_directories, load_results_csvs


TABLES = load_tables()


@pytest.fixture(scope='module')
def short_output():
    params = replace(business_as_usual(), end_year=1920.0)
    return SimulationOutput(integrate_model(initial_conditions_1900(params), params, TABLES), params)


def test_simulation_output_metadata(short_output):
    assert short_output.scenario_id == 'bau'
    assert short_output.scenario_name == 'Business as usual'
    assert len(short_output.timeline) == 21
    assert short_output.computed_at


def test_state_at_year(short_output):
    assert short_output.state_at_year(1910.4).time == 1910.0
    assert short_output.state_at_year(1800.0).time == 1900.0
    assert short_output.state_at_year(3000.0).time == 1920.0


def test_extract_series(short_output):
    population = short_output.extract_series('population.population')
    expected = [s.population.population for s in short_output.states]
    assert np.array_equal(population, expected)

    unknown = short_output.extract_series('population.no_such_field')
    assert len(unknown) == 21
    assert np.all(np.isnan(unknown))


def test_dataframe_columns(short_output):
    df = short_output.to_dataframe()
    assert list(df.columns) == [column for column, _ in RESULT_COLUMNS]
    assert len(df) == 21
    assert df['year'].iloc[-1] == 1920.0


def test_csv_and_pdf(short_output, tmp_path):
    results = short_output.to_results_dict()
    csv_path = write_results_csv(results, str(tmp_path))
    pdf_path = plot_results_pdf(results, str(tmp_path))

    df = pd.read_csv(csv_path)
    assert list(df.columns)[0] == 'year'
    assert len(df) == 21
    assert df['population'].iloc[0] == pytest.approx(1.6e9)
    assert os.path.getsize(pdf_path) > 0


def test_save_results(short_output, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    paths = save_results(short_output, 'unit')

    assert os.path.isdir(paths['output_dir'])
    assert os.path.basename(paths['output_dir']).startswith('unit_')
    assert os.path.exists(paths['csv_file'])
    assert os.path.exists(paths['pdf_file'])

    with open(paths['scenario_file']) as f:
        scenario = json.load(f)
    assert scenario['meta']['id'] == 'bau'
    assert scenario['end_year'] == 1920.0

    directories = discover_result_directories([os.path.join('data', 'output', 'unit_*')])
    data = load_results_csvs(directories)
    assert len(data) == 1
    assert len(next(iter(data.values()))) == 21


def test_charts(short_output, tmp_path):
    png = plot_normalized_overview(short_output, tmp_path / 'overview.png')
    assert os.path.getsize(png) > 0

    pdf = tmp_path / 'comparison.pdf'
    create_comparison_pdf({'A': short_output.to_dataframe(), 'B': short_output.to_dataframe()}, pdf)
    assert pdf.exists()

    normalized = normalize_series([1.0, 4.0, 2.0])
    assert np.allclose(normalized, [0.25, 1.0, 0.5])
    assert np.all(normalize_series([0.0, 0.0]) == 0.0)


def test_comparison_workbook(short_output, tmp_path):
    df = short_output.to_dataframe()
    path = tmp_path / 'comparison.xlsx'
    create_comparison_xlsx({'first': df, 'second': df}, path, {'first': 'a', 'second': 'b'})

    wb = openpyxl.load_workbook(path)
    assert wb.sheetnames[0] == 'Scenarios'
    assert 'Population' in wb.sheetnames

    ws = wb['Population']
    assert ws['A1'].value == 'Year'
    assert ws['B1'].value == 'first'
    assert ws['A2'].value == 1900.0
    assert ws['B2'].value == pytest.approx(1.6e9)
    assert ws['C22'].value == pytest.approx(df['population'].iloc[-1])


def test_presets_and_descriptors():
    assert set(PRESETS) == {'bau', 'technology', 'stabilized'}
    assert get_preset('bau').family_planning_efficacy == 0.0
    assert get_preset('stabilized').family_planning_year == 1975.0
    with pytest.raises(ValueError):
        get_preset('utopia')

    defaults = ScenarioParameters()
    descriptors = parameter_descriptors()
    assert len(descriptors) >= 10
    for d in descriptors:
        assert d.default == getattr(defaults, d.field)
        assert d.min <= d.default <= d.max


def test_load_configuration(tmp_path):
    config_path = tmp_path / 'config.json'
    config_path.write_text(json.dumps({
        'run_name': 'tech_test',
        'preset': 'technology',
        'scenario_parameters': {'investment_rate': 0.15},
        'integration_parameters': {'end_year': 2000, 'time_step': 0.5},
        'initial_state': {'arable_land': 1.0e9},
    }))

    config = load_configuration(str(config_path),
                                overrides={'scenario_parameters.pollution_control': 0.5})

    assert config.run_name == 'tech_test'
    assert config.params.meta.id == 'technology'
    assert config.params.resource_efficiency == 4.0
    assert config.params.investment_rate == 0.15
    assert config.params.pollution_control == 0.5
    assert config.params.end_year == 2000.0
    assert config.params.time_step == 0.5
    assert config.initial_state.agriculture.arable_land == 1.0e9
    assert config.initial_state.agriculture.food_per_capita == 400.0


def test_load_configuration_rejects_unknown_names(tmp_path):
    config_path = tmp_path / 'config.json'
    config_path.write_text(json.dumps({'scenario_parameters': {'warp_drive': 1.0}}))
    with pytest.raises(ValueError):
        load_configuration(str(config_path))

    config_path.write_text(json.dumps({'initial_state': {'unobtainium': 1.0}}))
    with pytest.raises(ValueError):
        load_configuration(str(config_path))

    config_path.write_text(json.dumps({'integration_parameters': {'method': 'euler'}}))
    with pytest.raises(ValueError):
        load_configuration(str(config_path))


def test_bundled_configuration():
    here = os.path.dirname(os.path.abspath(__file__))
    config = load_configuration(os.path.join(here, 'config_bau.json'), tables=TABLES)
    assert config.params.meta.id == 'bau'
    assert config.params.family_planning_efficacy == 0.0


def test_parse_command_line_overrides():
    positionals, overrides = parse_command_line_overrides(
        ['bau', '--scenario_parameters.investment_rate', '0.15', '--run_name', 'test', '--save', 'true'])

    assert positionals == ['bau']
    assert overrides == {
        'scenario_parameters.investment_rate': 0.15,
        'run_name': 'test',
        'save': True,
    }
    with pytest.raises(ValueError):
        parse_command_line_overrides(['--run_name'])


def test_equilibrium_service_capital():
    params = business_as_usual()
    state = initial_conditions_1900(params)
    service_capital = equilibrium_service_capital(state, params, TABLES)

    trial = replace(state, capital=replace(state.capital, service_capital=service_capital))
    trial = calculate_resource_auxiliaries(trial, params, TABLES)
    tendencies, trial = calculate_capital_tendencies(trial, params, TABLES)

    print(f"Equilibrium service capital in 1900: {service_capital:.3e} $")
    assert service_capital > 0
    assert abs(tendencies['service_capital']) < 1e-6 * trial.capital.industrial_output


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
