import json
import os
from unittest.mock import patch

import pytest

import main


def test_simulate(capsys):
    assert main.run_main(["simulate", "--hours", "6"]) == 0
    out = capsys.readouterr().out
    assert "SIMULATION RESULTS" in out
    assert "Hours simulated:       6" in out
    assert "Passive House indicators" in out


def test_simulate_city_season_and_plot(capsys):
    with patch('matplotlib.pyplot.show') as mock_show:
        rc = main.run_main(["simulate", "--hours", "4", "--city", "london",
                            "--season", "winter-solstice", "--plot"])
    assert rc == 0
    assert mock_show.called
    assert "London" in capsys.readouterr().out


def test_simulate_debug_output(tmp_path):
    out_file = tmp_path / "debug.json"
    assert main.run_main(["simulate", "--hours", "3", "--debug-output", str(out_file)]) == 0

    with open(out_file) as f:
        data = json.load(f)
    assert data["mode"] == "simulate"
    assert len(data["timeseries"]["indoor_temp"]) == 3
    assert "house_state" in data["final_state"]
    assert data["configuration"]["building"]["floor_area"] == 150


def test_simulate_with_config_and_preset(tmp_path, capsys):
    config_path = tmp_path / "house.json"
    config_path.write_text('{\n  // larger house\n  "building": {"floor_area": 250}\n}')
    rc = main.run_main(["simulate", "--hours", "2", "--config", str(config_path),
                        "--preset", "premium-ph"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "Applied preset: premium-ph" in out


def test_disable_modules(capsys):
    rc = main.run_main(["simulate", "--hours", "2", "--disable", "erv", "--disable", "toaster"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "unknown module 'toaster'" in out
    assert "ERV Energy:            0.00 kWh" in out


def test_scenario(capsys):
    with patch('matplotlib.pyplot.show'):
        rc = main.run_main(["scenario", "heat_wave", "--hours", "2", "--start-hour", "10", "--plot"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "TRIGGERING SCENARIO: Heat Wave" in out
    assert "Henri mode after trigger: high-solar" in out


def test_compare(tmp_path, capsys):
    out_file = tmp_path / "compare.json"
    with patch('matplotlib.pyplot.show'):
        rc = main.run_main(["compare", "--days", "2", "--seed", "3", "--plot",
                            "--debug-output", str(out_file)])
    assert rc == 0
    assert "BASELINE vs HENRI" in capsys.readouterr().out
    with open(out_file) as f:
        data = json.load(f)
    assert data["metrics"]["adaptive_actions"]["baseline"] == 0
    assert len(data["daily"]) == 4


def test_unknown_city_returns_error(capsys):
    assert main.run_main(["simulate", "--city", "atlantis"]) == 1
    assert "Unknown city" in capsys.readouterr().out


def test_invalid_config_value_returns_error(tmp_path, capsys):
    config_path = tmp_path / "bad.json"
    config_path.write_text('{"building": {"floor_area": 5}}')
    assert main.run_main(["simulate", "--config", str(config_path)]) == 1
    assert "Valid range" in capsys.readouterr().out


def test_missing_config_file(tmp_path, capsys):
    missing = os.path.join(str(tmp_path), "nope.json")
    assert main.run_main(["simulate", "--config", missing]) == 1
    assert "not found" in capsys.readouterr().out


def test_no_command(capsys):
    assert main.run_main([]) == 1
    assert "You must choose a command" in capsys.readouterr().out


def test_hours_must_be_positive(capsys):
    assert main.run_main(["simulate", "--hours", "0"]) == 1


def test_invalid_scenario_name():
    with pytest.raises(SystemExit):
        main.run_main(["scenario", "meteor"])
