#!/usr/bin/python3

import argparse
import datetime
import json
import logging
import sys

import pandas as pd

from henrisim import results
from henrisim.comparison import run_comparison_sync
from henrisim.config import PRESETS, SimulationConfiguration
from henrisim.energy_balance import passive_house_metrics
from henrisim.errors import HenriSimError
from henrisim.scenarios import SCENARIOS
from henrisim.simulation import SimulationEngine


def build_configuration(args):
    if args.config:
        configuration = SimulationConfiguration.from_json(args.config)
        print(f"Loaded configuration from {args.config}")
    else:
        configuration = SimulationConfiguration()
    if args.preset:
        configuration.load_preset(args.preset)
        print(f"Applied preset: {args.preset}")
    errors = configuration.validate()
    if errors:
        raise errors[0]
    return configuration


def build_engine(args, configuration):
    engine = SimulationEngine(configuration)
    engine.register_default_modules()
    for name in args.disable or []:
        if name not in engine.modules:
            print(f"Warning: unknown module '{name}' (options: {', '.join(engine.modules)})")
            continue
        engine.modules[name].enabled = False
    if args.season:
        engine.set_seasonal_date(args.season)
    if args.city:
        engine.set_city(args.city)
    return engine


def run_hours(engine, hours, start_hour):
    rows, balances = [], []
    result = engine.set_time(start_hour)
    for i in range(hours):
        if i > 0:
            result = engine.step()
        rows.append(results.record_tick(engine, result))
        balances.append(result.energy_balance)
    return pd.DataFrame(rows), balances


def export_debug_output(filename, mode, configuration, frame=None, engine=None, comparison=None):
    """Export debug results to JSON for agent/automation use."""
    debug_data = {
        "generated_at": datetime.datetime.now().isoformat(),
        "mode": mode,
        "configuration": configuration.to_dict(),
    }
    if frame is not None:
        debug_data["timeseries"] = frame.to_dict(orient="list")
    if engine is not None:
        debug_data["final_state"] = engine.export_state()
    if comparison is not None:
        debug_data["metrics"] = comparison.metrics
        debug_data["significance"] = comparison.significance
        debug_data["daily"] = comparison.daily_frame().to_dict(orient="records")

    with open(filename, 'w') as f:
        json.dump(debug_data, f, indent=2, default=float)
    print(f"Debug output saved to: {filename}")


def cmd_simulate(args):
    configuration = build_configuration(args)
    engine = build_engine(args, configuration)
    frame, balances = run_hours(engine, args.hours, args.start_hour)
    ph_metrics = passive_house_metrics(
        balances, engine.state.envelope.floor_area,
        seasonal_cop=engine.module_configs.heat_pump.efficiency,
        heat_recovery_efficiency=engine.module_configs.erv.efficiency,
        indoor_temperatures=frame["indoor_temp"],
    )

    results.print_simulation_report(frame, engine)
    results.print_passive_house_metrics(ph_metrics)
    if args.debug_output:
        export_debug_output(args.debug_output, "simulate", configuration, frame=frame, engine=engine)
    if args.plot:
        results.plot_simulation(frame, title_suffix=engine.state.location.city_name or "")
    return 0


def cmd_scenario(args):
    configuration = build_configuration(args)
    engine = build_engine(args, configuration)
    engine.set_time(args.start_hour)

    print(f"\n--- TRIGGERING SCENARIO: {SCENARIOS[args.name].title} ---")
    mode = engine.trigger_scenario(args.name)
    print(f"Henri mode after trigger: {mode}")

    rows = []
    for _ in range(args.hours):
        result = engine.step()
        rows.append(results.record_tick(engine, result))
    frame = pd.DataFrame(rows)

    results.print_simulation_report(frame, engine)
    if args.debug_output:
        export_debug_output(args.debug_output, "scenario", configuration, frame=frame, engine=engine)
    if args.plot:
        results.plot_simulation(frame, title_suffix=SCENARIOS[args.name].title)
    return 0


def cmd_compare(args):
    configuration = build_configuration(args)
    print(f"\n--- RUNNING {args.days}-DAY COMPARISON (seed {args.seed}) ---")
    comparison = run_comparison_sync(args.days, configuration=configuration, seed=args.seed,
                                     start_day_of_year=args.start_day)
    results.print_comparison_report(comparison)
    if args.debug_output:
        export_debug_output(args.debug_output, "compare", configuration, comparison=comparison)
    if args.plot:
        results.plot_comparison(comparison)
    return 0


def run_main(args_list=None):
    parser = argparse.ArgumentParser(
        description="Henri Passive House Simulator",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    # Shared options
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", metavar="JSON_FILE",
                        help="Building/HVAC configuration JSON (// comments allowed)")
    common.add_argument("--preset", choices=sorted(PRESETS), help="Apply a configuration preset")
    common.add_argument("--plot", action="store_true", help="Plot results with matplotlib")
    common.add_argument("--debug-output", metavar="JSON_FILE",
                        help="Export debug results to JSON file (for agent/automation use)")

    location = argparse.ArgumentParser(add_help=False)
    location.add_argument("--city", help="City id from the catalog (e.g. denver, london).\n"
                                         "Without a city the legacy Denver climate is used.")
    location.add_argument("--season", help="Seasonal date id (e.g. winter-solstice)")
    location.add_argument("--start-hour", type=int, default=0, help="First simulated hour (default: 0)")
    location.add_argument("--disable", action="append", metavar="MODULE",
                          help="Disable a module (heatPump, erv, solar, battery). Repeatable.")

    sub = parser.add_subparsers(dest="command")

    p_sim = sub.add_parser("simulate", parents=[common, location], help="Run an hour-by-hour simulation")
    p_sim.add_argument("--hours", type=int, default=24, help="Hours to simulate (default: 24)")
    p_sim.set_defaults(func=cmd_simulate)

    p_scn = sub.add_parser("scenario", parents=[common, location], help="Inject a stress scenario")
    p_scn.add_argument("name", choices=sorted(SCENARIOS), help="Scenario to trigger")
    p_scn.add_argument("--hours", type=int, default=6, help="Hours to run after the trigger (default: 6)")
    p_scn.set_defaults(func=cmd_scenario)

    p_cmp = sub.add_parser("compare", parents=[common], help="Baseline vs Henri multi-day comparison")
    p_cmp.add_argument("--days", type=int, default=3, help="Days to simulate (default: 3)")
    p_cmp.add_argument("--seed", type=int, default=0, help="Weather jitter seed (default: 0)")
    p_cmp.add_argument("--start-day", type=int, default=172, help="Day of year of day 0 (default: 172)")
    p_cmp.set_defaults(func=cmd_compare)

    # --- CUSTOM HELP DISPLAY ---
    if args_list is None and len(sys.argv) == 1:
        parser.print_help()
        print("\nUsage Examples:")
        print("  1. Simulate a day with the legacy Denver climate:")
        print("     python main.py simulate --hours 24")
        print("\n  2. Simulate London at the winter solstice and plot:")
        print("     python main.py simulate --city london --season winter-solstice --plot")
        print("\n  3. Stress test Henri with a heat wave:")
        print("     python main.py scenario heat_wave --hours 6")
        print("\n  4. Compare baseline vs Henri over a week:")
        print("     python main.py compare --days 7 --seed 42")
        return 1

    args = parser.parse_args(args_list)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if not args.command:
        print("Error: You must choose a command (simulate, scenario, compare).")
        return 1
    if getattr(args, "hours", 1) < 1 or getattr(args, "days", 1) < 1:
        print("Error: --hours/--days must be at least 1.")
        return 1

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"Error: File '{e.filename}' not found.")
        return 1
    except HenriSimError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(run_main())
