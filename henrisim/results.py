import matplotlib.pyplot as plt
import pandas as pd

from .state import state_summary


def record_tick(engine, result) -> dict:
    """Flatten the engine state after a tick into one report row."""
    row = state_summary(engine.state)
    row["mode"] = result.mode
    row["target_temp"] = engine.module_configs.heat_pump.effective_target()
    row["failed_modules"] = ",".join(result.failed_modules)
    if result.energy_balance is not None:
        row["heating_demand"] = result.energy_balance.heating_demand
        row["cooling_demand"] = result.energy_balance.cooling_demand
    return row


def print_simulation_report(frame: pd.DataFrame, engine):
    decisions = list(engine.decision_engine.recent_decisions)

    print("\n" + "="*40)
    print("SIMULATION RESULTS")
    print(f"Hours simulated:       {len(frame)}")
    print(f"Location:              {engine.state.location.city_name or 'Denver (legacy climate)'}")
    print(f"Final Mode:            {engine.current_mode}")
    print("="*40)
    print(f"Indoor Temp (min/max): {frame['indoor_temp'].min():.1f} / {frame['indoor_temp'].max():.1f} C")
    print(f"Outdoor Temp (min/max):{frame['outdoor_temp'].min():6.1f} / {frame['outdoor_temp'].max():.1f} C")
    print(f"Avg Comfort Score:     {frame['comfort_score'].mean():.1f}")
    print(f"Heat Pump Energy:      {frame['heat_pump_kwh'].sum():.2f} kWh")
    print(f"ERV Energy:            {frame['erv_kwh'].sum():.2f} kWh")
    print(f"Solar Generated:       {frame['solar_kwh'].sum():.2f} kWh")
    print(f"Net Grid Energy:       {frame['net_kwh'].sum():.2f} kWh")
    print(f"Battery (final):       {engine.state.energy.battery_kwh:.2f} kWh")
    print("="*40)
    if decisions:
        print("Recent Henri decisions:")
        for d in decisions:
            print(f"  [{d.timestamp:02d}:00] {d.action} - {d.reason}")


def print_passive_house_metrics(metrics):
    print("Passive House indicators (simulated period, kWh/m2):")
    print(f"  Heating Demand:      {metrics.annual_heating_demand:.2f}  (limit 15)")
    print(f"  Cooling Demand:      {metrics.annual_cooling_demand:.2f}  (limit 15)")
    print(f"  Primary Energy:      {metrics.primary_energy_demand:.2f}  (limit 120)")
    print(f"  Heat Recovery:       {metrics.heat_recovery_efficiency:.0%}")
    print(f"  Overheating (>25C):  {metrics.overheating_frequency:.0%} of hours")
    print("="*40)


def plot_simulation(frame: pd.DataFrame, title_suffix=""):
    plt.figure(figsize=(14, 8))
    hours = range(len(frame))

    # Subplot 1: Temperature
    plt.subplot(2, 1, 1)
    plt.plot(hours, frame['indoor_temp'], label='Indoor', color='orange', linewidth=2)
    plt.plot(hours, frame['outdoor_temp'], label='Outdoor', color='blue', alpha=0.3)
    plt.plot(hours, frame['target_temp'], label='Target', color='green', linestyle='--')
    plt.ylabel("Temperature (C)")

    title = "Henri Simulation"
    if title_suffix:
        title += f" - {title_suffix}"
    plt.title(title)
    plt.legend()
    plt.grid(True)

    # Subplot 2: Energy flows + comfort
    ax = plt.subplot(2, 1, 2)
    ax.bar(hours, frame['heat_pump_kwh'], label='Heat Pump', color='red', alpha=0.5)
    ax.bar(hours, frame['erv_kwh'], bottom=frame['heat_pump_kwh'], label='ERV', color='purple', alpha=0.5)
    ax.plot(hours, frame['solar_kwh'], label='Solar', color='gold', linewidth=2)
    ax.plot(hours, frame['net_kwh'], label='Net Grid', color='black', linestyle=':')
    ax.set_ylabel("Energy (kWh)")
    ax.set_xlabel("Simulated Hour")
    ax.legend(loc='upper left')
    ax.grid(True)

    ax2 = ax.twinx()
    ax2.plot(hours, frame['comfort_score'], color='grey', alpha=0.6, label='Comfort')
    ax2.set_ylim(0, 105)
    ax2.set_ylabel("Comfort Score")

    plt.tight_layout()
    plt.show()


def print_comparison_report(result):
    m = result.metrics
    sig = result.significance

    print("\n" + "="*40)
    print("BASELINE vs HENRI")
    print(f"Days simulated:        {len(result.henri)}")
    print("="*40)
    print(f"Energy (kWh):          {m['energy_consumption']['baseline']:.1f} -> {m['energy_consumption']['henri']:.1f}"
          f" ({m['energy_consumption']['savings_percent']:+.1f}% saved)")
    print(f"Cost:                  ${m['energy_cost']['baseline']:.2f} -> ${m['energy_cost']['henri']:.2f}")
    print(f"Comfort Hours (>=80):  {m['comfort_hours']['baseline']:.0f} -> {m['comfort_hours']['henri']:.0f}")
    print(f"Comfort Variance:      {m['comfort_stability']['baseline']:.2f} -> {m['comfort_stability']['henri']:.2f}")
    print(f"Recovery Time (h):     {m['recovery_time']['baseline']:.2f} -> {m['recovery_time']['henri']:.2f}")
    print(f"Adaptive Actions:      {m['adaptive_actions']['baseline']} -> {m['adaptive_actions']['henri']}")
    print(f"Comfort Hours / kWh:   {m['energy_efficiency']['baseline']:.2f} -> {m['energy_efficiency']['henri']:.2f}")
    print(f"CO2 (kg):              {m['co2_savings']['baseline']:.2f} -> {m['co2_savings']['henri']:.2f}")
    if sig.get("p_value") is not None:
        print(f"Comfort t-test p:      {sig['p_value']:.4f}")
    else:
        print("Comfort t-test p:      n/a")
    print("="*40)


def plot_comparison(result):
    frame = result.daily_frame()
    baseline = frame[frame['run'] == 'baseline']
    henri = frame[frame['run'] == 'henri']

    plt.figure(figsize=(12, 7))

    plt.subplot(2, 1, 1)
    plt.plot(baseline['day'], baseline['average_comfort'], marker='o', label='Baseline', color='grey')
    plt.plot(henri['day'], henri['average_comfort'], marker='o', label='Henri', color='orange')
    plt.ylabel("Avg Comfort")
    plt.title("Baseline vs Henri")
    plt.legend()
    plt.grid(True)

    plt.subplot(2, 1, 2)
    width = 0.4
    plt.bar(baseline['day'] - width / 2, baseline['energy_consumed'], width, label='Baseline', color='grey')
    plt.bar(henri['day'] + width / 2, henri['energy_consumed'], width, label='Henri', color='orange')
    plt.ylabel("Energy (kWh)")
    plt.xlabel("Day")
    plt.legend()
    plt.grid(True)

    plt.tight_layout()
    plt.show()
