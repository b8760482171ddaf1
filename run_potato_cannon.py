# run_potato_cannon.py
# Runner for potato_cannon_sim.py: takes the free variables in notebook units (g, mm, cm, L, atm),
# runs the simulation and prints the result. Optional: plots and CSV export.
import argparse
import csv
from dataclasses import replace
import logging
import sys

import matplotlib.pyplot as plt

from potato_cannon_sim import (
    PotatoCannonError,
    SimulationConfig,
    parameters_from_notebook_units,
    simulate,
)

logger = logging.getLogger(__name__)

# Slider ranges of the interactive notebook: (min, max, default)
SLIDER_RANGES = {
    "mass": (10.0, 1000.0, 100.0),           # g
    "diameter": (10.0, 200.0, 40.0),         # mm
    "length": (1.0, 200.0, 50.0),            # cm
    "tank_volume": (1.0, 100.0, 10.0),       # L
    "tank_pressure": (1.0, 400.0, 2.0),      # atm
    "ambient_pressure": (0.5, 2.0, 1.0),     # atm
}

CSV_HEADER = ["t_s", "x_m", "v_mps", "U_J", "dS_JpK", "P_Pa", "W_J"]

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the pneumatic potato cannon simulation")
    parser.add_argument("--mass", type=float, default=SLIDER_RANGES["mass"][2], help="Potato mass (g)")
    parser.add_argument("--diameter", type=float, default=SLIDER_RANGES["diameter"][2], help="Barrel diameter (mm)")
    parser.add_argument("--length", type=float, default=SLIDER_RANGES["length"][2], help="Barrel length (cm)")
    parser.add_argument("--tank-volume", type=float, default=SLIDER_RANGES["tank_volume"][2], help="Tank volume (L)")
    parser.add_argument("--tank-pressure", type=float, default=SLIDER_RANGES["tank_pressure"][2],
                        help="Tank initial pressure (atm)")
    parser.add_argument("--ambient-pressure", type=float, default=SLIDER_RANGES["ambient_pressure"][2],
                        help="Ambient pressure (atm)")
    parser.add_argument("--finite-barrel", action="store_true",
                        help="Cut the results at the muzzle instead of assuming an infinite barrel")
    parser.add_argument("--t-max", type=float, default=None, help="Override integration end time (s)")
    parser.add_argument("--rtol", type=float, default=None, help="Override solver relative tolerance")
    parser.add_argument("--atol", type=float, default=None, help="Override solver absolute tolerance")
    parser.add_argument("--csv", type=str, default=None, help="Write outputs to CSV file")
    parser.add_argument("--no-plot", action="store_true", help="Disable plotting")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser

def check_ranges(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    for name, (lo, hi, _) in SLIDER_RANGES.items():
        value = getattr(args, name)
        if not lo <= value <= hi:
            parser.error(f"--{name.replace('_', '-')} must be within [{lo:g}, {hi:g}], got {value:g}")

def write_csv(path: str, res) -> None:
    tr = res.trajectory
    with open(path, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(CSV_HEADER)
        for i in range(len(tr)):
            w.writerow([tr.t[i], tr.x[i], tr.v[i], res.energy[i], res.entropy[i],
                        res.pressure[i], res.work[i]])

def print_summary(res) -> None:
    p = res.params
    print("System & surroundings:")
    print("  potato mass          = %.1f g" % (p.potato_mass * 1e3))
    print("  barrel diameter      = %.1f mm" % (p.barrel_diameter * 1e3))
    print("  barrel length        = %.1f cm" % (p.barrel_length * 1e2))
    print("  tank volume          = %.2f L" % (p.tank_volume * 1e3))
    print("  tank initial pressure= %.3f kPa" % (p.tank_pressure / 1e3))
    print("  ambient pressure     = %.3f kPa" % (p.ambient_pressure / 1e3))
    c = res.coefficients
    print("ODE coefficients: a = %.6g m^2/s^2, b = %.6g m, c = %.6g m/s^2" % (c.a, c.b, c.c))
    print("P_f at muzzle = %.3f kPa (%s)" % (res.final_pressure / 1e3,
                                              "ok" if res.precondition_ok else "below ambient"))

    tr = res.trajectory
    print("Final t = %.4f s" % tr.t[-1])
    print("Final x = %.3f m, v = %.2f m/s" % (tr.x[-1], tr.v[-1]))
    print("Final U = %.2f J, dS = %.2f J/K" % (res.energy[-1], res.entropy[-1]))
    if res.muzzle_velocity is not None:
        print("Muzzle velocity = %.2f m/s at t = %.4f s" % (res.muzzle_velocity, res.exit_time))
    else:
        print("Potato did not reach the muzzle")

def plot_results(res) -> None:
    tr = res.trajectory

    fig, (ax1, ax2) = plt.subplots(1, 2)
    ax1.plot(tr.t, tr.v)
    ax1.set_xlabel("t [s]")
    ax1.set_ylabel("Velocity [m/s]")
    ax1.grid(True)
    ax2.plot(tr.t, tr.x)
    ax2.set_xlabel("t [s]")
    ax2.set_ylabel("Position [m]")
    ax2.grid(True)

    plt.figure()
    plt.plot(tr.t, res.energy)
    plt.xlabel("t [s]")
    plt.ylabel("Kinetic energy [J]")
    plt.title("Potato Kinetic Energy")
    plt.grid(True)

    plt.figure()
    plt.plot(tr.x, res.entropy)
    plt.xlabel("x [m]")
    plt.ylabel("Entropy change [J/K]")
    plt.title("Propellant Gas Entropy")
    plt.grid(True)

    plt.show()

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    check_ranges(parser, args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    params = parameters_from_notebook_units(
        args.mass, args.diameter, args.length,
        args.tank_volume, args.tank_pressure, args.ambient_pressure,
    )

    # Allow simple overrides from CLI
    cfg = SimulationConfig(infinite_barrel=not args.finite_barrel)
    overrides = {k: v for k, v in (("t_max", args.t_max), ("rtol", args.rtol), ("atol", args.atol))
                 if v is not None}
    if overrides:
        cfg = replace(cfg, **overrides)

    try:
        res = simulate(params, cfg)
    except PotatoCannonError as e:
        logger.error("simulation failed: %s", e)
        return 1

    print_summary(res)

    if args.csv:
        write_csv(args.csv, res)
        print(f"Wrote CSV to {args.csv}")

    if not args.no_plot:
        plot_results(res)
    return 0

if __name__ == "__main__":
    sys.exit(main())
