#!/usr/bin/env python3
"""
Sweep one scenario parameter over a list of values.

Runs ``run_world.py simulate`` once per value, saving each run to its own
timestamped output directory.
"""

import subprocess
import sys


def main():
    if len(sys.argv) < 4:
        print("Usage: python run_parameter_sweep.py <preset|config_file> <parameter> <value> [<value> ...]")
        print("\nExample:")
        print("  python run_parameter_sweep.py bau pollution_control 0.0 0.2 0.4 0.6 0.8")
        print("\nEach value is passed as --scenario_parameters.<parameter> and saved with")
        print("run_name <parameter>_<value>.")
        sys.exit(1)

    source = sys.argv[1]
    parameter = sys.argv[2]
    values = sys.argv[3:]

    print(f"Running {parameter} sweep on: {source}")
    print(f"Testing {len(values)} values: {values}")
    print("=" * 80)

    for value in values:
        run_name = f"{parameter}_{value}"

        print(f"\n{'=' * 80}")
        print(f"Running with {parameter} = {value}, run_name = {run_name}")
        print(f"{'=' * 80}\n")

        cmd = [
            sys.executable,
            "run_world.py",
            "simulate",
            source,
            f"--scenario_parameters.{parameter}", value,
            "--run_name", run_name,
            "--save", "true",
        ]

        try:
            subprocess.run(cmd, check=True)
            print(f"\n✓ Completed: {parameter} = {value}")
        except subprocess.CalledProcessError as e:
            print(f"\n✗ Failed: {parameter} = {value}")
            print(f"Error: {e}")
            response = input("Continue with remaining values? [y/N]: ")
            if response.lower() != 'y':
                print("Stopping sweep.")
                sys.exit(1)

    print("\n" + "=" * 80)
    print("Sweep complete!")
    print(f"Tested {len(values)} {parameter} values")
    print("=" * 80)


if __name__ == '__main__':
    main()
