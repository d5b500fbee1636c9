"""
Convenience launcher — starts the Blockd engine and (optionally) the browsing simulator.

Usage:
    python start.py              # engine only
    python start.py --simulate   # engine + simulator cycling its scenarios
"""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

from blockd.config import config


def start_engine() -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-m", "blockd.main"],
        stdout=sys.stdout,
        stderr=sys.stderr,
    )


def start_simulator() -> subprocess.Popen:
    script = Path(__file__).parent / "scripts" / "simulate.py"
    return subprocess.Popen(
        [sys.executable, str(script)],
        stdout=sys.stdout,
        stderr=sys.stderr,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Start the Blockd engine")
    parser.add_argument("--simulate", action="store_true", help="Also run the browsing simulator")
    args = parser.parse_args()

    print("Starting Blockd engine…")
    engine_proc = start_engine()

    if args.simulate:
        time.sleep(1.5)  # give engine a moment to bind
        print("Starting simulator…")
        start_simulator()

    print(f"\nEngine → http://{config.api_host}:{config.api_port}")
    print(f"Data   → {config.data_dir}")
    print("Press Ctrl+C to stop.\n")

    try:
        engine_proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down…")
        engine_proc.terminate()
        engine_proc.wait()


if __name__ == "__main__":
    main()
