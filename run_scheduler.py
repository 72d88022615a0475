#!/usr/bin/env python
"""
HPLC Scheduler - Command Line Launcher

Loads the newest batch/instrument exports from the data directory, runs the
current-moment schedule and the multi-day forecast, and prints both.

Usage:
    python run_scheduler.py
    python run_scheduler.py --data-dir ./data --now 2026-03-02T08:00 --horizon 5

Environment Variables (set in .env file):
    - HPLC_DATA_DIR: Directory holding Batches*.json and Instruments* files
    - HPLC_WASH_INTERVAL: Injections per bracketing cycle (default: 6)
    - HPLC_MAX_RUNTIME_MINUTES: Per-run ceiling (default: 4320, i.e. 72 hours)
    - HPLC_MAX_MOBILE_PHASE_SLOTS: Mobile phase + wash channels (default: 4)
    - HPLC_HORIZON_DAYS: Forecast length (default: 7)
    - HPLC_COMPANY_ID / HPLC_LOCATION_ID: Restrict batches to one site
"""

import os
import sys
import argparse
from dataclasses import replace
from datetime import datetime

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'backend'))

from settings import load_settings
from data_loader import DataLoader
from schedule_service import run_full
from scheduling.errors import SchedulingError
from scheduling.formatting import format_minutes


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Schedule pending HPLC tests and forecast the Hold Pool")
    parser.add_argument('--data-dir', help="Directory with the batch/instrument exports")
    parser.add_argument('--now', help="Anchor time, ISO format (default: current time)")
    parser.add_argument('--horizon', type=int, help="Forecast days")
    parser.add_argument('--company', help="Company id filter")
    parser.add_argument('--location', help="Location id filter")
    return parser.parse_args(argv)


def print_forecast(run, lookups):
    print(f"\n{'='*70}")
    print(f"FORECAST ({run.forecast.days_planned} days planned)")
    print(f"{'='*70}")
    sequences = [s for s in run.forecast.all_sequences() if not s.is_empty]
    if not sequences:
        print("   No forecast sequences")
    for sequence in sequences:
        print(f"   {sequence.describe(lookups)}")

    if run.remaining_hold:
        print(f"\n[!!] STILL ON HOLD: {len(run.remaining_hold)} tests")
        for entry in run.remaining_hold[:20]:
            print(f"   {entry.test.batch_number} / {entry.test.test_name}: {entry.reason}")
        if len(run.remaining_hold) > 20:
            print(f"   ... and {len(run.remaining_hold) - 20} more")


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = load_settings()
        overrides = {}
        if args.data_dir:
            overrides['data_dir'] = args.data_dir
        if args.horizon is not None:
            overrides['horizon_days'] = args.horizon
        if args.company:
            overrides['company_id'] = args.company
        if args.location:
            overrides['location_id'] = args.location
        config = replace(config, **overrides).validate()
        now = datetime.fromisoformat(args.now) if args.now else datetime.now()
    except (SchedulingError, ValueError) as e:
        print(f"[ERROR] {e}")
        return 1

    loader = DataLoader(config.data_dir, config)
    if not loader.load_all():
        print("Failed to load data")
        return 1

    loader.print_summary()
    if loader.validation:
        loader.validation.print_report()
        if not loader.validation.is_valid:
            return 1

    batches = loader.list_schedulable_batches(config.company_id, config.location_id)
    instruments = loader.list_instruments(config.company_id, config.location_id)

    run = run_full(batches, instruments, now=now, config=config, lookups=loader.lookups)
    run.scheduler.print_summary()
    print_forecast(run, loader.lookups)

    saved = sum(g.time_saved for q in run.snapshot.queues for g in q.groups)
    print(f"\n[OK] Done. Grouping saved {format_minutes(saved)} on current queues")
    return 0


if __name__ == '__main__':
    sys.exit(main())
