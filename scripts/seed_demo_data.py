#!/usr/bin/env python3
"""Mini-README: CLI utility to load demo principals into a local database.

Creates one admin and four workers (all sharing one password) unless they
already exist. Migrations are applied first so a fresh database works.
"""

from __future__ import annotations

import argparse
import sys

from sideledger.bootstrap_admin import DEMO_PASSWORD, seed_demo_data
from sideledger.database import engine, run_migrations


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed demo admin and worker accounts.")
    parser.add_argument("--password", default=DEMO_PASSWORD, help="Password assigned to every seeded account.")
    args = parser.parse_args(argv)

    run_migrations()
    created = seed_demo_data(engine=engine, password=args.password)
    if not created:
        print("[seed] Nothing to do: demo accounts already exist.")
        return 0
    for email in created:
        print(f"[seed] created {email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
