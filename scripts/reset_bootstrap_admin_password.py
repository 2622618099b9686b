#!/usr/bin/env python3
"""Mini-README: CLI utility to rotate the bootstrap admin password.

Use this when a deployment has already completed first startup and changing
`.env` no longer updates the seeded bootstrap admin password.
"""

from __future__ import annotations

import argparse
import os
import sys

from sideledger.bootstrap_admin import reset_bootstrap_admin_password
from sideledger.config import settings
from sideledger.database import engine


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reset the bootstrap admin password (stored as an argon2 hash).")
    parser.add_argument(
        "--password",
        dest="password",
        default=None,
        help="New plaintext password. If omitted, BOOTSTRAP_ADMIN_PASSWORD from environment is used.",
    )
    parser.add_argument(
        "--email",
        dest="email",
        default=None,
        help="Optional admin email override. Defaults to BOOTSTRAP_ADMIN_EMAIL.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    password = (args.password or os.getenv("BOOTSTRAP_ADMIN_PASSWORD") or settings.bootstrap_admin_password).strip()

    if not password:
        print("[bootstrap-reset] ERROR: no password provided via --password or BOOTSTRAP_ADMIN_PASSWORD.")
        return 1

    if not reset_bootstrap_admin_password(engine=engine, new_password=password, bootstrap_email=args.email):
        print("[bootstrap-reset] ERROR: bootstrap admin account was not found.")
        return 2

    print(f"[bootstrap-reset] Success: updated admin password for {args.email or settings.bootstrap_admin_email}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
