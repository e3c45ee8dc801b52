"""Strata CLI: run and check applications.

Entry point registered as ``strata`` in ``pyproject.toml``::

    [project.scripts]
    strata = "strata.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``strata`` command."""
    parser = argparse.ArgumentParser(
        prog="strata",
        description="Strata: declarative application builder for ASGI.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- strata run -------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Build and serve an application")
    run_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )
    run_parser.add_argument(
        "--url",
        action="append",
        default=[],
        help="Additional listen URL (repeatable, e.g. http://*:8080)",
    )

    # -- strata check -----------------------------------------------------
    check_parser = subparsers.add_parser("check", help="Compose an application without serving it")
    check_parser.add_argument(
        "app",
        help="Import string (e.g. myapp:app)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from strata.cli._run import run_server

        run_server(args)
    elif args.command == "check":
        from strata.cli._check import run_check

        run_check(args)
