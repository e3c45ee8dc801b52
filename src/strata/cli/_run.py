"""``strata run``: build an application and serve it until interrupted."""

import argparse
import sys

from strata.cli._resolve import resolve_app
from strata.errors import ConfigurationError
from strata.server.launcher import run


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app``, append any ``--url`` values, build and run.

    Exits with code 1 when the application cannot be resolved or is
    misconfigured (for example, no router declared).
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    for url in args.url:
        app = app.url(url)

    try:
        handle = app.build()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    run(handle)
