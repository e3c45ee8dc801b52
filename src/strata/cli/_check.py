"""``strata check``: compose an application without serving it.

Prints what was declared and exits with code 1 if composition fails.
"""

import argparse
import sys

from strata.cli._resolve import resolve_app
from strata.config import HostConfig
from strata.errors import ConfigurationError


def run_check(args: argparse.Namespace) -> None:
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    try:
        composed = app.compose()
        # Building the app runs host and service configuration too.
        composed.asgi_app()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    state = app.state
    host = composed.configure_host(HostConfig())
    print(f"Application {args.app}")
    print(f"  pipeline fragments: {len(state.pipelines)}")
    print(f"  app configs:        {len(state.app_configs)}")
    print(f"  host configs:       {len(state.host_configs)}")
    print(f"  service configs:    {len(state.service_configs)}")
    print(f"  urls:               {', '.join(composed.urls) or '(default)'}")
    print(f"  log level:          {host.log_level}")
    print("OK")
