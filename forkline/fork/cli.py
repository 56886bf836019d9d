"""
Command-line interface for forkline.

Commands:

- ``forkline features``: resolve and print the feature set. Exits 2 when the
  flags conflict, a selection is not compiled in, or a ``FORKLINE_*``
  setting is malformed.
- ``forkline check-boundary``: report default modules that import fork
  modules. Exits 1 when any are found.
- ``forkline serve``: run the management server with uvicorn.
"""

import argparse
import importlib.util
import json
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from forkline.boundary import find_violations
from forkline.core.config import Settings, parse_selection
from forkline.core.errors import ConfigurationConflict, UnboundCapability
from forkline.core.logging_config import get_logger, setup_logging
from forkline.features.resolver import check_availability, resolve_feature_set

from .catalog import FORK_CATALOG

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_VIOLATION = 1
EXIT_CONFLICT = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Forkline feature-gated backend utilities",
        prog="forkline",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override FORKLINE_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    subparsers = parser.add_subparsers(
        dest="command",
        help="Command to run",
        required=True,
    )

    features_parser = subparsers.add_parser(
        "features",
        help="Resolve and print the feature set",
        description="Resolve build flags and runtime selections against the fork catalog.",
    )
    features_parser.add_argument(
        "--feature",
        "-f",
        action="append",
        default=None,
        help="Build flag (variant or capability=variant); repeatable. Defaults to FORKLINE_FEATURES.",
    )
    features_parser.add_argument(
        "--select",
        "-s",
        action="append",
        default=None,
        help="Runtime selection capability=variant; repeatable. Defaults to FORKLINE_BACKENDS.",
    )
    features_parser.add_argument(
        "--skip-module-check",
        action="store_true",
        help="Do not check that the modules of active variants are installed",
    )

    boundary_parser = subparsers.add_parser(
        "check-boundary",
        help="Check that default modules never import fork modules",
        description="Statically scan the package for imports that cross the isolation boundary.",
    )
    boundary_parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="Directory of the forkline package to scan (default: the installed package)",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the management server",
        description="Run the FastAPI management server with uvicorn.",
    )
    serve_parser.add_argument("--host", type=str, default=None, help="Override FORKLINE_SERVER_HOST")
    serve_parser.add_argument("--port", type=int, default=None, help="Override FORKLINE_SERVER_PORT")
    return parser


def _features(args: argparse.Namespace, settings: Settings) -> int:
    try:
        requested = args.feature if args.feature is not None else settings.feature_flags
        selection = parse_selection(",".join(args.select)) if args.select is not None else settings.backend_selection
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFLICT

    try:
        feature_set = resolve_feature_set(FORK_CATALOG, requested, selection)
        if not args.skip_module_check:
            check_availability(FORK_CATALOG, feature_set, find_spec=importlib.util.find_spec)
    except ConfigurationConflict as exc:
        print(f"configuration conflict: {exc}", file=sys.stderr)
        return EXIT_CONFLICT
    except UnboundCapability as exc:
        print(f"unbound capability: {exc}", file=sys.stderr)
        return EXIT_CONFLICT

    print(json.dumps(feature_set.as_dict(), indent=2, sort_keys=True))
    return EXIT_OK


def _check_boundary(args: argparse.Namespace) -> int:
    root = Path(args.root) if args.root else None
    violations = find_violations(root)
    if violations:
        for violation in violations:
            print(str(violation), file=sys.stderr)
        print(f"{len(violations)} isolation boundary violation(s)", file=sys.stderr)
        return EXIT_VIOLATION
    print("isolation boundary holds")
    return EXIT_OK


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .server.main import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        log_level=settings.log_level.lower(),
    )
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the forkline command-line interface.

    Returns:
        Process exit code.
    """
    args = _build_parser().parse_args(argv)
    try:
        settings = Settings()
    except ValidationError as exc:
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"])
            print(f"configuration conflict: {location}: {error['msg']}", file=sys.stderr)
        return EXIT_CONFLICT
    setup_logging(args.log_level or settings.log_level, enable_file=False)

    if args.command == "features":
        return _features(args, settings)
    if args.command == "check-boundary":
        return _check_boundary(args)
    return _serve(args, settings)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
