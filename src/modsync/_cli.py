"""modsync CLI.

Entry point for the ``modsync`` command.  The build tool spawns this with
the control pipe on fd 3; ``--stdio`` uses stdin/stdout instead.
"""

from __future__ import annotations

import argparse


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the modsync CLI."""
    parser = argparse.ArgumentParser(
        prog="modsync",
        description="Keep browsers in sync with a live module build.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument(
        "--config", dest="root", default=".",
        help="Directory containing modsync.yaml / modsync.toml",
    )
    parser.add_argument(
        "--control-fd", type=int, default=None,
        help="File descriptor of the control pipe (default 3)",
    )
    parser.add_argument(
        "--stdio", action="store_true", default=None,
        help="Use stdin/stdout as the control channel",
    )
    parser.add_argument("--host", dest="hostname", default=None, help="Default bind address")
    parser.add_argument("--port", type=int, default=None, help="Default bind port")
    parser.add_argument(
        "--quiet", action="store_true", default=None, help="Suppress diagnostics",
    )
    return parser


def _get_version() -> str:
    """Get the package version."""
    from modsync import __version__

    return __version__


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from modsync._errors import ConfigError
    from modsync.app import run

    try:
        return run(
            args.root,
            control_fd=args.control_fd,
            stdio=args.stdio,
            hostname=args.hostname,
            port=args.port,
            quiet=args.quiet,
        )
    except ConfigError as exc:
        parser.error(str(exc))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
