"""Entry point for Archive Courier.

Usage:
    python -m archive_courier                  Process the newest archive once
    python -m archive_courier --verbose        Same, with DEBUG logging
    python -m archive_courier --wait           Block until an archive lands first
    python -m archive_courier --config PATH    Use an alternative config file
"""

import argparse
import sys

from archive_courier import __app_name__, __version__


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="archive-courier",
        description=f"{__app_name__}: move the newest archive's payload to the upload folder.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log at DEBUG level"
    )
    parser.add_argument(
        "-c", "--config", metavar="PATH", help="path to the JSON config file"
    )
    parser.add_argument(
        "--wait",
        action="store_true",
        help="wait for an archive to appear in the downloads folder before running",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        metavar="SECONDS",
        help="give up waiting after this many seconds (overrides config)",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, run once, and exit with the run's status code."""
    args = build_parser().parse_args(argv)

    from archive_courier.app import App

    app = App(
        config_path=args.config,
        verbose=args.verbose,
        wait=args.wait,
        wait_timeout=args.timeout,
    )
    sys.exit(app.run())


if __name__ == "__main__":
    main()
